"""Natural-language place search: query understanding and geospatial planning."""

__version__ = "1.0.0"
