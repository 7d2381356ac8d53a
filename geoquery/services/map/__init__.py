from .api_counter import APICounter
from .errors import (
    APIQuotaExceeded,
    GeocodingError,
    MapServiceError,
    POISearchError,
    RoutingServiceError,
)
from .map_service import GeocodingService, POISearchService, RoutingService
from .nominatim_client import NominatimClient
from .ors_client import ORSClient
from .overpass_client import OverpassClient

__all__ = [
    "APICounter",
    "APIQuotaExceeded",
    "GeocodingError",
    "GeocodingService",
    "MapServiceError",
    "NominatimClient",
    "ORSClient",
    "OverpassClient",
    "POISearchError",
    "POISearchService",
    "RoutingService",
    "RoutingServiceError",
]
