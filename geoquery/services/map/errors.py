"""Exceptions raised by the map collaborator clients."""
from typing import Any, Optional


class MapServiceError(Exception):
    """Base error for routing, POI search and geocoding collaborators"""

    def __init__(
        self,
        message: str,
        *,
        status_code: Optional[int] = None,
        retryable: bool = False,
        details: Any = None,
    ) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.retryable = retryable
        self.details = details


class RoutingServiceError(MapServiceError):
    """Isochrone, directions, matrix or optimization call failed"""


class POISearchError(MapServiceError):
    """POI search call failed"""


class GeocodingError(MapServiceError):
    """Geocoding call failed"""


class APIQuotaExceeded(MapServiceError):
    """Daily outbound call budget is used up"""
