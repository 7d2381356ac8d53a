from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional, Sequence

from geoquery.models.geo import POI, Bounds, Isochrone, Location


class RoutingService(ABC):
    """Isochrone and routing collaborator interface"""

    @abstractmethod
    async def get_isochrone(
        self, location: Location, transport: str, range_seconds: int
    ) -> Isochrone:
        """Area reachable from location within range_seconds"""

    @abstractmethod
    async def get_directions(
        self,
        coordinates: Sequence[Location],
        transport: str,
        *,
        alternatives: bool = False,
        avoid_features: Optional[List[str]] = None,
    ) -> List[Dict[str, Any]]:
        """Route GeoJSON features through the coordinates, in order

        Each feature carries ``properties.summary`` with distance (m) and
        duration (s), ``properties.segments`` and a LineString geometry.
        """

    @abstractmethod
    async def get_matrix(
        self,
        locations: Sequence[Location],
        transport: str,
        *,
        sources: Optional[List[int]] = None,
        destinations: Optional[List[int]] = None,
        metrics: Sequence[str] = ("duration", "distance"),
    ) -> Dict[str, Any]:
        """Travel matrix: ``durations`` (s) and ``distances`` (m)"""

    @abstractmethod
    async def optimize(
        self, jobs: List[Dict[str, Any]], vehicles: List[Dict[str, Any]]
    ) -> Dict[str, Any]:
        """Vehicle routing solution with ``routes`` and ``unassigned``"""


class POISearchService(ABC):
    """POI search collaborator interface"""

    @abstractmethod
    async def find_pois(
        self,
        category: str,
        bounds: Bounds,
        *,
        cuisine: Optional[str] = None,
        max_results: int = 100,
    ) -> List[POI]:
        """POIs of one category inside bounds"""


class GeocodingService(ABC):
    """Geocoding collaborator interface"""

    @abstractmethod
    async def search(
        self, text: str, *, limit: int = 5, country_code: Optional[str] = None
    ) -> List[Location]:
        """Candidate locations for free text, best match first"""

    async def geocode(
        self, text: str, *, country_code: Optional[str] = None
    ) -> Optional[Location]:
        results = await self.search(text, limit=1, country_code=country_code)
        return results[0] if results else None
