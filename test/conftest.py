import os

# Settings are read at import; keep tests away from a real MongoDB
os.environ.setdefault("MEMORY_ENABLED", "false")
os.environ.setdefault("ORS_API_KEY", "test-key")

from typing import Any, Dict, List, Optional  # noqa: E402

import pytest  # noqa: E402

from geoquery.models.geo import POI, Bounds, Isochrone, Location  # noqa: E402
from geoquery.services.map.errors import GeocodingError, RoutingServiceError  # noqa: E402
from geoquery.services.map.map_service import (  # noqa: E402
    GeocodingService,
    POISearchService,
    RoutingService,
)

HOUSTON = Location(lat=29.76, lng=-95.37, display_name="Houston, TX")


def square_isochrone(center: Location, half_deg: float = 0.05, bbox=None) -> Isochrone:
    ring = [
        [center.lng - half_deg, center.lat - half_deg],
        [center.lng + half_deg, center.lat - half_deg],
        [center.lng + half_deg, center.lat + half_deg],
        [center.lng - half_deg, center.lat + half_deg],
        [center.lng - half_deg, center.lat - half_deg],
    ]
    return Isochrone(
        polygons=[ring],
        bbox=bbox
        or (center.lng - half_deg, center.lat - half_deg, center.lng + half_deg, center.lat + half_deg),
        center=center,
    )


def make_poi(poi_id: str, lat: float, lng: float, poi_type: str = "cafe", name: Optional[str] = None) -> POI:
    return POI(id=poi_id, name=name or poi_id, type=poi_type, lat=lat, lng=lng)


def route_feature(distance_m: float, duration_s: float, coordinates: List[List[float]]) -> Dict[str, Any]:
    return {
        "type": "Feature",
        "properties": {
            "summary": {"distance": distance_m, "duration": duration_s},
            "segments": [{"distance": distance_m, "duration": duration_s, "steps": []}],
        },
        "geometry": {"type": "LineString", "coordinates": coordinates},
    }


class StubRouting(RoutingService):
    """Routing collaborator driven by per-call handlers; records every call"""

    def __init__(self):
        self.calls: List[tuple] = []
        self.isochrone_handler = lambda location, transport, seconds: square_isochrone(location)
        self.directions_handler = None
        self.matrix_handler = None
        self.optimize_handler = None

    async def get_isochrone(self, location, transport, range_seconds):
        self.calls.append(("isochrone", location, transport, range_seconds))
        return self.isochrone_handler(location, transport, range_seconds)

    async def get_directions(self, coordinates, transport, *, alternatives=False, avoid_features=None):
        self.calls.append(("directions", list(coordinates), transport, alternatives))
        if self.directions_handler is None:
            raise RoutingServiceError("No route found")
        return self.directions_handler(list(coordinates), transport)

    async def get_matrix(self, locations, transport, *, sources=None, destinations=None, metrics=("duration", "distance")):
        self.calls.append(("matrix", list(locations), transport))
        if self.matrix_handler is None:
            raise RoutingServiceError("Matrix unavailable", retryable=True)
        return self.matrix_handler(list(locations), transport)

    async def optimize(self, jobs, vehicles):
        self.calls.append(("optimize", jobs, vehicles))
        if self.optimize_handler is None:
            raise RoutingServiceError("Optimization unavailable", retryable=True)
        return self.optimize_handler(jobs, vehicles)

    def count(self, kind: str) -> int:
        return sum(1 for call in self.calls if call[0] == kind)


class StubPOISearch(POISearchService):
    def __init__(self):
        self.calls: List[Dict[str, Any]] = []
        self.handler = lambda category, bounds, cuisine, max_results: []

    async def find_pois(self, category: str, bounds: Bounds, *, cuisine=None, max_results=100):
        self.calls.append(
            {"category": category, "bounds": bounds, "cuisine": cuisine, "max_results": max_results}
        )
        return self.handler(category, bounds, cuisine, max_results)


class StubGeocoder(GeocodingService):
    def __init__(self, results: Optional[Dict[str, List[Location]]] = None, *, should_raise: bool = False):
        self.results = results or {}
        self.should_raise = should_raise
        self.calls: List[str] = []

    async def search(self, text, *, limit=5, country_code=None):
        self.calls.append(text)
        if self.should_raise:
            raise GeocodingError("geocoder down", retryable=True)
        return self.results.get(text, [])[:limit]


@pytest.fixture
def routing():
    return StubRouting()


@pytest.fixture
def poi_search():
    return StubPOISearch()


@pytest.fixture
def geocoder():
    return StubGeocoder()
