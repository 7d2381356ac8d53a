"""
Geospatial primitives: great-circle distance, travel-time estimates,
isochrone membership and route-corridor helpers
"""
import math
from typing import Iterable, List, Optional, Sequence, Tuple

from shapely.geometry import LineString, Point, Polygon

from geoquery.models.geo import Isochrone, Location

EARTH_RADIUS_M = 6371e3
METERS_PER_DEGREE = 111000.0

# Average speeds in m/s
TRANSPORT_SPEEDS = {
    "walking": 1.4,
    "driving": 13.9,
    "cycling": 4.2,
    "public_transport": 8.3,
}


def distance(a: Location, b: Location) -> float:
    """Haversine distance between two locations in meters"""
    phi1 = math.radians(a.lat)
    phi2 = math.radians(b.lat)
    d_phi = math.radians(b.lat - a.lat)
    d_lambda = math.radians(b.lng - a.lng)

    h = (
        math.sin(d_phi / 2) ** 2
        + math.cos(phi1) * math.cos(phi2) * math.sin(d_lambda / 2) ** 2
    )
    return EARTH_RADIUS_M * 2 * math.atan2(math.sqrt(h), math.sqrt(1 - h))


def estimate_travel_time(distance_m: float, transport: str) -> float:
    """Rough travel time in minutes, used when no routed time is available"""
    speed = TRANSPORT_SPEEDS.get(transport, TRANSPORT_SPEEDS["walking"])
    return distance_m / speed / 60


def point_in_isochrone(point: Location, isochrone: Isochrone) -> bool:
    """True when the point falls inside any of the isochrone polygons"""
    target = Point(point.lng, point.lat)
    for ring in isochrone.polygons:
        if len(ring) < 3:
            continue
        polygon = Polygon([(c[0], c[1]) for c in ring])
        if polygon.covers(target):
            return True
    return False


def bbox_of(coordinates: Iterable[Sequence[float]]) -> Tuple[float, float, float, float]:
    """(min_lng, min_lat, max_lng, max_lat) of [lng, lat, ...] coordinates"""
    lngs: List[float] = []
    lats: List[float] = []
    for coord in coordinates:
        lngs.append(coord[0])
        lats.append(coord[1])
    if not lngs:
        raise ValueError("Cannot compute bounding box of an empty coordinate list")
    return min(lngs), min(lats), max(lngs), max(lats)


def buffer_bbox(
    bbox: Tuple[float, float, float, float], buffer_m: float
) -> Tuple[float, float, float, float]:
    pad = buffer_m / METERS_PER_DEGREE
    min_lng, min_lat, max_lng, max_lat = bbox
    return min_lng - pad, min_lat - pad, max_lng + pad, max_lat + pad


def point_to_line_distance(point: Location, line: Sequence[Sequence[float]]) -> float:
    """Shortest distance in meters from a point to a [lng, lat] polyline

    Coordinates are projected onto a local equirectangular plane centred on
    the point, which is accurate at corridor scale (a few kilometres).
    """
    if not line:
        return math.inf
    if len(line) == 1:
        return distance(point, Location(lat=line[0][1], lng=line[0][0]))

    cos_lat = math.cos(math.radians(point.lat))

    def project(lng: float, lat: float) -> Tuple[float, float]:
        x = math.radians(lng - point.lng) * EARTH_RADIUS_M * cos_lat
        y = math.radians(lat - point.lat) * EARTH_RADIUS_M
        return x, y

    projected = LineString([project(c[0], c[1]) for c in line])
    return projected.distance(Point(0.0, 0.0))


def midpoint(coordinates: Sequence[Sequence[float]]) -> Optional[Location]:
    """Middle vertex of a [lng, lat] route geometry"""
    if not coordinates:
        return None
    coord = coordinates[len(coordinates) // 2]
    return Location(lat=coord[1], lng=coord[0])
