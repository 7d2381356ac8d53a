"""
Geospatial value objects shared by the map clients, use cases and agents
All coordinates are WGS84 degrees; distances are meters, durations minutes
"""
from typing import Any, Dict, List, Optional, Tuple

from pydantic import BaseModel, Field


class Location(BaseModel):
    """Point on the map, optionally labelled"""
    lat: float = Field(ge=-90, le=90)
    lng: float = Field(ge=-180, le=180)
    display_name: Optional[str] = None

    @property
    def is_unset(self) -> bool:
        # Browsers without a fix report (0, 0)
        return self.lat == 0 and self.lng == 0

    def or_fallback(self, fallback: "Location") -> "Location":
        return fallback if self.is_unset else self

    def to_lng_lat(self) -> List[float]:
        return [self.lng, self.lat]


class POI(BaseModel):
    """Point of interest returned by the POI search collaborator"""
    id: str
    name: str
    type: str
    lat: float
    lng: float
    tags: Dict[str, str] = {}
    address: Optional[str] = None
    rating: Optional[float] = None
    # Computed relative to the location used for the search that produced it
    distance: Optional[float] = None
    travel_time: Optional[float] = None
    distance_from_anchor: Optional[float] = None
    travel_time_from_anchor: Optional[float] = None
    travel_time_from_user: Optional[float] = None

    @property
    def location(self) -> Location:
        return Location(lat=self.lat, lng=self.lng, display_name=self.name)


class Isochrone(BaseModel):
    """Area reachable within a time budget

    polygons holds exterior rings as [lng, lat] pairs; bbox is
    (min_lng, min_lat, max_lng, max_lat).
    """
    polygons: List[List[List[float]]] = []
    bbox: Tuple[float, float, float, float]
    center: Optional[Location] = None
    range_seconds: Optional[int] = None
    transport: Optional[str] = None


class Bounds(BaseModel):
    """South/west/north/east box used to scope POI searches"""
    south: float
    west: float
    north: float
    east: float

    @classmethod
    def from_bbox(cls, bbox: Tuple[float, float, float, float]) -> "Bounds":
        min_lng, min_lat, max_lng, max_lat = bbox
        return cls(south=min_lat, west=min_lng, north=max_lat, east=max_lng)

    def contains(self, lat: float, lng: float) -> bool:
        return self.south <= lat <= self.north and self.west <= lng <= self.east


class RouteStep(BaseModel):
    instruction: str = ""
    name: Optional[str] = None
    distance: float = 0.0  # meters
    duration: float = 0.0  # minutes
    type: Optional[int] = None


class RouteInfo(BaseModel):
    """One routed leg; multi-stop journeys are a list of these"""
    distance: float  # meters
    duration: float  # minutes
    geometry: List[List[float]] = []  # [lng, lat] or [lng, lat, elevation]
    steps: List[RouteStep] = []
    warnings: List[str] = []
    ascent: Optional[float] = None
    descent: Optional[float] = None
    avg_speed: Optional[float] = None  # km/h
    bbox: Optional[List[float]] = None
    extras: Dict[str, Any] = {}
