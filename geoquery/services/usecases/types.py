"""
Result envelope, error taxonomy and request/result models for the use cases
Every use case returns a UseCaseResult; nothing raises across the boundary.
"""
import math
from enum import Enum
from typing import Any, Generic, List, Optional, TypeVar, Union

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

from geoquery.models.geo import POI, Isochrone, Location, RouteInfo

from .strategy import SearchStrategy

T = TypeVar("T")


class ErrorCode(str, Enum):
    # Caller errors
    INVALID_INPUT = "INVALID_INPUT"
    MISSING_REQUIRED_FIELD = "MISSING_REQUIRED_FIELD"
    INVALID_COORDINATES = "INVALID_COORDINATES"
    INVALID_TIME_CONSTRAINT = "INVALID_TIME_CONSTRAINT"
    # Collaborator errors
    GEOCODING_FAILED = "GEOCODING_FAILED"
    ISOCHRONE_FAILED = "ISOCHRONE_FAILED"
    POI_SEARCH_FAILED = "POI_SEARCH_FAILED"
    ROUTING_FAILED = "ROUTING_FAILED"
    OPTIMIZATION_FAILED = "OPTIMIZATION_FAILED"
    # Business outcomes
    NO_RESULTS_FOUND = "NO_RESULTS_FOUND"
    TIME_CONSTRAINT_EXCEEDED = "TIME_CONSTRAINT_EXCEEDED"
    TOO_MANY_RESULTS = "TOO_MANY_RESULTS"
    UNKNOWN_ERROR = "UNKNOWN_ERROR"


RETRYABLE_CODES = {
    ErrorCode.GEOCODING_FAILED,
    ErrorCode.ISOCHRONE_FAILED,
    ErrorCode.POI_SEARCH_FAILED,
    ErrorCode.ROUTING_FAILED,
    ErrorCode.OPTIMIZATION_FAILED,
    ErrorCode.UNKNOWN_ERROR,
}


class UseCaseError(BaseModel):
    code: ErrorCode
    message: str
    details: Any = None
    retryable: bool = False


class UseCaseMetadata(BaseModel):
    execution_time_ms: Optional[int] = None
    api_calls_count: int = 0
    warnings: List[str] = []


class UseCaseResult(BaseModel, Generic[T]):
    """Either success with data or failure with a typed error"""
    success: bool
    data: Optional[T] = None
    error: Optional[UseCaseError] = None
    metadata: Optional[UseCaseMetadata] = None


def create_success(data: Any, metadata: Optional[UseCaseMetadata] = None) -> UseCaseResult:
    return UseCaseResult(success=True, data=data, metadata=metadata)


def create_error(
    code: ErrorCode,
    message: str,
    details: Any = None,
    retryable: Optional[bool] = None,
) -> UseCaseResult:
    if retryable is None:
        retryable = code in RETRYABLE_CODES
    return UseCaseResult(
        success=False,
        error=UseCaseError(code=code, message=message, details=details, retryable=retryable),
    )


def validate_location(location: Optional[Location], field: str = "location") -> Optional[UseCaseError]:
    if location is None:
        return UseCaseError(
            code=ErrorCode.MISSING_REQUIRED_FIELD, message=f"{field} is required"
        )
    lat, lng = location.lat, location.lng
    if not (math.isfinite(lat) and math.isfinite(lng)) or not (
        -90 <= lat <= 90 and -180 <= lng <= 180
    ):
        return UseCaseError(
            code=ErrorCode.INVALID_COORDINATES,
            message=f"Invalid coordinates for {field}: ({lat}, {lng})",
            details={"lat": lat, "lng": lng},
        )
    return None


def validate_time_constraint(
    minutes: Optional[float], minimum: int = 1, maximum: int = 120
) -> Optional[UseCaseError]:
    if minutes is None or not (minimum <= minutes <= maximum):
        return UseCaseError(
            code=ErrorCode.INVALID_TIME_CONSTRAINT,
            message=f"Time constraint must be between {minimum} and {maximum} minutes",
            details={"time_minutes": minutes},
        )
    return None


def error_result(error: UseCaseError) -> UseCaseResult:
    return UseCaseResult(success=False, error=error)


# Requests / results

class UseCaseRequest(BaseModel):
    """Use case input; camelCase on the wire, snake_case in code"""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class FindNearestPOIRequest(UseCaseRequest):
    poi_type: Optional[str] = None
    user_location: Optional[Location] = None
    transport: Optional[str] = None
    cuisine: Optional[str] = None


class FindNearestPOIResult(BaseModel):
    poi: POI
    distance: int  # meters
    travel_time: int  # minutes
    transport: str
    alternative_pois: List[POI] = []
    strategy: SearchStrategy


class FindPOIsWithinTimeRequest(UseCaseRequest):
    poi_type: Optional[str] = None
    user_location: Optional[Location] = None
    time_minutes: Optional[float] = None
    transport: str = "walking"
    max_results: int = 50
    cuisine: Optional[str] = None
    sort_by: str = "distance"  # distance | rating | relevance


class FindPOIsWithinTimeResult(BaseModel):
    pois: List[POI]
    count: int
    isochrone: Isochrone
    transport: str
    time_minutes: float
    clustered: bool = False


class FindPOIsNearPOIRequest(UseCaseRequest):
    primary_poi_type: Optional[str] = None
    secondary_poi_type: Optional[str] = None
    user_location: Optional[Location] = None
    transport: str = "walking"
    max_time_from_secondary: int = 15  # minutes
    max_results: int = 20
    cuisine: Optional[str] = None


class FindPOIsNearPOIResult(BaseModel):
    anchor_poi: POI
    primary_pois: List[POI]
    count: int
    transport: str
    search_radius: int  # meters


class FindPOIEnrouteRequest(UseCaseRequest):
    poi_type: Optional[str] = None
    user_location: Optional[Location] = None
    destination: Optional[Union[Location, str]] = None
    transport: str = "driving"
    max_total_time_minutes: Optional[float] = None
    max_detour_minutes: float = 10
    cuisine: Optional[str] = None


class FindPOIEnrouteResult(BaseModel):
    stopover_poi: POI
    destination: Location
    direct_route: RouteInfo
    optimized_route: RouteInfo
    time_savings: int  # minutes, negative means added time
    detour_distance: int  # meters
    all_candidates: List[POI] = []


class GetRouteRequest(UseCaseRequest):
    start: Optional[Location] = None
    end: Optional[Location] = None
    waypoints: List[Location] = []
    transport: str = "driving"
    avoid_features: List[str] = []
    alternative_routes: bool = False


class GetRouteResult(BaseModel):
    routes: List[RouteInfo]
    transport: str
    best_route_index: int


class GeocodeRequest(UseCaseRequest):
    address: str = ""
    country_code: Optional[str] = None
    max_results: int = 5


class GeocodeResult(BaseModel):
    locations: List[Location]
    query: str
    result_count: int
