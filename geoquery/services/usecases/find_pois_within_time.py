"""
Find every POI of a category reachable within an exact travel-time budget
"""
import logging
import time
from typing import List, Tuple

from shapely.errors import ShapelyError

from geoquery.models.geo import POI, Bounds, Isochrone, Location
from geoquery.services.geo import distance, estimate_travel_time, point_in_isochrone
from geoquery.services.map.errors import MapServiceError
from geoquery.services.map.map_service import POISearchService, RoutingService

from .types import (
    ErrorCode,
    FindPOIsWithinTimeRequest,
    FindPOIsWithinTimeResult,
    UseCaseMetadata,
    UseCaseResult,
    create_error,
    create_success,
    error_result,
    validate_location,
    validate_time_constraint,
)

logger = logging.getLogger(__name__)

CLUSTER_THRESHOLD = 20


def filter_by_isochrone(pois: List[POI], isochrone: Isochrone) -> Tuple[List[POI], bool]:
    """Keep POIs inside the isochrone polygons.

    Returns (pois, precise); when the polygons are missing or unusable the
    bbox is used instead and precise is False.
    """
    if isochrone.polygons:
        try:
            return [p for p in pois if point_in_isochrone(p.location, isochrone)], True
        except (ShapelyError, ValueError, TypeError) as exc:
            logger.warning("Isochrone polygon unusable, filtering by bbox: %s", exc)
    bounds = Bounds.from_bbox(isochrone.bbox)
    return [p for p in pois if bounds.contains(p.lat, p.lng)], False


def sort_pois(pois: List[POI], sort_by: str) -> List[POI]:
    if sort_by == "rating":
        return sorted(pois, key=lambda p: (p.rating is None, -(p.rating or 0), p.distance or 0))
    if sort_by == "distance":
        return sorted(pois, key=lambda p: p.distance or 0)
    return pois


class FindPOIsWithinTime:
    def __init__(self, routing: RoutingService, poi_search: POISearchService):
        self.routing = routing
        self.poi_search = poi_search

    async def execute(self, request: FindPOIsWithinTimeRequest) -> UseCaseResult:
        started = time.perf_counter()
        meta = UseCaseMetadata()
        try:
            location_error = validate_location(request.user_location, "user_location")
            if location_error:
                return error_result(location_error)
            if not request.poi_type:
                return create_error(ErrorCode.MISSING_REQUIRED_FIELD, "POI type is required")
            time_error = validate_time_constraint(request.time_minutes, 1, 120)
            if time_error:
                return error_result(time_error)

            user: Location = request.user_location

            try:
                meta.api_calls_count += 1
                isochrone = await self.routing.get_isochrone(
                    user, request.transport, int(request.time_minutes * 60)
                )
            except MapServiceError as exc:
                return create_error(
                    ErrorCode.ISOCHRONE_FAILED, f"Failed to compute reachable area: {exc}"
                )

            try:
                meta.api_calls_count += 1
                candidates = await self.poi_search.find_pois(
                    request.poi_type,
                    Bounds.from_bbox(isochrone.bbox),
                    cuisine=request.cuisine,
                    max_results=request.max_results * 2,
                )
            except MapServiceError as exc:
                return create_error(ErrorCode.POI_SEARCH_FAILED, f"POI search failed: {exc}")

            if not candidates:
                return self._no_results(request)

            inside, precise = filter_by_isochrone(candidates, isochrone)
            if not precise:
                meta.warnings.append("Isochrone polygon unavailable; results filtered by bounding box")
            if not inside:
                return self._no_results(request)

            enriched = []
            for poi in inside:
                d = distance(user, poi.location)
                enriched.append(
                    poi.model_copy(
                        update={
                            "distance": round(d),
                            "travel_time": round(estimate_travel_time(d, request.transport)),
                        }
                    )
                )

            ordered = sort_pois(enriched, request.sort_by)
            limited = ordered[: request.max_results]
            if len(ordered) > len(limited):
                meta.warnings.append(
                    f"Found {len(ordered)} POIs but limited to {request.max_results}"
                )

            meta.execution_time_ms = int((time.perf_counter() - started) * 1000)
            return create_success(
                FindPOIsWithinTimeResult(
                    pois=limited,
                    count=len(limited),
                    isochrone=isochrone,
                    transport=request.transport,
                    time_minutes=request.time_minutes,
                    clustered=len(limited) > CLUSTER_THRESHOLD,
                ),
                meta,
            )
        except Exception as exc:
            logger.exception("FindPOIsWithinTime failed")
            return create_error(ErrorCode.UNKNOWN_ERROR, str(exc) or "Failed to find POIs")

    @staticmethod
    def _no_results(request: FindPOIsWithinTimeRequest) -> UseCaseResult:
        return create_error(
            ErrorCode.NO_RESULTS_FOUND,
            f"No {request.poi_type} found within {request.time_minutes:g} minutes "
            f"{request.transport}",
            {"poi_type": request.poi_type, "time_minutes": request.time_minutes},
        )
