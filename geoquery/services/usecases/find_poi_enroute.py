"""
Find the best stopover of a category on the way to a destination, bounded
by a total time budget and a maximum detour
"""
import asyncio
import logging
import time
from typing import List, Optional, Tuple

from geoquery.models.geo import POI, Bounds, Location, RouteInfo
from geoquery.services.geo import bbox_of, buffer_bbox, distance, point_to_line_distance
from geoquery.services.map.errors import MapServiceError
from geoquery.services.map.map_service import GeocodingService, POISearchService, RoutingService

from .route_parsing import parse_route
from .types import (
    ErrorCode,
    FindPOIEnrouteRequest,
    FindPOIEnrouteResult,
    UseCaseMetadata,
    UseCaseResult,
    create_error,
    create_success,
    error_result,
    validate_location,
    validate_time_constraint,
)

logger = logging.getLogger(__name__)

CORRIDOR_BUFFER_M = 5000
MAX_ROUTE_DISTANCE_M = 2000
CORRIDOR_MAX_RESULTS = 30
CANDIDATES_TO_EVALUATE = 5
MAX_REPORTED_CANDIDATES = 10


class FindPOIEnroute:
    def __init__(
        self,
        routing: RoutingService,
        poi_search: POISearchService,
        geocoding: GeocodingService,
    ):
        self.routing = routing
        self.poi_search = poi_search
        self.geocoding = geocoding

    async def execute(self, request: FindPOIEnrouteRequest) -> UseCaseResult:
        started = time.perf_counter()
        meta = UseCaseMetadata()
        try:
            location_error = validate_location(request.user_location, "user_location")
            if location_error:
                return error_result(location_error)
            time_error = validate_time_constraint(request.max_total_time_minutes, 5, 180)
            if time_error:
                return error_result(time_error)
            if not request.poi_type:
                return create_error(ErrorCode.MISSING_REQUIRED_FIELD, "POI type is required")
            if not request.destination:
                return create_error(ErrorCode.MISSING_REQUIRED_FIELD, "Destination is required")

            user: Location = request.user_location
            destination = await self._resolve_destination(request.destination, meta)
            if destination is None:
                return create_error(
                    ErrorCode.GEOCODING_FAILED,
                    f"Could not find destination: {request.destination}",
                    {"destination": request.destination},
                )

            try:
                meta.api_calls_count += 1
                features = await self.routing.get_directions([user, destination], request.transport)
                direct = parse_route(features[0], request.transport)
            except MapServiceError as exc:
                return create_error(ErrorCode.ROUTING_FAILED, f"Failed to route to destination: {exc}")

            if direct.duration > request.max_total_time_minutes:
                return create_error(
                    ErrorCode.TIME_CONSTRAINT_EXCEEDED,
                    f"Direct route takes {round(direct.duration)} minutes, exceeds "
                    f"{request.max_total_time_minutes:g} minute limit",
                    {
                        "direct_duration": direct.duration,
                        "max_time": request.max_total_time_minutes,
                    },
                )

            geometry = direct.geometry or [user.to_lng_lat(), destination.to_lng_lat()]
            corridor = Bounds.from_bbox(buffer_bbox(bbox_of(geometry), CORRIDOR_BUFFER_M))
            try:
                meta.api_calls_count += 1
                candidates = await self.poi_search.find_pois(
                    request.poi_type,
                    corridor,
                    cuisine=request.cuisine,
                    max_results=CORRIDOR_MAX_RESULTS,
                )
            except MapServiceError as exc:
                return create_error(ErrorCode.POI_SEARCH_FAILED, f"POI search failed: {exc}")

            if not candidates:
                return create_error(
                    ErrorCode.NO_RESULTS_FOUND,
                    f"No {request.poi_type} found along the route to "
                    f"{destination.display_name or 'your destination'}",
                    {"poi_type": request.poi_type},
                )

            near_route = self._filter_near_route(candidates, geometry, user)
            if not near_route:
                return create_error(
                    ErrorCode.NO_RESULTS_FOUND,
                    f"No {request.poi_type} found close enough to the route",
                )

            evaluated = await self._evaluate_candidates(
                near_route[:CANDIDATES_TO_EVALUATE], user, destination, direct, request, meta
            )
            feasible = [c for c in evaluated if c[2] <= request.max_detour_minutes]
            if not feasible:
                return create_error(
                    ErrorCode.NO_RESULTS_FOUND,
                    f"No {request.poi_type} found that meets the detour time limit of "
                    f"{request.max_detour_minutes:g} minutes",
                    {
                        "candidates_checked": len(evaluated),
                        "max_detour": request.max_detour_minutes,
                    },
                )

            poi, route, detour = min(feasible, key=lambda c: c[2])
            meta.execution_time_ms = int((time.perf_counter() - started) * 1000)
            return create_success(
                FindPOIEnrouteResult(
                    stopover_poi=poi,
                    destination=destination,
                    direct_route=direct,
                    optimized_route=route,
                    time_savings=-round(detour),
                    detour_distance=round(route.distance - direct.distance),
                    all_candidates=near_route[:MAX_REPORTED_CANDIDATES],
                ),
                meta,
            )
        except Exception as exc:
            logger.exception("FindPOIEnroute failed")
            return create_error(ErrorCode.UNKNOWN_ERROR, str(exc) or "Failed to find POI enroute")

    async def _resolve_destination(self, destination, meta: UseCaseMetadata) -> Optional[Location]:
        if isinstance(destination, Location):
            return destination
        try:
            meta.api_calls_count += 1
            return await self.geocoding.geocode(destination)
        except MapServiceError as exc:
            logger.warning("Geocoding %r failed: %s", destination, exc)
            return None

    @staticmethod
    def _filter_near_route(
        pois: List[POI], geometry: List[List[float]], user: Location
    ) -> List[POI]:
        near = []
        for poi in pois:
            if point_to_line_distance(poi.location, geometry) <= MAX_ROUTE_DISTANCE_M:
                near.append(poi.model_copy(update={"distance": round(distance(user, poi.location))}))
        near.sort(key=lambda p: p.distance)
        return near

    async def _evaluate_candidates(
        self,
        candidates: List[POI],
        user: Location,
        destination: Location,
        direct: RouteInfo,
        request: FindPOIEnrouteRequest,
        meta: UseCaseMetadata,
    ) -> List[Tuple[POI, RouteInfo, float]]:
        async def evaluate(poi: POI) -> Optional[Tuple[POI, RouteInfo, float]]:
            meta.api_calls_count += 1
            try:
                features = await self.routing.get_directions(
                    [user, poi.location, destination], request.transport
                )
            except MapServiceError as exc:
                logger.warning("Stopover route via %s failed: %s", poi.name, exc)
                return None
            route = parse_route(features[0], request.transport)
            return poi, route, route.duration - direct.duration

        # Independent read-only calls; order of completion does not matter
        results = await asyncio.gather(*(evaluate(poi) for poi in candidates))
        return [r for r in results if r is not None]
