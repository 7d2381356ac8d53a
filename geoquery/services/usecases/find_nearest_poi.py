"""
Find the single nearest POI of a category with a progressive search that
widens the (transport, time) budget until something is reachable
"""
import logging
import time
from typing import List, Optional, Sequence

from geoquery.models.geo import POI, Bounds
from geoquery.services.geo import distance, estimate_travel_time
from geoquery.services.map.map_service import POISearchService, RoutingService

from .strategy import NEAREST_STRATEGIES, SearchStrategy, first_success, prefer_transport
from .types import (
    ErrorCode,
    FindNearestPOIRequest,
    FindNearestPOIResult,
    UseCaseMetadata,
    UseCaseResult,
    create_error,
    create_success,
    error_result,
    validate_location,
)

logger = logging.getLogger(__name__)

POIS_PER_STRATEGY = 20
MAX_ALTERNATIVES = 3


class FindNearestPOI:
    def __init__(
        self,
        routing: RoutingService,
        poi_search: POISearchService,
        strategies: Sequence[SearchStrategy] = NEAREST_STRATEGIES,
    ):
        self.routing = routing
        self.poi_search = poi_search
        self.strategies = tuple(strategies)

    async def execute(self, request: FindNearestPOIRequest) -> UseCaseResult:
        started = time.perf_counter()
        meta = UseCaseMetadata()
        try:
            location_error = validate_location(request.user_location, "user_location")
            if location_error:
                return error_result(location_error)
            if not request.poi_type:
                return create_error(ErrorCode.MISSING_REQUIRED_FIELD, "POI type is required")

            user = request.user_location

            async def attempt(strategy: SearchStrategy) -> Optional[List[POI]]:
                meta.api_calls_count += 1
                isochrone = await self.routing.get_isochrone(
                    user, strategy.transport, strategy.time_minutes * 60
                )
                meta.api_calls_count += 1
                pois = await self.poi_search.find_pois(
                    request.poi_type,
                    Bounds.from_bbox(isochrone.bbox),
                    cuisine=request.cuisine,
                    max_results=POIS_PER_STRATEGY,
                )
                # The bbox over-covers the isochrone; keep only estimated-reachable POIs
                reachable = [
                    poi
                    for poi in pois
                    if estimate_travel_time(distance(user, poi.location), strategy.transport)
                    <= strategy.time_minutes
                ]
                if pois and not reachable:
                    logger.info(
                        "Found %d %s but none within %dmin %s",
                        len(pois),
                        request.poi_type,
                        strategy.time_minutes,
                        strategy.transport,
                    )
                return reachable

            strategies = prefer_transport(self.strategies, request.transport)
            found = await first_success(strategies, attempt, label="FindNearestPOI")
            if found is None:
                return create_error(
                    ErrorCode.NO_RESULTS_FOUND,
                    f"No {request.poi_type} found within reasonable distance",
                    {"poi_type": request.poi_type, "strategies_tried": len(self.strategies)},
                )

            strategy, pois = found
            ranked = sorted(
                ((distance(user, poi.location), poi) for poi in pois), key=lambda p: p[0]
            )
            nearest_distance, nearest = ranked[0]
            travel_time = estimate_travel_time(nearest_distance, strategy.transport)
            nearest = nearest.model_copy(
                update={"distance": round(nearest_distance), "travel_time": round(travel_time)}
            )

            meta.execution_time_ms = int((time.perf_counter() - started) * 1000)
            return create_success(
                FindNearestPOIResult(
                    poi=nearest,
                    distance=round(nearest_distance),
                    travel_time=round(travel_time),
                    transport=strategy.transport,
                    alternative_pois=[
                        poi.model_copy(update={"distance": round(d)})
                        for d, poi in ranked[1 : 1 + MAX_ALTERNATIVES]
                    ],
                    strategy=strategy,
                ),
                meta,
            )
        except Exception as exc:
            logger.exception("FindNearestPOI failed")
            return create_error(ErrorCode.UNKNOWN_ERROR, str(exc) or "Failed to find nearest POI")
