"""
Route between two points, optionally through waypoints and with alternatives
"""
import logging
import time

from geoquery.services.map.errors import MapServiceError
from geoquery.services.map.map_service import RoutingService

from .route_parsing import parse_routes
from .types import (
    ErrorCode,
    GetRouteRequest,
    GetRouteResult,
    UseCaseMetadata,
    UseCaseResult,
    create_error,
    create_success,
    error_result,
    validate_location,
)

logger = logging.getLogger(__name__)


class GetRoute:
    def __init__(self, routing: RoutingService):
        self.routing = routing

    async def execute(self, request: GetRouteRequest) -> UseCaseResult:
        started = time.perf_counter()
        meta = UseCaseMetadata()
        try:
            for field, location in (("start", request.start), ("end", request.end)):
                location_error = validate_location(location, field)
                if location_error:
                    return error_result(location_error)
            for i, waypoint in enumerate(request.waypoints):
                location_error = validate_location(waypoint, f"waypoint {i + 1}")
                if location_error:
                    return error_result(location_error)

            coordinates = [request.start, *request.waypoints, request.end]
            meta.api_calls_count += 1
            features = await self.routing.get_directions(
                coordinates,
                request.transport,
                alternatives=request.alternative_routes,
                avoid_features=request.avoid_features or None,
            )
            routes = parse_routes(features, request.transport)
            if not routes:
                return create_error(ErrorCode.ROUTING_FAILED, "No routes found")

            best = min(range(len(routes)), key=lambda i: routes[i].duration)
            if len(routes) > 1:
                meta.warnings.append(f"Found {len(routes)} alternative routes")
            for route in routes:
                meta.warnings.extend(w for w in route.warnings if w not in meta.warnings)

            meta.execution_time_ms = int((time.perf_counter() - started) * 1000)
            return create_success(
                GetRouteResult(routes=routes, transport=request.transport, best_route_index=best),
                meta,
            )
        except MapServiceError as exc:
            return create_error(ErrorCode.ROUTING_FAILED, f"Routing failed: {exc}", retryable=True)
        except Exception as exc:
            logger.exception("GetRoute failed")
            return create_error(ErrorCode.ROUTING_FAILED, str(exc) or "Routing failed", retryable=True)
