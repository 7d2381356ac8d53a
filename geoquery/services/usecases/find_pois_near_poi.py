"""
Find POIs of one category around the nearest POI of another (the anchor)
"""
import logging
import time
from typing import List, Optional

from geoquery.models.geo import POI, Bounds, Location
from geoquery.services.geo import distance, estimate_travel_time
from geoquery.services.map.errors import MapServiceError
from geoquery.services.map.map_service import POISearchService, RoutingService

from .find_pois_within_time import filter_by_isochrone
from .types import (
    ErrorCode,
    FindPOIsNearPOIRequest,
    FindPOIsNearPOIResult,
    UseCaseMetadata,
    UseCaseResult,
    create_error,
    create_success,
    error_result,
    validate_location,
)

logger = logging.getLogger(__name__)

ANCHOR_SEARCH_SECONDS = 1800
ANCHOR_CANDIDATES = 10


def find_nearest(location: Location, pois: List[POI]) -> Optional[POI]:
    if not pois:
        return None
    return min(pois, key=lambda poi: distance(location, poi.location))


class FindPOIsNearPOI:
    def __init__(self, routing: RoutingService, poi_search: POISearchService):
        self.routing = routing
        self.poi_search = poi_search

    async def execute(self, request: FindPOIsNearPOIRequest) -> UseCaseResult:
        started = time.perf_counter()
        meta = UseCaseMetadata()
        try:
            location_error = validate_location(request.user_location, "user_location")
            if location_error:
                return error_result(location_error)
            if not request.primary_poi_type or not request.secondary_poi_type:
                return create_error(
                    ErrorCode.MISSING_REQUIRED_FIELD,
                    "Both primary and secondary POI types are required",
                )

            user: Location = request.user_location
            transport = request.transport

            # Step 1: nearest anchor within a 30 minute area
            try:
                meta.api_calls_count += 1
                user_area = await self.routing.get_isochrone(user, transport, ANCHOR_SEARCH_SECONDS)
            except MapServiceError as exc:
                return create_error(ErrorCode.ISOCHRONE_FAILED, f"Failed to compute search area: {exc}")
            try:
                meta.api_calls_count += 1
                anchors = await self.poi_search.find_pois(
                    request.secondary_poi_type,
                    Bounds.from_bbox(user_area.bbox),
                    max_results=ANCHOR_CANDIDATES,
                )
            except MapServiceError as exc:
                return create_error(ErrorCode.POI_SEARCH_FAILED, f"Anchor search failed: {exc}")

            anchor = find_nearest(user, anchors)
            if anchor is None:
                return create_error(
                    ErrorCode.NO_RESULTS_FOUND,
                    f"No {request.secondary_poi_type} found near your location",
                    {"poi_type": request.secondary_poi_type},
                )
            anchor_location = Location(lat=anchor.lat, lng=anchor.lng, display_name=anchor.name)

            # Step 2: primary POIs reachable from the anchor
            try:
                meta.api_calls_count += 1
                anchor_area = await self.routing.get_isochrone(
                    anchor_location, transport, request.max_time_from_secondary * 60
                )
            except MapServiceError as exc:
                return create_error(ErrorCode.ISOCHRONE_FAILED, f"Failed to compute anchor area: {exc}")
            try:
                meta.api_calls_count += 1
                candidates = await self.poi_search.find_pois(
                    request.primary_poi_type,
                    Bounds.from_bbox(anchor_area.bbox),
                    cuisine=request.cuisine,
                    max_results=request.max_results * 2,
                )
            except MapServiceError as exc:
                return create_error(ErrorCode.POI_SEARCH_FAILED, f"POI search failed: {exc}")

            if not candidates:
                return create_error(
                    ErrorCode.NO_RESULTS_FOUND,
                    f"No {request.primary_poi_type} found near {anchor.name}",
                    {"primary_type": request.primary_poi_type, "anchor_name": anchor.name},
                )

            inside, precise = filter_by_isochrone(candidates, anchor_area)
            if not precise:
                meta.warnings.append("Isochrone polygon unavailable; results filtered by bounding box")
            if not inside:
                return create_error(
                    ErrorCode.NO_RESULTS_FOUND,
                    f"No {request.primary_poi_type} found within "
                    f"{request.max_time_from_secondary} minutes of {anchor.name}",
                )

            enriched = []
            for poi in inside:
                from_anchor = distance(anchor_location, poi.location)
                from_user = distance(user, poi.location)
                enriched.append(
                    poi.model_copy(
                        update={
                            "distance": round(from_user),
                            "distance_from_anchor": round(from_anchor),
                            "travel_time_from_anchor": round(estimate_travel_time(from_anchor, transport)),
                            "travel_time_from_user": round(estimate_travel_time(from_user, transport)),
                        }
                    )
                )
            enriched.sort(key=lambda p: p.distance_from_anchor)
            limited = enriched[: request.max_results]
            if len(enriched) > len(limited):
                meta.warnings.append(
                    f"Found {len(enriched)} POIs but limited to {request.max_results}"
                )

            meta.execution_time_ms = int((time.perf_counter() - started) * 1000)
            return create_success(
                FindPOIsNearPOIResult(
                    anchor_poi=anchor.model_copy(update={"distance": round(distance(user, anchor_location))}),
                    primary_pois=limited,
                    count=len(limited),
                    transport=transport,
                    search_radius=max(p.distance_from_anchor for p in limited),
                ),
                meta,
            )
        except Exception as exc:
            logger.exception("FindPOIsNearPOI failed")
            return create_error(ErrorCode.UNKNOWN_ERROR, str(exc) or "Failed to find POIs near POI")
