"""
Multi-step agent for compound queries

find-near-poi: nearest anchor of the secondary category, then the primary
category around it with an escalating search, ranked by matrix travel time.

find-enroute: resolve the destination, check the direct route against the
time budget, search around the route midpoint and pick the stopover the
optimizer schedules fastest.
"""
import asyncio
import logging
from typing import Any, Dict, List, Optional, Tuple

from geoquery.config import settings
from geoquery.config.poi_types import CUISINE_TO_CATEGORY
from geoquery.models.geo import POI, Location, RouteInfo
from geoquery.models.response import AgentResult
from geoquery.services.geo import distance, estimate_travel_time, midpoint
from geoquery.services.map.errors import MapServiceError
from geoquery.services.map.ors_client import get_ors_profile
from geoquery.services.usecases.strategy import SearchStrategy, first_success, near_poi_strategies
from geoquery.services.usecases.types import (
    FindNearestPOIRequest,
    FindPOIsWithinTimeRequest,
    GeocodeRequest,
    GetRouteRequest,
)

from .base_agent import AgentContext, AgentExecutionError, AgentTool, AgentTrace, BaseAgent, unwrap

logger = logging.getLogger(__name__)

NEAR_POI_MAX_RESULTS = 20
MIDPOINT_SEARCH_MINUTES = 15
MIDPOINT_MAX_RESULTS = 10
MAX_STOPOVER_CANDIDATES = 5
STOPOVER_SERVICE_SECONDS = 300
STOPOVER_PRIORITY = 100


def search_category(primary_poi: str, cuisine: Optional[str]) -> str:
    """Category to search for; a cuisine always maps to its venue category"""
    if cuisine:
        return CUISINE_TO_CATEGORY.get(cuisine.lower(), "restaurant")
    return primary_poi


def locality_of(location: Optional[Location], default_city: str, default_state: str) -> Tuple[str, str]:
    """(city, state) from a display name like "Houston, TX" or "Houston, TX (29.76, -95.37)" """
    city, state = default_city, default_state
    if location is None or not location.display_name:
        return city, state
    label = location.display_name
    if "(" in label and ")" in label:
        label = label.split("(")[0].strip()
        if not label:
            return city, state
    parts = [part.strip() for part in label.split(",")]
    if parts[0]:
        city = parts[0]
    if len(parts) > 1 and parts[1]:
        state = parts[1]
    return city, state


def geocode_attempts(destination: str, city: str, state: str) -> List[str]:
    attempts = [destination, f"{destination}, {city}, {state}", f"{destination}, {city}"]
    if "downtown" in destination.lower():
        attempts += [f"downtown {city}, {state}", f"downtown {city}", f"{city} downtown"]
    return attempts


class MultiStepQueryAgent(BaseAgent):
    name = "MultiStepQueryAgent"
    tools = frozenset(
        {
            AgentTool.FIND_NEAREST_POI,
            AgentTool.FIND_POIS_WITHIN_TIME,
            AgentTool.CALCULATE_MATRIX,
            AgentTool.GET_DIRECTIONS,
            AgentTool.OPTIMIZE_ROUTE,
            AgentTool.GEOCODE_ADDRESS,
        }
    )

    def __init__(
        self,
        tool_table,
        default_city: Optional[str] = None,
        default_state: Optional[str] = None,
    ):
        super().__init__(tool_table)
        self.default_city = default_city or settings.default_city
        self.default_state = default_state or settings.default_state

    async def execute(self, query: str, context: AgentContext) -> AgentResult:
        trace = AgentTrace()
        try:
            query_type = self.determine_query_type(context)
            trace.step(f"Complex query type: {query_type}")

            if context.user_location is None:
                return self.create_error("User location is required for location queries", trace)

            if query_type == "find-near-poi":
                data = await self._find_near_poi(context, trace)
            elif query_type == "find-enroute":
                data = await self._find_enroute(context, trace)
            else:
                return self.create_error(f"Unknown complex query type: {query_type}", trace)
            return self.create_success(data, trace, message=data.get("message"))
        except AgentExecutionError as exc:
            return self.create_error(str(exc), trace)
        except Exception as exc:
            logger.exception("[%s] Execution error", self.name)
            return self.create_error(str(exc) or "Multi-step query failed", trace)

    @staticmethod
    def determine_query_type(context: AgentContext) -> str:
        if context.entities.secondary_poi:
            return "find-near-poi"
        if context.entities.destination:
            return "find-enroute"
        return "unknown"

    async def _find_near_poi(self, context: AgentContext, trace: AgentTrace) -> Dict[str, Any]:
        entities = context.entities
        primary, secondary = entities.primary_poi, entities.secondary_poi
        if not primary or not secondary:
            raise AgentExecutionError("Both primary and secondary POI types are required")
        transport = entities.transport or "walking"
        time_constraint = entities.time_constraint or 15

        # Step 1: anchor
        trace.step(f"Step 1: Finding nearest {secondary}")
        anchor_result = await self.run_tool(
            AgentTool.FIND_NEAREST_POI,
            trace,
            FindNearestPOIRequest(
                poi_type=secondary, user_location=context.user_location, transport=transport
            ),
        )
        if not anchor_result.success:
            raise AgentExecutionError(f"Could not find nearest {secondary}")
        anchor = anchor_result.data.poi
        anchor_location = anchor.location
        trace.step(f"Found anchor: {anchor.name} at {anchor_result.data.distance}m")

        # Step 2: primary POIs around the anchor, widening the budget
        category = search_category(primary, entities.cuisine)
        strategies = near_poi_strategies(time_constraint)

        async def attempt(strategy: SearchStrategy):
            trace.step(
                f"Step 2: Finding {primary}s within {strategy.time_minutes} minutes "
                f"{strategy.transport} of {anchor.name}"
            )
            result = await self.run_tool(
                AgentTool.FIND_POIS_WITHIN_TIME,
                trace,
                FindPOIsWithinTimeRequest(
                    poi_type=category,
                    user_location=anchor_location,
                    time_minutes=strategy.time_minutes,
                    transport=strategy.transport,
                    cuisine=entities.cuisine,
                    max_results=NEAR_POI_MAX_RESULTS,
                ),
            )
            return result.data if result.success and result.data.count > 0 else None

        found = await first_success(strategies, attempt, label="near-poi search")
        if found is None:
            last = strategies[-1]
            return {
                "anchor_poi": anchor,
                "primary_pois": [],
                "count": 0,
                "message": f"No {primary}s found within {last.time_minutes} minutes "
                f"{last.transport} of {anchor.name}",
            }
        strategy, pois = found
        trace.step(
            f"Found {pois.count} {primary}s using {strategy.transport} for {strategy.time_minutes} minutes"
        )

        # Step 3: travel times from the anchor
        trace.step(f"Step 3: Calculating travel times from {anchor.name} to {pois.count} {primary}s")
        matrix = None
        try:
            matrix = await self.run_tool(
                AgentTool.CALCULATE_MATRIX,
                trace,
                [anchor_location] + [poi.location for poi in pois.pois],
                transport,
                sources=[0],
                metrics=("duration", "distance"),
            )
        except MapServiceError as exc:
            logger.warning("Matrix from %s failed: %s", anchor.name, exc)
            trace.step("Matrix calculation failed, using straight-line distances")

        # Step 4: rank by travel time
        ranked = [
            self._with_anchor_times(poi, i, anchor_location, transport, matrix)
            for i, poi in enumerate(pois.pois)
        ]
        ranked.sort(key=lambda p: p.travel_time_from_anchor)
        trace.step(
            f"Found {len(ranked)} {primary}s, closest is {ranked[0].name} "
            f"({ranked[0].travel_time_from_anchor:g} min away)"
        )
        return {
            "anchor_poi": anchor,
            "primary_pois": ranked,
            "count": len(ranked),
            "isochrone": pois.isochrone,
            "transport": strategy.transport,
            "time_minutes": strategy.time_minutes,
            "strategy": strategy,
        }

    @staticmethod
    def _with_anchor_times(
        poi: POI,
        index: int,
        anchor: Location,
        transport: str,
        matrix: Optional[Dict[str, Any]],
    ) -> POI:
        duration_s = distance_m = None
        if matrix:
            try:
                duration_s = matrix["durations"][0][index + 1]
                distance_m = matrix["distances"][0][index + 1]
            except (KeyError, IndexError, TypeError):
                duration_s = distance_m = None
        if distance_m is None:
            distance_m = distance(anchor, poi.location)
        minutes = duration_s / 60 if duration_s is not None else estimate_travel_time(distance_m, transport)
        return poi.model_copy(
            update={"travel_time_from_anchor": round(minutes), "distance_from_anchor": round(distance_m)}
        )

    async def _find_enroute(self, context: AgentContext, trace: AgentTrace) -> Dict[str, Any]:
        entities = context.entities
        primary, destination = entities.primary_poi, entities.destination
        if not primary or not destination:
            raise AgentExecutionError("Both POI type and destination are required")
        transport = entities.transport or "driving"
        budget = entities.time_constraint or 30
        user = context.user_location
        label = destination.display_name if isinstance(destination, Location) else destination

        # Step 1: destination
        trace.step(f"Step 1: Finding destination: {label}")
        target = await self._resolve_destination(destination, user, trace)
        trace.step(f"Destination: {target.display_name or label}")

        # Step 2: direct route
        trace.step(f"Step 2: Getting route from current location to {target.display_name or label}")
        routed = await self.run_tool(
            AgentTool.GET_DIRECTIONS,
            trace,
            GetRouteRequest(start=user, end=target, transport=transport),
        )
        if not routed.success:
            raise AgentExecutionError("Could not calculate route to destination")
        direct: RouteInfo = routed.data.routes[0]
        trace.step(f"Direct route: {round(direct.duration)} minutes")
        if direct.duration > budget:
            return {
                "message": f"Direct route to {label} takes {round(direct.duration)} minutes, "
                f"which exceeds your {budget} minute limit",
                "destination": target,
                "direct_route": direct,
            }

        # Step 3: candidates around the route midpoint
        trace.step(f"Step 3: Finding {primary}s along route corridor")
        center = midpoint(direct.geometry) or Location(
            lat=(user.lat + target.lat) / 2, lng=(user.lng + target.lng) / 2
        )
        center = center.model_copy(update={"display_name": "Route midpoint"})
        searched = await self.run_tool(
            AgentTool.FIND_POIS_WITHIN_TIME,
            trace,
            FindPOIsWithinTimeRequest(
                poi_type=search_category(primary, entities.cuisine),
                user_location=center,
                time_minutes=MIDPOINT_SEARCH_MINUTES,
                transport=transport,
                cuisine=entities.cuisine,
                max_results=MIDPOINT_MAX_RESULTS,
            ),
        )
        if not searched.success or searched.data.count == 0:
            return {
                "message": f"No {primary}s found along the route to {label}",
                "destination": target,
                "direct_route": direct,
            }
        candidates = searched.data.pois[:MAX_STOPOVER_CANDIDATES]

        # Step 4: stopover optimization
        trace.step(
            f"Step 4: Finding optimal {primary} stopover among {searched.data.count} candidates"
        )
        best = await self._best_stopover(candidates, user, target, transport, trace)
        if best is None:
            trace.step("Optimization failed, returning nearest POIs")
            return {
                "candidate_pois": candidates,
                "stopover_poi": candidates[0],
                "destination": target,
                "direct_route": direct,
                "optimized_route": direct,
                "message": f"Found {searched.data.count} {primary}s along the route",
            }

        poi, route = best
        trace.step(f"Optimal route includes stopover, total time: {round(route.duration)} minutes")
        return {
            "candidate_pois": candidates,
            "stopover_poi": poi,
            "destination": target,
            "direct_route": direct,
            "optimized_route": route,
            "total_time": round(route.duration),
            "time_savings": round(direct.duration - route.duration),
        }

    async def _resolve_destination(self, destination, user: Location, trace: AgentTrace) -> Location:
        if isinstance(destination, Location):
            return destination
        city, state = locality_of(user, self.default_city, self.default_state)
        attempts = geocode_attempts(destination, city, state)
        for text in attempts:
            logger.info("[%s] Trying geocoding: %r", self.name, text)
            result = await self.run_tool(
                AgentTool.GEOCODE_ADDRESS, trace, GeocodeRequest(address=text, max_results=1)
            )
            if result.success:
                return result.data.locations[0]
        raise AgentExecutionError(
            f"Could not find destination: {destination}. Tried: {', '.join(attempts)}"
        )

    async def _best_stopover(
        self,
        candidates: List[POI],
        user: Location,
        destination: Location,
        transport: str,
        trace: AgentTrace,
    ) -> Optional[Tuple[POI, RouteInfo]]:
        optimize = self.tool(AgentTool.OPTIMIZE_ROUTE)
        trace.use(AgentTool.OPTIMIZE_ROUTE)
        vehicle = {
            "id": 1,
            "profile": get_ors_profile(transport),
            "start": user.to_lng_lat(),
            "end": destination.to_lng_lat(),
        }

        async def evaluate(job_id: int, poi: POI) -> Optional[Tuple[POI, RouteInfo]]:
            job = {
                "id": job_id,
                "location": poi.location.to_lng_lat(),
                "service": STOPOVER_SERVICE_SECONDS,
                "priority": STOPOVER_PRIORITY,
            }
            try:
                solution = await optimize([job], [vehicle])
            except MapServiceError as exc:
                logger.warning("Optimization via %s failed: %s", poi.name, exc)
                return None
            routes = solution.get("routes") or []
            if not routes or solution.get("unassigned"):
                return None
            route = routes[0]
            return poi, RouteInfo(
                distance=route.get("distance", 0),
                duration=route.get("duration", 0) / 60,
                geometry=[
                    step["location"] for step in route.get("steps", []) if step.get("location")
                ],
            )

        results = await asyncio.gather(
            *(evaluate(i + 1, poi) for i, poi in enumerate(candidates))
        )
        feasible = [r for r in results if r is not None]
        if not feasible:
            return None
        return min(feasible, key=lambda r: r[1].duration)
