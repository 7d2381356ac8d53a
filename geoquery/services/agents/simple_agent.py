"""
Single-step agent: nearest POI, POIs within a time budget, or directions
"""
import logging
from typing import Any, Dict

from geoquery.models.geo import Location
from geoquery.models.response import AgentResult
from geoquery.services.usecases.types import (
    FindNearestPOIRequest,
    FindPOIsWithinTimeRequest,
    GeocodeRequest,
    GetRouteRequest,
)

from .base_agent import AgentContext, AgentExecutionError, AgentTool, AgentTrace, BaseAgent, unwrap

logger = logging.getLogger(__name__)

WITHIN_TIME_MAX_RESULTS = 50


class SimpleQueryAgent(BaseAgent):
    name = "SimpleQueryAgent"
    tools = frozenset(
        {
            AgentTool.FIND_NEAREST_POI,
            AgentTool.FIND_POIS_WITHIN_TIME,
            AgentTool.GEOCODE_ADDRESS,
            AgentTool.GET_DIRECTIONS,
        }
    )

    async def execute(self, query: str, context: AgentContext) -> AgentResult:
        trace = AgentTrace()
        try:
            intent = self.determine_intent(context)
            trace.step(f"Query intent: {intent}")

            if context.user_location is None:
                return self.create_error("User location is required for location queries", trace)

            if intent == "get-directions":
                data = await self._get_directions(context, trace)
            elif intent == "find-within-time":
                data = await self._find_within_time(context, trace)
            else:
                data = await self._find_nearest(context, trace)
            return self.create_success(data, trace)
        except AgentExecutionError as exc:
            return self.create_error(str(exc), trace)
        except Exception as exc:
            logger.exception("[%s] Execution error", self.name)
            return self.create_error(str(exc) or "Simple query failed", trace)

    @staticmethod
    def determine_intent(context: AgentContext) -> str:
        if context.intent == "get-directions":
            return "get-directions"
        if context.entities.time_constraint:
            return "find-within-time"
        return "find-nearest"

    async def _find_nearest(self, context: AgentContext, trace: AgentTrace) -> Dict[str, Any]:
        entities = context.entities
        if not entities.primary_poi:
            raise AgentExecutionError("POI type not specified")
        transport = entities.transport or "walking"

        trace.step(f"Finding nearest {entities.primary_poi}")
        result = await self.run_tool(
            AgentTool.FIND_NEAREST_POI,
            trace,
            FindNearestPOIRequest(
                poi_type=entities.primary_poi,
                user_location=context.user_location,
                transport=transport,
                cuisine=entities.cuisine,
            ),
        )
        found = unwrap(result, "Failed to find nearest POI")
        trace.step(f"Found: {found.poi.name} at {found.distance}m away")
        return {
            "poi": found.poi,
            "distance": found.distance,
            "travel_time": found.travel_time,
            "transport": found.transport,
            "alternative_pois": found.alternative_pois,
            "strategy": found.strategy,
        }

    async def _find_within_time(self, context: AgentContext, trace: AgentTrace) -> Dict[str, Any]:
        entities = context.entities
        if not entities.primary_poi:
            raise AgentExecutionError("POI type not specified")
        transport = entities.transport or "walking"
        minutes = entities.time_constraint or 15

        trace.step(f"Finding {entities.primary_poi}s within {minutes} minutes by {transport}")
        result = await self.run_tool(
            AgentTool.FIND_POIS_WITHIN_TIME,
            trace,
            FindPOIsWithinTimeRequest(
                poi_type=entities.primary_poi,
                user_location=context.user_location,
                time_minutes=minutes,
                transport=transport,
                cuisine=entities.cuisine,
                max_results=WITHIN_TIME_MAX_RESULTS,
            ),
        )
        found = unwrap(result, "Failed to find POIs")
        trace.step(f"Found {found.count} {entities.primary_poi}s")
        return {
            "pois": found.pois,
            "count": found.count,
            "isochrone": found.isochrone,
            "transport": transport,
            "time_minutes": minutes,
        }

    async def _get_directions(self, context: AgentContext, trace: AgentTrace) -> Dict[str, Any]:
        trace.step("Getting directions")
        destination = context.entities.destination
        if destination is None:
            raise AgentExecutionError("Destination not specified")
        if not isinstance(destination, Location):
            geocoded = await self.run_tool(
                AgentTool.GEOCODE_ADDRESS, trace, GeocodeRequest(address=destination, max_results=1)
            )
            destination = unwrap(geocoded, f"Could not find destination: {destination}").locations[0]

        result = await self.run_tool(
            AgentTool.GET_DIRECTIONS,
            trace,
            GetRouteRequest(
                start=context.user_location,
                end=destination,
                transport=context.entities.transport or "driving",
            ),
        )
        route = unwrap(result, "Could not get directions")
        trace.step(f"Got directions with {len(route.routes)} route(s)")
        return {
            "directions": route.routes,
            "best_route_index": route.best_route_index,
            "destination": destination,
        }
