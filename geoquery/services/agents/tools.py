"""Default tool table: use cases and routing collaborator calls by AgentTool"""
from typing import Dict

from geoquery.services.map.map_service import RoutingService
from geoquery.services.usecases import UseCases

from .base_agent import AgentTool, ToolFn


def build_tool_table(use_cases: UseCases, routing: RoutingService) -> Dict[AgentTool, ToolFn]:
    return {
        AgentTool.FIND_NEAREST_POI: use_cases.find_nearest_poi.execute,
        AgentTool.FIND_POIS_WITHIN_TIME: use_cases.find_pois_within_time.execute,
        AgentTool.GEOCODE_ADDRESS: use_cases.geocode.execute,
        AgentTool.GET_DIRECTIONS: use_cases.get_route.execute,
        AgentTool.CALCULATE_MATRIX: routing.get_matrix,
        AgentTool.OPTIMIZE_ROUTE: routing.optimize,
    }
