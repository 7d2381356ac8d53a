"""
Shared agent plumbing: execution context, the closed set of tools an agent
may call, and helpers that normalize outcomes into AgentResult
"""
import logging
from abc import ABC, abstractmethod
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, FrozenSet, List, Optional

from pydantic import BaseModel

from geoquery.models.geo import Location
from geoquery.models.memory import MemoryContextSummary
from geoquery.models.query import QueryEntities, QueryIntent
from geoquery.models.request import ConversationContext
from geoquery.models.response import AgentResult
from geoquery.services.usecases.types import UseCaseResult

logger = logging.getLogger(__name__)

ToolFn = Callable[..., Awaitable[Any]]


class AgentTool(str, Enum):
    FIND_NEAREST_POI = "find_nearest_poi"
    FIND_POIS_WITHIN_TIME = "find_pois_within_time"
    GEOCODE_ADDRESS = "geocode_address"
    GET_DIRECTIONS = "get_directions"
    CALCULATE_MATRIX = "calculate_matrix"
    OPTIMIZE_ROUTE = "optimize_route"


class AgentExecutionError(Exception):
    """Raised inside an agent; converted to a failed AgentResult at its boundary"""


class AgentContext(BaseModel):
    user_id: str = "anonymous"
    user_location: Optional[Location] = None
    intent: Optional[QueryIntent] = None
    entities: QueryEntities = QueryEntities()
    conversation: Optional[ConversationContext] = None
    memory_context: Optional[MemoryContextSummary] = None


class AgentTrace:
    """Tools invoked and human-readable reasoning, in order"""

    def __init__(self) -> None:
        self.tools_used: List[str] = []
        self.reasoning_steps: List[str] = []

    def step(self, message: str) -> None:
        self.reasoning_steps.append(message)

    def use(self, tool: AgentTool) -> None:
        self.tools_used.append(tool.value)


def unwrap(result: UseCaseResult, fallback: str) -> Any:
    """Data of a successful use case result, else AgentExecutionError"""
    if not result.success:
        message = result.error.message if result.error else fallback
        raise AgentExecutionError(message or fallback)
    return result.data


class BaseAgent(ABC):
    name = "BaseAgent"
    tools: FrozenSet[AgentTool] = frozenset()

    def __init__(self, tool_table: Dict[AgentTool, ToolFn]):
        missing = self.tools - set(tool_table)
        if missing:
            raise ValueError(
                f"{self.name} requires tools: {', '.join(sorted(t.value for t in missing))}"
            )
        self._tools = {tool: tool_table[tool] for tool in self.tools}

    @abstractmethod
    async def execute(self, query: str, context: AgentContext) -> AgentResult:
        """Handle one classified query"""

    def tool(self, tool: AgentTool) -> ToolFn:
        try:
            return self._tools[tool]
        except KeyError:
            raise AgentExecutionError(f"Tool not available to {self.name}: {tool.value}") from None

    async def run_tool(self, tool: AgentTool, trace: AgentTrace, *args: Any, **kwargs: Any) -> Any:
        fn = self.tool(tool)
        trace.use(tool)
        logger.debug("[%s] Executing tool %s", self.name, tool.value)
        return await fn(*args, **kwargs)

    @staticmethod
    def create_success(data: Any, trace: AgentTrace, message: Optional[str] = None) -> AgentResult:
        return AgentResult(
            success=True,
            data=data,
            message=message,
            tools_used=trace.tools_used,
            reasoning_steps=trace.reasoning_steps,
        )

    @staticmethod
    def create_error(error: str, trace: Optional[AgentTrace] = None) -> AgentResult:
        return AgentResult(
            success=False,
            error=error,
            tools_used=trace.tools_used if trace else [],
            reasoning_steps=trace.reasoning_steps if trace else [],
        )
