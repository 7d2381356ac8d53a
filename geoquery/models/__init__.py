from .geo import POI, Bounds, Isochrone, Location, RouteInfo, RouteStep
from .memory import MemoryContextSummary, MemoryRecord
from .query import (
    ClassificationOutcome,
    ClassifiedQuery,
    QueryEntities,
    needs_clarification,
)
from .request import (
    ClassifyRequest,
    ConversationContext,
    ConversationMessage,
    OrchestratorRequest,
)
from .response import AgentResult, ClassifyResponse, OrchestratorResponse

__all__ = [
    "AgentResult",
    "Bounds",
    "ClassificationOutcome",
    "ClassifiedQuery",
    "ClassifyRequest",
    "ClassifyResponse",
    "ConversationContext",
    "ConversationMessage",
    "Isochrone",
    "Location",
    "MemoryContextSummary",
    "MemoryRecord",
    "OrchestratorRequest",
    "OrchestratorResponse",
    "POI",
    "QueryEntities",
    "RouteInfo",
    "RouteStep",
    "needs_clarification",
]
