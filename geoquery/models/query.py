"""
Structured interpretation of a free-text place query
"""
from typing import List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field

from .geo import Location

QueryIntent = Literal[
    "find-nearest",
    "find-within-time",
    "find-near-poi",
    "find-enroute",
    "get-directions",
    "follow-up",
    "clarification",
]
QueryComplexity = Literal["simple", "multi-step"]
TransportMode = Literal["walking", "driving", "cycling", "public_transport"]
ClassificationSource = Literal["llm", "rule-fallback", "rule-override"]

QUERY_INTENTS = (
    "find-nearest",
    "find-within-time",
    "find-near-poi",
    "find-enroute",
    "get-directions",
    "follow-up",
    "clarification",
)
MULTI_STEP_INTENTS = ("find-near-poi", "find-enroute")
TRANSPORT_MODES = ("walking", "driving", "cycling", "public_transport")


def complexity_for(intent: str) -> QueryComplexity:
    return "multi-step" if intent in MULTI_STEP_INTENTS else "simple"


class QueryEntities(BaseModel):
    """Entities extracted from the query"""
    model_config = ConfigDict(frozen=True)

    primary_poi: Optional[str] = None
    secondary_poi: Optional[str] = None
    transport: Optional[TransportMode] = None
    time_constraint: Optional[int] = None  # minutes
    destination: Optional[Union[Location, str]] = None
    cuisine: Optional[str] = None
    keywords: List[str] = []


class ClassifiedQuery(BaseModel):
    """Classifier output; built once per query and never mutated"""
    model_config = ConfigDict(frozen=True)

    intent: QueryIntent
    complexity: QueryComplexity
    entities: QueryEntities = QueryEntities()
    requires_context: bool = False
    confidence: float = Field(ge=0.0, le=1.0)
    reasoning: str = ""


class ClassificationOutcome(BaseModel):
    """Classified query tagged with the stage that produced it"""
    model_config = ConfigDict(frozen=True)

    source: ClassificationSource
    query: ClassifiedQuery


def needs_clarification(query: ClassifiedQuery) -> bool:
    return query.intent == "clarification" or query.confidence < 0.5
