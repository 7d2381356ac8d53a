"""
Response models for the agent API
"""
from datetime import datetime, timezone
from typing import Any, List, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from .query import ClassificationSource, ClassifiedQuery


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class AgentResult(BaseModel):
    """Normalized outcome of an agent run"""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    success: bool
    data: Optional[Any] = None
    message: Optional[str] = None
    error: Optional[str] = None
    tools_used: List[str] = []  # Trace of tools invoked, in order
    reasoning_steps: List[str] = []


class OrchestratorResponse(BaseModel):
    """Body returned by POST /api/v1/agent"""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    success: bool
    classification: ClassifiedQuery
    agent_used: str
    result: Optional[AgentResult] = None
    error: Optional[str] = None
    timestamp: datetime = Field(default_factory=_utcnow)


class ClassifyResponse(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    source: ClassificationSource
    classification: ClassifiedQuery
    needs_clarification: bool
