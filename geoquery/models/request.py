from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

from .geo import Location
from .query import ClassifiedQuery


class ConversationMessage(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    role: Literal["user", "assistant"]
    content: str


class ConversationContext(BaseModel):
    """Prior turns and the last classified query for follow-ups"""
    messages: List[ConversationMessage] = []
    last_query: Optional[ClassifiedQuery] = None
    user_location: Optional[Location] = None


class OrchestratorRequest(BaseModel):
    """Body of POST /api/v1/agent (camelCase on the wire)"""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    query: str
    user_id: str = "anonymous"
    user_location: Optional[Location] = None
    conversation_history: List[ConversationMessage] = []
    memory_enabled: bool = True


class ClassifyRequest(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    query: str
    conversation_history: List[ConversationMessage] = []
