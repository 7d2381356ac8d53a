"""
Conversation memory records persisted per user
"""
from datetime import datetime
from typing import Dict, List, Optional

from pydantic import BaseModel

from .geo import Location


class MemoryRecord(BaseModel):
    """One answered query"""
    query: str
    intent: str
    agent_used: str
    primary_poi: Optional[str] = None
    transport: Optional[str] = None
    location: Optional[Location] = None
    summary: Optional[str] = None
    timestamp: Optional[datetime] = None


class MemoryContextSummary(BaseModel):
    """What the orchestrator knows about a user before classifying"""
    user_id: str
    recent_queries: List[str] = []
    location_history: List[Location] = []
    frequent_intents: Dict[str, int] = {}
    preferred_transport: Optional[str] = None
    available: bool = False
