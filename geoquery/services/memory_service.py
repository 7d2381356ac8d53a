"""
Conversation memory stored per user in MongoDB. Falls back to no-op mode
when MongoDB is unreachable or memory is disabled.
"""
import logging
from collections import Counter
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from pymongo import DESCENDING, MongoClient
from pymongo.errors import PyMongoError

from geoquery.config import settings
from geoquery.models.geo import Location
from geoquery.models.memory import MemoryContextSummary, MemoryRecord

logger = logging.getLogger(__name__)

CONTEXT_WINDOW = 20
RECENT_QUERIES = 5
RECENT_LOCATIONS = 5


class MemoryService:
    """Best-effort memory store; every call degrades to a no-op on failure"""

    def __init__(
        self,
        mongo_uri: Optional[str] = None,
        database_name: Optional[str] = None,
        collection_name: Optional[str] = None,
        enabled: Optional[bool] = None,
        collection: Any = None,
    ):
        self.mongo_uri = mongo_uri or settings.mongo_uri
        self.database_name = database_name or settings.mongo_db_name
        self.collection_name = collection_name or settings.mongo_memory_collection
        self.enabled = settings.memory_enabled if enabled is None else enabled

        self.client = None
        self.collection = collection
        self.mongodb_available = collection is not None

        if self.enabled and self.collection is None:
            try:
                self.client = MongoClient(self.mongo_uri, serverSelectionTimeoutMS=2000)
                self.client.server_info()
                self.collection = self.client[self.database_name][self.collection_name]
                self.mongodb_available = True
                self._init_collection()
                logger.info("MongoDB connection established for conversation memory")
            except PyMongoError as exc:
                logger.warning("MongoDB not available, memory disabled: %s", exc)
                self.mongodb_available = False

    def _init_collection(self) -> None:
        """Create indexes that support per-user recency lookups."""
        try:
            self.collection.create_index([("user_id", 1), ("timestamp", DESCENDING)])
        except PyMongoError as exc:
            logger.warning("Error initializing memory collection: %s", exc)

    def is_available(self) -> bool:
        return self.enabled and self.mongodb_available

    def add_memory(self, user_id: str, record: MemoryRecord) -> bool:
        """Store one answered query; returns False when nothing was stored."""
        if not self.is_available():
            logger.debug("Memory received but not stored (MongoDB unavailable)")
            return False

        timestamp = record.timestamp or datetime.now(timezone.utc)
        document = record.model_dump(exclude={"timestamp"})
        document.update({"user_id": user_id, "timestamp": timestamp})
        try:
            self.collection.insert_one(document)
            return True
        except PyMongoError as exc:
            logger.warning("Error storing memory in MongoDB: %s", exc)
            return False

    def get_context(self, user_id: str) -> MemoryContextSummary:
        """Summarize a user's recent queries, locations and habits."""
        if not self.is_available():
            return MemoryContextSummary(user_id=user_id)

        try:
            documents = list(
                self.collection.find(
                    {"user_id": user_id},
                    sort=[("timestamp", DESCENDING)],
                    limit=CONTEXT_WINDOW,
                )
            )
        except PyMongoError as exc:
            logger.warning("Error loading memory context for %s: %s", user_id, exc)
            return MemoryContextSummary(user_id=user_id)

        return self.summarize(user_id, documents)

    @staticmethod
    def summarize(user_id: str, documents: List[Dict[str, Any]]) -> MemoryContextSummary:
        locations = []
        for doc in documents:
            if doc.get("location") and len(locations) < RECENT_LOCATIONS:
                locations.append(Location(**doc["location"]))
        intents = Counter(doc["intent"] for doc in documents if doc.get("intent"))
        transports = Counter(doc["transport"] for doc in documents if doc.get("transport"))
        return MemoryContextSummary(
            user_id=user_id,
            recent_queries=[doc["query"] for doc in documents[:RECENT_QUERIES] if doc.get("query")],
            location_history=locations,
            frequent_intents=dict(intents),
            preferred_transport=transports.most_common(1)[0][0] if transports else None,
            available=True,
        )
