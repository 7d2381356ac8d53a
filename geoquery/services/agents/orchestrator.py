"""
Agent orchestrator: load memory, classify, route to an agent, store memory
"""
import logging
from typing import Optional

from fastapi.concurrency import run_in_threadpool

from geoquery.models.geo import Location
from geoquery.models.memory import MemoryContextSummary, MemoryRecord
from geoquery.models.query import ClassifiedQuery, QueryEntities, needs_clarification
from geoquery.models.request import ConversationContext, OrchestratorRequest
from geoquery.models.response import AgentResult, OrchestratorResponse
from geoquery.services.memory_service import MemoryService
from geoquery.services.nlp.classifier_service import QueryClassifierService

from .base_agent import AgentContext, BaseAgent
from .multi_step_agent import MultiStepQueryAgent
from .simple_agent import SimpleQueryAgent

logger = logging.getLogger(__name__)

CLARIFICATION_MESSAGE = (
    "Query needs clarification. Please be more specific about what you're looking for."
)
FOLLOW_UP_MESSAGE = (
    "Follow-up queries require conversation context. This feature is coming soon!"
)
DIRECTIONS_MESSAGE = (
    "Directions feature is coming soon! Please use the map to navigate to your destination."
)


def error_classification() -> ClassifiedQuery:
    return ClassifiedQuery(
        intent="clarification",
        complexity="simple",
        entities=QueryEntities(),
        confidence=0.0,
        reasoning="Error during orchestration",
    )


class AgentOrchestrator:
    """
    Routes a query through classification to the matching agent

    States: received -> memory-loaded -> classified ->
    {clarify | follow-up | directions | simple | multi-step} -> memory-stored -> responded
    """

    def __init__(
        self,
        classifier: QueryClassifierService,
        simple_agent: SimpleQueryAgent,
        multi_step_agent: MultiStepQueryAgent,
        memory: Optional[MemoryService] = None,
        fallback_location: Optional[Location] = None,
    ):
        self.classifier = classifier
        self.simple_agent = simple_agent
        self.multi_step_agent = multi_step_agent
        self.memory = memory
        self.fallback_location = fallback_location

    async def orchestrate(self, request: OrchestratorRequest) -> OrchestratorResponse:
        try:
            use_memory = request.memory_enabled and self.memory is not None

            memory_context = None
            if use_memory:
                memory_context = await self._load_memory(request.user_id)

            user_location = request.user_location
            if user_location is not None and self.fallback_location is not None:
                user_location = user_location.or_fallback(self.fallback_location)

            conversation = ConversationContext(
                messages=request.conversation_history, user_location=user_location
            )
            outcome = await run_in_threadpool(self.classifier.classify, request.query, conversation)
            classification = outcome.query
            logger.info(
                "Classified %r as %s/%s (confidence %.2f, source %s)",
                request.query,
                classification.intent,
                classification.complexity,
                classification.confidence,
                outcome.source,
            )

            if needs_clarification(classification):
                return OrchestratorResponse(
                    success=False,
                    classification=classification,
                    agent_used="none",
                    error=CLARIFICATION_MESSAGE,
                )
            if classification.intent == "follow-up":
                return self._handle_follow_up(classification)
            if classification.intent == "get-directions":
                return self._handle_get_directions(classification)

            agent = self.select_agent(classification)
            logger.info("Routing to %s", agent.name)
            context = AgentContext(
                user_id=request.user_id,
                user_location=user_location,
                intent=classification.intent,
                entities=classification.entities,
                conversation=conversation,
                memory_context=memory_context,
            )
            result = await agent.execute(request.query, context)

            if use_memory and result.success:
                await self._store_memory(request, classification, agent.name, result, user_location)

            return OrchestratorResponse(
                success=result.success,
                classification=classification,
                agent_used=agent.name,
                result=result,
            )
        except Exception as exc:
            logger.exception("Orchestration failed")
            return OrchestratorResponse(
                success=False,
                classification=error_classification(),
                agent_used="none",
                error=str(exc) or "Unknown error",
            )

    def select_agent(self, classification: ClassifiedQuery) -> BaseAgent:
        if classification.complexity == "multi-step":
            return self.multi_step_agent
        return self.simple_agent

    async def _load_memory(self, user_id: str) -> Optional[MemoryContextSummary]:
        try:
            return await run_in_threadpool(self.memory.get_context, user_id)
        except Exception as exc:
            logger.warning("Failed to load memory context for %s: %s", user_id, exc)
            return None

    async def _store_memory(
        self,
        request: OrchestratorRequest,
        classification: ClassifiedQuery,
        agent_name: str,
        result: AgentResult,
        user_location: Optional[Location],
    ) -> None:
        record = MemoryRecord(
            query=request.query,
            intent=classification.intent,
            agent_used=agent_name,
            primary_poi=classification.entities.primary_poi,
            transport=classification.entities.transport,
            location=user_location,
            summary=result.message or (result.reasoning_steps[-1] if result.reasoning_steps else None),
        )
        try:
            await run_in_threadpool(self.memory.add_memory, request.user_id, record)
        except Exception as exc:
            logger.warning("Failed to store memory for %s: %s", request.user_id, exc)

    @staticmethod
    def _handle_follow_up(classification: ClassifiedQuery) -> OrchestratorResponse:
        # Placeholder until follow-ups resolve the referenced entity from conversation state
        return OrchestratorResponse(
            success=False,
            classification=classification,
            agent_used="FollowUpHandler",
            error=FOLLOW_UP_MESSAGE,
        )

    @staticmethod
    def _handle_get_directions(classification: ClassifiedQuery) -> OrchestratorResponse:
        return OrchestratorResponse(
            success=True,
            classification=classification,
            agent_used="DirectionsHandler",
            result=AgentResult(success=True, data={"message": DIRECTIONS_MESSAGE}),
        )
