import pytest

from conftest import HOUSTON
from geoquery.models.geo import Location
from geoquery.models.query import ClassificationOutcome, ClassifiedQuery, QueryEntities, complexity_for
from geoquery.models.request import OrchestratorRequest
from geoquery.models.response import AgentResult
from geoquery.services.agents import AgentOrchestrator
from geoquery.services.agents.orchestrator import (
    CLARIFICATION_MESSAGE,
    DIRECTIONS_MESSAGE,
    FOLLOW_UP_MESSAGE,
)


def classified(intent, confidence=0.9, **entities):
    return ClassifiedQuery(
        intent=intent,
        complexity=complexity_for(intent),
        entities=QueryEntities(**entities),
        confidence=confidence,
    )


class FakeClassifier:
    def __init__(self, query=None, error=None):
        self.query = query
        self.error = error
        self.contexts = []

    def classify(self, text, context=None):
        self.contexts.append(context)
        if self.error:
            raise self.error
        return ClassificationOutcome(source="llm", query=self.query)


class FakeAgent:
    def __init__(self, name, result=None):
        self.name = name
        self.result = result or AgentResult(success=True, data={}, reasoning_steps=["Found: Bean"])
        self.contexts = []

    async def execute(self, query, context):
        self.contexts.append(context)
        return self.result


class FakeMemory:
    def __init__(self, fail_load=False, fail_store=False):
        self.fail_load = fail_load
        self.fail_store = fail_store
        self.stored = []

    def get_context(self, user_id):
        if self.fail_load:
            raise RuntimeError("mongo down")
        return None

    def add_memory(self, user_id, record):
        if self.fail_store:
            raise RuntimeError("mongo down")
        self.stored.append((user_id, record))
        return True


def build(query=None, memory=None, error=None, simple_result=None, fallback=None):
    simple = FakeAgent("SimpleQueryAgent", simple_result)
    multi = FakeAgent("MultiStepQueryAgent")
    orchestrator = AgentOrchestrator(
        classifier=FakeClassifier(query, error),
        simple_agent=simple,
        multi_step_agent=multi,
        memory=memory,
        fallback_location=fallback,
    )
    return orchestrator, simple, multi


def request(query="nearest cafe", **kwargs):
    kwargs.setdefault("user_location", HOUSTON)
    return OrchestratorRequest(query=query, user_id="u1", **kwargs)


@pytest.mark.asyncio
async def test_low_confidence_asks_for_clarification_without_running_agents():
    orchestrator, simple, multi = build(classified("find-nearest", confidence=0.3, primary_poi="cafe"))

    response = await orchestrator.orchestrate(request())

    assert not response.success
    assert response.agent_used == "none"
    assert response.error == CLARIFICATION_MESSAGE
    assert simple.contexts == [] and multi.contexts == []


@pytest.mark.asyncio
async def test_routes_by_complexity():
    orchestrator, simple, multi = build(classified("find-near-poi", primary_poi="cafe", secondary_poi="park"))

    response = await orchestrator.orchestrate(request("coffee near the park"))

    assert response.success
    assert response.agent_used == "MultiStepQueryAgent"
    assert simple.contexts == []
    context = multi.contexts[0]
    assert context.user_id == "u1"
    assert context.intent == "find-near-poi"
    assert context.entities.secondary_poi == "park"


@pytest.mark.asyncio
async def test_follow_up_and_directions_placeholders():
    orchestrator, simple, _ = build(classified("follow-up"))
    response = await orchestrator.orchestrate(request("what about the second one"))
    assert not response.success
    assert response.agent_used == "FollowUpHandler"
    assert response.error == FOLLOW_UP_MESSAGE

    orchestrator, simple, _ = build(classified("get-directions", destination="downtown"))
    response = await orchestrator.orchestrate(request("directions downtown"))
    assert response.success
    assert response.agent_used == "DirectionsHandler"
    assert response.result.data == {"message": DIRECTIONS_MESSAGE}
    assert simple.contexts == []


@pytest.mark.asyncio
async def test_unset_location_uses_fallback():
    fallback = Location(lat=29.76, lng=-95.37, display_name="Houston, TX")
    orchestrator, simple, _ = build(classified("find-nearest", primary_poi="cafe"), fallback=fallback)

    await orchestrator.orchestrate(request(user_location=Location(lat=0, lng=0)))

    assert simple.contexts[0].user_location == fallback


@pytest.mark.asyncio
async def test_memory_stored_only_on_success():
    memory = FakeMemory()
    orchestrator, _, _ = build(classified("find-nearest", primary_poi="cafe", transport="walking"), memory=memory)

    await orchestrator.orchestrate(request())

    user_id, record = memory.stored[0]
    assert user_id == "u1"
    assert record.intent == "find-nearest"
    assert record.agent_used == "SimpleQueryAgent"
    assert record.primary_poi == "cafe"
    assert record.summary == "Found: Bean"

    memory = FakeMemory()
    orchestrator, _, _ = build(
        classified("find-nearest", primary_poi="cafe"),
        memory=memory,
        simple_result=AgentResult(success=False, error="No cafe found"),
    )
    response = await orchestrator.orchestrate(request())
    assert not response.success
    assert response.result.error == "No cafe found"
    assert memory.stored == []


@pytest.mark.asyncio
async def test_memory_disabled_per_request():
    memory = FakeMemory()
    orchestrator, _, _ = build(classified("find-nearest", primary_poi="cafe"), memory=memory)

    await orchestrator.orchestrate(request(memory_enabled=False))

    assert memory.stored == []


@pytest.mark.asyncio
async def test_memory_failures_do_not_fail_the_query():
    memory = FakeMemory(fail_load=True, fail_store=True)
    orchestrator, simple, _ = build(classified("find-nearest", primary_poi="cafe"), memory=memory)

    response = await orchestrator.orchestrate(request())

    assert response.success
    assert simple.contexts[0].memory_context is None


@pytest.mark.asyncio
async def test_unexpected_error_returns_error_classification():
    orchestrator, _, _ = build(error=RuntimeError("classifier exploded"))

    response = await orchestrator.orchestrate(request())

    assert not response.success
    assert response.agent_used == "none"
    assert response.error == "classifier exploded"
    assert response.classification.intent == "clarification"
    assert response.classification.confidence == 0.0
