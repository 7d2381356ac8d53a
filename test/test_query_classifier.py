import pytest

from geoquery.config import settings
from geoquery.models.query import needs_clarification
from geoquery.models.request import ConversationContext, ConversationMessage
from geoquery.services.nlp.classifier_service import QueryClassifierService
from geoquery.services.nlp.llm_client import LLMClient, LLMClientError
from geoquery.services.nlp.preprocessor import QueryPreprocessor
from geoquery.services.nlp.rule_classifier import RuleBasedClassifier
from geoquery.services.nlp.validator import ClassificationValidator


class StubLLMClient:
    def __init__(self, payload=None, *, should_raise: bool = False):
        self.payload = payload or {}
        self.should_raise = should_raise
        self.prompts = []

    def generate_json(self, prompt, *, system=None):
        self.prompts.append(prompt)
        if self.should_raise:
            raise LLMClientError("LLM down")
        return self.payload


class StubCompletions:
    def __init__(self, content):
        self.content = content

    def create(self, **kwargs):
        return {"choices": [{"message": {"content": self.content}}]}


class StubOpenAI:
    def __init__(self, content):
        self.chat = type("Chat", (), {"completions": StubCompletions(content)})()


def rules_only() -> QueryClassifierService:
    return QueryClassifierService(llm_client=StubLLMClient(should_raise=True))


def with_llm(payload) -> QueryClassifierService:
    return QueryClassifierService(llm_client=StubLLMClient(payload))


def test_preprocessor_normalizes_quotes_and_whitespace():
    result = QueryPreprocessor().process("  nearest   peet’s  coffee ")
    assert result.normalized_text == "nearest peet's coffee"
    assert result.language == "en"


def test_preprocessor_detects_chinese_language():
    assert QueryPreprocessor().process("附近的咖啡店").language == "zh"


def test_llm_client_extracts_json_embedded_in_prose():
    client = LLMClient(client=StubOpenAI('Sure! {"intent": "find-nearest", "confidence": 0.8} Hope it helps'))
    assert client.generate_json("prompt") == {"intent": "find-nearest", "confidence": 0.8}


def test_llm_client_raises_without_json():
    client = LLMClient(client=StubOpenAI("I cannot help with that"))
    with pytest.raises(LLMClientError):
        client.generate_json("prompt")


def test_missing_api_key_falls_back_to_rules(monkeypatch):
    monkeypatch.setattr(settings, "openai_api_key", "")

    outcome = QueryClassifierService().classify("find the nearest cafe")

    assert outcome.source == "rule-fallback"
    assert outcome.query.intent == "find-nearest"


def test_fallback_find_nearest_cafe():
    outcome = rules_only().classify("find the nearest cafe")

    assert outcome.source == "rule-fallback"
    query = outcome.query
    assert query.intent == "find-nearest"
    assert query.complexity == "simple"
    assert query.entities.primary_poi == "cafe"
    assert query.entities.transport == "walking"
    assert query.confidence == pytest.approx(0.6)


def test_fallback_coffee_near_hospital_keeps_landmark_secondary():
    query = rules_only().classify("find coffee near the nearest hospital").query

    assert query.intent == "find-near-poi"
    assert query.complexity == "multi-step"
    assert query.entities.primary_poi == "cafe"
    assert query.entities.secondary_poi == "hospital"


def test_within_time_walk_scenario():
    query = rules_only().classify("coffee shops within 15 minutes walk").query

    assert query.intent == "find-within-time"
    assert query.complexity == "simple"
    assert query.entities.primary_poi == "cafe"
    assert query.entities.transport == "walking"
    assert query.entities.time_constraint == 15


def test_fallback_enroute_grab_food_downtown():
    query = rules_only().classify("grab food on the way downtown in 30 minutes").query

    assert query.intent == "find-enroute"
    assert query.complexity == "multi-step"
    assert query.entities.primary_poi == "restaurant"
    assert query.entities.destination == "downtown"
    assert query.entities.time_constraint == 30


def test_clarification_cue_needs_clarification():
    query = rules_only().classify("what about something different").query
    assert query.intent == "clarification"
    assert needs_clarification(query)


def test_llm_swap_puts_landmark_in_secondary():
    classifier = with_llm(
        {
            "intent": "find-near-poi",
            "entities": {"primaryPOI": "hospital", "secondaryPOI": "cafe"},
            "confidence": 0.85,
        }
    )
    outcome = classifier.classify("find coffee near the nearest hospital")

    assert outcome.source == "llm"
    assert outcome.query.entities.primary_poi == "cafe"
    assert outcome.query.entities.secondary_poi == "hospital"
    assert outcome.query.intent == "find-near-poi"


def test_llm_secondary_forces_near_poi_intent():
    query = with_llm(
        {
            "intent": "find-nearest",
            "entities": {"primaryPOI": "starbucks", "secondaryPOI": "park"},
            "confidence": 0.7,
        }
    ).classify("starbucks by the park").query

    assert query.intent == "find-near-poi"
    assert query.complexity == "multi-step"
    assert query.entities.primary_poi == "cafe"


def test_llm_brand_and_cuisine_normalization():
    query = with_llm(
        {
            "intent": "find-nearest",
            "entities": {"primaryPOI": "mexican restaurant", "transport": "car"},
            "confidence": 0.9,
        }
    ).classify("closest mexican restaurant by car").query

    assert query.entities.primary_poi == "restaurant"
    assert query.entities.cuisine == "mexican"
    assert query.entities.transport == "driving"

    query = with_llm(
        {"intent": "find-nearest", "entities": {"primaryPOI": "cvs"}, "confidence": 0.9}
    ).classify("nearest cvs").query
    assert query.entities.primary_poi == "pharmacy"


def test_unknown_intent_is_forced_to_clarification():
    query = with_llm({"intent": "order-pizza", "confidence": 0.95}).classify("pizza please").query

    assert query.intent == "clarification"
    assert query.confidence == 0.5


def test_confidence_is_clamped():
    query = with_llm(
        {"intent": "find-nearest", "entities": {"primaryPOI": "cafe"}, "confidence": 7}
    ).classify("nearest cafe").query
    assert query.confidence == 1.0


def test_enroute_cue_overrides_llm_intent():
    outcome = with_llm(
        {"intent": "find-nearest", "entities": {"primaryPOI": "restaurant"}, "confidence": 0.9}
    ).classify("grab food on the way downtown in 30 minutes")

    assert outcome.source == "rule-override"
    assert outcome.query.intent == "find-enroute"
    assert outcome.query.confidence == pytest.approx(0.9)
    assert "enroute" in outcome.query.reasoning


def test_low_confidence_llm_result_needs_clarification():
    outcome = with_llm(
        {"intent": "find-nearest", "entities": {"primaryPOI": "cafe"}, "confidence": 0.3}
    ).classify("find the nearest cafe")

    assert outcome.source == "llm"
    assert needs_clarification(outcome.query)


def test_classification_is_repeatable():
    classifier = rules_only()
    first = classifier.classify("coffee shops within 15 minutes walk").query
    second = classifier.classify("coffee shops within 15 minutes walk").query

    assert (first.intent, first.complexity) == (second.intent, second.complexity)
    assert first.entities == second.entities


def test_prompt_includes_last_three_turns():
    context = ConversationContext(
        messages=[
            ConversationMessage(role="user", content=f"message {i}") for i in range(5)
        ]
    )
    prompt = QueryClassifierService.build_prompt("nearest cafe", context)

    assert "message 0" not in prompt
    assert "User: message 4" in prompt
    assert prompt.rstrip().endswith('"nearest cafe"')


def test_rule_classifier_prefers_longest_terms():
    mentions = RuleBasedClassifier().find_category_mentions("coffee shop next to the gas station")
    assert [m.category for m in mentions] == ["cafe", "gas_station"]


def test_validator_moves_unknown_categories_to_keywords():
    preprocessed = QueryPreprocessor().process("nearest llama farm")
    query = ClassificationValidator().validate(
        {"intent": "find-nearest", "entities": {"primaryPOI": "llama farm"}, "confidence": 0.8},
        preprocessed,
    )
    assert query.entities.primary_poi is None
    assert "llama farm" in query.entities.keywords


@pytest.mark.parametrize(
    "text, minutes",
    [
        ("cafes within 1.5 hours drive", 90),
        ("coffee within 1 hr 30 min walk", 90),
        ("parks within 2 hours", 120),
        ("pharmacy within 20 minutes", 20),
    ],
)
def test_rule_stage_reads_hour_and_minute_phrases(text, minutes):
    assert rules_only().classify(text).query.entities.time_constraint == minutes


def test_enroute_intent_keeps_llm_primary_and_secondary_order():
    payload = {
        "intent": "find-enroute",
        "entities": {"primaryPOI": "hospital", "secondaryPOI": "cafe", "destination": "downtown"},
        "confidence": 0.9,
    }
    text = QueryPreprocessor().process("grab coffee near the hospital on the way downtown")

    enroute = ClassificationValidator().validate(payload, text)
    assert enroute.entities.primary_poi == "hospital"
    assert enroute.entities.secondary_poi == "cafe"

    near_poi = ClassificationValidator().validate(dict(payload, intent="find-near-poi"), text)
    assert near_poi.entities.primary_poi == "cafe"
    assert near_poi.entities.secondary_poi == "hospital"


def test_destination_with_enroute_cue_forces_enroute_on_llm_path():
    outcome = with_llm(
        {
            "intent": "find-nearest",
            "entities": {"primaryPOI": "restaurant", "destination": "downtown"},
            "confidence": 0.85,
        }
    ).classify("grab a bite before going downtown")

    assert outcome.source == "llm"
    assert outcome.query.intent == "find-enroute"
    assert outcome.query.complexity == "multi-step"
    assert outcome.query.entities.destination == "downtown"


def test_prompt_carries_detected_language():
    llm = StubLLMClient({"intent": "find-nearest", "entities": {"primaryPOI": "cafe"}, "confidence": 0.9})
    classifier = QueryClassifierService(llm_client=llm)

    classifier.classify("附近的咖啡店")
    classifier.classify("nearest cafe")

    assert "## Query Language\n\nzh" in llm.prompts[0]
    assert "## Query Language\n\nen" in llm.prompts[1]
    assert "## Query Language" not in QueryClassifierService.build_prompt("12345")
