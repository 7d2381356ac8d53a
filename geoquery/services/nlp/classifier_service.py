"""Two-stage query classification: LLM first, rule engine as fallback and override."""
from __future__ import annotations

import logging
from typing import Any, Dict, Optional

from geoquery.models.query import ClassificationOutcome, ClassifiedQuery
from geoquery.models.request import ConversationContext

from .llm_client import LLMClient
from .preprocessor import PreprocessedQuery, QueryPreprocessor
from .prompts import CLASSIFIER_PROMPT, CLASSIFIER_SYSTEM_PROMPT
from .rule_classifier import RuleBasedClassifier
from .validator import ClassificationValidator

logger = logging.getLogger(__name__)

CONTEXT_TURNS = 3
OVERRIDE_CONFIDENCE = 0.9


class QueryClassifierService:
    """Decoupled pipeline: preprocess → LLM (or rules) → validate → override check."""

    def __init__(
        self,
        *,
        preprocessor: Optional[QueryPreprocessor] = None,
        llm_client: Optional[LLMClient] = None,
        rule_classifier: Optional[RuleBasedClassifier] = None,
        validator: Optional[ClassificationValidator] = None,
    ) -> None:
        self._preprocessor = preprocessor or QueryPreprocessor()
        self._llm_client = llm_client or LLMClient()
        self._rule_classifier = rule_classifier or RuleBasedClassifier()
        self._validator = validator or ClassificationValidator()

    def classify(
        self, text: str, context: Optional[ConversationContext] = None
    ) -> ClassificationOutcome:
        preprocessed = self._preprocessor.process(text)

        try:
            query = self._classify_with_llm(preprocessed, context)
        except (RuntimeError, ValueError) as exc:
            logger.warning("LLM classification failed, using rules: %s", exc)
            return ClassificationOutcome(
                source="rule-fallback",
                query=self._classify_with_rules(preprocessed, context),
            )

        reason = self._validator.override_reason(preprocessed, query)
        if reason is None:
            return ClassificationOutcome(source="llm", query=query)

        logger.info("Overriding LLM intent %r for %s query", query.intent, reason)
        override = self._classify_with_rules(preprocessed, context).model_copy(
            update={
                "confidence": OVERRIDE_CONFIDENCE,
                "reasoning": f"Overridden LLM classification with rule-based result for {reason} query",
            }
        )
        return ClassificationOutcome(source="rule-override", query=override)

    def _classify_with_llm(
        self, preprocessed: PreprocessedQuery, context: Optional[ConversationContext]
    ) -> ClassifiedQuery:
        prompt = self.build_prompt(
            preprocessed.normalized_text, context, language=preprocessed.language
        )
        payload = self._llm_client.generate_json(prompt, system=CLASSIFIER_SYSTEM_PROMPT)
        return self._validator.validate(payload, preprocessed)

    def _classify_with_rules(
        self, preprocessed: PreprocessedQuery, context: Optional[ConversationContext]
    ) -> ClassifiedQuery:
        payload: Dict[str, Any] = self._rule_classifier.classify(preprocessed, context)
        return self._validator.validate(payload, preprocessed)

    @staticmethod
    def build_prompt(
        text: str,
        context: Optional[ConversationContext] = None,
        language: Optional[str] = None,
    ) -> str:
        prompt = CLASSIFIER_PROMPT
        if language and language != "unknown":
            prompt += (
                f"\n\n## Query Language\n\n{language} (return category and transport "
                "values in English)"
            )
        if context is not None and context.messages:
            recent = context.messages[-CONTEXT_TURNS:]
            history = "\n".join(
                f"{'User' if msg.role == 'user' else 'Assistant'}: {msg.content}"
                for msg in recent
            )
            prompt += f"\n\n## Previous Conversation\n\n{history}\n"
        prompt += f'\n\n## Current Query\n\n"{text}"'
        return prompt
