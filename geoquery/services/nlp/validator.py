"""Validation and repair of raw classifier payloads into ClassifiedQuery."""
from __future__ import annotations

import logging
import re
from typing import Any, Dict, List, Optional, Union

from geoquery.config.poi_types import (
    BRAND_TO_CATEGORY,
    CUISINE_TO_CATEGORY,
    CUISINE_TOKENS,
    FOOD_WORDS,
    get_keywords_for_category,
    is_valid_category,
    normalize_category,
)
from geoquery.models.geo import Location
from geoquery.models.query import (
    QUERY_INTENTS,
    TRANSPORT_MODES,
    ClassifiedQuery,
    QueryEntities,
    complexity_for,
)

from .preprocessor import PreprocessedQuery
from .rule_classifier import CLARIFICATION_RE, ENROUTE_RE

logger = logging.getLogger(__name__)

NEAR_MARKER_RE = re.compile(r"\b(near|close to|closest to|nearest to|around|by)\b")
QUICK_BITE_CUES = ("quick bite", "grab bite", "grab food", "bite on the way")
ENROUTE_CUES = (
    "on the way",
    "on my way",
    "along the way",
    "before going",
    "enroute",
    "en route",
    "grab",
    "stop",
)

_TRANSPORT_ALIASES = {
    "walk": "walking",
    "foot": "walking",
    "drive": "driving",
    "car": "driving",
    "bike": "cycling",
    "bicycle": "cycling",
    "cycle": "cycling",
    "transit": "public_transport",
    "bus": "public_transport",
    "public transport": "public_transport",
}

# Payload keys accepted from either camelCase (LLM) or snake_case producers
_ENTITY_KEYS = {
    "primaryPOI": "primary_poi",
    "secondaryPOI": "secondary_poi",
    "timeConstraint": "time_constraint",
}


class ClassificationValidator:
    """Apply the ordered post-processing rules to either stage's output."""

    def validate(self, payload: Dict[str, Any], preprocessed: PreprocessedQuery) -> ClassifiedQuery:
        text = preprocessed.lowered
        intent = payload.get("intent")
        confidence = self._confidence(payload.get("confidence"))
        entities = self._coerce_entities(payload.get("entities"))

        if intent not in QUERY_INTENTS:
            logger.info("Unknown intent %r, forcing clarification", intent)
            intent = "clarification"
            confidence = min(confidence, 0.5)

        self._extract_embedded_cuisine(entities)

        cuisine = entities.get("cuisine")
        if cuisine and not is_valid_category(entities.get("primary_poi") or ""):
            mapped = CUISINE_TO_CATEGORY.get(cuisine)
            if mapped:
                entities["primary_poi"] = mapped

        primary = entities.get("primary_poi")
        if primary and primary in BRAND_TO_CATEGORY:
            entities["primary_poi"] = BRAND_TO_CATEGORY[primary]

        if any(cue in text for cue in QUICK_BITE_CUES):
            entities["primary_poi"] = "restaurant"

        secondary = entities.get("secondary_poi")
        if secondary and secondary in BRAND_TO_CATEGORY:
            entities["secondary_poi"] = BRAND_TO_CATEGORY[secondary]

        if entities.get("primary_poi") and entities.get("secondary_poi") and intent != "find-enroute":
            self._swap_if_reversed(text, entities)

        primary = entities.get("primary_poi")
        if primary in FOOD_WORDS:
            entities["primary_poi"] = "restaurant"
        elif primary and entities.get("cuisine") and (primary == "place" or "restaurant" in primary):
            entities["primary_poi"] = "restaurant"

        has_destination = bool(entities.get("destination"))
        if has_destination and entities.get("primary_poi") and any(cue in text for cue in ENROUTE_CUES):
            intent = "find-enroute"

        if entities.get("secondary_poi"):
            intent = "find-near-poi"

        entities["primary_poi"] = self._to_category(entities.get("primary_poi"), entities)
        entities["secondary_poi"] = self._to_category(entities.get("secondary_poi"), entities)
        if not entities.get("transport"):
            entities["transport"] = "walking"

        return ClassifiedQuery(
            intent=intent,
            complexity=complexity_for(intent),
            entities=QueryEntities(**entities),
            requires_context=bool(payload.get("requiresContext", payload.get("requires_context", False)))
            or intent == "follow-up",
            confidence=max(0.0, min(1.0, confidence)),
            reasoning=str(payload.get("reasoning") or ""),
        )

    @staticmethod
    def override_reason(preprocessed: PreprocessedQuery, query: ClassifiedQuery) -> Optional[str]:
        """Name the cue the classification contradicts, if any."""
        text = preprocessed.lowered
        if ENROUTE_RE.search(text) and query.intent != "find-enroute":
            return "enroute"
        if CLARIFICATION_RE.search(text) and query.intent != "clarification":
            return "clarification"
        return None

    def _swap_if_reversed(self, text: str, entities: Dict[str, Any]) -> None:
        """Best-effort: the category named before the locative marker is primary."""
        marker = NEAR_MARKER_RE.search(text)
        if marker is None:
            return
        near_idx = marker.start()
        primary_pos = self._term_position(text, entities["primary_poi"])
        secondary_pos = self._term_position(text, entities["secondary_poi"])
        if primary_pos > near_idx and secondary_pos < near_idx:
            logger.info(
                "Swapping primary %r and secondary %r",
                entities["primary_poi"],
                entities["secondary_poi"],
            )
            entities["primary_poi"], entities["secondary_poi"] = (
                entities["secondary_poi"],
                entities["primary_poi"],
            )

    @staticmethod
    def _term_position(text: str, value: str) -> int:
        terms = [value]
        category = normalize_category(value)
        if category:
            terms.extend(get_keywords_for_category(category))
        positions = []
        for term in terms:
            match = re.search(rf"\b{re.escape(term)}", text)
            if match:
                positions.append(match.start())
        return min(positions) if positions else -1

    @staticmethod
    def _extract_embedded_cuisine(entities: Dict[str, Any]) -> None:
        """Split "mexican restaurant" into cuisine=mexican, primary=restaurant"""
        primary = entities.get("primary_poi")
        if not primary:
            return
        for cuisine in CUISINE_TOKENS:
            if cuisine in primary:
                entities.setdefault("cuisine", cuisine)
                entities["primary_poi"] = re.sub(cuisine, "", primary).strip() or None
                return

    @staticmethod
    def _to_category(value: Optional[str], entities: Dict[str, Any]) -> Optional[str]:
        if not value:
            return None
        category = normalize_category(value)
        if category is None:
            logger.info("Dropping unknown POI category %r", value)
            keywords: List[str] = list(entities.get("keywords") or [])
            if value not in keywords:
                keywords.append(value)
            entities["keywords"] = sorted(keywords)
        return category

    def _coerce_entities(self, raw: Any) -> Dict[str, Any]:
        if not isinstance(raw, dict):
            return {}
        data: Dict[str, Any] = {}
        for key, value in raw.items():
            data[_ENTITY_KEYS.get(key, key)] = value

        entities: Dict[str, Any] = {}
        for key in ("primary_poi", "secondary_poi", "cuisine"):
            value = data.get(key)
            if isinstance(value, str) and value.strip() and value.strip().lower() != "none":
                entities[key] = value.strip().lower()

        transport = self._transport(data.get("transport"))
        if transport:
            entities["transport"] = transport

        minutes = self._positive_int_or_none(data.get("time_constraint"))
        if minutes:
            entities["time_constraint"] = minutes

        destination = self._destination(data.get("destination"))
        if destination:
            entities["destination"] = destination

        keywords = data.get("keywords")
        if isinstance(keywords, list):
            entities["keywords"] = sorted({str(k).strip().lower() for k in keywords if str(k).strip()})
        return entities

    @staticmethod
    def _transport(value: Any) -> Optional[str]:
        if not isinstance(value, str):
            return None
        key = value.strip().lower().replace("-", "_")
        if key in TRANSPORT_MODES:
            return key
        return _TRANSPORT_ALIASES.get(key.replace("_", " "))

    @staticmethod
    def _positive_int_or_none(value: Any) -> Optional[int]:
        if isinstance(value, str):
            match = re.search(r"\d+", value)
            value = match.group(0) if match else None
        try:
            if value is None:
                return None
            num = int(float(value))
            return num if num > 0 else None
        except (TypeError, ValueError):
            return None

    @staticmethod
    def _destination(value: Any) -> Optional[Union[Location, str]]:
        if isinstance(value, str):
            return value.strip() or None
        if isinstance(value, dict) and "lat" in value and "lng" in value:
            try:
                return Location.model_validate(value)
            except ValueError:
                return None
        return None

    @staticmethod
    def _confidence(value: Any) -> float:
        try:
            return float(value)
        except (TypeError, ValueError):
            return 0.5
