"""Deterministic keyword/regex classifier.

Used when the LLM stage fails and as the trusted override when the LLM
contradicts an explicit enroute or clarification cue. Produces the same raw
payload shape as the LLM so both go through the same validator.
"""
from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from geoquery.config.poi_types import CUISINE_TOKENS, build_keyword_index
from geoquery.models.request import ConversationContext

from .preprocessor import PreprocessedQuery

RULE_CONFIDENCE = 0.6

CLARIFICATION_RE = re.compile(
    r"\b(how about|what about|try|instead|change|switch|different|other)\b"
)
ENROUTE_RE = re.compile(
    r"\b(on the way|on my way|along the way|before going|enroute|en route)\b"
    r"|(grab|quick|eat|coffee|bite|food).*\bon\b.*\bway\b"
)
NEAREST_RE = re.compile(r"\b(nearest|closest)\b")
WITHIN_RE = re.compile(r"\bwithin\b|\bin\b.*\b(minutes?|mins?)\b")
NEAR_RE = re.compile(r"\b(near|close to|around)\b")
NEAR_ME_RE = re.compile(r"\b(near|close to|around) (me|here|my location)\b|\bnearby\b")
LOCATIVE_RE = re.compile(r"\b(near|close to|closest to|nearest to|next to|around|by)\b")
DIRECTIONS_RE = re.compile(
    r"\b(directions|route|how to get|navigate|way to|path to|show me the way|take me to)\b"
)
FOLLOW_UP_RE = re.compile(r"\b(more|details|that|this|it|yes|give me|show me)\b")

TIME_RE = re.compile(r"(?<![\d.])(\d+)\s*(?:min|minute)")
HOUR_RE = re.compile(r"(?<![\d.])(\d+(?:\.\d+)?)\s*(?:hours?|hrs?)\b")

DESTINATION_RE = re.compile(
    r"\b(?:way to|going to|heading to|route to|directions to|get to|take me to|drive to|walk to)"
    r"\s+(?:the\s+)?(.+?)(?:\s+(?:in|within|under)\s+\d+.*)?[?.!]*$"
)
KNOWN_DESTINATIONS = (
    (re.compile(r"\b(downtown|city center|center)\b"), "downtown"),
    (re.compile(r"\bairport\b"), "airport"),
    (re.compile(r"\b(movie|theater|cinema)\b"), "movie theater"),
)

SEARCH_INTENTS = ("find-nearest", "find-within-time", "find-near-poi", "find-enroute")


@dataclass(frozen=True)
class CategoryMention:
    position: int
    term: str
    category: str


class RuleBasedClassifier:
    """Keyword and regex matching over the lowered query text."""

    def __init__(self) -> None:
        index = build_keyword_index()
        # Longest terms claim their span first ("coffee shop" before "shop")
        self._terms = sorted(index.items(), key=lambda item: (-len(item[0]), item[0]))
        self._patterns = [
            (re.compile(rf"\b{re.escape(term)}(?:e?s)?\b"), term, category)
            for term, category in self._terms
        ]

    def classify(
        self, preprocessed: PreprocessedQuery, context: Optional[ConversationContext] = None
    ) -> Dict[str, Any]:
        text = preprocessed.lowered
        mentions = self.find_category_mentions(text)
        entities: Dict[str, Any] = {}

        transport = self._extract_transport(text)
        if transport:
            entities["transport"] = transport
        minutes = self._extract_minutes(text)
        if minutes:
            entities["timeConstraint"] = minutes
        cuisine = next((c for c in CUISINE_TOKENS if re.search(rf"\b{c}\b", text)), None)
        if cuisine:
            entities["cuisine"] = cuisine

        primary, secondary = self._split_primary_secondary(text, mentions)
        if primary:
            entities["primaryPOI"] = primary

        destination = self._extract_destination(text)
        if destination:
            entities["destination"] = destination

        intent = self._classify_intent(text, context, has_landmark=secondary is not None)
        if intent == "find-near-poi" and secondary:
            entities["secondaryPOI"] = secondary
        if intent in SEARCH_INTENTS and not primary:
            intent = "clarification"

        keywords = sorted({m.term for m in mentions})
        if keywords:
            entities["keywords"] = keywords

        return {
            "intent": intent,
            "entities": entities,
            "requiresContext": intent == "follow-up",
            "confidence": RULE_CONFIDENCE,
            "reasoning": "Fallback rule-based classification",
        }

    def find_category_mentions(self, text: str) -> List[CategoryMention]:
        taken = [False] * len(text)
        mentions: List[CategoryMention] = []
        for pattern, term, category in self._patterns:
            for match in pattern.finditer(text):
                start, end = match.span()
                if any(taken[start:end]):
                    continue
                for i in range(start, end):
                    taken[i] = True
                mentions.append(CategoryMention(start, term, category))
        mentions.sort(key=lambda m: m.position)
        return mentions

    @staticmethod
    def _split_primary_secondary(text: str, mentions: List[CategoryMention]):
        """First category is what the user wants; a category after a locative
        marker is the landmark."""
        if not mentions:
            return None, None
        primary = mentions[0]
        if NEAR_ME_RE.search(text):
            return primary.category, None
        for marker in LOCATIVE_RE.finditer(text):
            if marker.start() <= primary.position:
                continue
            landmark = next(
                (
                    m
                    for m in mentions
                    if m.position > marker.start() and m.category != primary.category
                ),
                None,
            )
            if landmark is not None:
                return primary.category, landmark.category
            break
        return primary.category, None

    @staticmethod
    def _classify_intent(
        text: str, context: Optional[ConversationContext], *, has_landmark: bool
    ) -> str:
        if CLARIFICATION_RE.search(text):
            return "clarification"
        if ENROUTE_RE.search(text):
            return "find-enroute"
        if has_landmark:
            return "find-near-poi"
        if NEAREST_RE.search(text) or NEAR_ME_RE.search(text):
            return "find-nearest"
        if WITHIN_RE.search(text):
            return "find-within-time"
        if NEAR_RE.search(text):
            return "find-near-poi"
        if DIRECTIONS_RE.search(text):
            return "get-directions"
        if context is not None and context.last_query is not None and FOLLOW_UP_RE.search(text):
            return "follow-up"
        return "clarification"

    @staticmethod
    def _extract_transport(text: str) -> Optional[str]:
        if "walk" in text:
            return "walking"
        if "driv" in text:
            return "driving"
        if "cycl" in text or "bike" in text:
            return "cycling"
        if re.search(r"\b(bus|train|transit|subway|metro)\b", text):
            return "public_transport"
        return None

    @staticmethod
    def _extract_minutes(text: str) -> Optional[int]:
        """Total minutes from hour and minute phrases, e.g. 1.5 hours or 1 hr 30 min"""
        total = 0
        hours = HOUR_RE.search(text)
        if hours:
            total += round(float(hours.group(1)) * 60)
        minutes = TIME_RE.search(text)
        if minutes:
            total += int(minutes.group(1))
        return total or None

    @staticmethod
    def _extract_destination(text: str) -> Optional[str]:
        match = DESTINATION_RE.search(text)
        if match:
            destination = match.group(1).strip(" ,")
            if destination and destination not in ("me", "here"):
                return destination
        for pattern, name in KNOWN_DESTINATIONS:
            if pattern.search(text):
                return name
        return None
