"""Text cleanup applied before either classification stage."""
from __future__ import annotations

import re
from dataclasses import dataclass


@dataclass(frozen=True)
class PreprocessedQuery:
    """Normalized view of the user's free-text query."""

    original_text: str
    normalized_text: str
    language: str

    @property
    def lowered(self) -> str:
        return self.normalized_text.lower()


class QueryPreprocessor:
    """Whitespace/quote cleanup and a coarse script-based language hint."""

    _LANGUAGE_PATTERNS = {
        "zh": re.compile(r"[\u4e00-\u9fff]"),
        "ja": re.compile(r"[\u3040-\u30ff]"),
        "ko": re.compile(r"[\uac00-\ud7af]"),
        "es": re.compile(r"[¿¡ñ]", re.IGNORECASE),
        "ru": re.compile(r"[\u0400-\u04ff]"),
    }

    # Curly quotes break brand lookups such as "peet's"
    _QUOTES = str.maketrans({"\u2018": "'", "\u2019": "'", "\u201c": '"', "\u201d": '"'})

    def process(self, query: str) -> PreprocessedQuery:
        cleaned = self._normalize_whitespace((query or "").translate(self._QUOTES))
        return PreprocessedQuery(
            original_text=query,
            normalized_text=cleaned,
            language=self._detect_language(cleaned),
        )

    @staticmethod
    def _normalize_whitespace(text: str) -> str:
        return " ".join(text.strip().split())

    def _detect_language(self, text: str) -> str:
        for code, pattern in self._LANGUAGE_PATTERNS.items():
            if pattern.search(text):
                return code
        if re.search(r"[A-Za-z]", text):
            return "en"
        return "unknown"
