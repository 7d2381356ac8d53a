"""LLM adapter speaking the OpenAI chat-completions protocol."""
from __future__ import annotations

import json
import logging
from typing import Any, Dict, Optional

from openai import OpenAI, OpenAIError

from geoquery.config import settings

logger = logging.getLogger(__name__)


class LLMClientError(RuntimeError):
    """The LLM call failed or its reply held no usable JSON object."""


class LLMClient:
    """Thin wrapper around chat completions for any OpenAI-compatible server."""

    def __init__(
        self,
        *,
        model: Optional[str] = None,
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None,
        client: Any = None,
    ) -> None:
        self._model = model or settings.openai_model
        self._temperature = settings.llm_temperature if temperature is None else temperature
        self._max_tokens = max_tokens or settings.llm_max_tokens
        self._client = client

    def _get_client(self) -> Any:
        if self._client is None:
            self._client = self._build_client()
        return self._client

    @staticmethod
    def _build_client() -> Any:
        api_key = settings.openai_api_key
        if not api_key:
            raise LLMClientError("OPENAI_API_KEY is not configured.")
        return OpenAI(
            api_key=api_key,
            base_url=settings.openai_base_url or None,
            timeout=settings.llm_timeout_s,
            max_retries=0,
        )

    def generate(
        self,
        prompt: str,
        *,
        system: Optional[str] = None,
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None,
    ) -> str:
        messages = []
        if system:
            messages.append({"role": "system", "content": system})
        messages.append({"role": "user", "content": prompt})

        try:
            response = self._get_client().chat.completions.create(
                model=self._model,
                messages=messages,
                temperature=self._temperature if temperature is None else temperature,
                max_tokens=max_tokens or self._max_tokens,
            )
        except OpenAIError as exc:
            raise LLMClientError(f"LLM request failed: {exc}") from exc

        return self._extract_text(response)

    def generate_json(self, prompt: str, *, system: Optional[str] = None) -> Dict[str, Any]:
        text = self.generate(prompt, system=system)
        payload = self._safe_json_load(text)
        if payload is None:
            logger.warning("LLM reply held no JSON object: %.120s", text)
            raise LLMClientError("Unable to extract JSON from LLM response")
        return payload

    @staticmethod
    def _extract_text(response: Any) -> str:
        data = LLMClient._response_to_dict(response)
        choices = data.get("choices") or []
        if not choices:
            raise LLMClientError("LLM response has no choices")

        content = (choices[0].get("message") or {}).get("content")
        if isinstance(content, str):
            return content
        if isinstance(content, list):
            parts = []
            for segment in content:
                if isinstance(segment, str):
                    parts.append(segment)
                elif isinstance(segment, dict) and isinstance(segment.get("text"), str):
                    parts.append(segment["text"])
            if parts:
                return "".join(parts)
        raise LLMClientError("LLM response has no text content")

    @staticmethod
    def _response_to_dict(response: Any) -> Dict[str, Any]:
        if isinstance(response, dict):
            return response
        for attr in ("model_dump", "dict", "to_dict"):
            if hasattr(response, attr):
                maybe = getattr(response, attr)()
                if isinstance(maybe, dict):
                    return maybe
        raise LLMClientError("Unexpected response type from OpenAI client")

    @staticmethod
    def _safe_json_load(text: str) -> Optional[Dict[str, Any]]:
        """Parse the reply, falling back to the outermost {...} block."""
        if not isinstance(text, str):
            return None
        candidate = text.strip()
        try:
            loaded = json.loads(candidate)
        except json.JSONDecodeError:
            start = candidate.find("{")
            end = candidate.rfind("}")
            if start == -1 or end == -1 or end <= start:
                return None
            try:
                loaded = json.loads(candidate[start : end + 1])
            except json.JSONDecodeError:
                return None
        if isinstance(loaded, dict):
            return loaded
        return None
