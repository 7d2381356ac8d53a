"""Shared HTTP plumbing for the map clients: timeouts, quota and retries."""
from __future__ import annotations

import asyncio
import logging
from typing import Any, Dict, Optional, Type

import httpx

from geoquery.config import settings

from .api_counter import APICounter
from .errors import MapServiceError

logger = logging.getLogger(__name__)


def is_retryable_status(status_code: int) -> bool:
    return status_code == 429 or status_code >= 500


class MapHTTPClient:
    """Issue JSON requests with a per-call timeout and exponential backoff.

    Only 429, 5xx and transport-level failures are retried; every other
    error is raised immediately as ``error_cls``.
    """

    def __init__(
        self,
        *,
        name: str,
        error_cls: Type[MapServiceError],
        timeout_s: float,
        counter: Optional[APICounter] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        headers: Optional[Dict[str, str]] = None,
        max_retries: Optional[int] = None,
        retry_delay_s: Optional[float] = None,
    ) -> None:
        self.name = name
        self.error_cls = error_cls
        self.timeout_s = timeout_s
        self.counter = counter
        self.transport = transport
        self.headers = headers or {}
        self.max_retries = settings.map_max_retries if max_retries is None else max_retries
        self.retry_delay_s = (
            settings.map_retry_delay_s if retry_delay_s is None else retry_delay_s
        )

    async def request(
        self,
        method: str,
        url: str,
        *,
        params: Optional[Dict[str, Any]] = None,
        json: Any = None,
        data: Optional[Dict[str, str]] = None,
    ) -> Any:
        attempt = 0
        delay = self.retry_delay_s
        while True:
            try:
                return await self._send(method, url, params=params, json=json, data=data)
            except MapServiceError as exc:
                if not exc.retryable or attempt >= self.max_retries:
                    raise
                attempt += 1
                logger.warning(
                    "%s request failed (attempt %d/%d), retrying in %.1fs: %s",
                    self.name,
                    attempt,
                    self.max_retries,
                    delay,
                    exc,
                )
                await asyncio.sleep(delay)
                delay *= 2

    async def _send(
        self,
        method: str,
        url: str,
        *,
        params: Optional[Dict[str, Any]],
        json: Any,
        data: Optional[Dict[str, str]],
    ) -> Any:
        if self.counter is not None:
            self.counter.check()

        try:
            async with httpx.AsyncClient(
                transport=self.transport, timeout=self.timeout_s, headers=self.headers
            ) as client:
                response = await client.request(
                    method, url, params=params, json=json, data=data
                )
        except httpx.TimeoutException as exc:
            raise self.error_cls(f"{self.name} request timed out", retryable=True) from exc
        except httpx.HTTPError as exc:
            raise self.error_cls(f"{self.name} request failed: {exc}", retryable=True) from exc

        if self.counter is not None:
            self.counter.record_call()

        if response.status_code >= 400:
            raise self.error_cls(
                f"{self.name} API error: {response.status_code}{self._error_detail(response)}",
                status_code=response.status_code,
                retryable=is_retryable_status(response.status_code),
                details=response.text[:500],
            )

        try:
            return response.json()
        except ValueError as exc:
            raise self.error_cls(f"{self.name} returned invalid JSON") from exc

    @staticmethod
    def _error_detail(response: httpx.Response) -> str:
        try:
            payload = response.json()
        except ValueError:
            return ""
        if isinstance(payload, dict):
            error = payload.get("error")
            if isinstance(error, dict) and error.get("message"):
                return f" - {error['message']}"
            if isinstance(error, str):
                return f" - {error}"
        return ""
