"""Webhook client that stores hardware events, with bounded retry."""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from typing import Any

import httpx
from loguru import logger
from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
    wait_incrementing,
)
from tenacity.wait import wait_base

from gymrelay.core.errors import PersistenceError

_BODY_PREVIEW = 500


def backoff_wait(mode: str, base_delay: float) -> wait_base:
    """Delay before retry n (1-based): linear n*base, exponential base*2**(n-1)."""
    if mode == "exponential":
        return wait_exponential(multiplier=base_delay, min=0)
    return wait_incrementing(start=base_delay, increment=base_delay)


class PersistenceClient:
    """POSTs event records to the external store. Uses tenacity for retries.

    log_event() never raises for delivery problems: it returns False after
    the last attempt fails and logs the loss as critical.
    """

    def __init__(
        self,
        url: str,
        *,
        secret: str = "",
        max_retries: int = 3,
        timeout: float = 5.0,
        base_delay: float = 1.0,
        backoff: str = "linear",
        client: httpx.AsyncClient | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self._url = url
        self._secret = secret
        self._max_retries = max_retries
        self._timeout = timeout
        self._wait = backoff_wait(backoff, base_delay)
        self._client = client
        self._sleep = sleep

    async def aclose(self) -> None:
        if self._client is not None:
            await self._client.aclose()

    async def log_event(self, payload: dict[str, Any]) -> bool:
        """Submit one event record. True once any attempt gets a 2xx."""
        body = {**payload, "secret": self._secret}
        if self._client is not None:
            return await self._submit(self._client, body)
        async with httpx.AsyncClient(timeout=self._timeout) as client:
            return await self._submit(client, body)

    async def _submit(self, client: httpx.AsyncClient, body: dict[str, Any]) -> bool:
        retrying = AsyncRetrying(
            stop=stop_after_attempt(self._max_retries),
            wait=self._wait,
            retry=retry_if_exception_type(PersistenceError),
            before_sleep=self._log_retry,
            sleep=self._sleep,
            reraise=True,
        )
        try:
            async for attempt in retrying:
                with attempt:
                    await self._post(client, body, attempt.retry_state.attempt_number)
        except PersistenceError as exc:
            logger.critical(
                "Persistence failed after {} attempts for {} event (gym {}): {}",
                self._max_retries,
                body.get("type"),
                body.get("gymId"),
                exc.message,
            )
            return False
        return True

    async def _post(self, client: httpx.AsyncClient, body: dict[str, Any], attempt: int) -> None:
        # httpx timeouts are per phase; the attempt as a whole gets one deadline
        try:
            async with asyncio.timeout(self._timeout):
                resp = await client.post(self._url, json=body, timeout=self._timeout)
        except (TimeoutError, httpx.TimeoutException) as exc:
            raise PersistenceError(
                f"attempt {attempt}: timed out after {self._timeout}s",
                original_error=exc,
            ) from exc
        except httpx.HTTPError as exc:
            raise PersistenceError(
                f"attempt {attempt}: transport error: {exc}",
                original_error=exc,
            ) from exc

        if not resp.is_success:
            preview = resp.text[:_BODY_PREVIEW] if resp.content else ""
            raise PersistenceError(
                f"attempt {attempt}: HTTP {resp.status_code} {preview}".rstrip(),
                status_code=resp.status_code,
                body=preview,
            )
        logger.debug("Persisted {} event for gym {} (attempt {})", body.get("type"), body.get("gymId"), attempt)

    def _log_retry(self, retry_state: RetryCallState) -> None:
        exc = retry_state.outcome.exception() if retry_state.outcome else None
        delay = retry_state.next_action.sleep if retry_state.next_action else 0
        logger.warning(
            "Persistence attempt {}/{} failed: {}; retrying in {}s",
            retry_state.attempt_number,
            self._max_retries,
            exc,
            delay,
        )
