"""
Resilient HTTP transport for provider calls.

One ResilientTransport per provider client:
- At most `llm_max_in_flight` requests in flight per instance (default 1).
- 429 / 529 and transport exceptions are retried with exponential backoff
  (1s, 2s, 4s for 4 attempts); every other non-success status returns at once.
- Always returns an Ok or Err. This is the only place a transient failure is
  turned into a terminal result.

Headers (including SigV4 signatures) are built per attempt, so concurrent
calls never share header state and retries never reuse a stale timestamp.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, Optional

import httpx

from ..config import Settings, get_settings
from ..schemas.analysis import Err, Ok, ProviderRequest, ProviderResult
from ..schemas.base import ErrorKind

logger = logging.getLogger(__name__)

RETRYABLE_STATUSES = (429, 529)

ResponseParser = Callable[[Dict[str, Any]], str]
SleepFunc = Callable[[float], Awaitable[None]]


@dataclass
class RetryState:
    """Attempt bookkeeping for one execute() call."""

    max_attempts: int = 4
    base_delay: float = 1.0
    attempt: int = 0
    delay: float = 0.0

    def start_attempt(self) -> int:
        self.attempt += 1
        return self.attempt

    @property
    def exhausted(self) -> bool:
        return self.attempt >= self.max_attempts

    def next_delay(self) -> float:
        """Backoff before the next attempt: base * 2^(attempts made - 1)."""
        self.delay = self.base_delay * (2 ** (self.attempt - 1))
        return self.delay


def classify_status(status_code: int) -> ErrorKind:
    if status_code in RETRYABLE_STATUSES:
        return ErrorKind.RATE_LIMITED
    if status_code in (401, 403):
        return ErrorKind.AUTH_FAILURE
    if status_code == 400:
        return ErrorKind.BAD_REQUEST
    return ErrorKind.API_ERROR


def _raise_if_cancelled(cancel_event: Optional[asyncio.Event]) -> None:
    if cancel_event is not None and cancel_event.is_set():
        raise asyncio.CancelledError()


class ResilientTransport:
    """Retrying, concurrency-gated executor for one provider client."""

    def __init__(
        self,
        provider_label: str,
        settings: Optional[Settings] = None,
        client: Optional[httpx.AsyncClient] = None,
        sleep: Optional[SleepFunc] = None,
    ):
        self.settings = settings or get_settings()
        self.provider_label = provider_label
        self.max_attempts = max(1, self.settings.llm_max_attempts)
        self.base_delay = self.settings.llm_retry_base_delay
        self._client = client
        self._owns_client = client is None
        self._sleep = sleep or asyncio.sleep
        self._max_in_flight = max(1, self.settings.llm_max_in_flight)
        self._gate: Optional[asyncio.Semaphore] = None

    def _get_gate(self) -> asyncio.Semaphore:
        # Created lazily so it binds to the running event loop
        if self._gate is None:
            self._gate = asyncio.Semaphore(self._max_in_flight)
        return self._gate

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self.settings.http_timeout_seconds)
        return self._client

    async def aclose(self) -> None:
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None

    async def execute(
        self,
        request: ProviderRequest,
        parser: ResponseParser,
        provider_label: Optional[str] = None,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> ProviderResult:
        """Send `request`, retrying transient failures, and parse the body with `parser`."""
        label = provider_label or self.provider_label
        state = RetryState(max_attempts=self.max_attempts, base_delay=self.base_delay)

        while True:
            _raise_if_cancelled(cancel_event)
            attempt = state.start_attempt()

            async with self._get_gate():
                result, retryable = await self._attempt(request, parser, label, attempt)

            if isinstance(result, Ok):
                if attempt > 1:
                    logger.info(f"{label}: succeeded on attempt {attempt}/{state.max_attempts}")
                return result

            if not retryable:
                logger.warning(f"{label}: {result.kind.value} (status {result.status_code}), not retrying")
                return result

            if state.exhausted:
                logger.warning(f"{label}: giving up after {attempt} attempts ({result.kind.value})")
                return result

            delay = state.next_delay()
            logger.warning(
                f"{label}: attempt {attempt}/{state.max_attempts} failed "
                f"({result.status_code or result.detail}), retrying in {delay:.1f}s"
            )
            _raise_if_cancelled(cancel_event)
            await self._sleep(delay)

    async def _attempt(
        self,
        request: ProviderRequest,
        parser: ResponseParser,
        label: str,
        attempt: int,
    ):
        """One HTTP round trip. Returns (result, retryable)."""
        headers = request.build_headers()
        content = request.content if request.body is not None else None
        logger.debug(f"{label}: attempt {attempt} {request.method} {request.url}")

        try:
            response = await self._get_client().request(
                request.method, request.url, content=content, headers=headers
            )
        except httpx.HTTPError as e:
            detail = str(e) or type(e).__name__
            logger.debug(f"{label}: attempt {attempt} transport error: {type(e).__name__}: {detail}")
            return Err(ErrorKind.TRANSPORT_FAILURE, label, detail=detail, attempts=attempt), True

        status = response.status_code
        logger.debug(f"{label}: attempt {attempt} -> HTTP {status}")

        if 200 <= status < 300:
            return self._parse(response, parser, label, attempt), False

        kind = classify_status(status)
        err = Err(kind, label, detail=response.text[:500], status_code=status, attempts=attempt)
        return err, kind == ErrorKind.RATE_LIMITED

    @staticmethod
    def _parse(response: httpx.Response, parser: ResponseParser, label: str, attempt: int) -> ProviderResult:
        try:
            text = parser(response.json())
        except (ValueError, KeyError, IndexError, TypeError) as e:
            logger.warning(f"{label}: could not parse response: {type(e).__name__}: {e}")
            return Err(
                ErrorKind.PARSE_FAILURE, label,
                detail=f"{type(e).__name__}: {e}", status_code=response.status_code, attempts=attempt,
            )

        if not isinstance(text, str) or not text.strip():
            return Err(
                ErrorKind.PARSE_FAILURE, label,
                detail="empty response", status_code=response.status_code, attempts=attempt,
            )

        logger.info(f"{label}: got {len(text)} chars response")
        return Ok(text=text, provider=label)
