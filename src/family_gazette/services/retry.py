"""Shared retry policy for transient backend failures."""

import asyncio
import logging
import random
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import TypeVar

import httpx

from family_gazette.errors import PipelineError, PipelineTimeoutError, TransportError

_RETRYABLE_STATUS_CODES = frozenset({429})
_SERVER_ERROR = 500

_logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass
class RetryPolicy:
    """Exponential backoff used by every network path of the pipeline.

    Attempt ``n`` (starting at zero) waits ``base_delay_seconds * 2**n`` plus a
    random jitter of up to ``jitter_seconds`` before the next try. Only
    transient failures are retried: transport errors, timeouts, HTTP 5xx and
    429 responses. Everything else propagates untouched on the first attempt.
    """

    max_retries: int = 3
    base_delay_seconds: float = 1.0
    jitter_seconds: float = 0.0
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep

    def delay_for(self, attempt: int) -> float:
        """Return the backoff delay before retrying after ``attempt``."""
        delay = self.base_delay_seconds * (2**attempt)
        if self.jitter_seconds > 0:
            delay += random.uniform(0, self.jitter_seconds)  # noqa: S311
        return delay

    async def call(self, func: Callable[[], Awaitable[T]], *, action: str) -> T:
        """Call an async function, retrying transient failures."""
        attempt = 0
        while True:
            try:
                return await func()
            except Exception as exc:
                if not is_transient(exc):
                    raise
                _logger.warning(
                    "%s failed (attempt %s/%s, status=%s): %s",
                    action,
                    attempt + 1,
                    self.max_retries + 1,
                    _status_code_from_exception(exc),
                    exc,
                )
                if attempt >= self.max_retries:
                    raise _exhausted(exc, action, attempt + 1) from exc
                await self.sleep(self.delay_for(attempt))
                attempt += 1


def is_transient(exc: BaseException) -> bool:
    """Return whether an exception is worth retrying."""
    if isinstance(exc, httpx.TransportError):
        return True
    if isinstance(exc, httpx.HTTPStatusError):
        status_code = exc.response.status_code
        return status_code >= _SERVER_ERROR or status_code in _RETRYABLE_STATUS_CODES
    return False


def backend_message(exc: httpx.HTTPStatusError) -> str:
    """Extract the backend's error message from a rejected response."""
    try:
        payload = exc.response.json()
    except ValueError:
        payload = None
    if isinstance(payload, dict) and isinstance(payload.get("message"), str):
        return payload["message"]
    return f"Backend responded with status {exc.response.status_code}"


def _exhausted(exc: Exception, action: str, attempts: int) -> PipelineError:
    details: dict[str, object] = {
        "action": action,
        "attempts": attempts,
        "status_code": _status_code_from_exception(exc),
    }
    if isinstance(exc, httpx.TimeoutException):
        return PipelineTimeoutError(
            code="TIMEOUT",
            message=f"{action} timed out: {exc}",
            details=details,
        )
    if isinstance(exc, httpx.HTTPStatusError):
        message = backend_message(exc)
    else:
        message = str(exc) or exc.__class__.__name__
    return TransportError(code="TRANSPORT_ERROR", message=message, details=details)


def _status_code_from_exception(exc: Exception) -> str:
    """Extract HTTP status code from an exception, if available."""
    response = getattr(exc, "response", None)
    status_code = getattr(response, "status_code", None)
    if isinstance(status_code, int):
        return str(status_code)
    return "n/a"
