"""
Error classification and bounded retry for generative backend calls.
"""

import concurrent.futures
import logging
import time
from dataclasses import dataclass, field
from typing import Callable, Optional, TypeVar

import httpx

from dua_vault.errors import (
    AiError,
    AiRateLimited,
    AiRequestError,
    AiServiceUnavailable,
    AiTimeout,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")

RATE_LIMIT_STATUSES = {429}
TIMEOUT_STATUSES = {408, 504}
UNAVAILABLE_STATUSES = {500, 502, 503, 529}

_RATE_LIMIT_MARKERS = ("too many requests", "rate limit", "resource_exhausted", "quota exceeded")
_OVERLOAD_MARKERS = ("overloaded", "unavailable", "try again later", "deadline exceeded")


def _status_code(exc: Exception) -> Optional[int]:
    for candidate in (
        getattr(exc, "status_code", None),
        getattr(exc, "code", None),
        getattr(getattr(exc, "response", None), "status_code", None),
    ):
        if isinstance(candidate, int):
            return candidate
    return None


def classify_error(exc: Exception) -> AiError:
    """
    Map any backend exception onto the AI error taxonomy.

    429 and "too many requests" are rate limiting and never retried;
    overload, 5xx and timeouts are transient.
    """
    if isinstance(exc, AiError):
        return exc

    message = str(exc)
    if isinstance(exc, (TimeoutError, concurrent.futures.TimeoutError, httpx.TimeoutException)):
        return AiTimeout(f"Backend call timed out: {message}")

    status = _status_code(exc)
    lowered = message.lower()

    if status in RATE_LIMIT_STATUSES or any(m in lowered for m in _RATE_LIMIT_MARKERS):
        return AiRateLimited(message, status_code=status)
    if status in TIMEOUT_STATUSES:
        return AiTimeout(message, status_code=status)
    if status in UNAVAILABLE_STATUSES:
        return AiServiceUnavailable(message, status_code=status)
    if status is None and isinstance(exc, (ConnectionError, httpx.TransportError)):
        return AiServiceUnavailable(f"Network error: {message}")
    if status is None and any(m in lowered for m in _OVERLOAD_MARKERS):
        return AiServiceUnavailable(message)

    # Anthropic SDK connection errors carry no status
    try:
        import anthropic
        if isinstance(exc, anthropic.APITimeoutError):
            return AiTimeout(message)
        if isinstance(exc, anthropic.APIConnectionError):
            return AiServiceUnavailable(message)
    except ImportError:
        pass

    return AiRequestError(message or type(exc).__name__, status_code=status)


@dataclass
class RetryPolicy:
    """Retry transient errors with linear backoff: delay = backoff * attempt."""
    max_attempts: int = 3
    backoff: float = 1.0
    sleep: Callable[[float], None] = field(default=time.sleep, repr=False)

    def __post_init__(self):
        if self.max_attempts < 1:
            raise ValueError(f"max_attempts must be >= 1, got {self.max_attempts}")

    def run(self, func: Callable[[], T], label: str = "backend call") -> tuple[T, int]:
        """
        Call ``func`` until it succeeds or a non-retriable error occurs.

        Returns:
            Tuple of (value, attempts made).

        Raises:
            AiError: the classified last error, with ``attempts`` set.
        """
        last_error: Optional[AiError] = None
        for attempt in range(1, self.max_attempts + 1):
            try:
                return func(), attempt
            except Exception as e:
                error = classify_error(e)
                error.attempts = attempt
                last_error = error
                if not error.retriable:
                    logger.error(
                        "%s failed with non-retryable %s: %s",
                        label,
                        type(error).__name__,
                        error,
                    )
                    if error is e:
                        raise
                    raise error from e
                if attempt < self.max_attempts:
                    delay = self.backoff * attempt
                    logger.warning(
                        "Attempt %d/%d for %s failed: %s. Retrying in %.1fs",
                        attempt,
                        self.max_attempts,
                        label,
                        error,
                        delay,
                    )
                    if delay > 0:
                        self.sleep(delay)

        logger.error("%s failed after %d attempts: %s", label, self.max_attempts, last_error)
        raise last_error  # type: ignore[misc]
