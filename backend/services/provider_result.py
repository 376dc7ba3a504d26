"""Typed results for external provider calls and the shared retry loop.

Provider adapters never raise for expected failures; they return one of
``Ok``, ``RetryableError`` or ``FatalError`` and ``call_with_retry`` decides
what to do with it.
"""
import logging
import time
from dataclasses import dataclass
from typing import Any, Callable, Generic, Optional, TypeVar, Union

from config import PROVIDER_MAX_RETRIES, PROVIDER_RETRY_BASE_DELAY

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class Ok(Generic[T]):
    """Successful provider response."""
    value: T


@dataclass(frozen=True)
class RetryableError:
    """Transient failure: rate limiting, 5xx or timeout."""
    reason: str
    code: str = "TRANSIENT_ERROR"
    status_code: Optional[int] = None


@dataclass(frozen=True)
class FatalError:
    """Non-transient failure, or a transient one whose retries ran out."""
    reason: str
    code: str = "API_ERROR"
    status_code: Optional[int] = None


ProviderResult = Union[Ok, RetryableError, FatalError]


def is_transient_status(status_code: Optional[int]) -> bool:
    """HTTP 429 and any 5xx are retryable."""
    if status_code is None:
        return False
    return status_code == 429 or status_code >= 500


def call_with_retry(
    call: Callable[[], ProviderResult],
    max_attempts: int = PROVIDER_MAX_RETRIES,
    base_delay: float = PROVIDER_RETRY_BASE_DELAY,
    sleep: Optional[Callable[[float], Any]] = None,
    operation: str = "provider call",
) -> ProviderResult:
    """
    Run a provider call with linear backoff on retryable results.

    The delay after attempt ``n`` is ``base_delay * n``; no delay follows the
    final attempt.

    Args:
        call: Zero-argument callable returning a ProviderResult
        max_attempts: Total attempts, including the first one
        base_delay: Backoff unit in seconds
        sleep: Sleep function, defaults to time.sleep
        operation: Label used in log messages

    Returns:
        The first Ok or FatalError, or the last RetryableError once attempts
        are exhausted
    """
    if max_attempts < 1:
        raise ValueError("max_attempts must be at least 1")

    result: ProviderResult = FatalError(reason=f"{operation} was not attempted")

    for attempt in range(1, max_attempts + 1):
        result = call()

        if isinstance(result, (Ok, FatalError)):
            return result

        if attempt < max_attempts:
            delay = base_delay * attempt
            logger.warning(
                f"Transient error on {operation} (attempt {attempt}/{max_attempts}): "
                f"{result.reason}. Retrying in {delay:.1f}s..."
            )
            (sleep or time.sleep)(delay)

    logger.error(f"{operation} failed after {max_attempts} attempts: {result.reason}")
    return result
