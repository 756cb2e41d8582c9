"""
Request spacing and retry for collector network calls.

Each collector owns one RateLimiter and calls every request through it, so
requests to a source are at least `min_delay` seconds apart. Transient
failures (HTTP 429, 5xx, explicit rate-limit errors) are retried with
exponential backoff by `with_retry`; everything else propagates at once.
"""

import logging
import time
from typing import Callable, Optional, TypeVar

import httpx

from .errors import RateLimitError, SourceAPIError

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_MAX_ATTEMPTS = 3
DEFAULT_BASE_DELAY = 1.0  # seconds


class RateLimiter:
    """
    Minimum-spacing limiter for a single source.

    Not safe for concurrent callers: two threads racing `wait()` on the same
    instance can both pass. Collectors run strictly sequential loops, one
    request in flight at a time, so each collector simply owns one instance.

    Usage:
        limiter = RateLimiter(2.0)
        limiter.wait()   # returns immediately
        limiter.wait()   # sleeps until 2s after the previous wait() returned
    """

    def __init__(self, min_delay: float):
        """
        Args:
            min_delay: Minimum seconds between consecutive requests
        """
        self.min_delay = min_delay
        self._last_request_time: Optional[float] = None

    def wait(self) -> None:
        """Block until at least `min_delay` has passed since the last call returned."""
        if self._last_request_time is not None:
            elapsed = time.monotonic() - self._last_request_time
            required_delay = self.min_delay - elapsed
            if required_delay > 0:
                logger.debug(f"Waiting {required_delay:.2f}s before next request")
                time.sleep(required_delay)

        self._last_request_time = time.monotonic()


def error_status(error: Exception) -> Optional[int]:
    """HTTP status carried by an error, if any."""
    if isinstance(error, httpx.HTTPStatusError):
        return error.response.status_code
    if isinstance(error, SourceAPIError):
        return error.status_code
    return None


def is_retryable_error(error: Exception) -> bool:
    """Check if an error is transient: rate limited or a server-side failure."""
    if isinstance(error, RateLimitError):
        return True

    status = error_status(error)
    if status is not None:
        return status == 429 or status >= 500

    error_str = str(error).lower()
    return "rate limit" in error_str or "too many requests" in error_str


def is_retryable_fetch_error(error: Exception) -> bool:
    """Page fetches also retry dropped connections and timeouts."""
    return isinstance(error, httpx.TransportError) or is_retryable_error(error)


def with_retry(
    operation: Callable[[], T],
    max_attempts: int = DEFAULT_MAX_ATTEMPTS,
    base_delay: float = DEFAULT_BASE_DELAY,
    retry_on: Callable[[Exception], bool] = is_retryable_error,
    label: Optional[str] = None,
) -> T:
    """
    Call `operation` with bounded exponential-backoff retry.

    The delay before retry attempt k (0-indexed) is 2**k * base_delay.

    Args:
        operation: Zero-argument callable performing one network call
        max_attempts: Total attempts, including the first
        base_delay: Backoff base in seconds
        retry_on: Predicate deciding whether an error is worth retrying
        label: Optional description used in log messages

    Returns:
        The operation's result

    Raises:
        Exception: The last error, if it is not retryable or attempts ran out
    """
    for attempt in range(max_attempts):
        try:
            return operation()
        except Exception as e:
            if not retry_on(e) or attempt >= max_attempts - 1:
                raise

            delay = (2 ** attempt) * base_delay
            target = f" for {label}" if label else ""
            logger.warning(
                f"Retry {attempt + 1}/{max_attempts}{target} after {delay:.1f}s ({e})"
            )
            time.sleep(delay)

    # max_attempts < 1
    raise ValueError(f"max_attempts must be at least 1, got {max_attempts}")
