"""Retry with backoff for unreliable page interactions."""

import asyncio
from typing import Awaitable, Callable, Optional, TypeVar

from playwright.async_api import Error as PlaywrightError
from playwright.async_api import TimeoutError as PlaywrightTimeoutError

from sysco_scrape.exceptions import ExtractionError
from sysco_scrape.logging_config import get_logger

__all__ = [
    "retry_async",
    "should_retry_error",
    "backoff_delay",
    "RETRYABLE_MARKERS",
]

logger = get_logger("retry")

T = TypeVar("T")

# Matched against the exception type name and message
RETRYABLE_MARKERS = (
    "TimeoutError",
    "ProtocolError",
    "Protocol error",
    "NetworkError",
    "net::ERR_",
    "ECONNRESET",
    "ENOTFOUND",
    "ECONNREFUSED",
    "Target closed",
    "Failed to extract details",
)


def should_retry_error(error: BaseException) -> bool:
    """Decide whether a failure is worth another attempt.

    Timeouts, protocol and network failures are transient. A product page
    without a SKU is also retried, since it is most often a page that had not
    finished rendering.
    """
    if isinstance(error, (PlaywrightTimeoutError, asyncio.TimeoutError, ConnectionError, ExtractionError)):
        return True

    name = type(error).__name__
    message = str(error)
    if isinstance(error, PlaywrightError) and error.message:
        message = error.message

    return any(marker in name or marker in message for marker in RETRYABLE_MARKERS)


def backoff_delay(attempt: int, base_delay: float, exponential_backoff: bool = True) -> float:
    """Delay before the attempt following ``attempt`` (1-based)."""
    if exponential_backoff:
        return base_delay * (2 ** (attempt - 1))
    return base_delay


async def retry_async(
    operation: Callable[[], Awaitable[T]],
    max_retries: int = 3,
    base_delay: float = 1.0,
    exponential_backoff: bool = True,
    retry_condition: Optional[Callable[[BaseException], bool]] = None,
    description: str = "operation",
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
) -> T:
    """Run ``operation`` until it succeeds, at most ``max_retries + 1`` times.

    Args:
        operation: Zero-argument coroutine function to call
        max_retries: Retries after the first attempt
        base_delay: Seconds to wait before the first retry
        exponential_backoff: Double the wait after every failed attempt
        retry_condition: Predicate deciding if an error is retryable
            (default: retry every error)
        description: Used in log messages
        sleep: Awaitable sleep, replaceable in tests

    Returns:
        The result of the first successful attempt

    Raises:
        The last error, once it is not retryable or attempts are exhausted
    """
    total_attempts = max_retries + 1

    for attempt in range(1, total_attempts + 1):
        try:
            result = await operation()
        except Exception as e:
            logger.warning(f"Attempt {attempt}/{total_attempts} of {description} failed: {e}")

            if retry_condition is not None and not retry_condition(e):
                logger.error(f"{description} failed with non-retryable error: {e}")
                raise
            if attempt >= total_attempts:
                logger.error(f"All {total_attempts} attempts of {description} failed. Last error: {e}")
                raise

            delay = backoff_delay(attempt, base_delay, exponential_backoff)
            logger.info(f"Waiting {delay:.1f}s before attempt {attempt + 1}...")
            await sleep(delay)
            continue

        if attempt > 1:
            logger.info(f"{description} succeeded after {attempt} attempts")
        return result

    # total_attempts is always >= 1, so the loop returns or raises
    raise RuntimeError(f"retry_async called with max_retries={max_retries}")
