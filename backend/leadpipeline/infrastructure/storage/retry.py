"""
Storage Retry
Exponential backoff around storage calls
"""
import asyncio
import inspect
import logging
from typing import Any, Callable, Optional

from leadpipeline.domain.exceptions import StorageError

logger = logging.getLogger(__name__)

MAX_RETRIES = 3
INITIAL_RETRY_DELAY = 0.5  # seconds
RETRY_BACKOFF_MULTIPLIER = 2


async def with_retry(
    operation: str,
    func: Callable[[], Any],
    max_retries: int = MAX_RETRIES,
    initial_delay: float = INITIAL_RETRY_DELAY,
    backoff_multiplier: float = RETRY_BACKOFF_MULTIPLIER
) -> Any:
    """
    Run a storage call, retrying with exponential backoff.

    Args:
        operation: Name used in logs and in the raised StorageError
        func: Zero-argument callable; may return an awaitable
        max_retries: Total number of tries
        initial_delay: Delay before the second try (seconds)
        backoff_multiplier: Growth factor for each further delay

    Raises:
        StorageError: every try failed
    """
    last_error: Optional[Exception] = None
    for attempt in range(1, max_retries + 1):
        try:
            result = func()
            if inspect.isawaitable(result):
                result = await result
            return result
        except StorageError:
            raise
        except Exception as e:
            last_error = e
            if attempt >= max_retries:
                break
            delay = initial_delay * (backoff_multiplier ** (attempt - 1))
            logger.warning(
                f"Storage operation {operation} failed (attempt {attempt}/{max_retries}), "
                f"retrying in {delay:.2f}s: {e}"
            )
            await asyncio.sleep(delay)

    logger.error(f"Storage operation {operation} failed after {max_retries} attempt(s): {last_error}")
    raise StorageError(f"Storage operation {operation} failed: {last_error}", operation=operation)
