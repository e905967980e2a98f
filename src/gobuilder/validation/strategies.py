"""
Simplified error handling strategies.

Only a plain retry loop is provided; it is used for idempotent dashboard
queries where a transient network failure should not cost a whole cycle.
"""

import logging
import time
from typing import Callable, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar('T')


def simple_retry(
    func: Callable[[], T],
    max_attempts: int = 3,
    delay: float = 1.0,
    context: str = "operation"
) -> T:
    """
    Simple retry mechanism for basic operations.

    Args:
        func: Function to retry
        max_attempts: Maximum number of attempts
        delay: Delay between attempts in seconds
        context: Context description for error messages

    Returns:
        Result from func if successful

    Raises:
        Exception: Last exception if all attempts fail
    """
    last_exception = None

    for attempt in range(max(1, max_attempts)):
        try:
            result = func()
            if attempt > 0:
                logger.info(f"Operation '{context}' succeeded on attempt {attempt + 1}")
            return result
        except Exception as e:
            last_exception = e
            if attempt < max_attempts - 1:
                logger.debug(f"Attempt {attempt + 1} failed for {context}: {e}")
                time.sleep(delay)
            else:
                logger.error(f"All {max_attempts} attempts failed for {context}: {e}")

    raise last_exception or Exception(f"All attempts failed for {context}")

