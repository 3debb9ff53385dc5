"""Resilience utilities for the lifecycle service.

Standard retry policies for connections that may not be ready yet when the
service starts (database containers, scale-to-zero backends).

Mutations are never retried automatically: a rejected write is surfaced to the
caller, who reloads and re-attempts.
"""

import logging
from typing import Callable, TypeVar

from tenacity import (
    retry,
    stop_after_attempt,
    wait_exponential,
    before_sleep_log,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")


# Standard retry policy for service startup connections
# - Wait 2^x * 1 seconds between retries (2s, 4s, 8s, 16s, 32s)
# - Stop after 5 attempts
# - Re-raise the exception if all retries fail
service_startup_retry = retry(
    stop=stop_after_attempt(5),
    wait=wait_exponential(multiplier=1, min=2, max=32),
    before_sleep=before_sleep_log(logger, logging.WARNING),
    reraise=True,
)


def create_custom_retry(
    max_attempts: int = 5,
    min_wait: int = 2,
    max_wait: int = 32,
    multiplier: int = 1,
) -> Callable[[Callable[..., T]], Callable[..., T]]:
    """Create a custom retry decorator with specific parameters.

    Args:
        max_attempts: Maximum number of retry attempts
        min_wait: Minimum wait time between retries (seconds)
        max_wait: Maximum wait time between retries (seconds)
        multiplier: Exponential backoff multiplier

    Returns:
        A retry decorator configured with the specified parameters
    """
    return retry(
        stop=stop_after_attempt(max_attempts),
        wait=wait_exponential(multiplier=multiplier, min=min_wait, max=max_wait),
        before_sleep=before_sleep_log(logger, logging.WARNING),
        reraise=True,
    )
