"""Utility Functions"""

from lifecycle_service.utils.resilience import (
    service_startup_retry,
    create_custom_retry,
)
from lifecycle_service.utils.time import ensure_utc, hours_between, utcnow

__all__ = [
    "service_startup_retry",
    "create_custom_retry",
    "ensure_utc",
    "hours_between",
    "utcnow",
]
