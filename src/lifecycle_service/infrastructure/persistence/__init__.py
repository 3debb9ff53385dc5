"""Practice persistence layer - Repository Pattern implementation."""

from lifecycle_service.infrastructure.persistence.practice_store import (
    InMemoryPracticeStore,
    PracticeStore,
)
from lifecycle_service.infrastructure.persistence.sql_practice_store import SQLPracticeStore

__all__ = [
    "PracticeStore",
    "InMemoryPracticeStore",
    "SQLPracticeStore",
]
