"""Client-local storage."""

from lifecycle_service.infrastructure.storage.key_value import (
    InMemoryKeyValueStore,
    JsonFileKeyValueStore,
    KeyValueStore,
)

__all__ = [
    "KeyValueStore",
    "InMemoryKeyValueStore",
    "JsonFileKeyValueStore",
]
