"""Shared fixtures for unit tests."""

import pytest

from builders import NOW, ROSTER
from lifecycle_service.core.dismissals import DismissalCache
from lifecycle_service.core.practice_manager import PracticeManager
from lifecycle_service.infrastructure.persistence import InMemoryPracticeStore
from lifecycle_service.infrastructure.storage import InMemoryKeyValueStore
from lifecycle_service.models import ViewerContext, ViewerRole


@pytest.fixture
def admin() -> ViewerContext:
    return ViewerContext(role=ViewerRole.ADMIN, identity="Admin", username="admin")


@pytest.fixture
def consultant() -> ViewerContext:
    return ViewerContext(role=ViewerRole.CONSULTANT, identity="Kejdi", username="kejdi")


@pytest.fixture
def store() -> InMemoryPracticeStore:
    return InMemoryPracticeStore()


@pytest.fixture
def dismissals() -> DismissalCache:
    return DismissalCache(InMemoryKeyValueStore(), clock=lambda: NOW)


@pytest.fixture
def manager(store, dismissals) -> PracticeManager:
    return PracticeManager(store, dismissals, closer_roster=ROSTER, clock=lambda: NOW)
