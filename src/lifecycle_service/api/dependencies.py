"""Shared route dependencies: the practice manager, the viewer and error mapping."""

import logging
from datetime import timedelta
from typing import Optional

from fastapi import Header, HTTPException, status
from pydantic_core import to_jsonable_python

from lifecycle_service.config import settings
from lifecycle_service.core.alerts import AlertThresholds
from lifecycle_service.core.dismissals import DismissalCache
from lifecycle_service.core.errors import (
    ConflictError,
    LifecycleError,
    NotFoundError,
    TransitionError,
    TransportError,
    ValidationError,
)
from lifecycle_service.core.practice_manager import PracticeManager
from lifecycle_service.infrastructure.clients import HttpPracticeStore
from lifecycle_service.infrastructure.database import DatabaseClient
from lifecycle_service.infrastructure.persistence import InMemoryPracticeStore, PracticeStore, SQLPracticeStore
from lifecycle_service.infrastructure.storage import JsonFileKeyValueStore
from lifecycle_service.models.viewer import ViewerContext, ViewerRole

logger = logging.getLogger(__name__)

# Global singleton manager (persists across requests)
_practice_manager: Optional[PracticeManager] = None


def build_store() -> PracticeStore:
    """Pick the store implementation from ``settings.storage_type``.

    - inmemory (default): InMemoryPracticeStore for dev/testing
    - sql: SQLPracticeStore on ``settings.database_url``
    - http: HttpPracticeStore against ``settings.practice_api_url``
    """
    storage_type = settings.storage_type.lower()
    if storage_type == "sql":
        return SQLPracticeStore(DatabaseClient(settings.database_url))
    if storage_type == "http":
        return HttpPracticeStore(base_url=settings.practice_api_url, timeout=settings.http_timeout)
    return InMemoryPracticeStore()


def build_practice_manager(store: Optional[PracticeStore] = None) -> PracticeManager:
    dismissals = DismissalCache(
        JsonFileKeyValueStore(settings.dismissal_store_path),
        ttl=timedelta(days=settings.dismissal_ttl_days),
    )
    return PracticeManager(
        store or build_store(),
        dismissals,
        closer_roster=settings.closer_roster_list,
        thresholds=AlertThresholds.from_settings(settings),
        poll_interval_seconds=settings.alert_poll_interval_seconds,
    )


def set_practice_manager(manager: Optional[PracticeManager]) -> None:
    global _practice_manager
    _practice_manager = manager


async def get_practice_manager() -> PracticeManager:
    """Dependency to get the practice manager."""
    global _practice_manager
    if _practice_manager is None:
        _practice_manager = build_practice_manager()
    return _practice_manager


async def get_viewer(
    x_user_id: Optional[str] = Header(None, alias="X-User-ID"),
    x_user_role: Optional[str] = Header(None, alias="X-User-Role"),
    x_user_name: Optional[str] = Header(None, alias="X-User-Name"),
    x_user_team: Optional[str] = Header(None, alias="X-User-Team"),
    x_case_type: Optional[str] = Header(None, alias="X-Case-Type"),
) -> ViewerContext:
    """Build the viewer from X-User-* headers (set by the API Gateway).

    Raises:
        HTTPException: 401 if X-User-ID is missing, 400 on an unknown role
    """
    if not x_user_id:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="X-User-ID header required (should be added by API Gateway)",
        )

    try:
        role = ViewerRole((x_user_role or ViewerRole.CONSULTANT.value).lower())
    except ValueError:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Unknown role '{x_user_role}'",
        )

    team = frozenset(name.strip() for name in (x_user_team or "").split(",") if name.strip())
    return ViewerContext(
        role=role,
        identity=x_user_name or x_user_id,
        username=x_user_id,
        team=team,
        case_type=x_case_type or None,
    )


def to_http_exception(error: LifecycleError) -> HTTPException:
    """Translate a lifecycle error into the HTTP error the client sees."""
    if isinstance(error, TransitionError):
        return HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={
                "message": str(error),
                "current": str(getattr(error.current, "value", error.current)),
                "allowed": error.allowed,
            },
        )
    if isinstance(error, ValidationError):
        return HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={"message": str(error), "field": error.field},
        )
    if isinstance(error, ConflictError):
        return HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail={
                "message": str(error),
                "expected_version": error.expected_version,
                "actual_version": error.actual_version,
                "latest": to_jsonable_python(error.latest) if error.latest is not None else None,
            },
        )
    if isinstance(error, NotFoundError):
        return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(error))
    if isinstance(error, TransportError):
        return HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(error))
    return HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(error))
