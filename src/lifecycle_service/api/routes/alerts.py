"""Alert API routes."""

import logging

from fastapi import APIRouter, Depends, status

from lifecycle_service.api.dependencies import get_practice_manager, get_viewer, to_http_exception
from lifecycle_service.core.errors import LifecycleError
from lifecycle_service.core.practice_manager import PracticeManager
from lifecycle_service.models import AlertListResponse, AlertSeverity, ViewerContext

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/alerts", tags=["alerts"])


@router.get(
    "",
    response_model=AlertListResponse,
    summary="Current alerts for the viewer",
    description="""
Recomputes alerts from the latest customers, cases, meetings and backend
notifications. Dismissed alerts and alerts about other people's work are left
out. Ordered critical first, then by kind and id.

**Response Example**:
```json
{
  "alerts": [
    {"id": "CASE-7-deadline-overdue", "kind": "deadline", "severity": "critical", "...": "..."},
    {"id": "C-1-wait-48", "kind": "follow", "severity": "warn", "...": "..."}
  ],
  "total": 2,
  "critical": 1
}
```
    """,
    responses={503: {"description": "Store unreachable"}},
)
async def list_alerts(
    viewer: ViewerContext = Depends(get_viewer),
    manager: PracticeManager = Depends(get_practice_manager),
):
    try:
        alerts = await manager.compute_alerts(viewer)
    except LifecycleError as e:
        raise to_http_exception(e) from e
    critical = sum(1 for a in alerts if a.severity == AlertSeverity.CRITICAL)
    return AlertListResponse(alerts=alerts, total=len(alerts), critical=critical)


@router.post(
    "/{alert_id}/dismiss",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Dismiss an alert for seven days",
)
async def dismiss_alert(
    alert_id: str,
    viewer: ViewerContext = Depends(get_viewer),
    manager: PracticeManager = Depends(get_practice_manager),
):
    """The same condition re-raises under the same id once the dismissal expires."""
    try:
        await manager.dismiss_alert(alert_id, viewer)
    except LifecycleError as e:
        raise to_http_exception(e) from e
