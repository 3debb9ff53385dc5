"""Case API routes."""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query, status

from lifecycle_service.api.dependencies import get_practice_manager, get_viewer, to_http_exception
from lifecycle_service.core.errors import LifecycleError
from lifecycle_service.core.practice_manager import PracticeManager
from lifecycle_service.models import (
    CaseCreateRequest,
    CaseListResponse,
    CaseReadyRequest,
    CaseResponse,
    CaseStateChangeRequest,
    CaseType,
    ViewerContext,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/cases", tags=["cases"])


@router.post(
    "",
    response_model=CaseResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Open a case",
    description="""
Opens a case for an existing customer. Customer cases start in INTAKE, client
cases in NEW; the creation is the first history record.
    """,
    responses={
        201: {"description": "Case created"},
        404: {"description": "Customer not found"},
    },
)
async def create_case(
    request: CaseCreateRequest,
    viewer: ViewerContext = Depends(get_viewer),
    manager: PracticeManager = Depends(get_practice_manager),
):
    try:
        case = await manager.create_case(request.to_case(), viewer)
    except LifecycleError as e:
        raise to_http_exception(e) from e
    return CaseResponse.from_case(case)


@router.get("", response_model=CaseListResponse, summary="List visible cases")
async def list_cases(
    case_type: Optional[CaseType] = Query(None),
    customer_id: Optional[str] = Query(None),
    viewer: ViewerContext = Depends(get_viewer),
    manager: PracticeManager = Depends(get_practice_manager),
):
    try:
        cases = await manager.list_cases(viewer, case_type=case_type, customer_id=customer_id)
    except LifecycleError as e:
        raise to_http_exception(e) from e
    return CaseListResponse(cases=[CaseResponse.from_case(c) for c in cases], total=len(cases))


@router.post(
    "/{case_id}/state",
    response_model=CaseResponse,
    summary="Change case state",
    description="""
Moves a case to one of the states allowed from its current state. Anything
else is rejected with 400 and the allowed successors, before any write.

**Request Body Example**:
```json
{"state": "IN_PROGRESS"}
```
    """,
    responses={
        400: {"description": "Transition not allowed; detail lists the allowed states"},
        404: {"description": "Case not found"},
    },
)
async def change_case_state(
    case_id: str,
    request: CaseStateChangeRequest,
    viewer: ViewerContext = Depends(get_viewer),
    manager: PracticeManager = Depends(get_practice_manager),
):
    try:
        case = await manager.change_case_state(case_id, request.state, viewer)
    except LifecycleError as e:
        raise to_http_exception(e) from e
    return CaseResponse.from_case(case)


@router.put("/{case_id}/ready", response_model=CaseResponse, summary="Mark a case ready for work")
async def set_case_ready(
    case_id: str,
    request: CaseReadyRequest,
    viewer: ViewerContext = Depends(get_viewer),
    manager: PracticeManager = Depends(get_practice_manager),
):
    """Rejected with 400 while the case is still in intake."""
    try:
        case = await manager.set_case_ready_for_work(case_id, request.ready_for_work, viewer)
    except LifecycleError as e:
        raise to_http_exception(e) from e
    return CaseResponse.from_case(case)
