"""Customer API routes."""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query, status

from lifecycle_service.api.dependencies import get_practice_manager, get_viewer, to_http_exception
from lifecycle_service.core.errors import LifecycleError
from lifecycle_service.core.practice_manager import PracticeManager
from lifecycle_service.models import (
    AdvanceResponse,
    Customer,
    CustomerAdvanceRequest,
    CustomerCreateRequest,
    CustomerHistoryResponse,
    CustomerListResponse,
    CustomerStatus,
    CustomerStatusUpdateRequest,
    ViewerContext,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/customers", tags=["customers"])


@router.post(
    "",
    response_model=Customer,
    status_code=status.HTTP_201_CREATED,
    summary="Register a new customer",
    description="""
Registers a lead. The customer starts in INTAKE (or the requested status) with
one history entry and version 1.

**Request Body Example**:
```json
{
  "name": "Ana Kovac",
  "phone": "+43 660 1234567",
  "services": ["residency_permit"],
  "contact_channel": "whatsapp"
}
```

**Guards**: creating directly as CLIENT needs a closer in `assigned_to`;
ON_HOLD needs `follow_up_date`.
    """,
    responses={
        201: {"description": "Customer created"},
        400: {"description": "A status guard failed"},
        401: {"description": "Missing X-User-ID header"},
    },
)
async def create_customer(
    request: CustomerCreateRequest,
    viewer: ViewerContext = Depends(get_viewer),
    manager: PracticeManager = Depends(get_practice_manager),
):
    try:
        return await manager.create_customer(request.to_customer(), viewer)
    except LifecycleError as e:
        raise to_http_exception(e) from e


@router.get("", response_model=CustomerListResponse, summary="List visible customers")
async def list_customers(
    status_filter: Optional[CustomerStatus] = Query(None, alias="status"),
    viewer: ViewerContext = Depends(get_viewer),
    manager: PracticeManager = Depends(get_practice_manager),
):
    """Admins see every customer; others see customers assigned to them or their team."""
    try:
        customers = await manager.list_customers(viewer, status_filter)
    except LifecycleError as e:
        raise to_http_exception(e) from e
    return CustomerListResponse(customers=customers, total=len(customers))


@router.get("/{customer_id}/history", response_model=CustomerHistoryResponse, summary="Customer status history")
async def get_customer_history(
    customer_id: str,
    viewer: ViewerContext = Depends(get_viewer),
    manager: PracticeManager = Depends(get_practice_manager),
):
    try:
        history = await manager.get_customer_history(customer_id, viewer)
    except LifecycleError as e:
        raise to_http_exception(e) from e
    return CustomerHistoryResponse(customer_id=customer_id, history=history)


@router.post(
    "/{customer_id}/advance",
    response_model=AdvanceResponse,
    summary="Advance to the next workflow step",
    description="""
Moves the customer one step along
INTAKE → SEND_PROPOSAL → WAITING_APPROVAL → SEND_CONTRACT → WAITING_ACCEPTANCE → SEND_RESPONSE → CLIENT.

At CLIENT, or in a parked/consultation status, nothing is written and the
response has `"advanced": false`.

`expected_version` is required; a stale one gets a 409 instead of overwriting
someone else's change.
    """,
    responses={
        200: {"description": "Advanced, or nothing to do"},
        400: {"description": "A status guard failed"},
        404: {"description": "Customer not found"},
        409: {"description": "Version conflict; body carries the latest customer"},
        422: {"description": "expected_version missing"},
        503: {"description": "Store unreachable"},
    },
)
async def advance_customer(
    customer_id: str,
    request: CustomerAdvanceRequest,
    viewer: ViewerContext = Depends(get_viewer),
    manager: PracticeManager = Depends(get_practice_manager),
):
    try:
        result = await manager.advance_customer(
            customer_id, viewer, request.extras(), request.expected_version
        )
    except LifecycleError as e:
        raise to_http_exception(e) from e
    return AdvanceResponse(advanced=result.advanced, reason=result.reason, customer=result.customer)


@router.put(
    "/{customer_id}/status",
    response_model=Customer,
    summary="Set customer status (free edit)",
    responses={
        400: {"description": "A status guard failed"},
        404: {"description": "Customer not found"},
        409: {"description": "Version conflict"},
        422: {"description": "expected_version missing"},
    },
)
async def set_customer_status(
    customer_id: str,
    request: CustomerStatusUpdateRequest,
    viewer: ViewerContext = Depends(get_viewer),
    manager: PracticeManager = Depends(get_practice_manager),
):
    """Move the customer to any status. Setting the current status is a no-op."""
    try:
        return await manager.set_customer_status(
            customer_id, request.status, viewer, request.extras(), request.expected_version
        )
    except LifecycleError as e:
        raise to_http_exception(e) from e
