"""PracticeStore backed by the remote practice API."""

import logging
from typing import Any, Dict, List, Optional

import httpx
from pydantic_core import to_jsonable_python

from lifecycle_service.core.errors import ConflictError, NotFoundError
from lifecycle_service.infrastructure.clients.base import BaseServiceClient
from lifecycle_service.infrastructure.persistence.practice_store import PracticeStore, check_patch
from lifecycle_service.models.case import Case, CaseState, CaseType, HistoryRecord
from lifecycle_service.models.customer import Customer, CustomerStatus, StatusHistoryEntry
from lifecycle_service.models.meeting import CustomerNotification, Meeting
from lifecycle_service.utils import create_custom_retry

logger = logging.getLogger(__name__)


class HttpPracticeStore(BaseServiceClient, PracticeStore):
    """Async HTTP client for the practice API.

    The API owns the version check; a stale ``expected_version`` comes back as
    409 and surfaces here as ConflictError carrying the latest customer.

    Usage:
        store = HttpPracticeStore(base_url="http://practice-api:8000")
        customer = await store.get_customer("C-1")
    """

    def __init__(
        self,
        base_url: str = "http://practice-api:8000",
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        super().__init__(base_url=base_url, timeout=timeout, transport=transport)

    @create_custom_retry(max_attempts=3, min_wait=1, max_wait=8)
    async def verify_connection(self) -> None:
        """Ping the API at startup, retrying while it comes up."""
        await self._request("GET", "/health")
        logger.info("Practice API connection verified")

    # Customers

    async def list_customers(self) -> List[Customer]:
        response = await self._request("GET", "/api/customers")
        return [Customer.model_validate(item) for item in response.json()]

    async def list_confirmed_clients(self) -> List[Customer]:
        response = await self._request("GET", "/api/customers", params={"status": CustomerStatus.CLIENT.value})
        return [Customer.model_validate(item) for item in response.json()]

    async def get_customer(self, customer_id: str) -> Customer:
        response = await self._request("GET", f"/api/customers/{customer_id}", customer_id)
        return Customer.model_validate(response.json())

    async def create_customer(self, customer: Customer) -> Customer:
        response = await self._request(
            "POST",
            "/api/customers",
            customer.customer_id,
            actor=customer.created_by,
            json=customer.model_dump(mode="json"),
        )
        return Customer.model_validate(response.json())

    async def update_customer(
        self,
        customer_id: str,
        patch: Dict[str, Any],
        expected_version: int,
    ) -> Customer:
        body = to_jsonable_python(check_patch(Customer, patch))
        body["expected_version"] = expected_version
        try:
            response = await self._request(
                "PUT", f"/api/customers/{customer_id}", customer_id, actor=_actor_of(patch), json=body
            )
        except ConflictError as e:
            e.expected_version = expected_version
            if isinstance(e.latest, dict):
                e.latest = Customer.model_validate(e.latest)
                e.actual_version = e.latest.version
            raise
        return Customer.model_validate(response.json())

    async def get_customer_history(self, customer_id: str) -> List[StatusHistoryEntry]:
        response = await self._request("GET", f"/api/customers/{customer_id}/history", customer_id)
        return [StatusHistoryEntry.model_validate(item) for item in response.json()]

    # Cases

    async def list_cases(
        self,
        case_type: Optional[CaseType] = None,
        customer_id: Optional[str] = None,
    ) -> List[Case]:
        params = {}
        if case_type is not None:
            params["case_type"] = case_type.value
        if customer_id is not None:
            params["customer_id"] = customer_id
        response = await self._request("GET", "/api/cases", params=params)
        return [Case.model_validate(item) for item in response.json()]

    async def get_case(self, case_id: str) -> Case:
        response = await self._request("GET", f"/api/cases/{case_id}", case_id)
        return Case.model_validate(response.json())

    async def create_case(self, case: Case) -> Case:
        response = await self._request(
            "POST", "/api/cases", case.case_id, actor=case.created_by, json=case.model_dump(mode="json")
        )
        return Case.model_validate(response.json())

    async def change_case_state(self, case_id: str, new_state: CaseState, record: HistoryRecord) -> Case:
        response = await self._request(
            "POST",
            f"/api/cases/{case_id}/state",
            case_id,
            actor=record.actor,
            json={"state": new_state.value, "record": record.model_dump(mode="json")},
        )
        return Case.model_validate(response.json())

    async def update_case(self, case_id: str, patch: Dict[str, Any]) -> Case:
        body = to_jsonable_python(check_patch(Case, patch))
        response = await self._request("PUT", f"/api/cases/{case_id}", case_id, json=body)
        return Case.model_validate(response.json())

    # Meetings and notifications

    async def list_meetings(self) -> List[Meeting]:
        response = await self._request("GET", "/api/meetings")
        return [Meeting.model_validate(item) for item in response.json()]

    async def get_customer_notifications(self) -> List[CustomerNotification]:
        response = await self._request("GET", "/api/customers/notifications")
        return [CustomerNotification.model_validate(item) for item in response.json()]

    async def delete_customer_notification(self, notification_id: str) -> bool:
        try:
            await self._request("DELETE", f"/api/customers/notifications/{notification_id}", notification_id)
        except NotFoundError:
            return False
        return True


def _actor_of(patch: Dict[str, Any]) -> Optional[str]:
    """Who made a customer status change, taken from its newest history entry."""
    history = patch.get("status_history")
    if not history:
        return None
    latest = history[-1]
    return latest.get("changed_by") if isinstance(latest, dict) else latest.changed_by
