"""Practice store for customers, cases, meetings and notifications.

This module provides the repository pattern for the authoritative store that
owns every Customer and Case. The lifecycle engine never talks to a database
or network API directly; it talks to a PracticeStore.
"""

import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional

from pydantic import ValidationError as PydanticValidationError

from lifecycle_service.core.errors import ConflictError, NotFoundError, ValidationError
from lifecycle_service.models.case import Case, CaseState, CaseType, HistoryRecord
from lifecycle_service.models.customer import Customer, CustomerStatus, StatusHistoryEntry
from lifecycle_service.models.meeting import CustomerNotification, Meeting

logger = logging.getLogger(__name__)

# Fields a patch may never touch; the store owns them
PROTECTED_FIELDS = frozenset({"customer_id", "case_id", "version"})


# ============================================================
# Repository Interface
# ============================================================

class PracticeStore(ABC):
    """
    Abstract interface for the authoritative practice store.

    Implementations:
    - InMemoryPracticeStore: Testing and development
    - SQLPracticeStore: SQLAlchemy async database
    - HttpPracticeStore: Remote practice API
    """

    @abstractmethod
    async def list_customers(self) -> List[Customer]:
        """List every customer (leads and clients)."""
        pass

    @abstractmethod
    async def list_confirmed_clients(self) -> List[Customer]:
        """List customers whose status is CLIENT."""
        pass

    @abstractmethod
    async def get_customer(self, customer_id: str) -> Customer:
        """
        Retrieve a customer by ID.

        Raises:
            NotFoundError: If the customer does not exist
        """
        pass

    @abstractmethod
    async def create_customer(self, customer: Customer) -> Customer:
        """Persist a new customer (version 1, initial history entry included)."""
        pass

    @abstractmethod
    async def update_customer(
        self,
        customer_id: str,
        patch: Dict[str, Any],
        expected_version: int,
    ) -> Customer:
        """
        Apply ``patch`` if the live version equals ``expected_version``.

        Returns:
            The authoritative customer with ``version`` incremented by one

        Raises:
            ConflictError: If the live version differs (nothing is written)
            NotFoundError: If the customer does not exist
        """
        pass

    @abstractmethod
    async def get_customer_history(self, customer_id: str) -> List[StatusHistoryEntry]:
        pass

    @abstractmethod
    async def list_cases(
        self,
        case_type: Optional[CaseType] = None,
        customer_id: Optional[str] = None,
    ) -> List[Case]:
        pass

    @abstractmethod
    async def get_case(self, case_id: str) -> Case:
        """
        Retrieve a case by ID.

        Raises:
            NotFoundError: If the case does not exist
        """
        pass

    @abstractmethod
    async def create_case(self, case: Case) -> Case:
        pass

    @abstractmethod
    async def change_case_state(self, case_id: str, new_state: CaseState, record: HistoryRecord) -> Case:
        """Set the case state and append ``record`` in one write."""
        pass

    @abstractmethod
    async def update_case(self, case_id: str, patch: Dict[str, Any]) -> Case:
        pass

    @abstractmethod
    async def list_meetings(self) -> List[Meeting]:
        pass

    @abstractmethod
    async def get_customer_notifications(self) -> List[CustomerNotification]:
        pass

    @abstractmethod
    async def delete_customer_notification(self, notification_id: str) -> bool:
        """Delete a backend notification. Returns False if it was already gone."""
        pass

    async def close(self) -> None:
        """Release connections held by the store."""
        return None


def check_patch(model: type, patch: Dict[str, Any]) -> Dict[str, Any]:
    """Reject patches that touch unknown or store-owned fields."""
    unknown = set(patch) - set(model.model_fields)
    if unknown:
        raise ValidationError(f"Unknown field(s) in patch: {', '.join(sorted(unknown))}", sorted(unknown)[0])
    protected = set(patch) & PROTECTED_FIELDS
    if protected:
        raise ValidationError(f"Field(s) not patchable: {', '.join(sorted(protected))}", sorted(protected)[0])
    return patch


def apply_patch(entity: Any, patch: Dict[str, Any], version: int) -> Any:
    """Build the patched copy of ``entity`` (re-validated) at ``version``."""
    data = entity.model_dump()
    data.update(check_patch(type(entity), patch))
    data["version"] = version
    try:
        return type(entity).model_validate(data)
    except PydanticValidationError as e:
        raise ValidationError(str(e)) from e


# ============================================================
# In-Memory Implementation
# ============================================================

class InMemoryPracticeStore(PracticeStore):
    """
    In-memory practice store for testing and development.

    Data stored in dictionaries, not persistent across restarts. Every read
    returns a deep copy so callers can never mutate stored state.
    """

    def __init__(self):
        """Initialize empty in-memory store."""
        self._customers: Dict[str, Customer] = {}
        self._cases: Dict[str, Case] = {}
        self._meetings: Dict[str, Meeting] = {}
        self._notifications: Dict[str, CustomerNotification] = {}

    # Customers

    async def list_customers(self) -> List[Customer]:
        return [c.model_copy(deep=True) for c in self._customers.values()]

    async def list_confirmed_clients(self) -> List[Customer]:
        return [
            c.model_copy(deep=True)
            for c in self._customers.values()
            if c.status == CustomerStatus.CLIENT
        ]

    async def get_customer(self, customer_id: str) -> Customer:
        return self._require_customer(customer_id).model_copy(deep=True)

    async def create_customer(self, customer: Customer) -> Customer:
        if customer.customer_id in self._customers:
            raise ValidationError(f"Customer {customer.customer_id} already exists", "customer_id")
        self._customers[customer.customer_id] = customer.model_copy(deep=True)
        return customer.model_copy(deep=True)

    async def update_customer(
        self,
        customer_id: str,
        patch: Dict[str, Any],
        expected_version: int,
    ) -> Customer:
        # No await between the version check and the write: atomic on the event loop
        current = self._require_customer(customer_id)
        if current.version != expected_version:
            logger.warning(
                f"Version conflict on customer {customer_id}: "
                f"expected {expected_version}, live {current.version}"
            )
            raise ConflictError(customer_id, expected_version, current.version, current.model_copy(deep=True))
        updated = apply_patch(current, patch, current.version + 1)
        self._customers[customer_id] = updated
        return updated.model_copy(deep=True)

    async def get_customer_history(self, customer_id: str) -> List[StatusHistoryEntry]:
        return list(self._require_customer(customer_id).status_history)

    # Cases

    async def list_cases(
        self,
        case_type: Optional[CaseType] = None,
        customer_id: Optional[str] = None,
    ) -> List[Case]:
        filtered = list(self._cases.values())
        if case_type:
            filtered = [c for c in filtered if c.case_type == case_type]
        if customer_id:
            filtered = [c for c in filtered if c.customer_id == customer_id]
        return [c.model_copy(deep=True) for c in filtered]

    async def get_case(self, case_id: str) -> Case:
        return self._require_case(case_id).model_copy(deep=True)

    async def create_case(self, case: Case) -> Case:
        if case.case_id in self._cases:
            raise ValidationError(f"Case {case.case_id} already exists", "case_id")
        self._cases[case.case_id] = case.model_copy(deep=True)
        return case.model_copy(deep=True)

    async def change_case_state(self, case_id: str, new_state: CaseState, record: HistoryRecord) -> Case:
        current = self._require_case(case_id)
        updated = apply_patch(
            current,
            {
                "state": new_state,
                "last_state_change": record.date,
                "history": [*current.history, record],
            },
            current.version + 1,
        )
        self._cases[case_id] = updated
        return updated.model_copy(deep=True)

    async def update_case(self, case_id: str, patch: Dict[str, Any]) -> Case:
        current = self._require_case(case_id)
        updated = apply_patch(current, patch, current.version + 1)
        self._cases[case_id] = updated
        return updated.model_copy(deep=True)

    # Meetings and notifications

    async def list_meetings(self) -> List[Meeting]:
        return [m.model_copy() for m in self._meetings.values()]

    async def get_customer_notifications(self) -> List[CustomerNotification]:
        return [n.model_copy() for n in self._notifications.values()]

    async def delete_customer_notification(self, notification_id: str) -> bool:
        return self._notifications.pop(notification_id, None) is not None

    def add_meeting(self, meeting: Meeting) -> None:
        """Seed a meeting (the calendar is owned elsewhere)."""
        self._meetings[meeting.meeting_id] = meeting

    def add_notification(self, notification: CustomerNotification) -> None:
        """Seed a backend notification."""
        self._notifications[notification.notification_id] = notification

    def _require_customer(self, customer_id: str) -> Customer:
        customer = self._customers.get(customer_id)
        if customer is None:
            raise NotFoundError("Customer", customer_id)
        return customer

    def _require_case(self, case_id: str) -> Case:
        case = self._cases.get(case_id)
        if case is None:
            raise NotFoundError("Case", case_id)
        return case
