"""Viewer capability object.

Every role-dependent decision (alert visibility, the CLIENT roster guard) asks
the ViewerContext instead of inspecting roles at the call site.
"""

import re
from enum import Enum
from typing import FrozenSet, Optional

from pydantic import BaseModel, Field

from lifecycle_service.models.case import Case
from lifecycle_service.models.meeting import Meeting

_TITLE_PREFIX = re.compile(r"^\s*(dr|mag)\.?\s+", re.IGNORECASE)


def strip_professional_title(name: Optional[str]) -> str:
    """Normalize an assignee name: drop a leading 'Dr.'/'Mag.' and whitespace.

    >>> strip_professional_title("Dr. Weber")
    'Weber'
    """
    return _TITLE_PREFIX.sub("", name or "").strip()


def same_person(left: Optional[str], right: Optional[str]) -> bool:
    """Case-insensitive comparison of two assignee names, ignoring titles."""
    a = strip_professional_title(left).casefold()
    b = strip_professional_title(right).casefold()
    return bool(a) and a == b


class ViewerRole(str, Enum):
    ADMIN = "admin"
    MANAGER = "manager"
    CONSULTANT = "consultant"
    INTAKE = "intake"


class ViewerContext(BaseModel):
    """Who is looking, and what they are allowed to see and do."""

    role: ViewerRole = ViewerRole.CONSULTANT
    identity: str = Field(default="", description="Display name matched against assigned_to")
    username: str = ""
    team: FrozenSet[str] = Field(default_factory=frozenset, description="Names a manager oversees")
    case_type: Optional[str] = Field(default=None, description="Restrict case alerts to one case type")

    @property
    def is_admin(self) -> bool:
        return self.role == ViewerRole.ADMIN

    @property
    def actor(self) -> str:
        """Name recorded in history entries."""
        return self.username or self.identity or self.role.value

    def can_see_assignee(self, assigned_to: Optional[str]) -> bool:
        if self.is_admin:
            return True
        if same_person(assigned_to, self.identity):
            return True
        return any(same_person(assigned_to, member) for member in self.team)

    def can_see_case_type(self, case_type: Optional[str]) -> bool:
        if not self.case_type or not case_type:
            return True
        return self.case_type == case_type

    def can_see(self, assigned_to: Optional[str], case_type: Optional[str] = None) -> bool:
        """Visibility of an entity (or an alert derived from one)."""
        return self.can_see_case_type(case_type) and self.can_see_assignee(assigned_to)

    def is_creator(self, created_by: Optional[str]) -> bool:
        return bool(self.username) and created_by == self.username

    def can_see_case(self, case: Case) -> bool:
        return self.can_see(case.assigned_to, case.case_type.value)

    def can_see_meeting(self, meeting: Meeting) -> bool:
        """Meetings are also visible to whoever put them on the calendar."""
        return self.can_see(meeting.assigned_to) or self.is_creator(meeting.created_by)

    def may_confirm_without_roster(self) -> bool:
        """Admins may confirm a client to any assignee; others use the closer roster."""
        return self.is_admin

    class Config:
        frozen = True


SYSTEM_VIEWER = ViewerContext(role=ViewerRole.ADMIN, identity="system", username="system")
