"""
bugs/models.py -- Domain dataclasses for bug reports.

These are pure data containers with zero logic. Authorization lives in
bugs/policy.py, state changes in bugs/lifecycle.py, persistence in
bugs/store.py, and the outward-facing shapes are built by bugs/projection.py.

Bug references users by id only (reported_by, assigned_to). User records
belong to auth/store.py and are never copied into a bug.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Optional

from auth.models import Role


class Status(str, Enum):
    """Bug status. No transition graph: any value may follow any other."""

    open = "open"
    in_progress = "in-progress"
    resolved = "resolved"


class Priority(str, Enum):
    low = "low"
    medium = "medium"
    high = "high"
    critical = "critical"


@dataclass
class Bug:
    """A tracked bug report.

    reported_by is set once at creation and never rewritten.
    assigned_to is None until a manager or admin assigns a developer.

    id is None before the record is written to the database.
    """

    title: str
    description: str
    priority: Priority
    reported_by: int
    status: Status = Status.open
    assigned_to: Optional[int] = None
    id: Optional[int] = None
    created_at: str = ""  # ISO 8601, set by store on insert
    updated_at: str = ""  # ISO 8601, restamped on every write


@dataclass
class BugDraft:
    """Fields a reporter supplies when filing a bug. Status is not one of them."""

    title: str
    description: str
    priority: Priority


@dataclass
class BugChanges:
    """A partial edit. None means "leave this field unchanged"."""

    title: Optional[str] = None
    description: Optional[str] = None
    priority: Optional[Priority] = None

    def is_empty(self) -> bool:
        return self.title is None and self.description is None and self.priority is None


@dataclass(frozen=True)
class UserView:
    """Public representation of a user. Never carries the password hash."""

    id: int
    name: str
    email: str
    role: Role


@dataclass(frozen=True)
class BugView:
    """A bug with its user references resolved for output."""

    id: int
    title: str
    description: str
    status: Status
    priority: Priority
    reported_by: UserView
    assigned_to: Optional[UserView]
    created_at: str
    updated_at: str
