"""
auth/models.py -- Domain dataclasses for authentication entities.

Pattern: Data class (pure data container, zero logic). Mirrors the approach
in bugs/models.py -- dataclasses own domain shape; stores and services do
the work.

Layer rule: no imports from api/ or bugs/.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class Role(str, Enum):
    """Closed set of roles. Comparisons happen in bugs/policy.py only."""

    developer = "developer"
    manager = "manager"
    admin = "admin"


@dataclass
class User:
    """Represents a registered identity in BugTracker.

    email is the login name and is unique (exact, case-sensitive match).
    hashed_password is the bcrypt hash; the raw password is never stored and
    the hash never leaves the auth/ package (see bugs/projection.py).

    id is None before the record is written to the database.
    """

    name: str
    email: str
    role: Role
    hashed_password: str = ""
    id: int | None = None
    created_at: str | None = None
    updated_at: str | None = None
