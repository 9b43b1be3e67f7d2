"""
bugs/projection.py -- Map stored entities to their outward-facing views.

project_user() strips the password hash. project_bug() swaps the reporter
and assignee ids for UserView records loaded from the user store; all other
fields pass through unchanged.

A reporter or assignee id that no longer resolves is an internal consistency
problem (the stored bug points at a user that does not exist), so it raises
IntegrityViolation rather than NotFound -- the caller asked for a bug that
does exist.
"""

from __future__ import annotations

from typing import Optional

from auth.models import User
from auth.store import UserStore
from bugs.models import Bug, BugView, UserView
from core.errors import IntegrityViolation


def project_user(user: User) -> UserView:
    return UserView(id=user.id, name=user.name, email=user.email, role=user.role)


def _resolve(user_id: int, user_store: UserStore, cache: dict[int, UserView], field: str, bug_id) -> UserView:
    if user_id not in cache:
        user = user_store.get_by_id(user_id)
        if user is None:
            raise IntegrityViolation(f"Bug {bug_id} {field} references missing user {user_id}.")
        cache[user_id] = project_user(user)
    return cache[user_id]


def project_bug(bug: Bug, user_store: UserStore, _cache: Optional[dict[int, UserView]] = None) -> BugView:
    """Resolve a Bug's user references and return its BugView."""
    cache = {} if _cache is None else _cache
    reporter = _resolve(bug.reported_by, user_store, cache, "reported_by", bug.id)
    assignee = None
    if bug.assigned_to is not None:
        assignee = _resolve(bug.assigned_to, user_store, cache, "assigned_to", bug.id)
    return BugView(
        id=bug.id,
        title=bug.title,
        description=bug.description,
        status=bug.status,
        priority=bug.priority,
        reported_by=reporter,
        assigned_to=assignee,
        created_at=bug.created_at,
        updated_at=bug.updated_at,
    )


def project_bugs(bugs: list[Bug], user_store: UserStore) -> list[BugView]:
    """Project a list of bugs, loading each referenced user at most once."""
    cache: dict[int, UserView] = {}
    return [project_bug(bug, user_store, cache) for bug in bugs]
