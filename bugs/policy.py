"""
bugs/policy.py -- Role-based access control for bug operations.

Pure decision functions: no I/O, no store access, no logging. Every bug
mutation in bugs/lifecycle.py asks authorize() first; route handlers never
compare roles themselves.

Rules:
  create         any authenticated actor
  list_all       manager or admin (developers only see their assignments,
                 see list_scope())
  read           any authenticated actor
  update_status  only the assigned developer -- reporter and managers included
                 in the deny set
  assign         manager or admin (target validity is checked separately and
                 fails as InvalidAssignee, not as an authorization failure)
  edit           manager or admin, the reporter, or the assignee
  delete         manager or admin

Each action is judged on its own rule. A developer who both reported and is
assigned to a bug may change its status because they are the assignee, not
because they are the reporter.
"""

from __future__ import annotations

from enum import Enum
from typing import Optional

from auth.models import Role, User
from bugs.models import Bug
from core.errors import Unauthorized

_PRIVILEGED_ROLES = frozenset({Role.manager, Role.admin})


class Action(str, Enum):
    create = "create"
    list_all = "list_all"
    read = "read"
    update_status = "update_status"
    assign = "assign"
    edit = "edit"
    delete = "delete"


def _is_privileged(actor: User) -> bool:
    return actor.role in _PRIVILEGED_ROLES


def _is_assignee(actor: User, bug: Bug) -> bool:
    return bug.assigned_to is not None and bug.assigned_to == actor.id


def _is_reporter(actor: User, bug: Bug) -> bool:
    return bug.reported_by == actor.id


def authorize(actor: User, action: Action, bug: Optional[Bug] = None) -> bool:
    """Return True if actor may perform action (on bug, for per-bug actions).

    Per-bug actions (update_status, edit) deny when no bug is given.
    """
    if action in (Action.create, Action.read):
        return True
    if action in (Action.list_all, Action.assign, Action.delete):
        return _is_privileged(actor)
    if bug is None:
        return False
    if action == Action.update_status:
        return _is_assignee(actor, bug)
    if action == Action.edit:
        return _is_privileged(actor) or _is_reporter(actor, bug) or _is_assignee(actor, bug)
    return False


def require(actor: User, action: Action, bug: Optional[Bug] = None) -> None:
    """Raise Unauthorized unless authorize() allows the action."""
    if not authorize(actor, action, bug):
        raise Unauthorized()


def list_scope(actor: User) -> Optional[int]:
    """Return the assignee id a bug listing is restricted to, or None for all bugs."""
    if authorize(actor, Action.list_all):
        return None
    return actor.id
