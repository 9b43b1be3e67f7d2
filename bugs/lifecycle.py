"""
bugs/lifecycle.py -- The only code path that mutates a bug.

BugLifecycle wires the pieces together for each operation:
  load the bug (NotFound if absent) -> bugs.policy.require() (Unauthorized on
  deny) -> write through BugStore -> bugs.projection.project_bug().

Assign and delete depend on the actor's role alone, so those two check the
role before loading: a developer gets Unauthorized even for an unknown id.

The actor is always passed in explicitly. It is the User that
auth.dependencies.get_current_user() resolved from the session token at the
HTTP boundary; nothing in here looks up a "current user" on its own.

Role checks that the route layer could do (assign, delete) are repeated here
so any other caller -- a CLI, a test, a future route -- gets the same rules.
"""

from __future__ import annotations

import logging

from auth.models import Role, User
from auth.store import UserStore
from bugs import policy
from bugs.models import Bug, BugChanges, BugDraft, BugView, Status
from bugs.policy import Action
from bugs.projection import project_bug, project_bugs
from bugs.store import BugStore
from core.errors import InvalidAssignee, NoChanges, NotFound

logger = logging.getLogger("bugtracker.bugs")


class BugLifecycle:
    """Bug operations with authorization applied.

    Usage:
        lifecycle = BugLifecycle(bug_store, user_store)
        view = lifecycle.create(BugDraft(title="Crash", description="...", priority=Priority.high), actor)
        lifecycle.assign(view.id, developer_id, manager)
    """

    def __init__(self, bug_store: BugStore, user_store: UserStore) -> None:
        self.bug_store = bug_store
        self.user_store = user_store

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _load(self, bug_id: int) -> Bug:
        bug = self.bug_store.get_bug(bug_id)
        if bug is None:
            raise NotFound(f"Bug {bug_id} not found.")
        return bug

    def _project(self, bug: Bug) -> BugView:
        return project_bug(bug, self.user_store)

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def get_by_id(self, bug_id: int) -> BugView:
        return self._project(self._load(bug_id))

    def list_all(self) -> list[BugView]:
        return project_bugs(self.bug_store.list_bugs(), self.user_store)

    def list_for_assignee(self, developer_id: int) -> list[BugView]:
        return project_bugs(self.bug_store.list_by_assignee(developer_id), self.user_store)

    def list_for(self, actor: User) -> list[BugView]:
        """Return the bugs actor may list: everything, or only their assignments."""
        assignee_id = policy.list_scope(actor)
        if assignee_id is None:
            return self.list_all()
        return self.list_for_assignee(assignee_id)

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    def create(self, draft: BugDraft, actor: User) -> BugView:
        """File a new bug reported by actor.

        Every bug starts open with no assignee.
        """
        policy.require(actor, Action.create)
        bug = Bug(
            title=draft.title,
            description=draft.description,
            priority=draft.priority,
            reported_by=actor.id,
            status=Status.open,
        )
        bug_id = self.bug_store.create_bug(bug)
        logger.info("Bug %s created by user_id=%s", bug_id, actor.id)
        return self._project(self._load(bug_id))

    def update_status(self, bug_id: int, status: Status, actor: User) -> BugView:
        """Set a bug's status. Only the assigned developer may do this.

        Any status may follow any other -- there is no transition graph.
        """
        bug = self._load(bug_id)
        policy.require(actor, Action.update_status, bug)
        if not self.bug_store.update_status(bug_id, status):
            raise NotFound(f"Bug {bug_id} not found.")
        logger.info("Bug %s status %s -> %s by user_id=%s", bug_id, bug.status.value, Status(status).value, actor.id)
        return self._project(self._load(bug_id))

    def assign(self, bug_id: int, developer_id: int, actor: User) -> BugView:
        """Assign a bug to a developer. Managers and admins only.

        Raises InvalidAssignee when developer_id does not resolve to a user
        or resolves to someone who is not a developer.
        """
        policy.require(actor, Action.assign)
        bug = self._load(bug_id)
        developer = self.user_store.get_by_id(developer_id)
        if developer is None:
            raise InvalidAssignee(f"User {developer_id} does not exist.")
        if developer.role != Role.developer:
            raise InvalidAssignee(f"User {developer_id} is not a developer.")
        bug.assigned_to = developer.id
        if not self.bug_store.update_bug(bug):
            raise NotFound(f"Bug {bug_id} not found.")
        logger.info("Bug %s assigned to user_id=%s by user_id=%s", bug_id, developer.id, actor.id)
        return self._project(bug)

    def update(self, bug_id: int, changes: BugChanges, actor: User) -> BugView:
        """Apply a partial edit to title, description, and/or priority.

        Fields left as None in changes keep their stored value. An empty
        change set raises NoChanges, after the bug and the actor's right to
        edit it have been checked.
        """
        bug = self._load(bug_id)
        policy.require(actor, Action.edit, bug)
        if changes.is_empty():
            raise NoChanges()
        if changes.title is not None:
            bug.title = changes.title
        if changes.description is not None:
            bug.description = changes.description
        if changes.priority is not None:
            bug.priority = changes.priority
        if not self.bug_store.update_bug(bug):
            raise NotFound(f"Bug {bug_id} not found.")
        logger.info("Bug %s edited by user_id=%s", bug_id, actor.id)
        return self._project(bug)

    def delete(self, bug_id: int, actor: User) -> None:
        """Delete a bug. Managers and admins only."""
        policy.require(actor, Action.delete)
        if not self.bug_store.delete_bug(bug_id):
            raise NotFound(f"Bug {bug_id} not found.")
        logger.info("Bug %s deleted by user_id=%s", bug_id, actor.id)
