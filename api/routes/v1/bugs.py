"""
api/routes/v1/bugs.py -- Bug report routes for the BugTracker REST API.

Routes:
  POST   /bugs                  -- file a bug (status forced to open)
  GET    /bugs                  -- list bugs (developers: only their assignments)
  GET    /bugs/{bug_id}         -- bug detail
  PUT    /bugs/{bug_id}         -- partial edit of title/description/priority
  DELETE /bugs/{bug_id}         -- delete (manager/admin)
  PATCH  /bugs/{bug_id}/status  -- change status (assigned developer only)
  POST   /bugs/{bug_id}/assign  -- assign to a developer (manager/admin)

Every handler does exactly one thing: parse the body, call one BugLifecycle
operation with the authenticated actor, and map the returned BugView to
BugResponse. Authorization decisions live in bugs/policy.py; NotFound,
Unauthorized, and InvalidAssignee propagate to the handlers in api/main.py.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Request

from api.limiter import limiter
from api.models import BugAssign, BugCreate, BugResponse, BugStatusUpdate, BugUpdate, MessageResponse
from auth.dependencies import get_current_user
from auth.models import User
from bugs.lifecycle import BugLifecycle

# Auth policy:
# - every route below requires a valid session token (get_current_user).
#   Per-action rules (assignee-only status changes, manager/admin assign and
#   delete, ...) are enforced inside BugLifecycle, not here.
router = APIRouter(dependencies=[Depends(get_current_user)])


def _lifecycle(request: Request) -> BugLifecycle:
    return request.app.state.bug_lifecycle


# ---------------------------------------------------------------------------
# POST /bugs -- file a new bug
# ---------------------------------------------------------------------------


@limiter.limit("30/minute")
@router.post("/bugs", response_model=BugResponse, status_code=201)
def create_bug(
    request: Request,
    body: BugCreate,
    current_user: User = Depends(get_current_user),
) -> BugResponse:
    """File a bug reported by the current user. New bugs are always open."""
    view = _lifecycle(request).create(body.to_draft(), current_user)
    return BugResponse.from_view(view)


# ---------------------------------------------------------------------------
# GET /bugs -- list bugs visible to the caller
# ---------------------------------------------------------------------------


@limiter.limit("60/minute")
@router.get("/bugs", response_model=list[BugResponse])
def list_bugs(
    request: Request,
    current_user: User = Depends(get_current_user),
) -> list[BugResponse]:
    """Managers and admins see every bug; developers see bugs assigned to them."""
    return [BugResponse.from_view(v) for v in _lifecycle(request).list_for(current_user)]


# ---------------------------------------------------------------------------
# GET /bugs/{bug_id} -- bug detail
# ---------------------------------------------------------------------------


@limiter.limit("60/minute")
@router.get("/bugs/{bug_id}", response_model=BugResponse)
def get_bug(request: Request, bug_id: int) -> BugResponse:
    """Return one bug. Any authenticated user may read any bug by id."""
    return BugResponse.from_view(_lifecycle(request).get_by_id(bug_id))


# ---------------------------------------------------------------------------
# PUT /bugs/{bug_id} -- partial edit
# ---------------------------------------------------------------------------


@limiter.limit("30/minute")
@router.put("/bugs/{bug_id}", response_model=BugResponse)
def update_bug(
    request: Request,
    bug_id: int,
    body: BugUpdate,
    current_user: User = Depends(get_current_user),
) -> BugResponse:
    """Edit title, description, and/or priority.

    Allowed for managers, admins, the reporter, and the assignee. Omitted
    fields keep their stored values; a body with no fields is 400 no_changes
    once the bug exists and the caller may edit it.
    """
    return BugResponse.from_view(_lifecycle(request).update(bug_id, body.to_changes(), current_user))


# ---------------------------------------------------------------------------
# DELETE /bugs/{bug_id}
# ---------------------------------------------------------------------------


@limiter.limit("30/minute")
@router.delete("/bugs/{bug_id}", response_model=MessageResponse)
def delete_bug(
    request: Request,
    bug_id: int,
    current_user: User = Depends(get_current_user),
) -> MessageResponse:
    """Delete a bug. Managers and admins only."""
    _lifecycle(request).delete(bug_id, current_user)
    return MessageResponse(message="Bug deleted successfully.")


# ---------------------------------------------------------------------------
# PATCH /bugs/{bug_id}/status
# ---------------------------------------------------------------------------


@limiter.limit("30/minute")
@router.patch("/bugs/{bug_id}/status", response_model=BugResponse)
def update_bug_status(
    request: Request,
    bug_id: int,
    body: BugStatusUpdate,
    current_user: User = Depends(get_current_user),
) -> BugResponse:
    """Change a bug's status. Only the assigned developer may do this."""
    return BugResponse.from_view(_lifecycle(request).update_status(bug_id, body.status, current_user))


# ---------------------------------------------------------------------------
# POST /bugs/{bug_id}/assign
# ---------------------------------------------------------------------------


@limiter.limit("30/minute")
@router.post("/bugs/{bug_id}/assign", response_model=BugResponse)
def assign_bug(
    request: Request,
    bug_id: int,
    body: BugAssign,
    current_user: User = Depends(get_current_user),
) -> BugResponse:
    """Assign a bug to a developer. Managers and admins only.

    400 invalid_assignee if developer_id is unknown or not a developer.
    """
    return BugResponse.from_view(_lifecycle(request).assign(bug_id, body.developer_id, current_user))
