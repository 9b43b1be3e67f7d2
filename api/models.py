"""
API request and response models for BugTracker REST endpoints.

These Pydantic v2 models define the HTTP transport contract for the API layer.
They are intentionally separate from the dataclasses in auth/models.py and
bugs/models.py, which own the internal domain representation. The enums are
shared so a role, status, or priority has one spelling everywhere.

Separation of concerns: domain dataclasses = domain truth; api/ models = API contract.
"""

from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from auth.models import Role
from bugs.models import BugChanges, BugDraft, BugView, Priority, Status, UserView

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

# Deliberately loose: one "@", no whitespace, a dot in the domain part.
EMAIL_PATTERN = r"^[^@\s]+@[^@\s]+\.[^@\s]+$"


# ---------------------------------------------------------------------------
# Auth -- request models
# ---------------------------------------------------------------------------


class RegisterRequest(BaseModel):
    """Request body for POST /api/v1/auth/register.

    name and email are trimmed; the password is taken byte for byte, so
    surrounding spaces are part of the secret.
    """

    name: str = Field(min_length=1, max_length=255)
    email: str = Field(min_length=3, max_length=255, pattern=EMAIL_PATTERN)
    # 72 bytes is bcrypt's input ceiling; longer passwords would be truncated.
    password: str = Field(min_length=6, max_length=72)
    role: Role

    @field_validator("password")
    @classmethod
    def password_fits_bcrypt(cls, value: str) -> str:
        """Reject passwords over 72 bytes once encoded; multibyte characters count extra."""
        if len(value.encode("utf-8")) > 72:
            raise ValueError("Password must be at most 72 bytes when UTF-8 encoded.")
        return value

    @field_validator("name", "email", mode="before")
    @classmethod
    def strip_identity(cls, value):
        """Trim name and email before the length and pattern checks run."""
        return value.strip() if isinstance(value, str) else value


class LoginRequest(BaseModel):
    """Request body for POST /api/v1/auth/login.

    The email is trimmed like on registration; the password is not.
    """

    email: str = Field(min_length=1, max_length=255)
    password: str = Field(min_length=1, max_length=255)

    @field_validator("email", mode="before")
    @classmethod
    def strip_email(cls, value):
        return value.strip() if isinstance(value, str) else value


# ---------------------------------------------------------------------------
# Auth -- response models
# ---------------------------------------------------------------------------


class UserResponse(BaseModel):
    """Public view of a user. The password hash is never part of this model."""

    model_config = ConfigDict(frozen=True)

    id: int
    name: str
    email: str
    role: Role

    @classmethod
    def from_view(cls, view: UserView) -> "UserResponse":
        return cls(id=view.id, name=view.name, email=view.email, role=view.role)


class RegisterResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    user: UserResponse


class LoginResponse(BaseModel):
    """Response for POST /api/v1/auth/login."""

    model_config = ConfigDict(frozen=True)

    token: str
    token_type: str = "bearer"
    expires_in: int
    user: UserResponse


# ---------------------------------------------------------------------------
# Bugs -- request models
# ---------------------------------------------------------------------------


class BugCreate(BaseModel):
    """Request body for POST /api/v1/bugs.

    status is accepted for client compatibility but ignored: new bugs are
    always created open. Any value is allowed, including ones that are not
    a known Status, so an old or foreign client cannot fail the request
    with it.
    """

    model_config = ConfigDict(str_strip_whitespace=True)

    title: str = Field(min_length=1, max_length=255)
    description: str = Field(min_length=1, max_length=10_000)
    priority: Priority
    status: Any = None

    def to_draft(self) -> BugDraft:
        return BugDraft(
            title=self.title,
            description=self.description,
            priority=self.priority,
        )


class BugUpdate(BaseModel):
    """Request body for PUT /api/v1/bugs/{bug_id}.

    Every field is optional. An omitted (or null) field is left unchanged;
    an empty string is a validation error rather than "no change".
    """

    model_config = ConfigDict(str_strip_whitespace=True)

    title: Optional[str] = Field(default=None, min_length=1, max_length=255)
    description: Optional[str] = Field(default=None, min_length=1, max_length=10_000)
    priority: Optional[Priority] = None

    def to_changes(self) -> BugChanges:
        return BugChanges(title=self.title, description=self.description, priority=self.priority)


class BugStatusUpdate(BaseModel):
    """Request body for PATCH /api/v1/bugs/{bug_id}/status."""

    status: Status


class BugAssign(BaseModel):
    """Request body for POST /api/v1/bugs/{bug_id}/assign."""

    developer_id: int = Field(ge=1)


# ---------------------------------------------------------------------------
# Bugs -- response models
# ---------------------------------------------------------------------------


class BugResponse(BaseModel):
    """A bug with reporter and assignee resolved to public user views."""

    model_config = ConfigDict(frozen=True)

    id: int
    title: str
    description: str
    status: Status
    priority: Priority
    reported_by: UserResponse
    assigned_to: Optional[UserResponse] = None
    created_at: str
    updated_at: str

    @classmethod
    def from_view(cls, view: BugView) -> "BugResponse":
        """Build a BugResponse from a projected BugView.

        Factory Method: the mapping lives here, colocated with the output
        model, rather than scattered across route handlers.
        """
        return cls(
            id=view.id,
            title=view.title,
            description=view.description,
            status=view.status,
            priority=view.priority,
            reported_by=UserResponse.from_view(view.reported_by),
            assigned_to=UserResponse.from_view(view.assigned_to) if view.assigned_to else None,
            created_at=view.created_at,
            updated_at=view.updated_at,
        )


class MessageResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    message: str


# ---------------------------------------------------------------------------
# Errors and health
# ---------------------------------------------------------------------------


class ErrorDetail(BaseModel):
    """Machine-readable error payload."""

    model_config = ConfigDict(frozen=True)

    code: str
    message: str
    detail: Optional[str] = None


class ErrorResponse(BaseModel):
    """Top-level error envelope returned on 4xx/5xx responses."""

    model_config = ConfigDict(frozen=True)

    error: ErrorDetail


class HealthResponse(BaseModel):
    """Response for GET /api/v1/health."""

    model_config = ConfigDict(frozen=True)

    status: str = "ok"
    version: str
