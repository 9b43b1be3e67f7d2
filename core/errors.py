"""
core/errors.py -- Domain error kinds for BugTracker.

Every failure the core can report is a subclass of BugTrackerError. Each kind
carries a stable machine-readable code and a default user-facing message; the
api/ layer maps kinds to HTTP status codes in one place (api/main.py exception
handlers), so auth/ and bugs/ never import FastAPI to signal a failure.

Kinds are deliberately distinct: "not found" and "unauthorized" are never
coalesced, and InvalidAssignee is not an authorization failure.

StorageFailure and IntegrityViolation wrap internal problems. Their message
is generic; the original exception is chained (raise ... from exc) so it
reaches the server log but never the response body.

Layer rule: core/ is the kernel. This module may not import from api/,
auth/, or bugs/.
"""

from __future__ import annotations


class BugTrackerError(Exception):
    """Base class for all domain errors."""

    code: str = "error"
    message: str = "Request failed."

    def __init__(self, message: str | None = None) -> None:
        super().__init__(message or self.message)
        self.message = message or self.message


class NotFound(BugTrackerError):
    code = "not_found"
    message = "Resource not found."


class Unauthorized(BugTrackerError):
    """The actor lacks permission for the action on this resource."""

    code = "forbidden"
    message = "Not authorized to perform this action."


class EmailAlreadyExists(BugTrackerError):
    code = "email_exists"
    message = "Email already exists."


class InvalidCredentials(BugTrackerError):
    """Login failed. Unknown email and wrong password are reported identically."""

    code = "bad_credentials"
    message = "Invalid email or password."


class InvalidAssignee(BugTrackerError):
    """Assignment target is missing or is not a developer."""

    code = "invalid_assignee"
    message = "Bugs can only be assigned to an existing developer."


class NoChanges(BugTrackerError):
    """A partial update that names no field to change."""

    code = "no_changes"
    message = "No fields to update."


class InvalidToken(BugTrackerError):
    code = "invalid_token"
    message = "Invalid or expired token."


class RegistrationDisabled(BugTrackerError):
    code = "registration_disabled"
    message = "Self-registration is disabled."


class StorageFailure(BugTrackerError):
    code = "storage_error"
    message = "A storage error occurred."


class IntegrityViolation(BugTrackerError):
    """Stored data references a record that no longer exists."""

    code = "internal_error"
    message = "An unexpected error occurred."
