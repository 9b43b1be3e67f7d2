"""
auth/credentials.py -- Registration, login, and developer lookup.

These are the credential-store operations the HTTP layer calls. Each one
takes the UserStore explicitly rather than reaching for a global, so tests
can run them against an in-memory store.

Security:
  authenticate_user() always runs bcrypt, whether or not the email exists.
  Unknown email and wrong password raise the same InvalidCredentials with
  the same message, and take the same time, so neither the response body
  nor its latency reveals which accounts exist.

Layer rule: no imports from api/ or bugs/.
"""

from __future__ import annotations

import logging

from auth.models import Role, User
from auth.store import UserStore
from auth.tokens import _DUMMY_HASH, hash_password, verify_password
from core.errors import EmailAlreadyExists, InvalidCredentials, StorageFailure

logger = logging.getLogger("bugtracker.auth")


def register_user(store: UserStore, name: str, email: str, password: str, role: Role) -> User:
    """Create a new account and return the stored User.

    Raises EmailAlreadyExists if the email is already on file (exact match).
    The pre-check gives the common case a clean answer; the UNIQUE constraint
    behind UserStore.create_user() covers two registrations racing each other.
    """
    if store.get_by_email(email) is not None:
        raise EmailAlreadyExists()

    user = User(name=name, email=email, role=Role(role), hashed_password=hash_password(password))
    user_id = store.create_user(user)
    created = store.get_by_id(user_id)
    if created is None:
        raise StorageFailure("User vanished immediately after insert.")
    logger.info("Registered user_id=%s role=%s", created.id, created.role.value)
    return created


def authenticate_user(store: UserStore, email: str, password: str) -> User:
    """Check a login and return the matching User.

    Raises InvalidCredentials for an unknown email or a wrong password.
    """
    user = store.get_by_email(email)
    if user is None:
        # Equalize timing -- do NOT return early before running bcrypt
        verify_password(password, _DUMMY_HASH)
        raise InvalidCredentials()
    if not verify_password(password, user.hashed_password):
        raise InvalidCredentials()
    return user


def list_developers(store: UserStore) -> list[User]:
    """Return every user with the developer role -- the valid assignment targets."""
    return store.list_by_role(Role.developer)
