"""
auth/tokens.py -- Password hashing and the stateless session-token service.

Security design decisions:
  JWT: python-jose with HS256. Tokens are signed with SECRET_KEY and carry
       user_id, email, role, and an absolute expiry 24 hours after issuance.
       Nothing is persisted: validity is reconstructed at every request from
       the signature and the exp claim. decode_access_token() returns None on
       any failure; validate_token() turns that into InvalidToken.

  Re-resolution: validate_token() always reloads the user from the store by
       the embedded user_id. A role change applies on the next request and a
       deleted account is locked out immediately, even though the token itself
       cannot be revoked before it expires.

  Passwords: bcrypt, salted, cost factor from Settings.bcrypt_rounds.
       verify_password() relies on bcrypt.checkpw() for the comparison, never
       on comparing secrets byte-by-byte. The _DUMMY_HASH constant enables
       timing equalization in auth/credentials.authenticate_user().

  SECRET_KEY: sourced from core.config.get_settings(). The Settings class
       validates the key at startup: dev mode (DEBUG=true) auto-generates a
       random key with a warning; production mode refuses to start without one.

Layer rule: no imports from api/ or bugs/. Import from core/ is allowed --
core/ is the kernel and has no reverse dependencies.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from typing import TYPE_CHECKING, Optional

import bcrypt
from jose import JWTError, jwt

from core.config import get_settings
from core.errors import InvalidToken

if TYPE_CHECKING:
    from auth.models import User
    from auth.store import UserStore

logger = logging.getLogger("bugtracker.auth")

# ---------------------------------------------------------------------------
# Config -- read once at module load via the lru_cache singleton
# ---------------------------------------------------------------------------

_settings = get_settings()

_ALGORITHM = "HS256"

# Claims every token we issue carries. A token missing any of them was not
# minted by create_access_token() and is rejected.
_REQUIRED_CLAIMS = ("user_id", "email", "role", "exp")

# ---------------------------------------------------------------------------
# Password hashing (bcrypt -- direct usage, no passlib wrapper)
# ---------------------------------------------------------------------------


def hash_password(plain: str) -> str:
    """Return a salted bcrypt hash of the given plaintext password.

    Passwords longer than 72 bytes are truncated by bcrypt. The API layer
    caps password length (Pydantic field), which keeps inputs below the
    truncation threshold.
    """
    salt = bcrypt.gensalt(rounds=_settings.bcrypt_rounds)
    return bcrypt.hashpw(plain.encode("utf-8"), salt).decode("utf-8")


def verify_password(plain: str, hashed: str) -> bool:
    """Return True if the plaintext password matches the bcrypt hash.

    A malformed or empty hash is a mismatch, not an error.
    """
    try:
        return bcrypt.checkpw(plain.encode("utf-8"), hashed.encode("utf-8"))
    except ValueError:
        return False


# Timing equalization dummy hash.
# Computed once at module load so the first login attempt is not measurably
# slower than subsequent ones.
_DUMMY_HASH: str = hash_password("bugtracker_timing_dummy")


# ---------------------------------------------------------------------------
# JWT encode / decode
# ---------------------------------------------------------------------------


def create_access_token(user: User, expire_seconds: Optional[int] = None) -> str:
    """Encode a signed JWT with user identity and absolute expiry.

    Args:
        user:           The persisted user (id must be set).
        expire_seconds: Token lifetime in seconds. If None (default), uses
                        Settings.token_expire_seconds (24 hours). Zero or a
                        negative value mints a token that is already expired.
    """
    duration = _settings.token_expire_seconds if expire_seconds is None else expire_seconds
    now = datetime.now(timezone.utc)
    payload = {
        "sub": user.email,
        "user_id": user.id,
        "email": user.email,
        "role": user.role.value,
        "iat": now,
        "exp": now + timedelta(seconds=duration),
    }
    return jwt.encode(payload, _settings.secret_key, algorithm=_ALGORITHM)


def decode_access_token(token: str) -> dict | None:
    """Decode and verify a JWT. Returns the payload dict or None on any failure.

    Failure covers a bad signature, an expired exp claim, a malformed token,
    and a payload that lacks one of the required claims.
    """
    try:
        payload = jwt.decode(token, _settings.secret_key, algorithms=[_ALGORITHM])
    except JWTError:
        return None
    if any(claim not in payload for claim in _REQUIRED_CLAIMS):
        return None
    if not isinstance(payload["user_id"], int):
        return None
    return payload


def validate_token(store: UserStore, token: str | None) -> User:
    """Resolve a session token to the current User record.

    Raises InvalidToken if the token is missing, malformed, expired, not
    signed by us, or if the referenced user no longer exists. StorageFailure
    from the lookup propagates unchanged -- a database outage is not an
    authentication failure.
    """
    if not token:
        raise InvalidToken("Authorization token is required.")
    payload = decode_access_token(token)
    if payload is None:
        raise InvalidToken()
    user = store.get_by_id(payload["user_id"])
    if user is None:
        logger.info("Rejected token for missing user_id=%s", payload["user_id"])
        raise InvalidToken()
    return user


# ---------------------------------------------------------------------------
# Cookie helper
# ---------------------------------------------------------------------------


def set_auth_cookie(response, token: str) -> None:
    """Write the JWT access token as an httpOnly cookie on the response.

    httponly=True: JS cannot read the cookie (XSS mitigation).
    samesite="lax": cookie not sent on cross-site POST (CSRF mitigation).
    secure: only sent over HTTPS when SECURE_COOKIES=true (set in production).
    max_age: matches the JWT expiry so both expire together.
    """
    response.set_cookie(
        "access_token",
        value=token,
        httponly=True,
        samesite="lax",
        secure=_settings.secure_cookies,
        max_age=_settings.token_expire_seconds,
    )
