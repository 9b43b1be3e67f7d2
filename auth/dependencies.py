"""
auth/dependencies.py -- FastAPI Depends() helpers for authentication.

The session token is read from two places, in priority order:
  1. Authorization header -- "Bearer <token>" (the SPA frontend sends this).
     A bare token without the "Bearer " prefix is accepted as well.
  2. JWT cookie ("access_token") -- set by POST /auth/login for browser clients.

get_current_user() resolves the token to the current User via
auth.tokens.validate_token() and raises InvalidToken on failure; the
exception handler in api/main.py turns that into a 401. The resolved User is
the explicit actor every bug operation receives -- there is no ambient
"current user" lookup anywhere below the route layer.

Layer rule: no imports from api/ or bugs/.
  auth/dependencies.py may import from fastapi (for Request) because this
  module is part of the FastAPI dependency injection system.
"""

from __future__ import annotations

from fastapi import Request

from auth.models import User
from auth.store import UserStore
from auth.tokens import validate_token


def _extract_token(request: Request) -> str | None:
    """Return the raw token from the Authorization header or the cookie, if any."""
    auth_header = request.headers.get("Authorization", "").strip()
    if auth_header:
        scheme, _, credentials = auth_header.partition(" ")
        # Auth scheme names are case-insensitive (RFC 7235).
        if scheme.lower() == "bearer":
            return credentials.strip()
        return auth_header
    return request.cookies.get("access_token")


def get_current_user(request: Request) -> User:
    """Require authentication. Raises InvalidToken (HTTP 401) if not authenticated.

    Use as a FastAPI dependency:
        @router.get("/protected")
        def route(user: User = Depends(get_current_user)): ...
    """
    user_store: UserStore = request.app.state.user_store
    return validate_token(user_store, _extract_token(request))
