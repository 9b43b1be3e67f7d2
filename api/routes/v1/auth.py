"""
api/routes/v1/auth.py -- Registration, login, and user lookup endpoints.

Routes:
  POST /api/v1/auth/register    -- create an account; 201 with the public user
  POST /api/v1/auth/login       -- email/password login; returns JWT, sets cookie
  POST /api/v1/auth/logout      -- clears the cookie; 200
  GET  /api/v1/auth/me          -- current user (requires auth)
  GET  /api/v1/auth/developers  -- users with the developer role (assignment targets)

Security:
  POST /login and POST /register are rate-limited per IP (Settings).
  authenticate_user() provides timing equalization -- use it, never inline.
  Login failures return one generic "bad_credentials" error whether the email
  is unknown or the password is wrong.
  Cache-Control: no-store on login and register responses.

Domain errors (EmailAlreadyExists, InvalidCredentials, ...) are raised, not
converted here; api/main.py maps them to status codes and the error envelope.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse

from api.limiter import limiter
from api.models import LoginRequest, LoginResponse, MessageResponse, RegisterRequest, RegisterResponse, UserResponse
from auth.credentials import authenticate_user, list_developers, register_user
from auth.dependencies import get_current_user
from auth.models import User
from auth.store import UserStore
from auth.tokens import create_access_token, set_auth_cookie
from bugs.projection import project_user
from core.config import get_settings
from core.errors import RegistrationDisabled

# Auth policy:
# - POST /api/v1/auth/register:    public -- gated by Settings.registration_enabled
# - POST /api/v1/auth/login:       public -- login endpoint must be unauthenticated
# - POST /api/v1/auth/logout:      public -- clearing a cookie needs no prior auth
# - GET  /api/v1/auth/developers:  public -- the frontend loads it before login state is known
# - GET  /api/v1/auth/me:          requires auth (get_current_user)
router = APIRouter()

_settings = get_settings()


def _user_response(user: User) -> UserResponse:
    return UserResponse.from_view(project_user(user))


# ---------------------------------------------------------------------------
# Public endpoints
# ---------------------------------------------------------------------------


@limiter.limit(_settings.register_rate_limit)
@router.post("/auth/register", response_model=RegisterResponse, status_code=201)
def register(request: Request, body: RegisterRequest) -> JSONResponse:
    """Create a new account with the requested role.

    The password is hashed with bcrypt before it reaches the store. Returns
    409 email_exists if the email is already registered.
    """
    if not _settings.registration_enabled:
        raise RegistrationDisabled()
    user_store: UserStore = request.app.state.user_store
    user = register_user(user_store, body.name, body.email, body.password, body.role)
    resp = JSONResponse(
        status_code=201,
        content=RegisterResponse(user=_user_response(user)).model_dump(mode="json"),
    )
    resp.headers["Cache-Control"] = "no-store"
    return resp


@limiter.limit(_settings.login_rate_limit)  # brute-force mitigation -- must be ABOVE @router to preserve FastAPI introspection
@router.post("/auth/login", response_model=LoginResponse)
def login(request: Request, body: LoginRequest) -> JSONResponse:
    """Authenticate with email and password; return a 24h JWT and set it as a cookie.

    Uses authenticate_user() which includes timing equalization. Do NOT
    inline get_by_email() + verify_password() -- that re-introduces the
    timing attack.
    """
    user_store: UserStore = request.app.state.user_store
    user = authenticate_user(user_store, body.email, body.password)

    token = create_access_token(user)
    resp = JSONResponse(
        status_code=200,
        content=LoginResponse(
            token=token,
            token_type="bearer",  # noqa: S106 # nosec B106 -- OAuth token type, not a password
            expires_in=_settings.token_expire_seconds,
            user=_user_response(user),
        ).model_dump(mode="json"),
    )
    set_auth_cookie(resp, token)
    resp.headers["Cache-Control"] = "no-store"
    return resp


@router.post("/auth/logout", response_model=MessageResponse)
def logout() -> JSONResponse:
    """Clear the JWT cookie.

    Tokens are stateless, so a copy of the token held elsewhere (e.g. in a
    Bearer header) stays valid until it expires.
    """
    resp = JSONResponse(content={"message": "Logged out."})
    resp.delete_cookie("access_token")
    return resp


@router.get("/auth/developers", response_model=list[UserResponse])
def developers(request: Request) -> list[UserResponse]:
    """Return every developer -- the valid targets for POST /bugs/{id}/assign."""
    user_store: UserStore = request.app.state.user_store
    return [_user_response(u) for u in list_developers(user_store)]


# ---------------------------------------------------------------------------
# Authenticated endpoints
# ---------------------------------------------------------------------------


@router.get("/auth/me", response_model=UserResponse)
def me(current_user: User = Depends(get_current_user)) -> UserResponse:
    """Return the public view of the currently authenticated user."""
    return _user_response(current_user)
