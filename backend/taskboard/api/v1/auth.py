"""Authentication endpoints: registration, login, token refresh and logout.

Access tokens travel in the ``Authorization: Bearer`` header. The refresh
token is only ever exchanged through an HttpOnly cookie.
"""

import re
from datetime import datetime
from typing import Annotated

import structlog
from fastapi import APIRouter, Depends, Request, Response
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import JSONResponse
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from pydantic import BaseModel, EmailStr, Field, field_validator

from taskboard.config import get_settings
from taskboard.errors import RefreshTokenExpired
from taskboard.middleware.errors import error_response
from taskboard.security import Identity, PasswordHasher, TokenCodec
from taskboard.services.auth import AuthService, SessionResult
from taskboard.store import EntityStore, StoreDep

router = APIRouter()
logger = structlog.get_logger()
settings = get_settings()
security = HTTPBearer(auto_error=False)

MAX_EMAIL_LENGTH = 255


# ============================================================================
# Schemas
# ============================================================================

class RegisterRequest(BaseModel):
    """Account registration request."""

    email: EmailStr
    password: str = Field(..., min_length=8, max_length=128)
    name: str | None = Field(None, min_length=1, max_length=100)

    @field_validator("email", mode="before")
    @classmethod
    def normalize_email(cls, value):
        if isinstance(value, str):
            value = value.strip()
            if len(value) > MAX_EMAIL_LENGTH:
                raise ValueError(f"Email must be at most {MAX_EMAIL_LENGTH} characters.")
        return value

    @field_validator("name", mode="before")
    @classmethod
    def strip_name(cls, value):
        return value.strip() if isinstance(value, str) else value

    @field_validator("password")
    @classmethod
    def password_strength(cls, value: str) -> str:
        if not re.search(r"[A-Z]", value):
            raise ValueError("Password must contain at least one uppercase letter.")
        if not re.search(r"[a-z]", value):
            raise ValueError("Password must contain at least one lowercase letter.")
        if not re.search(r"[0-9]", value):
            raise ValueError("Password must contain at least one digit.")
        return value


class LoginRequest(BaseModel):
    """Email/password login request."""

    email: EmailStr
    password: str = Field(..., min_length=1)

    @field_validator("email", mode="before")
    @classmethod
    def strip_whitespace(cls, value):
        return value.strip() if isinstance(value, str) else value


class UserResponse(BaseModel):
    """Public user information. Never includes the password hash."""

    id: str
    email: str
    name: str | None
    created_at: datetime

    class Config:
        from_attributes = True


class AuthResponse(BaseModel):
    """Access token plus the authenticated user."""

    access_token: str
    token_type: str = "bearer"
    expires_in: int
    user: UserResponse


class MessageResponse(BaseModel):
    """Outcome of a mutation that returns no entity."""

    success: bool
    message: str


# ============================================================================
# Dependencies
# ============================================================================

def get_token_codec(request: Request) -> TokenCodec:
    return request.app.state.tokens


def get_password_hasher(request: Request) -> PasswordHasher:
    return request.app.state.hasher


def get_auth_service(
    store: StoreDep,
    hasher: Annotated[PasswordHasher, Depends(get_password_hasher)],
    tokens: Annotated[TokenCodec, Depends(get_token_codec)],
) -> AuthService:
    return AuthService(store, hasher, tokens)


async def get_caller(
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(security)],
    tokens: Annotated[TokenCodec, Depends(get_token_codec)],
) -> Identity | None:
    """Decode the bearer token into a caller identity.

    Missing or invalid tokens yield None; the services decide whether an
    anonymous caller is acceptable.
    """
    if not credentials:
        return None
    return tokens.verify_access(credentials.credentials)


# Type aliases for dependency injection
Caller = Annotated[Identity | None, Depends(get_caller)]
AuthServiceDep = Annotated[AuthService, Depends(get_auth_service)]


# ============================================================================
# Helpers
# ============================================================================

def set_refresh_cookie(response: Response, token: str) -> None:
    response.set_cookie(
        key=settings.refresh_cookie_name,
        value=token,
        max_age=settings.refresh_token_max_age,
        path="/",
        httponly=True,
        secure=settings.refresh_cookie_secure,
        samesite="lax",
    )


def clear_refresh_cookie(response: Response) -> None:
    response.delete_cookie(key=settings.refresh_cookie_name, path="/")


def session_response(response: Response, session: SessionResult, store: EntityStore) -> AuthResponse:
    set_refresh_cookie(response, session.refresh_token)
    with store.atomic():
        user = UserResponse.model_validate(session.user)
    return AuthResponse(
        access_token=session.access_token,
        expires_in=settings.jwt_access_token_expire_minutes * 60,
        user=user,
    )


# ============================================================================
# Endpoints
# ============================================================================

@router.post("/register", response_model=AuthResponse, status_code=201)
async def register(
    body: RegisterRequest,
    response: Response,
    service: AuthServiceDep,
) -> AuthResponse:
    """Create an account and start a session."""
    session = await run_in_threadpool(service.register, body.email, body.password, body.name)
    return session_response(response, session, service.store)


@router.post("/login", response_model=AuthResponse)
async def login(
    body: LoginRequest,
    response: Response,
    service: AuthServiceDep,
) -> AuthResponse:
    """Start a session for valid credentials."""
    session = await run_in_threadpool(service.login, body.email, body.password)
    return session_response(response, session, service.store)


@router.post("/refresh", response_model=AuthResponse)
async def refresh(
    request: Request,
    response: Response,
    service: AuthServiceDep,
) -> AuthResponse | JSONResponse:
    """Rotate the refresh cookie and issue a new access token."""
    token = request.cookies.get(settings.refresh_cookie_name)
    try:
        session = service.refresh(token)
    except RefreshTokenExpired as exc:
        # A dead refresh cookie is cleared so the client stops sending it
        failed = error_response(exc.code, exc.message, exc.status_code)
        clear_refresh_cookie(failed)
        return failed
    return session_response(response, session, service.store)


@router.post("/logout", response_model=MessageResponse)
async def logout(
    request: Request,
    response: Response,
    service: AuthServiceDep,
) -> MessageResponse:
    """End the session by revoking and clearing the refresh cookie."""
    service.logout(request.cookies.get(settings.refresh_cookie_name))
    clear_refresh_cookie(response)
    return MessageResponse(success=True, message="Logged out successfully.")


@router.get("/me", response_model=UserResponse | None)
async def me(caller: Caller, service: AuthServiceDep) -> UserResponse | None:
    """The authenticated user, or null for anonymous callers."""
    with service.store.atomic():
        user = service.get_me(caller)
        return UserResponse.model_validate(user) if user is not None else None
