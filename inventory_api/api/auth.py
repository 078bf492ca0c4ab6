"""Authentication API endpoints."""

import logging
import time
from collections import defaultdict

from fastapi import APIRouter, Depends, HTTPException, Request, status

from inventory_api.api.deps import (
    get_logout_coordinator,
    get_session_registry,
    get_user_store,
    get_user_token_issuer,
    require,
)
from inventory_api.core import settings
from inventory_api.core.request_utils import extract_bearer_token, get_client_ip, get_user_agent
from inventory_api.schemas.auth import (
    AdminAccessResponse,
    AuthResponse,
    LoginRequest,
    LogoutResponse,
    RoleResponse,
    SignupRequest,
    UserResponse,
)
from inventory_api.services.auth import AuthService
from inventory_api.services.authorization import Principal
from inventory_api.services.errors import (
    EmailAlreadyRegisteredError,
    InvalidCredentialsError,
    UserInactiveError,
    UserNotFoundError,
)
from inventory_api.services.logout import LogoutCoordinator
from inventory_api.services.session_registry import SessionRegistry
from inventory_api.services.stores import UserStore
from inventory_api.services.tokens import TokenIssuer

logger = logging.getLogger(__name__)

# Rate limiting for public auth endpoints, keyed by "<endpoint>:<client ip>"
_auth_attempts: dict[str, list[float]] = defaultdict(list)
_RATE_LIMIT_WINDOW = 60  # 1-minute window


def _check_rate_limit(endpoint: str, client_ip: str, max_attempts: int) -> None:
    """Reject the request if the client exceeded the endpoint's attempt budget."""
    key = f"{endpoint}:{client_ip}"
    now = time.monotonic()
    _auth_attempts[key] = [t for t in _auth_attempts[key] if now - t < _RATE_LIMIT_WINDOW]
    if len(_auth_attempts[key]) >= max_attempts:
        logger.warning(
            f"{endpoint} rate limit exceeded for {client_ip}", extra={"client_ip": client_ip}
        )
        raise HTTPException(
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            detail="Too many requests. Please try again later.",
        )


def _record_attempt(endpoint: str, client_ip: str) -> None:
    _auth_attempts[f"{endpoint}:{client_ip}"].append(time.monotonic())


router = APIRouter(prefix="/auth", tags=["auth"])


def get_auth_service(
    users: UserStore = Depends(get_user_store),
    issuer: TokenIssuer = Depends(get_user_token_issuer),
    registry: SessionRegistry = Depends(get_session_registry),
) -> AuthService:
    """Dependency to get auth service."""
    return AuthService(users, issuer, registry)


@router.post(
    "/signup",
    name="auth.signup",
    response_model=AuthResponse,
    status_code=status.HTTP_201_CREATED,
)
async def signup(
    payload: SignupRequest,
    request: Request,
    auth_service: AuthService = Depends(get_auth_service),
    _: None = Depends(require("auth.signup")),
) -> AuthResponse:
    """Register a new user and start their session.

    Rate limited to 3 attempts per minute per IP.
    """
    client_ip = get_client_ip(request) or "unknown"
    _check_rate_limit("signup", client_ip, settings.signup_rate_limit)
    _record_attempt("signup", client_ip)

    try:
        issued = await auth_service.signup(
            **payload.model_dump(),
            user_agent=get_user_agent(request),
            ip_address=client_ip,
        )
    except EmailAlreadyRegisteredError as e:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Email is already registered",
        ) from e

    return AuthResponse(
        message="User registered successfully",
        user=UserResponse.model_validate(issued.principal),
        token=issued.token,
        expires_in=issued.expires_in,
    )


@router.post("/login", name="auth.login", response_model=AuthResponse)
async def login(
    payload: LoginRequest,
    request: Request,
    auth_service: AuthService = Depends(get_auth_service),
    _: None = Depends(require("auth.login")),
) -> AuthResponse:
    """Authenticate and get a JWT.

    Any session the user already had is superseded by the new token.
    Rate limited to 5 failed attempts per minute per IP.
    """
    client_ip = get_client_ip(request) or "unknown"
    _check_rate_limit("login", client_ip, settings.login_rate_limit)

    try:
        issued = await auth_service.login(
            payload.email,
            payload.password,
            user_agent=get_user_agent(request),
            ip_address=client_ip,
        )
    except (InvalidCredentialsError, UserInactiveError) as e:
        _record_attempt("login", client_ip)
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid credentials",
        ) from e

    return AuthResponse(
        message="Login successful",
        user=UserResponse.model_validate(issued.principal),
        token=issued.token,
        expires_in=issued.expires_in,
    )


@router.post("/logout", name="auth.logout", response_model=LogoutResponse)
async def logout(
    request: Request,
    principal: Principal | None = Depends(require("auth.logout")),
    coordinator: LogoutCoordinator = Depends(get_logout_coordinator),
) -> LogoutResponse:
    """Invalidate the current session.

    Always answers 200: a missing, expired, superseded or garbled token is
    reported as logged out, after a best-effort invalidation attempt.
    """
    token = extract_bearer_token(request)
    try:
        if principal is not None:
            ack = coordinator.logout(principal.id, token)
        else:
            ack = coordinator.logout_with_token(token)
    except Exception as e:
        logger.error(f"Unexpected logout failure: {e}")
        ack = coordinator.logout_with_token(None)

    if ack.failure is not None:
        logger.error(f"Logout acknowledged despite failure: {ack.failure.detail}")
    return LogoutResponse(message=ack.message, logout_time=ack.logout_time)


@router.get("/role", name="auth.role", response_model=RoleResponse)
async def get_user_role(
    principal: Principal = Depends(require("auth.role")),
    auth_service: AuthService = Depends(get_auth_service),
) -> RoleResponse:
    """Return the role of the authenticated user."""
    try:
        role = await auth_service.get_user_role(principal.id)
    except UserNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found") from e
    return RoleResponse(role=role)


@router.get("/admin", name="auth.admin", response_model=AdminAccessResponse)
async def admin_only(
    principal: Principal = Depends(require("auth.admin")),
) -> AdminAccessResponse:
    """Endpoint reachable by administrators only."""
    return AdminAccessResponse(
        message="You have access to admin content",
        user_id=principal.id,
    )


def cleanup_stale_rate_limit_entries() -> int:
    """Drop rate-limit buckets with no attempts inside the window.

    Returns:
        Number of buckets removed
    """
    now = time.monotonic()
    stale = [
        key
        for key, attempts in _auth_attempts.items()
        if not any(now - t < _RATE_LIMIT_WINDOW for t in attempts)
    ]
    for key in stale:
        del _auth_attempts[key]
    return len(stale)
