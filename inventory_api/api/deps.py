"""FastAPI dependencies wiring the authorization pipeline into routes.

This is the only place pipeline failures become HTTP responses:

- authentication failures -> 401 with a generic detail
- role failures -> 403 naming the denied role
- registry/store outages -> 503

Logout routes never get an error here; see ``require``.
"""

import logging
from collections.abc import Awaitable, Callable

from fastapi import Depends, HTTPException, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from inventory_api.api.policies import get_policy
from inventory_api.core import get_db, settings
from inventory_api.core.request_utils import extract_bearer_token
from inventory_api.services.authorization import (
    Access,
    AuthenticationStage,
    Principal,
    RoleAuthorizationStage,
)
from inventory_api.services.errors import AuthFailure
from inventory_api.services.logout import LogoutCoordinator
from inventory_api.services.session_registry import SessionRegistry
from inventory_api.services.stores import ClientStore, UserStore
from inventory_api.services.tokens import TokenIssuer

logger = logging.getLogger(__name__)

_role_stage = RoleAuthorizationStage()


def get_session_registry(request: Request) -> SessionRegistry:
    return request.app.state.session_registry


def get_user_token_issuer(request: Request) -> TokenIssuer:
    return request.app.state.user_token_issuer


def get_client_token_issuer(request: Request) -> TokenIssuer:
    return request.app.state.client_token_issuer


def get_user_store(db: AsyncSession = Depends(get_db)) -> UserStore:
    return UserStore(db)


def get_client_store(db: AsyncSession = Depends(get_db)) -> ClientStore:
    return ClientStore(db)


def get_logout_coordinator(
    registry: SessionRegistry = Depends(get_session_registry),
    issuer: TokenIssuer = Depends(get_user_token_issuer),
) -> LogoutCoordinator:
    return LogoutCoordinator(registry, issuer)


def failure_to_http(failure: AuthFailure) -> HTTPException:
    """Translate a pipeline failure into the response the caller sees."""
    if failure.is_unavailable:
        return HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Authentication service temporarily unavailable",
        )
    if failure.is_unauthorized:
        # Expired, malformed and superseded tokens look the same to callers
        return HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Unauthorized",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=failure.detail)


def require(operation_id: str) -> Callable[..., Awaitable[Principal | None]]:
    """Build the dependency enforcing ``operation_id``'s access policy.

    The policy is resolved here, at import time, so a route referring to
    an undeclared operation fails before the app can start.

    For LOGOUT operations an authentication failure resolves to None
    instead of an error, leaving the endpoint to fall back to best-effort
    invalidation.
    """
    policy = get_policy(operation_id)

    async def dependency(
        request: Request,
        registry: SessionRegistry = Depends(get_session_registry),
        user_issuer: TokenIssuer = Depends(get_user_token_issuer),
        client_issuer: TokenIssuer = Depends(get_client_token_issuer),
        users: UserStore = Depends(get_user_store),
        clients: ClientStore = Depends(get_client_store),
    ) -> Principal | None:
        if policy.access == Access.CLIENT:
            stage = AuthenticationStage(
                client_issuer,
                registry,
                clients,
                enforce_single_session=False,
                lookup_timeout=settings.user_store_timeout_seconds,
            )
        else:
            stage = AuthenticationStage(
                user_issuer,
                registry,
                users,
                lookup_timeout=settings.user_store_timeout_seconds,
            )

        outcome = await stage.authenticate(extract_bearer_token(request), policy, operation_id)
        if isinstance(outcome, AuthFailure):
            if policy.access == Access.LOGOUT:
                logger.debug(f"Logout with unusable token ({outcome.kind.value}); falling back")
                return None
            raise failure_to_http(outcome)

        denial = _role_stage.authorize(outcome, policy, operation_id)
        if denial is not None:
            raise failure_to_http(denial)

        request.state.principal = outcome
        return outcome

    return dependency
