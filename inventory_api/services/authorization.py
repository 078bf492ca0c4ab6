"""Two-stage request authorization pipeline.

Stage one (authentication) turns a bearer token into a ``Principal``:

    no token -> token extracted -> claims verified -> session checked
             -> principal loaded -> principal attached

Stage two (role authorization) compares the principal's role with the
roles the operation declares. Both stages return ``AuthFailure`` values
instead of raising; translating them to HTTP responses is the caller's job.
"""

import asyncio
import enum
import logging
from dataclasses import dataclass, field
from typing import Any, Protocol

from inventory_api.core.logging import token_fingerprint
from inventory_api.models.user import Role
from inventory_api.services.errors import (
    AuthErrorKind,
    AuthFailure,
    TokenExpiredError,
    TokenError,
)
from inventory_api.services.session_registry import SessionRegistry
from inventory_api.services.tokens import TokenIssuer, TokenKind

logger = logging.getLogger(__name__)

DEFAULT_LOOKUP_TIMEOUT_SECONDS = 5.0


class Access(str, enum.Enum):
    """Who may call an operation."""

    PUBLIC = "public"
    USER = "user"
    CLIENT = "client"
    # Authenticates when it can, but never rejects
    LOGOUT = "logout"


@dataclass(frozen=True)
class RoutePolicy:
    """Access rule declared for one operation.

    ``roles`` only applies to USER access; empty means any authenticated
    user.
    """

    access: Access
    roles: frozenset[Role] = field(default_factory=frozenset)

    @property
    def is_public(self) -> bool:
        return self.access == Access.PUBLIC


@dataclass(frozen=True)
class Principal:
    """The authenticated caller attached to a request."""

    id: str
    kind: TokenKind
    role: str
    email: str = ""
    token: str | None = None


class PrincipalStore(Protocol):
    async def get_by_id(self, principal_id: str) -> Any: ...


class AuthenticationStage:
    """Resolve the caller of a request from its bearer token."""

    def __init__(
        self,
        issuer: TokenIssuer,
        registry: SessionRegistry,
        store: PrincipalStore,
        *,
        enforce_single_session: bool = True,
        lookup_timeout: float = DEFAULT_LOOKUP_TIMEOUT_SECONDS,
    ):
        self.issuer = issuer
        self.registry = registry
        self.store = store
        self.enforce_single_session = enforce_single_session
        self.lookup_timeout = lookup_timeout

    @property
    def kind(self) -> TokenKind:
        return self.issuer.kind

    async def authenticate(
        self,
        token: str | None,
        policy: RoutePolicy,
        resource: str | None = None,
    ) -> Principal | AuthFailure | None:
        """Run the authentication stage for one request.

        Returns:
            None for public operations (nothing to resolve), the resolved
            Principal, or an AuthFailure describing the rejection.
        """
        if policy.is_public:
            return None

        if not token:
            return self._reject(AuthErrorKind.UNAUTHENTICATED, "No token provided", resource)

        try:
            claims = self.issuer.verify(token)
        except TokenExpiredError:
            return self._reject(AuthErrorKind.TOKEN_EXPIRED, "Token has expired", resource)
        except TokenError as e:
            return self._reject(AuthErrorKind.TOKEN_MALFORMED, str(e), resource)

        if self.registry.is_token_blacklisted(token):
            return self._reject(
                AuthErrorKind.SESSION_INVALIDATED,
                f"Token {token_fingerprint(token)} has been logged out",
                resource,
            )

        if self.enforce_single_session and not self.registry.is_session_active(claims.sub, token):
            return self._reject(
                AuthErrorKind.SESSION_INVALIDATED,
                f"The session has expired or been logged out (user {claims.sub})",
                resource,
            )

        try:
            record = await asyncio.wait_for(
                self.store.get_by_id(claims.sub), timeout=self.lookup_timeout
            )
        except TimeoutError:
            return self._reject(
                AuthErrorKind.STORE_UNAVAILABLE,
                f"{self.kind.value} lookup timed out after {self.lookup_timeout}s",
                resource,
            )
        except Exception as e:
            logger.exception(f"{self.kind.value} lookup failed")
            return self._reject(AuthErrorKind.STORE_UNAVAILABLE, str(e), resource)

        if record is None:
            return self._reject(
                AuthErrorKind.PRINCIPAL_NOT_FOUND,
                f"{self.kind.value} {claims.sub} not found",
                resource,
            )
        if not record.is_active:
            return self._reject(
                AuthErrorKind.PRINCIPAL_INACTIVE,
                f"{self.kind.value} {claims.sub} is inactive",
                resource,
            )

        return Principal(
            id=claims.sub,
            kind=claims.kind,
            role=claims.role,
            email=claims.email,
            token=token,
        )

    def _reject(self, kind: AuthErrorKind, detail: str, resource: str | None) -> AuthFailure:
        logger.warning(f"Authentication failed for {resource or 'request'}: {detail}")
        return AuthFailure(kind=kind, detail=detail, resource=resource)


class RoleAuthorizationStage:
    """Pure role check; never touches the session registry."""

    def authorize(
        self,
        principal: Principal | None,
        policy: RoutePolicy,
        resource: str | None = None,
    ) -> AuthFailure | None:
        """Return an AuthFailure when the principal lacks a required role."""
        if not policy.roles:
            return None

        if principal is None or not principal.role:
            failure = AuthFailure(
                kind=AuthErrorKind.ROLE_FORBIDDEN,
                detail="No role information found. You may not be authenticated.",
                resource=resource,
            )
        elif principal.role in {role.value for role in policy.roles}:
            return None
        else:
            failure = AuthFailure(
                kind=AuthErrorKind.ROLE_FORBIDDEN,
                detail=f"Role {principal.role} does not have access to this resource",
                resource=resource,
            )

        required = sorted(role.value for role in policy.roles)
        logger.warning(
            f"Forbidden: {failure.detail} (resource={resource}, required roles={required})"
        )
        return failure
