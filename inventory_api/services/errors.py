"""Authentication error taxonomy.

Service code raises the ``AuthError`` subclasses. The authorization
pipeline reports failures as ``AuthFailure`` values carrying an
``AuthErrorKind``; the HTTP layer decides the status code from the kind.
"""

import enum
from dataclasses import dataclass


class AuthError(Exception):
    """Base authentication error."""

    pass


class InvalidCredentialsError(AuthError):
    """Invalid email or password."""

    pass


class EmailAlreadyRegisteredError(AuthError):
    """Signup attempted with an email that already has an account."""

    pass


class UserInactiveError(AuthError):
    """User account is deactivated."""

    pass


class UserNotFoundError(AuthError):
    """No user with the requested id."""

    pass


class ClientNotFoundError(AuthError):
    """No active client with the requested document."""

    pass


class TokenError(AuthError):
    """JWT token error."""

    pass


class TokenExpiredError(TokenError):
    """JWT token has expired."""

    pass


class InvalidTokenError(TokenError):
    """JWT token is malformed, badly signed, or of the wrong kind."""

    pass


class AuthErrorKind(str, enum.Enum):
    """Why a request was not allowed through the pipeline."""

    UNAUTHENTICATED = "unauthenticated"
    INVALID_CREDENTIALS = "invalid_credentials"
    EMAIL_ALREADY_REGISTERED = "email_already_registered"
    TOKEN_EXPIRED = "token_expired"
    TOKEN_MALFORMED = "token_malformed"
    SESSION_INVALIDATED = "session_invalidated"
    PRINCIPAL_NOT_FOUND = "principal_not_found"
    PRINCIPAL_INACTIVE = "principal_inactive"
    ROLE_FORBIDDEN = "role_forbidden"
    REGISTRY_UNAVAILABLE = "registry_unavailable"
    STORE_UNAVAILABLE = "store_unavailable"


# Kinds reported to callers as a plain 401 with no further distinction
UNAUTHORIZED_KINDS = frozenset(
    {
        AuthErrorKind.UNAUTHENTICATED,
        AuthErrorKind.INVALID_CREDENTIALS,
        AuthErrorKind.TOKEN_EXPIRED,
        AuthErrorKind.TOKEN_MALFORMED,
        AuthErrorKind.SESSION_INVALIDATED,
        AuthErrorKind.PRINCIPAL_NOT_FOUND,
        AuthErrorKind.PRINCIPAL_INACTIVE,
    }
)

UNAVAILABLE_KINDS = frozenset({AuthErrorKind.REGISTRY_UNAVAILABLE, AuthErrorKind.STORE_UNAVAILABLE})


@dataclass(frozen=True)
class AuthFailure:
    """A rejected authentication or authorization attempt.

    ``detail`` is meant for operator logs. It may name the denied role and
    the resource; only role failures echo it back to the caller.
    """

    kind: AuthErrorKind
    detail: str
    resource: str | None = None

    @property
    def is_unauthorized(self) -> bool:
        return self.kind in UNAUTHORIZED_KINDS

    @property
    def is_unavailable(self) -> bool:
        return self.kind in UNAVAILABLE_KINDS
