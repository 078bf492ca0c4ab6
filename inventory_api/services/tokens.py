"""Token issuer - signs and verifies JWTs for staff users and mobile clients."""

import enum
import logging
import secrets
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta
from typing import Any

import jwt
from jwt.exceptions import PyJWTError

from inventory_api.core.config import settings
from inventory_api.services.errors import InvalidTokenError, TokenExpiredError

logger = logging.getLogger(__name__)

CLIENT_ROLE = "CLIENT"

_REQUIRED_CLAIMS = ("sub", "role", "kind", "iat", "exp")


class TokenKind(str, enum.Enum):
    """Principal kind a token was issued for."""

    USER = "user"
    CLIENT = "client"


@dataclass(frozen=True)
class Claims:
    """Decoded token payload."""

    sub: str
    email: str
    role: str
    kind: TokenKind
    iat: int
    exp: int
    jti: str | None = None
    extra: dict[str, Any] = field(default_factory=dict)

    @property
    def expires_at(self) -> datetime:
        return datetime.fromtimestamp(self.exp, tz=UTC)

    @classmethod
    def from_payload(cls, payload: dict[str, Any]) -> "Claims":
        """Build claims from a raw payload, rejecting incomplete ones."""
        missing = [name for name in _REQUIRED_CLAIMS if payload.get(name) in (None, "")]
        if missing:
            raise InvalidTokenError(f"Token missing claims: {', '.join(missing)}")
        try:
            kind = TokenKind(payload["kind"])
            iat = int(payload["iat"])
            exp = int(payload["exp"])
        except (TypeError, ValueError) as e:
            raise InvalidTokenError(f"Invalid token claims: {e}") from e

        known = set(_REQUIRED_CLAIMS) | {"email", "jti"}
        return cls(
            sub=str(payload["sub"]),
            email=str(payload.get("email") or ""),
            role=str(payload["role"]),
            kind=kind,
            iat=iat,
            exp=exp,
            jti=payload.get("jti"),
            extra={k: v for k, v in payload.items() if k not in known},
        )

    def to_payload(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            **self.extra,
            "sub": self.sub,
            "email": self.email,
            "role": self.role,
            "kind": self.kind.value,
            "iat": self.iat,
            "exp": self.exp,
        }
        if self.jti:
            payload["jti"] = self.jti
        return payload


def _utcnow() -> datetime:
    return datetime.now(UTC)


class TokenIssuer:
    """Issues and verifies tokens of a single kind within one signing scope.

    Staff user tokens and mobile client tokens use separate issuers with
    separate secrets, so neither scope accepts the other's tokens.
    """

    def __init__(
        self,
        secret: str,
        *,
        kind: TokenKind = TokenKind.USER,
        algorithm: str = "HS256",
        lifetime_seconds: int = 86400,
        clock: Callable[[], datetime] = _utcnow,
    ):
        if not secret:
            raise ValueError("Token signing secret must not be empty")
        if lifetime_seconds <= 0:
            raise ValueError("Token lifetime must be positive")
        self._secret = secret
        self._clock = clock
        self.kind = kind
        self.algorithm = algorithm
        self.lifetime_seconds = lifetime_seconds

    def issue(
        self,
        principal_id: str,
        email: str,
        role: str,
        kind: TokenKind | None = None,
        extra_claims: dict[str, Any] | None = None,
    ) -> str:
        """Sign a token for a principal.

        Every token gets a random ``jti`` so two logins in the same second
        still yield distinct tokens.
        """
        kind = kind or self.kind
        if kind != self.kind:
            raise ValueError(f"This issuer signs {self.kind.value} tokens, not {kind.value}")

        issued_at = self._clock()
        claims = Claims(
            sub=str(principal_id),
            email=email or "",
            role=role,
            kind=kind,
            iat=int(issued_at.timestamp()),
            exp=int((issued_at + timedelta(seconds=self.lifetime_seconds)).timestamp()),
            jti=secrets.token_hex(16),
            extra=dict(extra_claims or {}),
        )
        token = jwt.encode(claims.to_payload(), self._secret, algorithm=self.algorithm)
        # PyJWT 2.x returns str; older type stubs may declare bytes
        return str(token)

    def verify(self, token: str) -> Claims:
        """Check signature, expiry and kind; raise a TokenError on failure."""
        try:
            payload = jwt.decode(
                token,
                self._secret,
                algorithms=[self.algorithm],
                options={"require": ["exp", "iat", "sub"]},
            )
        except jwt.ExpiredSignatureError as e:
            raise TokenExpiredError("Token has expired") from e
        except PyJWTError as e:
            raise InvalidTokenError(f"Invalid token: {e}") from e

        claims = Claims.from_payload(payload)
        if claims.kind != self.kind:
            raise InvalidTokenError(f"Expected a {self.kind.value} token, got {claims.kind.value}")
        return claims

    def verify_ignoring_expiry(self, token: str) -> Claims | None:
        """Check signature and kind but accept an expired token.

        Returns None when the token was not signed with this issuer's
        secret or cannot be decoded at all.
        """
        try:
            payload = jwt.decode(
                token,
                self._secret,
                algorithms=[self.algorithm],
                options={"verify_exp": False, "require": ["exp", "iat", "sub"]},
            )
            claims = Claims.from_payload(payload)
        except (PyJWTError, InvalidTokenError) as e:
            logger.debug(f"Token signature rejected: {e}")
            return None
        if claims.kind != self.kind:
            return None
        return claims

    def decode(self, token: str) -> Claims | None:
        """Best-effort decode without signature or expiry checks.

        Only for locating the owner of a token that cannot be trusted,
        e.g. during logout. Never use the result to grant access.
        """
        try:
            payload = jwt.decode(token, options={"verify_signature": False})
            return Claims.from_payload(payload)
        except (PyJWTError, InvalidTokenError) as e:
            logger.debug(f"Could not decode token: {e}")
            return None


def create_user_token_issuer() -> TokenIssuer:
    """Issuer for staff user tokens, configured from settings."""
    return TokenIssuer(
        settings.effective_jwt_secret_key,
        kind=TokenKind.USER,
        algorithm=settings.jwt_algorithm,
        lifetime_seconds=settings.token_lifetime_seconds,
    )


def create_client_token_issuer() -> TokenIssuer:
    """Issuer for mobile client tokens, configured from settings."""
    return TokenIssuer(
        settings.effective_jwt_client_secret_key,
        kind=TokenKind.CLIENT,
        algorithm=settings.jwt_algorithm,
        lifetime_seconds=settings.token_lifetime_seconds,
    )
