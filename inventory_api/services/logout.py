"""Logout coordinator - best-effort, always-acknowledged session invalidation."""

import logging
from collections.abc import Callable
from dataclasses import dataclass
from datetime import UTC, datetime

from inventory_api.core.logging import token_fingerprint
from inventory_api.services.errors import (
    AuthErrorKind,
    AuthFailure,
    TokenError,
    TokenExpiredError,
)
from inventory_api.services.session_registry import SessionRegistry
from inventory_api.services.tokens import Claims, TokenIssuer

logger = logging.getLogger(__name__)

LOGOUT_MESSAGE = "Successfully logged out"


def _utcnow() -> datetime:
    return datetime.now(UTC)


@dataclass(frozen=True)
class LogoutAck:
    """Acknowledgement returned for every logout, successful or not.

    ``failure`` is set when invalidation could not be completed. It is for
    logging only; callers are still told they were logged out.
    """

    message: str
    logout_time: datetime
    failure: AuthFailure | None = None


class LogoutCoordinator:
    """Invalidate sessions on logout without ever reporting failure."""

    def __init__(
        self,
        registry: SessionRegistry,
        issuer: TokenIssuer,
        clock: Callable[[], datetime] = _utcnow,
    ):
        self.registry = registry
        self.issuer = issuer
        self._clock = clock

    def logout(self, user_id: str, token: str | None = None) -> LogoutAck:
        """Close one session (when ``token`` is given) or all of the user's."""
        try:
            if token:
                self.registry.invalidate_session(user_id, token)
                logger.debug(f"Token invalidated: {token_fingerprint(token)}")
            else:
                self.registry.invalidate_all_user_sessions(user_id)
                logger.debug(f"User's tokens invalidated: {user_id}")
        except Exception as e:
            logger.error(f"Logout error for user {user_id}: {e}")
            return self._ack(
                AuthFailure(
                    kind=AuthErrorKind.REGISTRY_UNAVAILABLE,
                    detail=f"Error during logout process: {e}",
                    resource="auth.logout",
                )
            )

        logger.info(f"User logged out: {user_id}", extra={"user_id": user_id})
        return self._ack()

    def logout_with_token(self, token: str | None) -> LogoutAck:
        """Log out using only a raw bearer token.

        A missing token is treated as already logged out. An expired token
        with a valid signature is blacklisted until its expiry, capped at one
        token lifetime from now. Forged or garbled tokens are never
        blacklisted; verification already rejects them, so only their
        unverified claims are used to look for a session to close.
        """
        if not token:
            return self._ack()

        try:
            try:
                claims = self.issuer.verify(token)
            except TokenExpiredError:
                claims = self.issuer.verify_ignoring_expiry(token)
                if claims is not None:
                    logger.warning(
                        f"Expired token {token_fingerprint(token)} on logout. Token blacklisted."
                    )
                    self.registry.blacklist_token(token, self._blacklist_expiry(claims))
            except TokenError as e:
                logger.warning(f"Could not verify token {token_fingerprint(token)} on logout: {e}")
                claims = self.issuer.decode(token)

            if claims is None:
                return self._ack()
            return self.logout(claims.sub, token)
        except Exception as e:
            logger.error(f"Logout error: {e}")
            return self._ack(
                AuthFailure(
                    kind=AuthErrorKind.REGISTRY_UNAVAILABLE,
                    detail=f"Error during logout process: {e}",
                    resource="auth.logout",
                )
            )

    def _blacklist_expiry(self, claims: Claims) -> float:
        ceiling = self._clock().timestamp() + self.issuer.lifetime_seconds
        return min(float(claims.exp), ceiling)

    def _ack(self, failure: AuthFailure | None = None) -> LogoutAck:
        return LogoutAck(message=LOGOUT_MESSAGE, logout_time=self._clock(), failure=failure)
