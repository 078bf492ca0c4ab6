"""Authentication service - signup, login and mobile client login."""

import logging
from dataclasses import dataclass
from typing import Any

from argon2 import PasswordHasher
from argon2.exceptions import InvalidHashError, VerifyMismatchError

from inventory_api.models.client import Client, DocumentType
from inventory_api.models.user import Role, User
from inventory_api.services.errors import (
    ClientNotFoundError,
    EmailAlreadyRegisteredError,
    InvalidCredentialsError,
    UserInactiveError,
    UserNotFoundError,
)
from inventory_api.services.session_registry import SessionRegistry
from inventory_api.services.stores import ClientStore, UserStore
from inventory_api.services.tokens import CLIENT_ROLE, TokenIssuer, TokenKind

logger = logging.getLogger(__name__)

# Argon2 password hasher with recommended parameters
# Memory: 64 MiB, Time: 3 iterations, Parallelism: 4
ph = PasswordHasher(
    time_cost=3,
    memory_cost=65536,
    parallelism=4,
    hash_len=32,
    salt_len=16,
)


def hash_password(password: str) -> str:
    """Hash a password using Argon2id."""
    return ph.hash(password)


def verify_password(password: str, password_hash: str) -> bool:
    """Verify a password against its hash using constant-time comparison."""
    try:
        ph.verify(password_hash, password)
        return True
    except (VerifyMismatchError, InvalidHashError):
        return False


@dataclass
class IssuedSession:
    """A freshly signed token and the principal it was issued for."""

    principal: Any
    token: str
    expires_in: int


class AuthService:
    """Signup and login for staff users.

    Every successful signup or login becomes the user's single active
    session; any session the user had before is superseded.
    """

    def __init__(self, users: UserStore, issuer: TokenIssuer, registry: SessionRegistry):
        self.users = users
        self.issuer = issuer
        self.registry = registry

    async def signup(
        self,
        *,
        email: str,
        password: str,
        first_name: str,
        last_name: str,
        role: Role | None = None,
        phone_number: str | None = None,
        address: str | None = None,
        user_agent: str | None = None,
        ip_address: str | None = None,
    ) -> IssuedSession:
        """Register a user and sign them in."""
        if await self.users.get_by_email(email) is not None:
            raise EmailAlreadyRegisteredError("Email is already registered")

        user = await self.users.create(
            email=email,
            password_hash=hash_password(password),
            first_name=first_name,
            last_name=last_name,
            role=role or Role.SALESPERSON,
            phone_number=phone_number,
            address=address,
        )
        logger.info(f"User registered: {user.email}")
        return self._start_session(user, user_agent=user_agent, ip_address=ip_address)

    async def login(
        self,
        email: str,
        password: str,
        *,
        user_agent: str | None = None,
        ip_address: str | None = None,
    ) -> IssuedSession:
        """Check credentials and start a new session.

        Raises InvalidCredentialsError for both "user not found" and
        "wrong password" to prevent user enumeration.
        """
        user = await self.users.get_by_email(email)

        if user is None:
            # Perform a dummy hash to prevent timing attacks
            verify_password(password, hash_password("dummy"))
            raise InvalidCredentialsError("Invalid credentials")

        if not verify_password(password, user.password_hash):
            raise InvalidCredentialsError("Invalid credentials")

        if not user.is_active:
            raise UserInactiveError("User account is deactivated")

        logger.info(f"User logged in: {user.email}")
        return self._start_session(user, user_agent=user_agent, ip_address=ip_address)

    async def get_user_role(self, user_id: str) -> Role:
        user = await self.users.get_by_id(user_id)
        if user is None:
            raise UserNotFoundError("User not found")
        return user.role

    def _start_session(
        self, user: User, *, user_agent: str | None, ip_address: str | None
    ) -> IssuedSession:
        token = self.issuer.issue(str(user.id), user.email, Role(user.role).value, TokenKind.USER)
        self.registry.track_session(
            str(user.id), token, user_agent=user_agent, ip_address=ip_address
        )
        return IssuedSession(principal=user, token=token, expires_in=self.issuer.lifetime_seconds)


class ClientAuthService:
    """Document-based login for mobile app clients.

    Client tokens are stateless: they are not tracked by the session
    registry and several may be valid at once.
    """

    def __init__(self, clients: ClientStore, issuer: TokenIssuer):
        self.clients = clients
        self.issuer = issuer

    async def login(self, document_type: DocumentType, document_number: str) -> IssuedSession:
        client: Client | None = await self.clients.get_active_by_document(
            document_type, document_number
        )
        if client is None:
            raise ClientNotFoundError(
                f"Client with document {document_type.value} {document_number} "
                "not found or inactive"
            )

        token = self.issuer.issue(
            str(client.id),
            client.email or "",
            CLIENT_ROLE,
            TokenKind.CLIENT,
            extra_claims={
                "document_type": client.document_type.value,
                "document_number": client.document_number,
            },
        )
        logger.info(f"Client logged in: {client.id}")
        return IssuedSession(principal=client, token=token, expires_in=self.issuer.lifetime_seconds)
