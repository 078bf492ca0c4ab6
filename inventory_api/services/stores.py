"""User and client record stores used by the authentication core."""

import logging
import uuid
from typing import Any

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from inventory_api.models.client import Client, DocumentType
from inventory_api.models.user import User
from inventory_api.services.errors import EmailAlreadyRegisteredError

logger = logging.getLogger(__name__)


def _parse_id(value: str | uuid.UUID) -> uuid.UUID | None:
    if isinstance(value, uuid.UUID):
        return value
    try:
        return uuid.UUID(str(value))
    except ValueError:
        return None


class UserStore:
    """Lookups and creation of staff users."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_by_id(self, user_id: str | uuid.UUID) -> User | None:
        parsed = _parse_id(user_id)
        if parsed is None:
            return None
        result = await self.session.execute(select(User).where(User.id == parsed))
        return result.scalar_one_or_none()

    async def get_by_email(self, email: str) -> User | None:
        result = await self.session.execute(select(User).where(User.email == email.lower()))
        return result.scalar_one_or_none()

    async def create(self, **fields: Any) -> User:
        """Insert a user and commit.

        Raises:
            EmailAlreadyRegisteredError: a concurrent signup won the email
        """
        fields["email"] = fields["email"].lower()
        user = User(**fields)
        self.session.add(user)
        try:
            await self.session.commit()
        except IntegrityError as e:
            await self.session.rollback()
            raise EmailAlreadyRegisteredError("Email is already registered") from e
        await self.session.refresh(user)
        logger.info(f"Created user: {user.email}")
        return user


class ClientStore:
    """Lookups of mobile app clients."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_by_id(self, client_id: str | uuid.UUID) -> Client | None:
        parsed = _parse_id(client_id)
        if parsed is None:
            return None
        result = await self.session.execute(select(Client).where(Client.id == parsed))
        return result.scalar_one_or_none()

    async def get_active_by_document(
        self, document_type: DocumentType, document_number: str
    ) -> Client | None:
        result = await self.session.execute(
            select(Client).where(
                Client.document_type == document_type,
                Client.document_number == document_number,
                Client.is_active.is_(True),
            )
        )
        return result.scalar_one_or_none()
