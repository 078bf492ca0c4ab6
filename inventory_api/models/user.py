"""User model - staff accounts that sign in to the backoffice."""

import enum

from sqlalchemy import Boolean, Enum, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from inventory_api.models.base import BaseModel


class Role(str, enum.Enum):
    """Closed set of staff roles carried in user tokens."""

    ADMINISTRATOR = "ADMINISTRATOR"
    SALESPERSON = "SALESPERSON"


class User(BaseModel):
    """Staff user.

    Read by the authentication pipeline for the active-flag check; the
    role stored here is copied into every token issued for the user.
    """

    __tablename__ = "users"

    email: Mapped[str] = mapped_column(String(255), nullable=False, unique=True, index=True)
    password_hash: Mapped[str] = mapped_column(String(255), nullable=False)
    first_name: Mapped[str] = mapped_column(String(100), nullable=False)
    last_name: Mapped[str] = mapped_column(String(100), nullable=False)
    role: Mapped[Role] = mapped_column(
        Enum(Role, name="role", create_constraint=True),
        nullable=False,
        default=Role.SALESPERSON,
    )
    phone_number: Mapped[str | None] = mapped_column(String(50), nullable=True)
    address: Mapped[str | None] = mapped_column(Text, nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    def __repr__(self) -> str:
        return f"<User {self.email}>"
