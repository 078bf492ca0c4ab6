"""Client model - customers who use the mobile app."""

import enum

from sqlalchemy import Boolean, Enum, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from inventory_api.models.base import BaseModel


class DocumentType(str, enum.Enum):
    """Identity document types accepted for mobile login."""

    CC = "CC"
    TI = "TI"
    NIT = "NIT"
    CE = "CE"
    PP = "PP"


class Client(BaseModel):
    """Customer identified by an identity document instead of a password."""

    __tablename__ = "clients"
    __table_args__ = (
        UniqueConstraint("document_type", "document_number", name="uq_clients_document"),
    )

    name: Mapped[str] = mapped_column(String(255), nullable=False)
    email: Mapped[str | None] = mapped_column(String(255), nullable=True)
    phone_number: Mapped[str | None] = mapped_column(String(50), nullable=True)
    document_type: Mapped[DocumentType] = mapped_column(
        Enum(DocumentType, name="document_type", create_constraint=True),
        nullable=False,
    )
    document_number: Mapped[str] = mapped_column(String(50), nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    def __repr__(self) -> str:
        return f"<Client {self.document_type.value} {self.document_number}>"
