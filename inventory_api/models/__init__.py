# Inventory API Models
from inventory_api.models.base import BaseModel
from inventory_api.models.client import Client, DocumentType
from inventory_api.models.user import Role, User
from inventory_api.models.user_session import UserSession

__all__ = [
    "BaseModel",
    "Client",
    "DocumentType",
    "Role",
    "User",
    "UserSession",
]
