# Inventory API Services
from inventory_api.services.auth import AuthService, ClientAuthService
from inventory_api.services.authorization import (
    AuthenticationStage,
    Principal,
    RoleAuthorizationStage,
    RoutePolicy,
)
from inventory_api.services.logout import LogoutCoordinator
from inventory_api.services.session_cleanup import SessionCleanupService
from inventory_api.services.session_registry import SessionRegistry
from inventory_api.services.tokens import TokenIssuer, TokenKind

__all__ = [
    "AuthService",
    "AuthenticationStage",
    "ClientAuthService",
    "LogoutCoordinator",
    "Principal",
    "RoleAuthorizationStage",
    "RoutePolicy",
    "SessionCleanupService",
    "SessionRegistry",
    "TokenIssuer",
    "TokenKind",
]
