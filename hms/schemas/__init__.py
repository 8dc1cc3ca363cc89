from .auth import (
    AccessTokenResponse,
    AuthResponse,
    LoginRequest,
    MessageResponse,
    RegisterRequest,
    TokenPair,
)
from .tenant import SubscriptionResponse, TenantCreate, TenantResponse, TenantUpdate
from .user import PermissionsUpdate, RoleUpdate, UserCreate, UserResponse

# Define the public API of this module
__all__ = [
    "AccessTokenResponse",
    "AuthResponse",
    "LoginRequest",
    "MessageResponse",
    "RegisterRequest",
    "TokenPair",
    "SubscriptionResponse",
    "TenantCreate",
    "TenantResponse",
    "TenantUpdate",
    "PermissionsUpdate",
    "RoleUpdate",
    "UserCreate",
    "UserResponse",
]
