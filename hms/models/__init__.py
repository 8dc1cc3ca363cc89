from .revoked_token import RevokedToken
from .subscription import Subscription, SubscriptionStatus
from .tenant import Tenant
from .user import User, UserStatus

__all__ = [
    "RevokedToken",
    "Subscription",
    "SubscriptionStatus",
    "Tenant",
    "User",
    "UserStatus",
]
