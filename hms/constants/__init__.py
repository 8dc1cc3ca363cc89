"""Constants package for the hospital SaaS core."""

from .auth import (
    ACCESS_TOKEN_EXPIRE_MINUTES,
    ALGORITHM,
    BCRYPT_ROUNDS,
    REFRESH_SECRET_KEY,
    REFRESH_TOKEN_EXPIRE_DAYS,
    SECRET_KEY,
)
from .plans import (
    DEFAULT_PLAN,
    PLAN_FEATURES,
    UNLIMITED,
    ResourceType,
    SubscriptionPlan,
    get_plan_features,
)
from .roles import (
    DEFAULT_ROLE,
    ROLE_HIERARCHY,
    UserRole,
    get_default_role_name,
    get_role_rank,
    has_minimum_role,
    is_higher_role,
)

__all__ = [
    # Role constants
    "UserRole",
    "DEFAULT_ROLE",
    "ROLE_HIERARCHY",
    "get_default_role_name",
    "get_role_rank",
    "has_minimum_role",
    "is_higher_role",
    # Plan constants
    "SubscriptionPlan",
    "ResourceType",
    "DEFAULT_PLAN",
    "PLAN_FEATURES",
    "UNLIMITED",
    "get_plan_features",
    # Auth constants
    "SECRET_KEY",
    "REFRESH_SECRET_KEY",
    "ALGORITHM",
    "ACCESS_TOKEN_EXPIRE_MINUTES",
    "REFRESH_TOKEN_EXPIRE_DAYS",
    "BCRYPT_ROUNDS",
]
