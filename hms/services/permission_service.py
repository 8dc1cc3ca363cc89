"""
Permission Service

Request-gating predicates over a user's role and permission list.

Route guards check role membership; ranks from ROLE_HIERARCHY back the
"at least" check that keeps administrators off users who outrank them.
Permissions are read from the user's own list, which was copied from the
role defaults when the role was assigned and may since have been edited.
"""

import logging
from collections.abc import Iterable

from hms.constants.roles import UserRole, has_minimum_role
from hms.permissions_config.permissions import get_default_permissions

logger = logging.getLogger(__name__)


def _role_value(role) -> str:
    return role.value if isinstance(role, UserRole) else str(role)


def authorize(user, required_roles: Iterable) -> bool:
    """Allowed iff the user's role is a member of `required_roles`."""
    allowed = {_role_value(role) for role in required_roles}
    return user.role in allowed


def has_permission(user, permission: str) -> bool:
    """Allowed iff `permission` is in the user's own permission list."""
    return permission in (user.permissions or [])


def has_minimum_rank(user, minimum_role) -> bool:
    return has_minimum_role(user.role, _role_value(minimum_role))


def seed_permissions(role) -> list[str]:
    """Fresh copy of the role's default permissions for assignment to one user."""
    permissions = get_default_permissions(_role_value(role))
    logger.debug("Seeding %d permissions for role %s", len(permissions), _role_value(role))
    return permissions
