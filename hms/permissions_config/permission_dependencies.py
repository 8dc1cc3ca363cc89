import logging

from fastapi import Depends

from hms.auth import get_current_user
from hms.exceptions import AuthorizationError
from hms.models.user import User
from hms.services.permission_service import has_permission

logger = logging.getLogger(__name__)


def permission_required(permission: str):
    """Dependency factory: the user's own permission list must contain `permission`."""

    async def checker(current_user: User = Depends(get_current_user)) -> User:
        if has_permission(current_user, permission):
            return current_user
        logger.warning(f"Permission denied for user id={current_user.id}. Required: '{permission}'.")
        raise AuthorizationError(
            "You don't have permission to perform this action.", required_permission=permission
        )

    return checker
