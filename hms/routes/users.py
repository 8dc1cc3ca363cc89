"""
User Administration Routes

`/profile` serves any authenticated user's own account. Every other route
requires the `manage_users` permission; SUPER_ADMIN callers act across
tenants, everyone else only sees users of their own tenant. State changes
never reach a user who outranks the caller.
"""

import logging

from fastapi import APIRouter, BackgroundTasks, Depends, Query, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from hms.auth import get_current_user
from hms.constants.roles import UserRole
from hms.database import get_db
from hms.exceptions import AuthorizationError
from hms.models.user import User
from hms.permissions_config.permission_dependencies import permission_required
from hms.schemas.user import (
    PermissionsUpdate,
    ProfileUpdate,
    RoleUpdate,
    UserCountsResponse,
    UserCreate,
    UserResponse,
)
from hms.services import permission_service, user_service
from hms.services.email_service import EmailService, get_email_service

router = APIRouter()
logger = logging.getLogger(__name__)

user_manager = permission_required("manage_users")


def _scope(current_user: User) -> int | None:
    """Tenant filter for lookups; None lets SUPER_ADMIN reach any tenant."""
    return None if current_user.role == UserRole.SUPER_ADMIN.value else current_user.tenant_id


def _guard_super_admin_role(current_user: User, role: UserRole) -> None:
    if role == UserRole.SUPER_ADMIN and current_user.role != UserRole.SUPER_ADMIN.value:
        raise AuthorizationError("Only a SUPER_ADMIN can grant the SUPER_ADMIN role")


async def _outranked_guard(user_id: int, current_user: User, db: AsyncSession) -> None:
    """Refuse to act on a user whose role ranks above the caller's."""
    target = await user_service.get_user(user_id, db, _scope(current_user))
    if not permission_service.has_minimum_rank(current_user, target.role):
        logger.warning(f"User id={current_user.id} ({current_user.role}) denied action on {target.role} id={target.id}")
        raise AuthorizationError("You cannot manage a user with a higher role than your own")


@router.get("/profile", response_model=UserResponse)
async def get_own_profile(current_user: User = Depends(get_current_user)):
    return current_user


@router.put("/profile", response_model=UserResponse)
async def update_own_profile(
    payload: ProfileUpdate,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    return await user_service.update_profile(
        current_user.id, payload.model_dump(exclude_unset=True), db, current_user.tenant_id
    )


@router.get("/search", response_model=list[UserResponse])
async def search_users_route(
    q: str = Query(..., min_length=1, max_length=100),
    limit: int = Query(50, ge=1, le=200),
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(user_manager),
):
    return await user_service.search_users(current_user.tenant_id, q, db, limit=limit)


@router.get("/stats/counts", response_model=UserCountsResponse)
async def user_counts_route(
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(user_manager),
):
    return await user_service.count_users_by_role(current_user.tenant_id, db)


@router.post("/", response_model=UserResponse, status_code=status.HTTP_201_CREATED)
async def create_user_route(
    payload: UserCreate,
    background_tasks: BackgroundTasks,
    tenant_id: int | None = Query(None, description="Target tenant (SUPER_ADMIN only)"),
    db: AsyncSession = Depends(get_db),
    email_service: EmailService = Depends(get_email_service),
    current_user: User = Depends(user_manager),
):
    _guard_super_admin_role(current_user, payload.role)
    target_tenant = current_user.tenant_id
    if tenant_id is not None and tenant_id != current_user.tenant_id:
        if current_user.role != UserRole.SUPER_ADMIN.value:
            raise AuthorizationError("You can only manage your own tenant")
        target_tenant = tenant_id

    user = await user_service.create_user(
        tenant_id=target_tenant,
        email=payload.email,
        password=payload.password,
        first_name=payload.first_name,
        last_name=payload.last_name,
        role=payload.role,
        db=db,
        phone=payload.phone,
        permissions=payload.permissions,
    )
    background_tasks.add_task(
        email_service.send_verification_email, user.email, user.full_name, user.email_verification_token
    )
    return user


@router.get("/", response_model=list[UserResponse])
async def list_users_route(
    role: UserRole | None = None,
    skip: int = Query(0, ge=0),
    limit: int = Query(50, ge=1, le=200),
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(user_manager),
):
    return await user_service.list_users(current_user.tenant_id, db, role=role, skip=skip, limit=limit)


@router.get("/{user_id}", response_model=UserResponse)
async def get_user_route(
    user_id: int,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(user_manager),
):
    return await user_service.get_user(user_id, db, _scope(current_user))


@router.put("/{user_id}", response_model=UserResponse)
async def update_profile_route(
    user_id: int,
    payload: ProfileUpdate,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(user_manager),
):
    return await user_service.update_profile(user_id, payload.model_dump(exclude_unset=True), db, _scope(current_user))


@router.put("/{user_id}/role", response_model=UserResponse)
async def change_role_route(
    user_id: int,
    payload: RoleUpdate,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(user_manager),
):
    _guard_super_admin_role(current_user, payload.role)
    await _outranked_guard(user_id, current_user, db)
    return await user_service.change_role(user_id, payload.role, db, _scope(current_user))


@router.put("/{user_id}/permissions", response_model=UserResponse)
async def update_permissions_route(
    user_id: int,
    payload: PermissionsUpdate,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(user_manager),
):
    return await user_service.update_permissions(user_id, payload.permissions, db, _scope(current_user))


@router.put("/{user_id}/activate", response_model=UserResponse)
async def activate_user_route(
    user_id: int,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(user_manager),
):
    return await user_service.activate_user(user_id, db, _scope(current_user))


@router.put("/{user_id}/deactivate", response_model=UserResponse)
async def deactivate_user_route(
    user_id: int,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(user_manager),
):
    await _outranked_guard(user_id, current_user, db)
    return await user_service.deactivate_user(user_id, db, _scope(current_user))


@router.put("/{user_id}/suspend", response_model=UserResponse)
async def suspend_user_route(
    user_id: int,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(user_manager),
):
    await _outranked_guard(user_id, current_user, db)
    return await user_service.suspend_user(user_id, db, _scope(current_user))


@router.put("/{user_id}/force-password-change", response_model=UserResponse)
async def force_password_change_route(
    user_id: int,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(user_manager),
):
    return await user_service.force_password_change(user_id, db, _scope(current_user))


@router.delete("/{user_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_user_route(
    user_id: int,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(user_manager),
):
    await _outranked_guard(user_id, current_user, db)
    await user_service.soft_delete_user(user_id, db, _scope(current_user))
    return Response(status_code=status.HTTP_204_NO_CONTENT)
