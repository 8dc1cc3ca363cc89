"""
User Service

Administration of user accounts inside a tenant. Staff accounts (every role
but PATIENT) are seats metered against the subscription's max_users quota.

Lookups take an optional tenant_id; None means "any tenant" and is only
passed for SUPER_ADMIN callers.
"""

import logging

from sqlalchemy import func, or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from hms.auth import hash_password
from hms.constants.roles import UserRole
from hms.exceptions import DuplicateUserError, UserNotFoundError
from hms.models.user import User, UserStatus
from hms.services import subscription_service
from hms.services.auth_service import generate_account_token
from hms.services.permission_service import seed_permissions
from hms.utils.clock import utcnow

logger = logging.getLogger(__name__)

_PROFILE_FIELDS = {"first_name", "last_name", "phone", "profile", "preferences"}


async def create_user(
    tenant_id: int,
    email: str,
    password: str,
    first_name: str,
    last_name: str,
    role: UserRole | str,
    db: AsyncSession,
    phone: str | None = None,
    permissions: list[str] | None = None,
) -> User:
    """
    Create an account on behalf of an administrator.

    The account starts PENDING_VERIFICATION with a verification token and
    must change its password on first use. Staff roles are refused with
    SubscriptionLimitExceededError once the tenant's seats are used up.
    """
    role = UserRole(role)
    email = email.lower()

    existing = await db.execute(select(User.id).where(User.email == email, User.tenant_id == tenant_id))
    if existing.first() is not None:
        raise DuplicateUserError(email)

    if role != UserRole.PATIENT:
        await subscription_service.ensure_staff_seat(tenant_id, db)

    user = User(
        tenant_id=tenant_id,
        email=email,
        hashed_password=hash_password(password),
        first_name=first_name,
        last_name=last_name,
        phone=phone,
        role=role.value,
        permissions=list(permissions) if permissions is not None else seed_permissions(role),
        status=UserStatus.PENDING_VERIFICATION.value,
        email_verification_token=generate_account_token(),
        must_change_password=True,
    )
    db.add(user)
    try:
        await db.commit()
    except IntegrityError:
        await db.rollback()
        raise DuplicateUserError(email)
    await db.refresh(user)
    logger.info("User created: id=%d tenant_id=%d role=%s", user.id, tenant_id, user.role)

    if role != UserRole.PATIENT:
        await subscription_service.sync_staff_usage(tenant_id, db)
    return user


async def get_user(user_id: int, db: AsyncSession, tenant_id: int | None = None) -> User:
    """Return a non-deleted user, or raise UserNotFoundError."""
    query = select(User).where(User.id == user_id, User.deleted_at.is_(None))
    if tenant_id is not None:
        query = query.where(User.tenant_id == tenant_id)
    result = await db.execute(query)
    user = result.scalars().first()
    if user is None:
        raise UserNotFoundError(user_id)
    return user


async def list_users(
    tenant_id: int,
    db: AsyncSession,
    role: UserRole | str | None = None,
    skip: int = 0,
    limit: int = 50,
) -> list[User]:
    query = select(User).where(User.tenant_id == tenant_id, User.deleted_at.is_(None))
    if role is not None:
        query = query.where(User.role == UserRole(role).value)
    result = await db.execute(query.order_by(User.id).offset(skip).limit(limit))
    return list(result.scalars().all())


async def search_users(tenant_id: int, query: str, db: AsyncSession, limit: int = 50) -> list[User]:
    """ACTIVE users whose first name, last name or email contains `query`, ignoring case."""
    needle = query.strip().lower()
    matches = [
        func.lower(column).contains(needle, autoescape=True)
        for column in (User.first_name, User.last_name, User.email)
    ]
    result = await db.execute(
        select(User)
        .where(
            User.tenant_id == tenant_id,
            User.deleted_at.is_(None),
            User.status == UserStatus.ACTIVE.value,
            or_(*matches),
        )
        .order_by(User.first_name, User.id)
        .limit(limit)
    )
    return list(result.scalars().all())


# Keys of the stats payload for each counted staff role
_ROLE_COUNT_KEYS = {
    UserRole.DOCTOR: "doctors",
    UserRole.NURSE: "nurses",
    UserRole.PHARMACIST: "pharmacists",
    UserRole.LAB_TECHNICIAN: "lab_technicians",
    UserRole.RECEPTIONIST: "receptionists",
}


async def count_users_by_role(tenant_id: int, db: AsyncSession) -> dict[str, int]:
    """
    Headcount for a tenant: every non-deleted user in `total`, and ACTIVE
    users per clinical and front-desk role.
    """
    total = await db.execute(
        select(func.count(User.id)).where(User.tenant_id == tenant_id, User.deleted_at.is_(None))
    )
    per_role = await db.execute(
        select(User.role, func.count(User.id))
        .where(
            User.tenant_id == tenant_id,
            User.deleted_at.is_(None),
            User.status == UserStatus.ACTIVE.value,
        )
        .group_by(User.role)
    )
    active = dict(per_role.all())

    counts = {"total": total.scalar_one()}
    for role, key in _ROLE_COUNT_KEYS.items():
        counts[key] = active.get(role.value, 0)
    return counts


async def _save(user: User, db: AsyncSession) -> User:
    await db.commit()
    await db.refresh(user)
    return user


async def change_role(user_id: int, role: UserRole | str, db: AsyncSession, tenant_id: int | None = None) -> User:
    """Assign a new role and re-seed the user's permissions from its defaults."""
    role = UserRole(role)
    user = await get_user(user_id, db, tenant_id)
    was_staff = user.role != UserRole.PATIENT.value
    if not was_staff and role != UserRole.PATIENT:
        await subscription_service.ensure_staff_seat(user.tenant_id, db)

    user.role = role.value
    user.permissions = seed_permissions(role)
    await _save(user, db)
    logger.info("User id=%d role changed to %s", user.id, user.role)

    if was_staff != (role != UserRole.PATIENT):
        await subscription_service.sync_staff_usage(user.tenant_id, db)
    return user


async def update_permissions(
    user_id: int, permissions: list[str], db: AsyncSession, tenant_id: int | None = None
) -> User:
    user = await get_user(user_id, db, tenant_id)
    user.permissions = list(permissions)
    return await _save(user, db)


async def activate_user(user_id: int, db: AsyncSession, tenant_id: int | None = None) -> User:
    """Activating also marks the email verified and drops any pending verification token."""
    user = await get_user(user_id, db, tenant_id)
    user.status = UserStatus.ACTIVE.value
    user.is_email_verified = True
    user.email_verified_at = user.email_verified_at or utcnow()
    user.email_verification_token = None
    return await _save(user, db)


async def deactivate_user(user_id: int, db: AsyncSession, tenant_id: int | None = None) -> User:
    user = await get_user(user_id, db, tenant_id)
    user.status = UserStatus.INACTIVE.value
    return await _save(user, db)


async def suspend_user(user_id: int, db: AsyncSession, tenant_id: int | None = None) -> User:
    user = await get_user(user_id, db, tenant_id)
    user.status = UserStatus.SUSPENDED.value
    return await _save(user, db)


async def force_password_change(user_id: int, db: AsyncSession, tenant_id: int | None = None) -> User:
    user = await get_user(user_id, db, tenant_id)
    user.must_change_password = True
    return await _save(user, db)


async def update_profile(user_id: int, updates: dict, db: AsyncSession, tenant_id: int | None = None) -> User:
    """Apply profile fields only; role, status and credentials have their own operations."""
    user = await get_user(user_id, db, tenant_id)
    for field, value in updates.items():
        if field in _PROFILE_FIELDS:
            setattr(user, field, value)
    return await _save(user, db)


async def soft_delete_user(user_id: int, db: AsyncSession, tenant_id: int | None = None) -> None:
    """Mark the user deleted and INACTIVE; the row is kept."""
    user = await get_user(user_id, db, tenant_id)
    user.deleted_at = utcnow()
    user.status = UserStatus.INACTIVE.value
    await db.commit()
    logger.info("User soft-deleted: id=%d tenant_id=%d", user.id, user.tenant_id)

    if user.role != UserRole.PATIENT.value:
        await subscription_service.sync_staff_usage(user.tenant_id, db)
