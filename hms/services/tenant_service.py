"""
Tenant Service

Tenant resolution plus async administration of Tenant records.
All functions accept an injected AsyncSession.
"""

import logging
from dataclasses import dataclass
from datetime import timedelta

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from hms.auth import hash_password
from hms.config import settings
from hms.constants.plans import DEFAULT_PLAN, ResourceType, SubscriptionPlan
from hms.constants.roles import UserRole
from hms.exceptions import (
    DuplicateResourceError,
    TenantInactiveError,
    TenantNotFoundError,
    TenantRecordNotFoundError,
)
from hms.models.tenant import Tenant
from hms.models.user import User, UserStatus
from hms.services import subscription_service
from hms.services.permission_service import seed_permissions
from hms.utils.clock import utcnow
from hms.utils.slugify import generate_tenant_identifier

logger = logging.getLogger(__name__)

_IDENTIFIER_ATTEMPTS = 5
_UPDATABLE_FIELDS = {"name", "email", "phone", "description", "website", "address", "settings"}


@dataclass
class TenantAdmin:
    """First HOSPITAL_ADMIN account provisioned together with a tenant."""

    email: str
    password: str
    first_name: str
    last_name: str


async def resolve_tenant(identifier: str | None, db: AsyncSession) -> Tenant:
    """
    Map an external tenant identifier to an active Tenant.

    Raises TenantNotFoundError or TenantInactiveError. Both render as the same
    TENANT_INVALID rejection; only the logs tell them apart.
    """
    if not identifier:
        raise TenantNotFoundError()
    tenant = await get_tenant_by_identifier(identifier, db)
    if tenant is None:
        logger.info("Tenant resolution failed: unknown identifier %r", identifier)
        raise TenantNotFoundError()
    if not tenant.is_active:
        logger.info("Tenant resolution failed: tenant id=%d is inactive", tenant.id)
        raise TenantInactiveError()
    return tenant


async def _unique_identifier(name: str, db: AsyncSession) -> str:
    for _ in range(_IDENTIFIER_ATTEMPTS):
        identifier = generate_tenant_identifier(name)
        if await get_tenant_by_identifier(identifier, db) is None:
            return identifier
    raise DuplicateResourceError("Tenant", "identifier", name, message="Tenant with this name already exists")


async def create_tenant(
    name: str,
    db: AsyncSession,
    plan: SubscriptionPlan | str = DEFAULT_PLAN,
    admin: TenantAdmin | None = None,
    **details,
) -> Tenant:
    """
    Create a tenant on a 14-day trial, its first ACTIVE subscription and,
    when `admin` is given, an ACTIVE HOSPITAL_ADMIN who must change the
    provisioned password. Everything commits in one transaction.
    """
    plan = SubscriptionPlan(plan)
    tenant = Tenant(
        name=name,
        identifier=await _unique_identifier(name, db),
        is_active=True,
        is_on_trial=True,
        trial_ends_at=utcnow() + timedelta(days=settings.trial_days),
        **{key: value for key, value in details.items() if key in _UPDATABLE_FIELDS},
    )
    db.add(tenant)
    await db.flush()

    await subscription_service.create_subscription(tenant.id, plan, db, commit=False)

    if admin is not None:
        db.add(
            User(
                tenant_id=tenant.id,
                email=admin.email,
                hashed_password=hash_password(admin.password),
                first_name=admin.first_name,
                last_name=admin.last_name,
                role=UserRole.HOSPITAL_ADMIN.value,
                permissions=seed_permissions(UserRole.HOSPITAL_ADMIN),
                status=UserStatus.ACTIVE.value,
                must_change_password=True,
            )
        )

    await db.commit()
    await db.refresh(tenant)
    logger.info("Tenant created: id=%d identifier=%s plan=%s", tenant.id, tenant.identifier, plan.value)

    if admin is not None:
        await subscription_service.record_usage(tenant.id, {ResourceType.USERS: 1}, db)
    return tenant


async def get_tenant_by_id(tenant_id: int, db: AsyncSession) -> Tenant | None:
    """Return a Tenant by primary key, or None if not found."""
    result = await db.execute(select(Tenant).where(Tenant.id == tenant_id))
    return result.scalars().first()


async def get_tenant_by_identifier(identifier: str, db: AsyncSession) -> Tenant | None:
    """Return a Tenant by identifier, or None if not found."""
    result = await db.execute(select(Tenant).where(Tenant.identifier == identifier))
    return result.scalars().first()


async def get_tenant_or_404(tenant_id: int, db: AsyncSession) -> Tenant:
    tenant = await get_tenant_by_id(tenant_id, db)
    if tenant is None:
        raise TenantRecordNotFoundError(tenant_id)
    return tenant


async def list_tenants(
    db: AsyncSession,
    skip: int = 0,
    limit: int = 20,
) -> list[Tenant]:
    """Return a paginated list of all tenants (active or not), newest first."""
    result = await db.execute(
        select(Tenant).order_by(Tenant.created_at.desc(), Tenant.id.desc()).offset(skip).limit(limit)
    )
    return list(result.scalars().all())


async def update_tenant(
    tenant_id: int,
    updates: dict,
    db: AsyncSession,
) -> Tenant:
    """
    Apply a partial update to a Tenant.

    Only keys present in `updates` are changed. A new name regenerates the
    identifier; users and subscriptions keep pointing at tenant.id.
    """
    tenant = await get_tenant_or_404(tenant_id, db)
    new_name = updates.get("name")
    if new_name and new_name != tenant.name:
        old_identifier = tenant.identifier
        tenant.identifier = await _unique_identifier(new_name, db)
        logger.info("Tenant id=%d renamed; identifier %s -> %s", tenant.id, old_identifier, tenant.identifier)

    for field, value in updates.items():
        if field in _UPDATABLE_FIELDS:
            setattr(tenant, field, value)
    await db.commit()
    await db.refresh(tenant)
    return tenant


async def _set_active(tenant_id: int, is_active: bool, db: AsyncSession) -> Tenant:
    tenant = await get_tenant_or_404(tenant_id, db)
    tenant.is_active = is_active
    await db.commit()
    await db.refresh(tenant)
    logger.info("Tenant %s: id=%d identifier=%s", "activated" if is_active else "deactivated", tenant.id, tenant.identifier)
    return tenant


async def activate_tenant(tenant_id: int, db: AsyncSession) -> Tenant:
    return await _set_active(tenant_id, True, db)


async def deactivate_tenant(tenant_id: int, db: AsyncSession) -> Tenant:
    """Tenants are never deleted; deactivation makes the identifier stop resolving."""
    return await _set_active(tenant_id, False, db)
