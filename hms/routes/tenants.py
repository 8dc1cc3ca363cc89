"""
Tenant Administration Routes

POST   /tenants                     → create tenant (SUPER_ADMIN)
GET    /tenants                     → list tenants (SUPER_ADMIN)
GET    /tenants/current              → tenant named by the request (public)
GET    /tenants/{id}                → get tenant
PUT    /tenants/{id}                → update tenant (renaming regenerates the identifier)
PUT    /tenants/{id}/activate       → activate tenant (SUPER_ADMIN)
PUT    /tenants/{id}/deactivate     → deactivate tenant (SUPER_ADMIN)
GET    /tenants/{id}/subscription   → active subscription
PUT    /tenants/{id}/subscription   → change plan
DELETE /tenants/{id}/subscription   → cancel subscription
GET    /tenants/{id}/limits         → check a usage figure against the plan quota

HOSPITAL_ADMIN callers may only address their own tenant.
"""

import logging

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from hms.auth import require_roles
from hms.constants.plans import ResourceType
from hms.constants.roles import UserRole
from hms.database import get_db
from hms.exceptions import AuthorizationError, NoActiveSubscriptionError
from hms.middleware.tenant import get_current_tenant
from hms.models.tenant import Tenant
from hms.models.user import User
from hms.schemas.tenant import (
    LimitCheckResponse,
    SubscriptionResponse,
    SubscriptionUpdate,
    TenantCreate,
    TenantResponse,
    TenantUpdate,
)
from hms.services import subscription_service, tenant_service

router = APIRouter()
logger = logging.getLogger(__name__)

super_admin_only = require_roles(UserRole.SUPER_ADMIN)
tenant_admins = require_roles(UserRole.SUPER_ADMIN, UserRole.HOSPITAL_ADMIN)


def _check_tenant_access(current_user: User, tenant_id: int) -> None:
    if current_user.role != UserRole.SUPER_ADMIN.value and current_user.tenant_id != tenant_id:
        logger.warning(f"User id={current_user.id} tried to reach tenant id={tenant_id}")
        raise AuthorizationError("You can only manage your own tenant")


@router.post("/", response_model=TenantResponse, status_code=status.HTTP_201_CREATED)
async def create_tenant_route(
    payload: TenantCreate,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(super_admin_only),
):
    admin = None
    if payload.admin_email and payload.admin_password:
        admin = tenant_service.TenantAdmin(
            email=payload.admin_email.lower(),
            password=payload.admin_password,
            first_name=payload.admin_first_name or "Hospital",
            last_name=payload.admin_last_name or "Admin",
        )
    return await tenant_service.create_tenant(
        name=payload.name,
        db=db,
        plan=payload.plan,
        admin=admin,
        **payload.model_dump(include={"email", "phone", "description", "website", "address"}, exclude_none=True),
    )


@router.get("/", response_model=list[TenantResponse])
async def list_tenants_route(
    skip: int = Query(0, ge=0),
    limit: int = Query(20, ge=1, le=100),
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(super_admin_only),
):
    return await tenant_service.list_tenants(db, skip=skip, limit=limit)


@router.get("/current", response_model=TenantResponse)
async def current_tenant_route(tenant: Tenant = Depends(get_current_tenant)):
    """Public lookup of the tenant named by X-Tenant-ID or the subdomain, for pre-login branding."""
    return tenant


@router.get("/{tenant_id}", response_model=TenantResponse)
async def get_tenant_route(
    tenant_id: int,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(tenant_admins),
):
    _check_tenant_access(current_user, tenant_id)
    return await tenant_service.get_tenant_or_404(tenant_id, db)


@router.put("/{tenant_id}", response_model=TenantResponse)
async def update_tenant_route(
    tenant_id: int,
    payload: TenantUpdate,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(tenant_admins),
):
    _check_tenant_access(current_user, tenant_id)
    return await tenant_service.update_tenant(tenant_id, payload.model_dump(exclude_unset=True), db)


@router.put("/{tenant_id}/activate", response_model=TenantResponse)
async def activate_tenant_route(
    tenant_id: int,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(super_admin_only),
):
    return await tenant_service.activate_tenant(tenant_id, db)


@router.put("/{tenant_id}/deactivate", response_model=TenantResponse)
async def deactivate_tenant_route(
    tenant_id: int,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(super_admin_only),
):
    return await tenant_service.deactivate_tenant(tenant_id, db)


@router.get("/{tenant_id}/subscription", response_model=SubscriptionResponse)
async def get_subscription_route(
    tenant_id: int,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(tenant_admins),
):
    _check_tenant_access(current_user, tenant_id)
    await tenant_service.get_tenant_or_404(tenant_id, db)
    subscription = await subscription_service.get_active_subscription(tenant_id, db)
    if subscription is None:
        raise NoActiveSubscriptionError(tenant_id)
    return subscription


@router.put("/{tenant_id}/subscription", response_model=SubscriptionResponse)
async def update_subscription_route(
    tenant_id: int,
    payload: SubscriptionUpdate,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(tenant_admins),
):
    _check_tenant_access(current_user, tenant_id)
    await tenant_service.get_tenant_or_404(tenant_id, db)
    return await subscription_service.update_subscription(tenant_id, payload.plan, db)


@router.delete("/{tenant_id}/subscription", response_model=SubscriptionResponse)
async def cancel_subscription_route(
    tenant_id: int,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(tenant_admins),
):
    _check_tenant_access(current_user, tenant_id)
    await tenant_service.get_tenant_or_404(tenant_id, db)
    return await subscription_service.cancel_subscription(tenant_id, db)


@router.get("/{tenant_id}/limits", response_model=LimitCheckResponse)
async def check_limits_route(
    tenant_id: int,
    usage_type: ResourceType = Query(..., alias="type"),
    current_usage: int = Query(..., alias="current", ge=0),
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(tenant_admins),
):
    _check_tenant_access(current_user, tenant_id)
    allowed = await subscription_service.check_limit(tenant_id, usage_type, current_usage, db)
    return LimitCheckResponse(usage_type=usage_type, current_usage=current_usage, is_within_limit=allowed)
