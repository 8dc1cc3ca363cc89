"""
Subscription Service

The subscription ledger and entitlement guard.

A tenant has at most one ACTIVE subscription, always found as the most
recent ACTIVE row. Plan changes overwrite that row in place; the mapper's
version counter turns a concurrent overwrite into ConcurrentUpdateError
instead of a silent lost update.

Status machine: PENDING -> ACTIVE -> {CANCELLED, EXPIRED}. Terminal rows are
left only by update_subscription creating a new ACTIVE row.

Staff seats (non-deleted users whose role is not PATIENT) are metered
against the users quota by every path that creates or promotes staff.
"""

import logging
from datetime import timedelta

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm.exc import StaleDataError

from hms.config import settings
from hms.constants.plans import (
    MODERATED_RESOURCES,
    QUOTA_KEYS,
    UNLIMITED,
    ResourceType,
    SubscriptionPlan,
    empty_usage,
    get_plan_features,
)
from hms.constants.roles import UserRole
from hms.exceptions import ConcurrentUpdateError, NoActiveSubscriptionError, SubscriptionLimitExceededError
from hms.models.subscription import Subscription, SubscriptionStatus
from hms.models.user import User
from hms.utils.clock import utcnow

logger = logging.getLogger(__name__)


async def _commit(db: AsyncSession) -> None:
    try:
        await db.commit()
    except StaleDataError:
        await db.rollback()
        logger.warning("Subscription row changed during update; rejecting stale write")
        raise ConcurrentUpdateError("Subscription")


def _apply_plan(subscription: Subscription, plan: SubscriptionPlan) -> None:
    """Snapshot the plan's features and open a fresh billing window."""
    features = get_plan_features(plan)
    now = utcnow()
    subscription.plan = plan.value
    subscription.features = features
    subscription.price = features["price"]
    subscription.started_at = now
    subscription.ends_at = now + timedelta(days=settings.subscription_period_days)
    subscription.next_billing_at = subscription.ends_at


def _quota(features: dict, resource: ResourceType):
    return (features or {}).get(QUOTA_KEYS[resource])


def _is_over_limit(features: dict, usage: dict) -> bool:
    # Only users and patients feed the flag
    for resource in MODERATED_RESOURCES:
        quota = _quota(features, resource)
        if quota is None or quota == UNLIMITED:
            continue
        if usage.get(resource.value, 0) > quota:
            return True
    return False


async def get_active_subscription(tenant_id: int, db: AsyncSession) -> Subscription | None:
    """Return the tenant's most recent ACTIVE subscription, or None."""
    result = await db.execute(
        select(Subscription)
        .where(
            Subscription.tenant_id == tenant_id,
            Subscription.status == SubscriptionStatus.ACTIVE.value,
        )
        .order_by(Subscription.created_at.desc(), Subscription.id.desc())
        .limit(1)
    )
    return result.scalars().first()


async def list_subscriptions(tenant_id: int, db: AsyncSession) -> list[Subscription]:
    result = await db.execute(
        select(Subscription).where(Subscription.tenant_id == tenant_id).order_by(Subscription.id)
    )
    return list(result.scalars().all())


async def create_subscription(
    tenant_id: int,
    plan: SubscriptionPlan | str,
    db: AsyncSession,
    commit: bool = True,
) -> Subscription:
    """
    Create an ACTIVE subscription with a snapshot of the plan's features,
    a 30-day window, auto-renew on and zeroed usage counters.

    With commit=False the row is only flushed, so the caller can make it
    part of a larger transaction.
    """
    plan = SubscriptionPlan(plan)
    subscription = Subscription(
        tenant_id=tenant_id,
        status=SubscriptionStatus.ACTIVE.value,
        billing_cycle=1,
        is_auto_renew=True,
        usage_stats=empty_usage(),
        is_over_limit=False,
    )
    _apply_plan(subscription, plan)
    db.add(subscription)
    if commit:
        await _commit(db)
        await db.refresh(subscription)
    else:
        await db.flush()
    logger.info("Subscription created: tenant_id=%d plan=%s", tenant_id, plan.value)
    return subscription


async def update_subscription(
    tenant_id: int,
    plan: SubscriptionPlan | str,
    db: AsyncSession,
) -> Subscription:
    """
    Move the tenant to `plan`.

    Without an ACTIVE subscription this creates one. Otherwise the active row
    is overwritten in place: plan, features, price and window.
    """
    plan = SubscriptionPlan(plan)
    subscription = await get_active_subscription(tenant_id, db)
    if subscription is None:
        return await create_subscription(tenant_id, plan, db)

    previous = subscription.plan
    _apply_plan(subscription, plan)
    subscription.is_over_limit = _is_over_limit(subscription.features, subscription.usage_stats or {})
    await _commit(db)
    await db.refresh(subscription)
    logger.info("Subscription updated: tenant_id=%d %s -> %s", tenant_id, previous, plan.value)
    return subscription


async def cancel_subscription(tenant_id: int, db: AsyncSession) -> Subscription:
    subscription = await get_active_subscription(tenant_id, db)
    if subscription is None:
        raise NoActiveSubscriptionError(tenant_id)

    subscription.status = SubscriptionStatus.CANCELLED.value
    subscription.cancelled_at = utcnow()
    subscription.is_auto_renew = False
    await _commit(db)
    await db.refresh(subscription)
    logger.info("Subscription cancelled: tenant_id=%d id=%d", tenant_id, subscription.id)
    return subscription


async def check_limit(
    tenant_id: int,
    resource: ResourceType | str,
    current_usage: int,
    db: AsyncSession,
) -> bool:
    """
    True when `current_usage` is still below the resource quota.

    No ACTIVE subscription denies. A quota of UNLIMITED always allows. A
    resource name outside ResourceType raises ValueError.
    """
    resource = ResourceType(resource)
    subscription = await get_active_subscription(tenant_id, db)
    if subscription is None:
        logger.info("Limit check denied: tenant_id=%d has no active subscription", tenant_id)
        return False

    quota = _quota(subscription.features, resource)
    if quota is None:
        logger.warning(
            "Subscription id=%d has no quota for %s; denying", subscription.id, resource.value
        )
        return False
    if quota == UNLIMITED:
        return True
    return current_usage < quota


async def ensure_within_limit(
    tenant_id: int,
    resource: ResourceType | str,
    current_usage: int,
    db: AsyncSession,
) -> None:
    """Entitlement guard: raise SubscriptionLimitExceededError when check_limit denies."""
    resource = ResourceType(resource)
    if not await check_limit(tenant_id, resource, current_usage, db):
        logger.info(
            "Entitlement denied: tenant_id=%d resource=%s usage=%d", tenant_id, resource.value, current_usage
        )
        raise SubscriptionLimitExceededError(resource.value, current_usage)


async def record_usage(
    tenant_id: int,
    stats_patch: dict,
    db: AsyncSession,
) -> Subscription | None:
    """
    Merge partial usage counters into the active subscription and recompute
    its over-limit flag. Returns None (and changes nothing) when the tenant
    has no active subscription.
    """
    patch = {ResourceType(key).value: int(value) for key, value in stats_patch.items()}
    subscription = await get_active_subscription(tenant_id, db)
    if subscription is None:
        logger.warning("Usage not recorded: tenant_id=%d has no active subscription", tenant_id)
        return None

    # New dict so the JSON column registers the change
    usage = {**empty_usage(), **(subscription.usage_stats or {}), **patch}
    subscription.usage_stats = usage
    subscription.is_over_limit = _is_over_limit(subscription.features, usage)
    await _commit(db)
    await db.refresh(subscription)
    if subscription.is_over_limit:
        logger.warning("Tenant id=%d is over its subscription limits: %s", tenant_id, usage)
    return subscription


# ── Staff seats ───────────────────────────────────────────────────────────────


async def count_staff_users(tenant_id: int, db: AsyncSession) -> int:
    """Non-deleted users in the tenant whose role is not PATIENT."""
    result = await db.execute(
        select(func.count(User.id)).where(
            User.tenant_id == tenant_id,
            User.role != UserRole.PATIENT.value,
            User.deleted_at.is_(None),
        )
    )
    return result.scalar_one()


async def ensure_staff_seat(tenant_id: int, db: AsyncSession) -> None:
    """Raise SubscriptionLimitExceededError when every staff seat is taken."""
    seats = await count_staff_users(tenant_id, db)
    await ensure_within_limit(tenant_id, ResourceType.USERS, seats, db)


async def sync_staff_usage(tenant_id: int, db: AsyncSession) -> None:
    seats = await count_staff_users(tenant_id, db)
    await record_usage(tenant_id, {ResourceType.USERS: seats}, db)
