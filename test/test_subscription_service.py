"""
Tests for the subscription ledger and entitlement guard
"""

import pytest
from sqlalchemy import select

from hms.constants.plans import PLAN_FEATURES, ResourceType, SubscriptionPlan
from hms.exceptions import ConcurrentUpdateError, NoActiveSubscriptionError, SubscriptionLimitExceededError
from hms.models.subscription import Subscription, SubscriptionStatus
from hms.services import subscription_service


async def _active_rows(db, tenant_id):
    result = await db.execute(
        select(Subscription).where(
            Subscription.tenant_id == tenant_id,
            Subscription.status == SubscriptionStatus.ACTIVE.value,
        )
    )
    return list(result.scalars().all())


class TestCheckLimit:
    """Test quota checks against the active subscription"""

    async def test_starter_user_quota(self, db, tenant):
        """A STARTER tenant at 4 of 5 seats may add one more; at 5 it may not"""
        assert await subscription_service.check_limit(tenant.id, "users", 4, db) is True
        assert await subscription_service.check_limit(tenant.id, "users", 5, db) is False
        assert await subscription_service.check_limit(tenant.id, ResourceType.PATIENTS, 99, db) is True
        assert await subscription_service.check_limit(tenant.id, ResourceType.PATIENTS, 100, db) is False

    async def test_recorded_usage_scenario(self, db, make_tenant):
        """acme on STARTER with five recorded seats can not add a sixth"""
        acme = await make_tenant("acme")
        await subscription_service.record_usage(acme.id, {ResourceType.USERS: 5}, db)

        assert await subscription_service.check_limit(acme.id, ResourceType.USERS, 5, db) is False
        assert await subscription_service.check_limit(acme.id, ResourceType.USERS, 4, db) is True

    async def test_monotonic_in_usage(self, db, tenant):
        results = [await subscription_service.check_limit(tenant.id, "appointments", n, db) for n in range(0, 150, 10)]
        # Once denied, every larger usage is denied too
        assert results == sorted(results, reverse=True)

    async def test_enterprise_is_unlimited(self, db, make_tenant):
        tenant = await make_tenant("Mega Health", plan=SubscriptionPlan.ENTERPRISE)
        for usage in (0, 1_000, 10**9):
            assert await subscription_service.check_limit(tenant.id, "users", usage, db) is True

    async def test_no_subscription_denies(self, db, tenant):
        await subscription_service.cancel_subscription(tenant.id, db)
        assert await subscription_service.check_limit(tenant.id, "users", 0, db) is False

    async def test_missing_quota_key_denies(self, db, tenant):
        subscription = await subscription_service.get_active_subscription(tenant.id, db)
        features = dict(subscription.features)
        del features["max_patients"]
        subscription.features = features
        await db.commit()

        assert await subscription_service.check_limit(tenant.id, "patients", 0, db) is False

    async def test_unknown_resource(self, db, tenant):
        with pytest.raises(ValueError):
            await subscription_service.check_limit(tenant.id, "beds", 0, db)

    async def test_ensure_within_limit(self, db, tenant):
        await subscription_service.ensure_within_limit(tenant.id, "users", 4, db)
        with pytest.raises(SubscriptionLimitExceededError) as exc_info:
            await subscription_service.ensure_within_limit(tenant.id, "users", 5, db)
        assert exc_info.value.details == {"resource": "users", "current_usage": 5}


class TestUpdateSubscription:
    """Test plan changes"""

    async def test_upgrade_overwrites_in_place(self, db, tenant):
        original = await subscription_service.get_active_subscription(tenant.id, db)
        original_id = original.id

        updated = await subscription_service.update_subscription(tenant.id, "PROFESSIONAL", db)

        assert updated.id == original_id
        assert updated.plan == "PROFESSIONAL"
        assert updated.price == 499
        assert updated.features["max_users"] == PLAN_FEATURES[SubscriptionPlan.PROFESSIONAL]["max_users"]
        assert len(await _active_rows(db, tenant.id)) == 1
        assert await subscription_service.check_limit(tenant.id, "users", 24, db) is True

    async def test_update_without_active_creates_one(self, db, tenant):
        await subscription_service.cancel_subscription(tenant.id, db)

        created = await subscription_service.update_subscription(tenant.id, "ENTERPRISE", db)

        assert created.status == SubscriptionStatus.ACTIVE.value
        assert created.plan == "ENTERPRISE"
        assert len(await subscription_service.list_subscriptions(tenant.id, db)) == 2
        assert len(await _active_rows(db, tenant.id)) == 1

    async def test_downgrade_flags_over_limit(self, db, make_tenant):
        tenant = await make_tenant("Big Clinic", plan=SubscriptionPlan.PROFESSIONAL)
        await subscription_service.record_usage(tenant.id, {"users": 12}, db)

        downgraded = await subscription_service.update_subscription(tenant.id, "STARTER", db)

        assert downgraded.is_over_limit is True
        assert downgraded.usage_stats["users"] == 12

    async def test_invalid_plan(self, db, tenant):
        with pytest.raises(ValueError):
            await subscription_service.update_subscription(tenant.id, "PLATINUM", db)

    async def test_concurrent_update_is_rejected(self, db, session_factory, tenant):
        """A write based on a stale read fails instead of overwriting"""
        async with session_factory() as other:
            stale = await subscription_service.get_active_subscription(tenant.id, other)
            assert stale is not None

            await subscription_service.update_subscription(tenant.id, "PROFESSIONAL", db)

            with pytest.raises(ConcurrentUpdateError):
                await subscription_service.cancel_subscription(tenant.id, other)

        current = await subscription_service.get_active_subscription(tenant.id, db)
        assert current.plan == "PROFESSIONAL"
        assert current.status == SubscriptionStatus.ACTIVE.value


class TestCancelSubscription:
    """Test cancellation"""

    async def test_cancel(self, db, tenant):
        cancelled = await subscription_service.cancel_subscription(tenant.id, db)

        assert cancelled.status == SubscriptionStatus.CANCELLED.value
        assert cancelled.cancelled_at is not None
        assert cancelled.is_auto_renew is False
        assert await subscription_service.get_active_subscription(tenant.id, db) is None

    async def test_cancel_twice_fails(self, db, tenant):
        await subscription_service.cancel_subscription(tenant.id, db)
        with pytest.raises(NoActiveSubscriptionError):
            await subscription_service.cancel_subscription(tenant.id, db)


class TestRecordUsage:
    """Test usage counters and the over-limit flag"""

    async def test_merges_partial_counters(self, db, tenant):
        await subscription_service.record_usage(tenant.id, {"users": 3}, db)
        subscription = await subscription_service.record_usage(tenant.id, {ResourceType.PATIENTS: 40}, db)

        assert subscription.usage_stats == {"users": 3, "patients": 40, "appointments": 0, "storage": 0}
        assert subscription.is_over_limit is False

    async def test_over_limit_only_for_users_and_patients(self, db, tenant):
        subscription = await subscription_service.record_usage(tenant.id, {"appointments": 500}, db)
        assert subscription.is_over_limit is False

        subscription = await subscription_service.record_usage(tenant.id, {"patients": 101}, db)
        assert subscription.is_over_limit is True

        subscription = await subscription_service.record_usage(tenant.id, {"patients": 100}, db)
        assert subscription.is_over_limit is False

    async def test_no_subscription_is_noop(self, db, tenant):
        await subscription_service.cancel_subscription(tenant.id, db)
        assert await subscription_service.record_usage(tenant.id, {"users": 2}, db) is None

    async def test_unknown_counter(self, db, tenant):
        with pytest.raises(ValueError):
            await subscription_service.record_usage(tenant.id, {"beds": 2}, db)
