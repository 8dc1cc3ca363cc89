"""
Subscription model.

A subscription snapshots its plan's feature table at assignment time, so
later edits to PLAN_FEATURES never change what an existing tenant is entitled
to. `version` is the mapper's version counter: an UPDATE issued against a row
that another transaction already changed fails with StaleDataError.
"""

import enum

from sqlalchemy import JSON, Boolean, Column, DateTime, ForeignKey, Index, Integer, String

from hms.constants.plans import SubscriptionPlan, empty_usage
from hms.database import Base
from hms.utils.clock import utcnow


class SubscriptionStatus(str, enum.Enum):
    ACTIVE = "ACTIVE"
    INACTIVE = "INACTIVE"
    CANCELLED = "CANCELLED"
    EXPIRED = "EXPIRED"
    PENDING = "PENDING"


class Subscription(Base):
    __tablename__ = "subscriptions"

    id = Column(Integer, primary_key=True, index=True)
    tenant_id = Column(Integer, ForeignKey("tenants.id", ondelete="CASCADE"), nullable=False, index=True)

    plan = Column(String(20), nullable=False, default=SubscriptionPlan.STARTER.value)
    status = Column(String(20), nullable=False, default=SubscriptionStatus.PENDING.value)
    features = Column(JSON, nullable=False, default=dict)
    price = Column(Integer, nullable=False, default=0)  # monthly, whole currency units
    billing_cycle = Column(Integer, nullable=False, default=1)  # months
    is_auto_renew = Column(Boolean, nullable=False, default=True)

    started_at = Column(DateTime, nullable=True)
    ends_at = Column(DateTime, nullable=True)
    next_billing_at = Column(DateTime, nullable=True)
    cancelled_at = Column(DateTime, nullable=True)

    usage_stats = Column(JSON, nullable=False, default=empty_usage)
    is_over_limit = Column(Boolean, nullable=False, default=False)

    version = Column(Integer, nullable=False)

    created_at = Column(DateTime, nullable=False, default=utcnow)
    updated_at = Column(DateTime, nullable=False, default=utcnow, onupdate=utcnow)

    __mapper_args__ = {"version_id_col": version}

    __table_args__ = (Index("idx_subscription_tenant_status", "tenant_id", "status"),)
