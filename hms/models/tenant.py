"""
Tenant model.

Each Tenant is an isolated hospital or clinic. Users and subscriptions point
at the integer primary key; the public `identifier` slug may be regenerated
when the tenant is renamed.
"""

from sqlalchemy import JSON, Boolean, Column, DateTime, Index, Integer, String, Text

from hms.database import Base
from hms.utils.clock import utcnow


class Tenant(Base):
    __tablename__ = "tenants"

    id = Column(Integer, primary_key=True, index=True)
    identifier = Column(String(50), nullable=False, unique=True)  # URL-safe, e.g. "city-general-k3x9qa"
    name = Column(String(200), nullable=False)
    email = Column(String(255), nullable=True)
    phone = Column(String(50), nullable=True)
    description = Column(Text, nullable=True)
    website = Column(String(255), nullable=True)
    address = Column(JSON, nullable=True)
    settings = Column(JSON, nullable=True, default=dict)

    is_active = Column(Boolean, nullable=False, default=True)
    is_on_trial = Column(Boolean, nullable=False, default=True)
    trial_ends_at = Column(DateTime, nullable=True)

    created_at = Column(DateTime, nullable=False, default=utcnow)
    updated_at = Column(DateTime, nullable=False, default=utcnow, onupdate=utcnow)

    __table_args__ = (
        Index("idx_tenant_identifier", "identifier"),
        Index("idx_tenant_active", "is_active"),
    )
