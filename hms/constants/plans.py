"""
Subscription plan constants.

PLAN_FEATURES is the entitlement table each subscription snapshots when a
plan is assigned. A quota of UNLIMITED always passes a limit check.
"""

import copy
from enum import Enum
from types import MappingProxyType


class SubscriptionPlan(str, Enum):
    STARTER = "STARTER"
    PROFESSIONAL = "PROFESSIONAL"
    ENTERPRISE = "ENTERPRISE"


class ResourceType(str, Enum):
    """Resources whose usage is metered against plan quotas."""

    USERS = "users"
    PATIENTS = "patients"
    APPOINTMENTS = "appointments"
    STORAGE = "storage"


UNLIMITED = -1

DEFAULT_PLAN = SubscriptionPlan.STARTER

# Feature-snapshot key holding the quota for each resource
QUOTA_KEYS = MappingProxyType(
    {
        ResourceType.USERS: "max_users",
        ResourceType.PATIENTS: "max_patients",
        ResourceType.APPOINTMENTS: "max_appointments",
        ResourceType.STORAGE: "storage_gb",
    }
)

# Resources whose usage feeds the subscription's over-limit flag
MODERATED_RESOURCES = (ResourceType.USERS, ResourceType.PATIENTS)

_BASE_MODULES = ("OPD_MANAGEMENT", "BILLING", "APPOINTMENTS", "DOCTOR_DASHBOARD")
_PROFESSIONAL_MODULES = _BASE_MODULES + (
    "EMR_EHR",
    "PHARMACY",
    "LABORATORY",
    "IPD_MANAGEMENT",
    "TELEMEDICINE",
)
_ENTERPRISE_MODULES = _PROFESSIONAL_MODULES + (
    "INTEGRATIONS",
    "ADVANCED_ANALYTICS",
    "MULTI_BRANCH",
    "CORPORATE_BILLING",
)

PLAN_FEATURES = MappingProxyType(
    {
        SubscriptionPlan.STARTER: MappingProxyType(
            {
                "max_users": 5,
                "max_patients": 100,
                "max_appointments": 100,
                "storage_gb": 5,
                "modules": _BASE_MODULES,
                "support": "email",
                "price": 99,
            }
        ),
        SubscriptionPlan.PROFESSIONAL: MappingProxyType(
            {
                "max_users": 25,
                "max_patients": 1000,
                "max_appointments": 1000,
                "storage_gb": 50,
                "modules": _PROFESSIONAL_MODULES,
                "support": "email_phone",
                "price": 499,
            }
        ),
        SubscriptionPlan.ENTERPRISE: MappingProxyType(
            {
                "max_users": UNLIMITED,
                "max_patients": UNLIMITED,
                "max_appointments": UNLIMITED,
                "storage_gb": 500,
                "modules": _ENTERPRISE_MODULES,
                "support": "24x7_dedicated",
                "price": 1999,
            }
        ),
    }
)


def get_plan_features(plan: str) -> dict:
    """Return a detached, JSON-ready copy of a plan's feature table."""
    features = copy.deepcopy(dict(PLAN_FEATURES[SubscriptionPlan(plan)]))
    features["modules"] = list(features["modules"])
    return features


def empty_usage() -> dict:
    return {resource.value: 0 for resource in ResourceType}
