"""
Tests for constants modules

Role hierarchy, plan feature tables and the default permission table.
"""

import pytest

from hms.constants.auth import ACCESS_TOKEN_EXPIRE_MINUTES, ALGORITHM, REFRESH_TOKEN_EXPIRE_DAYS
from hms.constants.plans import (
    PLAN_FEATURES,
    QUOTA_KEYS,
    UNLIMITED,
    ResourceType,
    SubscriptionPlan,
    empty_usage,
    get_plan_features,
)
from hms.constants.roles import (
    ROLE_HIERARCHY,
    UserRole,
    get_default_role_name,
    get_role_rank,
    has_minimum_role,
    is_higher_role,
)
from hms.permissions_config.permissions import ALL_PERMISSIONS, DEFAULT_PERMISSIONS, get_default_permissions


class TestAuthConstants:
    """Test authentication constants"""

    def test_algorithm_is_hs256(self):
        assert ALGORITHM == "HS256"

    def test_token_lifetimes(self):
        assert ACCESS_TOKEN_EXPIRE_MINUTES == 15
        assert REFRESH_TOKEN_EXPIRE_DAYS == 7


class TestRoleConstants:
    """Test the role hierarchy and rank helpers"""

    def test_every_role_has_a_rank(self):
        assert set(ROLE_HIERARCHY) == set(UserRole)

    def test_super_admin_is_highest_and_patient_lowest(self):
        assert get_role_rank("SUPER_ADMIN") == 9
        assert get_role_rank("PATIENT") == 1
        assert max(ROLE_HIERARCHY.values()) == ROLE_HIERARCHY[UserRole.SUPER_ADMIN]

    def test_unknown_role_ranks_zero(self):
        """Unknown role names rank below every real role"""
        assert get_role_rank("JANITOR") == 0

    def test_hierarchy_is_read_only(self):
        with pytest.raises(TypeError):
            ROLE_HIERARCHY[UserRole.PATIENT] = 10

    def test_is_higher_role(self):
        assert is_higher_role("DOCTOR", "NURSE")
        assert not is_higher_role("PHARMACIST", "LAB_TECHNICIAN")
        assert not is_higher_role("PATIENT", "RECEPTIONIST")

    def test_has_minimum_role(self):
        assert has_minimum_role("HOSPITAL_ADMIN", "DOCTOR")
        assert has_minimum_role("NURSE", "NURSE")
        assert not has_minimum_role("BILLING_STAFF", "NURSE")

    def test_default_role_is_patient(self):
        assert get_default_role_name() == "PATIENT"


class TestPlanConstants:
    """Test plan feature tables"""

    def test_starter_quotas(self):
        starter = PLAN_FEATURES[SubscriptionPlan.STARTER]
        assert starter["max_users"] == 5
        assert starter["max_patients"] == 100
        assert starter["price"] == 99
        assert len(starter["modules"]) == 4

    def test_enterprise_is_unlimited(self):
        enterprise = PLAN_FEATURES[SubscriptionPlan.ENTERPRISE]
        assert enterprise["max_users"] == UNLIMITED
        assert enterprise["max_patients"] == UNLIMITED
        assert enterprise["max_appointments"] == UNLIMITED
        assert len(enterprise["modules"]) == 13

    def test_every_resource_has_a_quota_key(self):
        assert set(QUOTA_KEYS) == set(ResourceType)
        for plan in SubscriptionPlan:
            for key in QUOTA_KEYS.values():
                assert key in PLAN_FEATURES[plan]

    def test_get_plan_features_returns_detached_copy(self):
        """Editing a returned feature dict must not leak into the plan table"""
        features = get_plan_features("PROFESSIONAL")
        features["max_users"] = 1
        features["modules"].append("HACKED")

        assert PLAN_FEATURES[SubscriptionPlan.PROFESSIONAL]["max_users"] == 25
        assert "HACKED" not in PLAN_FEATURES[SubscriptionPlan.PROFESSIONAL]["modules"]

    def test_unknown_plan_rejected(self):
        with pytest.raises(ValueError):
            get_plan_features("PLATINUM")

    def test_unknown_resource_rejected(self):
        with pytest.raises(ValueError):
            ResourceType("beds")

    def test_empty_usage(self):
        assert empty_usage() == {"users": 0, "patients": 0, "appointments": 0, "storage": 0}


class TestDefaultPermissions:
    """Test the per-role default permission table"""

    def test_every_role_has_defaults(self):
        assert set(DEFAULT_PERMISSIONS) == set(UserRole)

    def test_defaults_are_fresh_lists(self):
        """Each call hands out an independent list"""
        first = get_default_permissions("DOCTOR")
        first.append("delete_everything")

        assert "delete_everything" not in get_default_permissions("DOCTOR")
        assert "delete_everything" not in DEFAULT_PERMISSIONS[UserRole.DOCTOR]

    def test_table_is_immutable(self):
        with pytest.raises(TypeError):
            DEFAULT_PERMISSIONS[UserRole.NURSE] = ()
        with pytest.raises(AttributeError):
            DEFAULT_PERMISSIONS[UserRole.NURSE].append("x")

    def test_invalid_role(self):
        with pytest.raises(ValueError, match="Invalid role"):
            get_default_permissions("JANITOR")

    def test_all_permissions_is_union(self):
        assert "manage_tenants" in ALL_PERMISSIONS
        assert "view_own_records" in ALL_PERMISSIONS
