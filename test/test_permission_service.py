"""
Tests for the role and permission predicates
"""

from types import SimpleNamespace

import pytest

from hms.constants.roles import UserRole
from hms.permissions_config.permissions import DEFAULT_PERMISSIONS
from hms.services import permission_service


def _user(role, permissions=None):
    return SimpleNamespace(role=role.value if isinstance(role, UserRole) else role, permissions=permissions)


class TestAuthorize:
    """Role membership checks"""

    def test_member_role_is_allowed(self):
        assert permission_service.authorize(_user(UserRole.DOCTOR), [UserRole.DOCTOR, UserRole.NURSE])

    def test_accepts_plain_strings(self):
        assert permission_service.authorize(_user("NURSE"), {"NURSE"})

    def test_higher_rank_is_not_enough(self):
        """Membership only; a SUPER_ADMIN is refused a doctor-only gate"""
        assert not permission_service.authorize(_user(UserRole.SUPER_ADMIN), [UserRole.DOCTOR])

    def test_empty_role_list_denies(self):
        assert not permission_service.authorize(_user(UserRole.SUPER_ADMIN), [])


class TestHasPermission:
    """Checks against the user's own permission list"""

    def test_listed_permission(self):
        assert permission_service.has_permission(_user(UserRole.NURSE, ["manage_vitals"]), "manage_vitals")

    def test_role_defaults_are_not_consulted(self):
        """A doctor whose list was edited loses the permission"""
        assert not permission_service.has_permission(_user(UserRole.DOCTOR, []), "view_patients")

    def test_missing_list(self):
        assert not permission_service.has_permission(_user(UserRole.DOCTOR, None), "view_patients")


class TestRanks:
    def test_has_minimum_rank(self):
        assert permission_service.has_minimum_rank(_user(UserRole.HOSPITAL_ADMIN), UserRole.DOCTOR)
        assert permission_service.has_minimum_rank(_user(UserRole.NURSE), "NURSE")
        assert not permission_service.has_minimum_rank(_user(UserRole.PATIENT), UserRole.RECEPTIONIST)


class TestSeedPermissions:
    @pytest.mark.parametrize("role", list(UserRole))
    def test_seed_matches_defaults(self, role):
        assert permission_service.seed_permissions(role) == list(DEFAULT_PERMISSIONS[role])

    def test_seeded_lists_are_independent(self):
        first = permission_service.seed_permissions(UserRole.NURSE)
        second = permission_service.seed_permissions("NURSE")
        first.clear()
        assert second
