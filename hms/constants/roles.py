"""
Role Constants

The nine fixed user roles and their hierarchy ranks.
"""

from enum import Enum
from types import MappingProxyType


class UserRole(str, Enum):
    """Enumeration of role names in the system."""

    SUPER_ADMIN = "SUPER_ADMIN"
    HOSPITAL_ADMIN = "HOSPITAL_ADMIN"
    DOCTOR = "DOCTOR"
    NURSE = "NURSE"
    RECEPTIONIST = "RECEPTIONIST"
    PHARMACIST = "PHARMACIST"
    LAB_TECHNICIAN = "LAB_TECHNICIAN"
    BILLING_STAFF = "BILLING_STAFF"
    PATIENT = "PATIENT"


# Default role for self-registration
DEFAULT_ROLE = UserRole.PATIENT

# Role hierarchy (higher number = more privileges)
ROLE_HIERARCHY = MappingProxyType(
    {
        UserRole.SUPER_ADMIN: 9,
        UserRole.HOSPITAL_ADMIN: 8,
        UserRole.DOCTOR: 7,
        UserRole.NURSE: 6,
        UserRole.PHARMACIST: 5,
        UserRole.LAB_TECHNICIAN: 5,
        UserRole.RECEPTIONIST: 4,
        UserRole.BILLING_STAFF: 4,
        UserRole.PATIENT: 1,
    }
)


def get_default_role_name() -> str:
    """Get the default role name for self-registered users."""
    return DEFAULT_ROLE.value


def get_role_rank(role: str) -> int:
    """Return the hierarchy rank of a role, 0 for unknown roles."""
    try:
        return ROLE_HIERARCHY[UserRole(role)]
    except ValueError:
        return 0


def is_higher_role(role1: str, role2: str) -> bool:
    """
    Check if role1 has higher privileges than role2.

    Args:
        role1: First role name
        role2: Second role name

    Returns:
        bool: True if role1 > role2 in hierarchy
    """
    return get_role_rank(role1) > get_role_rank(role2)


def has_minimum_role(role: str, minimum: str) -> bool:
    """True if `role` ranks at or above `minimum`."""
    return get_role_rank(role) >= get_role_rank(minimum)
