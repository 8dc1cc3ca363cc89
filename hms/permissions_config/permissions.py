# Default permissions per role. Users receive a copy when a role is assigned;
# later edits here do not touch existing users.
from types import MappingProxyType

from hms.constants.roles import UserRole

DEFAULT_PERMISSIONS = MappingProxyType(
    {
        UserRole.SUPER_ADMIN: (
            "manage_tenants",
            "manage_users",
            "manage_subscriptions",
            "view_analytics",
            "system_settings",
        ),
        UserRole.HOSPITAL_ADMIN: (
            "manage_users",
            "manage_appointments",
            "view_reports",
            "manage_billing",
            "manage_pharmacy",
            "manage_laboratory",
        ),
        UserRole.DOCTOR: (
            "view_patients",
            "manage_medical_records",
            "create_prescriptions",
            "manage_appointments",
            "view_lab_results",
        ),
        UserRole.NURSE: (
            "view_patients",
            "manage_vitals",
            "administer_medications",
            "update_medical_records",
        ),
        UserRole.RECEPTIONIST: (
            "manage_appointments",
            "manage_patient_registration",
            "view_patient_info",
            "manage_billing_basic",
        ),
        UserRole.PHARMACIST: (
            "manage_inventory",
            "fulfill_prescriptions",
            "manage_sales",
            "view_patient_medications",
        ),
        UserRole.LAB_TECHNICIAN: (
            "manage_lab_tests",
            "enter_results",
            "manage_samples",
            "view_patient_tests",
        ),
        UserRole.BILLING_STAFF: (
            "manage_invoices",
            "process_payments",
            "manage_insurance_claims",
            "view_reports",
        ),
        UserRole.PATIENT: (
            "view_own_records",
            "manage_appointments",
            "view_prescriptions",
            "make_payments",
        ),
    }
)

ALL_PERMISSIONS = frozenset(p for perms in DEFAULT_PERMISSIONS.values() for p in perms)


def get_default_permissions(role: str) -> list[str]:
    """
    Returns a fresh list of the default permissions for a role.
    """
    try:
        role_enum = UserRole(role)
    except ValueError:
        raise ValueError(f"Invalid role: {role}") from None
    return list(DEFAULT_PERMISSIONS[role_enum])
