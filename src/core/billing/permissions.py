"""
Role-based access control.

One table, one lookup. Operation names are "<area>.<action>"; the API
layer asks check_permission() before calling a service.
"""

from .errors import PermissionDeniedError
from .models import AdminRole


ADMIN_ONLY: frozenset[AdminRole] = frozenset({AdminRole.ADMIN})
ALL_ROLES: frozenset[AdminRole] = frozenset(AdminRole)

PERMISSIONS: dict[str, frozenset[AdminRole]] = {
    # Admin accounts
    "admins.read": ADMIN_ONLY,
    "admins.register": ADMIN_ONLY,
    "admins.write": ADMIN_ONLY,
    "admins.delete": ADMIN_ONLY,

    # Coaches
    "coaches.read": frozenset({AdminRole.ADMIN, AdminRole.SALES}),
    "coaches.write": ADMIN_ONLY,
    "coaches.delete": ADMIN_ONLY,

    # Plans
    "plans.read": ALL_ROLES,
    "plans.write": ADMIN_ONLY,
    "plans.delete": ADMIN_ONLY,

    # Subscriptions
    "subscriptions.read": ADMIN_ONLY,
    "subscriptions.write": ADMIN_ONLY,
    "subscriptions.delete": ADMIN_ONLY,

    # Payments
    "payments.read": frozenset({AdminRole.ADMIN, AdminRole.FINANCE}),
    "payments.write": ADMIN_ONLY,

    # Dashboard
    "dashboard.read": frozenset({AdminRole.ADMIN, AdminRole.FINANCE, AdminRole.SALES}),

    # Notifications
    "notifications.read": ADMIN_ONLY,
    "notifications.send": ADMIN_ONLY,
    "notifications.settings": ADMIN_ONLY,
}


def is_allowed(role: AdminRole, operation: str) -> bool:
    """Unknown operations are only allowed for ADMIN."""
    return role in PERMISSIONS.get(operation, ADMIN_ONLY)


def check_permission(role: AdminRole, operation: str) -> None:
    if not is_allowed(role, operation):
        raise PermissionDeniedError(
            f"Role '{role.value}' is not authorized to access this route"
        )
