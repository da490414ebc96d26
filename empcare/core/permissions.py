"""
core/permissions.py
-------------------
Role → permission map used by the require_permission dependency, and the
module list seeded into a new tenant's "Admin" role.
"""

from enum import Enum

from empcare.models.user import UserRole

ALL_MODULES = [
    "assets",
    "assignments",
    "repairs",
    "vendors",
    "users",
    "reports",
    "settings",
    "invoices",
    "offices",
]


class Permission(str, Enum):
    VENDORS_READ = "vendors:read"
    VENDORS_WRITE = "vendors:write"
    VENDORS_DELETE = "vendors:delete"
    ASSETS_READ = "assets:read"
    ASSETS_WRITE = "assets:write"
    ASSETS_DELETE = "assets:delete"
    USERS_READ = "users:read"
    USERS_WRITE = "users:write"
    USERS_DELETE = "users:delete"
    REPORTS_READ = "reports:read"
    SETTINGS_READ = "settings:read"
    SETTINGS_WRITE = "settings:write"


ROLE_PERMISSIONS: dict[str, frozenset[Permission]] = {
    UserRole.admin.value: frozenset(Permission),
    UserRole.user.value: frozenset({
        Permission.VENDORS_READ,
        Permission.ASSETS_READ,
        Permission.USERS_READ,
        Permission.REPORTS_READ,
    }),
}


def get_role_permissions(role: str) -> frozenset[Permission]:
    """Unknown roles get no permissions."""
    return ROLE_PERMISSIONS.get(role, frozenset())
