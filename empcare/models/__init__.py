"""
models/__init__.py
------------------
Re-export all models so that importing this package registers every table
on its metadata:

    from empcare.models import ControlBase, TenantBase
"""

from empcare.db.base import ControlBase, TenantBase
from empcare.models.office import Office
from empcare.models.role import Role
from empcare.models.tenant import Tenant
from empcare.models.user import User, UserRole

__all__ = ["ControlBase", "TenantBase", "Office", "Role", "Tenant", "User", "UserRole"]
