"""
models/user.py
--------------
User model, stored inside each tenant's own store.

Role design:
  - 'admin': the tenant's registered administrator (admin secret).
  - 'user':  members authenticating with the tenant-wide shared secret.

Users hold no password of their own. (email, tenant_id) is the only
compound unique constraint; it is what turns a concurrent auto-provisioning
race into a clean IntegrityError.
"""

import uuid
from datetime import datetime
from enum import Enum as PyEnum
from typing import Optional

from sqlalchemy import Boolean, DateTime, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from empcare.db.base import TenantBase, TimestampMixin


class UserRole(str, PyEnum):
    admin = "admin"
    user = "user"


class User(TenantBase, TimestampMixin):
    __tablename__ = "users"
    __table_args__ = (
        UniqueConstraint("email", "tenant_id", name="uq_users_email_tenant"),
    )

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    email: Mapped[str] = mapped_column(String(320), nullable=False, index=True)
    tenant_id: Mapped[str] = mapped_column(String(36), nullable=False, index=True)
    tenant_display_name: Mapped[str] = mapped_column(String(100), nullable=False)
    role: Mapped[str] = mapped_column(
        String(20), nullable=False, default=UserRole.user.value
    )
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    last_login: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    def __repr__(self) -> str:
        return f"<User id={self.id} email={self.email} role={self.role}>"
