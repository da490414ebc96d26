"""
models/tenant.py
----------------
Tenant (company) registry model. Lives in the control store.

Each tenant owns an isolated store whose name is storage_id, a pure function
of display_name (see db/connections.derive_storage_id). The admin secret and
the shared secret are stored as bcrypt hashes only.
"""

import uuid

from sqlalchemy import Boolean, String
from sqlalchemy.orm import Mapped, mapped_column

from empcare.db.base import ControlBase, TimestampMixin


class Tenant(ControlBase, TimestampMixin):
    __tablename__ = "tenants"

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    display_name: Mapped[str] = mapped_column(
        String(100), unique=True, nullable=False, index=True
    )
    admin_email: Mapped[str] = mapped_column(
        String(320), unique=True, nullable=False, index=True
    )
    hashed_admin_secret: Mapped[str] = mapped_column(String(255), nullable=False)
    hashed_shared_secret: Mapped[str] = mapped_column(String(255), nullable=False)
    storage_id: Mapped[str] = mapped_column(String(63), unique=True, nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    def __repr__(self) -> str:
        return f"<Tenant id={self.id} display_name={self.display_name}>"
