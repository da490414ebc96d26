"""
models/office.py
----------------
Office locations inside a tenant store. Only the registration default
("Main Office") is created by this service; office CRUD lives elsewhere.
"""

import uuid
from typing import Optional

from sqlalchemy import Boolean, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from empcare.db.base import TenantBase, TimestampMixin


class Office(TenantBase, TimestampMixin):
    __tablename__ = "offices"

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    code: Mapped[str] = mapped_column(String(20), unique=True, nullable=False)
    contact_email: Mapped[Optional[str]] = mapped_column(String(320), nullable=True)
    manager: Mapped[str] = mapped_column(String(255), nullable=False, default="")
    total_assets: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    assigned_assets: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    available_assets: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    employees: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="Active")
    is_main: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    def __repr__(self) -> str:
        return f"<Office id={self.id} code={self.code}>"
