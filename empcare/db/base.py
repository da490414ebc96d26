"""
db/base.py
----------
Declarative bases and shared mixins.

There are two independent metadata collections:
  ControlBase: tables of the shared control store (the tenant registry).
  TenantBase:  tables created inside every tenant's isolated store.

TimestampMixin: created_at / updated_at columns. created_at is also set
                client-side with microsecond precision so tenants can be
                enumerated in a stable registration order on every backend.
"""

import uuid
from datetime import datetime, timezone

from sqlalchemy import DateTime, func
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class ControlBase(DeclarativeBase):
    """Base class for control-store models."""
    pass


class TenantBase(DeclarativeBase):
    """Base class for models living in a tenant store."""
    pass


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class TimestampMixin:
    """Adds created_at and updated_at timestamps."""

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
        server_default=func.now(),
        nullable=False,
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
        server_default=func.now(),
        onupdate=utcnow,
        nullable=False,
    )


def generate_uuid() -> str:
    return str(uuid.uuid4())
