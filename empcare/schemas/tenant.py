"""
schemas/tenant.py
-----------------
Pydantic request/response models for Tenant.

Naming convention:
  TenantCreate  → inbound request body (company signup)
  TenantRead    → outbound response body (never exposes secrets or hashes)

JSON keys are camelCase on the wire; snake_case is accepted on input too.
"""

import re
from datetime import datetime

from pydantic import EmailStr, Field, field_validator

from empcare.schemas.base import ApiModel

_DISPLAY_NAME = re.compile(r"^[a-zA-Z0-9\s&.-]+$")


class TenantCreate(ApiModel):
    display_name: str = Field(
        ...,
        min_length=2,
        max_length=100,
        examples=["Acme Corp"],
        description="Unique company / tenant name",
    )
    admin_email: EmailStr
    admin_secret: str = Field(..., min_length=8, max_length=128)
    shared_secret: str = Field(..., min_length=6, max_length=20)

    @field_validator("display_name")
    @classmethod
    def check_display_name(cls, v: str) -> str:
        v = v.strip()
        if len(v) < 2:
            raise ValueError("Company name must be between 2 and 100 characters")
        if not _DISPLAY_NAME.match(v):
            raise ValueError("Company name contains invalid characters")
        return v

    @field_validator("admin_email")
    @classmethod
    def lowercase_email(cls, v: str) -> str:
        return v.lower()

    @field_validator("admin_secret")
    @classmethod
    def check_admin_secret(cls, v: str) -> str:
        if not (
            any(c.islower() for c in v)
            and any(c.isupper() for c in v)
            and any(c.isdigit() for c in v)
        ):
            raise ValueError(
                "Password must contain at least one uppercase letter, "
                "one lowercase letter, and one number"
            )
        return v


class TenantRead(ApiModel):
    id: str
    display_name: str
    admin_email: str
    is_active: bool
    created_at: datetime


class CompanyAvailability(ApiModel):
    available: bool
    message: str
