"""
schemas/user.py
---------------
Pydantic models for login, session responses and user records.

Security note:
  - Secrets and their hashes are NEVER included in any response schema.
"""

from datetime import datetime
from typing import Optional

from pydantic import EmailStr, Field, field_validator

from empcare.schemas.base import ApiModel
from empcare.schemas.tenant import TenantRead


class LoginRequest(ApiModel):
    email: EmailStr
    password: str = Field(..., min_length=1, max_length=128)

    @field_validator("email")
    @classmethod
    def lowercase_email(cls, v: str) -> str:
        return v.lower()


class UserRead(ApiModel):
    id: str
    email: str
    tenant_id: str
    tenant_display_name: str
    role: str
    is_active: bool
    last_login: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime


class TokenResponse(ApiModel):
    token: str
    token_type: str = "bearer"
    expires_in: int  # seconds
    user: UserRead
    tenant: TenantRead


class MeResponse(ApiModel):
    user: UserRead
    tenant: TenantRead


class MessageResponse(ApiModel):
    message: str
