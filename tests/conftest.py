"""Shared fixtures.

Every test gets its own directory of SQLite stores under tmp_path: the control
store plus one file per registered tenant.
"""

import os

# main.py builds an application at import time and needs both keys present
os.environ.setdefault("SECRET_KEY", "test-secret-key")
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///./.empcare-stores")

from typing import AsyncGenerator, Awaitable, Callable

import pytest
import pytest_asyncio

from empcare.core.config import Settings
from empcare.core.security import SessionIssuer, configure_password_hashing
from empcare.db.connections import TenantConnectionManager
from empcare.models.tenant import Tenant
from empcare.models.user import User
from empcare.schemas.tenant import TenantCreate
from empcare.services.tenant_service import TenantService

configure_password_hashing(4)

RegisterTenant = Callable[..., Awaitable[tuple[Tenant, User]]]


@pytest.fixture
def base_url(tmp_path) -> str:
    """Server-level URL; for SQLite the database component is a directory."""
    return f"sqlite+aiosqlite:///{tmp_path}"


@pytest.fixture
def settings(base_url: str) -> Settings:
    return Settings(
        SECRET_KEY="test-secret-key",
        DATABASE_URL=base_url,
        BCRYPT_ROUNDS=4,
        CREATE_SCHEMA_ON_STARTUP=True,
    )


@pytest.fixture
def issuer(settings: Settings) -> SessionIssuer:
    return SessionIssuer.from_settings(settings)


@pytest_asyncio.fixture
async def connections(settings: Settings) -> AsyncGenerator[TenantConnectionManager, None]:
    """Connection manager with the control schema in place."""
    manager = TenantConnectionManager.from_settings(settings)
    await manager.create_control_schema()
    yield manager
    await manager.close_all()


@pytest.fixture
def register_tenant(connections: TenantConnectionManager) -> RegisterTenant:
    """Register a company through the service layer; returns (tenant, admin)."""

    async def _register(
        display_name: str,
        admin_email: str,
        admin_secret: str = "AdminPass1",
        shared_secret: str = "team-secret",
    ) -> tuple[Tenant, User]:
        data = TenantCreate(
            display_name=display_name,
            admin_email=admin_email,
            admin_secret=admin_secret,
            shared_secret=shared_secret,
        )
        control = await connections.get_control_connection()
        async with control.session() as db:
            return await TenantService.register_tenant(db, connections, data)

    return _register
