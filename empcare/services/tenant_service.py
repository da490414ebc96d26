"""
services/tenant_service.py
--------------------------
Tenant registry (control store) and company registration.

Service layer is responsible for:
  - Constructing queries
  - Enforcing business rules (unique names, unique storage ids, unique admin email)
  - Returning domain objects (ORM models) to the route layer
  - Never returning HTTP responses (that's the route's job)
"""

import asyncio

from sqlalchemy import delete, func, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from empcare.core.exceptions import ConnectionFailure, DuplicateTenant, DuplicateUser
from empcare.core.logging import get_logger
from empcare.core.permissions import ALL_MODULES
from empcare.core.security import hash_password
from empcare.db.connections import TenantConnectionManager
from empcare.models.office import Office
from empcare.models.role import Role
from empcare.models.tenant import Tenant
from empcare.models.user import User, UserRole
from empcare.schemas.tenant import TenantCreate
from empcare.services.user_service import UserService

logger = get_logger(__name__)


class TenantService:

    @staticmethod
    async def register_tenant(
        db: AsyncSession,
        connections: TenantConnectionManager,
        data: TenantCreate,
    ) -> tuple[Tenant, User]:
        """
        Register a company: registry row, tenant store, admin user, default
        "Admin" role and "Main Office".

        Two distinct display names can normalise to the same storage id, so
        the storage id is checked as well as the name itself.

        Raises:
            DuplicateTenant: Name or derived storage id already registered.
            DuplicateUser: Admin email already registered.
            ConnectionFailure: The tenant store could not be provisioned or
                seeded, or the registry commit failed.
        """
        storage_id = connections.storage_id_for(data.display_name)

        if await TenantService.get_tenant_by_name(db, data.display_name) is not None:
            raise DuplicateTenant("Company name already exists. Please choose a different name.")
        if await TenantService.get_tenant_by_storage_id(db, storage_id) is not None:
            raise DuplicateTenant(
                "Company name conflicts with an existing company. Please choose a different name."
            )
        if await TenantService.get_tenant_by_admin_email(db, data.admin_email) is not None:
            raise DuplicateUser("Email already registered. Please use a different email.")

        hashed_admin_secret, hashed_shared_secret = await asyncio.gather(
            asyncio.to_thread(hash_password, data.admin_secret),
            asyncio.to_thread(hash_password, data.shared_secret),
        )
        tenant = Tenant(
            display_name=data.display_name,
            admin_email=data.admin_email.lower(),
            hashed_admin_secret=hashed_admin_secret,
            hashed_shared_secret=hashed_shared_secret,
            storage_id=storage_id,
            is_active=True,
        )
        db.add(tenant)
        try:
            await db.flush()  # Trigger DB constraints before touching the tenant store
        except IntegrityError as exc:
            await db.rollback()
            raise DuplicateTenant() from exc

        try:
            handle = await connections.provision_tenant_store(tenant.display_name)
            async with handle.begin() as tenant_db:
                await TenantService._clear_orphaned_store(tenant_db, storage_id)
                admin = UserService.create_user(tenant_db, tenant, tenant.admin_email, UserRole.admin)
                tenant_db.add_all([
                    Role(
                        name="Admin",
                        description="Full access to every module",
                        permissions=list(ALL_MODULES),
                        tenant_id=tenant.id,
                    ),
                    Office(
                        name="Main Office",
                        code="MAIN",
                        contact_email=tenant.admin_email,
                        employees=1,
                        status="Active",
                        is_main=True,
                    ),
                ])
        except ConnectionFailure:
            await db.rollback()
            raise

        try:
            await db.commit()
        except IntegrityError as exc:
            await db.rollback()
            raise DuplicateTenant() from exc
        except SQLAlchemyError as exc:
            # The seeded store is cleared by the next registration attempt
            await db.rollback()
            logger.error("Tenant registry commit failed", storage_id=storage_id, error=str(exc))
            raise ConnectionFailure(storage_id=connections.control_store_name) from exc
        await db.refresh(tenant)

        logger.info(
            "Tenant registered",
            tenant_id=tenant.id,
            storage_id=storage_id,
            admin_user_id=admin.id,
        )
        return tenant, admin

    @staticmethod
    async def _clear_orphaned_store(tenant_db: AsyncSession, storage_id: str) -> None:
        """
        Empty a tenant store left behind by a registration whose registry
        commit failed. The caller has already confirmed that no registered
        tenant owns this storage id.
        """
        removed = 0
        for model in (User, Role, Office):
            result = await tenant_db.execute(delete(model))
            removed += result.rowcount or 0
        if removed:
            logger.warning("Cleared orphaned tenant store", storage_id=storage_id, rows=removed)

    @staticmethod
    async def is_display_name_available(
        db: AsyncSession,
        connections: TenantConnectionManager,
        display_name: str,
    ) -> bool:
        if await TenantService.get_tenant_by_name(db, display_name) is not None:
            return False
        storage_id = connections.storage_id_for(display_name)
        return await TenantService.get_tenant_by_storage_id(db, storage_id) is None

    @staticmethod
    async def deactivate_tenant(
        db: AsyncSession,
        connections: TenantConnectionManager,
        tenant_id: str,
    ) -> Tenant | None:
        """Offboard a tenant: mark it inactive and evict its cached connection."""
        tenant = await TenantService.get_tenant_by_id(db, tenant_id)
        if tenant is None:
            return None
        tenant.is_active = False
        await db.commit()
        await connections.close_tenant(tenant.display_name)
        logger.info("Tenant deactivated", tenant_id=tenant.id, storage_id=tenant.storage_id)
        return tenant

    @staticmethod
    async def get_tenant_by_id(db: AsyncSession, tenant_id: str) -> Tenant | None:
        result = await db.execute(select(Tenant).where(Tenant.id == tenant_id))
        return result.scalar_one_or_none()

    @staticmethod
    async def get_tenant_by_name(db: AsyncSession, display_name: str) -> Tenant | None:
        """Case-insensitive lookup."""
        result = await db.execute(
            select(Tenant).where(func.lower(Tenant.display_name) == display_name.strip().lower())
        )
        return result.scalar_one_or_none()

    @staticmethod
    async def get_tenant_by_storage_id(db: AsyncSession, storage_id: str) -> Tenant | None:
        result = await db.execute(select(Tenant).where(Tenant.storage_id == storage_id))
        return result.scalar_one_or_none()

    @staticmethod
    async def get_tenant_by_admin_email(db: AsyncSession, email: str) -> Tenant | None:
        result = await db.execute(select(Tenant).where(Tenant.admin_email == email.lower()))
        return result.scalar_one_or_none()

    @staticmethod
    async def get_active_tenant_by_admin_email(db: AsyncSession, email: str) -> Tenant | None:
        result = await db.execute(
            select(Tenant).where(
                Tenant.admin_email == email.lower(),
                Tenant.is_active.is_(True),
            )
        )
        return result.scalar_one_or_none()

    @staticmethod
    async def list_active_tenants(db: AsyncSession) -> list[Tenant]:
        """Active tenants in registration order."""
        result = await db.execute(
            select(Tenant)
            .where(Tenant.is_active.is_(True))
            .order_by(Tenant.created_at, Tenant.id)
        )
        return list(result.scalars().all())
