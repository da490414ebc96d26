"""
services/user_service.py
------------------------
User records inside a tenant store.

Every function takes a session bound to ONE tenant's store and still filters
by tenant_id, so a misrouted session can never return another tenant's user.
"""

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from empcare.core.exceptions import InvalidCredentials, UserNotFound
from empcare.core.logging import get_logger
from empcare.db.base import utcnow
from empcare.models.tenant import Tenant
from empcare.models.user import User, UserRole

logger = get_logger(__name__)


class UserService:

    @staticmethod
    async def get_user_by_id(db: AsyncSession, tenant_id: str, user_id: str) -> User | None:
        result = await db.execute(
            select(User).where(User.id == user_id, User.tenant_id == tenant_id)
        )
        return result.scalar_one_or_none()

    @staticmethod
    async def get_user_by_email(db: AsyncSession, tenant_id: str, email: str) -> User | None:
        result = await db.execute(
            select(User).where(User.email == email.lower(), User.tenant_id == tenant_id)
        )
        return result.scalar_one_or_none()

    @staticmethod
    async def get_active_user_by_email(
        db: AsyncSession, tenant_id: str, email: str
    ) -> User | None:
        user = await UserService.get_user_by_email(db, tenant_id, email)
        if user is None or not user.is_active:
            return None
        return user

    @staticmethod
    def create_user(
        db: AsyncSession, tenant: Tenant, email: str, role: UserRole
    ) -> User:
        """Add a user with last_login set to now. The caller commits."""
        user = User(
            email=email.lower(),
            tenant_id=tenant.id,
            tenant_display_name=tenant.display_name,
            role=role.value,
            is_active=True,
            last_login=utcnow(),
        )
        db.add(user)
        return user

    @staticmethod
    async def record_login(
        db: AsyncSession,
        tenant: Tenant,
        email: str,
        role: UserRole,
    ) -> tuple[User, bool]:
        """
        Stamp last_login on the user's record, creating the record first when
        there is none.

        A concurrent login may create the same (email, tenant_id) between our
        lookup and insert; the unique constraint rejects our insert and the
        other writer's record is used instead.

        Returns:
            (user, created)

        Raises:
            InvalidCredentials: The record exists but has been deactivated.
        """
        email = email.lower()
        user = await UserService.get_user_by_email(db, tenant.id, email)
        created = False

        if user is None:
            user = UserService.create_user(db, tenant, email, role)
            try:
                await db.commit()
                created = True
                logger.info(
                    "User provisioned",
                    user_id=user.id,
                    tenant_id=tenant.id,
                    role=user.role,
                )
            except IntegrityError:
                await db.rollback()
                logger.info("User created concurrently, re-fetching", tenant_id=tenant.id)
                user = await UserService.get_user_by_email(db, tenant.id, email)
                if user is None:
                    raise

        if not user.is_active:
            logger.info("Login for deactivated user rejected", user_id=user.id, tenant_id=tenant.id)
            raise InvalidCredentials()

        if not created:
            user.last_login = utcnow()
            await db.commit()

        await db.refresh(user)
        return user, created

    @staticmethod
    async def set_user_active(
        db: AsyncSession, tenant_id: str, user_id: str, active: bool
    ) -> User:
        user = await UserService.get_user_by_id(db, tenant_id, user_id)
        if user is None:
            raise UserNotFound()
        user.is_active = active
        await db.commit()
        await db.refresh(user)
        logger.info("User activity changed", user_id=user_id, tenant_id=tenant_id, active=active)
        return user
