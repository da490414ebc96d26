"""
services/credential_resolver.py
-------------------------------
Maps (email, password) to (tenant, user, role) without a tenant hint.

Resolution order, first match wins:
  1. The active tenant whose admin_email is this email. Only its admin
     secret is accepted; a wrong secret is a NO_MATCH.
  2. Active tenants, in registration order, whose shared secret matches the
     password: the first one that already holds an active user with this
     email wins (EXISTING_USER_MATCH).
  3. Otherwise the first tenant from step 2 gets a new 'user' record
     (AUTO_PROVISIONED).
  4. Nothing matched: NO_MATCH, reported to clients as InvalidCredentials.

Step 2 costs one bcrypt verification per active tenant for every login that
is not an admin login. Login latency therefore grows with the number of
tenants, and it leaks roughly how many tenants were tried before a match.
TenantLocator is the seam where an indexed lookup can replace the scan.

If two tenants chose the same shared secret, registration order decides.
"""

import asyncio
from abc import ABC, abstractmethod
from contextlib import aclosing
from dataclasses import dataclass
from enum import Enum
from typing import AsyncIterator, Optional

from empcare.core.exceptions import InvalidCredentials
from empcare.core.logging import get_logger
from empcare.core.security import verify_password
from empcare.db.connections import TenantConnectionManager
from empcare.models.tenant import Tenant
from empcare.models.user import User, UserRole
from empcare.services.tenant_service import TenantService
from empcare.services.user_service import UserService

logger = get_logger(__name__)


class ResolutionKind(str, Enum):
    ADMIN_MATCH = "admin_match"
    EXISTING_USER_MATCH = "existing_user_match"
    AUTO_PROVISIONED = "auto_provisioned"
    NO_MATCH = "no_match"


@dataclass(frozen=True)
class Resolution:
    kind: ResolutionKind
    tenant: Optional[Tenant] = None
    user: Optional[User] = None

    @property
    def matched(self) -> bool:
        return self.kind is not ResolutionKind.NO_MATCH

    @property
    def role(self) -> Optional[str]:
        return self.user.role if self.user is not None else None


NO_MATCH = Resolution(ResolutionKind.NO_MATCH)


async def _verify(password: str, hashed: str) -> bool:
    # bcrypt blocks for tens of milliseconds per call
    return await asyncio.to_thread(verify_password, password, hashed)


class TenantLocator(ABC):
    """Finds candidate tenants for a login attempt."""

    @abstractmethod
    async def find_admin_tenant(self, email: str) -> Optional[Tenant]:
        """The active tenant administered by this email, if any."""

    @abstractmethod
    def shared_secret_matches(self, password: str) -> AsyncIterator[Tenant]:
        """Active tenants whose shared secret matches, in registration order."""


class ScanningTenantLocator(TenantLocator):
    """Verifies the password against every active tenant's shared secret."""

    def __init__(self, connections: TenantConnectionManager) -> None:
        self._connections = connections

    async def find_admin_tenant(self, email: str) -> Optional[Tenant]:
        control = await self._connections.get_control_connection()
        async with control.session() as db:
            return await TenantService.get_active_tenant_by_admin_email(db, email)

    async def shared_secret_matches(self, password: str) -> AsyncIterator[Tenant]:
        control = await self._connections.get_control_connection()
        async with control.session() as db:
            tenants = await TenantService.list_active_tenants(db)

        for tenant in tenants:
            if await _verify(password, tenant.hashed_shared_secret):
                yield tenant


class CredentialResolver:

    def __init__(
        self,
        connections: TenantConnectionManager,
        locator: Optional[TenantLocator] = None,
    ) -> None:
        self._connections = connections
        self._locator = locator or ScanningTenantLocator(connections)

    async def resolve(self, email: str, password: str) -> Resolution:
        """
        Run the resolution algorithm and, on a match, persist last_login
        (creating the user record first for AUTO_PROVISIONED).

        Raises:
            InvalidCredentials: The matched user record is deactivated.
            ConnectionFailure: A store could not be reached.
        """
        email = email.strip().lower()

        admin_tenant = await self._locator.find_admin_tenant(email)
        if admin_tenant is not None:
            if not await _verify(password, admin_tenant.hashed_admin_secret):
                return NO_MATCH
            user, _ = await self._record_login(admin_tenant, email, UserRole.admin)
            return Resolution(ResolutionKind.ADMIN_MATCH, admin_tenant, user)

        first_match: Optional[Tenant] = None
        async with aclosing(self._locator.shared_secret_matches(password)) as matches:
            async for tenant in matches:
                if first_match is None:
                    first_match = tenant
                if await self._has_active_user(tenant, email):
                    user, _ = await self._record_login(tenant, email, UserRole.user)
                    return Resolution(ResolutionKind.EXISTING_USER_MATCH, tenant, user)

        if first_match is None:
            return NO_MATCH

        user, created = await self._record_login(first_match, email, UserRole.user)
        kind = ResolutionKind.AUTO_PROVISIONED if created else ResolutionKind.EXISTING_USER_MATCH
        return Resolution(kind, first_match, user)

    async def login(self, email: str, password: str) -> Resolution:
        """
        resolve(), but NO_MATCH raises InvalidCredentials. Unknown identity and
        wrong secret are indistinguishable to the caller.
        """
        resolution = await self.resolve(email, password)
        if not resolution.matched:
            logger.info("Login rejected")
            raise InvalidCredentials()

        logger.info(
            "Login resolved",
            outcome=resolution.kind.value,
            tenant_id=resolution.tenant.id,
            user_id=resolution.user.id,
            role=resolution.role,
        )
        return resolution

    async def _has_active_user(self, tenant: Tenant, email: str) -> bool:
        handle = await self._connections.get_tenant_connection(tenant.display_name)
        async with handle.session() as db:
            user = await UserService.get_active_user_by_email(db, tenant.id, email)
        return user is not None

    async def _record_login(
        self, tenant: Tenant, email: str, role: UserRole
    ) -> tuple[User, bool]:
        handle = await self._connections.get_tenant_connection(tenant.display_name)
        async with handle.session() as db:
            return await UserService.record_login(db, tenant, email, role)
