"""
dependencies.py
---------------
FastAPI dependency injection functions for authentication and authorisation.

Flow:
  1. OAuth2PasswordBearer extracts the Bearer token from the Authorization header.
  2. SessionIssuer.validate checks signature and expiry (no DB round-trip).
  3. get_identity re-loads the tenant from the control store and the user from
     the tenant's own store on EVERY request, so deactivating either takes
     effect on the very next call. Nothing here is cached.
  4. get_current_admin / require_roles / require_permission layer role checks on top.

The tenant_id carried by the Identity comes from the token and was just
re-verified against the registry; handlers use it to route to the right store.
"""

from dataclasses import dataclass
from typing import Annotated, Callable, Optional

import structlog
from fastapi import Depends, HTTPException, Request, status
from fastapi.security import OAuth2PasswordBearer

from empcare.core.exceptions import SessionInvalid, TenantInactive, UserInactive
from empcare.core.logging import get_logger
from empcare.core.permissions import Permission, get_role_permissions
from empcare.core.security import SessionIssuer
from empcare.db.connections import TenantConnectionManager
from empcare.db.session import get_connections
from empcare.models.user import UserRole
from empcare.services.credential_resolver import CredentialResolver
from empcare.services.tenant_service import TenantService
from empcare.services.user_service import UserService

logger = get_logger(__name__)

# tokenUrl must match the login endpoint path
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/auth/login", auto_error=False)


@dataclass(frozen=True)
class Identity:
    user_id: str
    tenant_id: str
    role: str
    email: str
    tenant_display_name: str


def get_session_issuer(request: Request) -> SessionIssuer:
    return request.app.state.session_issuer


def get_credential_resolver(
    connections: Annotated[TenantConnectionManager, Depends(get_connections)],
) -> CredentialResolver:
    return CredentialResolver(connections)


async def get_identity(
    request: Request,
    token: Annotated[Optional[str], Depends(oauth2_scheme)],
    connections: Annotated[TenantConnectionManager, Depends(get_connections)],
    issuer: Annotated[SessionIssuer, Depends(get_session_issuer)],
) -> Identity:
    """
    Validate the bearer token, then confirm the tenant and the user still
    exist and are active. Raises a 401-mapped SessionError otherwise.
    """
    if not token:
        raise SessionInvalid("Access denied. No token provided.")

    claims = issuer.validate(token)

    control = await connections.get_control_connection()
    async with control.session() as db:
        tenant = await TenantService.get_tenant_by_id(db, claims.tenant_id)
    if tenant is None or not tenant.is_active:
        logger.warning("Token for missing or inactive tenant", tenant_id=claims.tenant_id)
        raise TenantInactive()

    handle = await connections.get_tenant_connection(tenant.display_name)
    async with handle.session() as db:
        user = await UserService.get_user_by_id(db, tenant.id, claims.user_id)
    if user is None or not user.is_active:
        logger.warning(
            "Token for missing or inactive user",
            user_id=claims.user_id,
            tenant_id=tenant.id,
        )
        raise UserInactive()

    identity = Identity(
        user_id=user.id,
        tenant_id=tenant.id,
        role=claims.role,
        email=user.email,
        tenant_display_name=tenant.display_name,
    )
    request.state.identity = identity
    structlog.contextvars.bind_contextvars(tenant_id=tenant.id, user_id=user.id)
    return identity


async def get_current_admin(
    identity: Annotated[Identity, Depends(get_identity)],
) -> Identity:
    """
    Extends get_identity with an admin role check.
    Raises 403 if the authenticated user is not an admin.
    """
    if identity.role != UserRole.admin.value:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Access denied. Insufficient permissions.",
        )
    return identity


def require_roles(*roles: str) -> Callable:
    """
    Dependency factory restricting a route to the given roles:

        @router.get("/reports", dependencies=[Depends(require_roles("admin", "user"))])
    """

    async def check_role(
        identity: Annotated[Identity, Depends(get_identity)],
    ) -> Identity:
        if identity.role not in roles:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Access denied. Insufficient permissions.",
            )
        return identity

    return check_role


def require_permission(permission: Permission) -> Callable:
    """
    Dependency factory:

        @router.delete("/vendors/{id}", dependencies=[Depends(require_permission(Permission.VENDORS_DELETE))])
    """

    async def check_permission(
        identity: Annotated[Identity, Depends(get_identity)],
    ) -> Identity:
        if permission not in get_role_permissions(identity.role):
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Insufficient permissions",
            )
        return identity

    return check_permission
