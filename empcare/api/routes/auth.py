"""
api/routes/auth.py
------------------
Authentication endpoints.

POST /api/auth/signup         - Register a company; returns an admin session.
POST /api/auth/login          - Exchange email + password for a session token.
                                No tenant hint: the credential resolver finds it.
GET  /api/auth/check-company  - Is a display name still available?
GET  /api/auth/me             - The authenticated user and their company.
POST /api/auth/logout         - Stateless; the client discards its token.
"""

from typing import Annotated

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from empcare.core.exceptions import TenantInactive, UserInactive
from empcare.core.security import SessionIssuer
from empcare.db.connections import TenantConnectionManager
from empcare.db.session import get_connections, get_control_db
from empcare.dependencies import (
    Identity,
    get_credential_resolver,
    get_identity,
    get_session_issuer,
)
from empcare.models.tenant import Tenant
from empcare.models.user import User
from empcare.schemas.tenant import CompanyAvailability, TenantCreate, TenantRead
from empcare.schemas.user import LoginRequest, MeResponse, MessageResponse, TokenResponse, UserRead
from empcare.services.credential_resolver import CredentialResolver
from empcare.services.tenant_service import TenantService
from empcare.services.user_service import UserService

router = APIRouter(prefix="/api/auth", tags=["Authentication"])


def _session_response(issuer: SessionIssuer, tenant: Tenant, user: User) -> TokenResponse:
    token = issuer.issue(user_id=user.id, tenant_id=tenant.id, role=user.role)
    return TokenResponse(
        token=token,
        token_type="bearer",
        expires_in=int(issuer.expires_delta.total_seconds()),
        user=UserRead.model_validate(user),
        tenant=TenantRead.model_validate(tenant),
    )


@router.post(
    "/signup",
    response_model=TokenResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Register a new company",
)
async def signup(
    body: TenantCreate,
    db: Annotated[AsyncSession, Depends(get_control_db)],
    connections: Annotated[TenantConnectionManager, Depends(get_connections)],
    issuer: Annotated[SessionIssuer, Depends(get_session_issuer)],
) -> TokenResponse:
    """
    Public endpoint - no authentication required.
    Creates the registry entry, the company's own database, its admin user,
    the default "Admin" role and the "Main Office".
    """
    tenant, admin = await TenantService.register_tenant(db, connections, body)
    return _session_response(issuer, tenant, admin)


@router.post(
    "/login",
    response_model=TokenResponse,
    summary="Login and receive a session token",
)
async def login(
    body: LoginRequest,
    resolver: Annotated[CredentialResolver, Depends(get_credential_resolver)],
    issuer: Annotated[SessionIssuer, Depends(get_session_issuer)],
) -> TokenResponse:
    """
    Admins use their admin secret; everyone else uses their company's shared
    secret and is provisioned on first login.
    """
    resolution = await resolver.login(body.email, body.password)
    return _session_response(issuer, resolution.tenant, resolution.user)


@router.get(
    "/check-company",
    response_model=CompanyAvailability,
    summary="Check whether a company name is available",
)
async def check_company(
    db: Annotated[AsyncSession, Depends(get_control_db)],
    connections: Annotated[TenantConnectionManager, Depends(get_connections)],
    display_name: str = Query(..., alias="displayName", min_length=2, max_length=100),
) -> CompanyAvailability:
    available = await TenantService.is_display_name_available(db, connections, display_name)
    return CompanyAvailability(
        available=available,
        message="Company name is available" if available else "Company name already exists",
    )


@router.get(
    "/me",
    response_model=MeResponse,
    summary="Get the currently authenticated user",
)
async def get_me(
    identity: Annotated[Identity, Depends(get_identity)],
    db: Annotated[AsyncSession, Depends(get_control_db)],
    connections: Annotated[TenantConnectionManager, Depends(get_connections)],
) -> MeResponse:
    tenant = await TenantService.get_tenant_by_id(db, identity.tenant_id)
    if tenant is None:
        raise TenantInactive()

    handle = await connections.get_tenant_connection(tenant.display_name)
    async with handle.session() as tenant_db:
        user = await UserService.get_user_by_id(tenant_db, tenant.id, identity.user_id)
    if user is None:
        raise UserInactive()

    return MeResponse(
        user=UserRead.model_validate(user),
        tenant=TenantRead.model_validate(tenant),
    )


@router.post(
    "/logout",
    response_model=MessageResponse,
    summary="Log out (client discards the token)",
)
async def logout(
    identity: Annotated[Identity, Depends(get_identity)],
) -> MessageResponse:
    return MessageResponse(message="Logged out successfully")
