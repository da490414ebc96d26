"""
api/routes/admin.py
-------------------
Admin-only endpoints, always scoped to the admin's own tenant.

POST /api/admin/users/{user_id}/deactivate  - Revoke a user's access.
POST /api/admin/tenant/offboard             - Deactivate the company and
                                              release its store connection.

Both take effect on the next request of any outstanding session, because
the authentication gate re-checks the active flags every time.
"""

from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from empcare.db.connections import TenantConnectionManager
from empcare.db.session import get_connections, get_control_db
from empcare.dependencies import Identity, get_current_admin
from empcare.schemas.user import MessageResponse, UserRead
from empcare.services.tenant_service import TenantService
from empcare.services.user_service import UserService

router = APIRouter(prefix="/api/admin", tags=["Admin"])


@router.post(
    "/users/{user_id}/deactivate",
    response_model=UserRead,
    summary="Admin: deactivate a user in the current tenant",
)
async def deactivate_user(
    user_id: str,
    admin: Annotated[Identity, Depends(get_current_admin)],
    connections: Annotated[TenantConnectionManager, Depends(get_connections)],
) -> UserRead:
    if user_id == admin.user_id:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="You cannot deactivate your own account",
        )

    handle = await connections.get_tenant_connection(admin.tenant_display_name)
    async with handle.session() as db:
        user = await UserService.set_user_active(db, admin.tenant_id, user_id, active=False)
    return UserRead.model_validate(user)


@router.post(
    "/tenant/offboard",
    response_model=MessageResponse,
    summary="Admin: deactivate the current tenant",
)
async def offboard_tenant(
    admin: Annotated[Identity, Depends(get_current_admin)],
    db: Annotated[AsyncSession, Depends(get_control_db)],
    connections: Annotated[TenantConnectionManager, Depends(get_connections)],
) -> MessageResponse:
    await TenantService.deactivate_tenant(db, connections, admin.tenant_id)
    return MessageResponse(message="Company deactivated")
