"""
db/session.py
-------------
FastAPI dependencies exposing the connection manager and a control-store
session.

The TenantConnectionManager is created in the application lifespan and kept
on app.state. There is no module-level engine. Tenant sessions are opened by
the services that need them, through the manager's handles.
"""

from typing import AsyncGenerator

from fastapi import Request
from sqlalchemy.ext.asyncio import AsyncSession

from empcare.db.connections import TenantConnectionManager


def get_connections(request: Request) -> TenantConnectionManager:
    return request.app.state.connections


async def get_control_db(request: Request) -> AsyncGenerator[AsyncSession, None]:
    """
    Yields a control-store session.
    Committed when the request handler finishes, rolled back on exceptions.

    Usage:
        @router.get("/example")
        async def handler(db: AsyncSession = Depends(get_control_db)):
            ...
    """
    control = await get_connections(request).get_control_connection()
    async with control.session() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
