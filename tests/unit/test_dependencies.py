"""Unit tests for the role checks layered on top of the authentication gate."""

import pytest
from fastapi import HTTPException

from empcare.core.permissions import Permission
from empcare.dependencies import Identity, get_current_admin, require_permission, require_roles


def _identity(role: str) -> Identity:
    return Identity(
        user_id="user-1",
        tenant_id="tenant-1",
        role=role,
        email="someone@acme.com",
        tenant_display_name="Acme Corp",
    )


@pytest.mark.asyncio
async def test_admin_passes_the_admin_check():
    admin = _identity("admin")

    assert await get_current_admin(admin) is admin


@pytest.mark.asyncio
async def test_member_fails_the_admin_check():
    with pytest.raises(HTTPException) as exc_info:
        await get_current_admin(_identity("user"))

    assert exc_info.value.status_code == 403


@pytest.mark.asyncio
async def test_member_may_read_vendors():
    member = _identity("user")

    assert await require_permission(Permission.VENDORS_READ)(member) is member


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "permission",
    [Permission.VENDORS_DELETE, Permission.USERS_WRITE, Permission.SETTINGS_WRITE],
)
async def test_member_may_not_write(permission):
    with pytest.raises(HTTPException) as exc_info:
        await require_permission(permission)(_identity("user"))

    assert exc_info.value.status_code == 403


@pytest.mark.asyncio
async def test_admin_holds_every_permission():
    admin = _identity("admin")

    for permission in Permission:
        assert await require_permission(permission)(admin) is admin


@pytest.mark.asyncio
async def test_require_roles_accepts_listed_roles():
    member = _identity("user")

    assert await require_roles("admin", "user")(member) is member


@pytest.mark.asyncio
async def test_require_roles_rejects_other_roles():
    with pytest.raises(HTTPException) as exc_info:
        await require_roles("admin")(_identity("user"))

    assert exc_info.value.status_code == 403
