"""End-to-end authentication flows over HTTP.

Covers company signup, tenant-hint-free login (admin secret and shared
secret), automatic user provisioning and the /me session check.
"""

from datetime import datetime

import pytest
from sqlalchemy import func, select

from empcare.models.user import User

pytestmark = pytest.mark.integration


def _auth(token: str) -> dict:
    return {"Authorization": f"Bearer {token}"}


async def _login(client, email: str, password: str):
    return await client.post("/api/auth/login", json={"email": email, "password": password})


class TestSignup:

    @pytest.mark.asyncio
    async def test_signup_returns_an_admin_session(self, acme):
        assert acme["token"]
        assert acme["tokenType"] == "bearer"
        assert acme["expiresIn"] == 60 * 24 * 7 * 60
        assert acme["user"]["role"] == "admin"
        assert acme["user"]["email"] == "admin@acme.com"
        assert acme["tenant"]["displayName"] == "Acme Corp"
        assert acme["tenant"]["isActive"] is True
        assert "hashedAdminSecret" not in acme["tenant"]
        assert "hashedSharedSecret" not in acme["tenant"]

    @pytest.mark.asyncio
    async def test_colliding_display_name_is_a_conflict(self, client, acme):
        response = await client.post(
            "/api/auth/signup",
            json={
                "displayName": "acme-corp",
                "adminEmail": "owner@acme-corp.com",
                "adminSecret": "AdminPass1",
                "sharedSecret": "other-team",
            },
        )

        assert response.status_code == 409
        assert "conflicts" in response.json()["message"]

    @pytest.mark.asyncio
    async def test_reused_admin_email_is_a_conflict(self, client, acme):
        response = await client.post(
            "/api/auth/signup",
            json={
                "displayName": "Globex",
                "adminEmail": "admin@acme.com",
                "adminSecret": "AdminPass1",
                "sharedSecret": "globex-team",
            },
        )

        assert response.status_code == 409
        assert response.json()["message"] == "Email already registered. Please use a different email."

    @pytest.mark.asyncio
    async def test_weak_admin_secret_fails_validation(self, client):
        response = await client.post(
            "/api/auth/signup",
            json={
                "displayName": "Globex",
                "adminEmail": "admin@globex.com",
                "adminSecret": "alllowercase",
                "sharedSecret": "globex-team",
            },
        )

        assert response.status_code == 400
        body = response.json()
        assert body["message"] == "Validation failed"
        assert [error["field"] for error in body["errors"]] == ["adminSecret"]

    @pytest.mark.asyncio
    async def test_snake_case_input_is_accepted(self, client):
        response = await client.post(
            "/api/auth/signup",
            json={
                "display_name": "Globex",
                "admin_email": "admin@globex.com",
                "admin_secret": "AdminPass1",
                "shared_secret": "globex-team",
            },
        )

        assert response.status_code == 201
        assert response.json()["tenant"]["displayName"] == "Globex"


class TestAcmeCorpScenario:

    @pytest.mark.asyncio
    async def test_admin_and_auto_provisioned_user(self, app, client, acme):
        admin_login = await _login(client, "admin@acme.com", "AdminPass1")
        assert admin_login.status_code == 200
        assert admin_login.json()["user"]["role"] == "admin"
        assert admin_login.json()["user"]["id"] == acme["user"]["id"]

        first = await _login(client, "new.user@acme.com", "acme-team")
        assert first.status_code == 200
        first_user = first.json()["user"]
        assert first_user["role"] == "user"
        assert first_user["tenantId"] == acme["tenant"]["id"]
        assert first_user["tenantDisplayName"] == "Acme Corp"

        second = await _login(client, "new.user@acme.com", "acme-team")
        assert second.status_code == 200
        second_user = second.json()["user"]
        assert second_user["id"] == first_user["id"]
        assert datetime.fromisoformat(second_user["lastLogin"]) > datetime.fromisoformat(
            first_user["lastLogin"]
        )

        handle = await app.state.connections.get_tenant_connection("Acme Corp")
        async with handle.session() as db:
            count = await db.scalar(
                select(func.count()).select_from(User).where(User.email == "new.user@acme.com")
            )
        assert count == 1

        me = await client.get("/api/auth/me", headers=_auth(second.json()["token"]))
        assert me.status_code == 200
        assert me.json()["user"]["email"] == "new.user@acme.com"
        assert me.json()["tenant"]["displayName"] == "Acme Corp"

    @pytest.mark.asyncio
    async def test_login_email_is_case_insensitive(self, client, acme):
        response = await _login(client, "ADMIN@Acme.com", "AdminPass1")

        assert response.status_code == 200
        assert response.json()["user"]["id"] == acme["user"]["id"]

    @pytest.mark.asyncio
    async def test_wrong_secret_is_rejected_with_one_message(self, client, acme):
        wrong_admin = await _login(client, "admin@acme.com", "WrongPass1")
        unknown = await _login(client, "nobody@acme.com", "not-a-secret")

        assert wrong_admin.status_code == unknown.status_code == 401
        assert wrong_admin.json() == unknown.json() == {"message": "Invalid email or password"}

    @pytest.mark.asyncio
    async def test_logout_requires_a_session(self, client, acme):
        response = await client.post("/api/auth/logout", headers=_auth(acme["token"]))

        assert response.status_code == 200
        assert response.json() == {"message": "Logged out successfully"}


class TestCheckCompany:

    @pytest.mark.asyncio
    async def test_unregistered_name_is_available(self, client):
        response = await client.get("/api/auth/check-company", params={"displayName": "Globex"})

        assert response.status_code == 200
        assert response.json() == {"available": True, "message": "Company name is available"}

    @pytest.mark.asyncio
    @pytest.mark.parametrize("name", ["Acme Corp", "ACME CORP", "acme-corp"])
    async def test_registered_or_colliding_name_is_taken(self, client, acme, name):
        response = await client.get("/api/auth/check-company", params={"displayName": name})

        assert response.status_code == 200
        assert response.json()["available"] is False

    @pytest.mark.asyncio
    async def test_missing_name_fails_validation(self, client):
        response = await client.get("/api/auth/check-company")

        assert response.status_code == 400
        assert response.json()["errors"][0]["field"] == "displayName"


class TestHealth:

    @pytest.mark.asyncio
    async def test_reports_open_connections(self, client, acme):
        response = await client.get("/api/health")

        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "ok"
        assert body["connections"]["control"] is True
        assert "acme_corp_empcare" in body["connections"]["tenants"]
