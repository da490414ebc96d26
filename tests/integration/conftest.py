"""HTTP-level fixtures: the full application with its lifespan running."""

from typing import AsyncGenerator

import pytest_asyncio
from asgi_lifespan import LifespanManager
from fastapi import FastAPI
from httpx import ASGITransport, AsyncClient

from empcare.core.config import Settings
from main import create_application

ACME_SIGNUP = {
    "displayName": "Acme Corp",
    "adminEmail": "admin@acme.com",
    "adminSecret": "AdminPass1",
    "sharedSecret": "acme-team",
}


@pytest_asyncio.fixture
async def app(settings: Settings) -> AsyncGenerator[FastAPI, None]:
    application = create_application(settings)
    async with LifespanManager(application):
        yield application


@pytest_asyncio.fixture
async def client(app: FastAPI) -> AsyncGenerator[AsyncClient, None]:
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as async_client:
        yield async_client


@pytest_asyncio.fixture
async def acme(client: AsyncClient) -> dict:
    """Registered "Acme Corp"; returns the signup response body."""
    response = await client.post("/api/auth/signup", json=ACME_SIGNUP)
    assert response.status_code == 201, response.json()
    return response.json()
