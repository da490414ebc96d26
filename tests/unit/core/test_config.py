"""Unit tests for settings loading."""

import pytest

from empcare.core.config import Settings, get_settings
from empcare.core.exceptions import ConfigurationError
from empcare.core.permissions import ALL_MODULES, Permission, get_role_permissions


@pytest.fixture
def fresh_settings_cache():
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


def test_missing_database_url_is_a_configuration_error(monkeypatch, fresh_settings_cache):
    monkeypatch.delenv("DATABASE_URL", raising=False)

    with pytest.raises(ConfigurationError) as exc_info:
        get_settings()

    assert "DATABASE_URL" in exc_info.value.message


def test_empty_secret_key_is_a_configuration_error(monkeypatch, fresh_settings_cache):
    monkeypatch.setenv("SECRET_KEY", "   ")

    with pytest.raises(ConfigurationError) as exc_info:
        get_settings()

    assert "SECRET_KEY" in exc_info.value.message


def test_allowed_origins_accepts_json(monkeypatch):
    monkeypatch.setenv("ALLOWED_ORIGINS", '["https://app.acme.com", "http://localhost:5173"]')

    settings = Settings()

    assert settings.ALLOWED_ORIGINS == ["https://app.acme.com", "http://localhost:5173"]


def test_defaults():
    settings = Settings(SECRET_KEY="s", DATABASE_URL="postgresql+asyncpg://db:5432")

    assert settings.CONTROL_STORE_NAME == "empcare_main"
    assert settings.STORAGE_ID_SUFFIX == "_empcare"
    assert settings.DB_CONNECT_TIMEOUT == 5.0
    assert settings.DB_COMMAND_TIMEOUT == 45.0
    assert settings.ACCESS_TOKEN_EXPIRE_MINUTES == 60 * 24 * 7


def test_admin_role_holds_every_permission():
    assert get_role_permissions("admin") == frozenset(Permission)


def test_user_role_is_read_only():
    permissions = get_role_permissions("user")

    assert Permission.VENDORS_READ in permissions
    assert Permission.VENDORS_DELETE not in permissions
    assert Permission.SETTINGS_WRITE not in permissions


def test_unknown_role_has_no_permissions():
    assert get_role_permissions("auditor") == frozenset()


def test_modules_are_unique():
    assert len(ALL_MODULES) == len(set(ALL_MODULES))
