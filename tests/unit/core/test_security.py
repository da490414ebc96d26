"""Unit tests for password hashing and session tokens."""

from datetime import datetime, timedelta, timezone

import pytest
from jose import jwt

from empcare.core.exceptions import ConfigurationError, SessionExpired, SessionInvalid
from empcare.core.security import SessionIssuer, hash_password, verify_password


class TestPasswordHashing:

    def test_hash_verifies_against_the_same_password(self):
        hashed = hash_password("AdminPass1")

        assert hashed != "AdminPass1"
        assert verify_password("AdminPass1", hashed)

    def test_hash_rejects_a_different_password(self):
        hashed = hash_password("AdminPass1")

        assert not verify_password("adminpass1", hashed)


class TestSessionIssuer:

    def test_round_trip_returns_the_claims(self, issuer: SessionIssuer):
        token = issuer.issue(user_id="user-1", tenant_id="tenant-1", role="admin")

        claims = issuer.validate(token)

        assert claims.user_id == "user-1"
        assert claims.tenant_id == "tenant-1"
        assert claims.role == "admin"
        assert claims.expires_at > datetime.now(timezone.utc)
        assert claims.expires_at - claims.issued_at == issuer.expires_delta

    def test_past_expiry_is_rejected(self, issuer: SessionIssuer):
        token = issuer.issue(
            user_id="user-1",
            tenant_id="tenant-1",
            role="user",
            expires_delta=timedelta(seconds=-5),
        )

        with pytest.raises(SessionExpired):
            issuer.validate(token)

    def test_tampered_signature_is_rejected(self, issuer: SessionIssuer):
        token = issuer.issue(user_id="user-1", tenant_id="tenant-1", role="user")
        header, payload, signature = token.split(".")
        forged = ".".join([header, payload, signature[::-1]])

        with pytest.raises(SessionInvalid):
            issuer.validate(forged)

    def test_token_from_another_key_is_rejected(self, issuer: SessionIssuer):
        other = SessionIssuer(secret_key="another-secret")
        token = other.issue(user_id="user-1", tenant_id="tenant-1", role="admin")

        with pytest.raises(SessionInvalid):
            issuer.validate(token)

    def test_garbage_is_rejected(self, issuer: SessionIssuer):
        with pytest.raises(SessionInvalid):
            issuer.validate("not-a-token")

    def test_missing_tenant_claim_is_rejected(self, issuer: SessionIssuer):
        exp = datetime.now(timezone.utc) + timedelta(minutes=5)
        token = jwt.encode(
            {"sub": "user-1", "role": "user", "exp": exp},
            "test-secret-key",
            algorithm="HS256",
        )

        with pytest.raises(SessionInvalid):
            issuer.validate(token)

    def test_missing_expiry_is_rejected(self, issuer: SessionIssuer):
        token = jwt.encode(
            {"sub": "user-1", "tenant_id": "tenant-1", "role": "user"},
            "test-secret-key",
            algorithm="HS256",
        )

        with pytest.raises(SessionInvalid):
            issuer.validate(token)

    def test_empty_secret_is_a_configuration_error(self):
        with pytest.raises(ConfigurationError):
            SessionIssuer(secret_key="")

    def test_expiry_comes_from_settings(self, settings):
        issuer = SessionIssuer.from_settings(settings)

        assert issuer.expires_delta == timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)
