"""
core/security.py
----------------
Password hashing and session token utilities.

Design decisions:
  - bcrypt via passlib; work factor comes from BCRYPT_ROUNDS (default 12).
  - Session tokens are JWTs carrying sub (user_id), tenant_id and role.
    SessionIssuer.validate checks signature and expiry only; whether the
    tenant / user is still active is re-checked by the authentication gate
    on every request.
  - Tokens are signed with HS256; swap to RS256 for multi-service setups.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

from jose import ExpiredSignatureError, JWTError, jwt
from passlib.context import CryptContext

from empcare.core.config import Settings
from empcare.core.exceptions import ConfigurationError, SessionExpired, SessionInvalid

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto", bcrypt__rounds=12)


# ── Password Utilities ────────────────────────────────────────────────────────

def configure_password_hashing(rounds: int) -> None:
    """Set the bcrypt work factor used for new hashes."""
    pwd_context.update(bcrypt__rounds=rounds)


def hash_password(plain: str) -> str:
    """Return a bcrypt hash of the plain-text password."""
    return pwd_context.hash(plain)


def verify_password(plain: str, hashed: str) -> bool:
    """Constant-time comparison of plain password against stored hash."""
    return pwd_context.verify(plain, hashed)


# ── Session Tokens ────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class SessionClaims:
    user_id: str
    tenant_id: str
    role: str
    issued_at: datetime
    expires_at: datetime


class SessionIssuer:
    """Mints and validates signed, time-bounded session tokens."""

    def __init__(
        self,
        secret_key: str,
        algorithm: str = "HS256",
        expires_delta: timedelta = timedelta(days=7),
    ) -> None:
        if not secret_key:
            raise ConfigurationError("SECRET_KEY is not set")
        self._secret_key = secret_key
        self._algorithm = algorithm
        self.expires_delta = expires_delta

    @classmethod
    def from_settings(cls, settings: Settings) -> "SessionIssuer":
        return cls(
            secret_key=settings.SECRET_KEY,
            algorithm=settings.ALGORITHM,
            expires_delta=timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES),
        )

    def issue(
        self,
        user_id: str,
        tenant_id: str,
        role: str,
        expires_delta: Optional[timedelta] = None,
    ) -> str:
        """
        Mint a session token.

        Args:
            user_id: User UUID (stored in 'sub' claim).
            tenant_id: Tenant UUID.
            role: 'admin' | 'user'
            expires_delta: Optional custom lifetime; defaults to the issuer's.

        Returns:
            Signed JWT string.
        """
        now = datetime.now(timezone.utc)
        payload: Dict[str, Any] = {
            "sub": user_id,
            "tenant_id": tenant_id,
            "role": role,
            "iat": now,
            "exp": now + (expires_delta if expires_delta is not None else self.expires_delta),
        }
        return jwt.encode(payload, self._secret_key, algorithm=self._algorithm)

    def validate(self, token: str) -> SessionClaims:
        """
        Verify signature and expiry and return the claims.

        Raises:
            SessionExpired: The token's exp is in the past.
            SessionInvalid: Bad signature, malformed token or missing claims.
        """
        try:
            payload = jwt.decode(token, self._secret_key, algorithms=[self._algorithm])
        except ExpiredSignatureError as exc:
            raise SessionExpired() from exc
        except JWTError as exc:
            raise SessionInvalid() from exc

        user_id = payload.get("sub")
        tenant_id = payload.get("tenant_id")
        role = payload.get("role")
        if not user_id or not tenant_id or not role or "exp" not in payload:
            raise SessionInvalid()

        return SessionClaims(
            user_id=user_id,
            tenant_id=tenant_id,
            role=role,
            issued_at=datetime.fromtimestamp(payload.get("iat", 0), tz=timezone.utc),
            expires_at=datetime.fromtimestamp(payload["exp"], tz=timezone.utc),
        )
