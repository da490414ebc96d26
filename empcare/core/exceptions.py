"""
core/exceptions.py
------------------
Error taxonomy for tenant routing, credential resolution and sessions.

Services raise these; routes let them propagate. main.py installs a single
handler that maps status_code/message onto the JSON response, so internal
details (driver errors, storage ids) never reach the client.
"""

from typing import Optional


class EmpcareError(Exception):
    """Base exception. `message` is safe to show to clients."""

    status_code: int = 500
    message: str = "Internal server error"

    def __init__(self, message: Optional[str] = None) -> None:
        if message is not None:
            self.message = message
        super().__init__(self.message)


class ConfigurationError(EmpcareError):
    """Missing or invalid startup configuration. Fatal."""


class ConnectionFailure(EmpcareError):
    """A store connection could not be established or closed. Retryable."""

    message = "Database connection failed"

    def __init__(self, message: Optional[str] = None, storage_id: Optional[str] = None) -> None:
        super().__init__(message)
        self.storage_id = storage_id


class InvalidCredentials(EmpcareError):
    status_code = 401
    message = "Invalid email or password"


class DuplicateTenant(EmpcareError):
    status_code = 409
    message = "Company already registered"


class DuplicateUser(EmpcareError):
    status_code = 409
    message = "Email already registered"


class UserNotFound(EmpcareError):
    status_code = 404
    message = "User not found"


class SessionError(EmpcareError):
    status_code = 401
    message = "Invalid token"


class SessionExpired(SessionError):
    message = "Token expired"


class SessionInvalid(SessionError):
    pass


class TenantInactive(SessionError):
    message = "Invalid token. Company not found or inactive."


class UserInactive(SessionError):
    message = "Invalid token. User not found or inactive."
