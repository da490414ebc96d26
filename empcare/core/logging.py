"""
core/logging.py
---------------
structlog setup shared by the API process and the schema script.

Every event passes through the same chain:
  merge_contextvars  -> tenant_id / user_id bound by the authentication gate
  add_service_context -> app name and environment
  redact_secrets     -> password, secret, token and hash values masked

Rendering is human-readable with DEBUG=true and JSON lines otherwise.
"""

import logging
import sys
from typing import Any, Callable, MutableMapping

import structlog
from structlog.types import Processor

from empcare.core.config import Settings

REDACTED = "[redacted]"

# Any event key containing one of these fragments is masked
SENSITIVE_KEY_FRAGMENTS = ("password", "secret", "token", "hash", "authorization")

# Third-party loggers that are too chatty outside DEBUG
_QUIET_LOGGERS = {
    "uvicorn.access": logging.WARNING,
    "sqlalchemy.engine": logging.WARNING,
    "aiosqlite": logging.WARNING,
    "passlib": logging.ERROR,
}


def redact_secrets(
    logger: Any, method_name: str, event_dict: MutableMapping[str, Any]
) -> MutableMapping[str, Any]:
    for key in event_dict:
        if key == "event":
            continue
        if any(fragment in key.lower() for fragment in SENSITIVE_KEY_FRAGMENTS):
            event_dict[key] = REDACTED
    return event_dict


def add_service_context(settings: Settings) -> Callable[..., MutableMapping[str, Any]]:
    """Processor stamping every event with the app name and environment."""

    def processor(
        logger: Any, method_name: str, event_dict: MutableMapping[str, Any]
    ) -> MutableMapping[str, Any]:
        event_dict.setdefault("app", settings.APP_NAME)
        event_dict.setdefault("env", settings.APP_ENV)
        return event_dict

    return processor


def build_processors(settings: Settings) -> list[Processor]:
    processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        add_service_context(settings),
        redact_secrets,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.StackInfoRenderer(),
    ]
    if settings.DEBUG:
        processors.append(structlog.dev.ConsoleRenderer())
    else:
        processors += [
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ]
    return processors


def configure_logging(settings: Settings) -> None:
    level = logging.DEBUG if settings.DEBUG else logging.INFO

    # uvicorn and SQLAlchemy log through the standard library
    logging.basicConfig(format="%(levelname)s %(name)s %(message)s", stream=sys.stdout, level=level)
    if not settings.DEBUG:
        for name, quiet_level in _QUIET_LOGGERS.items():
            logging.getLogger(name).setLevel(quiet_level)

    structlog.configure(
        processors=build_processors(settings),
        wrapper_class=structlog.make_filtering_bound_logger(level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )


def get_logger(name: str):
    return structlog.get_logger(name)
