"""
main.py
-------
FastAPI application factory and entry point.

Application lifecycle:
  1. App is created by create_application(); missing DATABASE_URL or
     SECRET_KEY raises ConfigurationError right here.
  2. lifespan builds the TenantConnectionManager on startup and drains every
     cached store connection on shutdown.
  3. Routers are registered; every route lives under /api.
  4. Exception handlers turn service errors into {"message": ...} bodies.

Run with:
    uvicorn main:app --reload              # development
    empcare-server                         # production; exit code reflects the drain
"""

import sys
from contextlib import asynccontextmanager
from typing import AsyncGenerator, Optional

import structlog
import uvicorn
from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from empcare.api.routes import admin, auth
from empcare.core.config import Settings, get_settings
from empcare.core.exceptions import ConnectionFailure, EmpcareError
from empcare.core.logging import configure_logging, get_logger
from empcare.core.security import SessionIssuer, configure_password_hashing
from empcare.db.connections import TenantConnectionManager

logger = get_logger(__name__)

_REQUEST_PARTS = {"body", "query", "path", "header", "cookie"}


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator:
    """
    Startup / shutdown lifecycle hook.

    Startup:
      - Configure structured logging and the bcrypt work factor
      - Create the connection manager (stores connect lazily)
      - Optionally create the control-store tables

    Shutdown:
      - Close every tenant engine and the control engine concurrently
    """
    settings: Settings = app.state.settings
    configure_logging(settings)
    configure_password_hashing(settings.BCRYPT_ROUNDS)

    connections = TenantConnectionManager.from_settings(settings)
    app.state.connections = connections
    app.state.drain_failed = False
    logger.info(
        "Starting up",
        app=settings.APP_NAME,
        env=settings.APP_ENV,
        debug=settings.DEBUG,
    )
    if settings.CREATE_SCHEMA_ON_STARTUP:
        await connections.create_control_schema()

    yield

    logger.info("Shutting down - draining store connections")
    try:
        await connections.close_all()
    except ConnectionFailure as exc:
        app.state.drain_failed = True
        logger.error("Connection drain failed", error=str(exc))


def _field_errors(exc: RequestValidationError) -> list[dict]:
    errors = []
    for err in exc.errors():
        loc = [str(part) for part in err["loc"]]
        if loc and loc[0] in _REQUEST_PARTS:
            loc = loc[1:]
        errors.append({"field": ".".join(loc) or "unknown", "message": err["msg"]})
    return errors


def create_application(settings: Optional[Settings] = None) -> FastAPI:
    settings = settings or get_settings()

    app = FastAPI(
        title=settings.APP_NAME,
        description=(
            "Multi-tenant back-office API: one database per company, "
            "tenant-hint-free login and per-request revocation checks."
        ),
        version="1.0.0",
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.session_issuer = SessionIssuer.from_settings(settings)

    # ── CORS ─────────────────────────────────────────────────────────────────
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.ALLOWED_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.middleware("http")
    async def bind_request_context(request: Request, call_next):
        structlog.contextvars.clear_contextvars()
        structlog.contextvars.bind_contextvars(
            path=request.url.path,
            method=request.method,
        )
        return await call_next(request)

    # ── Routers ───────────────────────────────────────────────────────────────
    app.include_router(auth.router)
    app.include_router(admin.router)

    # ── Exception Handlers ────────────────────────────────────────────────────

    @app.exception_handler(EmpcareError)
    async def empcare_error_handler(request: Request, exc: EmpcareError) -> JSONResponse:
        log = logger.error if exc.status_code >= 500 else logger.warning
        log(
            type(exc).__name__,
            status_code=exc.status_code,
            storage_id=getattr(exc, "storage_id", None),
            error=str(exc.__cause__) if exc.__cause__ else exc.message,
        )
        headers = {"WWW-Authenticate": "Bearer"} if exc.status_code == 401 else None
        return JSONResponse(
            status_code=exc.status_code,
            content={"message": exc.message},
            headers=headers,
        )

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(
        request: Request, exc: RequestValidationError
    ) -> JSONResponse:
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content={"message": "Validation failed", "errors": _field_errors(exc)},
        )

    @app.exception_handler(StarletteHTTPException)
    async def http_error_handler(
        request: Request, exc: StarletteHTTPException
    ) -> JSONResponse:
        return JSONResponse(
            status_code=exc.status_code,
            content={"message": exc.detail},
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(Exception)
    async def unhandled_exception_handler(
        request: Request, exc: Exception
    ) -> JSONResponse:
        logger.error(
            "Unhandled exception",
            error=str(exc),
            exc_info=True,
        )
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"message": "Internal server error"},
        )

    # ── Health Check ──────────────────────────────────────────────────────────

    @app.get("/api/health", tags=["Health"], summary="Service health check")
    async def health(request: Request) -> dict:
        return {
            "status": "ok",
            "app": settings.APP_NAME,
            "env": settings.APP_ENV,
            "connections": request.app.state.connections.health_check(),
        }

    return app


app = create_application()


def run() -> None:
    """
    Console entry point. uvicorn turns SIGINT / SIGTERM into a lifespan
    shutdown; the process exits 1 if the connection drain failed.
    """
    settings: Settings = app.state.settings
    server = uvicorn.Server(
        uvicorn.Config(app, host=settings.HOST, port=settings.PORT, log_config=None)
    )
    server.run()
    sys.exit(1 if getattr(app.state, "drain_failed", False) else 0)


if __name__ == "__main__":
    run()
