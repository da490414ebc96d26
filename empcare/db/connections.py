"""
db/connections.py
-----------------
Tenant connection routing.

Every tenant gets its own database ("store"), named by a storage id derived
from the tenant's display name. TenantConnectionManager lazily creates one
pooled AsyncEngine per store, caches it for the life of the process and owns
the single control-store engine that holds the tenant registry.

Design decisions:
  - The manager is an ordinary object created in the application lifespan and
    stored on app.state. Tests build isolated instances.
  - DATABASE_URL is a server-level base URL. The store name replaces its
    database component; for SQLite the database component is a directory and
    each store is <directory>/<store name>.db.
  - Establishment is verified with SELECT 1 under DB_CONNECT_TIMEOUT. Failures
    are never cached: the engine is disposed and the next call starts over.
  - A per-storage-id asyncio.Lock makes establishment single-flight, so
    concurrent first requests for one tenant share a single engine.
  - pool_pre_ping + pool_recycle handle stale connections after DB restarts
    and idle timeouts; asyncpg's command_timeout bounds every store call.
"""

import asyncio
import re
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Any, AsyncIterator, Callable, Optional

from sqlalchemy import text
from sqlalchemy.engine import URL, make_url
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from empcare.core.config import Settings
from empcare.core.exceptions import ConnectionFailure
from empcare.core.logging import get_logger
from empcare.models import ControlBase, TenantBase

logger = get_logger(__name__)

# PostgreSQL truncates identifiers longer than 63 bytes (NAMEDATALEN - 1)
MAX_STORAGE_ID_LENGTH = 63
DEFAULT_STORAGE_ID_SUFFIX = "_empcare"

_NON_ALNUM_RUN = re.compile(r"[^a-z0-9]+")

EngineFactory = Callable[..., AsyncEngine]


def derive_storage_id(display_name: str, suffix: str = DEFAULT_STORAGE_ID_SUFFIX) -> str:
    """
    Map a tenant display name onto its store name.

    Lowercases, collapses every run of characters outside [a-z0-9] into a
    single "_", trims leading/trailing "_", caps the length so the suffixed
    result fits a PostgreSQL identifier, then appends the suffix.

        >>> derive_storage_id("Acme Corp.")
        'acme_corp_empcare'
    """
    base = _NON_ALNUM_RUN.sub("_", display_name.lower()).strip("_")
    return base[: MAX_STORAGE_ID_LENGTH - len(suffix)] + suffix


def build_store_url(base_url: str, store_name: str) -> URL:
    url = make_url(base_url)
    if url.get_backend_name() == "sqlite":
        directory = Path(url.database or ".")
        return url.set(database=str(directory / f"{store_name}.db"))
    return url.set(database=store_name)


class StoreHandle:
    """
    A pooled connection to one store (a tenant store or the control store).

    Only TenantConnectionManager creates handles.
    """

    def __init__(self, name: str, engine: AsyncEngine) -> None:
        self.name = name
        self.engine = engine
        self._sessionmaker = async_sessionmaker(
            bind=engine,
            class_=AsyncSession,
            expire_on_commit=False,
            autoflush=False,
        )
        self._closed = False

    @property
    def is_open(self) -> bool:
        return not self._closed

    @asynccontextmanager
    async def _store_errors(self) -> AsyncIterator[None]:
        # IntegrityError is a data conflict the caller handles, not a store failure
        try:
            yield
        except IntegrityError:
            raise
        except (asyncio.TimeoutError, SQLAlchemyError, OSError) as exc:
            logger.error(
                "Store operation failed",
                storage_id=self.name,
                error=str(exc) or type(exc).__name__,
            )
            raise ConnectionFailure(storage_id=self.name) from exc

    @asynccontextmanager
    async def session(self) -> AsyncIterator[AsyncSession]:
        """
        New session; the caller commits. Driver errors and timeouts raised
        inside the block surface as ConnectionFailure carrying this store's name.
        """
        async with self._store_errors():
            async with self._sessionmaker() as session:
                yield session

    @asynccontextmanager
    async def begin(self) -> AsyncIterator[AsyncSession]:
        """Like session(), inside a transaction that commits on exit."""
        async with self._store_errors():
            async with self._sessionmaker.begin() as session:
                yield session

    async def ping(self) -> None:
        async with self.engine.connect() as conn:
            await conn.execute(text("SELECT 1"))

    async def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        await self.engine.dispose()

    def __repr__(self) -> str:
        state = "open" if self.is_open else "closed"
        return f"<StoreHandle name={self.name} {state}>"


class TenantConnectionManager:

    def __init__(
        self,
        base_url: str,
        *,
        control_store_name: str = "empcare_main",
        storage_id_suffix: str = DEFAULT_STORAGE_ID_SUFFIX,
        pool_size: int = 10,
        max_overflow: int = 0,
        connect_timeout: float = 5.0,
        command_timeout: float = 45.0,
        pool_recycle: int = 3600,
        echo: bool = False,
        engine_factory: EngineFactory = create_async_engine,
    ) -> None:
        self._base_url = base_url
        self.control_store_name = control_store_name
        self._storage_id_suffix = storage_id_suffix
        self._pool_size = pool_size
        self._max_overflow = max_overflow
        self._connect_timeout = connect_timeout
        self._command_timeout = command_timeout
        self._pool_recycle = pool_recycle
        self._echo = echo
        self._engine_factory = engine_factory

        self._tenants: dict[str, StoreHandle] = {}
        self._locks: dict[str, asyncio.Lock] = {}
        self._control: Optional[StoreHandle] = None
        self._control_lock = asyncio.Lock()

    @classmethod
    def from_settings(cls, settings: Settings, **overrides: Any) -> "TenantConnectionManager":
        options: dict[str, Any] = dict(
            control_store_name=settings.CONTROL_STORE_NAME,
            storage_id_suffix=settings.STORAGE_ID_SUFFIX,
            pool_size=settings.DB_POOL_SIZE,
            max_overflow=settings.DB_MAX_OVERFLOW,
            connect_timeout=settings.DB_CONNECT_TIMEOUT,
            command_timeout=settings.DB_COMMAND_TIMEOUT,
            pool_recycle=settings.DB_POOL_RECYCLE,
            echo=settings.DEBUG,
        )
        options.update(overrides)
        return cls(settings.DATABASE_URL, **options)

    def storage_id_for(self, display_name: str) -> str:
        return derive_storage_id(display_name, self._storage_id_suffix)

    # ── Tenant stores ─────────────────────────────────────────────────────────

    async def get_tenant_connection(self, display_name: str) -> StoreHandle:
        """
        Return the cached handle for a tenant store, connecting on first use.

        Raises:
            ConnectionFailure: The store could not be reached in time. Nothing
                is cached, so the next call retries.
        """
        storage_id = self.storage_id_for(display_name)
        handle = self._tenants.get(storage_id)
        if handle is not None and handle.is_open:
            return handle

        lock = self._locks.setdefault(storage_id, asyncio.Lock())
        async with lock:
            # Another request may have connected while we waited
            handle = self._tenants.get(storage_id)
            if handle is not None and handle.is_open:
                return handle

            handle = await self._connect(storage_id)
            self._tenants[storage_id] = handle
            logger.info("Connected to tenant store", storage_id=storage_id)
            return handle

    async def provision_tenant_store(self, display_name: str) -> StoreHandle:
        """
        Make sure a tenant's store exists and holds the tenant tables.
        Idempotent; used at registration.
        """
        storage_id = self.storage_id_for(display_name)
        if build_store_url(self._base_url, storage_id).get_backend_name() == "postgresql":
            await self._create_postgres_database(storage_id)

        handle = await self.get_tenant_connection(display_name)
        try:
            async with handle.engine.begin() as conn:
                await conn.run_sync(TenantBase.metadata.create_all)
        except SQLAlchemyError as exc:
            logger.error("Tenant schema creation failed", storage_id=storage_id, error=str(exc))
            raise ConnectionFailure(storage_id=storage_id) from exc
        return handle

    async def close_tenant(self, display_name: str) -> None:
        """Evict and close one tenant's handle (tenant offboarding)."""
        storage_id = self.storage_id_for(display_name)
        handle = self._tenants.pop(storage_id, None)
        if handle is not None:
            await handle.close()
            logger.info("Closed tenant store connection", storage_id=storage_id)

    # ── Control store ─────────────────────────────────────────────────────────

    async def get_control_connection(self) -> StoreHandle:
        """
        Return the control handle, connecting on first use or after close.

        A cached handle is returned on its local is_open flag alone, without a
        round-trip. Dead pooled connections are detected by pool_pre_ping when
        a session checks one out, and any remaining driver error surfaces as
        ConnectionFailure from session() / begin().
        """
        control = self._control
        if control is not None and control.is_open:
            return control

        async with self._control_lock:
            if self._control is None or not self._control.is_open:
                self._control = await self._connect(self.control_store_name)
                logger.info("Connected to control store", storage_id=self.control_store_name)
            return self._control

    async def create_control_schema(self) -> None:
        control = await self.get_control_connection()
        try:
            async with control.engine.begin() as conn:
                await conn.run_sync(ControlBase.metadata.create_all)
        except SQLAlchemyError as exc:
            logger.error("Control schema creation failed", error=str(exc))
            raise ConnectionFailure(storage_id=self.control_store_name) from exc

    # ── Lifecycle ─────────────────────────────────────────────────────────────

    async def close_all(self) -> None:
        """
        Close every tenant handle and the control handle concurrently, wait
        for all of them, then clear the cache.

        Raises:
            ConnectionFailure: At least one close failed. The cache is still
                cleared and every handle is marked closed.
        """
        handles = list(self._tenants.values())
        if self._control is not None:
            handles.append(self._control)

        results = await asyncio.gather(
            *(handle.close() for handle in handles), return_exceptions=True
        )

        self._tenants.clear()
        self._locks.clear()
        self._control = None

        failures = [
            (handle, result)
            for handle, result in zip(handles, results)
            if isinstance(result, Exception)
        ]
        for handle, error in failures:
            logger.error("Failed to close store connection", storage_id=handle.name, error=str(error))
        if failures:
            raise ConnectionFailure(f"Failed to close {len(failures)} store connection(s)")

        logger.info("Closed all store connections", count=len(handles))

    def health_check(self) -> dict[str, Any]:
        """Liveness of cached handles. No I/O, does not touch the cache."""
        control = self._control
        return {
            "control": control is not None and control.is_open,
            "tenants": [
                storage_id
                for storage_id, handle in self._tenants.items()
                if handle.is_open
            ],
        }

    # ── Internals ─────────────────────────────────────────────────────────────

    def _engine_kwargs(self, url: URL) -> dict[str, Any]:
        kwargs: dict[str, Any] = {
            "echo": self._echo,
            "pool_pre_ping": True,
            "pool_recycle": self._pool_recycle,
        }
        if url.get_backend_name() == "sqlite":
            kwargs["connect_args"] = {"timeout": self._command_timeout}
            return kwargs

        kwargs.update(
            pool_size=self._pool_size,
            max_overflow=self._max_overflow,
            pool_timeout=self._connect_timeout,
        )
        if url.get_driver_name() == "asyncpg":
            kwargs["connect_args"] = {
                "timeout": self._connect_timeout,
                "command_timeout": self._command_timeout,
            }
        return kwargs

    async def _connect(self, store_name: str) -> StoreHandle:
        url = build_store_url(self._base_url, store_name)
        try:
            engine = self._engine_factory(url, **self._engine_kwargs(url))
        except SQLAlchemyError as exc:
            logger.error("Invalid store configuration", storage_id=store_name, error=str(exc))
            raise ConnectionFailure(storage_id=store_name) from exc

        handle = StoreHandle(store_name, engine)
        try:
            await asyncio.wait_for(handle.ping(), timeout=self._connect_timeout)
        except (asyncio.TimeoutError, SQLAlchemyError, OSError) as exc:
            logger.error(
                "Error connecting to store",
                storage_id=store_name,
                error=str(exc) or type(exc).__name__,
            )
            await engine.dispose()
            raise ConnectionFailure(storage_id=store_name) from exc
        return handle

    async def _create_postgres_database(self, storage_id: str) -> None:
        control = await self.get_control_connection()
        try:
            async with control.engine.connect() as conn:
                conn = await conn.execution_options(isolation_level="AUTOCOMMIT")
                exists = await conn.scalar(
                    text("SELECT 1 FROM pg_database WHERE datname = :name"),
                    {"name": storage_id},
                )
                if not exists:
                    # storage ids are restricted to [a-z0-9_]
                    await conn.execute(text(f'CREATE DATABASE "{storage_id}"'))
                    logger.info("Created tenant database", storage_id=storage_id)
        except SQLAlchemyError as exc:
            logger.error("Tenant database creation failed", storage_id=storage_id, error=str(exc))
            raise ConnectionFailure(storage_id=storage_id) from exc
