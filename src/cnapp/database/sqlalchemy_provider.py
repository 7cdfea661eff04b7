"""
SQLAlchemy (async) implementation of the storage contracts.

One `SQLAlchemyProvider` subclass per engine:

    PostgresProvider  name="postgres"  driver: psycopg     (TLS supported)
    SQLiteProvider    name="sqlite"    driver: aiosqlite   (file databases, no TLS)

Both produce a `SQLAlchemyConnection` wrapping an `AsyncEngine`. The engine's
connection pool is what gets shared between concurrent callers; each
transaction borrows one pooled connection for its lifetime.
"""

from __future__ import annotations

import asyncio
import logging
import ssl
import time
from typing import Any

from sqlalchemy import text
from sqlalchemy.engine import make_url, URL
from sqlalchemy.exc import ArgumentError, SQLAlchemyError
from sqlalchemy.ext.asyncio import (
    AsyncConnection,
    AsyncEngine,
    AsyncResult,
    create_async_engine,
)
from sqlalchemy.pool import AsyncAdaptedQueuePool
from sqlalchemy.sql.expression import Executable

from cnapp.exceptions.base import DatabaseError
from .base import (
    Connection,
    DatabaseConfig,
    Params,
    Provider,
    Result,
    Row,
    Rows,
    Statement,
    Transaction,
)
from .errors import ConnectionClosedError

logger = logging.getLogger(__name__)

PING_STATEMENT = "SELECT 1"


# =================================================================================================================
# Helpers
# =================================================================================================================

def as_executable(statement: Statement) -> Executable:
    """Wrap raw SQL strings with `text()`; pass Core executables through."""
    if isinstance(statement, str):
        return text(statement)
    return statement


def describe_statement(statement: Statement) -> str:
    # Only the statement text is logged, never bound parameter values.
    return " ".join(str(statement).split())


async def _run(conn: AsyncConnection, statement: Statement, params: Params):
    if params is None:
        return await conn.execute(as_executable(statement))
    return await conn.execute(as_executable(statement), dict(params))


async def _stream(conn: AsyncConnection, statement: Statement, params: Params) -> AsyncResult:
    if params is None:
        return await conn.stream(as_executable(statement))
    return await conn.stream(as_executable(statement), dict(params))


def build_ssl_context(config: DatabaseConfig) -> ssl.SSLContext:
    """
    Build the client-side TLS context.

    - the client certificate chain comes from ssl_cert / ssl_key
    - trusted server certificates come from ssl_root_cert, or the system roots
    - TLS 1.2 is the minimum protocol version

    Raises:
        OSError / ssl.SSLError: when any configured file is missing or unreadable.
    """
    context = ssl.create_default_context(cafile=config.ssl_root_cert or None)
    context.minimum_version = ssl.TLSVersion.TLSv1_2
    context.load_cert_chain(certfile=config.ssl_cert, keyfile=config.ssl_key)
    return context


# =================================================================================================================
# Row-set / Transaction / Connection
# =================================================================================================================

class SQLAlchemyRows(Rows):
    """
    Row-set over a streamed `AsyncResult`.

    When the row-set was opened outside a transaction it owns the pooled
    connection it was streamed from and gives it back on `close()`.
    """

    def __init__(self, result: AsyncResult, owned_conn: AsyncConnection | None = None):
        self._result = result
        self._owned_conn = owned_conn
        self._closed = False

    async def fetch(self) -> tuple | None:
        if self._closed:
            return None
        row = await self._result.fetchone()
        return tuple(row) if row is not None else None

    async def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        try:
            await self._result.close()
        finally:
            if self._owned_conn is not None:
                await self._owned_conn.close()


class SQLAlchemyTransaction(Transaction):
    """Transaction bound to one borrowed `AsyncConnection`."""

    def __init__(self, conn: AsyncConnection, *, supports_lastrowid: bool = False):
        super().__init__()
        self._conn = conn
        self._supports_lastrowid = supports_lastrowid

    async def _execute(self, statement: Statement, params: Params) -> Result:
        try:
            result = await _run(self._conn, statement, params)
        except SQLAlchemyError:
            logger.error("db.tx.execute.failed", extra={"statement": describe_statement(statement)})
            raise
        return _to_result(result, self._supports_lastrowid)

    async def _query(self, statement: Statement, params: Params) -> Rows:
        try:
            result = await _stream(self._conn, statement, params)
        except SQLAlchemyError:
            logger.error("db.tx.query.failed", extra={"statement": describe_statement(statement)})
            raise
        # the borrowed connection stays with the transaction
        return SQLAlchemyRows(result)

    async def _query_row(self, statement: Statement, params: Params) -> Row:
        try:
            result = await _run(self._conn, statement, params)
            values = result.first()
        except SQLAlchemyError:
            logger.error("db.tx.query.failed", extra={"statement": describe_statement(statement)})
            raise
        return Row(values)

    async def _commit(self) -> None:
        try:
            await self._conn.commit()
        finally:
            await self._conn.close()

    async def _rollback(self) -> None:
        try:
            await self._conn.rollback()
        finally:
            await self._conn.close()


def _to_result(result: Any, supports_lastrowid: bool) -> Result:
    last_insert_id = result.lastrowid if supports_lastrowid else None
    return Result(rows_affected=result.rowcount, last_insert_id=last_insert_id)


class SQLAlchemyConnection(Connection):
    """
    Pooled connection backed by an `AsyncEngine`.

    - execute / query_row run in their own short transaction (autocommit)
    - query streams rows through a borrowed connection released by Rows.close()
    - begin borrows one pooled connection for the transaction's lifetime
    """

    def __init__(self, engine: AsyncEngine, *, provider_name: str, supports_lastrowid: bool = False):
        self._engine = engine
        self._provider_name = provider_name
        self._supports_lastrowid = supports_lastrowid
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def engine(self) -> AsyncEngine:
        return self._engine

    def _ensure_open(self) -> None:
        if self._closed:
            raise ConnectionClosedError()

    async def execute(self, statement: Statement, params: Params = None) -> Result:
        self._ensure_open()
        try:
            async with self._engine.begin() as conn:
                result = await _run(conn, statement, params)
                return _to_result(result, self._supports_lastrowid)
        except SQLAlchemyError:
            logger.error("db.execute.failed", extra={"statement": describe_statement(statement)})
            raise

    async def query(self, statement: Statement, params: Params = None) -> Rows:
        self._ensure_open()
        conn = await self._engine.connect()
        try:
            result = await _stream(conn, statement, params)
        except BaseException as exc:
            await conn.close()
            if isinstance(exc, SQLAlchemyError):
                logger.error("db.query.failed", extra={"statement": describe_statement(statement)})
            raise
        return SQLAlchemyRows(result, owned_conn=conn)

    async def query_row(self, statement: Statement, params: Params = None) -> Row:
        self._ensure_open()
        try:
            async with self._engine.begin() as conn:
                result = await _run(conn, statement, params)
                values = result.first()
        except SQLAlchemyError:
            logger.error("db.query.failed", extra={"statement": describe_statement(statement)})
            raise
        return Row(values)

    async def begin(self) -> Transaction:
        self._ensure_open()
        conn = await self._engine.connect()
        try:
            await conn.begin()
        except BaseException:
            await conn.close()
            logger.error("db.tx.begin.failed", extra={"provider": self._provider_name})
            raise
        return SQLAlchemyTransaction(conn, supports_lastrowid=self._supports_lastrowid)

    async def health(self, timeout: float | None = None) -> None:
        self._ensure_open()
        async with asyncio.timeout(timeout):
            async with self._engine.connect() as conn:
                await conn.execute(text(PING_STATEMENT))

    async def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        await self._engine.dispose()
        logger.info("db.close", extra={"provider": self._provider_name})


# =================================================================================================================
# Providers
# =================================================================================================================

class SQLAlchemyProvider(Provider):
    """
    Base provider: turns a DatabaseConfig into a pinged SQLAlchemyConnection.

    Subclasses set `provider_name` and `async_driver` and may override
    `connect_args` / `engine_options`.
    """

    provider_name: str = ""
    # SQLAlchemy drivername used for the async engine, e.g. "postgresql+psycopg"
    async_driver: str = ""
    # drivernames (without the async part) accepted in DSNs for this provider
    dsn_schemes: tuple[str, ...] = ()
    supports_lastrowid: bool = False

    @property
    def name(self) -> str:
        return self.provider_name

    # ---------------------------------------------------------------
    # Hooks
    # ---------------------------------------------------------------
    def build_url(self, dsn: str) -> URL:
        """Parse `dsn` and force the async driver for this engine."""
        url = make_url(dsn)
        backend = url.drivername.split("+", 1)[0]
        if self.dsn_schemes and backend not in self.dsn_schemes:
            raise ArgumentError(f"{self.name} provider cannot open a {backend!r} URL")
        return url.set(drivername=self.async_driver)

    def connect_args(self, config: DatabaseConfig) -> dict[str, Any]:
        return {}

    def engine_options(self, config: DatabaseConfig) -> dict[str, Any]:
        """
        Translate pool bounds to QueuePool settings.

          pool_size     <- max_idle_conns (connections kept while idle)
          max_overflow  <- max_open_conns - pool_size (-1 when max_open_conns is 0: unlimited)
          pool_recycle  <- conn_max_lifetime (-1 when 0: never recycle)
        """
        if config.max_open_conns > 0:
            pool_size = max(min(config.max_idle_conns, config.max_open_conns), 1)
            max_overflow = config.max_open_conns - pool_size
        else:
            pool_size = config.max_idle_conns
            max_overflow = -1
        return {
            "pool_size": pool_size,
            "max_overflow": max_overflow,
            "pool_recycle": int(config.conn_max_lifetime) if config.conn_max_lifetime > 0 else -1,
            "pool_pre_ping": True,
        }

    # ---------------------------------------------------------------
    # connect()
    # ---------------------------------------------------------------
    async def connect(self, config: DatabaseConfig) -> Connection:
        start = time.perf_counter()

        # TLS material is loaded before anything touches the network.
        connect_args = self.connect_args(config)

        try:
            engine = create_async_engine(
                self.build_url(config.dsn),
                echo=config.echo,
                connect_args=connect_args,
                **self.engine_options(config),
            )
        except (ArgumentError, SQLAlchemyError, ImportError) as exc:
            raise DatabaseError(f"failed to open {self.name} connection", exc) from exc

        # Liveness probe: a connection that cannot answer is never handed out.
        try:
            async with engine.connect() as conn:
                await conn.execute(text(PING_STATEMENT))
        except (SQLAlchemyError, OSError) as exc:
            await engine.dispose()
            logger.error("db.connect.ping_failed", extra={"provider": self.name})
            raise DatabaseError(f"failed to ping {self.name}", exc) from exc
        except BaseException:
            # cancelled by the caller's deadline: release the pool, keep the cancellation
            await engine.dispose()
            logger.warning("db.connect.ping_cancelled", extra={"provider": self.name})
            raise

        logger.info(
            "db.connect.success",
            extra={
                "provider": self.name,
                "max_open_conns": config.max_open_conns,
                "max_idle_conns": config.max_idle_conns,
                "tls": config.tls_requested,
                "duration_ms": int((time.perf_counter() - start) * 1000),
            },
        )
        return SQLAlchemyConnection(
            engine,
            provider_name=self.name,
            supports_lastrowid=self.supports_lastrowid,
        )


class PostgresProvider(SQLAlchemyProvider):
    """PostgreSQL through psycopg (v3, async)."""

    provider_name = "postgres"
    async_driver = "postgresql+psycopg"
    dsn_schemes = ("postgresql", "postgres")

    def build_url(self, dsn: str) -> URL:
        # accept the libpq-style "postgres://" scheme as well
        if dsn.startswith("postgres://"):
            dsn = "postgresql://" + dsn[len("postgres://"):]
        return super().build_url(dsn)

    def connect_args(self, config: DatabaseConfig) -> dict[str, Any]:
        """
        Resolve the libpq TLS parameters handed to psycopg.

        - TLS not requested               -> no arguments
        - mode only                       -> sslmode ("require", "verify-full", ...)
        - mode + client cert + key        -> sslmode plus the certificate files, once
                                             they have been loaded into an SSLContext

        Raises:
            DatabaseError: half-configured client material, or unreadable files.
        """
        if not config.tls_requested:
            return {}

        has_cert, has_key = bool(config.ssl_cert), bool(config.ssl_key)
        if has_cert != has_key:
            raise DatabaseError(
                "failed to setup TLS",
                ValueError("client certificate and key must be configured together"),
            )
        if not has_cert:
            return {"sslmode": config.ssl_mode}

        # libpq reads the files only while connecting; load them here so bad
        # material fails before any network access.
        try:
            build_ssl_context(config)
        except (OSError, ValueError) as exc:
            logger.error("db.connect.tls_failed", extra={"provider": self.name})
            raise DatabaseError("failed to setup TLS", exc) from exc

        args = {"sslmode": config.ssl_mode, "sslcert": config.ssl_cert, "sslkey": config.ssl_key}
        if config.ssl_root_cert:
            args["sslrootcert"] = config.ssl_root_cert
        return args


class SQLiteProvider(SQLAlchemyProvider):
    """
    SQLite through aiosqlite.

    Uses a queue pool so the pool bounds apply; point the DSN at a database
    file (an in-memory database would be private to each pooled connection).
    """

    provider_name = "sqlite"
    async_driver = "sqlite+aiosqlite"
    dsn_schemes = ("sqlite",)
    supports_lastrowid = True

    def connect_args(self, config: DatabaseConfig) -> dict[str, Any]:
        if config.tls_requested:
            raise DatabaseError(
                "failed to setup TLS",
                ValueError("the sqlite provider does not support transport security"),
            )
        return {}

    def engine_options(self, config: DatabaseConfig) -> dict[str, Any]:
        options = super().engine_options(config)
        options["poolclass"] = AsyncAdaptedQueuePool
        return options
