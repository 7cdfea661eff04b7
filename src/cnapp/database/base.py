"""
Engine-agnostic storage contracts.

The repository layer only ever talks to the abstract types defined here:

    Provider     named factory:  await provider.connect(config) -> Connection
    Connection   long-lived pooled handle shared by concurrent callers
    Transaction  short-lived single-owner unit of work borrowed from a Connection
    Result       outcome metadata of a non-row-returning statement
    Row / Rows   single buffered row / streamed row-set cursor

Deadlines are not passed around explicitly: every blocking operation is a
coroutine, so the caller's enclosing `asyncio.timeout(...)` scope bounds it
and cancels the in-flight statement when it expires.

Concrete implementations live next to this module (see `sqlalchemy_provider.py`).
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field
from sqlalchemy.sql.expression import Executable

from .errors import NoRowsError, TransactionDoneError

logger = logging.getLogger(__name__)

# A statement is either raw SQL text or a SQLAlchemy Core executable
# (select(...), insert(...), update(...), delete(...)).
Statement = str | Executable
Params = Mapping[str, Any] | None


# =================================================================================================================
# Configuration
# =================================================================================================================

class DatabaseConfig(BaseModel):
    """
    Connection parameters handed to `Provider.connect`.

    Pool bounds are applied once, at connect time:
      - max_open_conns: upper bound of simultaneously open connections (0 = unlimited)
      - max_idle_conns: connections kept open in the pool while idle
      - conn_max_lifetime: seconds before a pooled connection is recycled (0 = never)

    Transport security is enabled when `ssl_mode` is set (and not "disable").
    A client certificate is only used when both `ssl_cert` and `ssl_key` are given;
    `ssl_root_cert` then restricts trusted server certificates (system roots otherwise).
    """

    driver: str = "postgres"
    dsn: str
    max_open_conns: int = Field(default=25, ge=0)
    max_idle_conns: int = Field(default=5, ge=0)
    conn_max_lifetime: float = Field(default=300.0, ge=0)
    ssl_mode: str | None = None
    ssl_cert: str | None = None
    ssl_key: str | None = None
    ssl_root_cert: str | None = None
    echo: bool = False

    @property
    def tls_requested(self) -> bool:
        return bool(self.ssl_mode) and self.ssl_mode != "disable"


# =================================================================================================================
# Result / Row / Rows
# =================================================================================================================

@dataclass(frozen=True)
class Result:
    """Outcome of a statement that returns no rows."""

    rows_affected: int
    last_insert_id: int | None = None


class Row:
    """
    A single buffered row (or the absence of one).

    `scan()` is where "no rows" is first observed: it raises `NoRowsError`
    so callers can translate absence into a domain-level NotFound.
    """

    def __init__(self, values: Sequence[Any] | None):
        self._values = tuple(values) if values is not None else None

    def scan(self) -> tuple:
        if self._values is None:
            raise NoRowsError()
        return self._values

    def scan_one(self) -> Any:
        """Return the first column of the row."""
        return self.scan()[0]

    def __repr__(self) -> str:
        return f"<Row {self._values!r}>"


class Rows(ABC):
    """
    Streamed row-set cursor.

    Must be closed after iteration regardless of how iteration ends; the
    preferred form is:

        async with await conn.query(stmt) as rows:
            async for values in rows:
                ...
    """

    @abstractmethod
    async def fetch(self) -> tuple | None:
        """Return the next row as a tuple, or None when exhausted."""

    @abstractmethod
    async def close(self) -> None:
        """Release the cursor (and any borrowed pooled connection). Idempotent."""

    def __aiter__(self):
        return self

    async def __anext__(self) -> tuple:
        values = await self.fetch()
        if values is None:
            raise StopAsyncIteration
        return values

    async def __aenter__(self) -> Rows:
        return self

    async def __aexit__(self, exc_type, exc, tb) -> bool:
        await self.close()
        return False


# =================================================================================================================
# Transaction (scoped guard)
# =================================================================================================================

class TransactionState(str, Enum):
    ACTIVE = "active"
    COMMITTED = "committed"
    ROLLED_BACK = "rolled_back"


class Transaction(ABC):
    """
    Single-owner unit of work with exactly one terminal outcome.

    The base class is the guard: it tracks whether a terminal outcome already
    happened and enforces

      - commit() is the only path that persists writes;
      - commit() after a terminal outcome raises TransactionDoneError;
      - rollback() after a terminal outcome is a no-op (returns False);
      - statements after a terminal outcome raise TransactionDoneError.

    Used as an async context manager, exit always rolls back, so the
    rollback is scheduled before any work is done:

        async with await conn.begin() as tx:
            await tx.execute(...)
            await tx.commit()

    Not safe for concurrent use by more than one caller.
    """

    def __init__(self) -> None:
        self._state = TransactionState.ACTIVE

    # ------------------------------------------------------------------
    # Engine hooks
    # ------------------------------------------------------------------
    @abstractmethod
    async def _execute(self, statement: Statement, params: Params) -> Result: ...

    @abstractmethod
    async def _query(self, statement: Statement, params: Params) -> Rows: ...

    @abstractmethod
    async def _query_row(self, statement: Statement, params: Params) -> Row: ...

    @abstractmethod
    async def _commit(self) -> None: ...

    @abstractmethod
    async def _rollback(self) -> None: ...

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------
    @property
    def state(self) -> TransactionState:
        return self._state

    @property
    def done(self) -> bool:
        return self._state is not TransactionState.ACTIVE

    def _ensure_active(self) -> None:
        if self.done:
            raise TransactionDoneError()

    async def execute(self, statement: Statement, params: Params = None) -> Result:
        self._ensure_active()
        return await self._execute(statement, params)

    async def query(self, statement: Statement, params: Params = None) -> Rows:
        self._ensure_active()
        return await self._query(statement, params)

    async def query_row(self, statement: Statement, params: Params = None) -> Row:
        self._ensure_active()
        return await self._query_row(statement, params)

    async def commit(self) -> None:
        self._ensure_active()
        try:
            await self._commit()
        except BaseException:
            # A failed COMMIT ends the transaction; the engine discards its writes.
            self._state = TransactionState.ROLLED_BACK
            raise
        self._state = TransactionState.COMMITTED

    async def rollback(self) -> bool:
        """
        Roll back if still active.

        Returns:
            True if a rollback was issued, False if the transaction had already
            reached a terminal outcome (the late rollback is redundant).
        """
        if self.done:
            logger.debug("db.tx.rollback_skipped", extra={"tx_state": self._state.value})
            return False
        self._state = TransactionState.ROLLED_BACK
        await self._rollback()
        return True

    async def __aenter__(self) -> Transaction:
        return self

    async def __aexit__(self, exc_type, exc, tb) -> bool:
        if exc is None:
            await self.rollback()
            return False
        # An error is already propagating: a failing rollback must not replace it.
        try:
            await self.rollback()
        except Exception:
            logger.exception("db.tx.rollback_failed")
        return False


# =================================================================================================================
# Connection / Provider
# =================================================================================================================

class Connection(ABC):
    """
    Long-lived pooled handle, shared by many concurrent callers.

    Owned by whoever called `Provider.connect`; released exactly once via
    `close()`. Operations on a closed connection raise ConnectionClosedError.
    """

    @property
    @abstractmethod
    def closed(self) -> bool: ...

    @abstractmethod
    async def execute(self, statement: Statement, params: Params = None) -> Result:
        """Run a statement that returns no rows, in its own short transaction."""

    @abstractmethod
    async def query(self, statement: Statement, params: Params = None) -> Rows:
        """Run a statement returning many rows. The caller must close the row-set."""

    @abstractmethod
    async def query_row(self, statement: Statement, params: Params = None) -> Row:
        """Run a statement returning at most one row."""

    @abstractmethod
    async def begin(self) -> Transaction:
        """Start a transaction on one borrowed pooled connection."""

    @abstractmethod
    async def health(self, timeout: float | None = None) -> None:
        """Liveness probe; raises on failure or when `timeout` expires."""

    @abstractmethod
    async def close(self) -> None:
        """Release every pooled resource. Idempotent."""

    async def __aenter__(self) -> Connection:
        return self

    async def __aexit__(self, exc_type, exc, tb) -> bool:
        await self.close()
        return False


class Provider(ABC):
    """Named factory producing connections for one storage engine."""

    @property
    @abstractmethod
    def name(self) -> str: ...

    @abstractmethod
    async def connect(self, config: DatabaseConfig) -> Connection:
        """
        Establish a pooled connection.

        Raises:
            DatabaseError: bad TLS material, unreachable engine or failed liveness probe.
        """

    def __repr__(self) -> str:
        return f"<{type(self).__name__} name={self.name!r}>"
