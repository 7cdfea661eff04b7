"""
Map low-level storage faults to classified application errors.

Repositories wrap every unit of work in `database_errors(...)`:

    async with database_errors("failed to update user", operation="update"):
        async with asyncio.timeout(self.timeout):
            ...

Rules:
  - `AppError` subclasses pass through untouched (they are already classified,
    e.g. a NotFoundError decided from a rows-affected count).
  - An expired deadline (`TimeoutError`), any `DriverError` and any
    `SQLAlchemyError` become `DatabaseError(message, cause)`.
  - Anything else is a programming error and propagates unchanged.
  - `asyncio.CancelledError` is a BaseException and is never caught here.
"""

import logging
from contextlib import asynccontextmanager

from sqlalchemy.exc import SQLAlchemyError

from cnapp.database.errors import DriverError
from .base import AppError, DatabaseError

logger = logging.getLogger(__name__)

# Faults that count as "storage engine or transport" failures.
STORAGE_FAULTS = (TimeoutError, DriverError, SQLAlchemyError)


def to_database_error(exc: BaseException, message: str) -> DatabaseError:
    """
    Wrap `exc` in a DatabaseError carrying `message`.

    A timeout is described explicitly so logs and API bodies make the expired
    deadline visible instead of an empty cause string.
    """
    if isinstance(exc, TimeoutError) and not str(exc):
        exc = TimeoutError("operation deadline exceeded")
    return DatabaseError(message, exc)


@asynccontextmanager
async def database_errors(message: str, *, operation: str | None = None):
    """
    Async context manager translating storage faults into `DatabaseError`.

    Args:
        message: message for the raised DatabaseError (e.g. "failed to create user")
        operation: optional operation name, only used for structured logging
    """
    try:
        yield
    except AppError:
        raise
    except STORAGE_FAULTS as exc:
        # ERROR without stack: the cause is kept on the raised error for callers that need it.
        logger.error(
            "mapper.database_error",
            extra={
                "operation": operation,
                "error_message": message,
                "cause_type": type(exc).__name__,
            },
        )
        raise to_database_error(exc, message) from exc
