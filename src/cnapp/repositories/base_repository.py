"""
Base repository: shared plumbing for repositories built on a `Connection`.

Each public repository method is one unit of work:

  - bounded by a deadline (`asyncio.timeout(self.timeout)`) that every
    statement of the operation shares, transaction included;
  - storage faults surfacing from it are classified as `DatabaseError`
    by `database_errors` (classified errors pass through);
  - logged as `repo.start` (DEBUG) and
    `repo.success` (INFO, with duration_ms), the operation name in `extra`.

Subclasses only write the statements and decide domain outcomes
(not found, decode failures).
"""

import asyncio
import logging
import time
from contextlib import asynccontextmanager

from cnapp.database.base import Connection
from cnapp.exceptions.mapper import database_errors

logger = logging.getLogger(__name__)


class BaseRepository:
    """
    Holds the injected connection and the per-operation timeout.

    Args:
        connection: shared pooled `Connection` (owned by the composition root)
        timeout: seconds allowed per operation; DEFAULT_TIMEOUT when omitted
    """

    DEFAULT_TIMEOUT = 5.0

    def __init__(self, connection: Connection, *, timeout: float | None = None):
        self.connection = connection
        self.timeout = self.DEFAULT_TIMEOUT if timeout is None else timeout

    @asynccontextmanager
    async def _unit_of_work(self, operation: str, message: str):
        """
        Run one repository operation under its deadline and error mapping.

        Yields a dict; keys the body puts there (e.g. "id") are added to the
        success log record.
        """
        name = type(self).__name__
        logger.debug("repo.start", extra={"repository": name, "operation": operation})
        start = time.perf_counter()
        log_fields: dict = {}

        async with database_errors(message, operation=operation):
            async with asyncio.timeout(self.timeout):
                yield log_fields

        logger.info(
            "repo.success",
            extra={
                "repository": name,
                "operation": operation,
                "duration_ms": int((time.perf_counter() - start) * 1000),
                **log_fields,
            },
        )
