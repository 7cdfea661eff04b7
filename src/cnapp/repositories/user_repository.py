import logging
from dataclasses import replace
from datetime import datetime, timezone
from typing import Any, Sequence

from sqlalchemy import delete, insert, select, update

from cnapp.database.base import Connection
from cnapp.database.errors import NoRowsError
from cnapp.exceptions.base import DatabaseError, NotFoundError
from cnapp.exceptions.mapper import database_errors
from cnapp.models.user import UserRecord
from cnapp.services.user_service import User
from .base_repository import BaseRepository

logger = logging.getLogger(__name__)

# RFC 3339, second precision, UTC designator
TIMESTAMP_FORMAT = "%Y-%m-%dT%H:%M:%SZ"

users = UserRecord.__table__

_USER_COLUMNS = (
    users.c.id,
    users.c.name,
    users.c.email,
    users.c.role,
    users.c.active,
    users.c.created_at,
    users.c.updated_at,
)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def format_timestamp(value: Any) -> str:
    """
    Render a stored timestamp as RFC 3339 UTC.

    Naive datetimes (engines without zone support, e.g. SQLite) are stored
    as UTC by this repository and read back as such.
    """
    if not isinstance(value, datetime):
        raise TypeError(f"expected a datetime timestamp, got {type(value).__name__}")
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).strftime(TIMESTAMP_FORMAT)


def row_to_user(values: Sequence[Any]) -> User:
    """Decode one `_USER_COLUMNS` row; raises TypeError/ValueError on a malformed row."""
    user_id, name, email, role, active, created_at, updated_at = values
    return User(
        id=int(user_id),
        name=name,
        email=email,
        role=role,
        active=bool(active),
        created_at=format_timestamp(created_at),
        updated_at=format_timestamp(updated_at),
    )


class SQLUserRepository(BaseRepository):
    """
    `UserRepository` over the `users` table.

    Reads run directly on the shared connection; every write runs in its own
    transaction that is rolled back unless the whole operation succeeded.
    """

    def __init__(self, connection: Connection, *, timeout: float | None = None):
        super().__init__(connection, timeout=timeout)

    # =================================================================================================================
    # Reads
    # =================================================================================================================

    async def find_by_id(self, user_id: int) -> User:
        """
        Raises:
            NotFoundError: no user has this id.
            DatabaseError: the lookup failed or the stored row could not be decoded.
        """
        stmt = select(*_USER_COLUMNS).where(users.c.id == user_id)

        async with self._unit_of_work("find_by_id", "error retrieving user") as log_fields:
            log_fields["id"] = user_id
            try:
                row = await self.connection.query_row(stmt)
                user = row_to_user(row.scan())
            except NoRowsError:
                logger.info("repo.not_found", extra={"operation": "find_by_id", "id": user_id})
                raise NotFoundError("user not found")
            except (TypeError, ValueError) as exc:
                # stored row could not be decoded
                raise DatabaseError("error retrieving user", exc) from exc

        return user

    async def find_all(self) -> list[User]:
        """
        All users ordered by id.

        A row that fails to decode fails the whole call; partial lists are
        never returned. The row-set is closed on every path.
        """
        stmt = select(*_USER_COLUMNS).order_by(users.c.id)
        result: list[User] = []

        async with self._unit_of_work("find_all", "error retrieving users") as log_fields:
            rows = await self.connection.query(stmt)
            async with rows:
                try:
                    async with database_errors("error iterating users", operation="find_all"):
                        async for values in rows:
                            result.append(row_to_user(values))
                except (TypeError, ValueError) as exc:
                    # raised either by the driver's type conversion or by row_to_user
                    raise DatabaseError("error scanning user", exc) from exc
            log_fields["count"] = len(result)

        return result

    # =================================================================================================================
    # Writes
    # =================================================================================================================

    async def create(self, user: User) -> User:
        """
        Insert `user` and return a copy carrying the assigned id and timestamps.

        `user.id`, `created_at` and `updated_at` are ignored on input: both
        timestamps are set to the same current UTC instant.
        """
        now = utc_now()
        stmt = (
            insert(users)
            .values(
                name=user.name,
                email=user.email,
                role=user.role,
                active=user.active,
                created_at=now,
                updated_at=now,
            )
            .returning(users.c.id)
        )

        async with self._unit_of_work("create", "failed to create user") as log_fields:
            async with database_errors("failed to begin transaction", operation="create"):
                tx = await self.connection.begin()

            async with tx:
                row = await tx.query_row(stmt)
                new_id = row.scan_one()

                async with database_errors("failed to commit user creation", operation="create"):
                    await tx.commit()

            log_fields["id"] = new_id

        stamp = format_timestamp(now)
        return replace(user, id=int(new_id), created_at=stamp, updated_at=stamp)

    async def update(self, user: User) -> None:
        """
        Overwrite name, email, role and active of `user.id`; bumps updated_at.

        Raises:
            NotFoundError: no row was affected (nothing is committed).
        """
        stmt = (
            update(users)
            .where(users.c.id == user.id)
            .values(
                name=user.name,
                email=user.email,
                role=user.role,
                active=user.active,
                updated_at=utc_now(),
            )
        )

        async with self._unit_of_work("update", "failed to update user") as log_fields:
            log_fields["id"] = user.id
            await self._write_one(stmt, user.id, "update", "failed to commit user update")

    async def delete(self, user_id: int) -> None:
        """
        Raises:
            NotFoundError: no user has this id (nothing is committed).
        """
        stmt = delete(users).where(users.c.id == user_id)

        async with self._unit_of_work("delete", "failed to delete user") as log_fields:
            log_fields["id"] = user_id
            await self._write_one(stmt, user_id, "delete", "failed to commit user deletion")

    async def _write_one(self, stmt, user_id: int, operation: str, commit_message: str) -> None:
        """Run `stmt` in a transaction; commit only if it touched a row."""
        async with database_errors("failed to begin transaction", operation=operation):
            tx = await self.connection.begin()

        async with tx:
            result = await tx.execute(stmt)
            if result.rows_affected == 0:
                logger.info("repo.not_found", extra={"operation": operation, "id": user_id})
                raise NotFoundError(f"user with ID {user_id} not found")

            async with database_errors(commit_message, operation=operation):
                await tx.commit()
