import asyncio
import logging

import pytest
from sqlalchemy.exc import OperationalError

from cnapp.exceptions.base import DatabaseError, NotFoundError
from cnapp.repositories.base_repository import BaseRepository
from .slow_connection import SlowConnection


@pytest.fixture
def base_repo() -> BaseRepository:
    return BaseRepository(SlowConnection(delay=0), timeout=0.05)


def test_default_timeout():
    assert BaseRepository(SlowConnection(delay=0)).timeout == BaseRepository.DEFAULT_TIMEOUT == 5.0


@pytest.mark.asyncio
class TestUnitOfWork:
    """
    Behavior:
      - success is logged with duration_ms and any fields the body recorded
      - storage faults become DatabaseError with the operation's message
      - classified errors pass through
      - the deadline bounds the whole body
    """

    async def test_success_is_logged(self, base_repo, caplog):
        caplog.set_level(logging.DEBUG, logger="cnapp.repositories.base_repository")

        async with base_repo._unit_of_work("create", "failed to create user") as log_fields:
            log_fields["id"] = 42

        start = next(r for r in caplog.records if r.getMessage() == "repo.start")
        success = next(r for r in caplog.records if r.getMessage() == "repo.success")
        assert start.levelno == logging.DEBUG
        assert success.levelno == logging.INFO
        assert start.operation == success.operation == "create"
        assert success.id == 42
        assert success.repository == "BaseRepository"
        assert isinstance(success.duration_ms, int)

    async def test_storage_fault_is_classified(self, base_repo):
        with pytest.raises(DatabaseError) as exc_info:
            async with base_repo._unit_of_work("find_all", "error retrieving users"):
                raise OperationalError("SELECT", {}, Exception("gone"))
        assert exc_info.value.message == "error retrieving users"

    async def test_classified_error_passes_through(self, base_repo, caplog):
        caplog.set_level(logging.INFO, logger="cnapp.repositories.base_repository")
        with pytest.raises(NotFoundError):
            async with base_repo._unit_of_work("delete", "failed to delete user"):
                raise NotFoundError("user with ID 1 not found")
        assert not any(r.getMessage() == "repo.success" for r in caplog.records)

    async def test_deadline(self, base_repo):
        with pytest.raises(DatabaseError) as exc_info:
            async with base_repo._unit_of_work("find_by_id", "error retrieving user"):
                await asyncio.sleep(1)
        assert isinstance(exc_info.value.cause, TimeoutError)
