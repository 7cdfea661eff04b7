import pytest

from cnapp.bootstrap import build_user_service, create_registry, open_database
from cnapp.database.sqlalchemy_provider import PostgresProvider, SQLiteProvider
from cnapp.exceptions.base import DatabaseError, NotFoundError
from cnapp.models import Base
from cnapp.services.user_service import User
from .conftest import make_test_settings


def test_create_registry_registers_builtin_providers():
    registry = create_registry()
    assert registry.list() == {"postgres", "sqlite"}
    assert isinstance(registry.get("postgres"), PostgresProvider)
    assert isinstance(registry.get("sqlite"), SQLiteProvider)


def test_registries_are_independent():
    first, second = create_registry(), create_registry()
    first.register(SQLiteProvider())
    assert first.get("sqlite") is not second.get("sqlite")


@pytest.mark.asyncio
class TestOpenDatabase:
    async def test_unknown_driver(self):
        settings = make_test_settings(DB_DRIVER="oracle", DB_DSN="oracle://x")
        with pytest.raises(NotFoundError):
            await open_database(settings, create_registry())

    async def test_connect_failure_is_database_error(self, tmp_path):
        settings = make_test_settings(DB_DRIVER="sqlite", DB_DSN=f"sqlite:///{tmp_path / 'no' / 'such' / 'x.db'}")
        with pytest.raises(DatabaseError):
            await open_database(settings, create_registry())

    async def test_end_to_end(self, tmp_path):
        settings = make_test_settings(
            DB_DRIVER="sqlite",
            DB_DSN=f"sqlite:///{tmp_path / 'app.db'}",
            DB_OPERATION_TIMEOUT=2.0,
        )
        connection = await open_database(settings, create_registry())
        try:
            async with connection.engine.begin() as raw:
                await raw.run_sync(Base.metadata.create_all)

            service = build_user_service(connection, settings)
            assert service.repository.timeout == 2.0

            created = await service.create_user(User(name="Linus", email="linus@example.com"))
            assert await service.get_user_by_id(created.id) == created
        finally:
            await connection.close()
        assert connection.closed
