"""
Composition root: build the registry, open the database, wire the service.

    settings = get_settings()
    setup_logging(settings)
    registry = create_registry()
    connection = await open_database(settings, registry)
    try:
        service = build_user_service(connection, settings)
        ...
    finally:
        await connection.close()
"""

import logging

from cnapp.config.settings import Settings
from cnapp.database.base import Connection
from cnapp.database.registry import ProviderRegistry
from cnapp.database.sqlalchemy_provider import PostgresProvider, SQLiteProvider
from cnapp.repositories.user_repository import SQLUserRepository
from cnapp.services.user_service import UserService

logger = logging.getLogger(__name__)


def create_registry() -> ProviderRegistry:
    """Registry with every built-in provider registered."""
    registry = ProviderRegistry()
    registry.register(PostgresProvider())
    registry.register(SQLiteProvider())
    return registry


async def open_database(settings: Settings, registry: ProviderRegistry) -> Connection:
    """
    Resolve `DB_DRIVER` and connect.

    Raises:
        NotFoundError: no provider is registered under DB_DRIVER.
        DatabaseError: the connection could not be established.
    """
    provider = registry.get(settings.DB_DRIVER)
    logger.info("bootstrap.database.connecting", extra={"provider": provider.name})
    return await provider.connect(settings.database_config())


def build_user_service(connection: Connection, settings: Settings) -> UserService:
    repository = SQLUserRepository(connection, timeout=settings.DB_OPERATION_TIMEOUT)
    return UserService(repository)
