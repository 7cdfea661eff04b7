"""
Registry of storage providers keyed by engine name.

There is no module-level default registry: the composition root
builds one (see `cnapp.bootstrap.create_registry`) and passes it to whatever
needs to resolve a provider.

Thread safety:
  - `get`, `list`, `__contains__`, `__len__` take the read side of a
    reader/writer lock and never block each other.
  - `register` takes the write side only for the duration of the table update.
"""

from __future__ import annotations

import logging

from cnapp.exceptions.base import NotFoundError
from cnapp.utils.locks import ReadWriteLock
from .base import Provider

logger = logging.getLogger(__name__)


class ProviderRegistry:
    """Concurrency-safe table mapping an engine name to its Provider."""

    def __init__(self) -> None:
        self._lock = ReadWriteLock()
        self._providers: dict[str, Provider] = {}

    def register(self, provider: Provider) -> None:
        """
        Add `provider` under `provider.name`.

        Re-registering a name replaces the previous entry and logs a warning
        instead of failing, so tests can substitute a provider.
        """
        name = provider.name
        with self._lock.write_locked():
            replaced = self._providers.get(name)
            self._providers[name] = provider

        if replaced is not None:
            logger.warning(
                "registry.provider_overridden",
                extra={"provider": name, "replaced": type(replaced).__name__},
            )
        else:
            logger.debug("registry.provider_registered", extra={"provider": name})

    def get(self, name: str) -> Provider:
        """
        Return the provider registered under `name`.

        Raises:
            NotFoundError: if no provider has that name.
        """
        with self._lock.read_locked():
            provider = self._providers.get(name)
        if provider is None:
            raise NotFoundError(f"database provider not found: {name}")
        return provider

    def list(self) -> set[str]:
        """Return the registered provider names (each exactly once)."""
        with self._lock.read_locked():
            return set(self._providers)

    def __contains__(self, name: object) -> bool:
        with self._lock.read_locked():
            return name in self._providers

    def __len__(self) -> int:
        with self._lock.read_locked():
            return len(self._providers)
