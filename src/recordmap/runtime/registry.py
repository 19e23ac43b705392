"""
Manager registry.

Maps logical record names to manager factories. Managers are built on first
``resolve`` and memoized for the registry's lifetime; ``fresh`` always builds
a new, uncached instance. Pass the registry explicitly to whatever needs
cross-manager lookups instead of sharing process-wide state.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable, Iterable
from typing import TYPE_CHECKING

from recordmap.errors import MalformedDeclarationError, ManagerNotRegisteredError
from recordmap.runtime.logging import get_registry_logger, log_with_context
from recordmap.runtime.manager import RecordManager

if TYPE_CHECKING:
    from recordmap.runtime.storage import StorageBackend
    from recordmap.specs.record import RecordSpec

ManagerFactory = Callable[["ManagerRegistry"], RecordManager]

logger = get_registry_logger()


class ManagerRegistry:
    """
    Registry of record managers by logical name.

    Example:
        registry = ManagerRegistry()
        registry.register_spec(user_spec, storage)
        registry.register("Post", lambda reg: RecordManager(post_spec, storage, reg))
        users = registry.resolve("User")
    """

    def __init__(self) -> None:
        self._factories: dict[str, ManagerFactory] = {}
        self._managers: dict[str, RecordManager] = {}
        self._lock = threading.RLock()

    def register(self, name: str, factory: ManagerFactory) -> None:
        """
        Register a factory under a logical name.

        Args:
            name: Logical name used by ``resolve`` and relation targets
            factory: Callable receiving this registry, returning a manager

        Raises:
            MalformedDeclarationError: If the name is already registered
        """
        with self._lock:
            if name in self._factories:
                raise MalformedDeclarationError(f"Manager '{name}' is already registered")
            self._factories[name] = factory
        log_with_context(logger, logging.DEBUG, f"registered {name}", manager=name)

    def register_spec(self, spec: RecordSpec, storage: StorageBackend) -> None:
        """Register a plain RecordManager for ``spec`` under ``spec.name``."""
        self.register(spec.name, lambda registry: RecordManager(spec, storage, registry))

    def register_all(self, specs: Iterable[RecordSpec], storage: StorageBackend) -> None:
        for spec in specs:
            self.register_spec(spec, storage)

    def resolve(self, name: str) -> RecordManager:
        """
        Get the shared manager for ``name``, building it on first use.

        Raises:
            ManagerNotRegisteredError: If nothing is registered under ``name``
        """
        manager = self._managers.get(name)
        if manager is not None:
            return manager
        with self._lock:
            manager = self._managers.get(name)
            if manager is None:
                manager = self._build(name)
                self._managers[name] = manager
            return manager

    def fresh(self, name: str) -> RecordManager:
        """Build a new manager for ``name`` without caching it."""
        with self._lock:
            return self._build(name)

    def _build(self, name: str) -> RecordManager:
        factory = self._factories.get(name)
        if factory is None:
            raise ManagerNotRegisteredError(
                f"No manager registered as '{name}'",
                detail={"registered": sorted(self._factories)},
            )
        manager = factory(self)
        log_with_context(logger, logging.INFO, f"built manager {name}", manager=name)
        return manager

    def names(self) -> list[str]:
        return sorted(self._factories)

    def __contains__(self, name: object) -> bool:
        return name in self._factories

    def __len__(self) -> int:
        return len(self._factories)
