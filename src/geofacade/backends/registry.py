"""Backend registry - registration and discovery of engine bindings.

Backends are found from:
1. Explicit registration via register()
2. The four built-in providers (registered on first use)
3. Entry points (pip packages declaring 'geofacade_backends')
"""

from __future__ import annotations

import inspect
from importlib.metadata import entry_points
from typing import Any, Callable

from loguru import logger

from geofacade.backends.base import MapBackend
from geofacade.errors import BackendRegistrationError

BackendFactory = Callable[..., MapBackend]

ENTRY_POINT_GROUP = "geofacade_backends"


class BackendRegistry:
    """Maps backend names to classes (or factories) that build them."""

    def __init__(self) -> None:
        self._factories: dict[str, BackendFactory] = {}
        self._builtins_loaded = False

    def register(self, name: str, factory: BackendFactory, replace: bool = False) -> None:
        """Register a backend class or factory under ``name``.

        Raises:
            BackendRegistrationError: If ``name`` is taken and ``replace`` is False.
        """
        if name in self._factories and not replace:
            raise BackendRegistrationError(f"Backend '{name}' already registered")
        self._factories[name] = factory
        logger.debug(f"Backend registered: {name}")

    def unregister(self, name: str) -> None:
        self._factories.pop(name, None)

    def names(self) -> list[str]:
        self._ensure_builtins()
        return sorted(self._factories)

    def create(self, name: str, **kwargs: Any) -> MapBackend:
        """Instantiate the backend registered as ``name``.

        Keyword arguments go to the backend constructor (engine factories,
        loaders, credentials).

        Raises:
            BackendRegistrationError: If no backend has that name.
        """
        self._ensure_builtins()
        factory = self._factories.get(name)
        if factory is None:
            raise BackendRegistrationError(
                f"Unknown backend '{name}' (available: {', '.join(self.names())})"
            )
        return factory(**kwargs)

    def discover(self) -> list[str]:
        """Register backends advertised by installed packages' entry points.

        Returns the names newly registered.
        """
        added: list[str] = []
        for ep in entry_points(group=ENTRY_POINT_GROUP):
            if ep.name in self._factories:
                continue
            try:
                cls = ep.load()
            except Exception as e:
                logger.warning(f"Failed to load backend entry point {ep.name}: {e}")
                continue
            if inspect.isclass(cls) and issubclass(cls, MapBackend):
                self._factories[ep.name] = cls
                added.append(ep.name)
                logger.info(f"Discovered entry point backend: {ep.name}")
            else:
                logger.warning(f"Entry point {ep.name} is not a MapBackend subclass")
        return added

    def _ensure_builtins(self) -> None:
        if self._builtins_loaded:
            return
        self._builtins_loaded = True
        from geofacade.providers import BUILTIN_BACKENDS

        for name, cls in BUILTIN_BACKENDS.items():
            self._factories.setdefault(name, cls)


registry = BackendRegistry()
