"""Controller configuration registry.

A process-scoped, name-keyed store of controller dispatch policy. The
registry instance is created by the application root and handed to the
components that need it; there is no module-level singleton.
"""

from __future__ import annotations

import threading
from collections.abc import Iterator

from kubeop import __version__
from kubeop.errors import ConfigurationNameCollisionError
from kubeop.models.controller import ControllerConfiguration
from kubeop.observability.logging import get_logger

_log = get_logger("config_registry")


def controller_name_for(controller: object) -> str:
    """Derive the registry key for a controller identity.

    A string is its own name; an object exposing a non-empty ``name``
    attribute uses it; anything else falls back to its lower-cased class name.
    """
    if isinstance(controller, str):
        return controller
    name = getattr(controller, "name", None)
    if isinstance(name, str) and name:
        return name
    return type(controller).__name__.lower()


class ConfigurationRegistry:
    """Thread-safe map of controller name to ControllerConfiguration."""

    def __init__(self, version: str = __version__) -> None:
        self._configurations: dict[str, ControllerConfiguration] = {}
        self._lock = threading.Lock()
        self._version = version

    @property
    def version(self) -> str:
        return self._version

    def register(self, config: ControllerConfiguration) -> None:
        """Install *config*; raises ConfigurationNameCollisionError if the name is taken."""
        self._put(config, fail_if_existing=True)

    def replace(self, config: ControllerConfiguration) -> None:
        """Install *config*, overwriting any entry with the same name."""
        self._put(config, fail_if_existing=False)

    def _put(self, config: ControllerConfiguration, *, fail_if_existing: bool) -> None:
        with self._lock:
            existing = self._configurations.get(config.name)
            if fail_if_existing and existing is not None:
                raise ConfigurationNameCollisionError(
                    config.name,
                    existing.controller_class_name,
                    config.controller_class_name,
                )
            self._configurations[config.name] = config
        _log.debug(
            "controller configuration installed",
            controller=config.name,
            replaced=existing is not None,
        )

    def get_configuration_for(self, controller: object) -> ControllerConfiguration | None:
        return self.get_for(controller_name_for(controller))

    def get_for(self, name: str) -> ControllerConfiguration | None:
        with self._lock:
            return self._configurations.get(name)

    def get_known_controller_names(self) -> frozenset[str]:
        with self._lock:
            return frozenset(self._configurations)

    def controller_configurations(self) -> Iterator[ControllerConfiguration]:
        with self._lock:
            configs = list(self._configurations.values())
        return iter(configs)

    def __len__(self) -> int:
        with self._lock:
            return len(self._configurations)
