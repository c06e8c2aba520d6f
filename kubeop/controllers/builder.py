"""Explicit construction of controller configurations at startup."""

from __future__ import annotations

import dataclasses
from collections.abc import Iterable

from kubeop.controllers.registry import controller_name_for
from kubeop.models.controller import ControllerConfiguration


def default_finalizer_name(crd_name: str) -> str:
    return f"{crd_name}/finalizer"


class ControllerConfigurationBuilder:
    """Fluent builder for ControllerConfiguration.

    Defaults: generation-aware dispatch, all namespaces, finalizer derived
    from the CRD name.

    The configuration name is always ``controller_name_for(controller)``, the
    same key ``ConfigurationRegistry.get_configuration_for`` looks up. To name
    a controller, give it a ``name`` attribute or pass the name string as the
    controller identity.

    Example::

        config = (
            ControllerConfigurationBuilder(controller, group="example.com", version="v1",
                                           plural="widgets", kind="Widget")
            .namespaces("team-a", "team-b")
            .build()
        )
    """

    def __init__(self, controller: object, *, group: str, version: str, plural: str, kind: str) -> None:
        self._controller = controller
        self._group = group
        self._version = version
        self._plural = plural
        self._kind = kind
        self._finalizer: str | None = None
        self._generation_aware = True
        self._namespaces: frozenset[str] | None = None

    def finalizer(self, finalizer_name: str) -> ControllerConfigurationBuilder:
        self._finalizer = finalizer_name
        return self

    def generation_aware(self, enabled: bool = True) -> ControllerConfigurationBuilder:
        self._generation_aware = enabled
        return self

    def all_namespaces(self) -> ControllerConfigurationBuilder:
        self._namespaces = None
        return self

    def watch_current_namespace(self) -> ControllerConfigurationBuilder:
        self._namespaces = frozenset()
        return self

    def namespaces(self, *namespaces: str | Iterable[str]) -> ControllerConfigurationBuilder:
        """Watch exactly the given namespaces; an empty call means the default namespace."""
        flat: set[str] = set()
        for ns in namespaces:
            if isinstance(ns, str):
                flat.add(ns)
            else:
                flat.update(ns)
        if any(not ns for ns in flat):
            raise ValueError("namespace names must be non-empty")
        self._namespaces = frozenset(flat)
        return self

    def build(self) -> ControllerConfiguration:
        for attr in ("group", "version", "plural", "kind"):
            if not getattr(self, f"_{attr}"):
                raise ValueError(f"controller configuration requires a {attr}")
        controller = self._controller
        class_name = controller if isinstance(controller, str) else type(controller).__qualname__
        config = ControllerConfiguration(
            name=controller_name_for(controller),
            finalizer_name=self._finalizer or "",
            group=self._group,
            version=self._version,
            plural=self._plural,
            kind=self._kind,
            generation_aware=self._generation_aware,
            namespaces=self._namespaces,
            controller_class_name=class_name,
        )
        if not config.finalizer_name:
            config = dataclasses.replace(config, finalizer_name=default_finalizer_name(config.crd_name))
        return config
