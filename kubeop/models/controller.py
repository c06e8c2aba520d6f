"""Controller dispatch policy and watch scope data structures."""

from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum


class ScopeKind(StrEnum):
    """Namespace selection for a single watch session."""

    ALL_NAMESPACES = "all_namespaces"
    DEFAULT_NAMESPACE = "default_namespace"
    NAMESPACE = "namespace"


@dataclass(frozen=True)
class WatchScope:
    """What one watch session observes."""

    kind: ScopeKind
    namespace: str = ""

    @classmethod
    def all_namespaces(cls) -> WatchScope:
        return cls(ScopeKind.ALL_NAMESPACES)

    @classmethod
    def default_namespace(cls) -> WatchScope:
        return cls(ScopeKind.DEFAULT_NAMESPACE)

    @classmethod
    def explicit(cls, namespace: str) -> WatchScope:
        if not namespace:
            raise ValueError("explicit watch scope requires a namespace")
        return cls(ScopeKind.NAMESPACE, namespace)

    def __str__(self) -> str:
        if self.kind == ScopeKind.NAMESPACE:
            return self.namespace
        return self.kind.value


@dataclass(frozen=True)
class ControllerConfiguration:
    """Dispatch policy of one controller.

    Built once at startup and read-mostly thereafter.

    ``namespaces`` selects the target scope: ``None`` watches all namespaces,
    an empty set watches the default namespace only, anything else watches
    exactly those namespaces.
    """

    name: str
    finalizer_name: str
    group: str
    version: str
    plural: str
    kind: str
    generation_aware: bool = True
    namespaces: frozenset[str] | None = None
    controller_class_name: str = ""

    @property
    def crd_name(self) -> str:
        return f"{self.plural}.{self.group}"

    @property
    def watch_all_namespaces(self) -> bool:
        return self.namespaces is None

    @property
    def watch_current_namespace(self) -> bool:
        return self.namespaces is not None and not self.namespaces

    def watch_scopes(self) -> list[WatchScope]:
        """Return one scope per watch session this controller needs."""
        if self.namespaces is None:
            return [WatchScope.all_namespaces()]
        if not self.namespaces:
            return [WatchScope.default_namespace()]
        return [WatchScope.explicit(ns) for ns in sorted(self.namespaces)]
