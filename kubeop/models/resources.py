"""Resource identity, snapshot and watch event data structures."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any


class WatchAction(StrEnum):
    """Watch event type, using the Kubernetes wire values."""

    ADDED = "ADDED"
    MODIFIED = "MODIFIED"
    DELETED = "DELETED"
    ERROR = "ERROR"


@dataclass(frozen=True)
class ResourceIdentity:
    """Identity of a custom resource as assigned by the control plane.

    ``uid`` is globally unique and stable across updates; it is the key used
    by the resource cache and the generation gate.
    """

    uid: str
    namespace: str
    name: str
    kind: str

    def __str__(self) -> str:
        if self.namespace:
            return f"{self.kind}/{self.namespace}/{self.name}"
        return f"{self.kind}/{self.name}"


@dataclass(frozen=True)
class ResourceSnapshot:
    """Latest observed state of a custom resource.

    Replaced wholesale on every watch delivery, never merged.
    """

    identity: ResourceIdentity
    generation: int = 0
    deletion_timestamp: str | None = None
    finalizers: frozenset[str] = field(default_factory=frozenset)
    payload: dict[str, Any] = field(default_factory=dict, compare=False, repr=False)

    @property
    def uid(self) -> str:
        return self.identity.uid

    @property
    def marked_for_deletion(self) -> bool:
        return self.deletion_timestamp is not None

    def has_finalizer(self, finalizer: str) -> bool:
        return finalizer in self.finalizers

    @classmethod
    def from_raw(cls, kind: str, raw: dict[str, Any]) -> ResourceSnapshot:
        """Build a snapshot from a decoded Kubernetes object dict."""
        metadata = raw.get("metadata") or {}
        identity = ResourceIdentity(
            uid=str(metadata.get("uid", "")),
            namespace=str(metadata.get("namespace") or ""),
            name=str(metadata.get("name", "")),
            kind=str(raw.get("kind") or kind),
        )
        deletion_timestamp = metadata.get("deletionTimestamp")
        return cls(
            identity=identity,
            generation=int(metadata.get("generation") or 0),
            deletion_timestamp=str(deletion_timestamp) if deletion_timestamp else None,
            finalizers=frozenset(str(f) for f in metadata.get("finalizers") or ()),
            payload=raw,
        )

    @property
    def resource_version(self) -> str:
        metadata = self.payload.get("metadata") or {}
        return str(metadata.get("resourceVersion", ""))


@dataclass(frozen=True)
class WatchEvent:
    """A single delivery from a watch stream.

    ERROR events signal a stream-level fault and may carry no snapshot.
    """

    action: WatchAction
    snapshot: ResourceSnapshot | None
