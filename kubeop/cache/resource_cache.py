"""In-memory cache of the latest observed snapshot per custom resource.

Keyed by resource uid. The most recently delivered snapshot always wins,
whether or not the event carrying it was dispatched, so readers see the
latest known state even for filtered or faulting deliveries.

All operations are synchronous and never await, which makes each one atomic
with respect to the watch session tasks sharing the cache.
"""

from __future__ import annotations

from collections.abc import Callable, Iterator

from kubeop.models.resources import ResourceSnapshot


class ResourceCache:
    """Total map from resource uid to the latest snapshot."""

    def __init__(self) -> None:
        self._store: dict[str, ResourceSnapshot] = {}

    def upsert(self, snapshot: ResourceSnapshot) -> None:
        """Store *snapshot*, replacing any previous one for the same uid."""
        self._store[snapshot.uid] = snapshot

    def get(self, uid: str) -> ResourceSnapshot | None:
        """Return the latest snapshot for *uid*, or None if never seen."""
        return self._store.get(uid)

    def remove(self, uid: str) -> ResourceSnapshot | None:
        """Evict *uid*; returns the evicted snapshot if there was one."""
        return self._store.pop(uid, None)

    def list(self, predicate: Callable[[ResourceSnapshot], bool] | None = None) -> list[ResourceSnapshot]:
        """Return cached snapshots, optionally filtered by *predicate*."""
        snapshots = list(self._store.values())
        if predicate is None:
            return snapshots
        return [s for s in snapshots if predicate(s)]

    def __len__(self) -> int:
        return len(self._store)

    def __contains__(self, uid: object) -> bool:
        return uid in self._store

    def __iter__(self) -> Iterator[str]:
        return iter(list(self._store))
