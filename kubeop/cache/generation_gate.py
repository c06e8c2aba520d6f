"""Last successfully processed generation per custom resource.

The gate suppresses redundant dispatches: a resource whose generation has not
moved past the last processed one is skipped, unless it is being deleted.
Entries are written only after a dispatch ran to completion and only while
the resource carries the controller's finalizer.
"""

from __future__ import annotations

from kubeop.models.resources import ResourceSnapshot


class GenerationGate:
    """uid -> last processed generation."""

    def __init__(self) -> None:
        self._processed: dict[str, int] = {}

    def should_skip(self, snapshot: ResourceSnapshot, generation_aware: bool) -> bool:
        if not generation_aware:
            return False
        # generation does not change while a resource is being deleted
        if snapshot.marked_for_deletion:
            return False
        return not self.is_newer(snapshot)

    def is_newer(self, snapshot: ResourceSnapshot) -> bool:
        """True when no generation is recorded or *snapshot* is past it."""
        last = self._processed.get(snapshot.uid)
        if last is None:
            return True
        return snapshot.generation > last

    def mark_processed(self, snapshot: ResourceSnapshot, generation_aware: bool, finalizer_name: str) -> bool:
        """Record the snapshot's generation; returns whether anything was written."""
        if generation_aware and snapshot.has_finalizer(finalizer_name):
            self._processed[snapshot.uid] = snapshot.generation
            return True
        return False

    def last_processed(self, uid: str) -> int | None:
        return self._processed.get(uid)

    def evict(self, uid: str) -> None:
        self._processed.pop(uid, None)

    def __len__(self) -> int:
        return len(self._processed)
