"""Test doubles and factory helpers shared by unit and integration tests.

``FakeTransport`` stands in for the cluster watch API: every subscribe()
returns a ``FakeSubscription`` whose events are pushed by the test.
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable, Iterable

from kubeop.models.controller import ControllerConfiguration, WatchScope
from kubeop.models.resources import ResourceIdentity, ResourceSnapshot, WatchAction, WatchEvent

_END = object()

FINALIZER = "widgets.example.com/finalizer"


# ---------------------------------------------------------------------------
# Factories
# ---------------------------------------------------------------------------


def make_snapshot(
    uid: str = "a1",
    generation: int = 1,
    finalizers: Iterable[str] = (FINALIZER,),
    deletion_timestamp: str | None = None,
    namespace: str = "default",
    name: str | None = None,
    payload: dict | None = None,
) -> ResourceSnapshot:
    """Create a ResourceSnapshot with sensible defaults for testing."""
    return ResourceSnapshot(
        identity=ResourceIdentity(uid=uid, namespace=namespace, name=name or f"widget-{uid}", kind="Widget"),
        generation=generation,
        deletion_timestamp=deletion_timestamp,
        finalizers=frozenset(finalizers),
        payload=payload if payload is not None else {"spec": {"generation": generation}},
    )


def make_configuration(
    name: str = "widget-controller",
    namespaces: Iterable[str] | None = None,
    generation_aware: bool = True,
    finalizer_name: str = FINALIZER,
    controller_class_name: str = "WidgetController",
) -> ControllerConfiguration:
    return ControllerConfiguration(
        name=name,
        finalizer_name=finalizer_name,
        group="example.com",
        version="v1",
        plural="widgets",
        kind="Widget",
        generation_aware=generation_aware,
        namespaces=frozenset(namespaces) if namespaces is not None else None,
        controller_class_name=controller_class_name,
    )


# ---------------------------------------------------------------------------
# Dispatcher recorder
# ---------------------------------------------------------------------------


class RecordingDispatcher:
    """Async dispatcher that records every call."""

    def __init__(self, side_effect: Callable[[WatchAction, ResourceSnapshot], None] | None = None) -> None:
        self.calls: list[tuple[WatchAction, ResourceSnapshot, object]] = []
        self._side_effect = side_effect

    async def __call__(self, action: WatchAction, snapshot: ResourceSnapshot, source: object) -> None:
        self.calls.append((action, snapshot, source))
        if self._side_effect is not None:
            self._side_effect(action, snapshot)

    @property
    def generations(self) -> list[int]:
        return [snapshot.generation for _, snapshot, _ in self.calls]


# ---------------------------------------------------------------------------
# Fake transport
# ---------------------------------------------------------------------------


class FakeSubscription:
    """In-memory watch stream fed by the test."""

    def __init__(self, scope: WatchScope) -> None:
        self.scope = scope
        self.closed = False
        self._queue: asyncio.Queue[object] = asyncio.Queue()

    def __aiter__(self):
        return self._events()

    async def _events(self):
        while True:
            item = await self._queue.get()
            try:
                if item is _END:
                    return
                if isinstance(item, BaseException):
                    raise item
                yield item
            finally:
                self._queue.task_done()

    def push(self, action: WatchAction, snapshot: ResourceSnapshot | None) -> None:
        self._queue.put_nowait(WatchEvent(action, snapshot))

    def fail(self, exc: BaseException) -> None:
        self._queue.put_nowait(exc)

    def end(self) -> None:
        self._queue.put_nowait(_END)

    async def drain(self, timeout: float = 2.0) -> None:
        """Wait until every pushed item has been fully handled."""
        await asyncio.wait_for(self._queue.join(), timeout=timeout)

    async def close(self) -> None:
        if not self.closed:
            self.closed = True
            self._queue.put_nowait(_END)


class FakeTransport:
    """WatchTransport double recording subscribe/unsubscribe calls."""

    def __init__(self) -> None:
        self.subscriptions: list[FakeSubscription] = []
        self.unsubscribed: list[FakeSubscription] = []
        self.subscribe_errors: list[Exception] = []

    async def subscribe(self, scope: WatchScope) -> FakeSubscription:
        if self.subscribe_errors:
            raise self.subscribe_errors.pop(0)
        subscription = FakeSubscription(scope)
        self.subscriptions.append(subscription)
        return subscription

    async def unsubscribe(self, subscription: FakeSubscription) -> None:
        self.unsubscribed.append(subscription)
        await subscription.close()

    @property
    def latest(self) -> FakeSubscription:
        return self.subscriptions[-1]


async def eventually(predicate: Callable[[], bool], timeout: float = 2.0) -> None:
    """Poll *predicate* until it holds or *timeout* elapses."""
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() > deadline:
            raise AssertionError("condition not met before timeout")
        await asyncio.sleep(0.005)
