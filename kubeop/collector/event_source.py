"""Custom resource event source.

Owns the watch sessions of one resource kind and turns raw deliveries into
dispatches:

    delivery -> cache upsert -> ERROR? stop -> gate says skip? stop
             -> dispatcher(action, snapshot, source) -> gate mark

The cache upsert happens before any filtering so concurrent readers always
see the latest known state, even for ERROR or skipped deliveries. The gate is
marked only after the dispatcher returns; if it raises, the exception
propagates and the generation stays unprocessed.
"""

from __future__ import annotations

import inspect
from collections.abc import Awaitable, Callable
from typing import Any

from kubeop.cache.generation_gate import GenerationGate
from kubeop.cache.resource_cache import ResourceCache
from kubeop.collector.session import FatalHandler, SessionState, WatchSession
from kubeop.collector.transport import WatchTransport
from kubeop.models.controller import ControllerConfiguration
from kubeop.models.resources import ResourceSnapshot, WatchAction
from kubeop.observability.logging import get_logger

# dispatcher(action, snapshot, source); may be sync or async, result ignored
Dispatcher = Callable[[WatchAction, ResourceSnapshot, "CustomResourceEventSource"], Awaitable[Any] | Any]


class CustomResourceEventSource:
    """Per-kind orchestration of watch sessions and event filtering."""

    def __init__(
        self,
        transport: WatchTransport,
        configuration: ControllerConfiguration,
        dispatcher: Dispatcher,
        *,
        on_fatal: FatalHandler,
        cache: ResourceCache | None = None,
        gate: GenerationGate | None = None,
    ) -> None:
        self.configuration = configuration
        self.cache = cache if cache is not None else ResourceCache()
        self.gate = gate if gate is not None else GenerationGate()
        self._transport = transport
        self._dispatcher = dispatcher
        self._on_fatal = on_fatal
        self._sessions: list[WatchSession] = []
        self._log = get_logger("event_source", controller=configuration.name, kind=configuration.kind)

    @property
    def sessions(self) -> list[WatchSession]:
        return list(self._sessions)

    @property
    def is_running(self) -> bool:
        """True while at least one session is still subscribed or resubscribing."""
        return any(session.state != SessionState.CLOSED for session in self._sessions)

    def __repr__(self) -> str:
        return f"CustomResourceEventSource(controller={self.configuration.name!r})"

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def start(self) -> None:
        """Open one watch session per configured scope.

        A session that fails to subscribe aborts the start: sessions opened
        so far are closed and the error propagates.
        """
        if self._sessions:
            return
        for scope in self.configuration.watch_scopes():
            session = WatchSession(
                self._transport,
                scope,
                self.on_event,
                on_fatal=self._on_fatal,
                source_name=self.configuration.name,
            )
            try:
                await session.start()
            except Exception:
                await self.close()
                raise
            self._sessions.append(session)
            self._log.debug("registered watch", scope=str(scope))
        self._log.info("event source started", sessions=len(self._sessions))

    async def close(self) -> None:
        """Close every owned session; a failing close does not stop the rest."""
        sessions, self._sessions = self._sessions, []
        for session in sessions:
            try:
                self._log.debug("closing watch", scope=str(session.scope))
                await session.close()
            except Exception as exc:
                self._log.warning("error closing watch", scope=str(session.scope), error=str(exc), exc_info=True)
        if sessions:
            self._log.info("event source closed", sessions=len(sessions))

    # ------------------------------------------------------------------
    # Event handling
    # ------------------------------------------------------------------

    async def on_event(self, action: WatchAction, snapshot: ResourceSnapshot | None) -> None:
        config = self.configuration
        uid = snapshot.uid if snapshot is not None else None
        self._log.debug("event received", action=str(action), uid=uid)

        # always store the latest delivery, before any filtering
        if snapshot is not None:
            self.cache.upsert(snapshot)

        if action == WatchAction.ERROR or snapshot is None:
            self._log.debug(
                "skipping error event",
                action=str(action),
                uid=uid,
                generation=snapshot.generation if snapshot is not None else None,
            )
            return

        if self.gate.should_skip(snapshot, config.generation_aware):
            self._log.debug(
                "skipping already processed generation",
                uid=uid,
                generation=snapshot.generation,
                last_processed=self.gate.last_processed(snapshot.uid),
            )
            return

        result = self._dispatcher(action, snapshot, self)
        if inspect.isawaitable(result):
            await result

        if self.gate.mark_processed(snapshot, config.generation_aware, config.finalizer_name):
            self._log.debug("generation processed", uid=uid, generation=snapshot.generation)

    def on_resource_deregistered(self, uid: str) -> None:
        """Forget a resource whose deletion has completed."""
        self.gate.evict(uid)
        self.cache.remove(uid)
        self._log.debug("resource deregistered", uid=uid)
