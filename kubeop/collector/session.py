"""Watch session: one subscription to the watch API for one namespace scope.

State machine::

    STARTING --ack--> ACTIVE --close/fatal--> CLOSED
                        |  ^
       410 Gone ->      v  |  <- resubscribed from a fresh baseline
                      STARTING

Deliveries are strictly sequential: the next event is not pulled from the
stream until the handler for the previous one (including the dispatcher it
calls) has returned. Replayed ADDED events after a resubscribe are passed
through as-is; deduplication is the event source's job.

An exception raised by the handler (a failing dispatcher) is logged with its
traceback and is not propagated: the session moves on to the next event and
the failure never counts as a stream fault. The generation gate is left
unmarked, so a later delivery of the same generation dispatches again.

A 410 Gone while resubscribing is retried a few times with a short backoff.
Unclassified faults are never recovered here. The session closes itself and
emits a FatalStreamFault to its fatal handler; process termination belongs to
the supervisor.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from enum import StrEnum

from kubeop.collector.transport import Subscription, WatchTransport
from kubeop.errors import FatalStreamFault, TransientStreamFault, UnclassifiedStreamFault
from kubeop.models.controller import WatchScope
from kubeop.models.resources import ResourceSnapshot, WatchAction
from kubeop.observability.logging import get_logger

_RESUBSCRIBE_ATTEMPTS = 3
_RESUBSCRIBE_BACKOFF_SECONDS = 0.2

EventHandler = Callable[[WatchAction, ResourceSnapshot | None], Awaitable[None]]
FatalHandler = Callable[[FatalStreamFault], None]


class SessionState(StrEnum):
    """Watch session lifecycle state."""

    STARTING = "starting"
    ACTIVE = "active"
    CLOSED = "closed"


class WatchSession:
    """Owns one subscription and its delivery task.

    Handler exceptions are logged and swallowed; only stream faults end the
    session.
    """

    def __init__(
        self,
        transport: WatchTransport,
        scope: WatchScope,
        handler: EventHandler,
        *,
        on_fatal: FatalHandler,
        source_name: str = "",
    ) -> None:
        self.scope = scope
        self._transport = transport
        self._handler = handler
        self._on_fatal = on_fatal
        self._source_name = source_name
        self._state = SessionState.STARTING
        self._subscription: Subscription | None = None
        self._task: asyncio.Task[None] | None = None
        self._dispatching = False
        self.resubscribe_count = 0
        self._log = get_logger("watch_session", source=source_name, scope=str(scope))

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def task(self) -> asyncio.Task[None] | None:
        return self._task

    def __repr__(self) -> str:
        return f"WatchSession(source={self._source_name!r}, scope={self.scope}, state={self._state})"

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def start(self) -> None:
        """Subscribe and spawn the delivery task.

        A failure to subscribe propagates to the caller; the session is left
        CLOSED.
        """
        if self._state == SessionState.CLOSED:
            raise RuntimeError(f"{self!r} is closed")
        self._state = SessionState.STARTING
        try:
            self._subscription = await self._transport.subscribe(self.scope)
        except BaseException:
            self._state = SessionState.CLOSED
            raise
        self._state = SessionState.ACTIVE
        self._task = asyncio.create_task(self._run(), name=f"watch:{self._source_name}:{self.scope}")
        self._log.info("watch session active")

    async def close(self) -> None:
        """Cancel the subscription.

        A handler call already in flight runs to completion; the delivery
        loop exits right after it returns.
        """
        if self._state == SessionState.CLOSED and self._subscription is None:
            return
        self._state = SessionState.CLOSED
        task = self._task
        if task is not None and not task.done() and not self._dispatching and task is not asyncio.current_task():
            task.cancel()
        await self._release_subscription()
        self._log.info("watch session closed")

    async def wait_closed(self) -> None:
        """Wait for the delivery task to finish."""
        if self._task is not None:
            await asyncio.gather(self._task, return_exceptions=True)

    async def _release_subscription(self) -> None:
        subscription, self._subscription = self._subscription, None
        if subscription is not None:
            await self._transport.unsubscribe(subscription)

    # ------------------------------------------------------------------
    # Delivery loop
    # ------------------------------------------------------------------

    async def _run(self) -> None:
        while self._state == SessionState.ACTIVE:
            try:
                await self._consume()
            except asyncio.CancelledError:
                raise
            except TransientStreamFault as exc:
                if self._state != SessionState.ACTIVE:
                    return
                self._log.warning("watch expired, resubscribing", error=str(exc))
                if not await self._resubscribe():
                    return
                continue
            except Exception as exc:
                if self._state != SessionState.ACTIVE:
                    return
                await self._escalate(UnclassifiedStreamFault(f"watch stream failed: {exc!r}", exc))
                return
            if self._state == SessionState.ACTIVE:
                await self._escalate(UnclassifiedStreamFault("watch stream ended unexpectedly"))
            return

    async def _consume(self) -> None:
        subscription = self._subscription
        if subscription is None:
            return
        async for event in subscription:
            if self._state != SessionState.ACTIVE:
                return
            self._dispatching = True
            try:
                await self._handler(event.action, event.snapshot)
            except Exception:
                self._log.exception(
                    "event handler raised",
                    action=str(event.action),
                    uid=event.snapshot.uid if event.snapshot else None,
                )
            finally:
                self._dispatching = False
            if self._state != SessionState.ACTIVE:
                return

    async def _resubscribe(self) -> bool:
        self._state = SessionState.STARTING
        try:
            await self._release_subscription()
        except Exception as exc:
            self._log.warning("error releasing expired subscription", error=str(exc))
        try:
            self._subscription = await self._subscribe_with_retry()
        except Exception as exc:
            if self._state == SessionState.CLOSED:
                return False
            await self._escalate(UnclassifiedStreamFault(f"watch resubscribe failed: {exc!r}", exc))
            return False
        if self._subscription is None:
            return False
        if self._state != SessionState.STARTING:
            # closed while resubscribing
            await self._release_subscription()
            return False
        self._state = SessionState.ACTIVE
        self.resubscribe_count += 1
        self._log.info("watch session resubscribed", resubscribes=self.resubscribe_count)
        return True

    async def _subscribe_with_retry(self) -> Subscription | None:
        """Subscribe, retrying 410 Gone; None if the session closed while waiting."""
        for attempt in range(1, _RESUBSCRIBE_ATTEMPTS + 1):
            try:
                return await self._transport.subscribe(self.scope)
            except TransientStreamFault as exc:
                if attempt == _RESUBSCRIBE_ATTEMPTS:
                    raise
                self._log.warning("resubscribe expired, retrying", attempt=attempt, error=str(exc))
            await asyncio.sleep(_RESUBSCRIBE_BACKOFF_SECONDS * attempt)
            if self._state == SessionState.CLOSED:
                return None
        return None

    async def _escalate(self, error: UnclassifiedStreamFault) -> None:
        self._log.error("unrecoverable watch fault", error=str(error))
        self._state = SessionState.CLOSED
        try:
            await self._release_subscription()
        except Exception as exc:
            self._log.warning("error releasing failed subscription", error=str(exc))
        self._on_fatal(FatalStreamFault(source=self._source_name, scope=self.scope, error=error))
