"""Watch transport boundary.

``WatchTransport`` is the only thing a watch session talks to. The
kubernetes-asyncio implementation lists custom objects to establish a fresh
baseline (delivered as ADDED events), then watches from the list's
resourceVersion, transparently resuming when the server closes a watch on
its timeout. Stream faults are classified here:

- HTTP 410 Gone, raised or delivered as an ERROR event -> TransientStreamFault
- anything else propagates unchanged and is treated as unclassified upstream
"""

from __future__ import annotations

from collections.abc import AsyncIterator, Awaitable, Callable
from typing import TYPE_CHECKING, Any, Protocol

from kubeop.errors import TransientStreamFault
from kubeop.models.controller import ControllerConfiguration, ScopeKind, WatchScope
from kubeop.models.resources import ResourceSnapshot, WatchAction, WatchEvent
from kubeop.observability.logging import get_logger

if TYPE_CHECKING:
    from kubernetes_asyncio.client import CustomObjectsApi  # type: ignore[import-untyped]

_HTTP_GONE = 410


class Subscription(Protocol):
    """An open watch: an async iterator of events that can be closed."""

    def __aiter__(self) -> AsyncIterator[WatchEvent]: ...

    async def close(self) -> None: ...


class WatchTransport(Protocol):
    """Subscribe/unsubscribe boundary to the cluster watch API."""

    async def subscribe(self, scope: WatchScope) -> Subscription: ...

    async def unsubscribe(self, subscription: Subscription) -> None: ...


def event_from_raw(kind: str, event_type: str, obj: Any) -> WatchEvent:
    """Decode one raw watch delivery.

    Raises TransientStreamFault when the delivery is a 410 ``Status`` error.
    """
    action = WatchAction(event_type)
    if not isinstance(obj, dict):
        return WatchEvent(action, None)
    if action == WatchAction.ERROR and obj.get("kind") == "Status":
        if obj.get("code") == _HTTP_GONE:
            raise TransientStreamFault(str(obj.get("message") or "resource version too old"))
        return WatchEvent(action, None)
    return WatchEvent(action, ResourceSnapshot.from_raw(kind, obj))


class _KubernetesSubscription:
    """One list-then-watch stream for a single scope."""

    def __init__(
        self,
        list_fn: Callable[..., Awaitable[Any]],
        list_args: tuple[Any, ...],
        *,
        kind: str,
        scope: WatchScope,
        timeout_seconds: int,
    ) -> None:
        from kubernetes_asyncio import watch  # type: ignore[import-untyped]

        self._list_fn = list_fn
        self._list_args = list_args
        self._kind = kind
        self._scope = scope
        self._timeout_seconds = timeout_seconds
        self._watch = watch.Watch()
        self._closed = False
        self._baseline: list[dict[str, Any]] = []
        self._resource_version: str | None = None
        self._log = get_logger("transport", kind=kind, scope=str(scope))

    async def open(self) -> None:
        """List the current objects; this is the subscribe acknowledgment."""
        from kubernetes_asyncio.client.exceptions import ApiException  # type: ignore[import-untyped]

        try:
            listing = await self._list_fn(*self._list_args)
        except ApiException as exc:
            if exc.status == _HTTP_GONE:
                raise TransientStreamFault(str(exc.reason)) from exc
            raise
        self._baseline = list(listing.get("items") or [])
        self._resource_version = (listing.get("metadata") or {}).get("resourceVersion")
        self._log.debug("baseline listed", items=len(self._baseline), resource_version=self._resource_version)

    def __aiter__(self) -> AsyncIterator[WatchEvent]:
        return self._events()

    async def _events(self) -> AsyncIterator[WatchEvent]:
        from kubernetes_asyncio.client.exceptions import ApiException  # type: ignore[import-untyped]

        baseline, self._baseline = self._baseline, []
        for item in baseline:
            yield WatchEvent(WatchAction.ADDED, ResourceSnapshot.from_raw(self._kind, item))

        while not self._closed:
            try:
                stream = self._watch.stream(
                    self._list_fn,
                    *self._list_args,
                    resource_version=self._resource_version,
                    timeout_seconds=self._timeout_seconds,
                    allow_watch_bookmarks=True,
                )
                async for raw in stream:
                    event_type = str(raw.get("type", ""))
                    obj = raw.get("raw_object", raw.get("object"))
                    if event_type == "BOOKMARK":
                        self._remember_version(obj)
                        continue
                    event = event_from_raw(self._kind, event_type, obj)
                    self._remember_version(obj)
                    yield event
            except ApiException as exc:
                if exc.status == _HTTP_GONE:
                    raise TransientStreamFault(str(exc.reason)) from exc
                raise
            if not self._closed:
                self._log.debug("watch timed out, resuming", resource_version=self._resource_version)

    def _remember_version(self, obj: Any) -> None:
        if isinstance(obj, dict) and obj.get("kind") != "Status":
            version = (obj.get("metadata") or {}).get("resourceVersion")
            if version:
                self._resource_version = version

    async def close(self) -> None:
        self._closed = True
        self._watch.stop()
        await self._watch.close()


class KubernetesWatchTransport:
    """WatchTransport over ``kubernetes_asyncio.client.CustomObjectsApi``."""

    def __init__(
        self,
        api: CustomObjectsApi,
        *,
        group: str,
        version: str,
        plural: str,
        kind: str,
        default_namespace: str = "default",
        timeout_seconds: int = 300,
    ) -> None:
        self._api = api
        self._group = group
        self._version = version
        self._plural = plural
        self._kind = kind
        self._default_namespace = default_namespace
        self._timeout_seconds = timeout_seconds

    @classmethod
    def for_configuration(
        cls,
        api: CustomObjectsApi,
        config: ControllerConfiguration,
        *,
        default_namespace: str = "default",
        timeout_seconds: int = 300,
    ) -> KubernetesWatchTransport:
        return cls(
            api,
            group=config.group,
            version=config.version,
            plural=config.plural,
            kind=config.kind,
            default_namespace=default_namespace,
            timeout_seconds=timeout_seconds,
        )

    async def subscribe(self, scope: WatchScope) -> Subscription:
        if scope.kind == ScopeKind.ALL_NAMESPACES:
            list_fn = self._api.list_cluster_custom_object
            args: tuple[Any, ...] = (self._group, self._version, self._plural)
        else:
            namespace = scope.namespace if scope.kind == ScopeKind.NAMESPACE else self._default_namespace
            list_fn = self._api.list_namespaced_custom_object
            args = (self._group, self._version, namespace, self._plural)

        subscription = _KubernetesSubscription(
            list_fn,
            args,
            kind=self._kind,
            scope=scope,
            timeout_seconds=self._timeout_seconds,
        )
        await subscription.open()
        return subscription

    async def unsubscribe(self, subscription: Subscription) -> None:
        await subscription.close()
