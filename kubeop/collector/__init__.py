"""Collector package for kubeop.

Provides the watch machinery that feeds custom resource changes to
controllers.

Submodules
----------
transport    -- WatchTransport protocol and the kubernetes-asyncio list-then-watch implementation.
session      -- WatchSession: one subscription per scope, resubscribe on 410, fatal escalation.
event_source -- CustomResourceEventSource: cache upsert, generation gate, dispatch.
"""

from kubeop.collector.event_source import CustomResourceEventSource, Dispatcher
from kubeop.collector.session import SessionState, WatchSession
from kubeop.collector.transport import KubernetesWatchTransport, Subscription, WatchTransport

__all__ = [
    "CustomResourceEventSource",
    "Dispatcher",
    "KubernetesWatchTransport",
    "SessionState",
    "Subscription",
    "WatchSession",
    "WatchTransport",
]
