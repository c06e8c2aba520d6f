"""Core data structures for kubeop."""

from kubeop.models.config import LogConfig, OperatorConfig, WatchConfig
from kubeop.models.controller import ControllerConfiguration, ScopeKind, WatchScope
from kubeop.models.resources import (
    ResourceIdentity,
    ResourceSnapshot,
    WatchAction,
    WatchEvent,
)

__all__ = [
    "ControllerConfiguration",
    "LogConfig",
    "OperatorConfig",
    "ResourceIdentity",
    "ResourceSnapshot",
    "ScopeKind",
    "WatchAction",
    "WatchConfig",
    "WatchEvent",
    "WatchScope",
]
