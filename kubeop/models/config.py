"""Configuration data structures."""

from __future__ import annotations

from dataclasses import dataclass, field


@dataclass
class WatchConfig:
    """Watch transport configuration."""

    namespace: str = "default"
    timeout_seconds: int = 300


@dataclass
class LogConfig:
    """Logging configuration."""

    level: str = "info"


@dataclass
class OperatorConfig:
    """Top-level kubeop configuration."""

    watch: WatchConfig = field(default_factory=WatchConfig)
    log: LogConfig = field(default_factory=LogConfig)
    shutdown_grace_seconds: int = 15
