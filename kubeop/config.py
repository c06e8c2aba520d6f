"""Configuration loading from environment variables."""

from __future__ import annotations

import os
from pathlib import Path

from kubeop.models.config import LogConfig, OperatorConfig, WatchConfig

_SERVICE_ACCOUNT_NAMESPACE = Path("/var/run/secrets/kubernetes.io/serviceaccount/namespace")


def _env(key: str, default: str = "") -> str:
    return os.environ.get(f"KUBEOP_{key}", default)


def _env_int(key: str, default: int, min_val: int | None = None, max_val: int | None = None) -> int:
    val = int(_env(key, str(default)))
    if min_val is not None:
        val = max(val, min_val)
    if max_val is not None:
        val = min(val, max_val)
    return val


def _validate_log_level(value: str) -> str:
    valid = {"debug", "info", "warning", "error"}
    if value.lower() not in valid:
        raise ValueError(f"Invalid log level: {value}. Must be one of {valid}")
    return value.lower()


def _default_namespace(path: Path | None = None) -> str:
    """Namespace the operator runs in, falling back to ``default`` outside a cluster."""
    try:
        namespace = (path or _SERVICE_ACCOUNT_NAMESPACE).read_text().strip()
    except OSError:
        return "default"
    return namespace or "default"


def load_config() -> OperatorConfig:
    """Load configuration from KUBEOP_* environment variables."""
    return OperatorConfig(
        watch=WatchConfig(
            namespace=_env("NAMESPACE") or _default_namespace(),
            timeout_seconds=_env_int("WATCH_TIMEOUT", 300, min_val=30, max_val=3600),
        ),
        log=LogConfig(
            level=_validate_log_level(_env("LOG_LEVEL", "info")),
        ),
        shutdown_grace_seconds=_env_int("SHUTDOWN_GRACE", 15, min_val=1, max_val=120),
    )
