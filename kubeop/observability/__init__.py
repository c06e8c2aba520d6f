"""Observability helpers for kubeop."""

from kubeop.observability.logging import get_logger, setup_logging

__all__ = ["get_logger", "setup_logging"]
