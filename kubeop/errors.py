"""Exception types and fault signals raised across kubeop."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from kubeop.models.controller import WatchScope


class KubeopError(Exception):
    """Base class for kubeop errors."""


class ConfigurationNameCollisionError(KubeopError, ValueError):
    """Raised when registering a controller configuration under a used name."""

    def __init__(self, name: str, existing_controller: str, new_controller: str) -> None:
        super().__init__(
            f"Controller name '{name}' is used by both {existing_controller} and {new_controller}"
        )
        self.name = name
        self.existing_controller = existing_controller
        self.new_controller = new_controller


class StreamFault(KubeopError):
    """A watch stream terminated."""


class TransientStreamFault(StreamFault):
    """Server-initiated expiry (HTTP 410 Gone). Recovered by resubscribing."""

    def __init__(self, message: str = "resource version too old") -> None:
        super().__init__(message)


class UnclassifiedStreamFault(StreamFault):
    """Any other stream termination. Not safe to recover locally."""

    def __init__(self, message: str, cause: BaseException | None = None) -> None:
        super().__init__(message)
        self.cause = cause


@dataclass(frozen=True)
class FatalStreamFault:
    """Signal emitted by a watch session that must bring the process down.

    Handed to the supervisor, which owns process termination.
    """

    source: str
    scope: WatchScope
    error: UnclassifiedStreamFault

    def __str__(self) -> str:
        return f"fatal watch fault in {self.source} (scope={self.scope}): {self.error}"
