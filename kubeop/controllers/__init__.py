"""Controller configuration: explicit builder and name-keyed registry."""

from kubeop.controllers.builder import ControllerConfigurationBuilder, default_finalizer_name
from kubeop.controllers.registry import ConfigurationRegistry, controller_name_for

__all__ = [
    "ConfigurationRegistry",
    "ControllerConfigurationBuilder",
    "controller_name_for",
    "default_finalizer_name",
]
