"""kubeop: watch-and-dispatch core for Kubernetes operators."""

__version__ = "0.1.0"
