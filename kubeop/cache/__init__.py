"""Cache layer for kubeop.

Submodules:
    resource_cache   -- Latest snapshot per resource uid.
    generation_gate  -- Last processed generation per resource uid.
"""

from kubeop.cache.generation_gate import GenerationGate
from kubeop.cache.resource_cache import ResourceCache

__all__ = ["GenerationGate", "ResourceCache"]
