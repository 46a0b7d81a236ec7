"""Adapters — tool bindings for external integrations.

Public re-exports for convenient access.
"""

from sitepublish.adapters.base import Adapter, ExecutionContext
from sitepublish.adapters.mock import MockAdapter
from sitepublish.adapters.registry import AdapterRegistry, default_registry

__all__ = [
    "Adapter",
    "AdapterRegistry",
    "ExecutionContext",
    "MockAdapter",
    "default_registry",
]
