"""Adapters — bindings for fetch, shell, filesystem and git side effects.

Public re-exports for convenient access.
"""

from boxpm.adapters.base import Adapter, ExecutionContext
from boxpm.adapters.mock import MockAdapter
from boxpm.adapters.registry import AdapterRegistry, default_registry

__all__ = [
    "Adapter",
    "AdapterRegistry",
    "ExecutionContext",
    "MockAdapter",
    "default_registry",
]
