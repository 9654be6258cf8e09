"""
Lifecycle management for the service.
Ordered component startup, readiness tracking and graceful shutdown.
"""

from .base import BaseLifecycleComponent, ComponentState
from .registry import ComponentRegistry
from .state import ReadinessState
from .manager import LifespanManager


__all__ = [
    "LifespanManager",
    "BaseLifecycleComponent",
    "ComponentState",
    "ComponentRegistry",
    "ReadinessState",
]
