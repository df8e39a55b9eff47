"""
Plugin system for the ElastiCache parameter group reconciler.

This package provides the plugin architecture for reconcilers.
"""

from plugins.base import (
    DriftResult,
    LifecycleContext,
    PlanResult,
    ResourceSpec,
)
from plugins.reconcilers.base import ReconcilerError, ReconcilerPlugin
from plugins.registry import PluginRegistry, get_registry

__all__ = [
    "DriftResult",
    "LifecycleContext",
    "PlanResult",
    "ResourceSpec",
    "ReconcilerError",
    "ReconcilerPlugin",
    "PluginRegistry",
    "get_registry",
]
