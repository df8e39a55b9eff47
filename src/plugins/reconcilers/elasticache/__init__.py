"""
ElastiCache reconciler plugin.

Manages ElastiCache cache parameter groups.
"""

from plugins.reconcilers.elasticache.reconciler import (
    RESOURCE_TYPE,
    ParameterGroupReconciler,
)

__all__ = ["RESOURCE_TYPE", "ParameterGroupReconciler"]
