"""
Reconciler plugins package.

Reconciler plugins own the lifecycle logic for one or more resource types.
Third-party reconcilers are discovered via Python entry points
(group: 'no8s.reconcilers').
"""

from plugins.reconcilers.base import ReconcilerError, ReconcilerPlugin

__all__ = ["ReconcilerError", "ReconcilerPlugin"]
