"""
Core plugin types and dataclasses.

This module contains shared types used across the plugin system.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional
import logging

logger = logging.getLogger(__name__)


@dataclass
class LifecycleContext:
    """Context passed to reconciler plugins during a lifecycle operation."""

    resource_name: str
    spec: Dict[str, Any]
    prior_state: Optional[Dict[str, Any]] = None
    generation: int = 0
    plugin_config: Dict[str, Any] = field(default_factory=dict)

    @property
    def resource_id(self) -> Optional[str]:
        """Remote identity recorded in the prior state, if any."""
        if self.prior_state:
            return self.prior_state.get("id")
        return None


@dataclass
class ResourceSpec:
    """A desired resource as read from a resource file."""

    resource_type: str
    spec: Dict[str, Any]


@dataclass
class PlanResult:
    """Result from planning a lifecycle operation."""

    has_changes: bool = False
    requires_replacement: bool = False
    replacement_reasons: List[str] = field(default_factory=list)
    to_remove: List[Dict[str, str]] = field(default_factory=list)
    to_add: List[Dict[str, str]] = field(default_factory=list)
    plan_output: str = ""


@dataclass
class DriftResult:
    """Result from drift detection."""

    has_drift: bool = False
    drift_details: str = ""
    resources_drifted: int = 0
    error_message: Optional[str] = None
