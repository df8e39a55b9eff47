"""
Reconciler Plugin Base - Abstract interface for reconciler plugins.

Reconciler plugins own the lifecycle logic for one or more resource types.
Built-in reconcilers are registered at startup; third-party ones are
discovered via Python entry points in the 'no8s.reconcilers' group.
"""

import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional

from plugins.base import DriftResult, LifecycleContext, PlanResult

logger = logging.getLogger(__name__)


class ReconcilerError(Exception):
    """
    A lifecycle operation failed and must be surfaced to the caller.

    resource_id is set when the remote object was created before the
    failure, so the caller can keep tracking it.
    """

    def __init__(self, message: str, resource_id: Optional[str] = None):
        super().__init__(message)
        self.resource_id = resource_id


class ReconcilerPlugin(ABC):
    """
    Abstract base class for reconciler plugins.

    A reconciler maps one resource type onto a remote API. The orchestration
    layer supplies desired-state snapshots through a LifecycleContext,
    invokes the lifecycle operations and persists the state they return.
    """

    @property
    @abstractmethod
    def name(self) -> str:
        """Unique identifier for this reconciler."""
        pass

    @property
    @abstractmethod
    def resource_types(self) -> List[str]:
        """Resource type names this reconciler handles."""
        pass

    @property
    def schema(self) -> Dict[str, Any]:
        """JSON Schema resource specs must satisfy (empty = anything)."""
        return {}

    @abstractmethod
    def initialize(self, config: Dict[str, Any]) -> None:
        """
        Initialize the plugin with configuration.

        Called once when the plugin is loaded.

        Args:
            config: Plugin-specific configuration dictionary
        """
        pass

    def normalize_spec(self, spec: Dict[str, Any]) -> Dict[str, Any]:
        """Return the canonical form of a validated spec."""
        return dict(spec)

    @abstractmethod
    def create(self, ctx: LifecycleContext) -> Dict[str, Any]:
        """
        Create the remote object described by ctx.spec.

        Args:
            ctx: Lifecycle context with the desired spec

        Returns:
            The observed state after creation.
        """
        pass

    @abstractmethod
    def read(self, resource_id: str) -> Dict[str, Any]:
        """
        Read the remote object.

        Args:
            resource_id: Remote identity of the object

        Returns:
            The observed state.
        """
        pass

    @abstractmethod
    def update(self, ctx: LifecycleContext) -> Dict[str, Any]:
        """
        Converge the remote object from ctx.prior_state to ctx.spec.

        Args:
            ctx: Lifecycle context with desired spec and prior state

        Returns:
            The observed state after the update.
        """
        pass

    @abstractmethod
    def delete(self, resource_id: str) -> None:
        """
        Delete the remote object. Deleting a missing object succeeds.

        Args:
            resource_id: Remote identity of the object
        """
        pass

    def import_state(self, resource_id: str) -> Dict[str, Any]:
        """
        Adopt an existing remote object.

        Default implementation reads the object keyed by resource_id.
        """
        return self.read(resource_id)

    @abstractmethod
    def plan(self, ctx: LifecycleContext) -> PlanResult:
        """
        Determine what changes an apply would make.

        Args:
            ctx: Lifecycle context with desired spec and prior state

        Returns:
            PlanResult describing the changes.
        """
        pass

    def detect_drift(self, ctx: LifecycleContext) -> DriftResult:
        """
        Detect drift between the recorded state and the remote object.

        This is an optional method with a default implementation that returns
        no drift. Plugins that support drift detection should override this.
        """
        return DriftResult(
            has_drift=False, drift_details="Drift detection not supported"
        )

    @classmethod
    def load_config_from_env(cls) -> Dict[str, Any]:
        """
        Load plugin-specific configuration from environment variables.

        Override this method in subclasses to define how the plugin
        loads its configuration from the environment.
        """
        return {}
