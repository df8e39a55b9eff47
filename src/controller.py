"""
Controller - Drives reconciler plugins through resource lifecycles.

Validates desired specs, picks the reconciler that owns the resource type,
decides between create, update and replace, and records the outcome in the
state store.
"""

import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional, Tuple

from plugins import LifecycleContext, PlanResult, get_registry
from plugins.base import DriftResult
from plugins.reconcilers.base import ReconcilerError, ReconcilerPlugin
from plugins.registry import PluginRegistry
from state import ReconciliationResult, ResourceStatus, StateStore
from validation import validate_spec_against_schema

logger = logging.getLogger(__name__)


class SpecValidationError(ValueError):
    """A resource spec does not satisfy its reconciler's schema."""


@dataclass
class ControllerConfig:
    """Configuration for the controller."""

    plugin_configs: Optional[Dict[str, Dict[str, Any]]] = None

    def __post_init__(self):
        if self.plugin_configs is None:
            self.plugin_configs = {}


class Controller:
    """
    Applies desired resource specs through their reconciler plugins.

    Each call handles one resource, synchronously, and persists the state
    the reconciler returns.
    """

    def __init__(
        self,
        store: StateStore,
        registry: Optional[PluginRegistry] = None,
        config: Optional[ControllerConfig] = None,
    ):
        self.store = store
        self.registry = registry or get_registry()
        self.config = config or ControllerConfig()

    def _get_reconciler(self, resource_type: str) -> ReconcilerPlugin:
        return self.registry.get_reconciler_for_resource_type(
            resource_type, self.config.plugin_configs
        )

    def _prepare(
        self, resource_type: str, spec: Dict[str, Any]
    ) -> Tuple[ReconcilerPlugin, Dict[str, Any]]:
        """Validate and normalize a spec, returning its reconciler too."""
        reconciler = self._get_reconciler(resource_type)
        is_valid, error = validate_spec_against_schema(spec, reconciler.schema)
        if not is_valid:
            raise SpecValidationError(f"Invalid {resource_type} spec: {error}")
        return reconciler, reconciler.normalize_spec(spec)

    def plan(self, resource_type: str, spec: Dict[str, Any]) -> PlanResult:
        """Show what apply would change, without touching anything."""
        reconciler, spec = self._prepare(resource_type, spec)
        record = self.store.get_resource(resource_type, spec["name"])
        ctx = LifecycleContext(
            resource_name=spec["name"],
            spec=spec,
            prior_state=record["state"] if record else None,
        )
        return reconciler.plan(ctx)

    def apply(self, resource_type: str, spec: Dict[str, Any]) -> ReconciliationResult:
        """
        Converge the remote object to spec.

        Creates the object when nothing is recorded, replaces it when an
        immutable attribute changed and updates it otherwise.
        """
        reconciler, spec = self._prepare(resource_type, spec)
        name = spec["name"]
        record = self.store.upsert_resource(resource_type, name, spec)
        ctx = LifecycleContext(
            resource_name=name,
            spec=spec,
            prior_state=record["state"],
            generation=record["generation"],
        )

        plan_result = reconciler.plan(ctx)
        result = ReconciliationResult(
            plan_output=plan_result.plan_output,
            has_changes=plan_result.has_changes,
        )

        if not plan_result.has_changes:
            logger.info(f"No changes needed for {name}")
            self.store.update_resource_status(
                resource_type,
                name,
                ResourceStatus.READY,
                message="No changes",
                observed_generation=record["generation"],
            )
            result.success = True
            result.phase = "completed"
            return result

        self.store.update_resource_status(
            resource_type, name, ResourceStatus.RECONCILING, "Starting reconciliation"
        )

        try:
            if ctx.prior_state is None:
                result.phase = "creating"
                state = self._create(resource_type, reconciler, ctx)
                result.resources_created = 1
            elif plan_result.requires_replacement:
                logger.info(
                    f"Replacing {name}: "
                    f"{', '.join(plan_result.replacement_reasons)} changed"
                )
                result.phase = "destroying"
                reconciler.delete(ctx.resource_id)
                self.store.update_resource_state(resource_type, name, None)
                result.resources_deleted = 1

                result.phase = "creating"
                ctx = LifecycleContext(
                    resource_name=name, spec=spec, generation=ctx.generation
                )
                state = self._create(resource_type, reconciler, ctx)
                result.resources_created = 1
            else:
                result.phase = "updating"
                state = reconciler.update(ctx)
                result.resources_updated = 1
        except ReconcilerError as e:
            return self._fail(resource_type, name, result, str(e))

        self.store.update_resource_state(resource_type, name, state)
        self.store.update_resource_status(
            resource_type,
            name,
            ResourceStatus.READY,
            message="Reconciliation successful",
            observed_generation=record["generation"],
        )
        logger.info(f"Successfully reconciled {name}")

        result.success = True
        result.phase = "completed"
        return result

    def _create(
        self, resource_type: str, reconciler: ReconcilerPlugin, ctx: LifecycleContext
    ) -> Dict[str, Any]:
        try:
            return reconciler.create(ctx)
        except ReconcilerError as e:
            if e.resource_id is not None:
                # The object exists remotely; track it with no applied
                # parameters so the next apply re-sends all of them
                self.store.update_resource_state(
                    resource_type,
                    ctx.resource_name,
                    {
                        "id": e.resource_id,
                        "name": ctx.spec["name"],
                        "family": ctx.spec.get("family"),
                        "description": ctx.spec.get("description"),
                        "parameter": [],
                    },
                )
            raise

    def _fail(
        self,
        resource_type: str,
        name: str,
        result: ReconciliationResult,
        error_msg: str,
    ) -> ReconciliationResult:
        logger.error(f"Failed to reconcile {name}: {error_msg}")
        self.store.update_resource_status(
            resource_type, name, ResourceStatus.FAILED, message=error_msg
        )
        result.success = False
        result.phase = "failed"
        result.error_message = error_msg
        return result

    def _require_record(self, resource_type: str, name: str) -> Dict[str, Any]:
        record = self.store.get_resource(resource_type, name)
        if record is None or record["state"] is None:
            raise ValueError(f"Resource {resource_type}/{name} is not tracked")
        return record

    def refresh(self, resource_type: str, name: str) -> ReconciliationResult:
        """Re-read a tracked resource and record its observed state."""
        record = self._require_record(resource_type, name)
        reconciler = self._get_reconciler(resource_type)
        result = ReconciliationResult(phase="reading")

        try:
            state = reconciler.read(record["state"]["id"])
        except ReconcilerError as e:
            return self._fail(resource_type, name, result, str(e))

        self.store.update_resource_state(resource_type, name, state)
        result.success = True
        result.phase = "completed"
        return result

    def destroy(self, resource_type: str, name: str) -> ReconciliationResult:
        """Delete a tracked resource and stop tracking it."""
        record = self._require_record(resource_type, name)
        reconciler = self._get_reconciler(resource_type)
        result = ReconciliationResult(phase="destroying")

        self.store.update_resource_status(
            resource_type, name, ResourceStatus.DELETING, "Deleting resource"
        )
        try:
            reconciler.delete(record["state"]["id"])
        except ReconcilerError as e:
            return self._fail(resource_type, name, result, str(e))

        self.store.delete_resource(resource_type, name)
        logger.info(f"Destroyed and deleted resource {name}")

        result.success = True
        result.phase = "completed"
        result.resources_deleted = 1
        return result

    def import_resource(self, resource_type: str, resource_id: str) -> ReconciliationResult:
        """
        Start tracking an existing remote object.

        The recorded spec is derived from the observed state, so a following
        plan against the same spec shows no changes.
        """
        reconciler = self._get_reconciler(resource_type)
        result = ReconciliationResult(phase="importing")

        try:
            state = reconciler.import_state(resource_id)
        except ReconcilerError as e:
            result.phase = "failed"
            result.error_message = str(e)
            logger.error(f"Failed to import {resource_id}: {e}")
            return result

        name = state["name"]
        spec = {
            "name": name,
            "family": state["family"],
            "description": state["description"],
            "parameter": state["parameter"],
        }
        record = self.store.upsert_resource(resource_type, name, spec)
        self.store.update_resource_state(resource_type, name, state)
        self.store.update_resource_status(
            resource_type,
            name,
            ResourceStatus.READY,
            message="Imported",
            observed_generation=record["generation"],
        )
        logger.info(f"Imported {resource_type}/{name}")

        result.success = True
        result.phase = "completed"
        return result

    def detect_drift(self, resource_type: str, name: str) -> DriftResult:
        """Compare the recorded state of a resource with the remote object."""
        record = self._require_record(resource_type, name)
        reconciler = self._get_reconciler(resource_type)
        ctx = LifecycleContext(
            resource_name=name, spec=record["spec"], prior_state=record["state"]
        )
        return reconciler.detect_drift(ctx)
