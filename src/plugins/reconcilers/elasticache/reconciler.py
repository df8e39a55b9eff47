"""
ElastiCache Parameter Group Reconciler - Implements ReconcilerPlugin for
cache parameter groups.

Parameter changes are applied as resets (parameters no longer declared or
whose value changed) followed by modifications (new or changed parameters),
in batches no larger than the API accepts.
"""

import logging
import time
from dataclasses import asdict, fields
from typing import Any, Callable, Dict, List, Optional, Sequence

from config import AWSConfig, ReconcilerConfig
from plugins.base import DriftResult, LifecycleContext, PlanResult
from plugins.reconcilers.base import ReconcilerError, ReconcilerPlugin
from plugins.reconcilers.elasticache.client import (
    ElastiCacheClient,
    ElastiCacheError,
    InvalidParameterGroupStateError,
    ParameterGroupNotFoundError,
    TransientFaultError,
    create_boto3_client,
)
from plugins.reconcilers.elasticache.parameters import (
    Parameter,
    chunked,
    diff_parameters,
    parameters_from_dicts,
    parameters_to_dicts,
)
from retry import RetryTimeoutError, retry
from validation import PARAMETER_GROUP_SCHEMA, normalize_spec

logger = logging.getLogger(__name__)

RESOURCE_TYPE = "ElastiCacheParameterGroup"

RESERVED_MEMORY = "reserved-memory"
RESERVED_MEMORY_PERCENTAGE = "reserved-memory-percentage"

# reserved-memory-percentage does not exist in these families
LEGACY_FAMILIES = ("redis2.6", "redis2.8")

# Attributes that cannot change after creation
IMMUTABLE_ATTRIBUTES = ("name", "family", "description")

_AWS_CONFIG_KEYS = ("region", "profile", "endpoint_url", "max_attempts", "retry_mode")


def is_timeout_error(error: Exception) -> bool:
    """Whether an error means the call timed out rather than being rejected."""
    return isinstance(error, (RetryTimeoutError, TransientFaultError))


def _has_pending_changes(error: Exception) -> bool:
    return (
        isinstance(error, InvalidParameterGroupStateError)
        and error.has_pending_changes
    )


def _is_invalid_state(error: Exception) -> bool:
    return isinstance(error, InvalidParameterGroupStateError)


class ParameterGroupReconciler(ReconcilerPlugin):
    """
    Reconciler for ElastiCache cache parameter groups.

    The group name, family and description are fixed at creation. The
    parameter set is converged on every update by diffing the previously
    applied parameters against the desired ones.
    """

    def __init__(
        self,
        client: Optional[ElastiCacheClient] = None,
        config: Optional[ReconcilerConfig] = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.client = client
        self.config = config or ReconcilerConfig()
        self._sleep = sleep

    @property
    def name(self) -> str:
        return "elasticache_parameter_group"

    @property
    def resource_types(self) -> List[str]:
        return [RESOURCE_TYPE]

    @property
    def schema(self) -> Dict[str, Any]:
        return PARAMETER_GROUP_SCHEMA

    @classmethod
    def load_config_from_env(cls) -> Dict[str, Any]:
        """Load AWS and reconciler settings from environment variables."""
        plugin_config = asdict(AWSConfig.from_env())
        plugin_config.update(asdict(ReconcilerConfig.from_env()))
        return plugin_config

    def initialize(self, config: Dict[str, Any]) -> None:
        """Build the reconciler settings and the ElastiCache client."""
        overrides = {
            f.name: config[f.name] for f in fields(ReconcilerConfig) if f.name in config
        }
        if overrides:
            self.config = ReconcilerConfig(**{**asdict(self.config), **overrides})

        if self.client is None:
            aws_settings = {k: config[k] for k in _AWS_CONFIG_KEYS if k in config}
            self.client = ElastiCacheClient(create_boto3_client(**aws_settings))

        logger.debug(
            f"ElastiCache parameter group reconciler initialized: "
            f"max_parameters_per_call={self.config.max_parameters_per_call}, "
            f"reset_timeout={self.config.reset_timeout}s, "
            f"delete_timeout={self.config.delete_timeout}s"
        )

    def normalize_spec(self, spec: Dict[str, Any]) -> Dict[str, Any]:
        return normalize_spec(spec, self.config.default_description)

    # Lifecycle operations

    def create(self, ctx: LifecycleContext) -> Dict[str, Any]:
        spec = ctx.spec
        logger.debug(
            f"Create ElastiCache Parameter Group: name={spec['name']}, "
            f"family={spec['family']}, description={spec['description']!r}"
        )
        try:
            group = self.client.create_parameter_group(
                spec["name"], spec["family"], spec["description"]
            )
        except ElastiCacheError as e:
            raise ReconcilerError(
                f"error creating ElastiCache Parameter Group: {e}"
            ) from e

        group_id = group["CacheParameterGroupName"]
        logger.info(f"ElastiCache Parameter Group ID: {group_id}")

        desired = parameters_from_dicts(spec.get("parameter", []))
        try:
            self._apply_parameter_changes(group_id, spec["family"], [], desired)
            return self.read(group_id)
        except ReconcilerError as e:
            e.resource_id = group_id
            raise

    def read(self, resource_id: str) -> Dict[str, Any]:
        try:
            group = self.client.describe_parameter_group(resource_id)
            # Only user customized parameters, there are hundreds of
            # system/default ones
            parameters = self.client.describe_user_parameters(resource_id)
        except ElastiCacheError as e:
            raise ReconcilerError(
                f"error reading ElastiCache Parameter Group ({resource_id}): {e}"
            ) from e

        return {
            "id": resource_id,
            "name": group["CacheParameterGroupName"],
            "family": group.get("CacheParameterGroupFamily"),
            "description": group.get("Description", ""),
            "arn": group.get("ARN"),
            "parameter": parameters_to_dicts(parameters),
        }

    def update(self, ctx: LifecycleContext) -> Dict[str, Any]:
        spec = ctx.spec
        group_id = ctx.resource_id or spec["name"]

        old = parameters_from_dicts((ctx.prior_state or {}).get("parameter", []))
        new = parameters_from_dicts(spec.get("parameter", []))

        if set(old) != set(new):
            self._apply_parameter_changes(group_id, spec["family"], old, new)

        return self.read(group_id)

    def delete(self, resource_id: str) -> None:
        def attempt():
            self.client.delete_parameter_group(resource_id)

        try:
            try:
                self._retry(attempt, self.config.delete_timeout, _is_invalid_state)
            except RetryTimeoutError:
                attempt()
        except ParameterGroupNotFoundError:
            logger.info(
                f"ElastiCache Parameter Group {resource_id} already deleted"
            )
            return
        except ElastiCacheError as e:
            raise ReconcilerError(
                f"error deleting ElastiCache Parameter Group ({resource_id}): {e}"
            ) from e

        logger.info(f"Deleted ElastiCache Parameter Group {resource_id}")

    def import_state(self, resource_id: str) -> Dict[str, Any]:
        return self.read(resource_id.lower())

    def plan(self, ctx: LifecycleContext) -> PlanResult:
        spec = ctx.spec
        desired = parameters_from_dicts(spec.get("parameter", []))
        prior = ctx.prior_state

        if prior is None:
            return PlanResult(
                has_changes=True,
                to_add=parameters_to_dicts(desired),
                plan_output=_format_plan(f"create {spec['name']}", [], desired),
            )

        reasons = [
            attr for attr in IMMUTABLE_ATTRIBUTES if prior.get(attr) != spec.get(attr)
        ]
        if reasons:
            return PlanResult(
                has_changes=True,
                requires_replacement=True,
                replacement_reasons=reasons,
                to_add=parameters_to_dicts(desired),
                plan_output=_format_plan(
                    f"replace {prior.get('name')} ({', '.join(reasons)} changed)",
                    [],
                    desired,
                ),
            )

        old = parameters_from_dicts(prior.get("parameter", []))
        to_remove, to_add = diff_parameters(old, desired)
        has_changes = bool(to_remove or to_add)
        action = f"update {spec['name']}" if has_changes else f"no changes for {spec['name']}"
        return PlanResult(
            has_changes=has_changes,
            to_remove=parameters_to_dicts(to_remove),
            to_add=parameters_to_dicts(to_add),
            plan_output=_format_plan(action, to_remove, to_add),
        )

    def detect_drift(self, ctx: LifecycleContext) -> DriftResult:
        if not ctx.prior_state:
            return DriftResult(has_drift=False, drift_details="No recorded state")

        try:
            observed = self.read(ctx.resource_id)
        except ReconcilerError as e:
            return DriftResult(error_message=str(e))

        recorded = set(parameters_from_dicts(ctx.prior_state.get("parameter", [])))
        actual = set(parameters_from_dicts(observed["parameter"]))
        missing = sorted(p.name for p in recorded - actual)
        unexpected = sorted(p.name for p in actual - recorded)

        if not missing and not unexpected:
            return DriftResult(has_drift=False, drift_details="No drift detected")

        details = []
        if missing:
            details.append(f"missing or changed: {', '.join(missing)}")
        if unexpected:
            details.append(f"unexpected: {', '.join(unexpected)}")
        return DriftResult(
            has_drift=True, drift_details="; ".join(details), resources_drifted=1
        )

    # Parameter reconciliation

    def _retry(
        self, func: Callable[[], Any], timeout: float, is_retryable
    ) -> Any:
        return retry(
            func,
            timeout=timeout,
            is_retryable=is_retryable,
            base_delay=self.config.backoff_base_delay,
            max_delay=self.config.backoff_max_delay,
            jitter_factor=self.config.backoff_jitter_factor,
            sleep=self._sleep,
        )

    def _apply_parameter_changes(
        self,
        group_id: str,
        family: str,
        old: Sequence[Parameter],
        new: Sequence[Parameter],
    ) -> None:
        to_remove, to_add = diff_parameters(old, new)
        logger.debug(f"Parameters to remove: {[p.to_dict() for p in to_remove]}")
        logger.debug(f"Parameters to add: {[p.to_dict() for p in to_add]}")

        batch_size = self.config.max_parameters_per_call

        for batch in chunked(to_remove, batch_size):
            self._reset_batch(group_id, family, batch, new)

        for batch in chunked(to_add, batch_size):
            try:
                self.client.modify_parameters(group_id, batch)
            except ElastiCacheError as e:
                raise ReconcilerError(
                    f"error modifying ElastiCache Parameter Group: {e}"
                ) from e

    def _reset_batch(
        self,
        group_id: str,
        family: str,
        batch: List[Parameter],
        configured: Sequence[Parameter],
    ) -> None:
        try:
            self._retry(
                lambda: self.client.reset_parameters(group_id, batch),
                self.config.reset_timeout,
                _has_pending_changes,
            )
            return
        except (ElastiCacheError, RetryTimeoutError) as e:
            if not is_timeout_error(e):
                raise ReconcilerError(
                    f"error resetting ElastiCache Parameter Group: {e}"
                ) from e
            logger.debug(f"Reset of ElastiCache Parameter Group {group_id} timed out: {e}")

        # Resetting reserved-memory can fail with InternalFailure, which the
        # SDK retries on its own until the call times out. It is never
        # retried directly.
        remaining = [p for p in batch if p.name != RESERVED_MEMORY]
        if len(remaining) != len(batch):
            self._reset_reserved_memory(group_id, family, configured)

        if remaining:
            try:
                self.client.reset_parameters(group_id, remaining)
            except ElastiCacheError as e:
                raise ReconcilerError(
                    f"error resetting ElastiCache Parameter Group: {e}"
                ) from e

    def _reset_reserved_memory(
        self, group_id: str, family: str, configured: Sequence[Parameter]
    ) -> None:
        """
        Reset reserved-memory indirectly through reserved-memory-percentage.

        Only attempted when neither memory parameter is declared. Failures
        are logged and ignored.
        """
        if any(
            p.name in (RESERVED_MEMORY, RESERVED_MEMORY_PERCENTAGE) for p in configured
        ):
            return

        if family in LEGACY_FAMILIES:
            logger.warning(
                f"Cannot reset ElastiCache Parameter Group ({group_id}) "
                f"reserved-memory parameter with {family} family"
            )
            return

        percentage = [Parameter(RESERVED_MEMORY_PERCENTAGE, "0")]

        try:
            self.client.modify_parameters(group_id, percentage)
        except ElastiCacheError as e:
            logger.warning(
                f"Error attempting reserved-memory workaround to switch to "
                f"reserved-memory-percentage: {e}"
            )
            return

        try:
            self.client.reset_parameters(group_id, percentage)
        except ElastiCacheError as e:
            logger.warning(
                f"Error attempting reserved-memory workaround to reset "
                f"reserved-memory-percentage: {e}"
            )


def _format_plan(
    action: str, to_remove: Sequence[Parameter], to_add: Sequence[Parameter]
) -> str:
    lines = [f"Will {action}"]
    lines.extend(f"  - {p.name} = {p.value}" for p in to_remove)
    lines.extend(f"  + {p.name} = {p.value}" for p in to_add)
    return "\n".join(lines)
