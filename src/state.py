"""
State Store - JSON file of resource records.

Stores each managed resource's desired spec, the state returned by its
reconciler and the outcome of the last reconciliation.
"""

import hashlib
import json
import logging
import os
import tempfile
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional

logger = logging.getLogger(__name__)

STATE_FORMAT_VERSION = 1


class ResourceStatus(Enum):
    """Status of a resource."""

    PENDING = "pending"
    RECONCILING = "reconciling"
    READY = "ready"
    FAILED = "failed"
    DELETING = "deleting"


@dataclass
class ReconciliationResult:
    """Result of a reconciliation operation."""

    success: bool = False
    phase: str = "pending"
    plan_output: str = ""
    error_message: Optional[str] = None
    resources_created: int = 0
    resources_updated: int = 0
    resources_deleted: int = 0
    has_changes: bool = False


class StateError(Exception):
    """The state file cannot be read or written."""


def calculate_spec_hash(spec: Dict[str, Any]) -> str:
    """Calculate a hash of the resource specification for change detection."""
    spec_string = json.dumps(spec, sort_keys=True)
    return hashlib.sha256(spec_string.encode()).hexdigest()


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


class StateStore:
    """Reads and writes resource records in a single JSON file."""

    def __init__(self, path: str):
        self.path = path

    @staticmethod
    def _key(resource_type: str, name: str) -> str:
        return f"{resource_type}/{name}"

    def _load(self) -> Dict[str, Dict[str, Any]]:
        if not os.path.exists(self.path):
            return {}
        try:
            with open(self.path, "r") as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            raise StateError(f"Cannot read state file {self.path}: {e}") from e

        version = data.get("version")
        if version != STATE_FORMAT_VERSION:
            raise StateError(
                f"Unsupported state file version {version!r} in {self.path}"
            )
        return data.get("resources", {})

    def _save(self, resources: Dict[str, Dict[str, Any]]) -> None:
        directory = os.path.dirname(os.path.abspath(self.path))
        os.makedirs(directory, exist_ok=True)

        payload = {"version": STATE_FORMAT_VERSION, "resources": resources}
        fd, tmp_path = tempfile.mkstemp(dir=directory, suffix=".tmp")
        try:
            with os.fdopen(fd, "w") as f:
                json.dump(payload, f, indent=2, sort_keys=True)
            os.replace(tmp_path, self.path)
        except OSError as e:
            if os.path.exists(tmp_path):
                os.unlink(tmp_path)
            raise StateError(f"Cannot write state file {self.path}: {e}") from e

    def get_resource(self, resource_type: str, name: str) -> Optional[Dict[str, Any]]:
        """Get a resource record, or None if it is not tracked."""
        return self._load().get(self._key(resource_type, name))

    def list_resources(self) -> List[Dict[str, Any]]:
        """List all resource records ordered by type and name."""
        resources = self._load()
        return [resources[key] for key in sorted(resources)]

    def upsert_resource(
        self, resource_type: str, name: str, spec: Dict[str, Any]
    ) -> Dict[str, Any]:
        """
        Create a record or record a new desired spec for an existing one.

        The generation is bumped whenever the spec hash changes.
        """
        resources = self._load()
        key = self._key(resource_type, name)
        spec_hash = calculate_spec_hash(spec)
        record = resources.get(key)

        if record is None:
            record = {
                "resource_type": resource_type,
                "name": name,
                "spec": spec,
                "spec_hash": spec_hash,
                "state": None,
                "status": ResourceStatus.PENDING.value,
                "status_message": None,
                "generation": 1,
                "observed_generation": 0,
                "last_reconcile_time": None,
            }
            logger.info(f"Tracking new resource {key}")
        elif record["spec_hash"] != spec_hash:
            record["spec"] = spec
            record["spec_hash"] = spec_hash
            record["generation"] += 1

        resources[key] = record
        self._save(resources)
        return record

    def update_resource_status(
        self,
        resource_type: str,
        name: str,
        status: ResourceStatus,
        message: Optional[str] = None,
        observed_generation: Optional[int] = None,
    ) -> None:
        """Update the status of a resource."""
        resources = self._load()
        record = resources[self._key(resource_type, name)]
        record["status"] = status.value
        record["status_message"] = message
        if observed_generation is not None:
            record["observed_generation"] = observed_generation
        if status in (ResourceStatus.READY, ResourceStatus.FAILED):
            record["last_reconcile_time"] = _now()
        self._save(resources)

    def update_resource_state(
        self, resource_type: str, name: str, state: Optional[Dict[str, Any]]
    ) -> None:
        """Record the state returned by the reconciler."""
        resources = self._load()
        resources[self._key(resource_type, name)]["state"] = state
        self._save(resources)

    def delete_resource(self, resource_type: str, name: str) -> bool:
        """Stop tracking a resource. Returns False if it was not tracked."""
        resources = self._load()
        removed = resources.pop(self._key(resource_type, name), None)
        if removed is None:
            return False
        self._save(resources)
        return True
