"""Pytest configuration and fixtures."""

import pytest
from unittest.mock import MagicMock

from botocore.exceptions import ClientError

import config
from config import ReconcilerConfig
from plugins.reconcilers.elasticache.client import ElastiCacheClient
from plugins.reconcilers.elasticache.reconciler import ParameterGroupReconciler
from plugins.registry import reset_registry
from state import StateStore


def make_client_error(code, message="", operation="ResetCacheParameterGroup"):
    """Build a botocore ClientError with the given error code."""
    return ClientError({"Error": {"Code": code, "Message": message}}, operation)


@pytest.fixture(autouse=True)
def reset_globals():
    """Reset global config and registry between tests."""
    config.reset_config()
    reset_registry()
    yield
    config.reset_config()
    reset_registry()


@pytest.fixture
def sample_spec():
    """Normalized parameter group spec."""
    return {
        "name": "test-group",
        "family": "redis5.0",
        "description": "Managed by no8s",
        "parameter": [
            {"name": "maxmemory-policy", "value": "allkeys-lru"},
            {"name": "timeout", "value": "300"},
        ],
    }


@pytest.fixture
def sample_state(sample_spec):
    """State as returned by the reconciler after applying sample_spec."""
    return {
        "id": "test-group",
        "name": "test-group",
        "family": "redis5.0",
        "description": "Managed by no8s",
        "arn": "arn:aws:elasticache:us-east-1:123456789012:parametergroup:test-group",
        "parameter": sorted(sample_spec["parameter"], key=lambda p: p["name"]),
    }


@pytest.fixture
def mock_client():
    """Mock ElastiCacheClient."""
    client = MagicMock(spec=ElastiCacheClient)
    client.create_parameter_group.return_value = {
        "CacheParameterGroupName": "test-group",
        "CacheParameterGroupFamily": "redis5.0",
        "Description": "Managed by no8s",
    }
    client.describe_parameter_group.return_value = {
        "CacheParameterGroupName": "test-group",
        "CacheParameterGroupFamily": "redis5.0",
        "Description": "Managed by no8s",
        "ARN": "arn:aws:elasticache:us-east-1:123456789012:parametergroup:test-group",
    }
    client.describe_user_parameters.return_value = []
    return client


@pytest.fixture
def reconciler_config():
    """Reconciler config with no backoff delays."""
    return ReconcilerConfig(
        reset_timeout=0,
        delete_timeout=0,
        backoff_base_delay=0,
        backoff_max_delay=0,
        backoff_jitter_factor=0,
    )


@pytest.fixture
def reconciler(mock_client, reconciler_config):
    """ParameterGroupReconciler wired to the mock client."""
    return ParameterGroupReconciler(
        client=mock_client, config=reconciler_config, sleep=lambda _: None
    )


@pytest.fixture
def state_store(tmp_path):
    """StateStore backed by a temporary file."""
    return StateStore(str(tmp_path / "state.json"))
