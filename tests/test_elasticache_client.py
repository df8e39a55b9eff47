"""Unit tests for the ElastiCache client wrapper and error translation."""

import pytest
from unittest.mock import MagicMock, patch

from botocore.exceptions import (
    EndpointConnectionError,
    NoCredentialsError,
    ParamValidationError,
    ReadTimeoutError,
)

from conftest import make_client_error
from plugins.reconcilers.elasticache.client import (
    ElastiCacheClient,
    ElastiCacheError,
    InvalidParameterGroupStateError,
    ParameterGroupNotFoundError,
    TransientFaultError,
    create_boto3_client,
    translate_error,
)
from plugins.reconcilers.elasticache.parameters import Parameter


class TestTranslateError:
    """Tests for translate_error."""

    @pytest.mark.parametrize(
        "code", ["CacheParameterGroupNotFound", "CacheParameterGroupNotFoundFault"]
    )
    def test_not_found(self, code):
        """Test that both not-found codes map to ParameterGroupNotFoundError."""
        error = translate_error(make_client_error(code, "gone"), "delete")
        assert isinstance(error, ParameterGroupNotFoundError)
        assert error.code == code
        assert error.operation == "delete"

    def test_pending_changes(self):
        """Test pending changes detection on invalid state errors."""
        error = translate_error(
            make_client_error(
                "InvalidCacheParameterGroupState",
                "Parameter group test-group has pending changes",
            ),
            "reset_cache_parameter_group",
        )
        assert isinstance(error, InvalidParameterGroupStateError)
        assert error.has_pending_changes is True

    def test_invalid_state_without_pending_changes(self):
        """Test invalid state errors for other reasons."""
        error = translate_error(
            make_client_error("InvalidCacheParameterGroupState", "in use"), "op"
        )
        assert isinstance(error, InvalidParameterGroupStateError)
        assert error.has_pending_changes is False

    @pytest.mark.parametrize("code", ["InternalFailure", "ServiceUnavailable"])
    def test_transient_fault(self, code):
        """Test that internal failures are classified as transient."""
        error = translate_error(make_client_error(code, "try later"), "op")
        assert isinstance(error, TransientFaultError)

    def test_read_timeout(self):
        """Test that a read timeout is classified as transient."""
        error = translate_error(ReadTimeoutError(endpoint_url="https://x"), "op")
        assert isinstance(error, TransientFaultError)

    def test_other_error(self):
        """Test that unknown codes map to the base error."""
        error = translate_error(
            make_client_error("InvalidParameterValue", "bad value"), "op"
        )
        assert type(error) is ElastiCacheError
        assert str(error) == "InvalidParameterValue: bad value"

    @pytest.mark.parametrize(
        "error",
        [
            EndpointConnectionError(endpoint_url="https://elasticache.local"),
            NoCredentialsError(),
            ParamValidationError(report="missing CacheParameterGroupName"),
        ],
    )
    def test_other_botocore_errors(self, error):
        """Test that connection, credential and validation failures are fatal errors."""
        translated = translate_error(error, "delete_cache_parameter_group")
        assert type(translated) is ElastiCacheError
        assert translated.code == type(error).__name__
        assert translated.operation == "delete_cache_parameter_group"

    def test_non_botocore_error_unchanged(self):
        """Test that unrelated exceptions are returned unchanged."""
        original = KeyError("x")
        assert translate_error(original, "op") is original


class TestElastiCacheClient:
    """Tests for ElastiCacheClient."""

    @pytest.fixture
    def boto_client(self):
        return MagicMock()

    @pytest.fixture
    def client(self, boto_client):
        return ElastiCacheClient(boto_client)

    def test_create_parameter_group(self, client, boto_client):
        """Test create passes name, family and description."""
        boto_client.create_cache_parameter_group.return_value = {
            "CacheParameterGroup": {"CacheParameterGroupName": "test-group"}
        }
        group = client.create_parameter_group("test-group", "redis5.0", "desc")

        boto_client.create_cache_parameter_group.assert_called_once_with(
            CacheParameterGroupName="test-group",
            CacheParameterGroupFamily="redis5.0",
            Description="desc",
        )
        assert group == {"CacheParameterGroupName": "test-group"}

    def test_describe_parameter_group(self, client, boto_client):
        """Test describing a single group."""
        boto_client.describe_cache_parameter_groups.return_value = {
            "CacheParameterGroups": [{"CacheParameterGroupName": "test-group"}]
        }
        assert client.describe_parameter_group("test-group") == {
            "CacheParameterGroupName": "test-group"
        }

    def test_describe_parameter_group_name_mismatch(self, client, boto_client):
        """Test that a different group in the response is not found."""
        boto_client.describe_cache_parameter_groups.return_value = {
            "CacheParameterGroups": [{"CacheParameterGroupName": "other"}]
        }
        with pytest.raises(ParameterGroupNotFoundError):
            client.describe_parameter_group("test-group")

    def test_describe_parameter_group_not_found(self, client, boto_client):
        """Test that the not-found fault is translated."""
        boto_client.describe_cache_parameter_groups.side_effect = make_client_error(
            "CacheParameterGroupNotFound", "not found"
        )
        with pytest.raises(ParameterGroupNotFoundError) as exc_info:
            client.describe_parameter_group("test-group")
        assert exc_info.value.__cause__ is not None

    def test_describe_user_parameters_paginates(self, client, boto_client):
        """Test that all pages of user parameters are collected."""
        paginator = MagicMock()
        paginator.paginate.return_value = [
            {"Parameters": [{"ParameterName": "Timeout", "ParameterValue": "300"}]},
            {
                "Parameters": [
                    {"ParameterName": "maxmemory-policy", "ParameterValue": "allkeys-lru"},
                    {"ParameterName": "appendonly"},
                ]
            },
        ]
        boto_client.get_paginator.return_value = paginator

        result = client.describe_user_parameters("test-group")

        boto_client.get_paginator.assert_called_once_with("describe_cache_parameters")
        paginator.paginate.assert_called_once_with(
            CacheParameterGroupName="test-group", Source="user"
        )
        assert result == [
            Parameter("timeout", "300"),
            Parameter("maxmemory-policy", "allkeys-lru"),
        ]

    def test_reset_parameters(self, client, boto_client):
        """Test reset sends only the given parameters."""
        client.reset_parameters("test-group", [Parameter("timeout", "300")])

        boto_client.reset_cache_parameter_group.assert_called_once_with(
            CacheParameterGroupName="test-group",
            ResetAllParameters=False,
            ParameterNameValues=[
                {"ParameterName": "timeout", "ParameterValue": "300"}
            ],
        )

    def test_reset_parameters_pending_changes(self, client, boto_client):
        """Test that reset errors are translated."""
        boto_client.reset_cache_parameter_group.side_effect = make_client_error(
            "InvalidCacheParameterGroupState", "group has pending changes"
        )
        with pytest.raises(InvalidParameterGroupStateError) as exc_info:
            client.reset_parameters("test-group", [Parameter("timeout", "0")])
        assert exc_info.value.has_pending_changes

    def test_modify_parameters(self, client, boto_client):
        """Test modify sends the given parameters."""
        client.modify_parameters("test-group", [Parameter("Timeout", "300")])

        boto_client.modify_cache_parameter_group.assert_called_once_with(
            CacheParameterGroupName="test-group",
            ParameterNameValues=[
                {"ParameterName": "timeout", "ParameterValue": "300"}
            ],
        )

    def test_describe_user_parameters_connection_error(self, client, boto_client):
        """Test that paginator failures are translated."""
        boto_client.get_paginator.return_value.paginate.side_effect = (
            EndpointConnectionError(endpoint_url="https://elasticache.local")
        )
        with pytest.raises(ElastiCacheError) as exc_info:
            client.describe_user_parameters("test-group")
        assert exc_info.value.code == "EndpointConnectionError"

    def test_delete_connection_error(self, client, boto_client):
        """Test that a connection failure surfaces as ElastiCacheError."""
        boto_client.delete_cache_parameter_group.side_effect = EndpointConnectionError(
            endpoint_url="https://elasticache.local"
        )
        with pytest.raises(ElastiCacheError) as exc_info:
            client.delete_parameter_group("test-group")
        assert isinstance(exc_info.value.__cause__, EndpointConnectionError)

    def test_delete_parameter_group(self, client, boto_client):
        """Test delete by name."""
        client.delete_parameter_group("test-group")
        boto_client.delete_cache_parameter_group.assert_called_once_with(
            CacheParameterGroupName="test-group"
        )


class TestCreateBoto3Client:
    """Tests for create_boto3_client."""

    def test_session_and_retry_config(self):
        """Test that region, profile, endpoint and retries are applied."""
        with patch("plugins.reconcilers.elasticache.client.boto3") as mock_boto3:
            create_boto3_client(
                region="eu-west-1",
                profile="ops",
                endpoint_url="http://localhost:4566",
                max_attempts=3,
                retry_mode="adaptive",
            )

        mock_boto3.Session.assert_called_once_with(
            profile_name="ops", region_name="eu-west-1"
        )
        session = mock_boto3.Session.return_value
        args, kwargs = session.client.call_args
        assert args == ("elasticache",)
        assert kwargs["endpoint_url"] == "http://localhost:4566"
        assert kwargs["config"].retries == {"max_attempts": 3, "mode": "adaptive"}
