"""
ElastiCache client - Thin wrapper over the boto3 elasticache client.

Every botocore error raised by the wrapped calls is translated into the
ElastiCacheError hierarchy so callers can decide what is retryable.
"""

import logging
from typing import Any, Dict, List, Optional, Sequence

import boto3
from botocore.config import Config as BotocoreConfig
from botocore.exceptions import (
    BotoCoreError,
    ClientError,
    ConnectTimeoutError,
    ReadTimeoutError,
)

from plugins.reconcilers.elasticache.parameters import (
    Parameter,
    expand_parameters,
    flatten_parameters,
)

logger = logging.getLogger(__name__)

NOT_FOUND_CODES = ("CacheParameterGroupNotFound", "CacheParameterGroupNotFoundFault")
INVALID_STATE_CODE = "InvalidCacheParameterGroupState"
TRANSIENT_FAULT_CODES = ("InternalFailure", "ServiceUnavailable")
PENDING_CHANGES_MESSAGE = "has pending changes"


class ElastiCacheError(Exception):
    """An ElastiCache API call failed."""

    def __init__(self, message: str, code: str = "", operation: str = ""):
        self.code = code
        self.message = message
        self.operation = operation
        prefix = f"{code}: " if code else ""
        super().__init__(f"{prefix}{message}")


class ParameterGroupNotFoundError(ElastiCacheError):
    """The cache parameter group does not exist."""


class InvalidParameterGroupStateError(ElastiCacheError):
    """The cache parameter group cannot be changed in its current state."""

    @property
    def has_pending_changes(self) -> bool:
        return PENDING_CHANGES_MESSAGE in self.message


class TransientFaultError(ElastiCacheError):
    """The service failed internally after the SDK exhausted its own retries."""


def translate_error(error: Exception, operation: str) -> Exception:
    """
    Map a botocore exception onto the ElastiCacheError hierarchy.

    Exceptions that are not botocore errors are returned unchanged.
    """
    if isinstance(error, ClientError):
        details = error.response.get("Error", {})
        code = details.get("Code", "")
        message = details.get("Message", "") or str(error)

        if code in NOT_FOUND_CODES:
            return ParameterGroupNotFoundError(message, code, operation)
        if code == INVALID_STATE_CODE:
            return InvalidParameterGroupStateError(message, code, operation)
        if code in TRANSIENT_FAULT_CODES:
            return TransientFaultError(message, code, operation)
        return ElastiCacheError(message, code, operation)

    if isinstance(error, (ReadTimeoutError, ConnectTimeoutError)):
        return TransientFaultError(str(error), type(error).__name__, operation)

    # Connection, credential and request validation failures
    if isinstance(error, BotoCoreError):
        return ElastiCacheError(str(error), type(error).__name__, operation)

    return error


def create_boto3_client(
    region: Optional[str] = None,
    profile: Optional[str] = None,
    endpoint_url: Optional[str] = None,
    max_attempts: int = 5,
    retry_mode: str = "standard",
) -> Any:
    """Create a boto3 elasticache client."""
    session = boto3.Session(profile_name=profile, region_name=region)
    return session.client(
        "elasticache",
        endpoint_url=endpoint_url,
        config=BotocoreConfig(
            retries={"max_attempts": max_attempts, "mode": retry_mode}
        ),
    )


class ElastiCacheClient:
    """Cache parameter group operations of the ElastiCache API."""

    def __init__(self, client: Any):
        self._client = client

    def _call(self, operation: str, **kwargs) -> Dict[str, Any]:
        method = getattr(self._client, operation)
        try:
            return method(**kwargs)
        except (ClientError, BotoCoreError) as e:
            raise translate_error(e, operation) from e

    def create_parameter_group(
        self, name: str, family: str, description: str
    ) -> Dict[str, Any]:
        """Create a cache parameter group and return its description."""
        response = self._call(
            "create_cache_parameter_group",
            CacheParameterGroupName=name,
            CacheParameterGroupFamily=family,
            Description=description,
        )
        return response["CacheParameterGroup"]

    def describe_parameter_group(self, name: str) -> Dict[str, Any]:
        """
        Describe a single cache parameter group.

        Raises:
            ParameterGroupNotFoundError: If the response does not hold exactly
                one group with that name
        """
        response = self._call(
            "describe_cache_parameter_groups", CacheParameterGroupName=name
        )
        groups = response.get("CacheParameterGroups", [])
        if len(groups) != 1 or groups[0].get("CacheParameterGroupName") != name:
            raise ParameterGroupNotFoundError(
                f"unable to find Parameter Group {name!r}: {groups}",
                operation="describe_cache_parameter_groups",
            )
        return groups[0]

    def describe_user_parameters(self, name: str) -> List[Parameter]:
        """List the user-customized parameters of a group."""
        operation = "describe_cache_parameters"
        records: List[Dict[str, Any]] = []
        try:
            paginator = self._client.get_paginator(operation)
            for page in paginator.paginate(
                CacheParameterGroupName=name, Source="user"
            ):
                records.extend(page.get("Parameters", []))
        except (ClientError, BotoCoreError) as e:
            raise translate_error(e, operation) from e
        return flatten_parameters(records)

    def reset_parameters(self, name: str, parameters: Sequence[Parameter]) -> None:
        """Reset the given parameters to their engine defaults."""
        logger.debug(
            f"Reset ElastiCache Parameter Group {name}: "
            f"{[p.name for p in parameters]}"
        )
        self._call(
            "reset_cache_parameter_group",
            CacheParameterGroupName=name,
            ResetAllParameters=False,
            ParameterNameValues=expand_parameters(parameters),
        )

    def modify_parameters(self, name: str, parameters: Sequence[Parameter]) -> None:
        """Set the given parameters explicitly."""
        logger.debug(
            f"Modify ElastiCache Parameter Group {name}: "
            f"{[p.to_dict() for p in parameters]}"
        )
        self._call(
            "modify_cache_parameter_group",
            CacheParameterGroupName=name,
            ParameterNameValues=expand_parameters(parameters),
        )

    def delete_parameter_group(self, name: str) -> None:
        """Delete a cache parameter group."""
        self._call("delete_cache_parameter_group", CacheParameterGroupName=name)
