"""
Schema Validation - JSON Schema validation utilities.

Provides functions to validate resource specs against JSON schemas and the
schema for ElastiCache parameter group specs.
"""

import logging
from typing import Any, Dict, Optional, Tuple

from jsonschema import Draft7Validator, ValidationError

logger = logging.getLogger(__name__)


PARAMETER_GROUP_SCHEMA: Dict[str, Any] = {
    "type": "object",
    "required": ["name", "family"],
    "additionalProperties": False,
    "properties": {
        "name": {"type": "string", "minLength": 1, "maxLength": 255},
        "family": {"type": "string", "minLength": 1},
        "description": {"type": "string"},
        "parameter": {
            "type": "array",
            "items": {
                "type": "object",
                "required": ["name", "value"],
                "additionalProperties": False,
                "properties": {
                    "name": {"type": "string", "minLength": 1},
                    "value": {"type": "string"},
                },
            },
        },
    },
}


def validate_spec_against_schema(
    spec: Dict[str, Any], schema: Dict[str, Any]
) -> Tuple[bool, Optional[str]]:
    """
    Validate a resource spec against a JSON Schema.

    Args:
        spec: The resource specification to validate
        schema: The JSON Schema to validate against

    Returns:
        Tuple of (is_valid, error_message)
    """
    try:
        validator = Draft7Validator(schema, format_checker=Draft7Validator.FORMAT_CHECKER)
        errors = list(validator.iter_errors(spec))

        if not errors:
            return True, None

        # Collect all validation errors
        error_messages = []
        for error in errors:
            path = ".".join(str(p) for p in error.absolute_path) or "(root)"
            error_messages.append(f"{path}: {error.message}")

        return False, "; ".join(error_messages)

    except ValidationError as e:
        return False, f"Validation error: {str(e)}"
    except Exception as e:
        logger.error(f"Unexpected error during validation: {e}")
        return False, f"Validation failed: {str(e)}"


def normalize_spec(
    spec: Dict[str, Any], default_description: str = "Managed by no8s"
) -> Dict[str, Any]:
    """
    Normalize a validated parameter group spec.

    Group and parameter names are lowercased, the description defaults to
    default_description and a missing parameter list becomes empty.

    Args:
        spec: A spec that passed PARAMETER_GROUP_SCHEMA validation
        default_description: Description used when none is given

    Returns:
        A new normalized spec dict
    """
    return {
        "name": spec["name"].lower(),
        "family": spec["family"],
        "description": spec.get("description", default_description),
        "parameter": [
            {"name": p["name"].lower(), "value": p["value"]}
            for p in spec.get("parameter") or []
        ],
    }
