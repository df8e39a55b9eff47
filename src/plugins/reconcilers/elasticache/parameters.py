"""
Cache parameters - value type, SDK mapping, diffing and batching.

A parameter is identified by its (name, value) pair, so changing only the
value of a parameter shows up as one removal plus one addition.
"""

from dataclasses import dataclass
from typing import (
    Any,
    Dict,
    Iterable,
    Iterator,
    List,
    Mapping,
    Sequence,
    Set,
    Tuple,
    TypeVar,
)

T = TypeVar("T")


@dataclass(frozen=True)
class Parameter:
    """A single cache engine parameter. Names are case-insensitive."""

    name: str
    value: str

    def __post_init__(self):
        object.__setattr__(self, "name", self.name.lower())

    def to_dict(self) -> Dict[str, str]:
        return {"name": self.name, "value": self.value}

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Parameter":
        return cls(name=str(data["name"]), value=str(data["value"]))


def parameters_from_dicts(items: Iterable[Mapping[str, Any]]) -> List[Parameter]:
    """Build parameters from {"name", "value"} mappings, dropping duplicates."""
    seen: Set[Parameter] = set()
    parameters = []
    for item in items:
        parameter = Parameter.from_dict(item)
        if parameter not in seen:
            seen.add(parameter)
            parameters.append(parameter)
    return parameters


def parameters_to_dicts(parameters: Iterable[Parameter]) -> List[Dict[str, str]]:
    """Render parameters as {"name", "value"} dicts sorted by name then value."""
    return [p.to_dict() for p in sorted(parameters, key=lambda p: (p.name, p.value))]


def flatten_parameters(records: Iterable[Mapping[str, Any]]) -> List[Parameter]:
    """
    Convert DescribeCacheParameters records into parameters.

    Records without a ParameterValue are skipped.
    """
    return parameters_from_dicts(
        {"name": record["ParameterName"], "value": record["ParameterValue"]}
        for record in records
        if record.get("ParameterValue") is not None
    )


def expand_parameters(parameters: Iterable[Parameter]) -> List[Dict[str, str]]:
    """Convert parameters into ParameterNameValues entries for the SDK."""
    return [
        {"ParameterName": p.name, "ParameterValue": p.value} for p in parameters
    ]


def diff_parameters(
    old: Sequence[Parameter], new: Sequence[Parameter]
) -> Tuple[List[Parameter], List[Parameter]]:
    """
    Compute the parameters to reset and the parameters to set.

    Args:
        old: Previously applied parameters
        new: Desired parameters

    Returns:
        Tuple of (to_remove, to_add): to_remove holds entries of old missing
        from new, to_add holds entries of new missing from old. Both keep the
        input order.
    """
    old_set = set(old)
    new_set = set(new)
    to_remove = [p for p in old if p not in new_set]
    to_add = [p for p in new if p not in old_set]
    return to_remove, to_add


def chunked(items: Sequence[T], size: int) -> Iterator[List[T]]:
    """Yield consecutive chunks of at most size items."""
    if size < 1:
        raise ValueError(f"chunk size must be positive, got {size}")
    for start in range(0, len(items), size):
        yield list(items[start:start + size])
