"""
Parameter declarations.

A parameter is declared as `(name, type)` or `(name, type, default)`; lists
and `{"name", "type", "default"}` mappings are accepted too, so descriptor
tables loaded from JSON/YAML read the same as ones written in Python:

    input=[("taskId", "number"), ("domainId", "number", 1)]
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Iterable, List, Mapping, Sequence, Tuple, Union

__all__ = [
    "NO_DEFAULT",
    "ParamSpec",
    "ParamLike",
    "parse_param",
    "parse_params",
]


class _NoDefault:
    __slots__ = ()

    def __repr__(self) -> str:  # pragma: no cover - trivial
        return "NO_DEFAULT"

    def __bool__(self) -> bool:
        return False


NO_DEFAULT: Any = _NoDefault()


@dataclass(frozen=True)
class ParamSpec:
    name: str
    type: str
    default: Any = NO_DEFAULT

    @property
    def has_default(self) -> bool:
        return self.default is not NO_DEFAULT


ParamLike = Union[ParamSpec, Sequence[Any], Mapping[str, Any]]


def parse_param(entry: ParamLike) -> ParamSpec:
    """Normalize one parameter declaration. Raises ValueError on bad shapes."""
    if isinstance(entry, ParamSpec):
        return entry
    if isinstance(entry, Mapping):
        if "name" not in entry or "type" not in entry:
            raise ValueError(f"parameter mapping needs 'name' and 'type': {dict(entry)!r}")
        return ParamSpec(str(entry["name"]), str(entry["type"]), entry.get("default", NO_DEFAULT))
    if isinstance(entry, (list, tuple)):
        if len(entry) == 2:
            return ParamSpec(entry[0], entry[1])
        if len(entry) == 3:
            return ParamSpec(entry[0], entry[1], entry[2])
    raise ValueError(f"parameter must be (name, type[, default]): {entry!r}")


def parse_params(entries: Iterable[ParamLike] | None) -> Tuple[ParamSpec, ...]:
    out: List[ParamSpec] = []
    for entry in entries or ():
        spec = parse_param(entry)
        if not isinstance(spec.name, str) or not isinstance(spec.type, str):
            raise ValueError(f"parameter name and type must be strings: {entry!r}")
        out.append(spec)
    return tuple(out)
