"""
Parameter type registry.

Every parameter of a contract operation is declared with a type tag
("address", "number", "date", ...). The registry maps each tag to three
functions:

- validate(value) -> bool      : is this host value acceptable as input?
- encode(value)   -> wire      : host value -> what the adapter expects
- decode(wire)    -> value     : what the adapter returned -> host value

All numeric/hash/date conversions in the client live here; no other module
converts formats on its own. Within a type's domain decode is the exact
inverse of encode.

Built-in tags
-------------
address, boolean, number, bigNumber, date, hexString, ipfsHash,
tokenAddress, string, plus the enumerations role and taskStatus.

Extending
---------
    reg = DEFAULT_REGISTRY.copy()
    reg.register_enum("vote", {"NAY": 0, "YAY": 1})
    reg.register(ParamType("percent", validate=..., encode=..., decode=...))
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional

from .. import address as _addr
from ..errors import DecodingError, EncodingError
from ..utils.base58 import b58decode, b58encode, is_base58
from ..utils.bytes import from_hex, is_hex, to_hex

__all__ = [
    "MAX_SAFE_INTEGER",
    "ROLES",
    "TASK_STATUSES",
    "ParamType",
    "TypeRegistry",
    "enum_type",
    "DEFAULT_REGISTRY",
]

# Largest integer a "number" parameter may carry; anything bigger is a bigNumber.
MAX_SAFE_INTEGER = 2**53 - 1

# sha2-256 multihash prefix (function code 0x12, digest length 0x20)
_MULTIHASH_PREFIX = b"\x12\x20"

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)
_DATE_MIN = datetime.min.replace(tzinfo=timezone.utc)
_DATE_MAX = datetime.max.replace(tzinfo=timezone.utc)

ROLES: Dict[str, int] = {"MANAGER": 0, "EVALUATOR": 1, "WORKER": 2}
TASK_STATUSES: Dict[str, int] = {"ACTIVE": 0, "CANCELLED": 1, "FINALIZED": 2}


@dataclass(frozen=True)
class ParamType:
    tag: str
    validate: Callable[[Any], bool]
    encode: Callable[[Any], Any]
    decode: Callable[[Any], Any]


# --- Wire helpers ------------------------------------------------------------


def _is_int(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def _wire_int(wire: Any) -> int:
    """
    Accept the integer shapes adapters commonly return: int, decimal or 0x
    string, or a one-element sequence wrapping either (collapsed to a scalar).
    """
    if isinstance(wire, (list, tuple)):
        if len(wire) != 1:
            raise ValueError(f"expected a scalar or one-element sequence, got {len(wire)} items")
        return _wire_int(wire[0])
    if _is_int(wire):
        return wire
    if isinstance(wire, str):
        s = wire.strip()
        if s.lower().startswith(("0x", "-0x")):
            return int(s, 16)
        return int(s, 10)
    raise ValueError(f"not an integer: {type(wire).__name__}")


# --- Scalars -----------------------------------------------------------------


def _decode_address(wire: Any) -> Optional[str]:
    if wire is None or wire in ("", "0x"):
        return None
    if isinstance(wire, (bytes, bytearray)):
        wire = to_hex(wire)
    return _addr.to_checksum(wire)


def _decode_boolean(wire: Any) -> bool:
    if isinstance(wire, bool):
        return wire
    if _is_int(wire) and wire in (0, 1):
        return bool(wire)
    raise ValueError(f"not a boolean: {wire!r}")


def _validate_number(value: Any) -> bool:
    return _is_int(value) and abs(value) <= MAX_SAFE_INTEGER


def _decode_number(wire: Any) -> int:
    n = _wire_int(wire)
    if abs(n) > MAX_SAFE_INTEGER:
        raise ValueError(f"{n} exceeds the safe integer range; declare the param as bigNumber")
    return n


def _validate_date(value: Any) -> bool:
    if not isinstance(value, datetime) or value.utcoffset() is None:
        return False
    if not _DATE_MIN <= value <= _DATE_MAX:
        return False
    offset = value - _EPOCH
    # 0 on the wire means unset, so the epoch itself is refused
    return offset.microseconds == 0 and offset != timedelta(0)


def _encode_date(value: datetime) -> int:
    offset = value - _EPOCH
    return offset.days * 86400 + offset.seconds


def _decode_date(wire: Any) -> Optional[datetime]:
    seconds = _wire_int(wire)
    if seconds == 0:
        return None
    return _EPOCH + timedelta(seconds=seconds)


def _decode_hex(wire: Any) -> Optional[str]:
    if wire is None:
        return None
    if isinstance(wire, (bytes, bytearray)):
        return to_hex(wire)
    if is_hex(wire):
        return wire
    raise ValueError(f"not a hex string: {wire!r}")


def _validate_ipfs_hash(value: Any) -> bool:
    if not is_base58(value):
        return False
    raw = b58decode(value)
    # an all-zero digest is the wire form of "no hash"
    return len(raw) == 34 and raw.startswith(_MULTIHASH_PREFIX) and any(raw[2:])


def _encode_ipfs_hash(value: str) -> str:
    return to_hex(b58decode(value)[2:])


def _decode_ipfs_hash(wire: Any) -> Optional[str]:
    digest = bytes(wire) if isinstance(wire, (bytes, bytearray)) else from_hex(wire)
    if len(digest) != 32:
        raise ValueError(f"content hash digest must be 32 bytes, got {len(digest)}")
    if not any(digest):
        return None
    return b58encode(_MULTIHASH_PREFIX + digest)


def _validate_token_address(value: Any) -> bool:
    return value is None or value == "0x0" or _addr.is_valid(value)


def _encode_token_address(value: Optional[str]) -> str:
    if value is None or value == "0x0":
        return _addr.ZERO_ADDRESS
    return _addr.to_checksum(value)


def _decode_token_address(wire: Any) -> str:
    if isinstance(wire, (bytes, bytearray)):
        wire = to_hex(wire)
    if wire is None or wire in ("", "0x", "0x0"):
        return _addr.ZERO_ADDRESS
    return _addr.to_checksum(wire)


def _decode_string(wire: Any) -> str:
    if isinstance(wire, str):
        return wire
    if isinstance(wire, (bytes, bytearray)):
        return bytes(wire).rstrip(b"\x00").decode("utf-8")
    raise ValueError(f"not a string: {type(wire).__name__}")


def enum_type(tag: str, members: Mapping[str, int]) -> ParamType:
    """
    Build an enumerated type: host values are member names, wire values the
    integers they map to. Decoding an integer with no member fails.
    """
    by_name = dict(members)
    if len(set(by_name.values())) != len(by_name):
        raise ValueError(f"enum {tag!r} maps two names to the same value")

    def _decode(wire: Any) -> str:
        n = _wire_int(wire)
        for name, value in by_name.items():
            if value == n:
                return name
        raise ValueError(f"{n} is not a member of {tag} {sorted(by_name)}")

    return ParamType(
        tag=tag,
        validate=lambda v: isinstance(v, str) and v in by_name,
        encode=lambda v: by_name[v],
        decode=_decode,
    )


_BUILTINS: List[ParamType] = [
    ParamType("address", _addr.is_valid, _addr.to_checksum, _decode_address),
    ParamType("boolean", lambda v: isinstance(v, bool), lambda v: v, _decode_boolean),
    ParamType("number", _validate_number, lambda v: v, _decode_number),
    ParamType("bigNumber", _is_int, lambda v: v, _wire_int),
    ParamType("date", _validate_date, _encode_date, _decode_date),
    ParamType("hexString", is_hex, lambda v: v, _decode_hex),
    ParamType("ipfsHash", _validate_ipfs_hash, _encode_ipfs_hash, _decode_ipfs_hash),
    ParamType("tokenAddress", _validate_token_address, _encode_token_address, _decode_token_address),
    ParamType("string", lambda v: isinstance(v, str), lambda v: v, _decode_string),
    enum_type("role", ROLES),
    enum_type("taskStatus", TASK_STATUSES),
]


# --- Registry ----------------------------------------------------------------


class TypeRegistry:
    """Tag -> ParamType mapping with validate/encode/decode entry points."""

    def __init__(self, types: Iterable[ParamType] = ()) -> None:
        self._types: Dict[str, ParamType] = {}
        for t in types:
            self.register(t)

    def __contains__(self, tag: object) -> bool:
        return tag in self._types

    def tags(self) -> List[str]:
        return sorted(self._types)

    def copy(self) -> "TypeRegistry":
        return TypeRegistry(self._types.values())

    def register(self, param_type: ParamType, *, replace: bool = False) -> ParamType:
        if not param_type.tag:
            raise ValueError("param type tag must be non-empty")
        if param_type.tag in self._types and not replace:
            raise ValueError(f"type tag already registered: {param_type.tag!r}")
        self._types[param_type.tag] = param_type
        return param_type

    def register_enum(self, tag: str, members: Mapping[str, int], *, replace: bool = False) -> ParamType:
        return self.register(enum_type(tag, members), replace=replace)

    def get(self, tag: str) -> ParamType:
        try:
            return self._types[tag]
        except KeyError:
            raise KeyError(f"unknown parameter type: {tag!r}") from None

    def validate(self, tag: str, value: Any) -> bool:
        try:
            return bool(self.get(tag).validate(value))
        except (TypeError, ValueError):
            return False

    def encode(self, tag: str, value: Any) -> Any:
        if not self.validate(tag, value):
            raise EncodingError(f"value is not a valid {tag}", type_tag=tag, value=value)
        try:
            return self.get(tag).encode(value)
        except (TypeError, ValueError, KeyError) as e:
            raise EncodingError(str(e), type_tag=tag, value=value) from e

    def decode(self, tag: str, wire: Any) -> Any:
        try:
            return self.get(tag).decode(wire)
        except DecodingError:
            raise
        except (TypeError, ValueError, OverflowError) as e:
            raise DecodingError(str(e), type_tag=tag, value=wire) from e


DEFAULT_REGISTRY = TypeRegistry(_BUILTINS)
