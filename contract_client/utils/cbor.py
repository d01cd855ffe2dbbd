"""
Deterministic (canonical) CBOR helpers.

Multisig payloads must be byte-for-byte identical for every party that signs
them, whatever process or machine produced them. We therefore serialize with
`cbor2` in canonical mode (RFC 8949 deterministic map ordering, minimal
integer encoding) and expose a tiny API over it.

Supported types are whatever `cbor2` supports; in practice payloads contain
None, bool, int (any size, big ints become tagged bignums), str, bytes, lists
and str-keyed maps.

API
---
- dumps(obj) -> bytes
- loads(data) -> object
- dump_hex(obj, prefix=True) -> str
- CBOREncodeError / CBORDecodeError
"""

from __future__ import annotations

from typing import Any

import cbor2

from .bytes import BytesLike, ensure_bytes, to_hex


class CBOREncodeError(ValueError):
    pass


class CBORDecodeError(ValueError):
    pass


def dumps(obj: Any) -> bytes:
    """Encode *obj* to deterministic CBOR bytes."""
    try:
        return cbor2.dumps(obj, canonical=True)
    except (cbor2.CBOREncodeError, TypeError, ValueError) as e:
        raise CBOREncodeError(str(e)) from e


def loads(data: BytesLike) -> Any:
    """Decode CBOR *data* (bytes-like) into Python objects."""
    try:
        return cbor2.loads(ensure_bytes(data))
    except (cbor2.CBORDecodeError, ValueError) as e:
        raise CBORDecodeError(str(e)) from e


def dump_hex(obj: Any, *, prefix: bool = True) -> str:
    """Convenience: encode and return hex string."""
    return to_hex(dumps(obj), prefix=prefix)


__all__ = [
    "dumps",
    "loads",
    "dump_hex",
    "CBOREncodeError",
    "CBORDecodeError",
]
