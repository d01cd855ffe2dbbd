"""
Base58 codec (Bitcoin alphabet).

A tiny self-contained implementation used for content-addressed identifiers
(IPFS CIDv0 "Qm..." hashes). Leading zero bytes map to leading '1'
characters and back, so the codec is lossless for any byte string.

Helpers
-------
- b58encode(data) -> str
- b58decode(s) -> bytes
- is_base58(s) -> bool
"""

from __future__ import annotations

from typing import Union

__all__ = [
    "ALPHABET",
    "Base58Error",
    "b58encode",
    "b58decode",
    "is_base58",
]

ALPHABET = "123456789ABCDEFGHJKLMNPQRSTUVWXYZabcdefghijkmnopqrstuvwxyz"
_ALPHABET_REV = {c: i for i, c in enumerate(ALPHABET)}


class Base58Error(ValueError):
    pass


def b58encode(data: Union[bytes, bytearray]) -> str:
    """Encode bytes to a base58 string."""
    raw = bytes(data)
    n = int.from_bytes(raw, "big")
    out = []
    while n > 0:
        n, rem = divmod(n, 58)
        out.append(ALPHABET[rem])
    # leading zero bytes are not represented by the integer value
    pad = len(raw) - len(raw.lstrip(b"\x00"))
    return "1" * pad + "".join(reversed(out))


def b58decode(s: str) -> bytes:
    """Decode a base58 string to bytes. Raises Base58Error on foreign characters."""
    if not isinstance(s, str):
        raise Base58Error("base58 input must be a string")
    n = 0
    for ch in s:
        try:
            n = n * 58 + _ALPHABET_REV[ch]
        except KeyError:
            raise Base58Error(f"invalid base58 character: {ch!r}") from None
    body = n.to_bytes((n.bit_length() + 7) // 8, "big") if n else b""
    pad = len(s) - len(s.lstrip("1"))
    return b"\x00" * pad + body


def is_base58(s: object) -> bool:
    return isinstance(s, str) and bool(s) and all(ch in _ALPHABET_REV for ch in s)
