"""
Utility helpers for the contract client.

Re-exports:
- bytes: hex helpers
- base58: base58 (Bitcoin alphabet) codec used by content hashes
- cbor: canonical CBOR serialization for multisig payloads
"""

from .base58 import b58decode, b58encode
from .bytes import ensure_bytes, from_hex, is_hex, to_hex
from .cbor import dumps as cbor_dumps
from .cbor import loads as cbor_loads

__all__ = [
    # bytes
    "to_hex",
    "from_hex",
    "is_hex",
    "ensure_bytes",
    # base58
    "b58encode",
    "b58decode",
    # cbor
    "cbor_dumps",
    "cbor_loads",
]
