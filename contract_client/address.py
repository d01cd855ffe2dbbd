"""
contract_client.address
=======================

Address validation and formatting helpers.

Addresses are 20-byte, 0x-prefixed hex strings with the EIP-55 mixed-case
checksum. Validity checking is delegated to `eth_utils`; this module only
adds the small conveniences the client needs on top:

- is_valid(address) -> bool
- to_checksum(address) -> str
- is_zero(address) -> bool
- same_address(a, b) -> bool
- ZERO_ADDRESS (the "native asset" sentinel for token addresses)
"""

from __future__ import annotations

from typing import Any, Optional

from eth_utils import is_address, is_checksum_address, to_checksum_address

__all__ = [
    "ZERO_ADDRESS",
    "AddressError",
    "is_valid",
    "to_checksum",
    "is_zero",
    "same_address",
]

ZERO_ADDRESS = "0x0000000000000000000000000000000000000000"


class AddressError(ValueError):
    """Raised for malformed addresses."""


def is_valid(address: Any) -> bool:
    """
    True for a 0x-prefixed 20-byte hex string. Mixed-case input must carry a
    valid checksum; all-lower and all-upper input is accepted as is.
    """
    if not (isinstance(address, str) and address.startswith(("0x", "0X")) and is_address(address)):
        return False
    body = address[2:]
    if body.islower() or body.isupper():
        return True
    return is_checksum_address("0x" + body)


def to_checksum(address: str) -> str:
    """Return the EIP-55 checksummed form. Raises AddressError on invalid input."""
    if not is_valid(address):
        raise AddressError(f"invalid address: {address!r}")
    return to_checksum_address(address)


def is_zero(address: Optional[str]) -> bool:
    return is_valid(address) and int(address, 16) == 0  # type: ignore[arg-type]


def same_address(a: Optional[str], b: Optional[str]) -> bool:
    """Case-insensitive equality of two valid addresses; False if either is invalid."""
    if not (is_valid(a) and is_valid(b)):
        return False
    return a.lower() == b.lower()  # type: ignore[union-attr]
