"""
Local signing capability for multisig payloads.

Multisig co-signers sign the keccak-256 digest of the canonical payload as an
EIP-191 personal message. Any party holding a key can produce a signature
with `LocalSigner`; anyone can check it with `recover_signer`, which returns
the checksummed address that produced it.

Usage:
    signer = LocalSigner.from_key("0x...")
    sig = await signer.sign(payload)           # Signature(signer, signature)
    assert recover_signer(payload, sig.signature) == signer.address
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Mapping, Union

from eth_account import Account
from eth_account.messages import encode_defunct
from eth_account.signers.local import LocalAccount
from eth_utils import keccak

from .. import address as _addr
from ..utils.bytes import BytesLike, ensure_bytes, to_hex

__all__ = [
    "Signature",
    "LocalSigner",
    "payload_digest",
    "recover_signer",
]


@dataclass(frozen=True)
class Signature:
    """A signer address plus its 65-byte (r, s, v) signature as 0x hex."""

    signer: str
    signature: str

    def to_dict(self) -> Dict[str, str]:
        return {"signer": self.signer, "signature": self.signature}

    @classmethod
    def from_dict(cls, d: Mapping[str, Any]) -> "Signature":
        return cls(signer=str(d["signer"]), signature=str(d["signature"]))


def payload_digest(payload: BytesLike) -> bytes:
    return keccak(bytes(payload))


def _signable(payload: BytesLike):
    return encode_defunct(primitive=payload_digest(payload))


def recover_signer(payload: BytesLike, signature: Union[BytesLike, str]) -> str:
    """
    Recover the address that signed *payload*. Raises ValueError on a
    malformed signature; a well-formed signature by another key simply
    recovers a different address.
    """
    sig = ensure_bytes(signature)
    if len(sig) != 65:
        raise ValueError(f"signature must be 65 bytes, got {len(sig)}")
    try:
        recovered = Account.recover_message(_signable(payload), signature=sig)
    except Exception as e:
        raise ValueError(f"unrecoverable signature: {e}") from e
    return _addr.to_checksum(recovered)


class LocalSigner:
    """An in-process secp256k1 key that signs multisig payloads."""

    def __init__(self, account: LocalAccount) -> None:
        self._account = account

    @classmethod
    def from_key(cls, private_key: Union[str, bytes]) -> "LocalSigner":
        return cls(Account.from_key(private_key))

    @classmethod
    def create(cls) -> "LocalSigner":
        """Fresh random key; handy for tests and throwaway co-signers."""
        return cls(Account.create())

    @property
    def address(self) -> str:
        return _addr.to_checksum(self._account.address)

    def sign_payload(self, payload: BytesLike) -> Signature:
        signed = self._account.sign_message(_signable(payload))
        return Signature(signer=self.address, signature=to_hex(bytes(signed.signature)))

    async def sign(self, payload: BytesLike) -> Signature:
        return self.sign_payload(payload)

    def __repr__(self) -> str:  # pragma: no cover - trivial
        return f"LocalSigner({self.address})"
