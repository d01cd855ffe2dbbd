"""
contract_client.wallet
======================

Signing helpers for multisig co-signers:

- LocalSigner: in-process key that signs canonical multisig payloads.
- Signature: (signer, signature) pair exchanged between parties.
- recover_signer: address that produced a signature over a payload.
"""

from .signer import LocalSigner, Signature, payload_digest, recover_signer

__all__ = [
    "LocalSigner",
    "Signature",
    "payload_digest",
    "recover_signer",
]
