"""
contract_client.contracts.multisig
==================================

Operations that need every current stakeholder to co-sign before they run.

A `MultisigSender` turns input values into a `MultisigOperation`, which moves
through these states:

    BUILDING -> AWAITING_SIGNATURES -> READY -> SUBMITTED
        |                  |                |
        +------------------+----------------+--> FAILED

BUILDING
    inputs are defaulted, checked and encoded as for any send; the required
    signees are resolved (invalid and zero addresses dropped) and the current
    nonce for the operation's nonce key is read from the contract.
AWAITING_SIGNATURES
    every required signee signs the canonical payload. Signatures may arrive
    in any order, from any process (see `to_json` / `add_signatures_from_json`).
    A signature that does not verify, or whose signer is not required, is
    rejected with InvalidSignatureError and not stored.
READY
    all required signees have signed. Further valid signatures are no-ops.
SUBMITTED
    the signatures were attached to exactly one submission through the
    multisig entrypoint (`via`), handled like a plain send from there on.
FAILED
    a check, the nonce re-read or the submission failed; `error` keeps the
    original exception.

Canonical payload
-----------------
Deterministic CBOR of {"contract", "function", "args", "nonce"}, where args
are the encoded (wire) arguments. `payload_hash` is its keccak-256 and
signers produce EIP-191 signatures over that hash (`wallet.signer`).

Nonces
------
Nonce keys are the values of the `nonce_input` parameters (e.g. the task
id). The sender remembers the highest nonce it submitted per key and refuses
to build or submit with a nonce that is not above it; right before
submission the nonce is read again and must still equal the signed one.
Both failures raise StaleNonceError. The check is optimistic: nothing locks
the nonce between the re-read and the submission.
"""

from __future__ import annotations

import asyncio
import enum
import inspect
import json
import logging
from types import MappingProxyType
from typing import (
    TYPE_CHECKING,
    Any,
    Awaitable,
    Callable,
    Dict,
    Iterable,
    List,
    Mapping,
    Optional,
    Sequence,
    Tuple,
    Union,
)

from .. import address as _addr
from ..errors import (
    CallFailedError,
    ConstructionError,
    ContractClientError,
    DecodingError,
    InvalidSignatureError,
    MultisigError,
    StaleNonceError,
)
from ..utils.bytes import to_hex
from ..utils.cbor import dumps as cbor_dumps
from ..wallet.signer import Signature, payload_digest, recover_signer
from .caller import Caller
from .descriptor import OperationDescriptor
from .sender import Sender, SendResult

if TYPE_CHECKING:  # pragma: no cover
    from .client import ContractClient

log = logging.getLogger(__name__)

__all__ = [
    "MultisigState",
    "MultisigOperation",
    "MultisigSender",
    "SigneeResolver",
    "canonical_payload",
    "role_signees",
]

SigneeResolver = Callable[[Mapping[str, Any]], Union[Iterable[Any], Awaitable[Iterable[Any]]]]
SignatureLike = Union[Signature, Mapping[str, Any]]


class MultisigState(str, enum.Enum):
    BUILDING = "BUILDING"
    AWAITING_SIGNATURES = "AWAITING_SIGNATURES"
    READY = "READY"
    SUBMITTED = "SUBMITTED"
    FAILED = "FAILED"


def canonical_payload(contract: str, function_name: str, args: Sequence[Any], nonce: int) -> bytes:
    """Bytes every co-signer signs; identical for identical inputs on any machine."""
    return cbor_dumps(
        {
            "contract": _addr.to_checksum(contract),
            "function": function_name,
            "args": list(args),
            "nonce": int(nonce),
        }
    )


def _as_signature(sig: SignatureLike) -> Signature:
    if isinstance(sig, Signature):
        return sig
    if isinstance(sig, Mapping):
        try:
            return Signature.from_dict(sig)
        except KeyError as e:
            raise InvalidSignatureError(f"signature entry missing {e.args[0]!r}") from e
    raise InvalidSignatureError(f"not a signature: {type(sig).__name__}")


def _param_name(entry: Any) -> Optional[str]:
    # plain names, or the (name, type) declarations the inputs were built from
    if isinstance(entry, str):
        return entry
    if isinstance(entry, (list, tuple)) and entry:
        return entry[0]
    return getattr(entry, "name", None)


def _load_json(data: Union[str, bytes, Mapping[str, Any]]) -> Mapping[str, Any]:
    if isinstance(data, Mapping):
        return data
    try:
        obj = json.loads(data)
    except ValueError as e:
        raise MultisigError(f"invalid operation JSON: {e}") from e
    if not isinstance(obj, Mapping):
        raise MultisigError("operation JSON must be an object")
    return obj


class MultisigOperation:
    """
    One multisig attempt: fixed inputs, fixed nonce, growing signature set.

    Instances are created by `MultisigSender.start_operation` and are owned
    by whoever drives them; they are never shared between attempts.
    """

    def __init__(
        self,
        sender: "MultisigSender",
        input_values: Mapping[str, Any],
        args: Sequence[Any],
        required_signees: Sequence[str],
        nonce: int,
    ) -> None:
        self._sender = sender
        self._state = MultisigState.BUILDING
        self.input_values: Mapping[str, Any] = MappingProxyType(dict(input_values))
        self.args: Tuple[Any, ...] = tuple(args)
        self.required_signees: Tuple[str, ...] = tuple(required_signees)
        self.nonce = int(nonce)
        self.payload = canonical_payload(sender.client.address, sender.function_name, self.args, self.nonce)
        self.payload_hash = to_hex(payload_digest(self.payload))
        self._signatures: Dict[str, Signature] = {}
        self._error: Optional[BaseException] = None
        self._submitting = False
        self._state = self._collecting_state()

    def __repr__(self) -> str:  # pragma: no cover - trivial
        return (
            f"<MultisigOperation {self._sender.name} nonce={self.nonce} state={self._state.value} "
            f"signed={len(self._signatures)}/{len(self.required_signees)}>"
        )

    # --- state -----------------------------------------------------------

    @property
    def name(self) -> str:
        return self._sender.name

    @property
    def state(self) -> MultisigState:
        return self._state

    @property
    def error(self) -> Optional[BaseException]:
        return self._error

    @property
    def signatures(self) -> Mapping[str, Signature]:
        return MappingProxyType(dict(self._signatures))

    @property
    def missing_signees(self) -> Tuple[str, ...]:
        return tuple(a for a in self.required_signees if a not in self._signatures)

    @property
    def nonce_key(self) -> Tuple[Any, ...]:
        return self._sender.nonce_key(self.args)

    def _collecting_state(self) -> MultisigState:
        return MultisigState.AWAITING_SIGNATURES if self.missing_signees else MultisigState.READY

    def _fail(self, error: BaseException) -> None:
        self._state = MultisigState.FAILED
        self._error = error
        log.warning("multisig %s nonce=%s failed: %s", self.name, self.nonce, error)

    def _require_collecting(self) -> None:
        if self._state in (MultisigState.AWAITING_SIGNATURES, MultisigState.READY) and not self._submitting:
            return
        state = "SUBMITTING" if self._submitting else self._state.value
        raise MultisigError("operation no longer accepts signatures", operation=self.name, state=state)

    # --- signatures ------------------------------------------------------

    def add_signature(self, signature: SignatureLike) -> MultisigState:
        """
        Verify and store one signature. Raises InvalidSignatureError when it
        does not recover to its claimed signer or the signer is not required;
        the operation itself is unaffected by a rejection.
        """
        self._require_collecting()
        sig = _as_signature(signature)
        try:
            recovered = recover_signer(self.payload, sig.signature)
        except (TypeError, ValueError) as e:
            log.warning("multisig %s: malformed signature from %s", self.name, sig.signer)
            raise InvalidSignatureError(f"malformed signature: {e}", signer=sig.signer) from e
        if not _addr.same_address(recovered, sig.signer):
            log.warning("multisig %s: signature by %s claims to be %s", self.name, recovered, sig.signer)
            raise InvalidSignatureError("signature does not match payload and signer", signer=sig.signer)
        if recovered not in self.required_signees:
            log.warning("multisig %s: %s is not a required signee", self.name, recovered)
            raise InvalidSignatureError("signer is not a required signee", signer=recovered)
        if recovered not in self._signatures:
            self._signatures[recovered] = Signature(signer=recovered, signature=sig.signature)
            self._state = self._collecting_state()
            log.debug("multisig %s: signed by %s (%d missing)", self.name, recovered, len(self.missing_signees))
        return self._state

    async def sign(self, signer: Any = None) -> Signature:
        """Sign with `signer` (anything with `async sign(payload)`), or the adapter's signing capability."""
        self._require_collecting()
        source = signer if signer is not None else self._sender.client.adapter
        sig = await source.sign(self.payload)
        self.add_signature(sig)
        return sig

    def add_signatures_from_json(self, data: Union[str, bytes, Mapping[str, Any]]) -> List[str]:
        """
        Merge signatures exported by another party's `to_json()`.

        The snapshot must describe this very payload. Bad entries are logged
        and skipped individually; returns the signers newly accepted.
        """
        snap = _load_json(data)
        if snap.get("payloadHash") != self.payload_hash:
            raise MultisigError("snapshot is for a different payload", operation=self.name, state=self._state.value)
        accepted: List[str] = []
        for entry in snap.get("signatures") or ():
            before = len(self._signatures)
            try:
                self.add_signature(entry)
            except InvalidSignatureError as e:
                log.warning("multisig %s: skipped signature: %s", self.name, e)
                continue
            if len(self._signatures) > before:
                accepted.append(_as_signature(entry).signer)
        return accepted

    def to_json(self) -> str:
        """Snapshot for out-of-band exchange; carries everything needed to restore the operation."""
        return json.dumps(
            {
                "operation": self.name,
                "contract": self._sender.client.address,
                "function": self._sender.function_name,
                "args": list(self.args),
                "nonce": self.nonce,
                "payloadHash": self.payload_hash,
                "requiredSignees": list(self.required_signees),
                "signatures": [s.to_dict() for s in self._signatures.values()],
                "state": self._state.value,
            },
            sort_keys=True,
        )

    # --- submission ------------------------------------------------------

    async def send(self) -> SendResult:
        """Submit once the quorum is complete. Never submits twice."""
        if self._state is MultisigState.FAILED and self._error is not None:
            raise self._error
        if self._state is MultisigState.SUBMITTED or self._submitting:
            raise MultisigError("operation was already submitted", operation=self.name, state=self._state.value)
        if self._state is not MultisigState.READY:
            raise MultisigError(
                f"missing signatures from {list(self.missing_signees)}",
                operation=self.name,
                state=self._state.value,
            )
        self._sender.check_event_handlers()
        self._submitting = True
        try:
            await self._sender.check_nonce(self.nonce_key, self.args, self.nonce)
            receipt = await self._sender._submit(
                self.args,
                signatures=[self._signatures[a] for a in sorted(self._signatures, key=str.lower)],
                via=self._sender.multisig_function_name,
            )
        except Exception as e:
            self._fail(e)
            raise
        finally:
            self._submitting = False
        self._state = MultisigState.SUBMITTED
        self._sender.record_nonce(self.nonce_key, self.nonce)
        log.info("multisig %s submitted nonce=%s tx=%s", self.name, self.nonce, receipt.tx_hash)
        return self._sender._build_result(self.input_values, receipt)


class MultisigSender(Sender):
    kind = "multisig"

    def __init__(
        self,
        client: "ContractClient",
        descriptor: OperationDescriptor,
        *,
        required_signees: SigneeResolver,
        nonce_function_name: str,
        nonce_input: Iterable[Any] = (),
        multisig_function_name: str,
    ) -> None:
        super().__init__(client, descriptor)
        if not callable(required_signees):
            raise ConstructionError("required_signees must be callable", operation=descriptor.name)
        for label, fn in (("nonceFunctionName", nonce_function_name), ("multisigFunctionName", multisig_function_name)):
            if not isinstance(fn, str) or not fn.strip():
                raise ConstructionError(f"{label} must be non-empty", operation=descriptor.name)
        names: List[str] = []
        for entry in nonce_input:
            name = _param_name(entry)
            if name not in descriptor.input_names:
                raise ConstructionError("nonce input is not an operation input", operation=descriptor.name, parameter=str(name))
            names.append(name)
        self.resolve_signees_fn = required_signees
        self.nonce_function_name = nonce_function_name
        self.nonce_input: Tuple[str, ...] = tuple(names)
        self.multisig_function_name = multisig_function_name
        self._positions = tuple(descriptor.input_names.index(n) for n in self.nonce_input)
        self._last_nonce: Dict[Tuple[Any, ...], int] = {}

    # --- nonce -----------------------------------------------------------

    def nonce_key(self, args: Sequence[Any]) -> Tuple[Any, ...]:
        return tuple(args[i] for i in self._positions)

    def last_nonce(self, key: Tuple[Any, ...]) -> Optional[int]:
        return self._last_nonce.get(key)

    def record_nonce(self, key: Tuple[Any, ...], nonce: int) -> None:
        prev = self._last_nonce.get(key)
        if prev is None or nonce > prev:
            self._last_nonce[key] = nonce

    async def fetch_nonce(self, args: Sequence[Any]) -> int:
        key = self.nonce_key(args)
        log.debug("nonce %s.%s key=%r", self.client.name, self.nonce_function_name, key)
        try:
            raw = await self.client.adapter.read(self.client.address, self.nonce_function_name, list(key))
        except Exception as e:
            raise CallFailedError(f"nonce read failed: {e}", operation=self.name, cause=e) from e
        try:
            return self.registry.decode("bigNumber", raw)
        except DecodingError as e:
            e.operation = self.name
            e.parameter = "nonce"
            raise

    def _ensure_fresh(self, key: Tuple[Any, ...], nonce: int) -> None:
        last = self._last_nonce.get(key)
        if last is not None and nonce <= last:
            raise StaleNonceError(
                f"nonce {nonce} is not above last submitted nonce {last}",
                operation=self.name,
                expected=last + 1,
                observed=nonce,
            )

    async def check_nonce(self, key: Tuple[Any, ...], args: Sequence[Any], nonce: int) -> None:
        self._ensure_fresh(key, nonce)
        current = await self.fetch_nonce(args)
        if current != nonce:
            raise StaleNonceError(
                f"nonce moved from {nonce} to {current} since the operation was signed",
                operation=self.name,
                expected=nonce,
                observed=current,
            )

    # --- signees ---------------------------------------------------------

    async def resolve_signees(self, values: Mapping[str, Any]) -> List[str]:
        try:
            resolved = self.resolve_signees_fn(values)
            if inspect.isawaitable(resolved):
                resolved = await resolved
            candidates = list(resolved or ())
        except ContractClientError:
            raise
        except Exception as e:
            raise MultisigError(f"signee resolution failed: {e}", operation=self.name, state="BUILDING") from e
        signees: List[str] = []
        for candidate in candidates:
            if not _addr.is_valid(candidate) or _addr.is_zero(candidate):
                log.warning("multisig %s: discarding signee %r", self.name, candidate)
                continue
            checksummed = _addr.to_checksum(candidate)
            if checksummed not in signees:
                signees.append(checksummed)
        return signees

    # --- operations ------------------------------------------------------

    async def start_operation(self, input_values: Optional[Mapping[str, Any]] = None) -> MultisigOperation:
        """BUILDING: check and encode inputs, resolve signees, fetch the nonce."""
        values, args = await self._prepare(input_values)
        signees = await self.resolve_signees(values)
        nonce = await self.fetch_nonce(args)
        self._ensure_fresh(self.nonce_key(args), nonce)
        op = MultisigOperation(self, values, args, signees, nonce)
        log.debug("multisig %s started nonce=%s signees=%s", self.name, nonce, list(signees))
        return op

    async def restore_operation(self, data: Union[str, bytes, Mapping[str, Any]]) -> MultisigOperation:
        """
        Rebuild an operation from `MultisigOperation.to_json()`.

        BUILDING runs again against the current chain state; the nonce and
        payload must still match the snapshot, then its signatures are merged.
        """
        snap = _load_json(data)
        if snap.get("operation") != self.name:
            raise MultisigError(f"snapshot is for {snap.get('operation')!r}", operation=self.name)
        args = snap.get("args")
        if not isinstance(args, list):
            raise MultisigError("snapshot has no argument list", operation=self.name)
        values = self.descriptor.decode_input(args, self.registry)
        op = await self.start_operation(values)
        if op.nonce != snap.get("nonce"):
            raise StaleNonceError(
                "snapshot nonce is no longer current",
                operation=self.name,
                expected=snap.get("nonce"),
                observed=op.nonce,
            )
        if op.payload_hash != snap.get("payloadHash"):
            raise MultisigError("snapshot payload does not match the rebuilt operation", operation=self.name)
        op.add_signatures_from_json(snap)
        return op

    async def send(
        self,
        input_values: Optional[Mapping[str, Any]] = None,
        *,
        signers: Iterable[Any] = (),
        signatures: Iterable[SignatureLike] = (),
    ) -> SendResult:
        """
        One-shot: start, collect the given signatures and signers, submit.
        Raises MultisigError without submitting if the quorum is incomplete.
        """
        op = await self.start_operation(input_values)
        for sig in signatures:
            op.add_signature(sig)
        for signer in signers:
            await op.sign(signer)
        return await op.send()


def role_signees(
    caller: Caller,
    roles: Sequence[str],
    *,
    id_field: str = "taskId",
    role_field: str = "role",
    address_field: str = "address",
) -> SigneeResolver:
    """
    Resolver reading one role holder per role, e.g. the task's MANAGER and
    WORKER: `caller.call({id_field: <id>, role_field: role})[address_field]`.
    """
    roles = tuple(roles)

    async def resolve(values: Mapping[str, Any]) -> List[Any]:
        results = await asyncio.gather(
            *(caller.call({id_field: values[id_field], role_field: role}) for role in roles)
        )
        return [r.get(address_field) for r in results]

    return resolve
