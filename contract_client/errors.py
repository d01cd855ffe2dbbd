"""
Typed error classes for the contract client.

Every failure surfaced by the client derives from `ContractClientError`, so
callers can catch a specific failure mode (bad input, failed precondition,
failed send, rejected signature) or everything at once. Each error carries
enough structure (operation, offending parameter, original cause) to decide
whether a retry makes sense.

Taxonomy
--------
- ConstructionError     : bad descriptor, raised while building a client
- InvalidInputError     : caller-supplied value failed type validation
- PreconditionError     : validateEmpty hook refused the input
- EncodingError         : value could not be converted for the wire
- DecodingError         : wire value could not be converted back
- CallFailedError       : read operation failed in the adapter
- SendFailedError       : state-mutating operation failed or reverted
- StaleNonceError       : multisig nonce moved under the operation
- InvalidSignatureError : multisig signature rejected
- MultisigError         : multisig operation used in the wrong state
- RpcError              : JSON-RPC transport or application error
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import IntEnum
from typing import Any, Dict, Optional

__all__ = [
    "ContractClientError",
    "ConstructionError",
    "InvalidInputError",
    "PreconditionError",
    "EncodingError",
    "DecodingError",
    "CallFailedError",
    "SendFailedError",
    "StaleNonceError",
    "InvalidSignatureError",
    "MultisigError",
    "RpcError",
    "JsonRpcCode",
    "from_jsonrpc_error",
]


class ContractClientError(Exception):
    """Base class for all contract client errors."""


def _where(**fields: Optional[str]) -> str:
    parts = [f"{k}={v}" for k, v in fields.items() if v]
    return (" [" + ", ".join(parts) + "]") if parts else ""


@dataclass(slots=True)
class ConstructionError(ContractClientError):
    """Raised when a descriptor or descriptor table is malformed."""

    message: str
    operation: Optional[str] = None
    parameter: Optional[str] = None

    def __str__(self) -> str:  # pragma: no cover - trivial
        where = _where(op=self.operation, param=self.parameter)
        return f"ConstructionError{where}: {self.message}"


@dataclass(slots=True)
class InvalidInputError(ContractClientError):
    """Raised when an input value fails validation for its declared type."""

    message: str
    operation: Optional[str] = None
    parameter: Optional[str] = None
    value: Any = None

    def __str__(self) -> str:  # pragma: no cover - trivial
        where = _where(op=self.operation, param=self.parameter)
        return f"InvalidInputError{where}: {self.message} (value={self.value!r})"


@dataclass(slots=True)
class PreconditionError(ContractClientError):
    """
    Raised when the operation's emptiness/existence check refuses the input.

    No network effect has taken place when this is raised.
    """

    message: str
    operation: Optional[str] = None

    def __str__(self) -> str:  # pragma: no cover - trivial
        return f"PreconditionError{_where(op=self.operation)}: {self.message}"


@dataclass(slots=True)
class EncodingError(ContractClientError):
    """Raised when a host value cannot be converted to its wire form."""

    message: str
    type_tag: Optional[str] = None
    value: Any = None

    def __str__(self) -> str:  # pragma: no cover - trivial
        return f"EncodingError{_where(type=self.type_tag)}: {self.message} (value={self.value!r})"


@dataclass(slots=True)
class DecodingError(ContractClientError):
    """
    Raised when a wire value does not match the declared type or arity.

    This indicates a descriptor/contract version mismatch and is not retryable.
    """

    message: str
    type_tag: Optional[str] = None
    value: Any = None
    operation: Optional[str] = None
    parameter: Optional[str] = None

    def __str__(self) -> str:  # pragma: no cover - trivial
        where = _where(op=self.operation, param=self.parameter, type=self.type_tag)
        return f"DecodingError{where}: {self.message} (value={self.value!r})"


@dataclass(slots=True)
class CallFailedError(ContractClientError):
    """Raised when the adapter fails a read operation (revert, network error)."""

    message: str
    operation: Optional[str] = None
    cause: Optional[BaseException] = None

    def __str__(self) -> str:  # pragma: no cover - trivial
        cause = f" (cause={self.cause!r})" if self.cause is not None else ""
        return f"CallFailedError{_where(op=self.operation)}: {self.message}{cause}"


@dataclass(slots=True)
class SendFailedError(ContractClientError):
    """
    Raised when a state-mutating operation is rejected, reverted or cannot be
    submitted. No partial result is returned alongside it.

    Fields:
      - operation: operation name
      - cause: underlying adapter exception, if any
      - receipt: the failing receipt when the transaction was mined but reverted
    """

    message: str
    operation: Optional[str] = None
    cause: Optional[BaseException] = None
    receipt: Any = None

    def __str__(self) -> str:  # pragma: no cover - trivial
        cause = f" (cause={self.cause!r})" if self.cause is not None else ""
        return f"{type(self).__name__}{_where(op=self.operation)}: {self.message}{cause}"


@dataclass(slots=True)
class StaleNonceError(SendFailedError):
    """Raised when a multisig nonce is no longer current."""

    expected: Optional[int] = None
    observed: Optional[int] = None


@dataclass(slots=True)
class InvalidSignatureError(ContractClientError):
    """
    Raised when a multisig signature does not verify against the payload or
    its signer is not a required signee. The collection process continues.
    """

    message: str
    signer: Optional[str] = None

    def __str__(self) -> str:  # pragma: no cover - trivial
        return f"InvalidSignatureError{_where(signer=self.signer)}: {self.message}"


@dataclass(slots=True)
class MultisigError(ContractClientError):
    """Raised when a multisig operation is driven from the wrong state."""

    message: str
    operation: Optional[str] = None
    state: Optional[str] = None

    def __str__(self) -> str:  # pragma: no cover - trivial
        return f"MultisigError{_where(op=self.operation, state=self.state)}: {self.message}"


class JsonRpcCode(IntEnum):
    PARSE_ERROR = -32700
    INVALID_REQUEST = -32600
    METHOD_NOT_FOUND = -32601
    INVALID_PARAMS = -32602
    INTERNAL_ERROR = -32603
    SERVER_ERROR = -32000
    TRANSPORT_ERROR = -32098


@dataclass(slots=True)
class RpcError(ContractClientError):
    """Raised when a JSON-RPC call returns an error object or the transport fails."""

    code: int
    message: str
    method: Optional[str] = None
    data: Optional[Any] = None
    http_status: Optional[int] = None

    def __str__(self) -> str:  # pragma: no cover - trivial
        parts = [f"RPC[{self.method or '-'}] code={self.code} msg={self.message!r}"]
        if self.http_status is not None:
            parts.append(f"http={self.http_status}")
        if self.data is not None:
            parts.append(f"data={self.data!r}")
        return " ".join(parts)

    @property
    def code_enum(self) -> Optional[JsonRpcCode]:
        try:
            return JsonRpcCode(self.code)
        except ValueError:
            return None


def from_jsonrpc_error(
    err_obj: Dict[str, Any],
    *,
    method: Optional[str] = None,
    http_status: Optional[int] = None,
) -> RpcError:
    """
    Convert a JSON-RPC error object into RpcError.

    `err_obj` should resemble: {"code": int, "message": str, "data": any?}
    """
    return RpcError(
        code=int(err_obj.get("code", JsonRpcCode.SERVER_ERROR)),
        message=str(err_obj.get("message", "Unknown JSON-RPC error")),
        method=method,
        data=err_obj.get("data"),
        http_status=http_status,
    )
