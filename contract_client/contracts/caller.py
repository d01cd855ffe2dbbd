"""
contract_client.contracts.caller
================================

Read-only contract operations.

`Caller.call(input_values)`:

1. merge input values with the descriptor defaults (explicit values win)
2. run the validateEmpty hook, if any; False or an exception is a
   PreconditionError and nothing is sent to the network
3. validate + encode every input through the type registry
   (InvalidInputError names the offending parameter)
4. adapter.read(...); any adapter failure becomes CallFailedError
5. decode the positional result into {output name: value}
6. add echoed identifying inputs (e.g. taskId -> id)

Calls have no side effects and may be retried or issued concurrently.
"""

from __future__ import annotations

import inspect
import logging
from typing import TYPE_CHECKING, Any, Dict, List, Mapping, Optional, Tuple

from ..errors import CallFailedError, PreconditionError
from ..types.registry import TypeRegistry
from .descriptor import OperationDescriptor

if TYPE_CHECKING:  # pragma: no cover
    from .client import ContractClient

log = logging.getLogger(__name__)

__all__ = ["ContractMethod", "Caller"]


class ContractMethod:
    """Common base: an operation descriptor bound to the client that owns it."""

    kind = "method"

    def __init__(self, client: "ContractClient", descriptor: OperationDescriptor) -> None:
        self.client = client
        self.descriptor = descriptor

    @property
    def name(self) -> str:
        return self.descriptor.name

    @property
    def function_name(self) -> str:
        return self.descriptor.function_name

    @property
    def registry(self) -> TypeRegistry:
        return self.client.registry

    def __repr__(self) -> str:  # pragma: no cover - trivial
        return f"<{type(self).__name__} {self.client.name}.{self.name}>"

    async def _check_precondition(self, values: Mapping[str, Any]) -> None:
        hook = self.descriptor.validate_empty
        if hook is None:
            return
        try:
            ok = hook(values)
            if inspect.isawaitable(ok):
                ok = await ok
        except Exception as e:
            raise PreconditionError(str(e) or type(e).__name__, operation=self.name) from e
        if not ok:
            raise PreconditionError("input refused by validateEmpty", operation=self.name)

    async def _prepare(self, input_values: Optional[Mapping[str, Any]]) -> Tuple[Dict[str, Any], List[Any]]:
        """Steps shared by every kind: defaults, precondition, validate + encode."""
        values = self.descriptor.merge_input(input_values)
        await self._check_precondition(values)
        args = self.descriptor.encode_input(values, self.registry)
        return values, args


class Caller(ContractMethod):
    kind = "caller"

    async def call(self, input_values: Optional[Mapping[str, Any]] = None) -> Dict[str, Any]:
        values, args = await self._prepare(input_values)
        log.debug("call %s.%s args=%r", self.client.name, self.function_name, args)
        try:
            raw = await self.client.adapter.read(self.client.address, self.function_name, args)
        except Exception as e:
            raise CallFailedError(str(e) or type(e).__name__, operation=self.name, cause=e) from e
        result = self.descriptor.echoed(values)
        result.update(self.descriptor.decode_output(raw, self.registry))
        return result
