"""
contract_client.contracts.client
================================

`ContractClient`: one deployed contract, its operations and its events.

The client owns the shared context (adapter, contract address, type
registry, config) and a registry of operations built from declarative
descriptors. Operations are reachable as attributes:

    client = TaskClient(adapter, "0x5FbDB2315678afecb367f032d93F642f64180aa3")
    task = await client.getTask.call({"taskId": 1})
    result = await client.createTask.send({"specificationHash": "Qm..."})
    op = await client.setTaskBrief.start_operation({"taskId": 1, "specificationHash": "Qm..."})
    async for log in client.events.TaskAdded.stream():
        ...

Contract-specific clients subclass and declare their operations in
`initialize_contract_methods()`, or build everything from a table:

    client = ContractClient.from_table(adapter, address, "colony.yaml")

Descriptors are immutable once added and a failed invocation never changes
the client, so one client can serve many concurrent operations.
"""

from __future__ import annotations

import logging
from pathlib import Path
from types import MappingProxyType
from typing import Any, Dict, Iterable, Mapping, Optional, Union

from .. import address as _addr
from ..adapters.base import ChainAdapter
from ..config import ClientConfig
from ..errors import ConstructionError
from ..types.params import ParamLike
from ..types.registry import DEFAULT_REGISTRY, TypeRegistry
from .caller import Caller, ContractMethod
from .descriptor import EventHandlersLike, OperationDescriptor, ValidateEmpty
from .events import Event, EventsNamespace
from .multisig import MultisigSender, SigneeResolver
from .sender import Sender

log = logging.getLogger(__name__)

__all__ = ["ContractClient"]


class ContractClient:
    def __init__(
        self,
        adapter: ChainAdapter,
        address: str,
        *,
        registry: Optional[TypeRegistry] = None,
        name: Optional[str] = None,
        config: Optional[ClientConfig] = None,
        table: Union[Mapping[str, Any], str, Path, None] = None,
        related: Optional[Mapping[str, "ContractClient"]] = None,
    ) -> None:
        if adapter is None:
            raise ConstructionError("a chain adapter is required")
        if not _addr.is_valid(address):
            raise ConstructionError(f"invalid contract address: {address!r}")
        self.adapter = adapter
        self.address = _addr.to_checksum(address)
        self.registry = registry if registry is not None else DEFAULT_REGISTRY
        self.name = name or type(self).__name__
        self.config = config if config is not None else ClientConfig()
        self._operations: Dict[str, ContractMethod] = {}
        self.events = EventsNamespace()
        self.initialize_contract_methods()
        if table is not None:
            from .table import apply_table

            apply_table(self, table, related=related)
        log.debug("%s at %s: %d operations, %d events", self.name, self.address, len(self._operations), len(self.events))

    @classmethod
    def from_table(
        cls,
        adapter: ChainAdapter,
        address: str,
        table: Union[Mapping[str, Any], str, Path],
        *,
        related: Optional[Mapping[str, "ContractClient"]] = None,
        **kwargs: Any,
    ) -> "ContractClient":
        return cls(adapter, address, table=table, related=related, **kwargs)

    def initialize_contract_methods(self) -> None:
        """Override to declare operations and events; called once from __init__."""

    def __repr__(self) -> str:  # pragma: no cover - trivial
        return f"<{type(self).__name__} {self.name} at {self.address}>"

    # --- lookup ----------------------------------------------------------

    def __getattr__(self, name: str) -> ContractMethod:
        # only reached when normal attribute lookup fails
        operations = self.__dict__.get("_operations")
        if operations is not None and name in operations:
            return operations[name]
        raise AttributeError(f"{type(self).__name__!s} has no operation or attribute {name!r}")

    def operation(self, name: str) -> ContractMethod:
        try:
            return self._operations[name]
        except KeyError:
            raise KeyError(f"{self.name} has no operation {name!r}") from None

    def has_operation(self, name: str) -> bool:
        return name in self._operations

    @property
    def operations(self) -> Mapping[str, OperationDescriptor]:
        return MappingProxyType({name: op.descriptor for name, op in self._operations.items()})

    # --- declaration -----------------------------------------------------

    def _register(self, method: ContractMethod) -> ContractMethod:
        name = method.name
        if name in self._operations:
            raise ConstructionError("duplicate operation", operation=name)
        if not name.isidentifier() or hasattr(type(self), name) or name in self.__dict__:
            raise ConstructionError("operation name is reserved or not an identifier", operation=name)
        for handler in method.descriptor.event_handlers:
            source = handler.resolve_source(self)
            event = source.events.get(handler.event)
            if event is None:
                # own events may still be declared later in initialize_contract_methods
                if source is not self:
                    raise ConstructionError(
                        f"event {handler.event!r} is not declared on {source.name}", operation=name
                    )
                continue
            handler.check((p.name for p in event.params), name)
        self._operations[name] = method
        return method

    def _descriptor(self, name: str, **fields: Any) -> OperationDescriptor:
        return OperationDescriptor.build(name, registry=self.registry, **fields)

    def add_caller(
        self,
        name: str,
        *,
        function_name: Optional[str] = None,
        input: Iterable[ParamLike] = (),
        output: Iterable[ParamLike] = (),
        default_values: Optional[Mapping[str, Any]] = None,
        validate_empty: Optional[ValidateEmpty] = None,
        echo: Optional[Mapping[str, str]] = None,
    ) -> Caller:
        descriptor = self._descriptor(
            name,
            function_name=function_name,
            input=input,
            output=output,
            default_values=default_values,
            validate_empty=validate_empty,
            echo=echo,
        )
        return self._register(Caller(self, descriptor))  # type: ignore[return-value]

    def add_sender(
        self,
        name: str,
        *,
        function_name: Optional[str] = None,
        input: Iterable[ParamLike] = (),
        output: Iterable[ParamLike] = (),
        default_values: Optional[Mapping[str, Any]] = None,
        validate_empty: Optional[ValidateEmpty] = None,
        event_handlers: EventHandlersLike = None,
        echo: Optional[Mapping[str, str]] = None,
    ) -> Sender:
        descriptor = self._descriptor(
            name,
            function_name=function_name,
            input=input,
            output=output,
            default_values=default_values,
            validate_empty=validate_empty,
            event_handlers=event_handlers,
            echo=echo,
        )
        return self._register(Sender(self, descriptor))  # type: ignore[return-value]

    def add_multisig_sender(
        self,
        name: str,
        *,
        required_signees: SigneeResolver,
        nonce_function_name: str,
        multisig_function_name: str,
        nonce_input: Iterable[Any] = (),
        function_name: Optional[str] = None,
        input: Iterable[ParamLike] = (),
        output: Iterable[ParamLike] = (),
        default_values: Optional[Mapping[str, Any]] = None,
        validate_empty: Optional[ValidateEmpty] = None,
        event_handlers: EventHandlersLike = None,
        echo: Optional[Mapping[str, str]] = None,
    ) -> MultisigSender:
        descriptor = self._descriptor(
            name,
            function_name=function_name,
            input=input,
            output=output,
            default_values=default_values,
            validate_empty=validate_empty,
            event_handlers=event_handlers,
            echo=echo,
        )
        method = MultisigSender(
            self,
            descriptor,
            required_signees=required_signees,
            nonce_function_name=nonce_function_name,
            nonce_input=nonce_input,
            multisig_function_name=multisig_function_name,
        )
        return self._register(method)  # type: ignore[return-value]

    def add_event(self, name: str, params: Iterable[ParamLike] = ()) -> Event:
        event = Event(self, name, params)
        self.events._add(event)
        return event
