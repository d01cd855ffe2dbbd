"""
contract_client.contracts.descriptor
====================================

Immutable declaration of one contract operation.

An `OperationDescriptor` is built once, when the operation is added to a
client, and is checked right there: parameter names must be unique, every
type tag must be registered, the function name must be non-empty and every
default value must be valid for its parameter. Authoring mistakes therefore
surface as `ConstructionError` at startup, never at call time.

The descriptor also owns the marshalling shared by every operation kind:

- merge_input(values)          caller values over defaults, unknown names refused
- encode_input(values, reg)    host values -> positional wire arguments
- decode_input(args, reg)      positional wire arguments -> host values
- decode_output(raw, reg)      adapter result -> {output name: host value}

Event handlers
--------------
`EventHandler(event, source=None, fields=None, decode=None)` declares that a
successful send should scan its receipt for `event` emitted by `source` (a
client; the owning client when omitted) and merge values from it into the
result. `source` is held by weak reference: a handler describes a relation
to another contract client, it does not keep it alive.
"""

from __future__ import annotations

import weakref
from dataclasses import dataclass, field
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

from ..errors import ConstructionError, DecodingError, EncodingError, InvalidInputError
from ..types.params import ParamLike, ParamSpec, parse_params
from ..types.registry import TypeRegistry

if TYPE_CHECKING:  # pragma: no cover
    from .client import ContractClient

__all__ = [
    "ValidateEmpty",
    "EventHandler",
    "OperationDescriptor",
    "EventHandlersLike",
]

InputValues = Mapping[str, Any]
ValidateEmpty = Callable[[InputValues], Union[bool, Awaitable[bool]]]
HandlerDecode = Callable[[Mapping[str, Any]], Mapping[str, Any]]


class EventHandler:
    """
    Extracts result values from one event found in a send receipt.

    - fields: {event field: result key}; only the listed fields are merged.
    - decode: callable on the decoded event args returning the values to merge.
    - neither: all decoded event args are merged under their own names.
    """

    __slots__ = ("event", "fields", "decode", "_source")

    def __init__(
        self,
        event: str,
        *,
        source: Optional["ContractClient"] = None,
        fields: Optional[Mapping[str, str]] = None,
        decode: Optional[HandlerDecode] = None,
    ) -> None:
        if not isinstance(event, str) or not event:
            raise ConstructionError("event handler needs a non-empty event name")
        if fields is not None and decode is not None:
            raise ConstructionError("event handler takes either fields or decode, not both", parameter=event)
        if decode is not None and not callable(decode):
            raise ConstructionError("event handler decode must be callable", parameter=event)
        self.event = event
        self.fields: Optional[Mapping[str, str]] = MappingProxyType(dict(fields)) if fields is not None else None
        self.decode = decode
        self._source = weakref.ref(source) if source is not None else None

    @property
    def has_source(self) -> bool:
        return self._source is not None

    def resolve_source(self, owner: "ContractClient") -> "ContractClient":
        if self._source is None:
            return owner
        source = self._source()
        if source is None:
            raise ConstructionError(f"source client of event handler {self.event!r} no longer exists")
        return source

    def check(self, param_names: Iterable[str], operation: Optional[str] = None) -> None:
        """Refuse `fields` that name parameters the event does not carry."""
        if self.fields is None:
            return
        known = set(param_names)
        for name in self.fields:
            if name not in known:
                raise ConstructionError(
                    f"event {self.event!r} has no parameter {name!r}", operation=operation, parameter=name
                )

    def extract(self, decoded_args: Mapping[str, Any]) -> Dict[str, Any]:
        try:
            if self.decode is not None:
                return dict(self.decode(decoded_args))
            if self.fields is not None:
                return {key: decoded_args[name] for name, key in self.fields.items()}
            return dict(decoded_args)
        except Exception as e:
            raise DecodingError(
                f"event handler for {self.event!r} failed: {e!r}", value=dict(decoded_args)
            ) from e

    def __repr__(self) -> str:  # pragma: no cover - trivial
        return f"EventHandler({self.event!r})"


EventHandlersLike = Union[
    Mapping[str, Union[EventHandler, Mapping[str, Any], None]],
    Iterable[EventHandler],
    None,
]


def _as_handlers(handlers: EventHandlersLike, operation: str) -> Tuple[EventHandler, ...]:
    if handlers is None:
        return ()
    out: List[EventHandler] = []
    if isinstance(handlers, Mapping):
        for event, h in handlers.items():
            if h is None:
                out.append(EventHandler(event))
            elif isinstance(h, EventHandler):
                if h.event != event:
                    raise ConstructionError(
                        f"handler registered under {event!r} listens for {h.event!r}", operation=operation
                    )
                out.append(h)
            elif isinstance(h, Mapping):
                out.append(EventHandler(event, **dict(h)))
            else:
                raise ConstructionError(f"bad event handler for {event!r}: {h!r}", operation=operation)
        return tuple(out)
    for h in handlers:
        if not isinstance(h, EventHandler):
            raise ConstructionError(f"expected EventHandler, got {type(h).__name__}", operation=operation)
        out.append(h)
    return tuple(out)


def _check_unique(params: Sequence[ParamSpec], operation: str, side: str) -> None:
    seen = set()
    for p in params:
        if not p.name:
            raise ConstructionError(f"{side} parameter with empty name", operation=operation)
        if p.name in seen:
            raise ConstructionError(f"duplicate {side} parameter", operation=operation, parameter=p.name)
        seen.add(p.name)


@dataclass(frozen=True)
class OperationDescriptor:
    name: str
    function_name: str
    input: Tuple[ParamSpec, ...] = ()
    output: Tuple[ParamSpec, ...] = ()
    default_values: Mapping[str, Any] = field(default_factory=lambda: MappingProxyType({}))
    validate_empty: Optional[ValidateEmpty] = None
    event_handlers: Tuple[EventHandler, ...] = ()
    # input name -> result key, for identifying inputs echoed into the result
    echo: Mapping[str, str] = field(default_factory=lambda: MappingProxyType({}))

    @classmethod
    def build(
        cls,
        name: str,
        *,
        registry: TypeRegistry,
        function_name: Optional[str] = None,
        input: Iterable[ParamLike] = (),
        output: Iterable[ParamLike] = (),
        default_values: Optional[Mapping[str, Any]] = None,
        validate_empty: Optional[ValidateEmpty] = None,
        event_handlers: EventHandlersLike = None,
        echo: Optional[Mapping[str, str]] = None,
    ) -> "OperationDescriptor":
        """Normalize and check a declaration. Raises ConstructionError."""
        if not isinstance(name, str) or not name:
            raise ConstructionError("operation name must be a non-empty string")
        fn = name if function_name is None else function_name
        if not isinstance(fn, str) or not fn.strip():
            raise ConstructionError("functionName must be non-empty", operation=name)

        try:
            inputs = parse_params(input)
            outputs = parse_params(output)
        except ValueError as e:
            raise ConstructionError(str(e), operation=name) from e
        _check_unique(inputs, name, "input")
        _check_unique(outputs, name, "output")
        for p in inputs + outputs:
            if p.type not in registry:
                raise ConstructionError(f"unknown parameter type {p.type!r}", operation=name, parameter=p.name)

        input_names = {p.name for p in inputs}
        defaults: Dict[str, Any] = {p.name: p.default for p in inputs if p.has_default}
        for key, value in (default_values or {}).items():
            if key not in input_names:
                raise ConstructionError("default for undeclared input", operation=name, parameter=key)
            defaults[key] = value
        for p in inputs:
            if p.name in defaults and not registry.validate(p.type, defaults[p.name]):
                raise ConstructionError(
                    f"default value {defaults[p.name]!r} is not a valid {p.type}", operation=name, parameter=p.name
                )

        if validate_empty is not None and not callable(validate_empty):
            raise ConstructionError("validateEmpty must be callable", operation=name)

        echo_map = dict(echo or {})
        for key in echo_map:
            if key not in input_names:
                raise ConstructionError("echo of undeclared input", operation=name, parameter=key)

        return cls(
            name=name,
            function_name=fn,
            input=inputs,
            output=outputs,
            default_values=MappingProxyType(defaults),
            validate_empty=validate_empty,
            event_handlers=_as_handlers(event_handlers, name),
            echo=MappingProxyType(echo_map),
        )

    # --- lookups ---------------------------------------------------------

    @property
    def input_names(self) -> Tuple[str, ...]:
        return tuple(p.name for p in self.input)

    @property
    def output_names(self) -> Tuple[str, ...]:
        return tuple(p.name for p in self.output)

    def input_param(self, name: str) -> ParamSpec:
        for p in self.input:
            if p.name == name:
                return p
        raise KeyError(name)

    # --- marshalling -----------------------------------------------------

    def merge_input(self, input_values: Optional[InputValues]) -> Dict[str, Any]:
        """Explicit values win over defaults. Unknown names are refused."""
        values = dict(input_values or {})
        names = set(self.input_names)
        for key in values:
            if key not in names:
                raise InvalidInputError("unknown parameter", operation=self.name, parameter=key, value=values[key])
        merged = dict(self.default_values)
        merged.update(values)
        return merged

    def encode_input(self, values: Mapping[str, Any], registry: TypeRegistry) -> List[Any]:
        args: List[Any] = []
        for p in self.input:
            if p.name not in values:
                raise InvalidInputError("missing value", operation=self.name, parameter=p.name)
            value = values[p.name]
            if not registry.validate(p.type, value):
                raise InvalidInputError(f"not a valid {p.type}", operation=self.name, parameter=p.name, value=value)
            try:
                args.append(registry.encode(p.type, value))
            except EncodingError as e:
                raise InvalidInputError(e.message, operation=self.name, parameter=p.name, value=value) from e
        return args

    def decode_input(self, args: Sequence[Any], registry: TypeRegistry) -> Dict[str, Any]:
        """Inverse of encode_input, used to rebuild input values from wire arguments."""
        return self._decode_positional(list(args), self.input, registry)

    def decode_output(self, raw: Any, registry: TypeRegistry) -> Dict[str, Any]:
        """
        Map an adapter result onto the declared outputs.

        A list/tuple is positional; a mapping is keyed by output name; a bare
        scalar is accepted when exactly one output is declared, and None when
        none is. The arity must match exactly.
        """
        n = len(self.output)
        if isinstance(raw, Mapping):
            missing = [p.name for p in self.output if p.name not in raw]
            if missing or len(raw) != n:
                raise DecodingError(
                    f"result keys {sorted(raw)} do not match outputs {list(self.output_names)}",
                    value=raw,
                    operation=self.name,
                )
            values = [raw[p.name] for p in self.output]
        elif isinstance(raw, (list, tuple)):
            values = list(raw)
        elif raw is None and n == 0:
            values = []
        elif n == 1:
            values = [raw]
        else:
            raise DecodingError(f"expected {n} result values", value=raw, operation=self.name)
        return self._decode_positional(values, self.output, registry)

    def _decode_positional(
        self, values: List[Any], params: Sequence[ParamSpec], registry: TypeRegistry
    ) -> Dict[str, Any]:
        if len(values) != len(params):
            raise DecodingError(
                f"expected {len(params)} values, got {len(values)}", value=values, operation=self.name
            )
        out: Dict[str, Any] = {}
        for p, wire in zip(params, values):
            try:
                out[p.name] = registry.decode(p.type, wire)
            except DecodingError as e:
                e.operation = self.name
                e.parameter = p.name
                raise
        return out

    def echoed(self, values: Mapping[str, Any]) -> Dict[str, Any]:
        return {key: values[name] for name, key in self.echo.items() if name in values}
