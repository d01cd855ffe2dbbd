"""
contract_client.contracts.table
===============================

Declarative descriptor tables.

A table lists a contract's events and operations as data (a dict, or a JSON
or YAML file) and is checked as a whole before any operation is added:

    events:
      - {name: TaskAdded, params: [[id, number]]}
    operations:
      - kind: caller
        name: getTaskCount
        output: [[count, number]]
      - kind: caller
        name: getTask
        input: [[taskId, number]]
        output: [[specificationHash, ipfsHash], [status, taskStatus]]
        echo: {taskId: id}
        validateEmpty: {count: getTaskCount, field: taskId}
      - kind: sender
        name: createTask
        functionName: makeTask
        input: [[specificationHash, ipfsHash], [domainId, number, 1]]
        eventHandlers:
          - {event: TaskAdded, fields: {id: taskId}}
      - kind: multisig
        name: setTaskBrief
        input: [[taskId, number], [specificationHash, ipfsHash]]
        requiredSignees: {caller: getTaskRole, roles: [MANAGER, WORKER]}
        nonceFunctionName: getTaskChangeNonce
        nonceInput: [taskId]
        multisigFunctionName: executeTaskChange

Parameters are `[name, type]` or `[name, type, default]`. Any schema problem
surfaces as ConstructionError.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import TYPE_CHECKING, Annotated, Any, Dict, List, Literal, Mapping, Optional, Union

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator, model_validator

from ..errors import ConstructionError
from ..types.params import parse_params
from .caller import Caller
from .descriptor import EventHandler, ValidateEmpty
from .multisig import SigneeResolver, role_signees

if TYPE_CHECKING:  # pragma: no cover
    from .client import ContractClient

log = logging.getLogger(__name__)

__all__ = [
    "CallerSpec",
    "EventHandlerSpec",
    "EventSpec",
    "ExistsCheckSpec",
    "MultisigSpec",
    "OperationTable",
    "SenderSpec",
    "SigneeSpec",
    "apply_table",
    "load_table",
]


class _Spec(BaseModel):
    model_config = ConfigDict(populate_by_name=True, frozen=True, extra="forbid")


def _check_params(v: List[Any]) -> List[Any]:
    parse_params(v)
    return v


class ExistsCheckSpec(_Spec):
    """validateEmpty as data: the input must not exceed the count another caller reports."""

    count: str = Field(min_length=1)
    input_field: str = Field(alias="field", min_length=1)
    count_field: str = Field(default="count", alias="countField")


class SigneeSpec(_Spec):
    """One read per role through `caller`; the role holders must all co-sign."""

    caller: str = Field(min_length=1)
    roles: List[str] = Field(min_length=1)
    id_field: str = Field(default="taskId", alias="idField")
    role_field: str = Field(default="role", alias="roleField")
    address_field: str = Field(default="address", alias="addressField")


class EventHandlerSpec(_Spec):
    event: str = Field(min_length=1)
    # name of a related client; the owning client when omitted
    source: Optional[str] = None
    field_map: Optional[Dict[str, str]] = Field(default=None, alias="fields")


class EventSpec(_Spec):
    kind: Literal["event"] = "event"
    name: str = Field(min_length=1)
    params: List[Any] = Field(default_factory=list)

    @field_validator("params")
    @classmethod
    def _params(cls, v: List[Any]) -> List[Any]:
        return _check_params(v)


class _OperationSpec(_Spec):
    name: str = Field(min_length=1)
    function_name: Optional[str] = Field(default=None, alias="functionName", min_length=1)
    input: List[Any] = Field(default_factory=list)
    output: List[Any] = Field(default_factory=list)
    default_values: Dict[str, Any] = Field(default_factory=dict, alias="defaultValues")
    validate_empty: Optional[ExistsCheckSpec] = Field(default=None, alias="validateEmpty")
    echo: Dict[str, str] = Field(default_factory=dict)

    @field_validator("input", "output")
    @classmethod
    def _params(cls, v: List[Any]) -> List[Any]:
        return _check_params(v)


class CallerSpec(_OperationSpec):
    kind: Literal["caller"]


class SenderSpec(_OperationSpec):
    kind: Literal["sender"]
    event_handlers: List[EventHandlerSpec] = Field(default_factory=list, alias="eventHandlers")


class MultisigSpec(_OperationSpec):
    kind: Literal["multisig"]
    event_handlers: List[EventHandlerSpec] = Field(default_factory=list, alias="eventHandlers")
    required_signees: SigneeSpec = Field(alias="requiredSignees")
    nonce_function_name: str = Field(alias="nonceFunctionName", min_length=1)
    nonce_input: List[str] = Field(default_factory=list, alias="nonceInput")
    multisig_function_name: str = Field(alias="multisigFunctionName", min_length=1)


OperationSpec = Annotated[Union[CallerSpec, SenderSpec, MultisigSpec], Field(discriminator="kind")]


class OperationTable(_Spec):
    name: Optional[str] = None
    events: List[EventSpec] = Field(default_factory=list)
    operations: List[OperationSpec] = Field(default_factory=list)

    @model_validator(mode="after")
    def _unique_names(self) -> "OperationTable":
        for label, names in (
            ("event", [e.name for e in self.events]),
            ("operation", [o.name for o in self.operations]),
        ):
            dupes = sorted({n for n in names if names.count(n) > 1})
            if dupes:
                raise ValueError(f"duplicate {label} names: {dupes}")
        return self

    def referenced_callers(self) -> List[str]:
        refs: List[str] = []
        for op in self.operations:
            if op.validate_empty is not None:
                refs.append(op.validate_empty.count)
            if isinstance(op, MultisigSpec):
                refs.append(op.required_signees.caller)
        return refs


TableSource = Union[OperationTable, Mapping[str, Any], str, Path]


def _read_file(path: Path) -> Any:
    text = path.read_text(encoding="utf-8")
    try:
        if path.suffix.lower() == ".json":
            return json.loads(text)
        return yaml.safe_load(text) or {}
    except (ValueError, yaml.YAMLError) as e:
        raise ConstructionError(f"cannot parse table {path}: {e}") from e


def load_table(source: TableSource) -> OperationTable:
    """Validate a table given as a model, a mapping, or a .json/.yaml/.yml path."""
    if isinstance(source, OperationTable):
        return source
    data = _read_file(Path(source)) if isinstance(source, (str, Path)) else source
    if not isinstance(data, Mapping):
        raise ConstructionError(f"descriptor table must be a mapping, got {type(data).__name__}")
    try:
        return OperationTable.model_validate(dict(data))
    except ValidationError as e:
        raise ConstructionError(f"invalid descriptor table: {e}") from e


# --- building ----------------------------------------------------------------


def _exists_check(client: "ContractClient", spec: ExistsCheckSpec) -> ValidateEmpty:
    async def check(values: Mapping[str, Any]) -> bool:
        value = values.get(spec.input_field)
        if not value:
            return True
        counted = await client.operation(spec.count).call({})
        if value > counted[spec.count_field]:
            raise LookupError(f"{spec.input_field} {value} not found")
        return True

    return check


def _signees(client: "ContractClient", spec: SigneeSpec) -> SigneeResolver:
    # looked up per call so the caller may be declared anywhere in the table
    async def resolve(values: Mapping[str, Any]) -> List[Any]:
        resolver = role_signees(
            client.operation(spec.caller),  # type: ignore[arg-type]
            spec.roles,
            id_field=spec.id_field,
            role_field=spec.role_field,
            address_field=spec.address_field,
        )
        return await resolver(values)

    return resolve


def _handlers(
    specs: List[EventHandlerSpec],
    related: Mapping[str, "ContractClient"],
    operation: str,
) -> List[EventHandler]:
    out: List[EventHandler] = []
    for h in specs:
        source = None
        if h.source is not None:
            if h.source not in related:
                raise ConstructionError(f"unknown related client {h.source!r}", operation=operation)
            source = related[h.source]
        out.append(EventHandler(h.event, source=source, fields=h.field_map))
    return out


def apply_table(
    client: "ContractClient",
    source: TableSource,
    *,
    related: Optional[Mapping[str, "ContractClient"]] = None,
) -> OperationTable:
    """Add every event and operation of a table to `client`."""
    table = load_table(source)
    related = dict(related or {})

    for ev in table.events:
        client.add_event(ev.name, ev.params)

    for op in table.operations:
        common: Dict[str, Any] = dict(
            function_name=op.function_name,
            input=op.input,
            output=op.output,
            default_values=op.default_values,
            validate_empty=_exists_check(client, op.validate_empty) if op.validate_empty else None,
            echo=op.echo,
        )
        if isinstance(op, MultisigSpec):
            client.add_multisig_sender(
                op.name,
                required_signees=_signees(client, op.required_signees),
                nonce_function_name=op.nonce_function_name,
                nonce_input=op.nonce_input,
                multisig_function_name=op.multisig_function_name,
                event_handlers=_handlers(op.event_handlers, related, op.name),
                **common,
            )
        elif isinstance(op, SenderSpec):
            client.add_sender(op.name, event_handlers=_handlers(op.event_handlers, related, op.name), **common)
        else:
            client.add_caller(op.name, **common)

    for ref in table.referenced_callers():
        if not client.has_operation(ref) or not isinstance(client.operation(ref), Caller):
            raise ConstructionError(f"table references unknown caller {ref!r}")

    log.debug("applied table %s to %s", table.name or "<anonymous>", client.name)
    return table
