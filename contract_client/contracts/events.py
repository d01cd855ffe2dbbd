"""
contract_client.contracts.events
================================

Contract events as seen by the client:

- Event(client, name, params): decode raw log args into host values, fetch
  historical logs, or follow new ones.
- EventsNamespace: `client.events.TaskAdded` / `client.events["TaskAdded"]`.
- DecodedLog: one decoded log entry.

Log entries arrive from the adapter already split into an event name and
wire-typed arguments (by name, or positionally in declaration order); the
type registry turns those into host values.

Streams are plain async iterators driven by the consumer:

    async for log in client.events.TaskAdded.stream(from_block=100):
        print(log.args["id"])

Each poll is one adapter.get_logs call; no background task is started and
breaking out of the loop stops polling.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import (
    TYPE_CHECKING,
    Any,
    AsyncIterator,
    Dict,
    Hashable,
    Iterable,
    Iterator,
    List,
    Mapping,
    Optional,
    Set,
    Tuple,
)

from ..adapters.base import BlockRange
from ..errors import ConstructionError, DecodingError
from ..types.core import LogEntry, as_log
from ..types.params import ParamLike, ParamSpec, parse_params

if TYPE_CHECKING:  # pragma: no cover
    from .client import ContractClient

log = logging.getLogger(__name__)

__all__ = ["DecodedLog", "Event", "EventsNamespace"]


@dataclass(frozen=True)
class DecodedLog:
    event: str
    args: Mapping[str, Any]
    address: str
    block_number: Optional[int] = None
    tx_hash: Optional[str] = None
    log_index: Optional[int] = None

    def identity(self) -> Hashable:
        if self.tx_hash is not None and self.log_index is not None:
            return (self.tx_hash, self.log_index)
        return (self.block_number, self.tx_hash, self.log_index, repr(sorted(self.args.items())))


class Event:
    def __init__(self, client: "ContractClient", name: str, params: Iterable[ParamLike]) -> None:
        if not isinstance(name, str) or not name:
            raise ConstructionError("event name must be a non-empty string")
        try:
            specs = parse_params(params)
        except ValueError as e:
            raise ConstructionError(str(e), operation=name) from e
        seen: Set[str] = set()
        for p in specs:
            if p.name in seen:
                raise ConstructionError("duplicate event parameter", operation=name, parameter=p.name)
            if p.type not in client.registry:
                raise ConstructionError(f"unknown parameter type {p.type!r}", operation=name, parameter=p.name)
            if p.has_default:
                raise ConstructionError("event parameters take no default", operation=name, parameter=p.name)
            seen.add(p.name)
        self.client = client
        self.name = name
        self.params: Tuple[ParamSpec, ...] = specs

    def __repr__(self) -> str:  # pragma: no cover - trivial
        return f"<Event {self.client.name}.{self.name}>"

    def decode(self, raw_args: Any) -> Dict[str, Any]:
        """Decode wire args (mapping by name, or positional sequence) into host values."""
        if isinstance(raw_args, Mapping):
            missing = [p.name for p in self.params if p.name not in raw_args]
            if missing:
                raise DecodingError(f"event args missing {missing}", value=raw_args, operation=self.name)
            values = [raw_args[p.name] for p in self.params]
        elif isinstance(raw_args, (list, tuple)):
            if len(raw_args) != len(self.params):
                raise DecodingError(
                    f"expected {len(self.params)} event args, got {len(raw_args)}",
                    value=raw_args,
                    operation=self.name,
                )
            values = list(raw_args)
        else:
            raise DecodingError("event args must be a mapping or a sequence", value=raw_args, operation=self.name)

        out: Dict[str, Any] = {}
        for p, wire in zip(self.params, values):
            try:
                out[p.name] = self.client.registry.decode(p.type, wire)
            except DecodingError as e:
                e.operation = self.name
                e.parameter = p.name
                raise
        return out

    def decode_log(self, entry: LogEntry) -> DecodedLog:
        return DecodedLog(
            event=self.name,
            args=self.decode(entry.args),
            address=entry.address,
            block_number=entry.block_number,
            tx_hash=entry.tx_hash,
            log_index=entry.log_index,
        )

    async def get_logs(self, from_block: int = 0, to_block: Optional[int] = None) -> List[DecodedLog]:
        block_range = BlockRange(from_block, to_block)
        log.debug("get_logs %s.%s %s", self.client.name, self.name, block_range)
        raw = await self.client.adapter.get_logs(self.client.address, self.name, block_range)
        out: List[DecodedLog] = []
        for item in raw or ():
            entry = as_log(item)
            if entry.event and entry.event != self.name:
                continue
            out.append(self.decode_log(entry))
        return out

    async def stream(
        self,
        from_block: int = 0,
        *,
        poll_interval: Optional[float] = None,
    ) -> AsyncIterator[DecodedLog]:
        """
        Yield each matching log once, oldest first, polling for new ones.

        Logs are re-queried from the highest block seen so far, so entries
        of a block that was only partially indexed on the previous poll are
        still picked up; already yielded entries are skipped.

        Entries are told apart by (tx hash, log index). Without that metadata
        identical entries are counted, so a second identical log in one poll
        is still yielded.
        """
        interval = self.client.config.event_poll_interval if poll_interval is None else float(poll_interval)
        next_block = int(from_block)
        # identity -> (block number, how many of it were yielded)
        seen: Dict[Hashable, Tuple[Optional[int], int]] = {}
        while True:
            counts: Dict[Hashable, int] = {}
            for entry in await self.get_logs(from_block=next_block):
                key = entry.identity()
                counts[key] = counts.get(key, 0) + 1
                if counts[key] <= seen.get(key, (None, 0))[1]:
                    continue
                seen[key] = (entry.block_number, counts[key])
                if entry.block_number is not None and entry.block_number > next_block:
                    next_block = entry.block_number
                yield entry
            # keep only what the next query can return again
            seen = {
                key: (block, n)
                for key, (block, n) in seen.items()
                if (block >= next_block if block is not None else key in counts)
            }
            await asyncio.sleep(interval)


class EventsNamespace:
    """Attribute/item access to the events declared on a client."""

    def __init__(self) -> None:
        self._events: Dict[str, Event] = {}

    def _add(self, event: Event) -> None:
        if event.name in self._events:
            raise ConstructionError("duplicate event", operation=event.name)
        self._events[event.name] = event

    def __getattr__(self, name: str) -> Event:
        events = self.__dict__.get("_events", {})
        try:
            return events[name]
        except KeyError:
            raise AttributeError(f"no event named {name!r}") from None

    def __getitem__(self, name: str) -> Event:
        return self._events[name]

    def __contains__(self, name: object) -> bool:
        return name in self._events

    def __iter__(self) -> Iterator[str]:
        return iter(self._events)

    def __len__(self) -> int:
        return len(self._events)

    def get(self, name: str) -> Optional[Event]:
        return self._events.get(name)
