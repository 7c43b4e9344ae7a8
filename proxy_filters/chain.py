"""
Ordered filter chain applied to HTTP headers or streamed HTTP bodies.

The proxy keeps four of these (request headers, request body, response
headers, response body). A chain holds a registry of ``(predicate,
filter)`` entries; for every message it selects the filters whose
predicate matches, runs them over the data in registry order, and
forgets the selection at end of message.

In body mode each selected filter owns a carry buffer. Whatever a filter
leaves in it is prepended to that filter's input on the next chunk, which
lets filters work on units (lines, tags, whole documents) that straddle
chunk boundaries.

Typical body-mode call sequence from the I/O loop::

    chain.select(response)
    for chunk in chunks:
        chain.apply(chunk, response, protocol)
    chain.finish_last(last_chunk, response, protocol)

A chain is not safe for concurrent use: it holds one message at a time.
"""
import logging
from dataclasses import dataclass
from enum import Enum, auto
from typing import Any, Callable, Iterable, List, Optional, Protocol, Tuple, Union

from .errors import IndexOutOfRangeError, TypeMismatchError
from .filters import BodyFilter, Filter, HeaderFilter, uses_legacy_start

logger = logging.getLogger(__name__)

Predicate = Callable[[], bool]

DEPRECATION_MESSAGE = (
    "DEPRECATION: The start() filter method is deprecated and is never "
    "called. Use begin() in {filter} instead!"
)


class LogCollaborator(Protocol):
    """Anything able to log a message at a given severity."""

    def log(self, level: int, message: str) -> None:
        ...


class ChainState(Enum):
    """Where the chain stands in the processing of the current message."""
    IDLE = auto()
    SELECTED = auto()
    STREAMING = auto()
    FINALIZING = auto()


@dataclass(frozen=True)
class RegistryEntry:
    """A filter and the predicate deciding whether it applies to a message."""
    predicate: Predicate
    filter: Filter
    legacy_start: bool = False

    def as_tuple(self) -> Tuple[Predicate, Filter]:
        return (self.predicate, self.filter)


EntryLike = Union[RegistryEntry, Tuple[Predicate, Filter]]


class FilterChain:
    """Registry of filters plus the per-message selection and buffers."""

    def __init__(self, is_body: bool = False, owner: Optional[LogCollaborator] = None,
                 name: Optional[str] = None):
        """Initialize an empty chain.

        Args:
            is_body: True for a body chain, False for a header chain
            owner: Logging collaborator, normally the owning proxy
            name: Label used in log messages
        """
        self.is_body = bool(is_body)
        self.owner = owner
        self.name = name or ("body" if self.is_body else "headers")
        self._filter_type = BodyFilter if self.is_body else HeaderFilter
        self._entries: List[RegistryEntry] = []
        self._current: Optional[List[Filter]] = None
        self._buffers: List[bytearray] = []
        self._will_modify = False
        self._state = ChainState.IDLE

    # Registry management

    def _validate(self, entries: Iterable[EntryLike]) -> List[RegistryEntry]:
        validated = []
        for entry in entries:
            if isinstance(entry, RegistryEntry):
                predicate, filter_obj = entry.predicate, entry.filter
            else:
                predicate, filter_obj = entry
            if not isinstance(filter_obj, self._filter_type):
                raise TypeMismatchError(repr(filter_obj), self._filter_type.__name__)
            if not callable(predicate):
                raise TypeError(f"Predicate for {filter_obj!r} is not callable")
            validated.append(
                RegistryEntry(predicate, filter_obj, uses_legacy_start(filter_obj))
            )
        return validated

    def append(self, *entries: EntryLike) -> None:
        """Add ``(predicate, filter)`` entries at the end of the chain.

        Raises:
            TypeMismatchError: If any filter does not match the chain mode.
                Nothing is added in that case.
        """
        self._entries.extend(self._validate(entries))

    # Name used by the proxy's filter stacks
    push = append

    def insert(self, index: int, *entries: EntryLike) -> None:
        """Insert entries so that the first one ends up at ``index``.

        Raises:
            IndexOutOfRangeError: If ``index`` is not in ``[0, len(chain)]``
            TypeMismatchError: If any filter does not match the chain mode
        """
        if not 0 <= index <= len(self._entries):
            raise IndexOutOfRangeError(index, len(self._entries), "insert")
        self._entries[index:index] = self._validate(entries)

    def remove(self, index: int) -> Tuple[Predicate, Filter]:
        """Remove and return the entry at ``index``."""
        if not 0 <= index < len(self._entries):
            raise IndexOutOfRangeError(index, len(self._entries), "remove")
        return self._entries.pop(index).as_tuple()

    def list_all(self) -> List[Tuple[Predicate, Filter]]:
        """Return every registered ``(predicate, filter)`` pair, in order."""
        return [entry.as_tuple() for entry in self._entries]

    all = list_all

    def __len__(self) -> int:
        return len(self._entries)

    # Per-message processing

    @property
    def state(self) -> ChainState:
        return self._state

    @property
    def active_filters(self) -> Optional[List[Filter]]:
        """Filters selected for the current message, None between messages."""
        return list(self._current) if self._current is not None else None

    @property
    def buffers(self) -> List[bytearray]:
        return self._buffers

    def will_modify(self) -> bool:
        """Whether the selected filters may alter the body of the message."""
        return self._will_modify

    def _log(self, level: int, message: str) -> None:
        if self.owner is not None:
            self.owner.log(level, message)
        else:
            logger.log(level, message)

    def select(self, message: Any) -> None:
        """Select the filters that apply to ``message``.

        Only the first call per message does anything: predicates are
        evaluated, carry buffers allocated and ``begin`` hooks run. Further
        calls are no-ops until ``finish``.
        """
        if self._current is not None:
            return

        entries = [entry for entry in self._entries if entry.predicate()]
        self._current = [entry.filter for entry in entries]
        self._state = ChainState.SELECTED

        if self.is_body:
            self._buffers = [bytearray() for _ in self._current]

        for entry in entries:
            if entry.legacy_start:
                self._log(logging.ERROR,
                          DEPRECATION_MESSAGE.format(filter=entry.filter.description))
            else:
                entry.filter.begin(message)

        self._will_modify = self.is_body and any(
            filter_obj.will_modify() for filter_obj in self._current
        )
        logger.debug(f"{self.name} chain selected {len(self._current)} of "
                     f"{len(self._entries)} filters")

    def _run_body_filters(self, data: bytearray, message: Any, protocol: Any,
                          last: bool) -> None:
        for i, filter_obj in enumerate(self._current):
            buffer = self._buffers[i]
            if buffer:
                data[:0] = buffer
                buffer.clear()
            filter_obj.filter(data, message, protocol, None if last else buffer)

    def apply(self, data: Any, message: Any, protocol: Any = None) -> Any:
        """Run the selected filters over one piece of data.

        In header mode ``data`` is the header block; every filter sees it
        once and the chain is reset afterwards. In body mode ``data`` is one
        chunk; it is modified in place (a ``bytes`` chunk is copied into a
        new ``bytearray``) and returned.
        """
        self.select(message)

        if not self.is_body:
            for filter_obj in self._current:
                filter_obj.filter(data, message)
            self.finish()
            return data

        if not isinstance(data, bytearray):
            data = bytearray(data)
        self._state = ChainState.STREAMING
        self._run_body_filters(data, message, protocol, last=False)
        return data

    def finish_last(self, data: Any, message: Any, protocol: Any = None) -> Any:
        """Run the selected filters over the last chunk of the body.

        Filters get no carry buffer this time, so they must emit everything
        they still hold. Their ``end`` hooks run afterwards and the chain is
        reset. Does nothing on a header chain.
        """
        if not self.is_body:
            return data

        self.select(message)
        if not isinstance(data, bytearray):
            data = bytearray(data)
        self._state = ChainState.FINALIZING
        self._run_body_filters(data, message, protocol, last=True)

        for filter_obj in self._current:
            filter_obj.end()

        self.finish()
        return data

    def finish(self) -> None:
        """Forget the current message so the next one is selected afresh."""
        if self._current is not None:
            logger.debug(f"{self.name} chain reset")
        self._current = None
        self._buffers = []
        self._will_modify = False
        self._state = ChainState.IDLE

    reset = finish

    def __repr__(self) -> str:
        mode = "body" if self.is_body else "header"
        return f"FilterChain(name={self.name!r}, mode={mode}, filters={len(self._entries)})"
