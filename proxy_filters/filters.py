"""
Base classes for filters plugged into a filter chain.

A chain runs in one of two modes and only accepts the matching kind of
filter:

- ``HeaderFilter`` sees a whole header block at once.
- ``BodyFilter`` sees the body chunk by chunk and may keep back bytes it
  cannot handle yet in the carry buffer handed to it.

Both expose ``begin(message)`` and ``end()`` lifecycle hooks that do
nothing by default. Filters written for the old API implement ``start``
instead of ``begin``; the chain detects them once at registration, logs a
deprecation message on every selection and never calls ``start``.
"""
from abc import ABC, abstractmethod
from typing import Any, Optional


class Filter(ABC):
    """Common behaviour of header and body filters."""

    #: Set by the owning proxy when the filter is pushed onto its stacks.
    proxy: Any = None

    def begin(self, message: Any) -> None:
        """Called once per message, after selection and before any data."""

    def end(self) -> None:
        """Called once per message, after the last body chunk."""

    @property
    def description(self) -> str:
        return self.__class__.__name__

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__}>"


class HeaderFilter(Filter):
    """Base class for filters applied to request or response headers."""

    @abstractmethod
    def filter(self, headers: Any, message: Any) -> None:
        """Inspect or modify ``headers`` in place.

        Args:
            headers: The header mapping of the message
            message: The request or response the headers belong to
        """


class BodyFilter(Filter):
    """Base class for filters applied to request or response bodies."""

    @abstractmethod
    def filter(
        self,
        data: bytearray,
        message: Any,
        protocol: Any,
        buffer: Optional[bytearray],
    ) -> None:
        """Transform one chunk of body data in place.

        Args:
            data: The chunk, already prefixed with whatever this filter left
                in its buffer on the previous call. Modify it in place.
            message: The request or response the body belongs to
            protocol: Transport context supplied by the I/O loop
            buffer: This filter's carry slot. Bytes left here are prepended
                to the next chunk. ``None`` on the last call for a message.
        """

    def will_modify(self) -> bool:
        """Whether this filter may change the body content."""
        return True


def uses_legacy_start(filter_obj: Filter) -> bool:
    """True for filters that implement ``start`` but not ``begin``."""
    cls = type(filter_obj)
    if not callable(getattr(cls, "start", None)):
        return False
    return getattr(cls, "begin", None) is Filter.begin
