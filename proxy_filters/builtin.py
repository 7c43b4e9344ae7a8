"""Stock filters shipped with the proxy."""
from typing import Any, Callable, Optional, Union

from .filters import BodyFilter, HeaderFilter

HeaderFunc = Callable[[Any, Any], None]
BodyFunc = Callable[[bytearray, Any, Any, Optional[bytearray]], None]


class SimpleHeaderFilter(HeaderFilter):
    """Header filter built from a plain function ``func(headers, message)``."""

    def __init__(self, func: HeaderFunc):
        if not callable(func):
            raise TypeError(f"Expected a callable, got: {type(func)}")
        self.func = func

    def filter(self, headers: Any, message: Any) -> None:
        self.func(headers, message)

    @property
    def description(self) -> str:
        return f"SimpleHeaderFilter({getattr(self.func, '__name__', 'func')})"


class SimpleBodyFilter(BodyFilter):
    """Body filter built from a plain function.

    The function receives the same arguments as ``BodyFilter.filter``.
    """

    def __init__(self, func: BodyFunc, will_modify: bool = True):
        if not callable(func):
            raise TypeError(f"Expected a callable, got: {type(func)}")
        self.func = func
        self._will_modify = will_modify

    def filter(self, data, message, protocol, buffer) -> None:
        self.func(data, message, protocol, buffer)

    def will_modify(self) -> bool:
        return self._will_modify

    @property
    def description(self) -> str:
        return f"SimpleBodyFilter({getattr(self.func, '__name__', 'func')})"


class LinesBodyFilter(BodyFilter):
    """Keeps incomplete lines back so that later filters only see whole lines.

    Everything after the last end-of-line marker goes to the carry buffer.
    If ``func`` is given it is called with the complete lines and may edit
    them in place. On the last call the remainder is passed through as is.
    """

    def __init__(self, func: Optional[BodyFunc] = None, eol: Union[bytes, str] = b"\n"):
        if isinstance(eol, str):
            eol = eol.encode()
        if not eol:
            raise ValueError("eol must be a non-empty byte string")
        self.func = func
        self.eol = eol

    def filter(self, data, message, protocol, buffer) -> None:
        if buffer is not None:
            cut = data.rfind(self.eol)
            cut = 0 if cut == -1 else cut + len(self.eol)
            buffer[:] = data[cut:]
            del data[cut:]
        if self.func is not None:
            self.func(data, message, protocol, buffer)

    def will_modify(self) -> bool:
        return self.func is not None


class CompleteBodyFilter(BodyFilter):
    """Holds the whole body back until the last chunk.

    Filters placed after it receive the full body in a single call.
    """

    def filter(self, data, message, protocol, buffer) -> None:
        if buffer is not None:
            buffer[:] = data
            data.clear()

    def will_modify(self) -> bool:
        return False
