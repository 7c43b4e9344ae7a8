"""Error types raised by the filter chain machinery."""
from typing import Optional


class FilterChainError(Exception):
    """Base class for filter chain errors."""

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)

    def __str__(self) -> str:
        return self.message


class TypeMismatchError(FilterChainError, TypeError):
    """A filter of the wrong capability was offered to a chain."""

    def __init__(self, filter_description: str, expected: str):
        self.filter_description = filter_description
        self.expected = expected
        super().__init__(f"{filter_description} is not a {expected}")


class IndexOutOfRangeError(FilterChainError, IndexError):
    """Insert or remove position outside the registry."""

    def __init__(self, index: int, size: int, operation: str = "insert"):
        self.index = index
        self.size = size
        self.operation = operation
        super().__init__(
            f"Cannot {operation} at index {index} in a chain of {size} filters"
        )


class FilterConfigurationError(FilterChainError):
    """Raised when a filter definition or match specification is invalid."""

    def __init__(self, message: str, source: Optional[str] = None):
        self.source = source
        if source:
            message = f"{source}: {message}"
        super().__init__(message)
