"""Common test fixtures and utilities."""
import pytest
from typing import Any, List, Optional, Tuple

from proxy_filters.chain import FilterChain
from proxy_filters.filters import BodyFilter, HeaderFilter
from proxy_filters.messages import InterceptedRequest, InterceptedResponse
from proxy_filters.stacks import FilterStacks


class RecordingHeaderFilter(HeaderFilter):
    """Header filter that records every call made on it."""

    def __init__(self, name: str = "header"):
        self.name = name
        self.calls: List[Tuple[str, Any]] = []

    def begin(self, message: Any) -> None:
        self.calls.append(("begin", message))

    def filter(self, headers: Any, message: Any) -> None:
        self.calls.append(("filter", dict(headers)))
        headers.setdefault("X-Seen-By", "")
        headers["X-Seen-By"] += self.name

    def end(self) -> None:
        self.calls.append(("end", None))

    def count(self, kind: str) -> int:
        return sum(1 for call, _ in self.calls if call == kind)


class RecordingBodyFilter(BodyFilter):
    """Body filter that consumes nothing and records what it was given.

    With ``keep`` set it leaves everything in its carry buffer, so the
    data only goes through on the last call.
    """

    def __init__(self, name: str = "body", modifies: bool = True, keep: bool = False):
        self.name = name
        self.modifies = modifies
        self.keep = keep
        self.calls: List[Tuple[str, Any]] = []
        self.inputs: List[bytes] = []
        self.buffers: List[Optional[bytearray]] = []

    def begin(self, message: Any) -> None:
        self.calls.append(("begin", message))

    def filter(self, data, message, protocol, buffer) -> None:
        self.calls.append(("filter", protocol))
        self.inputs.append(bytes(data))
        self.buffers.append(buffer)
        if self.keep and buffer is not None:
            buffer[:] = data
            data.clear()

    def end(self) -> None:
        self.calls.append(("end", None))

    def will_modify(self) -> bool:
        return self.modifies

    def count(self, kind: str) -> int:
        return sum(1 for call, _ in self.calls if call == kind)


def always() -> bool:
    return True


def never() -> bool:
    return False


@pytest.fixture
def header_chain() -> FilterChain:
    return FilterChain(is_body=False)


@pytest.fixture
def body_chain() -> FilterChain:
    return FilterChain(is_body=True)


@pytest.fixture
def stacks() -> FilterStacks:
    return FilterStacks()


@pytest.fixture
def sample_request() -> InterceptedRequest:
    return InterceptedRequest(
        method="GET",
        url="http://www.example.com/index.html?lang=en",
        headers={"Host": "www.example.com", "User-Agent": "test-agent/1.0"},
    )


@pytest.fixture
def html_response() -> InterceptedResponse:
    return InterceptedResponse(
        status_code=200,
        headers={"Content-Type": "text/html; charset=utf-8"},
    )


@pytest.fixture
def png_response() -> InterceptedResponse:
    return InterceptedResponse(
        status_code=200,
        headers={"Content-Type": "image/png"},
    )


def pytest_configure(config):
    """Configure test markers."""
    config.addinivalue_line(
        "markers",
        "integration: mark test as integration test"
    )
