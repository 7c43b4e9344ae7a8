"""
HTTP message objects handed to filters and predicates.

The filter chain never inspects these itself; they travel through
``select``/``apply`` untouched and are only read by match predicates and
by the filters.
"""
from dataclasses import dataclass, field
from http import HTTPStatus
from typing import Any, Dict, List, Optional
import urllib.parse


class HeaderAccessMixin:
    """Case-insensitive access to a ``headers`` dict."""

    headers: Dict[str, str]

    def _find_header(self, name: str) -> Optional[str]:
        lowered = name.lower()
        for key in self.headers:
            if key.lower() == lowered:
                return key
        return None

    def set_header(self, name: str, value: str) -> None:
        """Set a header value, replacing any existing spelling of the name."""
        existing = self._find_header(name)
        if existing is not None and existing != name:
            del self.headers[existing]
        self.headers[name] = value

    def get_header(self, name: str, default: Any = None) -> Any:
        """Get a header value, ignoring the case of the name."""
        existing = self._find_header(name)
        return self.headers[existing] if existing is not None else default

    def remove_header(self, name: str) -> None:
        existing = self._find_header(name)
        if existing is not None:
            del self.headers[existing]


@dataclass
class InterceptedRequest(HeaderAccessMixin):
    """Represents an HTTP request passing through the proxy."""
    method: str
    url: str
    headers: Dict[str, str] = field(default_factory=dict)
    body: Optional[bytes] = None

    @property
    def parsed_url(self) -> urllib.parse.ParseResult:
        """Parse the URL into its components."""
        return urllib.parse.urlparse(self.url)

    @property
    def scheme(self) -> str:
        return self.parsed_url.scheme

    @property
    def host(self) -> str:
        return self.parsed_url.hostname or ""

    @property
    def path(self) -> str:
        return self.parsed_url.path

    @property
    def query(self) -> str:
        return self.parsed_url.query

    @property
    def query_params(self) -> Dict[str, List[str]]:
        """Parse query parameters into a dictionary."""
        return urllib.parse.parse_qs(self.query)

    def to_dict(self) -> dict:
        """Convert request to a dictionary format."""
        return {
            'method': self.method,
            'url': self.url,
            'headers': dict(self.headers),
            'body': self.body.decode('utf-8', errors='ignore') if self.body else None
        }


@dataclass
class InterceptedResponse(HeaderAccessMixin):
    """Represents an HTTP response passing through the proxy."""
    status_code: int
    headers: Dict[str, str] = field(default_factory=dict)
    body: Optional[bytes] = None

    @property
    def status(self) -> HTTPStatus:
        """Get the HTTP status enum for the status code."""
        return HTTPStatus(self.status_code)

    @property
    def content_type(self) -> str:
        """Media type without parameters, lowercased. Empty when absent."""
        value = self.get_header('Content-Type', '') or ''
        return value.split(';', 1)[0].strip().lower()

    def to_dict(self) -> dict:
        """Convert response to a dictionary format."""
        return {
            'status_code': self.status_code,
            'status': self.status.phrase,
            'headers': dict(self.headers),
            'body': self.body.decode('utf-8', errors='ignore') if self.body else None
        }


@dataclass
class MessageContext:
    """The request/response pair currently flowing through the proxy.

    Match predicates close over one of these, so updating it between
    messages is what makes the next ``select`` see the new message.
    """
    request: Optional[InterceptedRequest] = None
    response: Optional[InterceptedResponse] = None

    def clear(self) -> None:
        self.request = None
        self.response = None
