"""
The four filter stacks of the proxy.

``FilterStacks`` is the part of the proxy that owns the request/response
header and body chains. It keeps track of the message being processed,
turns ``push_filter`` match keywords into predicates, and offers the
helpers the I/O loop uses to drive the chains.
"""
import logging
from typing import Any, Dict, Iterable, Iterator, List, Optional

from .chain import FilterChain
from .errors import FilterConfigurationError
from .filters import BodyFilter, Filter, HeaderFilter
from .matching import build_predicate, match_conditions
from .messages import InterceptedRequest, InterceptedResponse, MessageContext

logger = logging.getLogger(__name__)

CHAIN_NAMES = ("request_headers", "request_body", "response_headers", "response_body")

DEFAULT_MIME = "text/*"

_UNSET = object()


class FilterStacks:
    """Owns the request and response header/body filter chains."""

    def __init__(self, default_mime: Optional[str] = DEFAULT_MIME):
        """Initialize four empty chains.

        Args:
            default_mime: Content type glob applied to response body filters
                pushed without an explicit ``mime``. None disables it.
        """
        self.context = MessageContext()
        self.default_mime = default_mime
        self.chains: Dict[str, FilterChain] = {
            name: FilterChain(is_body=name.endswith("_body"), owner=self, name=name)
            for name in CHAIN_NAMES
        }

    @property
    def request_headers(self) -> FilterChain:
        return self.chains["request_headers"]

    @property
    def request_body(self) -> FilterChain:
        return self.chains["request_body"]

    @property
    def response_headers(self) -> FilterChain:
        return self.chains["response_headers"]

    @property
    def response_body(self) -> FilterChain:
        return self.chains["response_body"]

    def chain(self, name: str) -> FilterChain:
        try:
            return self.chains[name]
        except KeyError:
            raise KeyError(f"Unknown filter chain: {name}") from None

    def log(self, level: int, message: str) -> None:
        """Logging collaborator used by the chains and filters."""
        logger.log(level, message)

    # Configuration

    def push_filter(
        self,
        request: Iterable[Filter] = (),
        response: Iterable[Filter] = (),
        mime: Any = _UNSET,
        **match: Optional[str],
    ) -> None:
        """Register filters on the request and/or response side.

        Each filter lands on the header or body chain of its side according
        to its type. Match keywords (``method``, ``scheme``, ``host``,
        ``path``, ``query``, ``mime``) restrict the messages it applies to.
        ``mime`` defaults to ``text/*`` for response body filters only.

        Raises:
            FilterConfigurationError: On unknown keywords, bad patterns or
                objects that are neither header nor body filters
        """
        request, response = list(request), list(response)
        if not request and not response:
            raise FilterConfigurationError("push_filter() needs request or response filters")

        base = match_conditions(**match)
        explicit_mime = mime is not _UNSET
        mime_conditions = match_conditions(mime=mime if explicit_mime else self.default_mime)

        plan = []
        for side, filters in (("request", request), ("response", response)):
            for filter_obj in filters:
                if isinstance(filter_obj, BodyFilter):
                    kind = "body"
                elif isinstance(filter_obj, HeaderFilter):
                    kind = "headers"
                else:
                    raise FilterConfigurationError(
                        f"{filter_obj!r} is neither a HeaderFilter nor a BodyFilter"
                    )
                conditions = list(base)
                # A content type only exists once the response headers are in
                if side == "response" and (kind == "body" or explicit_mime):
                    conditions += mime_conditions
                plan.append((f"{side}_{kind}", filter_obj, conditions))

        for chain_name, filter_obj, conditions in plan:
            filter_obj.proxy = self
            predicate = build_predicate(self.context, conditions)
            self.chains[chain_name].append((predicate, filter_obj))
            logger.debug(f"Pushed {filter_obj.description} onto {chain_name} "
                         f"with {len(conditions)} conditions")

    # Message processing

    def set_request(self, request: Optional[InterceptedRequest]) -> None:
        self.context.request = request
        self.context.response = None

    def set_response(self, response: Optional[InterceptedResponse]) -> None:
        self.context.response = response

    def filter_request_headers(self, request: InterceptedRequest) -> InterceptedRequest:
        """Run the request header chain over ``request``."""
        self.set_request(request)
        try:
            self.request_headers.apply(request.headers, request)
        finally:
            self.request_headers.finish()
        return request

    def filter_response_headers(self, response: InterceptedResponse) -> InterceptedResponse:
        """Run the response header chain over ``response``."""
        self.set_response(response)
        try:
            self.response_headers.apply(response.headers, response)
        finally:
            self.response_headers.finish()
        return response

    def filter_body(
        self,
        chain_name: str,
        chunks: Iterable[bytes],
        message: Any,
        protocol: Any = None,
    ) -> Iterator[bytes]:
        """Run a body chain over ``chunks``, yielding what comes out.

        One output piece is yielded per input chunk, plus a final one for
        whatever the filters flush on the terminal call. Pieces may be
        empty when filters are holding data back.
        """
        chain = self.chain(chain_name)
        if not chain.is_body:
            raise FilterConfigurationError(f"{chain_name} is not a body chain")

        try:
            chain.select(message)
            for chunk in chunks:
                yield bytes(chain.apply(chunk, message, protocol))
            yield bytes(chain.finish_last(bytearray(), message, protocol))
        finally:
            chain.finish()

    def will_modify(self, chain_name: str = "response_body") -> bool:
        return self.chain(chain_name).will_modify()

    def all_filters(self) -> Dict[str, List[Filter]]:
        return {
            name: [filter_obj for _, filter_obj in chain.list_all()]
            for name, chain in self.chains.items()
        }

    def reset(self) -> None:
        """Finish every chain and forget the current messages."""
        for chain in self.chains.values():
            chain.finish()
        self.context.clear()

    def __repr__(self) -> str:
        sizes = ", ".join(f"{name}={len(chain)}" for name, chain in self.chains.items())
        return f"FilterStacks({sizes})"
