"""Filter stacks for an HTTP intercepting proxy.

This package provides:
- Ordered header and body filter chains with per-message selection
- Carry-over buffering of body data between chunks
- Match predicates built from request/response properties
- Loading filter definitions from YAML or JSON files
"""

from .builtin import CompleteBodyFilter, LinesBodyFilter, SimpleBodyFilter, SimpleHeaderFilter
from .chain import ChainState, FilterChain, RegistryEntry
from .errors import (
    FilterChainError,
    FilterConfigurationError,
    IndexOutOfRangeError,
    TypeMismatchError,
)
from .filters import BodyFilter, Filter, HeaderFilter
from .messages import InterceptedRequest, InterceptedResponse, MessageContext
from .stacks import FilterStacks
from .version import __version__

__all__ = [
    'FilterChain',
    'ChainState',
    'RegistryEntry',
    'FilterStacks',
    'Filter',
    'HeaderFilter',
    'BodyFilter',
    'SimpleHeaderFilter',
    'SimpleBodyFilter',
    'LinesBodyFilter',
    'CompleteBodyFilter',
    'InterceptedRequest',
    'InterceptedResponse',
    'MessageContext',
    'FilterChainError',
    'FilterConfigurationError',
    'IndexOutOfRangeError',
    'TypeMismatchError',
    '__version__',
]

import logging
logger = logging.getLogger(__name__)
logger.addHandler(logging.NullHandler())
