"""
PactTap Common Utilities

Shared utilities, error types and helpers used across PactTap modules.
"""

from .errors import (
    PactTapError,
    ConfigError,
    StartupError,
    ChildCrash,
    ReadError,
    MalformedRecord,
    WriteError,
)
from .utils import safe_json_parse, strip_volatile_headers, VOLATILE_HEADERS

__all__ = [
    'PactTapError',
    'ConfigError',
    'StartupError',
    'ChildCrash',
    'ReadError',
    'MalformedRecord',
    'WriteError',
    'safe_json_parse',
    'strip_volatile_headers',
    'VOLATILE_HEADERS',
]
