"""
PactTap Common Utilities

Shared helpers used by both the recording engine and the contract pipeline.
"""

import json
from typing import Any, Dict, Iterable, Optional


# ANSI color codes
ANSI_GREEN = "\033[32m"
ANSI_CYAN = "\033[36m"
ANSI_YELLOW = "\033[33m"
ANSI_RED = "\033[31m"
ANSI_RESET = "\033[0m"

# Transport-level headers that change between otherwise identical exchanges
VOLATILE_HEADERS = frozenset([
    'age',
    'connection',
    'content-length',
    'date',
    'etag',
    'expires',
    'host',
    'keep-alive',
    'last-modified',
    'proxy-connection',
    'server',
    'transfer-encoding',
    'upgrade',
    'via',
    'x-request-id',
])


def safe_json_parse(json_string: Optional[str], default: Any = None) -> Any:
    """
    Safely parse JSON string with error handling.

    Args:
        json_string: JSON string to parse
        default: Default value to return if parsing fails

    Returns:
        Parsed JSON object, or default if parsing fails

    Example:
        body = safe_json_parse(record.response_body, default=record.response_body)
    """
    if not json_string:
        return default

    try:
        return json.loads(json_string)
    except (json.JSONDecodeError, TypeError, ValueError):
        return default


def strip_volatile_headers(
    headers: Dict[str, str],
    additional_headers: Optional[Iterable[str]] = None
) -> Dict[str, str]:
    """
    Drop transport headers that vary per exchange and lower-case the rest.

    Header names are case-insensitive on the wire, so they are normalised to
    lower case and returned sorted by name.

    Args:
        headers: Dictionary of captured headers
        additional_headers: Optional extra header names to drop

    Returns:
        New dictionary with only the stable headers
    """
    ignored = set(VOLATILE_HEADERS)
    if additional_headers:
        ignored.update(h.lower() for h in additional_headers)

    stable = {k.lower(): v for k, v in headers.items() if k.lower() not in ignored}
    return dict(sorted(stable.items()))
