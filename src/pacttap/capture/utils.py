"""
Utility functions for the PactTap recording engine.

Provides helper functions for:
- Body text extraction (with explicit truncation)
- Header conversion
- Console color formatting
"""

from typing import Dict, Optional, Tuple

from mitmproxy import http

from ..common.utils import ANSI_CYAN, ANSI_GREEN, ANSI_RED, ANSI_RESET, ANSI_YELLOW

# Constants for body size limiting
MAX_BODY_SIZE = 1024 * 1024  # 1 MB

# HTTP status code ranges
HTTP_STATUS_2XX_MIN = 200
HTTP_STATUS_3XX_MIN = 300
HTTP_STATUS_4XX_MIN = 400
HTTP_STATUS_5XX_MIN = 500
HTTP_STATUS_5XX_MAX = 600


def body_text(message: http.Message, max_bytes: int = MAX_BODY_SIZE) -> Tuple[Optional[str], bool]:
    """
    Extract body text, limiting size to prevent memory issues.

    Handles both text and binary data gracefully:
    - If the body decodes as text, use it
    - Otherwise decode the raw bytes as UTF-8 with replacement characters
    - If nothing usable is left, return a placeholder

    Args:
        message: mitmproxy request or response
        max_bytes: Maximum size to capture (default 1 MB)

    Returns:
        (body, truncated): body is None when the message has no body,
        truncated is True when the body was cut at max_bytes
    """
    raw = message.raw_content
    if not raw:
        return None, False

    try:
        text = message.get_text(strict=False)
        if not text:
            text = raw.decode('utf-8', errors='replace')
    except (UnicodeDecodeError, ValueError, AttributeError, TypeError):
        return f"[binary data: {len(raw)} bytes]", False

    if len(text) > max_bytes:
        return text[:max_bytes], True
    return text, False


def headers_to_dict(headers: http.Headers) -> Dict[str, str]:
    """Convert mitmproxy headers to dict, joining repeated headers with ', '."""
    result: Dict[str, str] = {}
    for key, value in headers.items(multi=True):
        if key in result:
            result[key] = f"{result[key]}, {value}"
        else:
            result[key] = value
    return result


def status_color(status: int) -> str:
    """
    Get ANSI color code for HTTP status code.

    Color coding:
    - 2xx (Success): Green
    - 3xx (Redirect): Cyan
    - 4xx (Client Error): Yellow
    - 5xx (Server Error): Red

    Args:
        status: HTTP status code (200, 404, 500, etc.)

    Returns:
        ANSI escape code for color
    """
    if HTTP_STATUS_2XX_MIN <= status < HTTP_STATUS_3XX_MIN:
        return ANSI_GREEN
    elif HTTP_STATUS_3XX_MIN <= status < HTTP_STATUS_4XX_MIN:
        return ANSI_CYAN
    elif HTTP_STATUS_4XX_MIN <= status < HTTP_STATUS_5XX_MIN:
        return ANSI_YELLOW
    elif HTTP_STATUS_5XX_MIN <= status < HTTP_STATUS_5XX_MAX:
        return ANSI_RED
    return ""


def format_exchange(method: str, url: str, status: int, note: str = "") -> str:
    """One console line for a proxied exchange."""
    color = status_color(status)
    line = f"{method} {url} → {color}{status}{ANSI_RESET}"
    if note:
        line += f" ({note})"
    return line
