"""
Log sanitization utilities to prevent log injection attacks.
"""

import re
from typing import Any


def sanitize_for_log(value: Any, max_length: int = 100) -> str:
    """
    Sanitize a value for safe logging.

    Removes control characters and newlines that could forge log lines,
    and truncates long values.

    Args:
        value: The value to sanitize
        max_length: Maximum length of the output (default 100)

    Returns:
        Sanitized string safe for logging
    """
    sanitized = re.sub(r"[\x00-\x1f\x7f-\x9f\r\n\t]", "", str(value))

    if len(sanitized) > max_length:
        sanitized = sanitized[:max_length] + "..."

    return sanitized


def sanitize_url(url: str) -> str:
    """
    Strip credentials and query strings from a URL before logging it.

    Args:
        url: Agent URL, possibly with user:password@ or a query

    Returns:
        scheme://host[:port]/path
    """
    without_query = url.split("?", 1)[0]
    cleaned = re.sub(r"//[^/@]*@", "//", without_query)
    return sanitize_for_log(cleaned, max_length=200)
