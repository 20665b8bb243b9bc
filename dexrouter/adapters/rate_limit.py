"""Rate-limit signal detection for indexer and RPC failures."""

from __future__ import annotations

from typing import Any

_RATE_LIMIT_MARKERS = ("rate limit", "too many requests", "429")


def is_rate_limit_error(error: Any) -> bool:
    """Check whether an error (or error payload) signals a rate limit.

    An error is rate-limited when its HTTP status or code is 429, or when its
    message mentions a rate limit.

    Args:
        error: An exception, a JSON-RPC/GraphQL error mapping, or a string

    Returns:
        True if the error is a rate-limit signal
    """
    if error is None:
        return False

    if isinstance(error, dict):
        status = error.get("status") or error.get("code")
        message = str(error.get("message", ""))
    elif isinstance(error, str):
        status = None
        message = error
    else:
        status = getattr(error, "status", None) or getattr(error, "code", None)
        response = getattr(error, "response", None)
        if status is None and response is not None:
            status = getattr(response, "status_code", None)
        message = str(error)

    if status is not None and str(status) == "429":
        return True

    lowered = message.lower()
    return any(marker in lowered for marker in _RATE_LIMIT_MARKERS)


__all__ = ["is_rate_limit_error"]
