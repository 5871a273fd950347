"""Helpers for turning exceptions into API error payloads."""

from __future__ import annotations

from worksync.exceptions import WorksyncError


def format_exception_for_response(e: Exception) -> dict[str, object]:
    """
    Format exception for API error response.

    Extracts error message and context from custom exceptions
    or formats generic exceptions for HTTP responses.

    Args:
        e: Exception to format

    Returns:
        Dictionary with error details suitable for API response
    """
    error_dict: dict[str, object] = {
        "error": type(e).__name__,
        "message": str(e),
    }

    if isinstance(e, WorksyncError) and e.context:
        error_dict["context"] = e.context

    return error_dict
