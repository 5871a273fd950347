"""
Utilities for redacting sensitive data from command output.

git and gh output can echo remote URLs with embedded credentials or
authentication tokens. Anything that ends up in logs or timeline events
passes through these helpers first.
"""

from __future__ import annotations

import re

# Patterns for detecting sensitive data
SENSITIVE_PATTERNS = {
    "github_token": r"\b(gh[pousr]_[A-Za-z0-9]{20,}|github_pat_[A-Za-z0-9_]{20,})\b",
    "url_credentials": r"(?<=://)[^/\s:@]+:[^/\s@]+(?=@)",
    "auth_token": r"(auth[_-]?token|token)[=:\s]+([a-zA-Z0-9_-]{20,})",
}

def redact_sensitive_data(text: str) -> str:
    """
    Redact sensitive data from string using pattern matching.

    Args:
        text: String potentially containing sensitive data

    Returns:
        String with sensitive patterns replaced with [REDACTED_*] placeholders
    """
    result = text
    for name, pattern in SENSITIVE_PATTERNS.items():
        result = re.sub(
            pattern,
            f"[REDACTED_{name.upper()}]",
            result,
            flags=re.IGNORECASE,
        )
    return result


def truncate_output(text: str, max_chars: int) -> str:
    """Trim command output to ``max_chars``, marking how much was dropped."""
    if max_chars <= 0 or len(text) <= max_chars:
        return text
    dropped = len(text) - max_chars
    return f"{text[:max_chars]}\n... [truncated {dropped} chars]"
