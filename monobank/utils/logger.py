"""
Logger utility for the monobank acquiring SDK
Provides header redaction and body truncation helpers for diagnostics
"""

from typing import Dict, Any, Mapping

from ..config.logging import get_logger

# Headers that should be redacted in logs
REDACT_HEADERS = {
    "authorization",
    "proxy-authorization",
    "cookie",
    "set-cookie",
    "x-token",
    "x-api-key",
}

REDACT_VALUE = "[REDACTED]"

# Upper bound for response/request bodies kept in logs and errors
MAX_BODY_BYTES = 4096

log = get_logger("monobank")


def redact_headers(headers: Mapping[str, Any]) -> Dict[str, Any]:
    """
    Redact sensitive headers for logging

    Args:
        headers: Mapping of HTTP headers

    Returns:
        Dictionary with sensitive values redacted
    """
    redacted = {}
    for key, value in headers.items():
        key_lower = key.lower()
        if key_lower in REDACT_HEADERS:
            redacted[key] = REDACT_VALUE
        elif any(
            sensitive in key_lower for sensitive in ["token", "secret", "key", "auth"]
        ):
            redacted[key] = REDACT_VALUE
        else:
            redacted[key] = value
    return redacted


def trim_body(body: bytes, limit: int = MAX_BODY_BYTES) -> bytes:
    """Return at most `limit` leading bytes of body (a copy)"""
    if not body:
        return b""
    if limit <= 0 or len(body) <= limit:
        return bytes(body)
    return bytes(body[:limit])


def body_preview(body: bytes, limit: int = MAX_BODY_BYTES) -> str:
    """Decode a truncated body for log output"""
    return trim_body(body, limit).decode("utf-8", errors="replace")
