from __future__ import annotations

from collections.abc import Mapping
from typing import Any

REDACTED = "***REDACTED***"

SENSITIVE_KEYS: frozenset[str] = frozenset(
    {
        "secret",
        "token",
        "password",
        "private_key",
        "signing_key",
        "certificate_pem",
    }
)

# PEM blocks are masked whatever key they sit under.
PEM_MARKER = "-----BEGIN "


def _is_sensitive_key(key: str) -> bool:
    normalized = key.lower()
    return any(sensitive in normalized for sensitive in SENSITIVE_KEYS)


def _redact_value(value: Any) -> Any:
    if isinstance(value, str) and PEM_MARKER in value:
        return REDACTED
    return redact_sensitive(value)


def redact_sensitive(data: Any) -> Any:
    """Mask secret-like keys and PEM blocks anywhere in a log payload."""
    if isinstance(data, Mapping):
        return {
            key: REDACTED if _is_sensitive_key(str(key)) else _redact_value(value)
            for key, value in data.items()
        }
    if isinstance(data, list | tuple):
        return [_redact_value(item) for item in data]
    return data
