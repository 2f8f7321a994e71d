"""Helpers for safe debug logging.

pyiiot handles bearer tokens, refresh tokens and passwords. This module
provides a small utility to redact sensitive fields before emitting DEBUG
logs.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from typing import Any

_SENSITIVE_VALUE_KEYS: frozenset[str] = frozenset(
    {
        "password",
        "password_confirmation",
        "passwordconfirmation",
        "token",
        "refreshtoken",
        "refresh_token",
        "accesstoken",
        "access_token",
        "iiot_token",
        "iiot_refresh_token",
        "authorization",
        "cookie",
        "auth",
    }
)


def redact_for_log(value: Any, *, max_string: int = 512, _depth: int = 0) -> Any:
    """Return a redacted copy of *value* suitable for debug logs."""
    if _depth > 20:
        return "<max-depth>"

    if value is None:
        return None

    if isinstance(value, str):
        if len(value) > max_string:
            return f"{value[:max_string]}…<truncated>"
        return value

    if isinstance(value, (int, float, bool)):
        return value

    if isinstance(value, bytes):
        return f"<bytes:{len(value)}b>"

    if isinstance(value, Mapping):
        redacted: dict[str, Any] = {}
        for k, v in value.items():
            key = str(k)
            if key.lower() in _SENSITIVE_VALUE_KEYS:
                redacted[key] = "<redacted>"
            else:
                redacted[key] = redact_for_log(v, max_string=max_string, _depth=_depth + 1)
        return redacted

    if isinstance(value, Sequence) and not isinstance(value, (str, bytes, bytearray)):
        return [redact_for_log(v, max_string=max_string, _depth=_depth + 1) for v in value]

    return repr(value)


def mask_token(token: str | None) -> str:
    """Short, non-reversible label for a bearer token in log lines."""
    if not token:
        return "<none>"
    if len(token) <= 8:
        return "<redacted>"
    return f"{token[:4]}…{token[-2:]}"


def redact_headers(headers: Mapping[str, str]) -> dict[str, str]:
    """Copy *headers* with the credential-bearing ones replaced."""
    return {
        key: ("<redacted>" if key.lower() in _SENSITIVE_VALUE_KEYS else value)
        for key, value in headers.items()
    }
