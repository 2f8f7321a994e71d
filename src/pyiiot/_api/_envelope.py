"""Response envelope handling.

The backend wraps most payloads as ``{"success": true, "data": ...}``
while a few routes answer with the bare payload.
"""

from __future__ import annotations

from typing import Any, TypeVar

from pydantic import BaseModel, ValidationError

from pyiiot.exceptions import IiotMalformedPayloadError

M = TypeVar("M", bound=BaseModel)


def unwrap(body: Any) -> Any:
    """Return ``body["data"]`` for enveloped responses, otherwise *body* itself."""
    if isinstance(body, dict) and "data" in body and ("success" in body or "timestamp" in body):
        return body["data"]
    return body


def validate_model(model: type[M], payload: Any, *, endpoint: str) -> M:
    """Validate one object from *endpoint* into *model*."""
    if not isinstance(payload, dict):
        raise IiotMalformedPayloadError(
            f"{endpoint} returned {type(payload).__name__}, expected an object",
            event=endpoint,
        )
    try:
        return model.model_validate(payload)
    except ValidationError as exc:
        raise IiotMalformedPayloadError(f"{endpoint} payload invalid: {exc}", event=endpoint) from exc


def validate_list(model: type[M], payload: Any, *, endpoint: str) -> list[M]:
    """Validate a list response from *endpoint* into *model* instances."""
    if not isinstance(payload, list):
        raise IiotMalformedPayloadError(
            f"{endpoint} returned {type(payload).__name__}, expected a list",
            event=endpoint,
        )
    return [validate_model(model, item, endpoint=endpoint) for item in payload]
