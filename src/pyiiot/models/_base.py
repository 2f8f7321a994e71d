"""Base model for IIoT platform payloads.

Every payload model inherits from :class:`IiotBaseModel` which provides:

* frozen instances, so consumers can share them without copying.
* ``extra="ignore"`` and ``populate_by_name=True`` so both the camelCase
  REST keys and the snake_case keys the socket relay emits are accepted
  through per-field ``AliasChoices``.
* A ``model_validator(mode="before")`` that drops ``None`` and blank
  string values so the field default is used.
* A ``raw`` dict that captures the original payload.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field, model_validator


def _is_blank(value: Any) -> bool:
    if value is None:
        return True
    return isinstance(value, str) and not value.strip()


class IiotBaseModel(BaseModel):
    """Base for IIoT payload models."""

    model_config = ConfigDict(
        frozen=True,
        extra="ignore",
        populate_by_name=True,
    )

    raw: dict[str, Any] = Field(default_factory=dict, repr=False, exclude=True)
    """Original payload dict."""

    @model_validator(mode="before")
    @classmethod
    def _clean_values(cls, values: Any) -> Any:
        """Drop blank values and stash the raw payload."""
        if not isinstance(values, dict):
            return values
        cleaned = {key: value for key, value in values.items() if not _is_blank(value)}
        # Keep an explicitly passed raw= (e.g. when copying a model).
        if "raw" not in values:
            cleaned["raw"] = dict(values)
        return cleaned
