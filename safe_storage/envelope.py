from __future__ import annotations

import json
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, StrictInt, ValidationError, field_validator
from pydantic_core import to_jsonable_python

from .errors import DecodeError


class Envelope(BaseModel):
    """
    Versioned wrapper around every persisted value:
      { "data": <schema-shaped JSON>, "version": <non-negative int> }

    `data` is opaque here; the loader validates it against the schema.
    Records written before versioning existed carry no version and read as 0.
    """

    model_config = ConfigDict(frozen=True, extra="ignore")

    data: Any = None
    version: StrictInt = Field(default=0, ge=0)

    @field_validator("version", mode="before")
    @classmethod
    def _normalize_version(cls, v: Any) -> Any:
        if v is None:
            return 0
        # JSON writers may emit 2.0 for 2
        if isinstance(v, float) and v.is_integer():
            return int(v)
        return v


def encode(data: Any, version: int) -> str:
    if version < 0:
        raise ValueError(f"version must be >= 0, got {version}")
    return json.dumps(
        {"data": data, "version": int(version)},
        separators=(",", ":"),
        default=to_jsonable_python,
    )


def decode(raw: str) -> Envelope:
    try:
        return Envelope.model_validate_json(raw)
    except ValidationError as e:
        raise DecodeError(f"not a valid envelope: {e.error_count()} error(s)") from e
