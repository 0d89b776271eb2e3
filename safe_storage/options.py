from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, Generic, TypeVar

from .schema import Schema

T = TypeVar("T")

Migrate = Callable[[Any, int], Any]


@dataclass(frozen=True)
class StorageOptions(Generic[T]):
    """
    Binds one storage key to a schema, a default and a version.

    - `schema` may be a Schema or any type pydantic can validate.
    - `default_value` is trusted and never validated.
    - `migrate(old_data, old_version)` only runs for records stored with a
      version lower than `version`.
    """

    key: str
    schema: Schema[T]
    default_value: T
    version: int = 1
    migrate: Migrate | None = None

    def __post_init__(self) -> None:
        if not isinstance(self.key, str) or not self.key:
            raise ValueError("key must be a non-empty string")
        if isinstance(self.version, bool) or not isinstance(self.version, int) or self.version < 0:
            raise ValueError(f"version must be a non-negative integer, got {self.version!r}")
        if self.migrate is not None and not callable(self.migrate):
            raise TypeError("migrate must be callable")
        if not isinstance(self.schema, Schema):
            object.__setattr__(self, "schema", Schema.of(self.schema))
