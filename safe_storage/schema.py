from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Generic, TypeVar

from pydantic import TypeAdapter, ValidationError

from .diagnostics import validation_details

T = TypeVar("T")


@dataclass(frozen=True)
class ParseResult(Generic[T]):
    success: bool
    data: T | None = None
    error: ValidationError | None = None

    def issues(self) -> list[dict[str, Any]]:
        if self.error is None:
            return []
        return validation_details(self.error)


class Schema(Generic[T]):
    """
    Validator for values of type T, backed by a pydantic TypeAdapter.

    Accepts anything pydantic can validate: BaseModel subclasses, TypedDicts,
    dataclasses, builtin generics and their unions.
    """

    def __init__(self, type_: Any, *, strict: bool = False):
        self._type = type_
        self._strict = strict
        self._adapter: TypeAdapter[T] = TypeAdapter(type_)

    @classmethod
    def of(cls, schema_or_type: Any) -> "Schema[Any]":
        if isinstance(schema_or_type, Schema):
            return schema_or_type
        return cls(schema_or_type)

    @property
    def type(self) -> Any:
        return self._type

    def parse(self, value: Any) -> T:
        """Validate and return the (possibly coerced) value. Raises pydantic.ValidationError."""
        return self._adapter.validate_python(value, strict=self._strict)

    def safe_parse(self, value: Any) -> ParseResult[T]:
        try:
            return ParseResult(success=True, data=self.parse(value))
        except ValidationError as e:
            return ParseResult(success=False, error=e)

    def dump(self, value: T) -> Any:
        """JSON-compatible form of a validated value."""
        return self._adapter.dump_python(value, mode="json")

    def __repr__(self) -> str:
        name = getattr(self._type, "__name__", repr(self._type))
        return f"Schema({name}, strict={self._strict})"
