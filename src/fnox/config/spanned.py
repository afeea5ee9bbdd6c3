"""A value paired with the byte range it was read from."""

from __future__ import annotations

from typing import Any, Generic, Optional, TypeVar, get_args

from pydantic import GetCoreSchemaHandler
from pydantic_core import core_schema

T = TypeVar("T")

Span = tuple[int, int]


class SpannedValue(Generic[T]):
    """Wraps a config value with an optional ``(start, end)`` byte span.

    Equality and hashing consider only the value, so two configs that
    differ only in where a value was written compare equal. Serializes
    as the bare value.
    """

    __slots__ = ("value", "span")

    def __init__(self, value: T, span: Optional[Span] = None):
        self.value = value
        self.span = span

    def with_span(self, span: Optional[Span]) -> SpannedValue[T]:
        return SpannedValue(self.value, span)

    def __eq__(self, other: object) -> bool:
        if isinstance(other, SpannedValue):
            return bool(self.value == other.value)
        return bool(self.value == other)

    def __hash__(self) -> int:
        return hash(self.value)

    def __str__(self) -> str:
        return str(self.value)

    def __repr__(self) -> str:
        return f"SpannedValue({self.value!r}, span={self.span!r})"

    @classmethod
    def __get_pydantic_core_schema__(
        cls, source_type: Any, handler: GetCoreSchemaHandler
    ) -> core_schema.CoreSchema:
        args = get_args(source_type)
        inner = handler.generate_schema(args[0]) if args else core_schema.any_schema()
        return core_schema.union_schema(
            [
                core_schema.is_instance_schema(cls),
                core_schema.no_info_after_validator_function(cls, inner),
            ],
            serialization=core_schema.plain_serializer_function_ser_schema(
                lambda v: v.value if isinstance(v, SpannedValue) else v
            ),
        )


def unwrap(value: Optional[SpannedValue[T]]) -> Optional[T]:
    return None if value is None else value.value
