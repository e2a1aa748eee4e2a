from __future__ import annotations

from collections.abc import AsyncGenerator, AsyncIterator, Awaitable, Callable, Mapping, Sequence
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Literal

from .attribute_value import AttributeValue, to_wire
from .errors import ValidationError
from .key import scalar_attribute

if TYPE_CHECKING:
    from .codec import Codec


@dataclass(frozen=True)
class SortKeyCondition:
    op: str
    values: tuple[Any, ...]

    @staticmethod
    def eq(value: Any) -> SortKeyCondition:
        return SortKeyCondition(op="=", values=(value,))

    @staticmethod
    def lt(value: Any) -> SortKeyCondition:
        return SortKeyCondition(op="<", values=(value,))

    @staticmethod
    def lte(value: Any) -> SortKeyCondition:
        return SortKeyCondition(op="<=", values=(value,))

    @staticmethod
    def gt(value: Any) -> SortKeyCondition:
        return SortKeyCondition(op=">", values=(value,))

    @staticmethod
    def gte(value: Any) -> SortKeyCondition:
        return SortKeyCondition(op=">=", values=(value,))

    @staticmethod
    def between(low: Any, high: Any) -> SortKeyCondition:
        return SortKeyCondition(op="between", values=(low, high))

    @staticmethod
    def begins_with(prefix: Any) -> SortKeyCondition:
        return SortKeyCondition(op="begins_with", values=(prefix,))


type LogicalOp = Literal["AND", "OR"]


@dataclass(frozen=True)
class FilterCondition:
    field: str
    op: str
    values: tuple[Any, ...] = ()

    @staticmethod
    def eq(field: str, value: Any) -> FilterCondition:
        return FilterCondition(field=field, op="=", values=(value,))

    @staticmethod
    def ne(field: str, value: Any) -> FilterCondition:
        return FilterCondition(field=field, op="<>", values=(value,))

    @staticmethod
    def lt(field: str, value: Any) -> FilterCondition:
        return FilterCondition(field=field, op="<", values=(value,))

    @staticmethod
    def lte(field: str, value: Any) -> FilterCondition:
        return FilterCondition(field=field, op="<=", values=(value,))

    @staticmethod
    def gt(field: str, value: Any) -> FilterCondition:
        return FilterCondition(field=field, op=">", values=(value,))

    @staticmethod
    def gte(field: str, value: Any) -> FilterCondition:
        return FilterCondition(field=field, op=">=", values=(value,))

    @staticmethod
    def between(field: str, low: Any, high: Any) -> FilterCondition:
        return FilterCondition(field=field, op="between", values=(low, high))

    @staticmethod
    def begins_with(field: str, prefix: Any) -> FilterCondition:
        return FilterCondition(field=field, op="begins_with", values=(prefix,))

    @staticmethod
    def contains(field: str, value: Any) -> FilterCondition:
        return FilterCondition(field=field, op="contains", values=(value,))

    @staticmethod
    def in_(field: str, values: Sequence[Any]) -> FilterCondition:
        return FilterCondition(field=field, op="in", values=(list(values),))

    @staticmethod
    def exists(field: str) -> FilterCondition:
        return FilterCondition(field=field, op="exists")

    @staticmethod
    def not_exists(field: str) -> FilterCondition:
        return FilterCondition(field=field, op="not_exists")


@dataclass(frozen=True)
class FilterGroup:
    op: LogicalOp
    filters: tuple[FilterExpression, ...]

    @staticmethod
    def and_(*filters: FilterExpression) -> FilterGroup:
        return FilterGroup(op="AND", filters=tuple(filters))

    @staticmethod
    def or_(*filters: FilterExpression) -> FilterGroup:
        return FilterGroup(op="OR", filters=tuple(filters))


type FilterExpression = FilterCondition | FilterGroup

_COMPARISONS = {"=", "<>", "<", "<=", ">", ">="}


def sort_key_expression(
    cond: SortKeyCondition,
    values: dict[str, Any],
    *,
    convert: Callable[[Any], Any] | None = None,
    check: Callable[[AttributeValue], None] | None = None,
) -> str:
    def ref(name: str, value: Any) -> str:
        if convert is not None:
            value = convert(value)
        av = scalar_attribute(value, role="sort")
        if check is not None:
            check(av)
        values[name] = to_wire(av)
        return name

    op = cond.op
    if op in _COMPARISONS:
        if len(cond.values) != 1:
            raise ValidationError("invalid sort key condition")
        return f"#sk {op} {ref(':sk', cond.values[0])}"
    if op == "between":
        if len(cond.values) != 2:
            raise ValidationError("invalid sort key condition")
        return f"#sk BETWEEN {ref(':sk1', cond.values[0])} AND {ref(':sk2', cond.values[1])}"
    if op == "begins_with":
        if len(cond.values) != 1:
            raise ValidationError("invalid sort key condition")
        return f"begins_with(#sk, {ref(':sk', cond.values[0])})"
    raise ValidationError(f"unsupported sort key operator: {op}")


def filter_expression(
    expr: FilterExpression,
    codec: Codec[Any],
    names: dict[str, str],
    values: dict[str, Any],
) -> str:
    attributes = codec.definition.attributes
    counter = 0

    def name_ref(field_name: str) -> str:
        if field_name not in attributes:
            raise ValidationError(f"unknown field: {field_name}")
        ref = f"#f_{field_name}"
        names[ref] = attributes[field_name].attribute_name
        return ref

    def value_ref(field_name: str, value: Any) -> str:
        nonlocal counter
        av = codec.encode_value(field_name, value)
        if av is None:
            raise ValidationError(f"{field_name}: empty sets cannot be compared")
        counter += 1
        ref = f":f{counter}"
        values[ref] = to_wire(av)
        return ref

    def build(node: FilterExpression) -> str:
        if isinstance(node, FilterGroup):
            parts = [p for p in (build(f) for f in node.filters) if p]
            if not parts:
                return ""
            return "(" + f" {node.op} ".join(parts) + ")"

        if not isinstance(node, FilterCondition):
            raise ValidationError("invalid filter expression")

        name = name_ref(node.field)
        op = node.op.upper()
        vals = node.values

        if op in _COMPARISONS:
            if len(vals) != 1:
                raise ValidationError(f"{node.op} requires one value")
            return f"{name} {op} {value_ref(node.field, vals[0])}"
        if op == "BETWEEN":
            if len(vals) != 2:
                raise ValidationError("BETWEEN requires two values")
            return f"{name} BETWEEN {value_ref(node.field, vals[0])} AND {value_ref(node.field, vals[1])}"
        if op == "IN":
            if len(vals) != 1 or not isinstance(vals[0], list) or not vals[0]:
                raise ValidationError("IN requires a non-empty sequence of values")
            if len(vals[0]) > 100:
                raise ValidationError("IN supports maximum 100 values")
            refs = [value_ref(node.field, v) for v in vals[0]]
            return f"{name} IN (" + ", ".join(refs) + ")"
        if op == "BEGINS_WITH":
            if len(vals) != 1:
                raise ValidationError("BEGINS_WITH requires one value")
            return f"begins_with({name}, {value_ref(node.field, vals[0])})"
        if op == "CONTAINS":
            if len(vals) != 1:
                raise ValidationError("CONTAINS requires one value")
            return f"contains({name}, {value_ref(node.field, vals[0])})"
        if op == "EXISTS":
            if vals:
                raise ValidationError("EXISTS does not take a value")
            return f"attribute_exists({name})"
        if op == "NOT_EXISTS":
            if vals:
                raise ValidationError("NOT_EXISTS does not take a value")
            return f"attribute_not_exists({name})"

        raise ValidationError(f"unsupported filter operator: {node.op}")

    return build(expr)


class ItemStream[T]:
    def __init__(
        self,
        fetch_page: Callable[[Mapping[str, Any] | None], Awaitable[Mapping[str, Any]]],
        decode: Callable[[Mapping[str, Any]], T],
    ) -> None:
        self._fetch_page = fetch_page
        self._decode = decode

    def __aiter__(self) -> AsyncIterator[T]:
        return self._iterate()

    async def _iterate(self) -> AsyncGenerator[T, None]:
        start_key: Mapping[str, Any] | None = None
        while True:
            resp = await self._fetch_page(start_key)
            for raw in resp.get("Items", []):
                yield self._decode(raw)
            start_key = resp.get("LastEvaluatedKey")
            if not start_key:
                return

    async def collect(self) -> list[T]:
        return [item async for item in self]

    async def first(self) -> T | None:
        iterator = self._iterate()
        try:
            async for item in iterator:
                return item
            return None
        finally:
            await iterator.aclose()
