from __future__ import annotations

import math
from collections.abc import Mapping
from dataclasses import dataclass
from decimal import Context, Decimal, InvalidOperation
from typing import Any, assert_never

from .errors import TypeMismatchError


@dataclass(frozen=True, slots=True)
class Str:
    value: str


@dataclass(frozen=True, slots=True)
class Num:
    value: str

    def __post_init__(self) -> None:
        try:
            parsed = Decimal(self.value)
        except (InvalidOperation, TypeError) as err:
            raise ValueError(f"not a decimal number: {self.value!r}") from err
        if not parsed.is_finite():
            raise ValueError(f"number must be finite: {self.value!r}")


@dataclass(frozen=True, slots=True)
class Bin:
    value: bytes


@dataclass(frozen=True, slots=True)
class Bool:
    value: bool


@dataclass(frozen=True, slots=True)
class Null:
    pass


@dataclass(frozen=True, slots=True)
class List:
    items: tuple[AttributeValue, ...]


@dataclass(frozen=True, slots=True)
class Map:
    entries: Mapping[str, AttributeValue]

    def __hash__(self) -> int:
        return hash(tuple(sorted(self.entries.items(), key=lambda kv: kv[0])))


@dataclass(frozen=True, slots=True)
class StrSet:
    values: frozenset[str]

    def __post_init__(self) -> None:
        if not self.values:
            raise ValueError("string set must not be empty")


@dataclass(frozen=True, slots=True)
class NumSet:
    values: frozenset[str]

    def __post_init__(self) -> None:
        if not self.values:
            raise ValueError("number set must not be empty")
        for text in self.values:
            Num(text)


AttributeValue = Str | Num | Bin | Bool | Null | List | Map | StrSet | NumSet

KEY_VARIANTS = (Str, Num, Bin)


def type_tag(av: AttributeValue) -> str:
    if isinstance(av, Str):
        return "S"
    if isinstance(av, Num):
        return "N"
    if isinstance(av, Bin):
        return "B"
    if isinstance(av, Bool):
        return "BOOL"
    if isinstance(av, Null):
        return "NULL"
    if isinstance(av, List):
        return "L"
    if isinstance(av, Map):
        return "M"
    if isinstance(av, StrSet):
        return "SS"
    if isinstance(av, NumSet):
        return "NS"
    assert_never(av)


def canonical_number(value: int | float | Decimal) -> str:
    if isinstance(value, bool):
        raise TypeError("bool is not a number")
    if isinstance(value, int):
        return str(value)
    if isinstance(value, float):
        if not math.isfinite(value):
            raise ValueError(f"number must be finite: {value!r}")
        text = repr(value)
        if text.endswith(".0"):
            text = text[:-2]
        return text
    if isinstance(value, Decimal):
        if not value.is_finite():
            raise ValueError(f"number must be finite: {value!r}")
        if value.is_zero():
            return "0"
        exact = Context(prec=max(len(value.as_tuple().digits), 1))
        return format(value.normalize(exact), "f")
    raise TypeError(f"not a number: {type(value).__name__}")


def to_wire(av: AttributeValue) -> dict[str, Any]:
    if isinstance(av, Str):
        return {"S": av.value}
    if isinstance(av, Num):
        return {"N": av.value}
    if isinstance(av, Bin):
        return {"B": av.value}
    if isinstance(av, Bool):
        return {"BOOL": av.value}
    if isinstance(av, Null):
        return {"NULL": True}
    if isinstance(av, List):
        return {"L": [to_wire(v) for v in av.items]}
    if isinstance(av, Map):
        return {"M": {k: to_wire(v) for k, v in av.entries.items()}}
    if isinstance(av, StrSet):
        return {"SS": sorted(av.values)}
    if isinstance(av, NumSet):
        return {"NS": sorted(av.values, key=Decimal)}
    assert_never(av)


def from_wire(raw: Any, path: str = "<value>") -> AttributeValue:
    if not isinstance(raw, Mapping) or len(raw) != 1:
        raise TypeMismatchError(path, "single-key attribute value", type(raw).__name__)
    (kind, value), *_ = raw.items()

    if kind == "S" and isinstance(value, str):
        return Str(value)
    if kind == "N" and isinstance(value, str):
        try:
            return Num(value)
        except ValueError as err:
            raise TypeMismatchError(path, "decimal number", repr(value)) from err
    if kind == "B" and isinstance(value, (bytes, bytearray, memoryview)):
        return Bin(bytes(value))
    if kind == "BOOL" and isinstance(value, bool):
        return Bool(value)
    if kind == "NULL" and value is True:
        return Null()
    if kind == "L" and isinstance(value, list):
        return List(tuple(from_wire(v, f"{path}[{i}]") for i, v in enumerate(value)))
    if kind == "M" and isinstance(value, Mapping):
        return Map({str(k): from_wire(v, f"{path}.{k}") for k, v in value.items()})
    if kind == "SS" and isinstance(value, list) and value and all(isinstance(v, str) for v in value):
        return StrSet(frozenset(value))
    if kind == "NS" and isinstance(value, list) and value and all(isinstance(v, str) for v in value):
        try:
            return NumSet(frozenset(value))
        except ValueError as err:
            raise TypeMismatchError(path, "number set", repr(value)) from err

    raise TypeMismatchError(path, "supported attribute value", str(kind))


def item_to_wire(item: Mapping[str, AttributeValue]) -> dict[str, Any]:
    return {name: to_wire(av) for name, av in item.items()}


def item_from_wire(raw: Mapping[str, Any]) -> dict[str, AttributeValue]:
    return {str(name): from_wire(value, str(name)) for name, value in raw.items()}
