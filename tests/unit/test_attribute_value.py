from __future__ import annotations

from decimal import Decimal

import pytest

from dynamode_py.attribute_value import (
    Bin,
    Bool,
    List,
    Map,
    Null,
    Num,
    NumSet,
    Str,
    StrSet,
    canonical_number,
    from_wire,
    item_from_wire,
    item_to_wire,
    to_wire,
    type_tag,
)
from dynamode_py.errors import TypeMismatchError


def test_to_wire_covers_every_variant() -> None:
    assert to_wire(Str("a")) == {"S": "a"}
    assert to_wire(Num("1.5")) == {"N": "1.5"}
    assert to_wire(Bin(b"\x00\x01")) == {"B": b"\x00\x01"}
    assert to_wire(Bool(False)) == {"BOOL": False}
    assert to_wire(Null()) == {"NULL": True}
    assert to_wire(List((Str("x"), Num("2")))) == {"L": [{"S": "x"}, {"N": "2"}]}
    assert to_wire(Map({"k": Bool(True)})) == {"M": {"k": {"BOOL": True}}}
    assert to_wire(StrSet(frozenset({"b", "a"}))) == {"SS": ["a", "b"]}
    assert to_wire(NumSet(frozenset({"10", "9", "-1.5"}))) == {"NS": ["-1.5", "9", "10"]}


def test_from_wire_rebuilds_nested_values() -> None:
    raw = {"M": {"tags": {"SS": ["x"]}, "scores": {"L": [{"N": "1"}, {"NULL": True}]}}}
    value = from_wire(raw)
    assert value == Map({"tags": StrSet(frozenset({"x"})), "scores": List((Num("1"), Null()))})
    assert to_wire(value) == raw


def test_type_tags() -> None:
    assert [type_tag(v) for v in (Str(""), Num("0"), Bin(b""), Bool(True), Null())] == [
        "S",
        "N",
        "B",
        "BOOL",
        "NULL",
    ]
    assert type_tag(List(())) == "L"
    assert type_tag(Map({})) == "M"
    assert type_tag(StrSet(frozenset({"a"}))) == "SS"
    assert type_tag(NumSet(frozenset({"1"}))) == "NS"


@pytest.mark.parametrize(
    ("value", "expected"),
    [
        (0, "0"),
        (-12, "-12"),
        (2000, "2000"),
        (1.5, "1.5"),
        (3.0, "3"),
        (Decimal("1.10"), "1.1"),
        (Decimal("2.500E+3"), "2500"),
        (Decimal("-0.00"), "0"),
        (Decimal("0.1234567890123456789012345678901234"), "0.1234567890123456789012345678901234"),
        (12345678901234567890, "12345678901234567890"),
    ],
)
def test_canonical_number(value: int | float | Decimal, expected: str) -> None:
    assert canonical_number(value) == expected


@pytest.mark.parametrize("value", [float("nan"), float("inf"), Decimal("NaN"), Decimal("-Infinity")])
def test_canonical_number_rejects_non_finite(value: float | Decimal) -> None:
    with pytest.raises(ValueError):
        canonical_number(value)


def test_canonical_number_rejects_bool() -> None:
    with pytest.raises(TypeError):
        canonical_number(True)


def test_variants_enforce_their_invariants() -> None:
    with pytest.raises(ValueError):
        Num("abc")
    with pytest.raises(ValueError):
        Num("Infinity")
    with pytest.raises(ValueError):
        StrSet(frozenset())
    with pytest.raises(ValueError):
        NumSet(frozenset())
    with pytest.raises(ValueError):
        NumSet(frozenset({"1", "x"}))


def test_map_is_hashable_and_order_insensitive() -> None:
    a = Map({"x": Num("1"), "y": Str("z")})
    b = Map({"y": Str("z"), "x": Num("1")})
    assert a == b
    assert hash(a) == hash(b)


@pytest.mark.parametrize(
    "raw",
    [
        {"S": 1},
        {"N": "not-a-number"},
        {"BS": [b"a"]},
        {"SS": []},
        {"NULL": False},
        {"S": "a", "N": "1"},
        "plain",
    ],
)
def test_from_wire_rejects_malformed_values(raw: object) -> None:
    with pytest.raises(TypeMismatchError):
        from_wire(raw, "attr")


def test_item_wire_helpers_name_the_offending_attribute() -> None:
    item = item_from_wire({"id": {"S": "a"}, "n": {"N": "2"}})
    assert item == {"id": Str("a"), "n": Num("2")}
    assert item_to_wire(item) == {"id": {"S": "a"}, "n": {"N": "2"}}

    with pytest.raises(TypeMismatchError) as excinfo:
        item_from_wire({"id": {"S": "a"}, "broken": {"X": "?"}})
    assert excinfo.value.name == "broken"
