from __future__ import annotations

from dataclasses import dataclass
from datetime import UTC, datetime

import pytest

from dynamode_py import InvalidKeyError, Key
from dynamode_py.attribute_value import Num, Str
from dynamode_py.model import (
    DynamoModel,
    EpochSecondsConverter,
    ModelDefinition,
    ModelDefinitionError,
    dynamode_field,
    dynamode_model,
)


@dataclass(frozen=True)
class Reading:
    sensor: str = dynamode_field(name="PK", roles=["pk"])
    taken_at: int = dynamode_field(name="SK", roles=["sk"])
    value: float = dynamode_field()
    unit: str = dynamode_field(omitempty=True, default="")
    scratch: str = dynamode_field(ignore=True, default="")


@dynamode_model("cars")
@dataclass(frozen=True)
class Car:
    make: str = dynamode_field(roles=["pk"])
    model: str = dynamode_field(roles=["sk"])
    year: int = dynamode_field()


@dynamode_model("events")
@dataclass(frozen=True)
class Event:
    day: datetime = dynamode_field(roles=["pk"], converter=EpochSecondsConverter())
    name: str = dynamode_field()


@dynamode_model("custom")
@dataclass(frozen=True)
class CustomKey:
    id: str = dynamode_field(roles=["pk"])

    @classmethod
    def table_name(cls) -> str:
        return "custom_override"

    def key(self) -> Key:
        return Key.of(self.id.lower())


def test_model_definition_extracts_keys_and_attributes() -> None:
    model = ModelDefinition.from_dataclass(Reading, table_name="readings")

    assert model.pk.attribute_name == "PK"
    assert model.sk is not None and model.sk.attribute_name == "SK"
    assert model.attributes["unit"].omitempty is True
    assert model.attributes["value"].required is True
    assert "scratch" not in model.attributes

    descriptor = model.descriptor
    assert descriptor.name == "readings"
    assert descriptor.partition_key_name == "PK"
    assert descriptor.partition_key_type == "S"
    assert descriptor.sort_key_name == "SK"
    assert descriptor.sort_key_type == "N"


def test_key_for_applies_field_types() -> None:
    model = ModelDefinition.from_dataclass(Reading, table_name="readings")

    assert model.key_for("s-1", 1700000000) == Key(partition=Str("s-1"), sort=Num("1700000000"))
    with pytest.raises(InvalidKeyError):
        model.key_for("s-1")
    with pytest.raises(InvalidKeyError):
        model.key_for(None, 1)


def test_decorator_adds_capability_methods() -> None:
    car = Car(make="Toyota", model="Corolla", year=2020)

    assert Car.table_name() == "cars"
    assert car.key() == Key(partition=Str("Toyota"), sort=Str("Corolla"))
    assert isinstance(car, DynamoModel)


def test_decorator_keeps_hand_written_capabilities() -> None:
    record = CustomKey(id="ABC")

    assert CustomKey.table_name() == "custom_override"
    assert record.key() == Key(partition=Str("abc"))
    assert ModelDefinition.for_model(CustomKey).table_name == "custom_override"


def test_for_model_caches_per_type() -> None:
    first = ModelDefinition.for_model(Car)
    assert ModelDefinition.for_model(Car) is first


def test_for_model_requires_table_name() -> None:
    with pytest.raises(ModelDefinitionError, match="table_name"):
        ModelDefinition.for_model(Reading)


def test_converter_key_fields_store_converted_values() -> None:
    model = ModelDefinition.for_model(Event)
    day = datetime(2024, 1, 2, tzinfo=UTC)

    assert model.descriptor.partition_key_type == "N"
    assert model.key_for(day) == Key(partition=Num(str(int(day.timestamp()))))


def test_key_for_rejects_sort_on_partition_only_model() -> None:
    model = ModelDefinition.for_model(Event)
    with pytest.raises(InvalidKeyError):
        model.key_for(datetime(2024, 1, 2, tzinfo=UTC), "extra")


def test_model_definition_rejects_missing_pk() -> None:
    @dataclass(frozen=True)
    class Bad:
        sk: str = dynamode_field(roles=["sk"])

    with pytest.raises(ModelDefinitionError, match="exactly one pk"):
        ModelDefinition.from_dataclass(Bad, table_name="bad")


def test_model_definition_rejects_multiple_pk() -> None:
    @dataclass(frozen=True)
    class Bad:
        pk1: str = dynamode_field(roles=["pk"])
        pk2: str = dynamode_field(roles=["pk"])

    with pytest.raises(ModelDefinitionError, match="exactly one pk"):
        ModelDefinition.from_dataclass(Bad, table_name="bad")


def test_model_definition_rejects_unknown_roles() -> None:
    @dataclass(frozen=True)
    class Bad:
        pk: str = dynamode_field(roles=["pk", "gsi"])

    with pytest.raises(ModelDefinitionError, match="unknown roles"):
        ModelDefinition.from_dataclass(Bad, table_name="bad")


def test_model_definition_rejects_duplicate_attribute_names() -> None:
    @dataclass(frozen=True)
    class Bad:
        pk: str = dynamode_field(roles=["pk"])
        other: str = dynamode_field(name="pk")

    with pytest.raises(ModelDefinitionError, match="attribute name"):
        ModelDefinition.from_dataclass(Bad, table_name="bad")


def test_model_definition_rejects_omitempty_without_default() -> None:
    @dataclass(frozen=True)
    class Bad:
        pk: str = dynamode_field(roles=["pk"])
        note: str = dynamode_field(omitempty=True)

    with pytest.raises(ModelDefinitionError, match="needs a default"):
        ModelDefinition.from_dataclass(Bad, table_name="bad")


def test_model_definition_rejects_unsupported_key_types() -> None:
    @dataclass(frozen=True)
    class Bad:
        pk: bool = dynamode_field(roles=["pk"])

    model = ModelDefinition.from_dataclass(Bad, table_name="bad")
    with pytest.raises(ModelDefinitionError, match="key attribute"):
        _ = model.descriptor


def test_model_definition_rejects_non_dataclasses() -> None:
    class Plain:
        pass

    with pytest.raises(ModelDefinitionError):
        ModelDefinition.from_dataclass(Plain, table_name="plain")
    with pytest.raises(ModelDefinitionError):
        dynamode_model("plain")(Plain)


def test_dynamode_field_rejects_default_and_factory() -> None:
    with pytest.raises(ValueError):
        dynamode_field(default="a", default_factory=str)
