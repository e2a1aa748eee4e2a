from __future__ import annotations

import types
from collections.abc import Callable, Mapping, Sequence
from dataclasses import MISSING, dataclass, field, fields, is_dataclass
from datetime import UTC, datetime
from decimal import Decimal
from typing import Any, Protocol, Union, cast, get_args, get_origin, get_type_hints, overload, runtime_checkable

from .attribute_value import AttributeValue
from .errors import InvalidKeyError
from .key import Key, scalar_attribute
from .schema import KeyType, TableDescriptor

_DEFINITION_ATTR = "__dynamode_definition__"


class ModelDefinitionError(ValueError):
    pass


class AttributeConverter(Protocol):
    def to_dynamodb(self, value: Any) -> Any: ...

    def from_dynamodb(self, value: Any) -> Any: ...


@runtime_checkable
class DynamoModel(Protocol):
    @classmethod
    def table_name(cls) -> str: ...

    def key(self) -> Key: ...


class IsoDatetimeConverter:
    key_type: KeyType = "S"

    def to_dynamodb(self, value: Any) -> Any:
        if not isinstance(value, datetime):
            raise TypeError("expected datetime")
        if value.tzinfo is None:
            value = value.replace(tzinfo=UTC)
        return value.isoformat()

    def from_dynamodb(self, value: Any) -> Any:
        return datetime.fromisoformat(str(value))


class EpochSecondsConverter:
    key_type: KeyType = "N"

    def to_dynamodb(self, value: Any) -> Any:
        if not isinstance(value, datetime):
            raise TypeError("expected datetime")
        if value.tzinfo is None:
            value = value.replace(tzinfo=UTC)
        return int(value.timestamp())

    def from_dynamodb(self, value: Any) -> Any:
        return datetime.fromtimestamp(int(value), tz=UTC)


@dataclass(frozen=True)
class AttributeDefinition:
    python_name: str
    attribute_name: str
    annotation: Any
    roles: tuple[str, ...]
    omitempty: bool
    required: bool
    converter: AttributeConverter | None = None


@overload
def dynamode_field(
    *,
    name: str | None = None,
    roles: Sequence[str] | None = None,
    omitempty: bool = False,
    converter: AttributeConverter | None = None,
    ignore: bool = False,
) -> Any: ...


@overload
def dynamode_field(
    *,
    name: str | None = None,
    roles: Sequence[str] | None = None,
    omitempty: bool = False,
    converter: AttributeConverter | None = None,
    ignore: bool = False,
    default: Any,
) -> Any: ...


@overload
def dynamode_field(
    *,
    name: str | None = None,
    roles: Sequence[str] | None = None,
    omitempty: bool = False,
    converter: AttributeConverter | None = None,
    ignore: bool = False,
    default_factory: Any,
) -> Any: ...


def dynamode_field(
    *,
    name: str | None = None,
    roles: Sequence[str] | None = None,
    omitempty: bool = False,
    converter: AttributeConverter | None = None,
    ignore: bool = False,
    default: Any = MISSING,
    default_factory: Any = MISSING,
) -> Any:
    if default is not MISSING and default_factory is not MISSING:
        raise ValueError("dynamode_field: cannot set both default and default_factory")

    opts: dict[str, Any] = {
        "omitempty": omitempty,
        "converter": converter,
        "ignore": ignore,
    }
    if name is not None:
        opts["name"] = name
    if roles is not None:
        opts["roles"] = list(roles)

    return field(default=default, default_factory=default_factory, metadata={"dynamode": opts})


@dataclass(frozen=True)
class ModelDefinition[T]:
    model_type: type[T]
    table_name: str
    pk: AttributeDefinition
    sk: AttributeDefinition | None
    attributes: Mapping[str, AttributeDefinition]

    @classmethod
    def for_model(cls, model_type: type[T]) -> ModelDefinition[T]:
        cached = model_type.__dict__.get(_DEFINITION_ATTR)
        if isinstance(cached, ModelDefinition):
            return cast(ModelDefinition[T], cached)

        table_name_fn = getattr(model_type, "table_name", None)
        if not callable(table_name_fn):
            raise ModelDefinitionError(f"{model_type.__name__} does not provide table_name()")
        definition = cls.from_dataclass(model_type, table_name=str(table_name_fn()))
        setattr(model_type, _DEFINITION_ATTR, definition)
        return definition

    @classmethod
    def from_dataclass(cls, model_type: type[T], *, table_name: str) -> ModelDefinition[T]:
        if not is_dataclass(model_type):
            raise ModelDefinitionError("model_type must be a dataclass")
        if not table_name:
            raise ModelDefinitionError(f"{model_type.__name__}: table_name is required")

        try:
            hints = get_type_hints(model_type)
        except Exception:
            hints = dict(getattr(model_type, "__annotations__", {}))

        attributes: dict[str, AttributeDefinition] = {}
        seen_names: dict[str, str] = {}
        pk_fields: list[str] = []
        sk_fields: list[str] = []

        for dc_field in fields(model_type):
            opts = cast(dict[str, Any], dc_field.metadata.get("dynamode", {}))
            if bool(opts.get("ignore", False)):
                continue

            roles = tuple(cast(list[str], opts.get("roles", [])))
            unknown_roles = set(roles).difference({"pk", "sk"})
            if unknown_roles:
                raise ModelDefinitionError(f"{dc_field.name}: unknown roles {sorted(unknown_roles)}")
            if "pk" in roles:
                pk_fields.append(dc_field.name)
            if "sk" in roles:
                sk_fields.append(dc_field.name)

            attribute_name = cast(str, opts.get("name", dc_field.name))
            if attribute_name in seen_names:
                raise ModelDefinitionError(
                    f"attribute name {attribute_name!r} used by both {seen_names[attribute_name]} and {dc_field.name}"
                )
            seen_names[attribute_name] = dc_field.name

            annotation = hints.get(dc_field.name, Any)
            if isinstance(annotation, str):
                annotation = Any

            omitempty = bool(opts.get("omitempty", False))
            required = dc_field.default is MISSING and dc_field.default_factory is MISSING
            if omitempty and required:
                raise ModelDefinitionError(f"omitempty field needs a default: {dc_field.name}")
            if omitempty and roles:
                raise ModelDefinitionError(f"key field cannot be omitempty: {dc_field.name}")

            attributes[dc_field.name] = AttributeDefinition(
                python_name=dc_field.name,
                attribute_name=attribute_name,
                annotation=annotation,
                roles=roles,
                omitempty=omitempty,
                required=required,
                converter=cast(AttributeConverter | None, opts.get("converter")),
            )

        if len(pk_fields) != 1:
            raise ModelDefinitionError(f"model must define exactly one pk field (found {len(pk_fields)})")
        if len(sk_fields) > 1:
            raise ModelDefinitionError(f"model must define at most one sk field (found {len(sk_fields)})")

        pk = attributes[pk_fields[0]]
        sk = attributes[sk_fields[0]] if sk_fields else None
        if sk is not None and sk.python_name == pk.python_name:
            raise ModelDefinitionError(f"{pk.python_name} cannot be both pk and sk")

        return cls(
            model_type=model_type,
            table_name=table_name,
            pk=pk,
            sk=sk,
            attributes=attributes,
        )

    @property
    def descriptor(self) -> TableDescriptor:
        return TableDescriptor(
            name=self.table_name,
            partition_key_name=self.pk.attribute_name,
            sort_key_name=self.sk.attribute_name if self.sk is not None else None,
            partition_key_type=_key_type(self.pk),
            sort_key_type=_key_type(self.sk) if self.sk is not None else None,
        )

    def partition_attribute(self, pk: Any) -> AttributeValue:
        return scalar_attribute(_to_store(self.pk, pk), role=self.pk.python_name)

    def sort_to_store(self, sk: Any) -> Any:
        if self.sk is None:
            raise InvalidKeyError(f"{self.table_name} does not define a sort key")
        return _to_store(self.sk, sk)

    def key_for(self, pk: Any, sk: Any | None = None) -> Key:
        partition = self.partition_attribute(pk)
        if self.sk is None:
            if sk is not None:
                raise InvalidKeyError(f"{self.table_name} does not define a sort key")
            return Key(partition=partition)
        return Key(partition=partition, sort=scalar_attribute(_to_store(self.sk, sk), role=self.sk.python_name))

    def key_of(self, record: T) -> Key:
        pk = getattr(record, self.pk.python_name)
        sk = getattr(record, self.sk.python_name) if self.sk is not None else None
        return self.key_for(pk, sk)


def dynamode_model[M](table_name: str) -> Callable[[type[M]], type[M]]:
    def wrap(model_type: type[M]) -> type[M]:
        if not is_dataclass(model_type):
            raise ModelDefinitionError(f"{model_type.__name__} must be a dataclass")

        if "table_name" not in model_type.__dict__:

            def _table_name(cls: type[Any]) -> str:
                return table_name

            setattr(model_type, "table_name", classmethod(_table_name))

        if "key" not in model_type.__dict__:

            def _key(self: Any) -> Key:
                return ModelDefinition.for_model(type(self)).key_of(self)

            setattr(model_type, "key", _key)

        return model_type

    return wrap


def _to_store(attr_def: AttributeDefinition, value: Any) -> Any:
    if attr_def.converter is not None and value is not None:
        return attr_def.converter.to_dynamodb(value)
    return value


def _key_type(attr_def: AttributeDefinition) -> KeyType:
    annotation = unwrap_optional(attr_def.annotation)
    if annotation is str:
        return "S"
    if annotation in {int, float, Decimal}:
        return "N"
    if annotation in {bytes, bytearray}:
        return "B"
    if attr_def.converter is not None:
        return cast(KeyType, getattr(attr_def.converter, "key_type", "S"))
    raise ModelDefinitionError(f"key attribute must be str, int, float, Decimal or bytes: {attr_def.python_name}")


def unwrap_optional(annotation: Any) -> Any:
    origin = get_origin(annotation)
    if origin is not Union and not _is_union_type(annotation):
        return annotation
    args = get_args(annotation)
    non_none = [a for a in args if a is not type(None)]  # noqa: E721
    if len(args) == 2 and len(non_none) == 1:
        return non_none[0]
    return annotation


def is_optional(annotation: Any) -> bool:
    if get_origin(annotation) is not Union and not _is_union_type(annotation):
        return False
    return type(None) in get_args(annotation)


def _is_union_type(annotation: Any) -> bool:
    return isinstance(annotation, types.UnionType)
