from __future__ import annotations

import types
from collections.abc import Mapping, Sequence
from collections.abc import Set as AbstractSet
from dataclasses import MISSING, fields, is_dataclass
from decimal import Decimal
from enum import Enum
from typing import Annotated, Any, Union, get_args, get_origin, get_type_hints

from .attribute_value import (
    AttributeValue,
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
    item_from_wire,
    item_to_wire,
    type_tag,
)
from .errors import DecodeError, EncodeError, MissingFieldError, TypeMismatchError, UnsupportedTypeError
from .model import AttributeDefinition, ModelDefinition, is_optional, unwrap_optional


def _is_empty(value: Any) -> bool:
    if value is None:
        return True
    if value is False:
        return True
    if isinstance(value, (int, float, Decimal)) and value == 0:
        return True
    if isinstance(value, (str, bytes, bytearray)) and len(value) == 0:
        return True
    if isinstance(value, (list, dict, set, frozenset, tuple)) and len(value) == 0:
        return True
    return False


def encode_attribute(value: Any, *, path: str) -> AttributeValue:
    if value is None:
        return Null()
    if isinstance(value, Enum):
        return encode_attribute(value.value, path=path)
    if isinstance(value, bool):
        return Bool(value)
    if isinstance(value, str):
        return Str(str(value))
    if isinstance(value, (int, float, Decimal)):
        try:
            return Num(canonical_number(value))
        except ValueError as err:
            raise EncodeError(f"{path}: {err}") from err
    if isinstance(value, (bytes, bytearray, memoryview)):
        return Bin(bytes(value))
    if isinstance(value, Mapping):
        entries: dict[str, AttributeValue] = {}
        for k, v in value.items():
            if not isinstance(k, str):
                raise UnsupportedTypeError(f"{path}.{k!r}", f"map key {type(k).__name__}")
            if _is_empty_set(v):
                continue
            entries[k] = encode_attribute(v, path=f"{path}.{k}")
        return Map(entries)
    if isinstance(value, (list, tuple)):
        return List(tuple(encode_attribute(v, path=f"{path}[{i}]") for i, v in enumerate(value)))
    if isinstance(value, (set, frozenset)):
        return _encode_set(value, path=path)
    if is_dataclass(value) and not isinstance(value, type):
        nested: dict[str, AttributeValue] = {}
        for python_name, name in _nested_fields(type(value)):
            field_value = getattr(value, python_name)
            if _is_empty_set(field_value):
                continue
            nested[name] = encode_attribute(field_value, path=f"{path}.{python_name}")
        return Map(nested)
    raise UnsupportedTypeError(path, type(value).__name__)


def _is_empty_set(value: Any) -> bool:
    return isinstance(value, (set, frozenset)) and not value


def _encode_set(value: set[Any] | frozenset[Any], *, path: str) -> AttributeValue:
    if not value:
        raise EncodeError(f"{path}: empty sets cannot be stored inside a list")
    members = [v.value if isinstance(v, Enum) else v for v in value]
    if all(isinstance(v, str) for v in members):
        return StrSet(frozenset(members))
    if all(isinstance(v, (int, float, Decimal)) and not isinstance(v, bool) for v in members):
        try:
            return NumSet(frozenset(canonical_number(v) for v in members))
        except ValueError as err:
            raise EncodeError(f"{path}: {err}") from err
    kinds = sorted({type(v).__name__ for v in members})
    raise UnsupportedTypeError(path, f"set of {', '.join(kinds)}")


def _nested_fields(cls: type[Any]) -> list[tuple[str, str]]:
    out: list[tuple[str, str]] = []
    for dc_field in fields(cls):
        opts = dc_field.metadata.get("dynamode", {})
        if opts.get("ignore", False):
            continue
        out.append((dc_field.name, str(opts.get("name", dc_field.name))))
    return out


def _describe(annotation: Any) -> str:
    return getattr(annotation, "__name__", None) or str(annotation)


def _parse_number(text: str) -> int | float:
    try:
        return int(text)
    except ValueError:
        return float(text)


def natural_value(av: AttributeValue) -> Any:
    if isinstance(av, Str):
        return av.value
    if isinstance(av, Num):
        return _parse_number(av.value)
    if isinstance(av, Bin):
        return av.value
    if isinstance(av, Bool):
        return av.value
    if isinstance(av, Null):
        return None
    if isinstance(av, List):
        return [natural_value(v) for v in av.items]
    if isinstance(av, Map):
        return {k: natural_value(v) for k, v in av.entries.items()}
    if isinstance(av, StrSet):
        return set(av.values)
    return {_parse_number(v) for v in av.values}


def decode_attribute(av: AttributeValue, annotation: Any, *, path: str) -> Any:
    if annotation is Any or annotation is object:
        return natural_value(av)

    if isinstance(av, Null):
        if annotation is type(None) or is_optional(annotation):
            return None
        raise TypeMismatchError(path, _describe(annotation), "NULL")

    annotation = unwrap_optional(annotation)
    origin = get_origin(annotation)
    args = get_args(annotation)

    if origin is Annotated:
        return decode_attribute(av, args[0], path=path)
    if origin is Union or isinstance(annotation, types.UnionType):
        for option in args:
            try:
                return decode_attribute(av, option, path=path)
            except DecodeError:
                continue
        raise TypeMismatchError(path, _describe(annotation), type_tag(av))

    if annotation is str:
        return _expect(av, Str, path, "S").value
    if annotation is bool:
        return _expect(av, Bool, path, "BOOL").value
    if annotation is int:
        text = _expect(av, Num, path, "N").value
        number = Decimal(text)
        if number != number.to_integral_value():
            raise TypeMismatchError(path, "integer", text)
        return int(number)
    if annotation is float:
        return float(_expect(av, Num, path, "N").value)
    if annotation is Decimal:
        return Decimal(_expect(av, Num, path, "N").value)
    if annotation in (bytes, bytearray):
        return annotation(_expect(av, Bin, path, "B").value)
    if isinstance(annotation, type) and issubclass(annotation, Enum):
        raw = natural_value(av)
        try:
            return annotation(raw)
        except ValueError as err:
            raise TypeMismatchError(path, _describe(annotation), repr(raw)) from err

    container = origin or annotation
    if container in (list, tuple, Sequence):
        elements = _expect(av, List, path, "L").items
        elem_types: Sequence[Any]
        if container is tuple and args and not (len(args) == 2 and args[1] is Ellipsis):
            if len(args) != len(elements):
                raise TypeMismatchError(path, f"tuple of {len(args)}", f"list of {len(elements)}")
            elem_types = args
        else:
            elem_types = [args[0] if args else Any] * len(elements)
        decoded = [decode_attribute(v, t, path=f"{path}[{i}]") for i, (v, t) in enumerate(zip(elements, elem_types))]
        return tuple(decoded) if container is tuple else decoded
    if container in (dict, Mapping):
        entries = _expect(av, Map, path, "M").entries
        value_type = args[1] if len(args) == 2 else Any
        return {k: decode_attribute(v, value_type, path=f"{path}.{k}") for k, v in entries.items()}
    if container in (set, frozenset, AbstractSet):
        elem_type = args[0] if args else Any
        if isinstance(av, StrSet):
            members = {decode_attribute(Str(v), elem_type, path=path) for v in av.values}
        elif isinstance(av, NumSet):
            members = {decode_attribute(Num(v), elem_type, path=path) for v in av.values}
        else:
            raise TypeMismatchError(path, "SS or NS", type_tag(av))
        return frozenset(members) if container is frozenset else members
    if isinstance(annotation, type) and is_dataclass(annotation):
        return _decode_nested(_expect(av, Map, path, "M").entries, annotation, path=path)

    return natural_value(av)


def _expect[V](av: AttributeValue, variant: type[V], path: str, expected: str) -> V:
    if not isinstance(av, variant):
        raise TypeMismatchError(path, expected, type_tag(av))
    return av


def _decode_nested(entries: Mapping[str, AttributeValue], cls: type[Any], *, path: str) -> Any:
    try:
        hints = get_type_hints(cls)
    except Exception:
        hints = {}

    kwargs: dict[str, Any] = {}
    required = {f.name for f in fields(cls) if _is_required(f)}
    for python_name, name in _nested_fields(cls):
        annotation = hints.get(python_name, Any)
        child_path = f"{path}.{python_name}"
        if name not in entries:
            absent = _absent_value(annotation, required=python_name in required, path=child_path)
            if absent is not _USE_DEFAULT:
                kwargs[python_name] = absent
            continue
        kwargs[python_name] = decode_attribute(entries[name], annotation, path=child_path)

    try:
        return cls(**kwargs)
    except TypeError as err:
        raise DecodeError(f"{path}: {err}") from err


def _is_required(dc_field: Any) -> bool:
    return dc_field.default is MISSING and dc_field.default_factory is MISSING


class _UseDefault:
    pass


_USE_DEFAULT: Any = _UseDefault()


def _absent_value(annotation: Any, *, required: bool, path: str) -> Any:
    if not required:
        return _USE_DEFAULT
    inner = unwrap_optional(annotation)
    container = get_origin(inner) or inner
    if container in (set, AbstractSet):
        return set()
    if container is frozenset:
        return frozenset()
    if is_optional(annotation):
        return None
    raise MissingFieldError(path)


class Codec[T]:
    def __init__(self, definition: ModelDefinition[T]) -> None:
        self._definition = definition

    @property
    def definition(self) -> ModelDefinition[T]:
        return self._definition

    def encode(self, record: T) -> dict[str, AttributeValue]:
        if not isinstance(record, self._definition.model_type):
            raise EncodeError(
                f"expected {self._definition.model_type.__name__}, got {type(record).__name__}"
            )

        out: dict[str, AttributeValue] = {}
        for field_name, attr_def in self._definition.attributes.items():
            value = getattr(record, field_name)
            if attr_def.omitempty and _is_empty(value):
                continue
            av = self.encode_value(field_name, value)
            if av is not None:
                out[attr_def.attribute_name] = av
        return out

    def encode_value(self, field_name: str, value: Any) -> AttributeValue | None:
        attr_def = self._definition.attributes[field_name]
        if attr_def.converter is not None and value is not None:
            value = attr_def.converter.to_dynamodb(value)
        if _is_empty_set(value):
            return None
        return encode_attribute(value, path=field_name)

    def decode(self, item: Mapping[str, AttributeValue]) -> T:
        kwargs: dict[str, Any] = {}
        for field_name, attr_def in self._definition.attributes.items():
            av = item.get(attr_def.attribute_name)
            if av is None:
                absent = _absent_value(attr_def.annotation, required=attr_def.required, path=field_name)
                if absent is not _USE_DEFAULT:
                    kwargs[field_name] = absent
                continue
            kwargs[field_name] = self._decode_field(attr_def, av)

        try:
            return self._definition.model_type(**kwargs)
        except TypeError as err:
            raise DecodeError(f"{self._definition.model_type.__name__}: {err}") from err

    def encode_item(self, record: T) -> dict[str, Any]:
        return item_to_wire(self.encode(record))

    def decode_item(self, raw: Mapping[str, Any]) -> T:
        return self.decode(item_from_wire(raw))

    def _decode_field(self, attr_def: AttributeDefinition, av: AttributeValue) -> Any:
        if attr_def.converter is None:
            return decode_attribute(av, attr_def.annotation, path=attr_def.python_name)

        raw = natural_value(av)
        if raw is None:
            return None
        try:
            return attr_def.converter.from_dynamodb(raw)
        except (TypeError, ValueError) as err:
            raise TypeMismatchError(attr_def.python_name, _describe(attr_def.annotation), repr(raw)) from err
