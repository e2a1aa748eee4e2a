from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import TYPE_CHECKING, Any

from .attribute_value import KEY_VARIANTS, AttributeValue, Bin, Num, Str, canonical_number, to_wire, type_tag
from .errors import InvalidKeyError

if TYPE_CHECKING:
    from .schema import TableDescriptor


def scalar_attribute(value: Any, *, role: str) -> AttributeValue:
    if value is None:
        raise InvalidKeyError(f"{role} value is required")
    if isinstance(value, KEY_VARIANTS):
        return value
    if isinstance(value, bool):
        raise InvalidKeyError(f"{role} cannot be a boolean")
    if isinstance(value, str):
        return Str(value)
    if isinstance(value, (bytes, bytearray, memoryview)):
        return Bin(bytes(value))
    if isinstance(value, (int, float, Decimal)):
        try:
            return Num(canonical_number(value))
        except ValueError as err:
            raise InvalidKeyError(f"{role}: {err}") from err
    raise InvalidKeyError(f"{role} must be a string, number or binary value (got {type(value).__name__})")


@dataclass(frozen=True)
class Key:
    partition: AttributeValue
    sort: AttributeValue | None = None

    def __post_init__(self) -> None:
        if not isinstance(self.partition, KEY_VARIANTS):
            raise InvalidKeyError(f"partition must be S, N or B (got {type_tag(self.partition)})")
        if self.sort is not None and not isinstance(self.sort, KEY_VARIANTS):
            raise InvalidKeyError(f"sort must be S, N or B (got {type_tag(self.sort)})")

    @classmethod
    def of(cls, partition: Any, sort: Any | None = None) -> Key:
        return cls(
            partition=scalar_attribute(partition, role="partition"),
            sort=None if sort is None else scalar_attribute(sort, role="sort"),
        )

    def to_attribute_pair(
        self, descriptor: TableDescriptor
    ) -> tuple[tuple[str, AttributeValue], tuple[str, AttributeValue] | None]:
        check_key_type(descriptor.name, descriptor.partition_key_name, descriptor.partition_key_type, self.partition)
        if descriptor.sort_key_name is None:
            if self.sort is not None:
                raise InvalidKeyError(f"table {descriptor.name} does not define a sort key")
            return (descriptor.partition_key_name, self.partition), None

        if self.sort is None:
            raise InvalidKeyError(f"table {descriptor.name} requires a sort key")
        check_key_type(descriptor.name, descriptor.sort_key_name, descriptor.sort_key_type, self.sort)
        return (descriptor.partition_key_name, self.partition), (descriptor.sort_key_name, self.sort)

    def to_wire(self, descriptor: TableDescriptor) -> dict[str, Any]:
        (pk_name, pk_value), sort_pair = self.to_attribute_pair(descriptor)
        out = {pk_name: to_wire(pk_value)}
        if sort_pair is not None:
            sk_name, sk_value = sort_pair
            out[sk_name] = to_wire(sk_value)
        return out


def check_key_type(table_name: str, attribute_name: str, expected: str | None, value: AttributeValue) -> None:
    actual = type_tag(value)
    if expected is not None and actual != expected:
        raise InvalidKeyError(f"{table_name}.{attribute_name}: key must be {expected} (got {actual})")
