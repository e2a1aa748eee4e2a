from __future__ import annotations

from typing import Literal

type StoreErrorKind = Literal[
    "throttling",
    "validation",
    "not_found",
    "resource_in_use",
    "conditional_check_failed",
    "access_denied",
    "unavailable",
    "connectivity",
    "unknown",
]


class DynamodeError(Exception):
    pass


class NotConnectedError(DynamodeError):
    def __init__(self, state: str) -> None:
        super().__init__(f"agent is not connected (state={state})")
        self.state = state


class ValidationError(DynamodeError):
    pass


class InvalidKeyError(DynamodeError):
    pass


class EncodeError(DynamodeError):
    pass


class UnsupportedTypeError(EncodeError):
    def __init__(self, field_name: str, type_name: str) -> None:
        super().__init__(f"{field_name}: no attribute mapping for type {type_name}")
        self.field_name = field_name
        self.type_name = type_name


class DecodeError(DynamodeError):
    pass


class MissingFieldError(DecodeError):
    def __init__(self, name: str) -> None:
        super().__init__(f"missing attribute: {name}")
        self.name = name


class TypeMismatchError(DecodeError):
    def __init__(self, name: str, expected: str, actual: str) -> None:
        super().__init__(f"{name}: expected {expected}, got {actual}")
        self.name = name
        self.expected = expected
        self.actual = actual


class ItemNotFoundError(DynamodeError):
    def __init__(self, table_name: str, key: object) -> None:
        super().__init__(f"item not found in {table_name}: {key!r}")
        self.table_name = table_name
        self.key = key


class ProvisioningTimeoutError(DynamodeError):
    def __init__(self, table_name: str, *, attempts: int, last_status: str | None) -> None:
        super().__init__(
            f"table {table_name} not ACTIVE after {attempts} attempts (last status: {last_status or 'unknown'})"
        )
        self.table_name = table_name
        self.attempts = attempts
        self.last_status = last_status


class StoreError(DynamodeError):
    def __init__(self, *, kind: StoreErrorKind, code: str, message: str, operation: str | None = None) -> None:
        prefix = f"{operation}: " if operation else ""
        super().__init__(f"{prefix}{code}: {message}")
        self.kind = kind
        self.code = code
        self.message = message
        self.operation = operation
