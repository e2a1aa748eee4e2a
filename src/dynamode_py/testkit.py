from __future__ import annotations

from .mocks import ANY, FakeDynamoDBClient, client_error


async def no_sleep(_: float) -> None:
    return None


def table_description(
    table_name: str,
    *,
    status: str = "ACTIVE",
) -> dict[str, dict[str, str]]:
    return {"Table": {"TableName": table_name, "TableStatus": status}}


__all__ = [
    "ANY",
    "FakeDynamoDBClient",
    "client_error",
    "no_sleep",
    "table_description",
]
