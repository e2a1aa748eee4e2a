from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Literal

from .errors import ProvisioningTimeoutError, StoreError, ValidationError

if TYPE_CHECKING:
    from .session import Session

logger = logging.getLogger(__name__)

type BillingMode = Literal["PAY_PER_REQUEST", "PROVISIONED"]
type KeyType = Literal["S", "N", "B"]
type Sleep = Callable[[float], Awaitable[None]]

DEFAULT_MAX_ATTEMPTS = 120
DEFAULT_POLL_INTERVAL_SECONDS = 0.5


@dataclass(frozen=True)
class TableDescriptor:
    name: str
    partition_key_name: str
    sort_key_name: str | None = None
    partition_key_type: KeyType = "S"
    sort_key_type: KeyType | None = None

    def __post_init__(self) -> None:
        if not self.name:
            raise ValidationError("table name is required")
        if not self.partition_key_name:
            raise ValidationError(f"{self.name}: partition key name is required")
        if self.sort_key_name is not None and self.sort_key_type is None:
            object.__setattr__(self, "sort_key_type", "S")
        if self.sort_key_name is None and self.sort_key_type is not None:
            raise ValidationError(f"{self.name}: sort key type given without a sort key name")


def build_create_table_request(
    descriptor: TableDescriptor,
    *,
    billing_mode: BillingMode = "PAY_PER_REQUEST",
    provisioned_throughput: dict[str, int] | None = None,
) -> dict[str, Any]:
    if billing_mode not in {"PAY_PER_REQUEST", "PROVISIONED"}:
        raise ValidationError(f"unsupported billing_mode: {billing_mode}")
    if billing_mode == "PROVISIONED" and provisioned_throughput is None:
        raise ValidationError("provisioned_throughput is required when billing_mode=PROVISIONED")

    key_schema = [{"AttributeName": descriptor.partition_key_name, "KeyType": "HASH"}]
    attribute_definitions = [
        {"AttributeName": descriptor.partition_key_name, "AttributeType": descriptor.partition_key_type}
    ]
    if descriptor.sort_key_name is not None:
        key_schema.append({"AttributeName": descriptor.sort_key_name, "KeyType": "RANGE"})
        attribute_definitions.append(
            {"AttributeName": descriptor.sort_key_name, "AttributeType": descriptor.sort_key_type or "S"}
        )

    req: dict[str, Any] = {
        "TableName": descriptor.name,
        "BillingMode": billing_mode,
        "KeySchema": key_schema,
        "AttributeDefinitions": attribute_definitions,
    }
    if billing_mode == "PROVISIONED" and provisioned_throughput is not None:
        req["ProvisionedThroughput"] = dict(provisioned_throughput)
    return req


async def describe_table(session: Session, table_name: str) -> dict[str, Any]:
    resp = await session.call("describe_table", TableName=table_name)
    return dict(resp.get("Table", {}))


async def create_table(
    session: Session,
    descriptor: TableDescriptor,
    *,
    billing_mode: BillingMode = "PAY_PER_REQUEST",
    provisioned_throughput: dict[str, int] | None = None,
    wait_for_active: bool = True,
    max_attempts: int = DEFAULT_MAX_ATTEMPTS,
    poll_interval_seconds: float = DEFAULT_POLL_INTERVAL_SECONDS,
    sleep: Sleep = asyncio.sleep,
) -> None:
    req = build_create_table_request(
        descriptor,
        billing_mode=billing_mode,
        provisioned_throughput=provisioned_throughput,
    )

    try:
        await session.call("create_table", **req)
        logger.info("created table %s", descriptor.name)
    except StoreError as err:
        # Another caller won the race; its table satisfies ours.
        if err.kind != "resource_in_use":
            raise
        logger.debug("table %s is already being created", descriptor.name)

    if wait_for_active:
        await _wait_for_table_active(
            session,
            descriptor.name,
            max_attempts=max_attempts,
            poll_interval_seconds=poll_interval_seconds,
            sleep=sleep,
        )


async def ensure_table(
    session: Session,
    descriptor: TableDescriptor,
    *,
    billing_mode: BillingMode = "PAY_PER_REQUEST",
    provisioned_throughput: dict[str, int] | None = None,
    max_attempts: int = DEFAULT_MAX_ATTEMPTS,
    poll_interval_seconds: float = DEFAULT_POLL_INTERVAL_SECONDS,
    sleep: Sleep = asyncio.sleep,
) -> None:
    try:
        table = await describe_table(session, descriptor.name)
    except StoreError as err:
        if err.kind != "not_found":
            raise
        await create_table(
            session,
            descriptor,
            billing_mode=billing_mode,
            provisioned_throughput=provisioned_throughput,
            max_attempts=max_attempts,
            poll_interval_seconds=poll_interval_seconds,
            sleep=sleep,
        )
        return

    if table.get("TableStatus") != "ACTIVE":
        await _wait_for_table_active(
            session,
            descriptor.name,
            max_attempts=max_attempts,
            poll_interval_seconds=poll_interval_seconds,
            sleep=sleep,
        )


async def delete_table(
    session: Session,
    table_name: str,
    *,
    ignore_missing: bool = False,
    wait_for_delete: bool = True,
    max_attempts: int = DEFAULT_MAX_ATTEMPTS,
    poll_interval_seconds: float = DEFAULT_POLL_INTERVAL_SECONDS,
    sleep: Sleep = asyncio.sleep,
) -> None:
    try:
        await session.call("delete_table", TableName=table_name)
    except StoreError as err:
        if ignore_missing and err.kind == "not_found":
            return
        raise

    if not wait_for_delete:
        return

    for _ in range(max_attempts):
        try:
            await describe_table(session, table_name)
        except StoreError as err:
            if err.kind == "not_found":
                return
            raise
        await sleep(poll_interval_seconds)

    raise ProvisioningTimeoutError(table_name, attempts=max_attempts, last_status="DELETING")


async def _wait_for_table_active(
    session: Session,
    table_name: str,
    *,
    max_attempts: int,
    poll_interval_seconds: float,
    sleep: Sleep,
) -> None:
    if max_attempts <= 0:
        raise ValidationError("max_attempts must be > 0")

    status: str | None = None
    for attempt in range(1, max_attempts + 1):
        try:
            table = await describe_table(session, table_name)
        except StoreError as err:
            # Freshly created tables can be invisible to describe for a moment.
            if err.kind != "not_found":
                raise
            table = {}

        status = table.get("TableStatus")
        if status == "ACTIVE":
            return
        if attempt < max_attempts:
            await sleep(poll_interval_seconds)

    raise ProvisioningTimeoutError(table_name, attempts=max_attempts, last_status=status)
