from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable, Mapping
from decimal import Decimal
from enum import StrEnum
from types import TracebackType
from typing import Any, cast

from botocore.exceptions import BotoCoreError

from .attribute_value import AttributeValue, Num, item_to_wire, to_wire
from .aws_errors import map_transport_error
from .codec import Codec
from .errors import InvalidKeyError, ItemNotFoundError, NotConnectedError, StoreError, ValidationError
from .key import Key, check_key_type
from .model import DynamoModel, ModelDefinition
from .query import FilterExpression, ItemStream, SortKeyCondition, filter_expression, sort_key_expression
from .schema import (
    DEFAULT_MAX_ATTEMPTS,
    DEFAULT_POLL_INTERVAL_SECONDS,
    BillingMode,
    Sleep,
    TableDescriptor,
    delete_table,
    ensure_table,
)
from .session import LOCAL_ENDPOINT_URL, LOCAL_REGION, ConnectConfig, Session, StoreCallMetric, StoreClient

logger = logging.getLogger(__name__)

type KeyLike = Key | tuple[Any, Any] | Any


class AgentState(StrEnum):
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    READY = "ready"
    CLOSED = "closed"


class Agent:
    def __init__(
        self,
        *,
        billing_mode: BillingMode = "PAY_PER_REQUEST",
        provisioned_throughput: dict[str, int] | None = None,
        provisioning_max_attempts: int = DEFAULT_MAX_ATTEMPTS,
        poll_interval_seconds: float = DEFAULT_POLL_INTERVAL_SECONDS,
        sleep: Sleep = asyncio.sleep,
        on_call: Callable[[StoreCallMetric], None] | None = None,
    ) -> None:
        self._billing_mode = billing_mode
        self._provisioned_throughput = provisioned_throughput
        self._max_attempts = provisioning_max_attempts
        self._poll_interval_seconds = poll_interval_seconds
        self._sleep = sleep
        self._on_call = on_call
        self._session: Session | None = None
        self._state = AgentState.DISCONNECTED
        self._codecs: dict[type[Any], Codec[Any]] = {}

    @classmethod
    def from_client(cls, client: StoreClient, **kwargs: Any) -> Agent:
        agent = cls(**kwargs)
        agent._session = Session(client, on_call=agent._on_call)
        agent._state = AgentState.READY
        return agent

    @property
    def state(self) -> AgentState:
        return self._state

    async def connect(self, config: ConnectConfig | None = None) -> Agent:
        if self._state is AgentState.READY:
            return self
        if self._state is not AgentState.DISCONNECTED:
            raise ValidationError(f"cannot connect an agent in state {self._state}")

        config = config or ConnectConfig.from_env()
        self._state = AgentState.CONNECTING
        try:
            session = await Session.open(config, on_call=self._on_call)
        except BotoCoreError as err:
            self._reset_connecting()
            raise map_transport_error(err, operation="connect") from err
        except BaseException:
            self._reset_connecting()
            raise

        # close() may have run while the session was opening.
        if self._state is not AgentState.CONNECTING:
            await session.close()
            raise NotConnectedError(str(self._state))

        self._session = session
        self._state = AgentState.READY
        logger.debug("agent ready (region=%s, endpoint=%s)", config.region, config.endpoint_url)
        return self

    def _reset_connecting(self) -> None:
        if self._state is AgentState.CONNECTING:
            self._state = AgentState.DISCONNECTED

    async def connect_local(
        self, *, endpoint_url: str = LOCAL_ENDPOINT_URL, region: str = LOCAL_REGION
    ) -> Agent:
        return await self.connect(ConnectConfig.local(endpoint_url=endpoint_url, region=region))

    async def close(self) -> None:
        session, self._session = self._session, None
        self._state = AgentState.CLOSED
        if session is not None:
            await session.close()

    async def __aenter__(self) -> Agent:
        if self._state is AgentState.DISCONNECTED:
            await self.connect()
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.close()

    def definition[M](self, model_type: type[M]) -> ModelDefinition[M]:
        return self._codec(model_type).definition

    def table_descriptor(self, model_type: type[Any]) -> TableDescriptor:
        return self._codec(model_type).definition.descriptor

    async def ensure_table(self, model_type: type[Any]) -> None:
        session = self._ready()
        await ensure_table(
            session,
            self.table_descriptor(model_type),
            billing_mode=self._billing_mode,
            provisioned_throughput=self._provisioned_throughput,
            max_attempts=self._max_attempts,
            poll_interval_seconds=self._poll_interval_seconds,
            sleep=self._sleep,
        )

    async def drop_table(self, model_type: type[Any], *, ignore_missing: bool = True) -> None:
        session = self._ready()
        await delete_table(
            session,
            self.table_descriptor(model_type).name,
            ignore_missing=ignore_missing,
            max_attempts=self._max_attempts,
            poll_interval_seconds=self._poll_interval_seconds,
            sleep=self._sleep,
        )

    async def put(self, record: Any) -> None:
        session = self._ready()
        codec = self._codec(type(record))
        definition = codec.definition
        item = codec.encode(record)

        key = record.key() if isinstance(record, DynamoModel) else definition.key_of(record)
        partition_pair, sort_pair = key.to_attribute_pair(definition.descriptor)
        pairs = [partition_pair] if sort_pair is None else [partition_pair, sort_pair]
        for name, value in pairs:
            if not _same_scalar(item.get(name), value):
                raise InvalidKeyError(f"{definition.table_name}: key() does not match stored attribute {name}")

        await session.call("put_item", TableName=definition.table_name, Item=item_to_wire(item))

    async def get[M](self, model_type: type[M], key: KeyLike, *, consistent_read: bool = False) -> M | None:
        session = self._ready()
        codec = self._codec(model_type)
        resolved = self._resolve_key(codec.definition, key)
        resp = await session.call(
            "get_item",
            TableName=codec.definition.table_name,
            Key=resolved.to_wire(codec.definition.descriptor),
            ConsistentRead=consistent_read,
        )
        item = resp.get("Item")
        if not item:
            return None
        return codec.decode_item(item)

    async def get_required[M](self, model_type: type[M], key: KeyLike, *, consistent_read: bool = False) -> M:
        found = await self.get(model_type, key, consistent_read=consistent_read)
        if found is None:
            definition = self.definition(model_type)
            raise ItemNotFoundError(definition.table_name, self._resolve_key(definition, key))
        return found

    async def update(
        self,
        model_type: type[Any],
        key: KeyLike,
        updates: Mapping[str, Any],
        *,
        require_existing: bool = False,
    ) -> None:
        session = self._ready()
        codec = self._codec(model_type)
        resolved = self._resolve_key(codec.definition, key)
        req = _build_update_request(codec, resolved, updates, require_existing=require_existing)
        try:
            await session.call("update_item", **req)
        except StoreError as err:
            if require_existing and err.kind == "conditional_check_failed":
                raise ItemNotFoundError(codec.definition.table_name, resolved) from err
            raise

    async def delete(self, model_type: type[Any], key: KeyLike) -> None:
        session = self._ready()
        codec = self._codec(model_type)
        resolved = self._resolve_key(codec.definition, key)
        await session.call(
            "delete_item",
            TableName=codec.definition.table_name,
            Key=resolved.to_wire(codec.definition.descriptor),
        )

    def query[M](
        self,
        model_type: type[M],
        partition: Any,
        *,
        sort: SortKeyCondition | None = None,
        filter: FilterExpression | None = None,
        page_size: int | None = None,
        scan_forward: bool = True,
        consistent_read: bool = False,
    ) -> ItemStream[M]:
        self._ready()
        codec = self._codec(model_type)
        definition = codec.definition
        _check_page_size(page_size)

        descriptor = definition.descriptor
        partition_value = definition.partition_attribute(partition)
        check_key_type(descriptor.name, descriptor.partition_key_name, descriptor.partition_key_type, partition_value)

        names: dict[str, str] = {"#pk": definition.pk.attribute_name}
        values: dict[str, Any] = {":pk": to_wire(partition_value)}
        key_condition = "#pk = :pk"
        if sort is not None:
            if definition.sk is None:
                raise ValidationError(f"{definition.table_name} does not define a sort key")
            names["#sk"] = definition.sk.attribute_name
            sort_key_name, sort_key_type = definition.sk.attribute_name, descriptor.sort_key_type

            def check_sort(av: AttributeValue) -> None:
                check_key_type(descriptor.name, sort_key_name, sort_key_type, av)

            key_condition += " AND " + sort_key_expression(
                sort, values, convert=definition.sort_to_store, check=check_sort
            )

        req: dict[str, Any] = {
            "TableName": definition.table_name,
            "KeyConditionExpression": key_condition,
            "ScanIndexForward": scan_forward,
            "ConsistentRead": consistent_read,
        }
        if filter is not None:
            expr = filter_expression(filter, codec, names, values)
            if expr:
                req["FilterExpression"] = expr
        req["ExpressionAttributeNames"] = names
        req["ExpressionAttributeValues"] = values
        if page_size is not None:
            req["Limit"] = page_size

        return ItemStream(self._page_fetcher("query", req), codec.decode_item)

    def scan[M](
        self,
        model_type: type[M],
        *,
        filter: FilterExpression | None = None,
        page_size: int | None = None,
        consistent_read: bool = False,
    ) -> ItemStream[M]:
        self._ready()
        codec = self._codec(model_type)
        _check_page_size(page_size)

        req: dict[str, Any] = {"TableName": codec.definition.table_name, "ConsistentRead": consistent_read}
        if filter is not None:
            names: dict[str, str] = {}
            values: dict[str, Any] = {}
            expr = filter_expression(filter, codec, names, values)
            if expr:
                req["FilterExpression"] = expr
                req["ExpressionAttributeNames"] = names
                if values:
                    req["ExpressionAttributeValues"] = values
        if page_size is not None:
            req["Limit"] = page_size

        return ItemStream(self._page_fetcher("scan", req), codec.decode_item)

    def _page_fetcher(self, operation: str, req: Mapping[str, Any]) -> Callable[[Mapping[str, Any] | None], Any]:
        async def fetch(start_key: Mapping[str, Any] | None) -> dict[str, Any]:
            session = self._ready()
            page_req = dict(req)
            if start_key:
                page_req["ExclusiveStartKey"] = dict(start_key)
            return await session.call(operation, **page_req)

        return fetch

    def _ready(self) -> Session:
        if self._state is not AgentState.READY or self._session is None:
            raise NotConnectedError(str(self._state))
        return self._session

    def _codec[M](self, model_type: type[M]) -> Codec[M]:
        codec = self._codecs.get(model_type)
        if codec is None:
            codec = Codec(ModelDefinition.for_model(model_type))
            self._codecs[model_type] = codec
        return cast(Codec[M], codec)

    @staticmethod
    def _resolve_key(definition: ModelDefinition[Any], key: KeyLike) -> Key:
        if isinstance(key, Key):
            key.to_attribute_pair(definition.descriptor)
            return key
        if isinstance(key, tuple):
            if len(key) != 2:
                raise InvalidKeyError(f"{definition.table_name}: key tuple must be (pk, sk)")
            return definition.key_for(key[0], key[1])
        return definition.key_for(key)


def _same_scalar(stored: AttributeValue | None, expected: AttributeValue) -> bool:
    if isinstance(stored, Num) and isinstance(expected, Num):
        return Decimal(stored.value) == Decimal(expected.value)
    return stored == expected


def _check_page_size(page_size: int | None) -> None:
    if page_size is not None and page_size <= 0:
        raise ValidationError("page_size must be > 0")


def _build_update_request(
    codec: Codec[Any],
    key: Key,
    updates: Mapping[str, Any],
    *,
    require_existing: bool,
) -> dict[str, Any]:
    definition = codec.definition
    key_fields = {definition.pk.python_name}
    if definition.sk is not None:
        key_fields.add(definition.sk.python_name)

    names: dict[str, str] = {}
    values: dict[str, Any] = {}
    set_parts: list[str] = []
    remove_parts: list[str] = []

    for field_name, value in updates.items():
        if field_name not in definition.attributes:
            raise ValidationError(f"unknown field: {field_name}")
        if field_name in key_fields:
            raise ValidationError(f"cannot update key field: {field_name}")

        name_ref = f"#d_{field_name}"
        names[name_ref] = definition.attributes[field_name].attribute_name

        av = None if value is None else codec.encode_value(field_name, value)
        if av is None:
            remove_parts.append(name_ref)
            continue

        value_ref = f":d_{field_name}"
        values[value_ref] = to_wire(av)
        set_parts.append(f"{name_ref} = {value_ref}")

    expr_parts: list[str] = []
    if set_parts:
        expr_parts.append("SET " + ", ".join(set_parts))
    if remove_parts:
        expr_parts.append("REMOVE " + ", ".join(remove_parts))
    if not expr_parts:
        raise ValidationError("no updates provided")

    req: dict[str, Any] = {
        "TableName": definition.table_name,
        "Key": key.to_wire(definition.descriptor),
        "UpdateExpression": " ".join(expr_parts),
        "ExpressionAttributeNames": names,
    }
    if values:
        req["ExpressionAttributeValues"] = values
    if require_existing:
        names["#k_pk"] = definition.pk.attribute_name
        req["ConditionExpression"] = "attribute_exists(#k_pk)"
    return req


async def connect(config: ConnectConfig | None = None, **kwargs: Any) -> Agent:
    return await Agent(**kwargs).connect(config)


async def connect_local(
    *, endpoint_url: str = LOCAL_ENDPOINT_URL, region: str = LOCAL_REGION, **kwargs: Any
) -> Agent:
    return await Agent(**kwargs).connect_local(endpoint_url=endpoint_url, region=region)
