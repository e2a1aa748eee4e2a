from __future__ import annotations

import asyncio
import logging
import os
import time
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from typing import Any, Protocol

import boto3
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError

from .aws_errors import map_client_error, map_transport_error

logger = logging.getLogger(__name__)

LOCAL_ENDPOINT_URL = "http://localhost:8000"
LOCAL_REGION = "us-west-2"


class StoreClient(Protocol):
    def put_item(self, **kwargs: Any) -> Mapping[str, Any]: ...

    def get_item(self, **kwargs: Any) -> Mapping[str, Any]: ...

    def update_item(self, **kwargs: Any) -> Mapping[str, Any]: ...

    def delete_item(self, **kwargs: Any) -> Mapping[str, Any]: ...

    def query(self, **kwargs: Any) -> Mapping[str, Any]: ...

    def scan(self, **kwargs: Any) -> Mapping[str, Any]: ...

    def describe_table(self, **kwargs: Any) -> Mapping[str, Any]: ...

    def create_table(self, **kwargs: Any) -> Mapping[str, Any]: ...


@dataclass(frozen=True)
class StoreCallMetric:
    operation: str
    table_name: str | None
    seconds: float
    ok: bool


@dataclass(frozen=True)
class ConnectConfig:
    region: str | None = None
    endpoint_url: str | None = None
    aws_access_key_id: str | None = None
    aws_secret_access_key: str | None = None
    aws_session_token: str | None = None
    profile_name: str | None = None
    connect_timeout: float = 5.0
    read_timeout: float = 10.0
    max_attempts: int = 3
    max_pool_connections: int = 10

    @classmethod
    def local(cls, *, endpoint_url: str = LOCAL_ENDPOINT_URL, region: str = LOCAL_REGION) -> ConnectConfig:
        return cls(
            region=region,
            endpoint_url=endpoint_url,
            aws_access_key_id="dummy",
            aws_secret_access_key="dummy",
        )

    @classmethod
    def from_env(cls, environ: Mapping[str, str] = os.environ) -> ConnectConfig:
        return cls(
            region=environ.get("AWS_REGION") or environ.get("AWS_DEFAULT_REGION") or None,
            endpoint_url=environ.get("DYNAMODB_ENDPOINT") or None,
            profile_name=environ.get("AWS_PROFILE") or None,
        )

    def boto3_config(self) -> Config:
        return Config(
            connect_timeout=self.connect_timeout,
            read_timeout=self.read_timeout,
            retries={"max_attempts": self.max_attempts, "mode": "standard"},
            max_pool_connections=self.max_pool_connections,
        )


def create_dynamodb_client(config: ConnectConfig) -> Any:
    session = boto3.session.Session(
        aws_access_key_id=config.aws_access_key_id,
        aws_secret_access_key=config.aws_secret_access_key,
        aws_session_token=config.aws_session_token,
        region_name=config.region,
        profile_name=config.profile_name,
    )
    return session.client("dynamodb", endpoint_url=config.endpoint_url, config=config.boto3_config())


class Session:
    def __init__(
        self,
        client: StoreClient,
        *,
        on_call: Callable[[StoreCallMetric], None] | None = None,
    ) -> None:
        self._client = client
        self._on_call = on_call

    @classmethod
    async def open(
        cls,
        config: ConnectConfig,
        *,
        on_call: Callable[[StoreCallMetric], None] | None = None,
    ) -> Session:
        client = await asyncio.to_thread(create_dynamodb_client, config)
        logger.debug("opened dynamodb session (region=%s, endpoint=%s)", config.region, config.endpoint_url)
        return cls(client, on_call=on_call)

    @property
    def client(self) -> StoreClient:
        return self._client

    async def call(self, operation: str, **request: Any) -> dict[str, Any]:
        method = getattr(self._client, operation)
        table_name = request.get("TableName")
        start = time.monotonic()
        try:
            resp = await asyncio.to_thread(method, **request)
        except ClientError as err:
            self._record(operation, table_name, start, ok=False)
            raise map_client_error(err, operation=operation) from err
        except BotoCoreError as err:
            self._record(operation, table_name, start, ok=False)
            raise map_transport_error(err, operation=operation) from err

        self._record(operation, table_name, start, ok=True)
        return dict(resp or {})

    async def close(self) -> None:
        close = getattr(self._client, "close", None)
        if callable(close):
            await asyncio.to_thread(close)

    def _record(self, operation: str, table_name: str | None, start: float, *, ok: bool) -> None:
        elapsed = time.monotonic() - start
        logger.debug("%s table=%s ok=%s %.3fs", operation, table_name, ok, elapsed)
        if self._on_call is not None:
            self._on_call(StoreCallMetric(operation=operation, table_name=table_name, seconds=elapsed, ok=ok))
