from __future__ import annotations

import os
import uuid
from dataclasses import dataclass

import pytest

from dynamode_py import Agent, dynamode_field

pytestmark = pytest.mark.skipif(
    not os.environ.get("DYNAMODB_ENDPOINT"), reason="DYNAMODB_ENDPOINT is not set"
)

TABLE_NAME = f"dynamode_py_smoke_{uuid.uuid4().hex[:12]}"


@dataclass(frozen=True)
class Note:
    pk: str = dynamode_field(roles=["pk"])
    sk: str = dynamode_field(roles=["sk"])
    value: int = dynamode_field()

    @classmethod
    def table_name(cls) -> str:
        return TABLE_NAME


@pytest.mark.asyncio
async def test_dynamodb_local_smoke_put_get_delete() -> None:
    agent = await Agent().connect_local(
        endpoint_url=os.environ["DYNAMODB_ENDPOINT"],
        region=os.environ.get("AWS_REGION", "us-west-2"),
    )
    try:
        await agent.ensure_table(Note)
        await agent.put(Note(pk="A", sk="B", value=1))
        assert await agent.get(Note, ("A", "B")) == Note(pk="A", sk="B", value=1)
        await agent.delete(Note, ("A", "B"))
        assert await agent.get(Note, ("A", "B")) is None
    finally:
        await agent.drop_table(Note)
        await agent.close()
