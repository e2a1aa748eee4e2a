from __future__ import annotations

import asyncio
import logging
import os
from dataclasses import dataclass

from dynamode_py import SortKeyCondition, connect_local, dynamode_field, dynamode_model
from dynamode_py.session import LOCAL_ENDPOINT_URL, LOCAL_REGION


@dynamode_model("Cars")
@dataclass(frozen=True)
class Car:
    pk: str = dynamode_field(roles=["pk"])
    sk: str = dynamode_field(roles=["sk"])
    brand: str = dynamode_field()
    model: str = dynamode_field()
    horsepower: int = dynamode_field()


async def main() -> None:
    logging.basicConfig(level=os.environ.get("LOG_LEVEL", "INFO"))

    async with await connect_local(
        endpoint_url=os.environ.get("DYNAMODB_ENDPOINT", LOCAL_ENDPOINT_URL),
        region=os.environ.get("AWS_REGION", LOCAL_REGION),
    ) as agent:
        await agent.ensure_table(Car)

        await agent.put(Car(pk="tesla", sk="model-y", brand="Tesla", model="Model Y", horsepower=420))
        await agent.put(Car(pk="tesla", sk="model-3", brand="Tesla", model="Model 3", horsepower=283))

        print("get:", await agent.get(Car, ("tesla", "model-y")))

        await agent.update(Car, ("tesla", "model-y"), {"horsepower": 456})
        print("after update:", await agent.get_required(Car, ("tesla", "model-y")))

        async for car in agent.query(Car, "tesla", sort=SortKeyCondition.begins_with("model-")):
            print("query:", car)

        await agent.delete(Car, ("tesla", "model-3"))
        print("scan:", await agent.scan(Car).collect())


if __name__ == "__main__":
    asyncio.run(main())
