from __future__ import annotations

import pytest
from botocore.exceptions import ClientError

from dynamode_py.mocks import ANY, FakeDynamoDBClient, client_error
from dynamode_py.testkit import no_sleep, table_description


def test_fake_dynamodb_client_matches_partial_requests() -> None:
    client = FakeDynamoDBClient()
    client.expect("put_item", {"TableName": "notes", "Item": {"pk": ANY}}, response={"ok": True})

    assert client.put_item(TableName="notes", Item={"pk": {"S": "a"}, "v": {"N": "1"}}) == {"ok": True}
    client.assert_no_pending()
    assert client.methods() == ["put_item"]


def test_fake_dynamodb_client_asserts_pending_calls() -> None:
    client = FakeDynamoDBClient()
    client.expect("query")

    with pytest.raises(AssertionError, match="pending"):
        client.assert_no_pending()


@pytest.mark.parametrize(
    ("expected", "request_body", "message"),
    [
        ({"TableName": "a"}, {"TableName": "b"}, "expected 'a'"),
        ({"Key": {"id": ANY}}, {}, "missing key"),
        ({"Items": [1, 2]}, {"Items": [1]}, "expected 2 items"),
        ({"Key": {"id": {"S": "a"}}}, {"Key": "a"}, "expected mapping"),
    ],
)
def test_fake_dynamodb_client_reports_mismatches(expected: dict, request_body: dict, message: str) -> None:
    client = FakeDynamoDBClient()
    client.expect("scan", expected)

    with pytest.raises(AssertionError, match=message):
        client.scan(**request_body)


def test_fake_dynamodb_client_rejects_out_of_order_calls() -> None:
    client = FakeDynamoDBClient()
    client.expect("get_item")

    with pytest.raises(AssertionError, match="expected get_item, got delete_item"):
        client.delete_item(TableName="t")
    with pytest.raises(AssertionError, match="unexpected call"):
        client.delete_item(TableName="t")


def test_fake_dynamodb_client_raises_scripted_errors() -> None:
    client = FakeDynamoDBClient()
    client.expect_error("update_item", "ConditionalCheckFailedException", "nope")

    with pytest.raises(ClientError) as excinfo:
        client.update_item(TableName="t")
    assert excinfo.value.response["Error"]["Code"] == "ConditionalCheckFailedException"


def test_expect_pages_chains_start_keys() -> None:
    client = FakeDynamoDBClient()
    client.expect_pages("scan", [[{"id": {"S": "a"}}], [{"id": {"S": "b"}}]], expected={"TableName": "t"})

    first = client.scan(TableName="t")
    assert first["LastEvaluatedKey"] == {"page": {"N": "1"}}
    second = client.scan(TableName="t", ExclusiveStartKey=first["LastEvaluatedKey"])
    assert "LastEvaluatedKey" not in second
    assert second["Items"] == [{"id": {"S": "b"}}]
    client.assert_no_pending()


def test_client_error_shape() -> None:
    err = client_error("ThrottlingException", operation="Scan")
    assert err.response["Error"] == {"Code": "ThrottlingException", "Message": "ThrottlingException"}
    assert err.operation_name == "Scan"


@pytest.mark.asyncio
async def test_no_sleep_returns_immediately() -> None:
    assert await no_sleep(10.0) is None
    assert table_description("t", status="CREATING") == {"Table": {"TableName": "t", "TableStatus": "CREATING"}}
