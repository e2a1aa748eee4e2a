from __future__ import annotations

import pytest
from botocore.exceptions import ClientError, EndpointConnectionError

from dynamode_py.aws_errors import map_client_error, map_transport_error
from dynamode_py.errors import StoreError


@pytest.mark.parametrize(
    ("code", "kind"),
    [
        ("ProvisionedThroughputExceededException", "throttling"),
        ("ThrottlingException", "throttling"),
        ("ValidationException", "validation"),
        ("ResourceNotFoundException", "not_found"),
        ("ResourceInUseException", "resource_in_use"),
        ("ConditionalCheckFailedException", "conditional_check_failed"),
        ("AccessDeniedException", "access_denied"),
        ("UnrecognizedClientException", "access_denied"),
        ("InternalServerError", "unavailable"),
        ("SomethingNewException", "unknown"),
    ],
)
def test_map_client_error_kinds(code: str, kind: str) -> None:
    err = ClientError({"Error": {"Code": code, "Message": "boom"}}, "PutItem")
    mapped = map_client_error(err, operation="put_item")

    assert isinstance(mapped, StoreError)
    assert mapped.kind == kind
    assert mapped.code == code
    assert mapped.message == "boom"
    assert mapped.operation == "put_item"
    assert str(mapped) == f"put_item: {code}: boom"


def test_map_client_error_without_code() -> None:
    mapped = map_client_error(ClientError({}, "GetItem"))
    assert mapped.kind == "unknown"
    assert mapped.code == "UnknownError"
    assert mapped.message


def test_map_transport_error_is_connectivity() -> None:
    err = EndpointConnectionError(endpoint_url="http://localhost:8000")
    mapped = map_transport_error(err, operation="describe_table")

    assert mapped.kind == "connectivity"
    assert mapped.code == "EndpointConnectionError"
    assert "localhost:8000" in mapped.message
