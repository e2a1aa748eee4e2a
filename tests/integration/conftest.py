from __future__ import annotations

from collections.abc import Iterator

import pytest
from moto import mock_aws

from dynamode_py.session import ConnectConfig

REGION = "us-east-1"


@pytest.fixture()
def aws(monkeypatch: pytest.MonkeyPatch) -> Iterator[ConnectConfig]:
    """Mocked DynamoDB account; yields the config an agent should connect with."""
    monkeypatch.setenv("AWS_ACCESS_KEY_ID", "testing")
    monkeypatch.setenv("AWS_SECRET_ACCESS_KEY", "testing")
    monkeypatch.setenv("AWS_DEFAULT_REGION", REGION)
    monkeypatch.delenv("AWS_PROFILE", raising=False)
    monkeypatch.delenv("DYNAMODB_ENDPOINT", raising=False)
    with mock_aws():
        yield ConnectConfig(region=REGION)
