from __future__ import annotations

import pytest

import dynamode_py as dynamode


def test_init_exposes_lazy_exports_via_getattr() -> None:
    assert callable(dynamode.Agent)
    assert callable(dynamode.connect)
    assert callable(dynamode.connect_local)
    assert callable(dynamode.ConnectConfig.local)
    assert dynamode.AgentState.READY == "ready"


def test_init_rejects_unknown_names() -> None:
    with pytest.raises(AttributeError):
        _ = dynamode.NoSuchThing


def test_all_names_resolve() -> None:
    for name in dynamode.__all__:
        assert getattr(dynamode, name) is not None
