from __future__ import annotations

import json
import re
from importlib.resources import files
from typing import TYPE_CHECKING, Any

from .attribute_value import (
    AttributeValue,
    Bin,
    Bool,
    List,
    Map,
    Null,
    Num,
    NumSet,
    Str,
    StrSet,
    from_wire,
    to_wire,
)
from .codec import Codec
from .errors import (
    DecodeError,
    DynamodeError,
    EncodeError,
    InvalidKeyError,
    ItemNotFoundError,
    MissingFieldError,
    NotConnectedError,
    ProvisioningTimeoutError,
    StoreError,
    TypeMismatchError,
    UnsupportedTypeError,
    ValidationError,
)
from .key import Key
from .model import (
    AttributeConverter,
    DynamoModel,
    EpochSecondsConverter,
    IsoDatetimeConverter,
    ModelDefinition,
    ModelDefinitionError,
    dynamode_field,
    dynamode_model,
)
from .query import FilterCondition, FilterGroup, ItemStream, SortKeyCondition
from .schema import TableDescriptor

if TYPE_CHECKING:
    from .agent import Agent, AgentState, connect, connect_local
    from .session import ConnectConfig, Session, StoreCallMetric


def _read_repo_version() -> str:
    try:
        data = json.loads(files(__package__).joinpath("version.json").read_text(encoding="utf-8"))
    except (OSError, ValueError):
        return "0.0.0"

    version = data.get("version")
    return version if isinstance(version, str) and version else "0.0.0"


def _normalize_repo_version(repo_version: str) -> str:
    match = re.match(r"^(\d+\.\d+\.\d+)-rc\.?([0-9]+)$", repo_version)
    if match:
        return f"{match.group(1)}rc{match.group(2)}"
    return repo_version


__repo_version__ = _read_repo_version()
__version__ = _normalize_repo_version(__repo_version__)


def __getattr__(name: str) -> Any:
    if name in {"Agent", "AgentState", "connect", "connect_local"}:
        from . import agent

        return getattr(agent, name)
    if name in {"ConnectConfig", "Session", "StoreCallMetric"}:
        from . import session

        return getattr(session, name)
    raise AttributeError(name)


__all__ = [
    "Agent",
    "AgentState",
    "AttributeConverter",
    "AttributeValue",
    "Bin",
    "Bool",
    "Codec",
    "ConnectConfig",
    "DecodeError",
    "DynamodeError",
    "DynamoModel",
    "EncodeError",
    "EpochSecondsConverter",
    "FilterCondition",
    "FilterGroup",
    "InvalidKeyError",
    "IsoDatetimeConverter",
    "ItemNotFoundError",
    "ItemStream",
    "Key",
    "List",
    "Map",
    "MissingFieldError",
    "ModelDefinition",
    "ModelDefinitionError",
    "NotConnectedError",
    "Null",
    "Num",
    "NumSet",
    "ProvisioningTimeoutError",
    "Session",
    "SortKeyCondition",
    "StoreCallMetric",
    "StoreError",
    "Str",
    "StrSet",
    "TableDescriptor",
    "TypeMismatchError",
    "UnsupportedTypeError",
    "ValidationError",
    "__repo_version__",
    "__version__",
    "connect",
    "connect_local",
    "dynamode_field",
    "dynamode_model",
    "from_wire",
    "to_wire",
]
