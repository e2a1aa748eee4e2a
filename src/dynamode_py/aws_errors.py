from __future__ import annotations

from botocore.exceptions import BotoCoreError, ClientError

from .errors import StoreError, StoreErrorKind

_KIND_BY_CODE: dict[str, StoreErrorKind] = {
    "ProvisionedThroughputExceededException": "throttling",
    "ThrottlingException": "throttling",
    "RequestLimitExceeded": "throttling",
    "ValidationException": "validation",
    "SerializationException": "validation",
    "ItemCollectionSizeLimitExceededException": "validation",
    "ResourceNotFoundException": "not_found",
    "ResourceInUseException": "resource_in_use",
    "TableAlreadyExistsException": "resource_in_use",
    "ConditionalCheckFailedException": "conditional_check_failed",
    "AccessDeniedException": "access_denied",
    "UnrecognizedClientException": "access_denied",
    "MissingAuthenticationTokenException": "access_denied",
    "InternalServerError": "unavailable",
    "ServiceUnavailable": "unavailable",
}


def map_client_error(err: ClientError, *, operation: str | None = None) -> StoreError:
    code = str(err.response.get("Error", {}).get("Code", ""))
    message = str(err.response.get("Error", {}).get("Message", ""))

    return StoreError(
        kind=_KIND_BY_CODE.get(code, "unknown"),
        code=code or "UnknownError",
        message=message or str(err),
        operation=operation,
    )


def map_transport_error(err: BotoCoreError, *, operation: str | None = None) -> StoreError:
    return StoreError(
        kind="connectivity",
        code=type(err).__name__,
        message=str(err),
        operation=operation,
    )
