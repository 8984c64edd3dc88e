"""RPC method dispatch with tagged results.

Every call answers ``{"success": true, "data": ...}`` or
``{"success": false, "error": "Error: <message>"}``. Errors never escape the
dispatcher and no failure is reported as an empty success.
"""

from __future__ import annotations

import logging
from typing import Any, Awaitable, Callable, TypeVar

from pydantic import BaseModel, ConfigDict, Field, StrictBool
from pydantic import ValidationError as PydanticValidationError

from credwallet.core.models import QueryFilter
from credwallet.core.service import WalletService
from credwallet.exceptions import CredWalletError, ValidationError

logger = logging.getLogger("credwallet.api.rpc")

M = TypeVar("M", bound=BaseModel)


# ---------------------------------------------------------------------------
# Request params
# ---------------------------------------------------------------------------


class _Params(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class StoreOptions(_Params):
    # Checked against the enabled stores by the router.
    store: Any = None


class QueryOptions(StoreOptions):
    return_store: StrictBool = Field(default=True, alias="returnStore")


class CreateOptions(StoreOptions):
    save: StrictBool = False


class SaveCredentialParams(_Params):
    verifiable_credential: Any = Field(alias="verifiableCredential")
    options: StoreOptions = Field(default_factory=StoreOptions)


class QueryCredentialsParams(_Params):
    filter: QueryFilter = Field(default_factory=QueryFilter)
    options: QueryOptions = Field(default_factory=QueryOptions)


class DeleteCredentialParams(_Params):
    id: str = Field(min_length=1)
    options: StoreOptions = Field(default_factory=StoreOptions)


class ClearCredentialsParams(_Params):
    options: StoreOptions = Field(default_factory=StoreOptions)


class CreateCredentialParams(_Params):
    minimal_unsigned_credential: dict[str, Any] = Field(alias="minimalUnsignedCredential")
    options: CreateOptions = Field(default_factory=CreateOptions)


class CreatePresentationParams(_Params):
    presentation: dict[str, Any]


class SetCredentialStoreParams(_Params):
    store: str
    value: StrictBool


def parse_params(model: type[M], params: Any) -> M:
    """Validate *params*, reporting the first offending field as ``input.<path>``."""
    if params is None:
        params = {}
    if not isinstance(params, dict):
        raise ValidationError("invalid_argument: input")
    try:
        return model.model_validate(params)
    except PydanticValidationError as exc:
        loc = ".".join(str(part) for part in exc.errors()[0]["loc"])
        raise ValidationError(f"invalid_argument: input.{loc}") from exc


# ---------------------------------------------------------------------------
# Handlers
# ---------------------------------------------------------------------------


async def _save_credential(service: WalletService, params: Any) -> Any:
    p = parse_params(SaveCredentialParams, params)
    results = await service.save_credential(p.verifiable_credential, p.options.store)
    return [r.model_dump(mode="json") for r in results]


async def _query_credentials(service: WalletService, params: Any) -> Any:
    p = parse_params(QueryCredentialsParams, params)
    results = await service.query_credentials(
        p.filter, p.options.store, return_store=p.options.return_store
    )
    return [r.to_response() for r in results]


async def _delete_credential(service: WalletService, params: Any) -> Any:
    p = parse_params(DeleteCredentialParams, params)
    results = await service.delete_credential(
        QueryFilter(type="id", filter=p.id), p.options.store
    )
    return [r.model_dump(mode="json") for r in results]


async def _clear_credentials(service: WalletService, params: Any) -> Any:
    p = parse_params(ClearCredentialsParams, params)
    await service.clear_credentials(p.options.store)
    return True


async def _create_credential(service: WalletService, params: Any) -> Any:
    p = parse_params(CreateCredentialParams, params)
    return await service.create_credential(
        p.minimal_unsigned_credential, save=p.options.save, store=p.options.store
    )


async def _create_presentation(service: WalletService, params: Any) -> Any:
    p = parse_params(CreatePresentationParams, params)
    return await service.create_presentation(p.presentation)


async def _get_credential_store(service: WalletService, params: Any) -> Any:
    return await service.get_credential_store()


async def _set_credential_store(service: WalletService, params: Any) -> Any:
    p = parse_params(SetCredentialStoreParams, params)
    return await service.set_credential_store(p.store, p.value)


Handler = Callable[[WalletService, Any], Awaitable[Any]]

METHODS: dict[str, Handler] = {
    "saveCredential": _save_credential,
    "queryCredentials": _query_credentials,
    "deleteCredential": _delete_credential,
    "clearCredentials": _clear_credentials,
    "createCredential": _create_credential,
    "createPresentation": _create_presentation,
    "getCredentialStore": _get_credential_store,
    "setCredentialStore": _set_credential_store,
}


def success(data: Any) -> dict[str, Any]:
    return {"success": True, "data": data}


def failure(message: str) -> dict[str, Any]:
    return {"success": False, "error": f"Error: {message}"}


async def dispatch(service: WalletService, method: str, params: Any = None) -> dict[str, Any]:
    """Run one RPC method and wrap its outcome in a tagged result."""
    handler = METHODS.get(method)
    if handler is None:
        return failure("Method not found.")
    try:
        data = await handler(service, params)
    except CredWalletError as exc:
        logger.info(
            "RPC %s failed: %s", method, exc.message, extra={"method": method, "error_type": exc.error_type}
        )
        return failure(exc.message)
    except Exception as exc:
        logger.exception("RPC %s raised an unexpected error", method, extra={"method": method})
        return failure(str(exc))
    return success(data)
