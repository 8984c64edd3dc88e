"""Domain models for the credential wallet.

- StoreName / StoreConfig: which credential stores exist and which are enabled
- CredentialEntry: a content-addressed credential held by one or more stores
- Session: serialized remote-store authorization with its expiry
- HolderState / AccountState: everything persisted for a holder
- TypedDataSchema: EIP-712 domain, types and primary type for one signing call
- Save/Query/Delete results returned to callers
"""

from __future__ import annotations

import hashlib
import json
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, model_validator


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def canonical_json(data: Any) -> str:
    """Deterministic JSON serialization for hashing."""
    return json.dumps(data, sort_keys=True, separators=(",", ":"), ensure_ascii=False)


def sha256_hex(data: str) -> str:
    return hashlib.sha256(data.encode("utf-8")).hexdigest()


# ---------------------------------------------------------------------------
# Stores
# ---------------------------------------------------------------------------


class StoreName(str, Enum):
    LOCAL = "snap"
    REMOTE = "ceramic"


# Fixed fan-out / merge order.
STORE_PRIORITY: tuple[StoreName, ...] = (StoreName.LOCAL, StoreName.REMOTE)


class StoreConfig(BaseModel):
    """Per-holder record of which stores are enabled."""

    snap: bool = True
    ceramic: bool = False

    def is_enabled(self, store: StoreName) -> bool:
        return bool(getattr(self, store.value))

    def enabled(self) -> list[StoreName]:
        return [s for s in STORE_PRIORITY if self.is_enabled(s)]

    def with_store(self, store: StoreName, value: bool) -> StoreConfig:
        return self.model_copy(update={store.value: value})


class CredentialEntry(BaseModel):
    """A credential plus the stores it was found in."""

    id: str
    data: dict[str, Any]
    store: list[StoreName] = Field(default_factory=list)


class QueryFilter(BaseModel):
    """Backend query/delete filter: everything, or a single content id."""

    type: Literal["none", "id"] = "none"
    filter: str | None = None

    @model_validator(mode="after")
    def _id_requires_value(self) -> QueryFilter:
        if self.type == "id" and not self.filter:
            msg = "filter value is required for type 'id'"
            raise ValueError(msg)
        return self

    def matches(self, credential_id: str) -> bool:
        return self.type == "none" or credential_id == self.filter


# ---------------------------------------------------------------------------
# Session & holder state
# ---------------------------------------------------------------------------


class Session(BaseModel):
    """Serialized remote-store session.

    ``payload`` is opaque to the wallet; it is handed to the remote store as a
    bearer credential. ``did`` is the holder DID the remote document is keyed by.
    """

    payload: str
    expiry: datetime
    did: str

    def is_expired(self, now: datetime | None = None) -> bool:
        now = now or _utcnow()
        return now >= self.expiry


class AccountState(BaseModel):
    credentials: dict[str, dict[str, Any]] = Field(default_factory=dict)
    store_config: StoreConfig = Field(default_factory=StoreConfig)
    session: Session | None = None


class HolderState(BaseModel):
    current_account: str | None = None
    accounts: dict[str, AccountState] = Field(default_factory=dict)


# ---------------------------------------------------------------------------
# Typed data
# ---------------------------------------------------------------------------


class TypedField(BaseModel):
    name: str
    type: str


class TypedDataDomain(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    chain_id: int = Field(alias="chainId")
    name: str
    version: str = "1"


class TypedDataSchema(BaseModel):
    """EIP-712 domain, struct types and primary type derived for one document."""

    model_config = ConfigDict(populate_by_name=True)

    domain: TypedDataDomain
    types: dict[str, list[TypedField]]
    primary_type: str = Field(alias="primaryType")

    def types_dict(self) -> dict[str, list[dict[str, str]]]:
        return {name: [f.model_dump() for f in fields] for name, fields in self.types.items()}

    def to_eip712(self) -> dict[str, Any]:
        """Return ``{domain, types, primaryType}`` as embedded in a proof."""
        return {
            "domain": self.domain.model_dump(by_alias=True),
            "types": self.types_dict(),
            "primaryType": self.primary_type,
        }


class SigningRequest(BaseModel):
    """Transient input to one signing call. Never persisted."""

    document: dict[str, Any]
    signer_address: str
    chain_id: int


# ---------------------------------------------------------------------------
# Results
# ---------------------------------------------------------------------------


class SaveResult(BaseModel):
    id: str
    store: list[StoreName]


class DeleteResult(BaseModel):
    id: str
    store: list[StoreName]


class QueryMetadata(BaseModel):
    id: str
    store: list[StoreName]


class QueryResult(BaseModel):
    data: dict[str, Any]
    metadata: QueryMetadata | None = None

    def to_response(self) -> dict[str, Any]:
        response: dict[str, Any] = {"data": self.data}
        if self.metadata is not None:
            response["metadata"] = self.metadata.model_dump(mode="json")
        return response
