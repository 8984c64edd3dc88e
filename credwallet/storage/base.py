"""Credential store backend protocol."""

from __future__ import annotations

from typing import Protocol, runtime_checkable

from credwallet.core.models import CredentialEntry, QueryFilter, StoreName


@runtime_checkable
class StoreBackend(Protocol):
    """Protocol that all credential store backends must implement.

    Entries are content-addressed: ``save`` of an already present id is a
    no-op returning that id, and ``delete`` of an absent id returns nothing.
    """

    name: StoreName

    async def save(self, entry: CredentialEntry) -> str:
        """Persist *entry*, return its id."""
        ...

    async def query(self, query: QueryFilter) -> list[CredentialEntry]:
        """Return matching entries in store order."""
        ...

    async def delete(self, query: QueryFilter) -> list[str]:
        """Remove matching entries, return the ids actually removed."""
        ...

    async def clear(self) -> None:
        """Remove every entry held for the current holder."""
        ...
