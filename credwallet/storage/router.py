"""Fan-out / fan-in over the credential store backends.

The router validates the requested store names against the holder's
StoreConfig, dispatches to every targeted backend concurrently, waits for all
of them, and merges the per-store results by content id. The merge functions
are pure and independent of backend completion order: results are grouped
in store priority order (local before remote), ids keep first-seen order and
each provenance list follows the same priority.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Iterable, Mapping, Sequence
from typing import Any, Awaitable, TypeVar

from credwallet.core.models import (
    STORE_PRIORITY,
    CredentialEntry,
    DeleteResult,
    QueryFilter,
    SaveResult,
    StoreName,
)
from credwallet.exceptions import StoreNotEnabledError, ValidationError
from credwallet.storage.base import StoreBackend
from credwallet.storage.state import HolderStateStore

logger = logging.getLogger("credwallet.storage.router")

T = TypeVar("T")


# ---------------------------------------------------------------------------
# Pure merge layer
# ---------------------------------------------------------------------------


def _by_priority(per_store: Iterable[tuple[StoreName, T]]) -> list[tuple[StoreName, T]]:
    return sorted(per_store, key=lambda item: STORE_PRIORITY.index(item[0]))


def _group_ids(per_store: Iterable[tuple[StoreName, list[str]]]) -> dict[str, list[StoreName]]:
    grouped: dict[str, list[StoreName]] = {}
    for store, ids in _by_priority(per_store):
        for cid in ids:
            stores = grouped.setdefault(cid, [])
            if store not in stores:
                stores.append(store)
    return grouped


def merge_save_results(per_store: Iterable[tuple[StoreName, list[str]]]) -> list[SaveResult]:
    return [SaveResult(id=cid, store=stores) for cid, stores in _group_ids(per_store).items()]


def merge_delete_results(per_store: Iterable[tuple[StoreName, list[str]]]) -> list[DeleteResult]:
    return [DeleteResult(id=cid, store=stores) for cid, stores in _group_ids(per_store).items()]


def merge_query_results(
    per_store: Iterable[tuple[StoreName, list[CredentialEntry]]],
) -> list[CredentialEntry]:
    """Deduplicate entries by id; provenance lists every contributing store."""
    merged: dict[str, CredentialEntry] = {}
    for store, entries in _by_priority(per_store):
        for entry in entries:
            existing = merged.get(entry.id)
            if existing is None:
                merged[entry.id] = CredentialEntry(id=entry.id, data=entry.data, store=[store])
            elif store not in existing.store:
                existing.store.append(store)
    return list(merged.values())


# ---------------------------------------------------------------------------
# Router
# ---------------------------------------------------------------------------


def _display(name: Any) -> Any:
    return name.value if isinstance(name, StoreName) else name


class CredentialRouter:
    """Routes credential operations to the enabled store backends."""

    def __init__(self, backends: Mapping[StoreName, StoreBackend], state: HolderStateStore) -> None:
        self.backends = dict(backends)
        self.state = state

    async def resolve_stores(
        self,
        requested: Any,
        default: Sequence[StoreName] | None = (StoreName.LOCAL,),
    ) -> list[StoreName]:
        """Validate *requested* store names and return them in priority order.

        ``requested=None`` selects *default*, or every enabled store when
        *default* is None. Fails on the first unknown or disabled name before
        any backend is touched.
        """
        config = (await self.state.account_state()).store_config

        if requested is None:
            if default is None:
                return [s for s in config.enabled() if s in self.backends]
            requested = list(default)
        elif not isinstance(requested, (list, tuple)):
            requested = [requested]

        if not requested:
            raise ValidationError("invalid_argument: input.options.store")

        targets: set[StoreName] = set()
        for name in requested:
            try:
                store = StoreName(name)
            except ValueError:
                raise StoreNotEnabledError(_display(name)) from None
            if store not in self.backends or not config.is_enabled(store):
                raise StoreNotEnabledError(store.value)
            targets.add(store)
        return [s for s in STORE_PRIORITY if s in targets]

    async def _gather(self, stores: list[StoreName], calls: list[Awaitable[T]]) -> list[T]:
        # Wait for every backend, then surface the first failure in priority order.
        results = await asyncio.gather(*calls, return_exceptions=True)
        for store, result in zip(stores, results):
            if isinstance(result, BaseException):
                logger.warning("Store operation failed", extra={"store": store.value})
                raise result
        return list(results)  # type: ignore[arg-type]

    async def save(self, entry: CredentialEntry, stores: Any = None) -> list[SaveResult]:
        targets = await self.resolve_stores(stores)
        ids = await self._gather(targets, [self.backends[s].save(entry) for s in targets])
        logger.info(
            "Credential saved",
            extra={"credential_id": entry.id, "store": [s.value for s in targets]},
        )
        return merge_save_results((s, [cid]) for s, cid in zip(targets, ids))

    async def query(self, query: QueryFilter, stores: Any = None) -> list[CredentialEntry]:
        targets = await self.resolve_stores(stores, default=None)
        found = await self._gather(targets, [self.backends[s].query(query) for s in targets])
        return merge_query_results(zip(targets, found))

    async def delete(self, query: QueryFilter, stores: Any = None) -> list[DeleteResult]:
        targets = await self.resolve_stores(stores, default=None)
        removed = await self._gather(targets, [self.backends[s].delete(query) for s in targets])
        results = merge_delete_results(zip(targets, removed))
        logger.info("Credentials deleted", extra={"store": [s.value for s in targets]})
        return results

    async def clear(self, stores: Any = None) -> None:
        targets = await self.resolve_stores(stores, default=None)
        await self._gather(targets, [self.backends[s].clear() for s in targets])
        logger.info("Credential stores cleared", extra={"store": [s.value for s in targets]})
