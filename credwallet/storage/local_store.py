"""Local credential store kept inside the encrypted holder state."""

from __future__ import annotations

import logging

from credwallet.core.models import AccountState, CredentialEntry, QueryFilter, StoreName
from credwallet.storage.state import HolderStateStore

logger = logging.getLogger("credwallet.storage.local")


class LocalStore:
    """StoreBackend over the current account's ``credentials`` map."""

    name = StoreName.LOCAL

    def __init__(self, state: HolderStateStore) -> None:
        self.state = state

    async def save(self, entry: CredentialEntry) -> str:
        def _save(account: AccountState) -> bool:
            if entry.id in account.credentials:
                return False
            account.credentials[entry.id] = entry.data
            return True

        if await self.state.update_account(_save):
            logger.debug("Saved credential", extra={"store": self.name.value, "credential_id": entry.id})
        return entry.id

    async def query(self, query: QueryFilter) -> list[CredentialEntry]:
        account = await self.state.account_state()
        return [
            CredentialEntry(id=cid, data=data)
            for cid, data in account.credentials.items()
            if query.matches(cid)
        ]

    async def delete(self, query: QueryFilter) -> list[str]:
        def _delete(account: AccountState) -> list[str]:
            removed = [cid for cid in account.credentials if query.matches(cid)]
            for cid in removed:
                del account.credentials[cid]
            return removed

        return await self.state.update_account(_delete)

    async def clear(self) -> None:
        def _clear(account: AccountState) -> None:
            account.credentials.clear()

        await self.state.update_account(_clear)
