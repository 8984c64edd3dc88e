"""Wallet service layer: the operations exposed to callers.

Orchestrates input validation, store selection, the consent gate, the
credential router and the signing pipeline. Validation and store checks run
before the user is prompted and before any backend is touched.
"""

from __future__ import annotations

import logging
from typing import Any

import httpx

from credwallet.core.credentials import make_entry
from credwallet.core.models import (
    AccountState,
    DeleteResult,
    QueryFilter,
    QueryMetadata,
    QueryResult,
    SaveResult,
    StoreName,
)
from credwallet.crypto.signing import SigningPipeline, resolve_holder, resolve_issuer
from credwallet.exceptions import ProviderError, UserRejectedError, ValidationError
from credwallet.providers import AccountProvider, ConsentUI, SessionAuthorizer
from credwallet.session import SESSION_TTL_SECS, SessionManager
from credwallet.storage.local_store import LocalStore
from credwallet.storage.remote_store import DEFAULT_ALIAS, RemoteDocStore
from credwallet.storage.router import CredentialRouter
from credwallet.storage.state import HolderStateStore

logger = logging.getLogger("credwallet.service")


def _store_list(stores: list[StoreName]) -> str:
    return ", ".join(s.value for s in stores)


class WalletService:
    """Credential wallet for the current holder account."""

    def __init__(
        self,
        state: HolderStateStore,
        accounts: AccountProvider,
        consent: ConsentUI,
        router: CredentialRouter,
        sessions: SessionManager,
    ) -> None:
        self.state = state
        self.accounts = accounts
        self.consent = consent
        self.router = router
        self.sessions = sessions
        self.signer = SigningPipeline(accounts, router)

    async def initialize(self) -> str:
        """Load or create holder state and select the provider's active account."""
        if await self.state.get_unchecked() is None:
            await self.state.init_state()
        addresses = await self.accounts.request_accounts()
        if not addresses:
            raise ProviderError("No account available for the holder")
        account = addresses[0]
        await self.state.init_account(account)
        return account

    async def close(self) -> None:
        for backend in self.router.backends.values():
            close = getattr(backend, "close", None)
            if close is not None:
                await close()

    async def _confirm(self, prompt: str, rejection: str) -> None:
        if not await self.consent.confirm(prompt):
            logger.info("Consent denied: %s", prompt)
            raise UserRejectedError(rejection)

    # --- storage operations ---

    async def save_credential(self, credential: Any, store: Any = None) -> list[SaveResult]:
        entry = make_entry(credential)
        targets = await self.router.resolve_stores(store)
        await self._confirm(
            f"Save credential {entry.id} to {_store_list(targets)}?",
            "User rejected save credential request.",
        )
        return await self.router.save(entry, targets)

    async def query_credentials(
        self,
        query: QueryFilter | None = None,
        store: Any = None,
        return_store: bool = True,
    ) -> list[QueryResult]:
        entries = await self.router.query(query or QueryFilter(), store)
        return [
            QueryResult(
                data=entry.data,
                metadata=QueryMetadata(id=entry.id, store=entry.store) if return_store else None,
            )
            for entry in entries
        ]

    async def delete_credential(self, query: QueryFilter, store: Any = None) -> list[DeleteResult]:
        targets = await self.router.resolve_stores(store, default=None)
        await self._confirm(
            f"Delete credentials matching {query.filter or 'all'} from {_store_list(targets)}?",
            "User rejected delete credential request.",
        )
        return await self.router.delete(query, targets)

    async def clear_credentials(self, store: Any = None) -> None:
        targets = await self.router.resolve_stores(store, default=None)
        await self._confirm(
            f"Remove every credential from {_store_list(targets)}?",
            "User rejected clear credentials request.",
        )
        await self.router.clear(targets)

    # --- signing operations ---

    async def create_credential(
        self, credential: dict[str, Any], *, save: bool = False, store: Any = None
    ) -> dict[str, Any]:
        issuer = resolve_issuer(credential)
        targets = await self.router.resolve_stores(store) if save else []
        prompt = f"Sign credential as {issuer}?"
        if targets:
            prompt = f"Sign credential as {issuer} and save it to {_store_list(targets)}?"
        await self._confirm(prompt, "User rejected create credential request.")
        return await self.signer.sign_credential(credential, save=save, store=targets or None)

    async def create_presentation(self, presentation: dict[str, Any]) -> dict[str, Any]:
        holder = resolve_holder(presentation)
        await self._confirm(
            f"Sign presentation as {holder}?", "User rejected create presentation request."
        )
        return await self.signer.sign_presentation(presentation)

    # --- store configuration ---

    async def get_credential_store(self) -> dict[str, bool]:
        account = await self.state.account_state()
        return account.store_config.model_dump()

    async def set_credential_store(self, store: Any, value: bool) -> bool:
        try:
            target = StoreName(store)
        except ValueError:
            raise ValidationError("invalid_argument: input.store") from None

        def _set(account: AccountState) -> None:
            config = account.store_config.with_store(target, value)
            if not config.enabled():
                raise ValidationError("At least one credential store must stay enabled.")
            account.store_config = config

        await self.state.update_account(_set)
        if target is StoreName.REMOTE and not value:
            await self.sessions.revoke()
        logger.info("Credential store %s %s", target.value, "enabled" if value else "disabled")
        return True


def create_service(
    state: HolderStateStore,
    accounts: AccountProvider,
    authorizer: SessionAuthorizer,
    consent: ConsentUI,
    *,
    remote_url: str,
    remote_alias: str = DEFAULT_ALIAS,
    remote_client: httpx.AsyncClient | None = None,
    session_ttl_secs: int = SESSION_TTL_SECS,
) -> WalletService:
    """Wire the store backends, router and session manager into a WalletService."""
    sessions = SessionManager(state, accounts, authorizer, ttl_secs=session_ttl_secs)
    backends = {
        StoreName.LOCAL: LocalStore(state),
        StoreName.REMOTE: RemoteDocStore(
            sessions, remote_url, alias=remote_alias, client=remote_client
        ),
    }
    router = CredentialRouter(backends, state)
    return WalletService(state, accounts, consent, router, sessions)
