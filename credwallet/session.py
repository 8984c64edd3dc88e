"""Remote-store authorization sessions.

State machine::

    UNINITIALIZED --(remote enabled + first use)--> AUTHORIZING --> ACTIVE
    ACTIVE --(expiry reached)--> EXPIRED --(re-authorization)--> ACTIVE
    any --(revoke)--> UNINITIALIZED

Only one interactive authorization runs at a time. Callers arriving while it
is in flight await the same task instead of prompting the user again, and a
refusal is reported to all of them without an automatic retry.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timedelta, timezone
from enum import Enum

from credwallet.core.models import AccountState, Session, StoreName
from credwallet.exceptions import ProviderError, SessionDeniedError
from credwallet.providers import AccountProvider, SessionAuthorizer
from credwallet.storage.state import HolderStateStore

logger = logging.getLogger("credwallet.session")

SESSION_TTL_SECS = 60 * 60 * 24 * 7
SESSION_RESOURCES = ("ceramic://*",)


class SessionState(str, Enum):
    UNINITIALIZED = "uninitialized"
    AUTHORIZING = "authorizing"
    ACTIVE = "active"
    EXPIRED = "expired"


class SessionManager:
    """Owns the holder's remote-store session."""

    def __init__(
        self,
        state: HolderStateStore,
        accounts: AccountProvider,
        authorizer: SessionAuthorizer,
        *,
        ttl_secs: int = SESSION_TTL_SECS,
        resources: tuple[str, ...] = SESSION_RESOURCES,
    ) -> None:
        self._state = state
        self._accounts = accounts
        self._authorizer = authorizer
        self.ttl_secs = ttl_secs
        self.resources = resources
        self.status = SessionState.UNINITIALIZED
        self._inflight: asyncio.Task[Session] | None = None

    async def stored_session(self) -> Session | None:
        """Return the persisted session if it is still valid."""
        account = await self._state.account_state()
        session = account.session
        if session is None:
            self.status = SessionState.UNINITIALIZED
            return None
        if session.is_expired():
            self.status = SessionState.EXPIRED
            return None
        self.status = SessionState.ACTIVE
        return session

    async def ensure_session(self) -> Session | None:
        """Return an active session, authorizing first when needed.

        Returns None without any prompt when the remote store is disabled.
        """
        account = await self._state.account_state()
        if not account.store_config.is_enabled(StoreName.REMOTE):
            return None

        session = await self.stored_session()
        if session is not None:
            return session

        if self._inflight is None or self._inflight.done():
            self._inflight = asyncio.get_running_loop().create_task(self._authorize())
        return await asyncio.shield(self._inflight)

    async def _authorize(self) -> Session:
        previous = self.status
        self.status = SessionState.AUTHORIZING
        try:
            addresses = await self._accounts.request_accounts()
            if not addresses:
                raise ProviderError("No account available for the session")
            chain_id = int(await self._accounts.request_chain_id(), 16)
            account_id = f"eip155:{chain_id}:{addresses[0]}"
            try:
                payload = await self._authorizer.authorize(
                    account_id,
                    expires_in_secs=self.ttl_secs,
                    resources=list(self.resources),
                )
            except Exception as exc:
                raise SessionDeniedError() from exc

            session = Session(
                payload=payload,
                expiry=datetime.now(timezone.utc) + timedelta(seconds=self.ttl_secs),
                did=f"did:pkh:{account_id}",
            )

            def _store(account: AccountState) -> None:
                account.session = session

            await self._state.update_account(_store)
        except BaseException:
            self.status = previous
            raise

        self.status = SessionState.ACTIVE
        logger.info("Remote session authorized", extra={"holder": session.did})
        return session

    async def revoke(self) -> None:
        """Drop the session; the next remote operation re-authorizes."""

        def _drop(account: AccountState) -> None:
            account.session = None

        await self._state.update_account(_drop)
        self.status = SessionState.UNINITIALIZED
        logger.info("Remote session revoked")
