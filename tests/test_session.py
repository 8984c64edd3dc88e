"""Tests for remote-store session management."""

import asyncio
from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock

import pytest
import pytest_asyncio

from credwallet.core.models import StoreName
from credwallet.exceptions import ProviderError, SessionDeniedError
from credwallet.session import SESSION_TTL_SECS, SessionManager, SessionState


def _enable_remote(account):
    account.store_config = account.store_config.with_store(StoreName.REMOTE, True)


@pytest_asyncio.fixture
async def sessions(account_state, accounts, authorizer):
    await account_state.update_account(_enable_remote)
    return SessionManager(account_state, accounts, authorizer)


async def _wait_for_prompt(authorizer):
    while not authorizer.calls:
        await asyncio.sleep(0.01)
    # Let every caller reach the in-flight authorization.
    await asyncio.sleep(0.05)


class TestEnsureSession:
    async def test_disabled_remote_needs_no_session(self, account_state, accounts, authorizer):
        manager = SessionManager(account_state, accounts, authorizer)
        assert await manager.ensure_session() is None
        assert authorizer.calls == []

    async def test_first_use_authorizes(self, sessions, authorizer, accounts, account_state):
        session = await sessions.ensure_session()

        account_id = f"eip155:1:{accounts.address}"
        assert authorizer.calls == [(account_id, SESSION_TTL_SECS, ["ceramic://*"])]
        assert session.payload == "session-1"
        assert session.did == f"did:pkh:{account_id}"
        assert sessions.status is SessionState.ACTIVE
        assert (await account_state.account_state()).session == session

    async def test_expiry_is_seven_days_out(self, sessions):
        before = datetime.now(timezone.utc)
        session = await sessions.ensure_session()
        assert session.expiry - before >= timedelta(days=7) - timedelta(seconds=5)
        assert session.expiry - before <= timedelta(days=7, seconds=5)

    async def test_reuses_stored_session(self, sessions, authorizer):
        first = await sessions.ensure_session()
        second = await sessions.ensure_session()
        assert first == second
        assert len(authorizer.calls) == 1

    async def test_expired_session_reauthorizes(self, sessions, authorizer, account_state):
        await sessions.ensure_session()

        def _expire(account):
            account.session = account.session.model_copy(
                update={"expiry": datetime.now(timezone.utc) - timedelta(seconds=1)}
            )

        await account_state.update_account(_expire)
        assert await sessions.stored_session() is None
        assert sessions.status is SessionState.EXPIRED

        renewed = await sessions.ensure_session()
        assert renewed.payload == "session-2"
        assert sessions.status is SessionState.ACTIVE


class TestSingleFlight:
    async def test_concurrent_callers_share_one_prompt(self, sessions, authorizer):
        authorizer.gate = asyncio.Event()
        tasks = [asyncio.create_task(sessions.ensure_session()) for _ in range(3)]
        await _wait_for_prompt(authorizer)
        assert sessions.status is SessionState.AUTHORIZING

        authorizer.gate.set()
        results = await asyncio.gather(*tasks)
        assert len(authorizer.calls) == 1
        assert {s.payload for s in results} == {"session-1"}

    async def test_refusal_reported_to_every_waiter(self, sessions, authorizer, account_state):
        authorizer.gate = asyncio.Event()
        authorizer.deny = True
        tasks = [asyncio.create_task(sessions.ensure_session()) for _ in range(3)]
        await _wait_for_prompt(authorizer)

        authorizer.gate.set()
        results = await asyncio.gather(*tasks, return_exceptions=True)
        assert all(isinstance(r, SessionDeniedError) for r in results)
        assert len(authorizer.calls) == 1
        assert (await account_state.account_state()).session is None


class TestDenialAndRevocation:
    async def test_denied(self, sessions, authorizer):
        authorizer.deny = True
        with pytest.raises(SessionDeniedError, match="User failed to sign session."):
            await sessions.ensure_session()
        assert sessions.status is SessionState.UNINITIALIZED

    async def test_no_automatic_retry(self, sessions, authorizer):
        authorizer.deny = True
        with pytest.raises(SessionDeniedError):
            await sessions.ensure_session()
        assert len(authorizer.calls) == 1

        authorizer.deny = False
        session = await sessions.ensure_session()
        assert session.payload == "session-2"

    async def test_revoke(self, sessions, authorizer, account_state):
        await sessions.ensure_session()
        await sessions.revoke()
        assert (await account_state.account_state()).session is None
        assert sessions.status is SessionState.UNINITIALIZED

        await sessions.ensure_session()
        assert len(authorizer.calls) == 2

    async def test_no_account_available(self, sessions, accounts, authorizer, account_state):
        accounts.request_accounts = AsyncMock(return_value=[])
        with pytest.raises(ProviderError, match="No account available"):
            await sessions.ensure_session()
        assert authorizer.calls == []
        assert sessions.status is SessionState.UNINITIALIZED
        assert (await account_state.account_state()).session is None
