"""Async SQLite holder-state store.

Uses aiosqlite for async access. The whole HolderState is kept as one JSON
document, encrypted with a PyNaCl SecretBox when a key is configured.
Every read-modify-write goes through ``update`` so concurrent router
sub-operations cannot overwrite each other's changes.
"""

from __future__ import annotations

import asyncio
import logging
import os
from datetime import datetime, timezone
from pathlib import Path
from typing import Callable, TypeVar

import aiosqlite
from nacl.secret import SecretBox

from credwallet.core.models import AccountState, HolderState
from credwallet.exceptions import StateNotInitializedError

logger = logging.getLogger("credwallet.storage.state")

DEFAULT_STATE_PATH = Path(os.environ.get("CW_STATE_PATH", "credwallet.db"))

SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS holder_state (
    id TEXT PRIMARY KEY,
    blob BLOB NOT NULL,
    encrypted INTEGER NOT NULL DEFAULT 0,
    updated_at TEXT NOT NULL
);
"""

_STATE_ROW = "holder"

T = TypeVar("T")


class HolderStateStore:
    """Persistent, optionally encrypted holder state."""

    def __init__(self, db_path: Path | str = DEFAULT_STATE_PATH, key: bytes | None = None) -> None:
        self.db_path = Path(db_path)
        self._box = SecretBox(key) if key else None
        self._db: aiosqlite.Connection | None = None
        self._lock = asyncio.Lock()

    async def connect(self, require_encryption: bool = False) -> None:
        if require_encryption and self._box is None:
            raise RuntimeError(
                "CW_REQUIRE_ENCRYPTION is set but CW_STATE_KEY is not configured. "
                "Provide an encryption key or disable the requirement."
            )
        self._db = await aiosqlite.connect(self.db_path)
        await self._db.executescript(SCHEMA_SQL)
        await self._db.commit()

    async def close(self) -> None:
        if self._db:
            await self._db.close()
            self._db = None

    @property
    def db(self) -> aiosqlite.Connection:
        if self._db is None:
            raise RuntimeError("Holder state not connected. Call connect() first.")
        return self._db

    # --- raw get / set ---

    async def get_unchecked(self) -> HolderState | None:
        """Return the stored state, or None when it was never initialized."""
        cursor = await self.db.execute(
            "SELECT blob, encrypted FROM holder_state WHERE id = ?", (_STATE_ROW,)
        )
        row = await cursor.fetchone()
        if row is None:
            return None
        blob, encrypted = row
        if encrypted:
            if self._box is None:
                raise RuntimeError("Holder state is encrypted but CW_STATE_KEY is not configured.")
            blob = self._box.decrypt(blob)
        return HolderState.model_validate_json(blob)

    async def get(self) -> HolderState:
        state = await self.get_unchecked()
        if state is None:
            raise StateNotInitializedError()
        return state

    async def set(self, state: HolderState) -> None:
        blob = state.model_dump_json().encode("utf-8")
        encrypted = self._box is not None
        if self._box is not None:
            blob = bytes(self._box.encrypt(blob))
        await self.db.execute(
            "INSERT INTO holder_state (id, blob, encrypted, updated_at) VALUES (?, ?, ?, ?) "
            "ON CONFLICT(id) DO UPDATE SET blob=excluded.blob, encrypted=excluded.encrypted, "
            "updated_at=excluded.updated_at",
            (_STATE_ROW, blob, int(encrypted), datetime.now(timezone.utc).isoformat()),
        )
        await self.db.commit()

    async def clear(self) -> None:
        await self.db.execute("DELETE FROM holder_state WHERE id = ?", (_STATE_ROW,))
        await self.db.commit()

    # --- lifecycle ---

    async def init_state(self) -> HolderState:
        """Write and return a fresh, empty holder state."""
        state = HolderState()
        async with self._lock:
            await self.set(state)
        return state

    async def init_account(self, account: str) -> AccountState:
        """Make *account* current, creating its state on first use."""

        def _init(state: HolderState) -> AccountState:
            state.current_account = account
            return state.accounts.setdefault(account, AccountState())

        account_state = await self.update(_init)
        logger.info("Holder account initialized", extra={"holder": account})
        return account_state

    # --- scoped access ---

    async def update(self, mutate: Callable[[HolderState], T]) -> T:
        """Atomically apply *mutate* to the stored state and persist it."""
        async with self._lock:
            state = await self.get()
            result = mutate(state)
            await self.set(state)
            return result

    async def current_account(self) -> str:
        state = await self.get()
        if not state.current_account:
            raise StateNotInitializedError("No holder account selected!")
        return state.current_account

    async def account_state(self, account: str | None = None) -> AccountState:
        state = await self.get()
        account = account or state.current_account
        if not account or account not in state.accounts:
            raise StateNotInitializedError("Holder account state is not initialized!")
        return state.accounts[account]

    async def update_account(
        self, mutate: Callable[[AccountState], T], account: str | None = None
    ) -> T:
        """Atomically apply *mutate* to one account's state (current account by default)."""

        def _apply(state: HolderState) -> T:
            target = account or state.current_account
            if not target or target not in state.accounts:
                raise StateNotInitializedError("Holder account state is not initialized!")
            return mutate(state.accounts[target])

        return await self.update(_apply)
