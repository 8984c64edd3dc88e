"""Remote credential store: one JSON document per holder DID.

Uses httpx for async access to the document service. The document lives at
``{base_url}/documents/{did}/{alias}`` and holds ``{"vcs": {id: credential}}``.
Writes replace the whole document. Every call needs an active session from
the SessionManager; its payload is sent as the bearer credential.
"""

from __future__ import annotations

import logging
from typing import Any

import httpx

from credwallet.core.models import CredentialEntry, QueryFilter, Session, StoreName
from credwallet.exceptions import RemoteStoreError
from credwallet.session import SessionManager

logger = logging.getLogger("credwallet.storage.remote")

DEFAULT_ALIAS = "StoredCredentials"


class RemoteDocStore:
    """StoreBackend over a holder-controlled remote document."""

    name = StoreName.REMOTE

    def __init__(
        self,
        sessions: SessionManager,
        base_url: str,
        *,
        alias: str = DEFAULT_ALIAS,
        client: httpx.AsyncClient | None = None,
        timeout: float = 10.0,
    ) -> None:
        self.sessions = sessions
        self.base_url = base_url.rstrip("/")
        self.alias = alias
        self._client = client or httpx.AsyncClient(timeout=timeout)

    async def close(self) -> None:
        await self._client.aclose()

    async def _session(self) -> Session:
        session = await self.sessions.ensure_session()
        if session is None:
            raise RemoteStoreError("No remote session available: remote store is disabled.")
        return session

    def _url(self, session: Session) -> str:
        return f"{self.base_url}/documents/{session.did}/{self.alias}"

    async def _request(self, method: str, session: Session, **kwargs: Any) -> httpx.Response:
        try:
            response = await self._client.request(
                method,
                self._url(session),
                headers={"Authorization": f"Bearer {session.payload}"},
                **kwargs,
            )
        except httpx.HTTPError as exc:
            raise RemoteStoreError(f"Remote store unreachable: {exc}") from exc

        if response.status_code in (401, 403):
            # Session no longer accepted: force re-authorization on next use.
            await self.sessions.revoke()
            raise RemoteStoreError(f"Remote store rejected the session (HTTP {response.status_code})")
        return response

    async def _load(self, session: Session) -> dict[str, dict[str, Any]]:
        response = await self._request("GET", session)
        if response.status_code == 404:
            return {}
        if response.is_error:
            raise RemoteStoreError(f"Remote store read failed (HTTP {response.status_code})")
        try:
            body = response.json()
        except ValueError as exc:
            raise RemoteStoreError("Remote store returned a malformed document") from exc

        vcs = body.get("vcs", {}) if isinstance(body, dict) else None
        if not isinstance(vcs, dict):
            raise RemoteStoreError("Remote store returned a malformed document")
        return vcs

    async def _store(self, session: Session, vcs: dict[str, dict[str, Any]]) -> None:
        response = await self._request("PUT", session, json={"vcs": vcs})
        if response.is_error:
            raise RemoteStoreError(f"Remote store write failed (HTTP {response.status_code})")

    async def save(self, entry: CredentialEntry) -> str:
        session = await self._session()
        vcs = await self._load(session)
        if entry.id not in vcs:
            vcs[entry.id] = entry.data
            await self._store(session, vcs)
            logger.debug("Saved credential", extra={"store": self.name.value, "credential_id": entry.id})
        return entry.id

    async def query(self, query: QueryFilter) -> list[CredentialEntry]:
        session = await self._session()
        vcs = await self._load(session)
        return [CredentialEntry(id=cid, data=data) for cid, data in vcs.items() if query.matches(cid)]

    async def delete(self, query: QueryFilter) -> list[str]:
        session = await self._session()
        vcs = await self._load(session)
        removed = [cid for cid in vcs if query.matches(cid)]
        if removed:
            for cid in removed:
                del vcs[cid]
            await self._store(session, vcs)
        return removed

    async def clear(self) -> None:
        session = await self._session()
        await self._store(session, {})
