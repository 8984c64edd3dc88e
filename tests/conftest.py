"""Shared fixtures for credwallet tests."""

from __future__ import annotations

import asyncio
import hashlib
import json

import httpx
import jwt
import pytest
import pytest_asyncio

from credwallet.core.service import create_service
from credwallet.storage.state import HolderStateStore

ADDRESS = "0x" + "ab12" * 10
ISSUER_DID = f"did:ethr:{ADDRESS}"
REMOTE_URL = "http://docs.test"


class FakeAccounts:
    """AccountProvider with one fixed account and deterministic signatures."""

    def __init__(self, address: str = ADDRESS, chain_id: str = "0x1") -> None:
        self.address = address
        self.chain_id = chain_id
        self.names: dict[str, str] = {}
        self.signed: list[tuple[str, str]] = []

    async def request_accounts(self) -> list[str]:
        return [self.address]

    async def request_chain_id(self) -> str:
        return self.chain_id

    async def sign_typed_data(self, address: str, payload: str) -> str:
        self.signed.append((address, payload))
        return "0x" + hashlib.sha256(payload.encode()).hexdigest()

    async def resolve_reverse_name(self, address: str) -> str | None:
        return self.names.get(address)


class FakeConsent:
    def __init__(self, allow: bool = True) -> None:
        self.allow = allow
        self.prompts: list[str] = []

    async def confirm(self, prompt: str) -> bool:
        self.prompts.append(prompt)
        return self.allow


class FakeAuthorizer:
    """SessionAuthorizer that counts prompts and can be held open or refuse."""

    def __init__(self) -> None:
        self.calls: list[tuple[str, int, list[str]]] = []
        self.deny = False
        self.gate: asyncio.Event | None = None

    async def authorize(self, account_id: str, *, expires_in_secs: int, resources: list[str]) -> str:
        self.calls.append((account_id, expires_in_secs, resources))
        if self.gate is not None:
            await self.gate.wait()
        if self.deny:
            raise RuntimeError("user closed the prompt")
        return f"session-{len(self.calls)}"


class RemoteDocServer:
    """In-memory document service served through httpx.MockTransport."""

    def __init__(self) -> None:
        self.documents: dict[str, dict] = {}
        self.requests: list[httpx.Request] = []
        self.fail_status: int | None = None

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.fail_status is not None:
            return httpx.Response(self.fail_status)
        path = request.url.path
        if request.method == "GET":
            if path not in self.documents:
                return httpx.Response(404)
            return httpx.Response(200, json=self.documents[path])
        if request.method == "PUT":
            self.documents[path] = json.loads(request.content)
            return httpx.Response(200, json={"ok": True})
        return httpx.Response(405)

    def vcs(self) -> dict[str, dict]:
        """Credentials held across all documents."""
        merged: dict[str, dict] = {}
        for document in self.documents.values():
            merged.update(document.get("vcs", {}))
        return merged


def unsigned_vc(**overrides) -> dict:
    vc = {
        "@context": ["https://www.w3.org/2018/credentials/v1"],
        "type": ["VerifiableCredential"],
        "issuer": ISSUER_DID,
        "issuanceDate": "2024-01-01T00:00:00Z",
        "credentialSubject": {"id": "did:example:alice", "name": "Alice"},
    }
    vc.update(overrides)
    return vc


def vc_jwt(**claims) -> str:
    payload = {
        "vc": {
            "@context": ["https://www.w3.org/2018/credentials/v1"],
            "type": ["VerifiableCredential"],
            "credentialSubject": {"degree": "BSc"},
        },
        "iss": ISSUER_DID,
        "sub": "did:example:alice",
        "nbf": 1704067200,
    }
    payload.update(claims)
    return jwt.encode(payload, "test-secret", algorithm="HS256")


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def make_vc():
    return unsigned_vc


@pytest.fixture
def make_jwt():
    return vc_jwt


@pytest_asyncio.fixture
async def state(tmp_path):
    """Fresh holder-state database for each test."""
    store = HolderStateStore(tmp_path / "state.db")
    await store.connect()
    yield store
    await store.close()


@pytest_asyncio.fixture
async def account_state(state):
    """Holder state initialized for the default account."""
    await state.init_state()
    await state.init_account(ADDRESS)
    return state


@pytest.fixture
def accounts():
    return FakeAccounts()


@pytest.fixture
def consent():
    return FakeConsent()


@pytest.fixture
def authorizer():
    return FakeAuthorizer()


@pytest.fixture
def remote_server():
    return RemoteDocServer()


@pytest_asyncio.fixture
async def remote_client(remote_server):
    client = httpx.AsyncClient(transport=httpx.MockTransport(remote_server.handler))
    yield client
    await client.aclose()


@pytest_asyncio.fixture
async def service(state, accounts, authorizer, consent, remote_client):
    """Wallet service with only the local store enabled."""
    svc = create_service(
        state, accounts, authorizer, consent, remote_url=REMOTE_URL, remote_client=remote_client
    )
    await svc.initialize()
    return svc


@pytest_asyncio.fixture
async def remote_service(service):
    """Wallet service with both stores enabled."""
    await service.set_credential_store("ceramic", True)
    return service
