"""External collaborators: account provider, session authorizer, consent UI.

The wallet core only depends on the protocols below. The JSON-RPC classes
talk to an EIP-1193 style signer endpoint over HTTP; ``PolicyConsent``
answers consent prompts from configuration for unattended deployments.
"""

from __future__ import annotations

import base64
import itertools
import json
import logging
import secrets
from datetime import datetime, timedelta, timezone
from typing import Any, Protocol, runtime_checkable

import httpx

from credwallet.exceptions import ProviderError, UserRejectedError

logger = logging.getLogger("credwallet.providers")

# EIP-1193: user rejected the request.
USER_REJECTED_CODE = 4001


@runtime_checkable
class AccountProvider(Protocol):
    """Wallet account access and typed-data signing."""

    async def request_accounts(self) -> list[str]:
        """Return the selected accounts, first one active."""
        ...

    async def request_chain_id(self) -> str:
        """Return the active chain id as a hex string (``0x1``)."""
        ...

    async def sign_typed_data(self, address: str, payload: str) -> str:
        """Sign an ``eth_signTypedData_v4`` payload, return the hex signature."""
        ...

    async def resolve_reverse_name(self, address: str) -> str | None:
        """Return the reverse-resolved name of *address*, if any."""
        ...


@runtime_checkable
class SessionAuthorizer(Protocol):
    """Interactive grant of a remote-store session."""

    async def authorize(self, account_id: str, *, expires_in_secs: int, resources: list[str]) -> str:
        """Return the serialized session. Raises when the user refuses."""
        ...


@runtime_checkable
class ConsentUI(Protocol):
    async def confirm(self, prompt: str) -> bool: ...


class PolicyConsent:
    """Answer every prompt with a fixed decision."""

    def __init__(self, allow: bool) -> None:
        self.allow = allow

    async def confirm(self, prompt: str) -> bool:
        logger.info("Consent %s by policy: %s", "granted" if self.allow else "denied", prompt)
        return self.allow


class JsonRpcClient:
    """Minimal JSON-RPC 2.0 client over httpx."""

    def __init__(
        self,
        url: str,
        *,
        client: httpx.AsyncClient | None = None,
        timeout: float = 10.0,
    ) -> None:
        self.url = url
        self._client = client or httpx.AsyncClient(timeout=timeout)
        self._ids = itertools.count(1)

    async def request(self, method: str, params: list[Any] | None = None) -> Any:
        body = {"jsonrpc": "2.0", "id": next(self._ids), "method": method, "params": params or []}
        try:
            response = await self._client.post(self.url, json=body)
            response.raise_for_status()
            reply = response.json()
        except (httpx.HTTPError, ValueError) as exc:
            raise ProviderError(f"{method} failed: {exc}") from exc

        error = reply.get("error")
        if error:
            if error.get("code") == USER_REJECTED_CODE:
                raise UserRejectedError(error.get("message") or "User rejected the request.")
            raise ProviderError(f"{method} failed: {error.get('message', error)}")
        return reply.get("result")

    async def close(self) -> None:
        await self._client.aclose()


class JsonRpcAccountProvider:
    """AccountProvider backed by an Ethereum JSON-RPC signer."""

    def __init__(self, rpc: JsonRpcClient) -> None:
        self.rpc = rpc

    async def request_accounts(self) -> list[str]:
        accounts = await self.rpc.request("eth_requestAccounts")
        if not accounts:
            raise ProviderError("signer returned no accounts")
        return list(accounts)

    async def request_chain_id(self) -> str:
        return await self.rpc.request("eth_chainId")

    async def sign_typed_data(self, address: str, payload: str) -> str:
        return await self.rpc.request("eth_signTypedData_v4", [address, payload])

    async def resolve_reverse_name(self, address: str) -> str | None:
        # Plain JSON-RPC signers expose no reverse registry.
        return None


def _session_message(
    address: str, chain_id: str, resources: list[str], issued_at: datetime, expires_at: datetime, nonce: str
) -> str:
    lines = [
        "credwallet wants you to sign in with your Ethereum account:",
        address,
        "",
        "Give this wallet access to your credential document.",
        "",
        "Version: 1",
        f"Chain ID: {chain_id}",
        f"Nonce: {nonce}",
        f"Issued At: {issued_at.isoformat()}",
        f"Expiration Time: {expires_at.isoformat()}",
        "Resources:",
        *[f"- {r}" for r in resources],
    ]
    return "\n".join(lines)


class JsonRpcSessionAuthorizer:
    """SessionAuthorizer that has the account sign a capability message.

    The serialized session is the base64url encoded JSON of the signed
    capability (``{"p": payload, "s": signature}``).
    """

    def __init__(self, rpc: JsonRpcClient) -> None:
        self.rpc = rpc

    async def authorize(self, account_id: str, *, expires_in_secs: int, resources: list[str]) -> str:
        _, chain_id, address = account_id.split(":", 2)
        issued_at = datetime.now(timezone.utc)
        expires_at = issued_at + timedelta(seconds=expires_in_secs)
        nonce = secrets.token_hex(8)
        message = _session_message(address, chain_id, resources, issued_at, expires_at, nonce)

        signature = await self.rpc.request(
            "personal_sign", ["0x" + message.encode("utf-8").hex(), address]
        )
        capability = {
            "p": {
                "iss": f"did:pkh:{account_id}",
                "iat": issued_at.isoformat(),
                "exp": expires_at.isoformat(),
                "nonce": nonce,
                "resources": resources,
            },
            "s": signature,
        }
        raw = json.dumps(capability, separators=(",", ":")).encode("utf-8")
        return base64.urlsafe_b64encode(raw).decode("ascii").rstrip("=")
