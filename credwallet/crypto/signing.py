"""EIP-712 signing of credentials and presentations with the holder's account.

Flow per call: resolve the issuer (or holder) identifier, check that the
active account controls it, bind the active chain id into the domain, derive
the typed data over the full document (proof skeleton included), make exactly
one ``signTypedData`` request, then attach the proof envelope. Credentials
can optionally be saved afterwards through the router.
"""

from __future__ import annotations

import logging
from typing import Any

from credwallet.core.credentials import make_entry
from credwallet.core.models import SigningRequest
from credwallet.crypto import proof
from credwallet.crypto.typed_data import build_payload, build_schema
from credwallet.exceptions import (
    CredWalletError,
    ProviderError,
    ValidationError,
    WrongHolderError,
    WrongIssuerError,
)
from credwallet.providers import AccountProvider
from credwallet.storage.router import CredentialRouter

logger = logging.getLogger("credwallet.crypto.signing")

CREDENTIAL_TYPE = "VerifiableCredential"
PRESENTATION_TYPE = "VerifiablePresentation"


def resolve_issuer(credential: dict[str, Any]) -> str:
    """Issuer identifier from the string or ``{"id": ...}`` form."""
    issuer = credential.get("issuer")
    if isinstance(issuer, dict):
        issuer = issuer.get("id")
    if not isinstance(issuer, str) or not issuer:
        raise ValidationError("invalid_argument: input.minimalUnsignedCredential.issuer")
    return issuer


def resolve_holder(presentation: dict[str, Any]) -> str:
    holder = presentation.get("holder")
    if not isinstance(holder, str) or not holder:
        raise ValidationError("invalid_argument: input.presentation.holder")
    return holder


class SigningPipeline:
    """Produces EthereumEip712Signature2021 credentials and presentations."""

    def __init__(self, accounts: AccountProvider, router: CredentialRouter | None = None) -> None:
        self.accounts = accounts
        self.router = router

    async def _signer(self) -> str:
        addresses = await self.accounts.request_accounts()
        if not addresses:
            raise ProviderError("No account available for signing")
        return addresses[0]

    async def _controls(self, identifier: str, address: str) -> bool:
        """True when *address*, or its reverse-resolved name, appears in *identifier*."""
        target = identifier.lower()
        if address.lower() in target:
            return True
        name = await self.accounts.resolve_reverse_name(address)
        return bool(name) and name.lower() in target

    async def _sign(
        self,
        document: dict[str, Any],
        identifier: str,
        primary_type: str,
        mismatch: type[CredWalletError],
    ) -> dict[str, Any]:
        address = await self._signer()
        if not await self._controls(identifier, address):
            raise mismatch()

        chain_id = int(await self.accounts.request_chain_id(), 16)
        request = SigningRequest(document=document, signer_address=address, chain_id=chain_id)

        created = request.document.get("issuanceDate") or proof.now_iso()
        message = proof.with_skeleton(request.document, identifier, created)
        schema = build_schema(message, primary_type, chain_id=request.chain_id)
        payload = build_payload(schema, message)

        signature = await self.accounts.sign_typed_data(request.signer_address, payload)
        logger.info("Signed %s", primary_type, extra={"holder": identifier})
        return proof.attach(
            request.document, identifier, proof.DEFAULT_PURPOSE, signature, schema, created
        )

    async def sign_credential(
        self,
        credential: dict[str, Any],
        *,
        save: bool = False,
        store: Any = None,
    ) -> dict[str, Any]:
        """Sign *credential* as its issuer; optionally save the result."""
        issuer = resolve_issuer(credential)
        signed = await self._sign(credential, issuer, CREDENTIAL_TYPE, WrongIssuerError)

        if save:
            if self.router is None:
                raise CredWalletError("No credential router configured for saving")
            await self.router.save(make_entry(signed), store)
        return signed

    async def sign_presentation(self, presentation: dict[str, Any]) -> dict[str, Any]:
        """Sign *presentation* as its holder."""
        holder = resolve_holder(presentation)
        return await self._sign(presentation, holder, PRESENTATION_TYPE, WrongHolderError)
