"""EthereumEip712Signature2021 proof envelopes for credentials and presentations.

The proof skeleton (everything but ``proofValue`` and ``eip712``) is part of
the signed message. A verifier strips those two fields, rebuilds the typed
data from ``proof.eip712`` and recovers the signer from ``proofValue``.
"""

from __future__ import annotations

import copy
from datetime import datetime, timezone
from typing import Any

from credwallet.core.models import TypedDataSchema

PROOF_TYPE = "EthereumEip712Signature2021"
DEFAULT_PURPOSE = "assertionMethod"


def now_iso() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="seconds").replace("+00:00", "Z")


def verification_method(signer_did: str) -> str:
    return f"{signer_did}#controller"


def proof_skeleton(signer_did: str, created: str, purpose: str = DEFAULT_PURPOSE) -> dict[str, str]:
    """Proof fields known before signing."""
    return {
        "verificationMethod": verification_method(signer_did),
        "created": created,
        "proofPurpose": purpose,
        "type": PROOF_TYPE,
    }


def with_skeleton(
    document: dict[str, Any], signer_did: str, created: str, purpose: str = DEFAULT_PURPOSE
) -> dict[str, Any]:
    """Return a copy of *document* carrying the unsigned proof skeleton."""
    message = copy.deepcopy(document)
    message["proof"] = proof_skeleton(signer_did, created, purpose)
    return message


def attach(
    document: dict[str, Any],
    signer_did: str,
    purpose: str,
    signature: str,
    schema: TypedDataSchema,
    created: str,
) -> dict[str, Any]:
    """Return the signed artifact: *document* plus a complete proof.

    Pure function. Fields of *document* other than ``proof`` are carried over
    verbatim; the signature itself is not checked here.
    """
    signed = copy.deepcopy(document)
    proof = proof_skeleton(signer_did, created, purpose)
    proof["proofValue"] = signature
    proof["eip712"] = schema.to_eip712()
    signed["proof"] = proof
    return signed
