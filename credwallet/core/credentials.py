"""Credential normalization and content addressing.

A credential arrives either as a JSON Verifiable Credential or as a VC-JWT.
JWTs are decoded (without signature verification, which belongs to the
verifier) and expanded into the JSON form carrying a ``JwtProof2020`` proof
with the token itself, so a token and its expanded form share a content id.
"""

from __future__ import annotations

import copy
from datetime import datetime, timezone
from typing import Any

import jwt

from credwallet.core.models import CredentialEntry, canonical_json, sha256_hex
from credwallet.exceptions import ValidationError

JWT_PROOF_TYPE = "JwtProof2020"

_INVALID_CREDENTIAL = "invalid_argument: input.verifiableCredential"


def _timestamp_to_iso(value: int | float) -> str:
    dt = datetime.fromtimestamp(int(value), tz=timezone.utc)
    return dt.isoformat().replace("+00:00", "Z")


def is_jwt(value: Any) -> bool:
    return isinstance(value, str) and value.count(".") == 2 and all(value.split("."))


def decode_jwt_credential(token: str) -> dict[str, Any]:
    """Expand a VC-JWT into its JSON credential form."""
    try:
        payload = jwt.decode(token, options={"verify_signature": False})
    except jwt.PyJWTError as exc:
        raise ValidationError(_INVALID_CREDENTIAL) from exc

    vc = payload.get("vc")
    if not isinstance(vc, dict):
        raise ValidationError(_INVALID_CREDENTIAL)

    credential = copy.deepcopy(vc)

    if "iss" in payload:
        # Expanded issuers are always in object form.
        issuer = credential.get("issuer")
        extra = issuer if isinstance(issuer, dict) else {}
        credential["issuer"] = {**extra, "id": payload["iss"]}

    if "sub" in payload:
        subject = credential.get("credentialSubject")
        if isinstance(subject, dict) and "id" not in subject:
            credential["credentialSubject"] = {**subject, "id": payload["sub"]}

    if "jti" in payload and "id" not in credential:
        credential["id"] = payload["jti"]
    if "nbf" in payload and "issuanceDate" not in credential:
        credential["issuanceDate"] = _timestamp_to_iso(payload["nbf"])
    if "exp" in payload and "expirationDate" not in credential:
        credential["expirationDate"] = _timestamp_to_iso(payload["exp"])

    credential["proof"] = {"type": JWT_PROOF_TYPE, "jwt": token}
    return credential


def normalize_credential(value: Any) -> dict[str, Any]:
    """Return the JSON form of *value* (VC object or VC-JWT string)."""
    if isinstance(value, str):
        if not is_jwt(value):
            raise ValidationError(_INVALID_CREDENTIAL)
        return decode_jwt_credential(value)
    if isinstance(value, dict) and value:
        return copy.deepcopy(value)
    raise ValidationError(_INVALID_CREDENTIAL)


def credential_id(data: dict[str, Any]) -> str:
    """Content id: SHA-256 over the canonical JSON of the normalized credential."""
    return sha256_hex(canonical_json(data))


def make_entry(value: Any) -> CredentialEntry:
    data = normalize_credential(value)
    return CredentialEntry(id=credential_id(data), data=data)
