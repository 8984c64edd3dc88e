"""Tests for proof envelopes."""

from credwallet.crypto import proof
from credwallet.crypto.typed_data import build_schema

DID = "did:ethr:0x" + "11" * 20


class TestSkeleton:
    def test_skeleton_fields(self):
        skeleton = proof.proof_skeleton(DID, "2024-01-01T00:00:00Z")
        assert skeleton == {
            "verificationMethod": f"{DID}#controller",
            "created": "2024-01-01T00:00:00Z",
            "proofPurpose": "assertionMethod",
            "type": "EthereumEip712Signature2021",
        }

    def test_with_skeleton_copies(self):
        doc = {"a": {"b": 1}, "proof": {"old": True}}
        message = proof.with_skeleton(doc, DID, "2024-01-01T00:00:00Z")
        assert doc["proof"] == {"old": True}
        assert message["proof"]["type"] == proof.PROOF_TYPE
        message["a"]["b"] = 2
        assert doc["a"]["b"] == 1

    def test_now_iso_is_utc(self):
        assert proof.now_iso().endswith("Z")


class TestAttach:
    def test_attach_adds_complete_proof(self):
        doc = {"issuer": DID, "credentialSubject": {"id": "did:example:1"}}
        schema = build_schema(doc, "VerifiableCredential")
        signed = proof.attach(doc, DID, "assertionMethod", "0xsig", schema, "2024-01-01T00:00:00Z")

        assert signed["issuer"] == DID
        assert signed["credentialSubject"] == {"id": "did:example:1"}
        assert signed["proof"]["proofValue"] == "0xsig"
        assert signed["proof"]["verificationMethod"] == f"{DID}#controller"
        assert signed["proof"]["eip712"] == schema.to_eip712()
        assert "proof" not in doc

    def test_attach_replaces_existing_proof(self):
        doc = {"issuer": DID, "proof": {"type": "JwtProof2020", "jwt": "a.b.c"}}
        schema = build_schema({"issuer": DID}, "VerifiableCredential")
        signed = proof.attach(doc, DID, "authentication", "0xsig", schema, "2024-01-01T00:00:00Z")
        assert "jwt" not in signed["proof"]
        assert signed["proof"]["proofPurpose"] == "authentication"
