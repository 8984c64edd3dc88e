"""Tests for settings validation."""

import pytest
from pydantic import ValidationError

from credwallet.config import Settings


class TestConfigValidators:
    def test_defaults(self, monkeypatch):
        monkeypatch.delenv("CW_CONSENT_POLICY", raising=False)
        monkeypatch.delenv("CW_SESSION_TTL_DAYS", raising=False)
        s = Settings()
        assert s.consent_policy == "deny"
        assert s.remote_alias == "StoredCredentials"
        assert s.session_ttl_secs == 7 * 24 * 60 * 60

    def test_env_prefix(self, monkeypatch):
        monkeypatch.setenv("CW_REMOTE_URL", "https://docs.example")
        monkeypatch.setenv("CW_SESSION_TTL_DAYS", "2")
        s = Settings()
        assert s.remote_url == "https://docs.example"
        assert s.session_ttl_secs == 2 * 24 * 60 * 60

    def test_consent_policy_normalized(self):
        assert Settings(consent_policy="ALLOW").consent_policy == "allow"

    def test_invalid_consent_policy(self):
        with pytest.raises(ValidationError, match="CW_CONSENT_POLICY"):
            Settings(consent_policy="sometimes")

    def test_invalid_log_format(self):
        with pytest.raises(ValidationError, match="CW_LOG_FORMAT"):
            Settings(log_format="yaml")

    def test_invalid_log_level(self):
        with pytest.raises(ValidationError, match="CW_LOG_LEVEL"):
            Settings(log_level="SUPERVERBOSE")

    def test_state_key_wrong_length(self):
        with pytest.raises(ValidationError, match="64 hex"):
            Settings(state_key="abcdef")

    def test_state_key_not_hex(self):
        with pytest.raises(ValidationError, match="hexadecimal"):
            Settings(state_key="zz" * 32)

    def test_state_key_bytes(self):
        s = Settings(state_key="aa" * 32)
        assert s.state_key_bytes == b"\xaa" * 32
        assert Settings(state_key=None).state_key_bytes is None

    def test_invalid_port(self):
        with pytest.raises(ValidationError):
            Settings(port=0)
