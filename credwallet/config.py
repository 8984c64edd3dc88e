"""Centralized configuration for credwallet.

Uses Pydantic BaseSettings with environment variable loading and validation.
All CW_* environment variables are validated at import time.
"""

from __future__ import annotations

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Holder state
    state_path: str = Field(default="credwallet.db", description="SQLite holder-state path")
    state_key: str | None = Field(
        default=None, description="64-char hex SecretBox key for holder-state encryption"
    )
    require_encryption: bool = Field(
        default=False, description="Refuse to open holder state without state_key"
    )

    # Remote document store
    remote_url: str = Field(
        default="http://localhost:7007", description="Remote document store base URL"
    )
    remote_alias: str = Field(
        default="StoredCredentials", description="Document alias holding credentials"
    )
    remote_timeout: float = Field(default=10.0, gt=0, description="Remote request timeout (s)")

    # External signer
    signer_url: str = Field(
        default="http://localhost:8545", description="Ethereum JSON-RPC signer endpoint"
    )

    # Consent
    consent_policy: str = Field(default="deny", description="Consent policy: allow or deny")

    # Session
    session_ttl_days: int = Field(default=7, ge=1, description="Remote session validity (days)")

    # Logging
    log_format: str = Field(default="text", description="Log format: text or json")
    log_level: str = Field(default="INFO", description="Python log level")

    # Server
    host: str = Field(default="127.0.0.1", description="Server bind host")
    port: int = Field(default=8000, ge=1, le=65535, description="Server bind port")

    model_config = {"env_prefix": "CW_", "case_sensitive": False, "extra": "ignore"}

    @field_validator("consent_policy")
    @classmethod
    def validate_consent_policy(cls, v: str) -> str:
        v = v.lower()
        if v not in ("allow", "deny"):
            msg = f"CW_CONSENT_POLICY must be 'allow' or 'deny', got '{v}'"
            raise ValueError(msg)
        return v

    @field_validator("log_format")
    @classmethod
    def validate_log_format(cls, v: str) -> str:
        v = v.lower()
        if v not in ("text", "json"):
            msg = f"CW_LOG_FORMAT must be 'text' or 'json', got '{v}'"
            raise ValueError(msg)
        return v

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        import logging

        v = v.upper()
        if not hasattr(logging, v):
            msg = f"CW_LOG_LEVEL must be a valid Python log level, got '{v}'"
            raise ValueError(msg)
        return v

    @field_validator("state_key")
    @classmethod
    def validate_state_key(cls, v: str | None) -> str | None:
        if v is None:
            return v
        if len(v) != 64:
            msg = f"CW_STATE_KEY must be exactly 64 hex characters, got {len(v)}"
            raise ValueError(msg)
        try:
            bytes.fromhex(v)
        except ValueError:
            msg = "CW_STATE_KEY must be valid hexadecimal"
            raise ValueError(msg)  # noqa: B904
        return v

    @property
    def state_key_bytes(self) -> bytes | None:
        """Return the decoded holder-state key, if configured."""
        return bytes.fromhex(self.state_key) if self.state_key else None

    @property
    def session_ttl_secs(self) -> int:
        return self.session_ttl_days * 24 * 60 * 60


# Singleton, validated at import time.
settings = Settings()
