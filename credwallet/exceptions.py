"""Custom exception hierarchy for credwallet.

Every error carries an ``error_type`` tag. The RPC layer turns these into
tagged error results (``{"success": false, "error": "Error: <message>"}``)
instead of letting them escape to the host.
"""

from __future__ import annotations


class CredWalletError(Exception):
    """Base exception for all credwallet errors."""

    error_type: str = "internal_error"

    def __init__(self, message: str = "An internal error occurred") -> None:
        self.message = message
        super().__init__(message)


class ValidationError(CredWalletError):
    """Malformed or missing request input. Raised before any I/O."""

    error_type = "validation_error"


class StateNotInitializedError(CredWalletError):
    """Holder state was read before it was initialized."""

    error_type = "state_not_initialized"

    def __init__(self, message: str = "Holder state is not initialized!") -> None:
        super().__init__(message)


class StoreNotEnabledError(CredWalletError):
    """A requested credential store is unknown or disabled."""

    error_type = "store_not_enabled"

    def __init__(self, store: object) -> None:
        self.store = store
        super().__init__(f"Store {store} is not enabled!")


class WrongIssuerError(CredWalletError):
    """The signing account does not match the credential issuer."""

    error_type = "wrong_issuer"

    def __init__(self, message: str = "Invalid Issuer") -> None:
        super().__init__(message)


class WrongHolderError(CredWalletError):
    """The signing account does not match the presentation holder."""

    error_type = "wrong_holder"

    def __init__(self, message: str = "Wrong holder") -> None:
        super().__init__(message)


class SessionDeniedError(CredWalletError):
    """The user refused to authorize a remote-store session."""

    error_type = "session_denied"

    def __init__(self, message: str = "User failed to sign session.") -> None:
        super().__init__(message)


class RemoteStoreError(CredWalletError):
    """Network or authorization failure from the remote document store."""

    error_type = "remote_store_error"


class SchemaDerivationError(CredWalletError):
    """Document shape cannot be expressed as EIP-712 typed data."""

    error_type = "schema_derivation_error"


class UserRejectedError(CredWalletError):
    """The user declined a consent prompt (save, delete, sign)."""

    error_type = "user_rejected"


class ProviderError(CredWalletError):
    """The external signer or account provider failed to answer."""

    error_type = "provider_error"
