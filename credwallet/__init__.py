"""credwallet: Verifiable Credential storage and EIP-712 signing for a holder wallet."""

__version__ = "0.1.0"
