"""chainledger: transaction normalization and reconciliation for blockchain wallets."""

__version__ = "0.1.0"
