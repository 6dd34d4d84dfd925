"""Custom exceptions for chainledger."""

from chainledger.models.enums import ErrorKind


class LedgerError(Exception):
    """Base exception for ledger reconciliation errors."""


class FetchError(LedgerError):
    """Raised by source adapters and the fetch orchestrator."""

    kind: ErrorKind = ErrorKind.TRANSIENT

    def __init__(self, message: str):
        super().__init__(message)


class NotFoundError(FetchError):
    """The source has no data for the wallet. Terminal, never retried."""

    kind = ErrorKind.NOT_FOUND


class RateLimitedError(FetchError):
    """The source rejected the request because its rate budget is exhausted."""

    kind = ErrorKind.RATE_LIMITED

    def __init__(self, message: str, retry_after: float | None = None):
        self.retry_after = retry_after
        super().__init__(message)


class TransientFetchError(FetchError):
    """Network or 5xx failure. Retried with backoff up to a fixed ceiling."""

    kind = ErrorKind.TRANSIENT


class DataAnomalyError(LedgerError):
    """Raised when a raw entry cannot be classified or has inconsistent amounts."""

    def __init__(self, entry_id: str, message: str):
        self.entry_id = entry_id
        super().__init__(f"Data anomaly in entry {entry_id}: {message}")


class WalletUnreachableError(LedgerError):
    """Raised when no category of a wallet export could be fetched."""

    def __init__(self, wallet: str, source: str, hint: str):
        self.wallet = wallet
        self.source = source
        self.hint = hint
        super().__init__(f"Could not reach {source} data for {wallet}: {hint}")


class UnknownSourceError(LedgerError):
    """Raised when a source name has no registered profile."""

    def __init__(self, source: str):
        self.source = source
        super().__init__(f"Unknown source: {source}")


class BundleFormatError(LedgerError):
    """Raised when a raw-record bundle file cannot be read."""

    def __init__(self, path: str, message: str):
        self.path = path
        super().__init__(f"Bundle error for {path}: {message}")
