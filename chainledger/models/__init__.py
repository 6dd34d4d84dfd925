"""Data models for chainledger."""

from chainledger.models.enums import (
    AccountingMode,
    AmbiguityReason,
    Derivation,
    EntryKind,
    ErrorKind,
    ExportStatus,
    HintDomain,
    PerpsTag,
    TaxTag,
    TransactionType,
)
from chainledger.models.raw import (
    AccountEntry,
    AssetDelta,
    BalanceSnapshot,
    FundingPayment,
    Participant,
    PerpsFill,
    RawLedgerEntry,
    StakeActivity,
    UtxoEntry,
)
from chainledger.models.reports import (
    CategoryOutcome,
    ExportError,
    ExportResult,
    LedgerRow,
    LedgerSummary,
    PerpsRow,
    PerpsSummary,
)
from chainledger.models.transaction import CanonicalTransaction, PerpsTransaction

__all__ = [
    "AccountEntry",
    "AccountingMode",
    "AmbiguityReason",
    "AssetDelta",
    "BalanceSnapshot",
    "CanonicalTransaction",
    "CategoryOutcome",
    "Derivation",
    "EntryKind",
    "ErrorKind",
    "ExportError",
    "ExportResult",
    "ExportStatus",
    "FundingPayment",
    "HintDomain",
    "LedgerRow",
    "LedgerSummary",
    "Participant",
    "PerpsFill",
    "PerpsRow",
    "PerpsSummary",
    "PerpsTag",
    "PerpsTransaction",
    "RawLedgerEntry",
    "StakeActivity",
    "TaxTag",
    "TransactionType",
    "UtxoEntry",
]
