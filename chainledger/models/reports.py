"""Report and export output models."""

from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field

from chainledger.models.enums import ErrorKind, ExportStatus
from chainledger.models.transaction import CanonicalTransaction, PerpsTransaction


class LedgerSummary(BaseModel):
    total_transactions: int = 0
    counts_by_type: dict[str, int] = Field(default_factory=dict)
    counts_by_tag: dict[str, int] = Field(default_factory=dict)
    fee_totals: dict[str, Decimal] = Field(default_factory=dict)
    total_sent: dict[str, Decimal] = Field(default_factory=dict)
    total_received: dict[str, Decimal] = Field(default_factory=dict)
    ambiguous_count: int = 0


class PerpsSummary(BaseModel):
    total_trades: int = 0
    open_positions: int = 0
    close_positions: int = 0
    funding_payments: int = 0
    total_pnl: Decimal = Decimal("0")
    total_fees: Decimal = Decimal("0")
    traded_assets: list[str] = Field(default_factory=list)
    ambiguous_count: int = 0


class CategoryOutcome(BaseModel):
    """What happened to one fetch category of a wallet export."""

    category: str
    fetched: int = 0
    emitted: int = 0
    partial: bool = False
    error: ErrorKind | None = None
    detail: str = ""


class ExportError(BaseModel):
    kind: ErrorKind
    message: str
    hint: str = ""


class ExportResult(BaseModel):
    model_config = ConfigDict(arbitrary_types_allowed=True)

    source: str
    wallet: str
    status: ExportStatus
    transactions: list[CanonicalTransaction] = Field(default_factory=list)
    perps_transactions: list[PerpsTransaction] = Field(default_factory=list)
    summary: LedgerSummary = Field(default_factory=LedgerSummary)
    perps_summary: PerpsSummary | None = None
    categories: list[CategoryOutcome] = Field(default_factory=list)
    error: ExportError | None = None
    warnings: list[str] = Field(default_factory=list)

    @property
    def partial(self) -> bool:
        return self.status == ExportStatus.PARTIAL


class LedgerRow(BaseModel):
    """One row in the fixed downstream ledger CSV layout."""

    date: str
    received_quantity: str = ""
    received_currency: str = ""
    received_fiat_amount: str = ""
    sent_quantity: str = ""
    sent_currency: str = ""
    sent_fiat_amount: str = ""
    fee_amount: str = ""
    fee_currency: str = ""
    transaction_hash: str = ""
    notes: str = ""
    tag: str = ""


class PerpsRow(BaseModel):
    date: str
    asset: str
    amount: str
    fee: str
    pnl: str
    payment_token: str
    notes: str = ""
    transaction_hash: str = ""
    tag: str = ""
