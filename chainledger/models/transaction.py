"""Canonical ledger records."""

from datetime import UTC, datetime
from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field, computed_field, field_validator, model_validator

from chainledger.models.enums import AmbiguityReason, Derivation, PerpsTag, TaxTag, TransactionType


def to_utc_millis(value: datetime) -> datetime:
    """Normalize a datetime to aware UTC with millisecond precision."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=UTC)
    else:
        value = value.astimezone(UTC)
    return value.replace(microsecond=(value.microsecond // 1000) * 1000)


class CanonicalTransaction(BaseModel):
    """One economically meaningful event for one wallet."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(min_length=1)
    timestamp: datetime
    type: TransactionType
    tag: TaxTag
    sent_amount: Decimal | None = None
    sent_currency: str | None = None
    received_amount: Decimal | None = None
    received_currency: str | None = None
    fee_amount: Decimal = Field(default=Decimal("0"), ge=0)
    fee_currency: str = ""
    transaction_hash: str = ""
    counterparty_hint: str = ""
    notes: str = ""
    fiat_price: Decimal | None = None
    fiat_currency: str | None = None
    derivation: Derivation = Derivation.OBSERVED
    data_flags: tuple[AmbiguityReason, ...] = ()
    ambiguous_reasons: tuple[AmbiguityReason, ...] = ()

    @field_validator("timestamp")
    @classmethod
    def _normalize_timestamp(cls, value: datetime) -> datetime:
        return to_utc_millis(value)

    @model_validator(mode="after")
    def _check_sides(self) -> "CanonicalTransaction":
        if self.sent_amount is None and self.received_amount is None:
            raise ValueError("sent_amount and received_amount cannot both be null")
        return self

    @computed_field
    @property
    def is_ambiguous(self) -> bool:
        return len(self.ambiguous_reasons) > 0

    @property
    def has_value(self) -> bool:
        return bool(self.sent_amount) or bool(self.received_amount)

    @property
    def is_void(self) -> bool:
        """True when the record moves nothing, charges nothing and carries no data flag."""
        return not self.has_value and self.fee_amount == 0 and not self.data_flags

    @property
    def is_two_sided(self) -> bool:
        return bool(self.sent_amount) and bool(self.received_amount)

    @property
    def gross_amount(self) -> Decimal:
        return abs(self.sent_amount or Decimal("0")) + abs(self.received_amount or Decimal("0"))


class PerpsTransaction(BaseModel):
    """A perpetual-futures fill or funding payment."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(min_length=1)
    timestamp: datetime
    asset: str
    amount: Decimal = Field(ge=0)
    fee: Decimal = Field(default=Decimal("0"), ge=0)
    pnl: Decimal = Decimal("0")
    payment_token: str = "USDC"
    notes: str = ""
    transaction_hash: str = ""
    tag: PerpsTag
    is_liquidation: bool = False
    derivation: Derivation = Derivation.OBSERVED
    data_flags: tuple[AmbiguityReason, ...] = ()
    ambiguous_reasons: tuple[AmbiguityReason, ...] = ()

    @field_validator("timestamp")
    @classmethod
    def _normalize_timestamp(cls, value: datetime) -> datetime:
        return to_utc_millis(value)

    @computed_field
    @property
    def is_ambiguous(self) -> bool:
        return len(self.ambiguous_reasons) > 0
