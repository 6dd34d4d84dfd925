"""Ledger rows in the fixed downstream CSV column layout.

The core's job ends at producing structurally compatible records; writing
them out is left to ``csv.DictWriter`` at the edge.
"""

from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal

from chainledger.models.reports import LedgerRow, PerpsRow
from chainledger.models.transaction import CanonicalTransaction, PerpsTransaction, to_utc_millis

LEDGER_COLUMNS: dict[str, str] = {
    "date": "Date",
    "received_quantity": "Received Quantity",
    "received_currency": "Received Currency",
    "received_fiat_amount": "Received Fiat Amount",
    "sent_quantity": "Sent Quantity",
    "sent_currency": "Sent Currency",
    "sent_fiat_amount": "Sent Fiat Amount",
    "fee_amount": "Fee Amount",
    "fee_currency": "Fee Currency",
    "transaction_hash": "Transaction Hash",
    "notes": "Notes",
    "tag": "Tag",
}

PERPS_COLUMNS: dict[str, str] = {
    "date": "Date",
    "asset": "Asset",
    "amount": "Amount",
    "fee": "Fee",
    "pnl": "P&L",
    "payment_token": "Payment Token",
    "notes": "Notes",
    "transaction_hash": "Transaction Hash",
    "tag": "Tag",
}

_CENTS = Decimal("0.01")


def format_date(value: datetime) -> str:
    """MM/DD/YYYY HH:MM:SS in UTC."""
    return to_utc_millis(value).strftime("%m/%d/%Y %H:%M:%S")


def format_amount(amount: Decimal, places: int = 8) -> str:
    """Fixed-point with at most ``places`` decimals, trailing zeros dropped."""
    text = f"{amount.quantize(Decimal(1).scaleb(-places), rounding=ROUND_HALF_UP):f}"
    if "." in text:
        text = text.rstrip("0").rstrip(".")
    return "0" if text in ("", "-0") else text


def _fiat(amount: Decimal | None, currency: str | None, tx: CanonicalTransaction) -> str:
    """Fiat value of one side; blank unless that side is in the priced currency."""
    if amount is None or not tx.fiat_price:
        return ""
    if tx.fiat_currency and (currency or "").upper() != tx.fiat_currency.upper():
        return ""
    return f"{(amount * tx.fiat_price).quantize(_CENTS, rounding=ROUND_HALF_UP):f}"


def ledger_row(tx: CanonicalTransaction) -> LedgerRow:
    has_fee = tx.fee_amount > 0
    return LedgerRow(
        date=format_date(tx.timestamp),
        received_quantity=format_amount(tx.received_amount) if tx.received_amount is not None else "",
        received_currency=tx.received_currency or "",
        received_fiat_amount=_fiat(tx.received_amount, tx.received_currency, tx),
        sent_quantity=format_amount(tx.sent_amount) if tx.sent_amount is not None else "",
        sent_currency=tx.sent_currency or "",
        sent_fiat_amount=_fiat(tx.sent_amount, tx.sent_currency, tx),
        fee_amount=format_amount(tx.fee_amount) if has_fee else "",
        fee_currency=tx.fee_currency if has_fee else "",
        transaction_hash=tx.transaction_hash,
        notes=tx.notes,
        tag=tx.tag.value,
    )


def _signed(pnl: Decimal) -> str:
    if pnl == 0:
        return "0"
    text = format_amount(pnl)
    return f"+{text}" if pnl > 0 else text


def perps_row(tx: PerpsTransaction) -> PerpsRow:
    return PerpsRow(
        date=format_date(tx.timestamp),
        asset=tx.asset,
        amount=format_amount(tx.amount),
        fee=format_amount(tx.fee) if tx.fee > 0 else "0",
        pnl=_signed(tx.pnl),
        payment_token=tx.payment_token,
        notes=tx.notes,
        transaction_hash=tx.transaction_hash,
        tag=tx.tag.value,
    )


def to_csv_dict(row: LedgerRow | PerpsRow) -> dict[str, str]:
    """Row keyed by the downstream column headers, in column order."""
    columns = PERPS_COLUMNS if isinstance(row, PerpsRow) else LEDGER_COLUMNS
    values = row.model_dump()
    return {header: values[field] for field, header in columns.items()}
