"""Wallet-level summaries: a pure reduction over the ledger, plus a text rendering."""

from collections import Counter, defaultdict
from decimal import Decimal
from pathlib import Path

from jinja2 import Environment, FileSystemLoader

from chainledger.models.enums import PerpsTag
from chainledger.models.reports import ExportResult, LedgerSummary, PerpsSummary
from chainledger.models.transaction import CanonicalTransaction, PerpsTransaction
from chainledger.reports.rows import format_amount

TEMPLATE_DIR = Path(__file__).parent / "templates"


def summarize_ledger(transactions: list[CanonicalTransaction]) -> LedgerSummary:
    fees: dict[str, Decimal] = defaultdict(Decimal)
    sent: dict[str, Decimal] = defaultdict(Decimal)
    received: dict[str, Decimal] = defaultdict(Decimal)
    for tx in transactions:
        if tx.fee_amount > 0:
            fees[tx.fee_currency] += tx.fee_amount
        if tx.sent_amount and tx.sent_currency:
            sent[tx.sent_currency] += tx.sent_amount
        if tx.received_amount and tx.received_currency:
            received[tx.received_currency] += tx.received_amount

    return LedgerSummary(
        total_transactions=len(transactions),
        counts_by_type=dict(sorted(Counter(tx.type.value for tx in transactions).items())),
        counts_by_tag=dict(sorted(Counter(tx.tag.value for tx in transactions).items())),
        fee_totals=dict(sorted(fees.items())),
        total_sent=dict(sorted(sent.items())),
        total_received=dict(sorted(received.items())),
        ambiguous_count=sum(1 for tx in transactions if tx.is_ambiguous),
    )


def summarize_perps(transactions: list[PerpsTransaction]) -> PerpsSummary:
    summary = PerpsSummary()
    assets: set[str] = set()
    for tx in transactions:
        summary.total_pnl += tx.pnl
        summary.total_fees += tx.fee
        assets.add(tx.asset)
        if tx.tag == PerpsTag.OPEN_POSITION:
            summary.total_trades += 1
            summary.open_positions += 1
        elif tx.tag == PerpsTag.CLOSE_POSITION:
            summary.total_trades += 1
            summary.close_positions += 1
        else:
            summary.funding_payments += 1
        if tx.is_ambiguous:
            summary.ambiguous_count += 1
    summary.traded_assets = sorted(assets)
    return summary


class SummaryReportGenerator:
    """Renders an export result as a plain-text summary."""

    def __init__(self) -> None:
        self.env = Environment(loader=FileSystemLoader(str(TEMPLATE_DIR)), trim_blocks=True, lstrip_blocks=True)
        self.env.filters["amount"] = format_amount

    def render(self, result: ExportResult) -> str:
        template = self.env.get_template("ledger_summary.txt")
        ambiguous = [tx for tx in result.transactions if tx.is_ambiguous]
        ambiguous += [tx for tx in result.perps_transactions if tx.is_ambiguous]
        return template.render(result=result, ambiguous=ambiguous)
