"""Tests for ledger summaries and the text report."""

from decimal import Decimal

from chainledger.models.enums import AmbiguityReason, ErrorKind, ExportStatus, PerpsTag, TaxTag, TransactionType
from chainledger.models.reports import CategoryOutcome, ExportError, ExportResult
from chainledger.reports.summary import SummaryReportGenerator, summarize_ledger, summarize_perps
from conftest import make_perps, make_tx, ts


def ledger():
    return [
        make_tx("a", ts(1), TransactionType.TRANSFER_SENT, TaxTag.PAYMENT,
                sent_amount=Decimal("10"), sent_currency="KAS", fee_amount=Decimal("0.5")),
        make_tx("b", ts(2), received_amount=Decimal("5"), received_currency="KAS",
                ambiguous_reasons=(AmbiguityReason.AMOUNT_OUTLIER,)),
        make_tx("c", ts(3), received_amount=Decimal("1"), received_currency="KAS"),
    ]


class TestSummaries:
    def test_summarize_ledger(self):
        summary = summarize_ledger(ledger())
        assert summary.total_transactions == 3
        assert summary.counts_by_type == {"transfer_received": 2, "transfer_sent": 1}
        assert summary.counts_by_tag == {"payment": 1, "receive": 2}
        assert summary.fee_totals == {"KAS": Decimal("0.5")}
        assert summary.total_sent == {"KAS": Decimal("10")}
        assert summary.total_received == {"KAS": Decimal("6")}
        assert summary.ambiguous_count == 1

    def test_summarize_empty(self):
        assert summarize_ledger([]).total_transactions == 0

    def test_summarize_perps(self):
        txs = [
            make_perps("o", ts(1), pnl="0", tag=PerpsTag.OPEN_POSITION, fee=Decimal("1")),
            make_perps("c", ts(2), pnl="4"),
            make_perps("f", ts(3), pnl="-0.5", tag=PerpsTag.FUNDING_PAYMENT),
        ]
        summary = summarize_perps(txs)
        assert (summary.total_trades, summary.open_positions, summary.close_positions) == (2, 1, 1)
        assert summary.funding_payments == 1
        assert summary.total_pnl == Decimal("3.5")
        assert summary.total_fees == Decimal("1")


class TestSummaryReportGenerator:
    def test_render_complete(self):
        txs = ledger()
        result = ExportResult(
            source="kaspa", wallet="kaspa:qr1", status=ExportStatus.COMPLETE,
            transactions=txs, summary=summarize_ledger(txs),
            categories=[CategoryOutcome(category="transactions", fetched=3, emitted=3)],
        )
        text = SummaryReportGenerator().render(result)
        assert "LEDGER SUMMARY: kaspa kaspa:qr1" in text
        assert "Status: COMPLETE" in text
        assert "Transactions: 3" in text
        assert "Needs review: 1" in text
        assert "b: amount_outlier" in text

    def test_render_failed(self):
        result = ExportResult(
            source="xrpl", wallet="rXYZ", status=ExportStatus.FAILED,
            error=ExportError(kind=ErrorKind.NOT_FOUND, message="No XRP Ledger data", hint="activate it"),
            categories=[CategoryOutcome(category="transactions", error=ErrorKind.NOT_FOUND, detail="404")],
        )
        text = SummaryReportGenerator().render(result)
        assert "Error (not_found): No XRP Ledger data" in text
        assert "Hint: activate it" in text
        assert "[not_found] 404" in text

    def test_render_perps(self):
        perps = [make_perps("c", ts(2), pnl="4")]
        result = ExportResult(
            source="dydx", wallet="dydx1", status=ExportStatus.COMPLETE,
            perps_transactions=perps, perps_summary=summarize_perps(perps),
        )
        text = SummaryReportGenerator().render(result)
        assert "Perps trades: 1 (0 open, 1 close)" in text
        assert "Total P&L: 4" in text
        assert "Transactions:" not in text
