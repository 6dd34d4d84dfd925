"""Tests for ledger and perps row formatting."""

from decimal import Decimal

from chainledger.models.enums import PerpsTag, TaxTag, TransactionType
from chainledger.reports.rows import LEDGER_COLUMNS, format_amount, ledger_row, perps_row, to_csv_dict
from conftest import make_perps, make_tx, ts


class TestFormatAmount:
    def test_trailing_zeros_dropped(self):
        assert format_amount(Decimal("1.50000000")) == "1.5"
        assert format_amount(Decimal("10")) == "10"
        assert format_amount(Decimal("0E-8")) == "0"

    def test_rounded_to_places(self):
        assert format_amount(Decimal("0.123456789")) == "0.12345679"
        assert format_amount(Decimal("2.345"), places=2) == "2.35"

    def test_no_exponent(self):
        assert format_amount(Decimal("1E+3")) == "1000"


class TestLedgerRow:
    def test_send_row(self):
        tx = make_tx(
            "kaspa:a", ts(1, hour=9), TransactionType.TRANSFER_SENT, TaxTag.PAYMENT,
            sent_amount=Decimal("10"), sent_currency="KAS",
            fee_amount=Decimal("0.5"), fiat_price=Decimal("0.1234"),
            transaction_hash="abc", notes="Transfer to someone",
        )
        row = ledger_row(tx)
        assert row.date == "03/01/2024 09:00:00"
        assert row.sent_quantity == "10"
        assert row.sent_fiat_amount == "1.23"
        assert row.received_quantity == ""
        assert row.received_fiat_amount == ""
        assert row.fee_amount == "0.5"
        assert row.fee_currency == "KAS"
        assert row.tag == "payment"

    def test_swap_values_only_priced_side(self):
        tx = make_tx(
            "osmosis:s", ts(1), TransactionType.SWAP, TaxTag.TRADE,
            sent_amount=Decimal("10"), sent_currency="OSMO",
            received_amount=Decimal("9"), received_currency="USDC",
            fiat_price=Decimal("0.5"), fiat_currency="OSMO",
        )
        row = ledger_row(tx)
        assert row.sent_fiat_amount == "5.00"
        assert row.received_fiat_amount == ""

    def test_zero_fee_blank(self):
        row = ledger_row(make_tx("a", ts(1)))
        assert row.fee_amount == ""
        assert row.fee_currency == ""

    def test_csv_dict_column_order(self):
        values = to_csv_dict(ledger_row(make_tx("a", ts(1))))
        assert list(values) == list(LEDGER_COLUMNS.values())
        assert values["Received Quantity"] == "1"


class TestPerpsRow:
    def test_signed_pnl(self):
        assert perps_row(make_perps("p", ts(1), pnl="3.5")).pnl == "+3.5"
        assert perps_row(make_perps("p", ts(1), pnl="-3.2")).pnl == "-3.2"
        assert perps_row(make_perps("p", ts(1), pnl="0", tag=PerpsTag.OPEN_POSITION)).pnl == "0"

    def test_fields(self):
        row = perps_row(make_perps("p", ts(1), pnl="1", fee=Decimal("0.25"), notes="SELL BTC-USD"))
        assert row.asset == "BTC"
        assert row.amount == "1"
        assert row.fee == "0.25"
        assert row.tag == "close_position"
        assert row.payment_token == "USDC"
