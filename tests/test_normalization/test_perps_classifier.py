"""Tests for perpetual-futures classification."""

from decimal import Decimal

from chainledger.models.enums import AmbiguityReason, Derivation, PerpsTag
from chainledger.models.raw import FundingPayment, PerpsFill
from chainledger.normalization.perps import PerpsClassifier, market_asset
from conftest import ts


def fill(**kwargs) -> PerpsFill:
    values = {"fill_id": "f1", "timestamp": ts(4), "market": "ETH-USD", "size": "2"}
    values.update(kwargs)
    return PerpsFill(**values)


class TestMarketAsset:
    def test_separators(self):
        assert market_asset("BTC-USD") == "BTC"
        assert market_asset("eth/usdc") == "ETH"
        assert market_asset("SOL_PERP") == "SOL"
        assert market_asset("DOGE") == "DOGE"


class TestPerpsClassifier:
    def test_zero_pnl_opens(self, open_fill):
        tx = PerpsClassifier("dydx").classify_fill(open_fill)
        assert tx.tag == PerpsTag.OPEN_POSITION
        assert tx.pnl == Decimal("0")
        assert tx.derivation == Derivation.INFERRED_POSITION
        assert tx.id == "dydx:fill-1"
        assert tx.transaction_hash == "fill-1"
        assert tx.asset == "BTC"
        assert tx.amount == Decimal("0.5")
        assert tx.fee == Decimal("1.25")
        assert tx.notes == "BUY BTC-USD | @ 65000.00"

    def test_realized_pnl_closes(self):
        tx = PerpsClassifier("dydx").classify_fill(fill(realized_pnl="-3.2"))
        assert tx.tag == PerpsTag.CLOSE_POSITION
        assert tx.pnl == Decimal("-3.2")
        assert tx.derivation == Derivation.INFERRED_POSITION

    def test_negative_size_and_fee_made_absolute(self):
        tx = PerpsClassifier("dydx").classify_fill(fill(size="-1.5", fee="-0.3"))
        assert tx.amount == Decimal("1.5")
        assert tx.fee == Decimal("0.3")

    def test_liquidation_flag(self):
        tx = PerpsClassifier("dydx").classify_fill(fill(is_liquidation=True, side="sell"))
        assert tx.tag == PerpsTag.CLOSE_POSITION
        assert tx.is_liquidation
        assert tx.derivation == Derivation.OBSERVED
        assert tx.notes == "SELL ETH-USD | LIQUIDATION"

    def test_liquidation_hint(self):
        tx = PerpsClassifier("gmx").classify_fill(fill(hint="PositionLiquidated", realized_pnl="-50"))
        assert tx.tag == PerpsTag.CLOSE_POSITION
        assert tx.is_liquidation
        assert "LIQUIDATION" in tx.notes

    def test_deleverage_hint(self):
        tx = PerpsClassifier("dydx").classify_fill(fill(hint="DELEVERAGED"))
        assert tx.is_liquidation
        assert tx.notes.endswith("DELEVERAGED")

    def test_known_hint_is_observed(self):
        tx = PerpsClassifier("gmx").classify_fill(fill(hint="PositionIncrease"))
        assert tx.tag == PerpsTag.OPEN_POSITION
        assert tx.derivation == Derivation.OBSERVED

    def test_unknown_hint_flagged(self):
        tx = PerpsClassifier("gmx").classify_fill(fill(hint="Mystery"))
        assert AmbiguityReason.UNKNOWN_HINT in tx.data_flags
        assert tx.tag == PerpsTag.OPEN_POSITION

    def test_malformed_size_defaulted(self):
        tx = PerpsClassifier("dydx").classify_fill(fill(size=None))
        assert tx.amount == Decimal("0")
        assert AmbiguityReason.DEFAULTED_AMOUNT in tx.data_flags

    def test_transaction_hash_preferred(self):
        tx = PerpsClassifier("dydx").classify_fill(fill(transaction_hash="0xabc"))
        assert tx.transaction_hash == "0xabc"

    def test_funding_payment(self):
        payment = FundingPayment(
            payment_id="p7", timestamp=ts(5), market="BTC-USD",
            payment="-0.42", position_size="-0.5", rate="0.0001",
        )
        tx = PerpsClassifier("dydx").classify_funding(payment)
        assert tx.id == "dydx:funding-BTC-USD-p7"
        assert tx.transaction_hash == "funding-BTC-USD-p7"
        assert tx.tag == PerpsTag.FUNDING_PAYMENT
        assert tx.pnl == Decimal("-0.42")
        assert tx.amount == Decimal("0.5")
        assert tx.notes == "Funding BTC-USD | Rate: +0.010000% | Position: -0.5"

    def test_classify_all(self, open_fill):
        payment = FundingPayment("p1", ts(5), "BTC-USD", "1")
        txs = PerpsClassifier("dydx").classify_all([open_fill], [payment])
        assert [tx.tag for tx in txs] == [PerpsTag.OPEN_POSITION, PerpsTag.FUNDING_PAYMENT]
