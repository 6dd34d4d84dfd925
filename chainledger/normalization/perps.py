"""Perpetual-futures classification for trade fills and funding payments.

Fills are tagged open/close without running position state: the source
does not maintain per-market position size, so a fill with realized P&L
(or a liquidation) is taken to close a position and anything else to open
one. This is a known approximation and such records are marked
``inferred_position`` for review.
"""

import logging
from collections.abc import Iterable

from chainledger.models.enums import AmbiguityReason, Derivation, PerpsTag
from chainledger.models.raw import FundingPayment, PerpsFill
from chainledger.models.transaction import PerpsTransaction
from chainledger.normalization.amounts import parse_amount
from chainledger.normalization.hint_tables import PERPS_HINTS, PerpsHintRule, normalize_hint

logger = logging.getLogger(__name__)

_QUOTE_SEPARATORS = ("-", "/", "_")


def market_asset(market: str) -> str:
    """Base asset of a market symbol: "BTC-USD" -> "BTC", "ETH/USDC" -> "ETH"."""
    market = (market or "").strip()
    for separator in _QUOTE_SEPARATORS:
        if separator in market:
            return market.split(separator, 1)[0].upper()
    return market.upper()


class PerpsClassifier:
    def __init__(self, source: str, hints: dict[str, PerpsHintRule] | None = None):
        self.source = source
        self.hints = PERPS_HINTS if hints is None else hints

    def classify_fill(self, fill: PerpsFill) -> PerpsTransaction:
        flags: list[AmbiguityReason] = []
        size = self._amount(fill.size, flags)
        fee = abs(self._amount(fill.fee, flags))
        pnl = self._amount(fill.realized_pnl, flags)

        rule = self.hints.get(normalize_hint(fill.hint)) if fill.hint else None
        if fill.hint and rule is None:
            flags.append(AmbiguityReason.UNKNOWN_HINT)

        is_liquidation = fill.is_liquidation or (rule is not None and rule.is_liquidation)
        marker = ""
        if rule is not None:
            tag = rule.tag
            derivation = Derivation.OBSERVED
            marker = rule.note if rule.is_liquidation else ("LIQUIDATION" if is_liquidation else "")
        elif is_liquidation:
            tag = PerpsTag.CLOSE_POSITION
            derivation = Derivation.OBSERVED
            marker = "LIQUIDATION"
        elif pnl != 0:
            tag = PerpsTag.CLOSE_POSITION
            derivation = Derivation.INFERRED_POSITION
        else:
            tag = PerpsTag.OPEN_POSITION
            derivation = Derivation.INFERRED_POSITION

        parts = [f"{fill.side.upper()} {fill.market}".strip()]
        if fill.price is not None:
            price, defaulted = parse_amount(fill.price)
            if not defaulted:
                parts.append(f"@ {price:.2f}")
        if marker:
            parts.append(marker)

        return PerpsTransaction(
            id=f"{self.source}:{fill.fill_id}",
            timestamp=fill.timestamp,
            asset=market_asset(fill.market),
            amount=abs(size),
            fee=fee,
            pnl=pnl,
            payment_token=fill.payment_token or "USDC",
            notes=" | ".join(parts),
            transaction_hash=fill.transaction_hash or fill.fill_id,
            tag=tag,
            is_liquidation=is_liquidation,
            derivation=derivation,
            data_flags=tuple(dict.fromkeys(flags)),
        )

    def classify_funding(self, payment: FundingPayment) -> PerpsTransaction:
        flags: list[AmbiguityReason] = []
        amount = self._amount(payment.payment, flags)
        position = self._amount(payment.position_size, flags)

        notes = [f"Funding {payment.market}"]
        if payment.rate is not None:
            rate, defaulted = parse_amount(payment.rate)
            if not defaulted:
                notes.append(f"Rate: {rate * 100:+.6f}%")
        notes.append(f"Position: {position}")

        funding_id = f"funding-{payment.market}-{payment.payment_id}"
        return PerpsTransaction(
            id=f"{self.source}:{funding_id}",
            timestamp=payment.timestamp,
            asset=market_asset(payment.market),
            amount=abs(position),
            pnl=amount,
            payment_token=payment.payment_token or "USDC",
            notes=" | ".join(notes),
            transaction_hash=funding_id,
            tag=PerpsTag.FUNDING_PAYMENT,
            data_flags=tuple(dict.fromkeys(flags)),
        )

    def classify_all(
        self,
        fills: Iterable[PerpsFill] = (),
        funding: Iterable[FundingPayment] = (),
    ) -> list[PerpsTransaction]:
        transactions = [self.classify_fill(fill) for fill in fills]
        transactions.extend(self.classify_funding(payment) for payment in funding)
        logger.debug("Classified %d perps records for %s", len(transactions), self.source)
        return transactions

    @staticmethod
    def _amount(raw: object, flags: list[AmbiguityReason]):
        amount, defaulted = parse_amount(raw)
        if defaulted:
            flags.append(AmbiguityReason.DEFAULTED_AMOUNT)
        return amount
