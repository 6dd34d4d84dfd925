"""Ambiguity detector: the final, additive-only pass over a reconciled ledger.

Every rule appends a reason code; no rule changes an amount or a type, and
no record is ever dropped. Rules run in a fixed order so the reason list is
deterministic:

1. data flags recorded while computing net flow / classifying
2. derived or heuristic classification
3. liquidation / forced deleverage
4. zero-value record whose direction was assumed, not observed
5. swap with a currency that is not a resolvable symbol
6. missing fiat price while the rest of the ledger is priced
7. statistical amount outlier
"""

import logging
import re
from collections.abc import Iterable
from decimal import Decimal

from chainledger.config import EngineSettings
from chainledger.models.enums import AmbiguityReason, Derivation, PerpsTag, TransactionType
from chainledger.models.transaction import CanonicalTransaction, PerpsTransaction

logger = logging.getLogger(__name__)

_DERIVED = {
    Derivation.DERIVED_REWARD: AmbiguityReason.DERIVED_REWARD,
    Derivation.INFERRED_POSITION: AmbiguityReason.INFERRED_POSITION,
}

_ADDRESS_LIKE = re.compile(r"^0x[0-9a-fA-F]{8,}$")
_DENOM_PREFIXES = ("ibc/", "factory/", "gamm/", "erc20/", "cw20:")
_UNKNOWN_SYMBOLS = {"", "UNKNOWN", "?", "NULL", "NONE"}
_LIQUIDATION_MARKERS = ("liquidat", "deleverag")


def mean_and_stddev(values: list[Decimal]) -> tuple[Decimal, Decimal]:
    """Population mean and standard deviation."""
    if not values:
        return Decimal("0"), Decimal("0")
    count = Decimal(len(values))
    mean = sum(values, Decimal("0")) / count
    variance = sum(((v - mean) ** 2 for v in values), Decimal("0")) / count
    return mean, variance.sqrt()


def _outlier_bounds(values: list[Decimal], sigma: Decimal, min_samples: int):
    if len(values) < min_samples:
        return None
    mean, stddev = mean_and_stddev(values)
    if stddev == 0:
        return None
    return mean, sigma * stddev


def _append(reasons: list[AmbiguityReason], reason: AmbiguityReason) -> None:
    if reason not in reasons:
        reasons.append(reason)


class AmbiguityDetector:
    """Flags canonical transactions whose tax treatment rests on a heuristic."""

    def __init__(self, settings: EngineSettings | None = None):
        self.settings = settings or EngineSettings()

    def is_resolvable_symbol(self, currency: str | None) -> bool:
        symbol = (currency or "").strip()
        if symbol.upper() in _UNKNOWN_SYMBOLS:
            return False
        if _ADDRESS_LIKE.match(symbol) or symbol.lower().startswith(_DENOM_PREFIXES):
            return False
        known = self.settings.known_symbols
        return known is None or symbol.upper() in known

    def flag(self, transactions: Iterable[CanonicalTransaction]) -> list[CanonicalTransaction]:
        ledger = list(transactions)
        if not ledger:
            return []

        has_prices = any(tx.fiat_price for tx in ledger)
        bounds = _outlier_bounds(
            [tx.gross_amount for tx in ledger if tx.gross_amount > 0],
            self.settings.outlier_sigma,
            self.settings.outlier_min_samples,
        )

        flagged: list[CanonicalTransaction] = []
        count = 0
        for tx in ledger:
            reasons = self._reasons(tx, has_prices, bounds)
            if reasons == list(tx.ambiguous_reasons):
                flagged.append(tx)
                continue
            count += 1
            flagged.append(tx.model_copy(update={"ambiguous_reasons": tuple(reasons)}))

        logger.debug("Flagged %d of %d transactions as ambiguous", count, len(ledger))
        return flagged

    def _reasons(self, tx: CanonicalTransaction, has_prices: bool, bounds) -> list[AmbiguityReason]:
        reasons = list(tx.ambiguous_reasons)

        for flag in tx.data_flags:
            _append(reasons, flag)

        derived = _DERIVED.get(tx.derivation)
        if derived is not None:
            _append(reasons, derived)

        if any(marker in tx.notes.lower() for marker in _LIQUIDATION_MARKERS):
            _append(reasons, AmbiguityReason.LIQUIDATION)

        if not tx.has_value and tx.fee_amount > 0 and tx.derivation == Derivation.ASSUMED_DIRECTION:
            _append(reasons, AmbiguityReason.ZERO_VALUE_WITH_FEE)

        if tx.type == TransactionType.SWAP and not (
            self.is_resolvable_symbol(tx.sent_currency) and self.is_resolvable_symbol(tx.received_currency)
        ):
            _append(reasons, AmbiguityReason.UNRESOLVED_CURRENCY)

        if has_prices and tx.has_value and not tx.fiat_price:
            _append(reasons, AmbiguityReason.MISSING_FIAT_PRICE)

        if bounds is not None:
            mean, limit = bounds
            amount = tx.gross_amount
            if amount > 0 and abs(amount - mean) > limit:
                _append(reasons, AmbiguityReason.AMOUNT_OUTLIER)

        return reasons


class PerpsAmbiguityDetector:
    """Same contract as ``AmbiguityDetector`` for perpetual-futures records."""

    def __init__(self, settings: EngineSettings | None = None):
        self.settings = settings or EngineSettings()

    def flag(self, transactions: Iterable[PerpsTransaction]) -> list[PerpsTransaction]:
        ledger = list(transactions)
        bounds = _outlier_bounds(
            [tx.pnl for tx in ledger if tx.pnl != 0],
            self.settings.outlier_sigma,
            self.settings.outlier_min_samples,
        )

        flagged: list[PerpsTransaction] = []
        for tx in ledger:
            reasons = list(tx.ambiguous_reasons)
            for flag in tx.data_flags:
                _append(reasons, flag)
            if tx.derivation == Derivation.INFERRED_POSITION:
                _append(reasons, AmbiguityReason.INFERRED_POSITION)
            if tx.is_liquidation:
                _append(reasons, AmbiguityReason.LIQUIDATION)
            if tx.tag == PerpsTag.CLOSE_POSITION and tx.pnl == 0:
                _append(reasons, AmbiguityReason.ZERO_PNL_CLOSE)
            if bounds is not None and tx.pnl != 0:
                mean, limit = bounds
                if abs(tx.pnl - mean) > limit:
                    _append(reasons, AmbiguityReason.PNL_OUTLIER)

            if reasons == list(tx.ambiguous_reasons):
                flagged.append(tx)
            else:
                flagged.append(tx.model_copy(update={"ambiguous_reasons": tuple(reasons)}))
        return flagged
