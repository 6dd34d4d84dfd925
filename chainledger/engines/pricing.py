"""Price enrichment join.

One price table per export: the caller asks ``required_date_range`` for the
UTC date span covering every transaction, fetches that history once and
joins it by calendar date. Missing days stay unpriced; interpolation is a
decision for the price source, not for the join.
"""

import logging
from collections.abc import Iterable
from datetime import date
from decimal import Decimal
from typing import Protocol

from chainledger.ingestion.cache import ExportCache, build_cache_key
from chainledger.models.transaction import CanonicalTransaction, to_utc_millis

logger = logging.getLogger(__name__)

PriceTable = dict[date, Decimal]


class PriceSource(Protocol):
    def price_history(self, start: date, end: date) -> PriceTable: ...


def required_date_range(transactions: Iterable[CanonicalTransaction]) -> tuple[date, date] | None:
    """Smallest UTC date range spanning every transaction, or None for an empty ledger."""
    days = [to_utc_millis(tx.timestamp).date() for tx in transactions]
    if not days:
        return None
    return min(days), max(days)


def _values_currency(tx: CanonicalTransaction, currency: str) -> bool:
    wanted = currency.upper()
    return any(
        amount is not None and (side or "").upper() == wanted
        for amount, side in ((tx.sent_amount, tx.sent_currency), (tx.received_amount, tx.received_currency))
    )


class PriceEnricher:
    """Attaches ``fiat_price`` by the event's UTC calendar date."""

    def enrich(
        self,
        transactions: list[CanonicalTransaction],
        table: PriceTable,
        currency: str | None = None,
    ) -> list[CanonicalTransaction]:
        """Return new records with ``fiat_price`` set where the table has the date.

        When ``currency`` is given, the table is the price of that currency:
        only records whose sent or received side is in it are priced, and the
        record keeps ``fiat_currency`` so each side is valued only in its own
        currency. A fee in that currency alone does not make a record priced.
        Records that already carry a price are left as they are.
        """
        if not table:
            return list(transactions)

        enriched: list[CanonicalTransaction] = []
        priced = 0
        for tx in transactions:
            if tx.fiat_price is not None or (currency and not _values_currency(tx, currency)):
                enriched.append(tx)
                continue
            price = table.get(to_utc_millis(tx.timestamp).date())
            if price is None:
                enriched.append(tx)
                continue
            enriched.append(tx.model_copy(update={
                "fiat_price": price,
                "fiat_currency": currency.upper() if currency else None,
            }))
            priced += 1

        logger.debug("Priced %d of %d transactions", priced, len(transactions))
        return enriched


class CachedPriceSource:
    """Wraps a price source with the export-scoped cache."""

    def __init__(self, source: PriceSource, cache: ExportCache, name: str = "prices"):
        self.source = source
        self.cache = cache
        self.name = name

    def price_history(self, start: date, end: date) -> PriceTable:
        key = build_cache_key(self.name, "", start.isoformat(), end.isoformat())
        return self.cache.get_or_load(key, lambda: dict(self.source.price_history(start, end)))


class StaticPriceSource:
    """A price source backed by an in-memory table, e.g. prices shipped in a bundle."""

    def __init__(self, table: PriceTable):
        self.table = dict(table)

    def price_history(self, start: date, end: date) -> PriceTable:
        return {day: price for day, price in self.table.items() if start <= day <= end}
