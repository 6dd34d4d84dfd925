"""Deduplicate & merge-sort reconciler.

Combines per-category streams (transfers, rewards, slashes, staking calls,
crowdloan events, ...) into one ordered ledger. Streams are passed from most
to least authoritative: when two categories report the same event, the
first one wins.
"""

import logging
from collections.abc import Iterable, Sequence
from typing import Protocol, TypeVar

from chainledger.models.transaction import to_utc_millis

logger = logging.getLogger(__name__)


class _Record(Protocol):
    @property
    def id(self) -> str: ...

    @property
    def timestamp(self): ...


R = TypeVar("R", bound=_Record)


def _sort_key(record: _Record):
    return (to_utc_millis(record.timestamp), record.id)


def merge_and_sort(*streams: Iterable[R]) -> list[R]:
    """Union of all streams, first occurrence of each id kept, sorted by (timestamp, id).

    Pure: no clock or network access. O(n log n) in the combined size.
    """
    seen: set[str] = set()
    merged: list[R] = []
    for stream in streams:
        for record in stream:
            if record.id in seen:
                continue
            seen.add(record.id)
            merged.append(record)
    merged.sort(key=_sort_key)
    return merged


class LedgerReconciler:
    """Merges category streams into a wallet ledger and reports what it dropped."""

    def __init__(self):
        self.duplicates_dropped = 0
        self.voids_dropped = 0

    def reconcile(self, streams: Sequence[Iterable[R]]) -> list[R]:
        materialized = [list(stream) for stream in streams]
        total = sum(len(stream) for stream in materialized)

        merged = merge_and_sort(*materialized)
        self.duplicates_dropped = total - len(merged)

        ledger = [record for record in merged if not getattr(record, "is_void", False)]
        self.voids_dropped = len(merged) - len(ledger)

        if self.duplicates_dropped or self.voids_dropped:
            logger.info(
                "Reconciled %d records into %d (%d duplicates, %d without value dropped)",
                total, len(ledger), self.duplicates_dropped, self.voids_dropped,
            )
        return ledger
