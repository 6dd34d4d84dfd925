"""Source adapter contract."""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import date

from chainledger.models.enums import ErrorKind
from chainledger.models.raw import RawLedgerEntry


@dataclass(frozen=True)
class DateRange:
    """Inclusive UTC calendar-day bounds; either side may be open."""

    start: date | None = None
    end: date | None = None

    def __post_init__(self):
        if self.start and self.end and self.start > self.end:
            raise ValueError(f"start {self.start} is after end {self.end}")


@dataclass
class Page:
    """One page of a paginated source listing."""

    entries: list[RawLedgerEntry] = field(default_factory=list)
    next_cursor: str | None = None


@dataclass
class FetchResult:
    """What an adapter delivered for one category of one wallet.

    ``partial`` means some entries were fetched before an error, a page
    limit or a deadline stopped pagination. ``error`` without entries is a
    failed category.
    """

    entries: list[RawLedgerEntry] = field(default_factory=list)
    partial: bool = False
    error: ErrorKind | None = None
    detail: str = ""

    @property
    def failed(self) -> bool:
        return self.error is not None and not self.entries and not self.partial


class SourceAdapter(ABC):
    """Abstract base class for all source adapters.

    Adapters do the wire-level work (HTTP, decoding) and hand back raw
    entries in the source's native unit with full decimal precision.
    """

    @abstractmethod
    def fetch(
        self,
        wallet: str,
        category: str,
        date_range: DateRange | None = None,
        deadline: float | None = None,
    ) -> FetchResult:
        """Fetch the raw entries of one category for a wallet.

        ``deadline`` is an absolute reading of the caller's monotonic clock. An adapter
        that reaches it stops paging and returns what it has, marked partial.
        """
        ...

    def price_history(self, start: date, end: date) -> dict:
        """Daily fiat prices of the source's native unit. Adapters without prices return {}."""
        return {}
