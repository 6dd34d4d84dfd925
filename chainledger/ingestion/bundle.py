"""Adapter for JSON bundles of already-decoded raw records.

A bundle is what a chain-specific client leaves on disk after decoding the
wire format::

    {
      "source": "kaspa",
      "wallet": "kaspa:qr...",
      "smallest_unit": true,
      "categories": {
        "transactions": [{"id": "...", "timestamp": "...", "inputs": [...], "outputs": [...]}]
      },
      "errors": {"rewards": {"kind": "rate_limited", "after": 20}},
      "prices": {"2024-03-01": "0.1342"}
    }

Category kinds come from the source profile; a category the profile does
not know may declare its own as ``{"kind": "account", "entries": [...]}``.
``errors`` replays an upstream failure for a category (after ``after``
entries, i.e. a partial listing) so exports can be reproduced faithfully.
Amounts are left as they are in the file; the net-flow calculator parses
them leniently.
"""

import json
import logging
from datetime import UTC, date, datetime
from decimal import Decimal, InvalidOperation
from pathlib import Path

from chainledger.config import EngineSettings
from chainledger.exceptions import BundleFormatError
from chainledger.ingestion.base import DateRange, FetchResult, Page, SourceAdapter
from chainledger.ingestion.cache import ExportCache, build_cache_key
from chainledger.ingestion.fetch import FetchOrchestrator
from chainledger.models.enums import EntryKind, ErrorKind
from chainledger.models.raw import (
    AccountEntry,
    AssetDelta,
    BalanceSnapshot,
    FundingPayment,
    Participant,
    PerpsFill,
    RawLedgerEntry,
    StakeActivity,
    UtxoEntry,
)
from chainledger.normalization.amounts import normalize_address
from chainledger.sources import SourceProfile, get_profile

logger = logging.getLogger(__name__)

PAGE_SIZE = 100


def parse_timestamp(value: object) -> datetime:
    """ISO-8601 string or epoch number (seconds, or milliseconds when large)."""
    if isinstance(value, datetime):
        return value if value.tzinfo else value.replace(tzinfo=UTC)
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        seconds = value / 1000 if value > 1e11 else value
        return datetime.fromtimestamp(seconds, tz=UTC)
    if isinstance(value, str) and value.strip():
        text = value.strip()
        if text.isdigit():
            return parse_timestamp(int(text))
        parsed = datetime.fromisoformat(text.replace("Z", "+00:00"))
        return parsed if parsed.tzinfo else parsed.replace(tzinfo=UTC)
    raise ValueError(f"not a timestamp: {value!r}")


class JsonBundleAdapter(SourceAdapter):
    """Serves raw entries from a decoded bundle through the fetch orchestrator."""

    def __init__(
        self,
        bundle: dict,
        profile: SourceProfile | None = None,
        orchestrator: FetchOrchestrator | None = None,
        page_size: int = PAGE_SIZE,
        origin: str = "<bundle>",
        settings: EngineSettings | None = None,
        cache: ExportCache | None = None,
    ):
        if not isinstance(bundle, dict):
            raise BundleFormatError(origin, "bundle must be a JSON object")
        self.bundle = bundle
        self.origin = origin
        self.profile = profile or get_profile(str(bundle.get("source", "")))
        self.orchestrator = orchestrator or FetchOrchestrator(
            self.profile.rate_budget.build_limiter(), settings, cache=cache
        )
        self.page_size = page_size
        self.wallet = str(bundle.get("wallet", ""))

        categories = bundle.get("categories") or {}
        if not isinstance(categories, dict):
            raise BundleFormatError(origin, "'categories' must be an object")
        self.categories = categories

    @classmethod
    def from_path(cls, path: Path, **kwargs) -> "JsonBundleAdapter":
        if not path.exists():
            raise BundleFormatError(str(path), "file not found")
        try:
            raw = json.loads(path.read_text())
        except json.JSONDecodeError as exc:
            raise BundleFormatError(str(path), f"invalid JSON: {exc}") from exc
        return cls(raw, origin=str(path), **kwargs)

    @property
    def category_names(self) -> list[str]:
        """Profile categories first (authority order), then any extra bundle categories."""
        names = list(self.profile.category_names)
        names.extend(name for name in self.categories if name not in names)
        return names

    def fetch(
        self,
        wallet: str,
        category: str,
        date_range: DateRange | None = None,
        deadline: float | None = None,
    ) -> FetchResult:
        """Return every entry of ``category``.

        ``date_range`` is not applied here: derived rewards need the balance
        snapshot preceding the range, so the export engine filters after
        classification.

        ``deadline`` stops paging early; pages served before it come back
        marked partial.
        """
        if self.wallet and normalize_address(wallet) != normalize_address(self.wallet):
            return FetchResult(error=ErrorKind.NOT_FOUND, detail=f"bundle holds {self.wallet}, not {wallet}")

        entries = self.entries(category)
        failure = self._failure(category)
        if failure is not None:
            # Recorded upstream failure: serve what was fetched before it, then report it
            entries = entries[:failure[1]]

        def fetch_page(cursor: str | None) -> Page:
            start = int(cursor or 0)
            end = start + self.page_size
            return Page(entries[start:end], next_cursor=str(end) if end < len(entries) else None)

        cache_key = build_cache_key(self.profile.name, wallet, category)
        result = self.orchestrator.paginate(fetch_page, deadline=deadline, cache_key=cache_key)
        if failure is None or result.error is not None:
            return result
        kind, _, message = failure
        logger.info("Replaying recorded %s failure for %s", kind.value, category)
        return FetchResult(result.entries, partial=bool(result.entries), error=kind, detail=message)

    def price_history(self, start: date, end: date) -> dict[date, Decimal]:
        table: dict[date, Decimal] = {}
        for key, value in (self.bundle.get("prices") or {}).items():
            try:
                day = date.fromisoformat(str(key)[:10])
                price = Decimal(str(value))
            except (ValueError, InvalidOperation):
                logger.warning("Skipping malformed price %r=%r in %s", key, value, self.origin)
                continue
            if start <= day <= end:
                table[day] = price
        return table

    # --- Parsing ---

    def category_kind(self, category: str) -> EntryKind:
        raw = self.categories.get(category)
        if isinstance(raw, dict) and raw.get("kind"):
            try:
                return EntryKind(raw["kind"])
            except ValueError:
                raise BundleFormatError(self.origin, f"unknown kind {raw['kind']!r} for {category}") from None
        spec = self.profile.category(category)
        if spec is None:
            raise BundleFormatError(self.origin, f"category {category!r} needs an explicit kind")
        return spec.kind

    def entries(self, category: str) -> list[RawLedgerEntry]:
        raw = self.categories.get(category)
        if raw is None:
            return []
        records = raw.get("entries", []) if isinstance(raw, dict) else raw
        if not isinstance(records, list):
            raise BundleFormatError(self.origin, f"category {category!r} must be a list of records")

        kind = self.category_kind(category)
        parser = {
            EntryKind.UTXO: self._parse_utxo,
            EntryKind.ACCOUNT: self._parse_account,
            EntryKind.BALANCE_SNAPSHOT: self._parse_snapshot,
            EntryKind.STAKE_ACTIVITY: self._parse_stake_activity,
            EntryKind.PERPS_FILL: self._parse_fill,
            EntryKind.FUNDING_PAYMENT: self._parse_funding,
        }[kind]

        parsed: list[RawLedgerEntry] = []
        for index, record in enumerate(records):
            if not isinstance(record, dict):
                raise BundleFormatError(self.origin, f"{category}[{index}] is not an object")
            try:
                parsed.append(parser(record))
            except (KeyError, ValueError) as exc:
                raise BundleFormatError(self.origin, f"{category}[{index}]: {exc}") from exc
        return parsed

    def _failure(self, category: str) -> tuple[ErrorKind, int, str] | None:
        spec = (self.bundle.get("errors") or {}).get(category)
        if spec is None:
            return None
        if isinstance(spec, str):
            spec = {"kind": spec}
        try:
            kind = ErrorKind(spec.get("kind", "transient"))
        except ValueError:
            raise BundleFormatError(self.origin, f"unknown error kind for {category}") from None
        message = spec.get("message") or f"{kind.value} while fetching {category}"
        return kind, int(spec.get("after", 0)), message

    def _decimals(self, record: dict) -> int:
        if "decimals" in record:
            return int(record["decimals"])
        if "decimals" in self.bundle:
            return int(self.bundle["decimals"])
        return self.profile.decimals if self.bundle.get("smallest_unit") else 0

    def _parse_utxo(self, record: dict) -> UtxoEntry:
        return UtxoEntry(
            entry_id=str(record.get("id", "")),
            timestamp=parse_timestamp(record["timestamp"]),
            inputs=[_participant(p) for p in record.get("inputs") or []],
            outputs=[_participant(p) for p in record.get("outputs") or []],
            currency=record.get("currency") or self.profile.native_currency,
            decimals=self._decimals(record),
            hint=record.get("hint"),
            transaction_hash=str(record.get("hash", "")),
            accepted=bool(record.get("accepted", True)),
        )

    def _parse_account(self, record: dict) -> AccountEntry:
        if "legs" in record:
            legs = [
                AssetDelta(leg.get("currency") or self.profile.native_currency, leg.get("amount"))
                for leg in record["legs"]
            ]
        else:
            legs = [AssetDelta(record.get("currency") or self.profile.native_currency, record.get("amount"))]
        return AccountEntry(
            entry_id=str(record.get("id", "")),
            timestamp=parse_timestamp(record["timestamp"]),
            legs=legs,
            fee=record.get("fee", 0),
            fee_currency=record.get("fee_currency") or self.profile.native_currency,
            fee_in_delta=bool(record.get("fee_in_delta", False)),
            initiator=record.get("initiator"),
            hint=record.get("hint"),
            counterparty=str(record.get("counterparty", "")),
            transaction_hash=str(record.get("hash", "")),
            decimals=self._decimals(record),
        )

    def _parse_snapshot(self, record: dict) -> BalanceSnapshot:
        timestamp = parse_timestamp(record["timestamp"])
        return BalanceSnapshot(
            snapshot_id=str(record.get("id") or timestamp.date().isoformat()),
            timestamp=timestamp,
            balance=record.get("balance"),
            decimals=self._decimals(record),
        )

    def _parse_stake_activity(self, record: dict) -> StakeActivity:
        action = str(record.get("action", "stake")).lower()
        return StakeActivity(
            timestamp=parse_timestamp(record["timestamp"]),
            amount=record.get("amount"),
            is_stake=action in ("stake", "bond", "delegate"),
            decimals=self._decimals(record),
        )

    def _parse_fill(self, record: dict) -> PerpsFill:
        return PerpsFill(
            fill_id=str(record["id"]),
            timestamp=parse_timestamp(record["timestamp"]),
            market=str(record.get("market", "")),
            size=record.get("size"),
            fee=record.get("fee", 0),
            realized_pnl=record.get("realized_pnl", 0),
            hint=record.get("hint"),
            is_liquidation=bool(record.get("is_liquidation", False)),
            side=str(record.get("side", "")),
            price=record.get("price"),
            payment_token=record.get("payment_token") or "USDC",
            transaction_hash=str(record.get("hash", "")),
        )

    def _parse_funding(self, record: dict) -> FundingPayment:
        return FundingPayment(
            payment_id=str(record["id"]),
            timestamp=parse_timestamp(record["timestamp"]),
            market=str(record.get("market", "")),
            payment=record.get("payment"),
            position_size=record.get("position_size", 0),
            rate=record.get("rate"),
            payment_token=record.get("payment_token") or "USDC",
            hint=record.get("hint"),
        )


def _participant(raw: dict) -> Participant:
    return Participant(address=str(raw.get("address", "")), amount=raw.get("amount"))
