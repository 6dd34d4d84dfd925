"""Per-wallet export: fetch every category, normalize, reconcile, price, flag.

Control flow:

1. category fetches fan out on a thread pool bounded by the source's
   ``max_concurrency``; the shared limiter serializes them within the
   source's request budget, and the whole fan-out runs under one deadline;
   a category cut short by it keeps the pages it already fetched
2. each category's raw entries are classified into its own stream
3. derived rewards are inferred from balance snapshots, if any
4. streams merge through the reconciler in authority order
5. one price-history call covers the ledger's date span
6. the ambiguity detector runs last

A failed category never aborts the others. The result is marked partial
with per-category outcomes, and a wallet where every category failed gets
one top-level error with a remediation hint.
"""

import logging
import time
from collections.abc import Callable, Sequence
from concurrent.futures import ThreadPoolExecutor, wait
from datetime import date
from itertools import chain
from typing import TypeVar

from chainledger.config import EngineSettings
from chainledger.engines.ambiguity import AmbiguityDetector, PerpsAmbiguityDetector
from chainledger.engines.pricing import CachedPriceSource, PriceEnricher, PriceSource, required_date_range
from chainledger.engines.reconciler import LedgerReconciler, merge_and_sort
from chainledger.exceptions import DataAnomalyError, FetchError, WalletUnreachableError
from chainledger.ingestion.base import DateRange, FetchResult, SourceAdapter
from chainledger.ingestion.cache import ExportCache
from chainledger.models.enums import AccountingMode, ErrorKind, ExportStatus
from chainledger.models.raw import AccountEntry, BalanceSnapshot, FundingPayment, PerpsFill, StakeActivity, UtxoEntry
from chainledger.models.reports import CategoryOutcome, ExportError, ExportResult
from chainledger.models.transaction import CanonicalTransaction, PerpsTransaction, to_utc_millis
from chainledger.normalization.classifier import EntryClassifier, stake_activity_from
from chainledger.normalization.net_flow import DerivedRewardCalculator
from chainledger.normalization.perps import PerpsClassifier
from chainledger.reports.summary import summarize_ledger, summarize_perps
from chainledger.sources import SourceProfile

logger = logging.getLogger(__name__)

T = TypeVar("T", CanonicalTransaction, PerpsTransaction)

HINTS = {
    ErrorKind.NOT_FOUND: "address may not be activated or has no on-chain activity",
    ErrorKind.RATE_LIMITED: "the source is rate limiting requests; try again in a few minutes",
    ErrorKind.PARTIAL_RESULT: "the export timed out; try a narrower date range",
}
DEFAULT_HINT = "the data source may be temporarily unavailable; try again later"


def filter_by_date_range(items: Sequence[T], start: date | None = None, end: date | None = None) -> list[T]:
    """Keep records whose UTC calendar day falls within [start, end]. Open bounds are unbounded."""
    if start is None and end is None:
        return list(items)
    kept: list[T] = []
    for item in items:
        day = to_utc_millis(item.timestamp).date()
        if start is not None and day < start:
            continue
        if end is not None and day > end:
            continue
        kept.append(item)
    return kept


class WalletExportEngine:
    """Runs one wallet export for one source profile."""

    def __init__(
        self,
        profile: SourceProfile,
        adapter: SourceAdapter,
        settings: EngineSettings | None = None,
        price_source: PriceSource | None = None,
        cache: ExportCache | None = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.profile = profile
        self.adapter = adapter
        self.settings = settings or EngineSettings()
        self.cache = cache if cache is not None else ExportCache()
        self.price_source = CachedPriceSource(
            price_source if price_source is not None else adapter,
            self.cache,
            name=f"{profile.name}-prices",
        )
        self.perps_classifier = PerpsClassifier(profile.name)
        self.reconciler = LedgerReconciler()
        self.enricher = PriceEnricher()
        self.detector = AmbiguityDetector(self.settings)
        self.perps_detector = PerpsAmbiguityDetector(self.settings)
        self.warnings: list[str] = []
        self._clock = clock

    def export(
        self,
        wallet: str,
        date_range: DateRange | None = None,
        categories: Sequence[str] | None = None,
        strict: bool = False,
    ) -> ExportResult:
        """Build the canonical ledger for ``wallet``.

        ``categories`` overrides the profile's category list (same authority
        order rules apply). With ``strict``, a wallet where every category
        failed raises ``WalletUnreachableError`` instead of returning a
        failed result.
        """
        self.warnings = []
        names = list(categories) if categories is not None else self.profile.category_names
        fetched = self._fetch_all(wallet, names, date_range)

        classifier = EntryClassifier(
            self.profile.name,
            wallet,
            self.profile.native_currency,
            self.profile.hint_domains,
            reward_calculator=DerivedRewardCalculator(self.settings.reward_epsilon, self.settings.max_reward_rate),
        )
        streams, perps_streams, outcomes = self._classify(classifier, names, fetched)

        ledger = self.reconciler.reconcile(streams)
        perps = merge_and_sort(*perps_streams)
        if date_range is not None:
            ledger = filter_by_date_range(ledger, date_range.start, date_range.end)
            perps = filter_by_date_range(perps, date_range.start, date_range.end)

        ledger = self._enrich(ledger)
        ledger = self.detector.flag(ledger)
        perps = self.perps_detector.flag(perps)

        status, error = self._status(wallet, outcomes)
        if status == ExportStatus.FAILED:
            logger.error("Export of %s on %s failed: %s", wallet, self.profile.name, error.message)
            if strict:
                raise WalletUnreachableError(wallet, self.profile.name, error.hint)

        logger.info(
            "Exported %s on %s: %d transactions, %d perps records (%s)",
            wallet, self.profile.name, len(ledger), len(perps), status.value,
        )
        has_perps = bool(perps) or self.profile.mode == AccountingMode.PERPS
        return ExportResult(
            source=self.profile.name,
            wallet=wallet,
            status=status,
            transactions=ledger,
            perps_transactions=perps,
            summary=summarize_ledger(ledger),
            perps_summary=summarize_perps(perps) if has_perps else None,
            categories=outcomes,
            error=error,
            warnings=list(self.warnings),
        )

    # --- Fetch ---

    def _fetch_one(
        self, wallet: str, category: str, date_range: DateRange | None, deadline: float
    ) -> FetchResult:
        try:
            return self.adapter.fetch(wallet, category, date_range, deadline=deadline)
        except FetchError as exc:
            logger.warning("Category %s failed (%s): %s", category, exc.kind.value, exc)
            return FetchResult(error=exc.kind, detail=str(exc))
        except DataAnomalyError as exc:
            logger.warning("Category %s returned unusable data: %s", category, exc)
            return FetchResult(error=ErrorKind.DATA_ANOMALY, detail=str(exc))

    def _fetch_all(
        self, wallet: str, names: list[str], date_range: DateRange | None
    ) -> dict[str, FetchResult]:
        """Fetch every category under one deadline.

        Adapters stop paging at the deadline and return what they have, so
        after the timeout the engine waits up to ``export_grace`` more for
        those partial results. Only a category still running after that is
        abandoned without entries.
        """
        if not names:
            return {}
        timeout = self.settings.export_timeout
        deadline = self._clock() + timeout
        workers = max(1, min(self.profile.max_concurrency, len(names)))
        pool = ThreadPoolExecutor(max_workers=workers, thread_name_prefix=f"{self.profile.name}-fetch")
        futures = {pool.submit(self._fetch_one, wallet, name, date_range, deadline): name for name in names}
        pending = set(futures)
        try:
            done, pending = wait(futures, timeout=timeout)
            if pending:
                logger.warning("Export timeout of %.0fs reached with %d categories in flight", timeout, len(pending))
                late, pending = wait(pending, timeout=self.settings.export_grace)
                done |= late
        finally:
            pool.shutdown(wait=not pending, cancel_futures=True)

        results: dict[str, FetchResult] = {}
        for future in done:
            results[futures[future]] = future.result()
        for future in pending:
            name = futures[future]
            logger.warning("Category %s did not finish within %.0fs", name, timeout)
            results[name] = FetchResult(
                error=ErrorKind.PARTIAL_RESULT,
                detail=f"timed out after {timeout:.0f}s",
            )
        return results

    # --- Normalize ---

    def _classify(self, classifier: EntryClassifier, names: list[str], fetched: dict[str, FetchResult]):
        streams: list[list[CanonicalTransaction]] = []
        perps_streams: list[list[PerpsTransaction]] = []
        outcomes: list[CategoryOutcome] = []
        snapshots: list[BalanceSnapshot] = []
        activity: list[StakeActivity] = []
        snapshot_category: int | None = None

        for name in names:
            result = fetched[name]
            transactions: list[CanonicalTransaction] = []
            perps: list[PerpsTransaction] = []
            for entry in result.entries:
                if isinstance(entry, (UtxoEntry, AccountEntry)):
                    tx = classifier.classify_entry(entry)
                    if tx is not None:
                        transactions.append(tx)
                elif isinstance(entry, PerpsFill):
                    perps.append(self.perps_classifier.classify_fill(entry))
                elif isinstance(entry, FundingPayment):
                    perps.append(self.perps_classifier.classify_funding(entry))
                elif isinstance(entry, BalanceSnapshot):
                    snapshots.append(entry)
                    if snapshot_category is None:
                        snapshot_category = len(outcomes)
                elif isinstance(entry, StakeActivity):
                    activity.append(entry)

            streams.append(transactions)
            perps_streams.append(perps)
            outcomes.append(CategoryOutcome(
                category=name,
                fetched=len(result.entries),
                emitted=len(transactions) + len(perps),
                partial=result.partial,
                error=result.error,
                detail=result.detail,
            ))

        if snapshots:
            explicit = activity or stake_activity_from(chain.from_iterable(streams))
            rewards = classifier.derived_rewards(snapshots, explicit)
            streams.append(rewards)
            outcome = outcomes[snapshot_category]
            outcomes[snapshot_category] = outcome.model_copy(update={"emitted": outcome.emitted + len(rewards)})

        return streams, perps_streams, outcomes

    def _enrich(self, ledger: list[CanonicalTransaction]) -> list[CanonicalTransaction]:
        span = required_date_range(ledger)
        if span is None:
            return ledger
        try:
            table = self.price_source.price_history(*span)
        except FetchError as exc:
            logger.warning("Price history unavailable for %s: %s", self.profile.name, exc)
            self.warnings.append(f"Fiat prices unavailable: {exc}")
            return ledger
        return self.enricher.enrich(ledger, table, currency=self.profile.native_currency)

    # --- Status ---

    def _status(self, wallet: str, outcomes: list[CategoryOutcome]) -> tuple[ExportStatus, ExportError | None]:
        incomplete = [o for o in outcomes if o.error is not None]
        if not incomplete:
            return ExportStatus.COMPLETE, None

        failed = [o for o in incomplete if o.fetched == 0 and not o.partial]
        if len(failed) == len(outcomes):
            kinds = {o.error for o in failed}
            kind = kinds.pop() if len(kinds) == 1 else ErrorKind.TRANSIENT
            return ExportStatus.FAILED, ExportError(
                kind=kind,
                message=f"No {self.profile.display_name} data could be fetched for {wallet}",
                hint=HINTS.get(kind, DEFAULT_HINT),
            )

        names = ", ".join(o.category for o in incomplete)
        for outcome in incomplete:
            self.warnings.append(f"{outcome.category}: {outcome.detail or outcome.error.value}")
        return ExportStatus.PARTIAL, ExportError(
            kind=ErrorKind.PARTIAL_RESULT,
            message=f"{len(incomplete)} of {len(outcomes)} categories incomplete: {names}",
            hint="the ledger may under-report activity; re-run the export to fill the gaps",
        )
