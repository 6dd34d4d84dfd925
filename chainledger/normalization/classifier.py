"""Event classification: net flow + source hints -> canonical type and tax tag."""

import hashlib
import logging
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field
from datetime import datetime

from pydantic import ValidationError

from chainledger.exceptions import DataAnomalyError
from chainledger.models.enums import AmbiguityReason, Derivation, HintDomain, TaxTag, TransactionType
from chainledger.models.raw import AccountEntry, BalanceSnapshot, StakeActivity, UtxoEntry
from chainledger.models.transaction import CanonicalTransaction
from chainledger.normalization.amounts import ZERO, truncate_address
from chainledger.normalization.hint_tables import DEFAULT_TABLES, HintRule, HintTable
from chainledger.normalization.net_flow import DerivedRewardCalculator, NetFlow, NetFlowCalculator

logger = logging.getLogger(__name__)

_STAKE_TYPES = {TransactionType.STAKE, TransactionType.BOND}
_UNSTAKE_TYPES = {TransactionType.UNSTAKE, TransactionType.UNBOND}


@dataclass(frozen=True)
class Classification:
    type: TransactionType
    tag: TaxTag
    notes: str = ""
    derivation: Derivation = Derivation.OBSERVED
    anomalies: tuple[AmbiguityReason, ...] = field(default_factory=tuple)


class EventClassifier:
    """Maps a net flow plus optional source hint to a canonical type and tag.

    Decision order, first match wins:

    1. coinbase flows are always ``transfer_received`` ("Mining reward");
    2. an explicit hint found in one of the enabled domain tables;
    3. sent only -> ``transfer_sent`` / ``payment``;
    4. received only -> ``transfer_received`` / ``receive``;
    5. both sides -> ``swap`` / ``trade``;
    6. nothing moved but a fee was charged -> ``approve`` / ``payment``.

    A flow that moves nothing, charges nothing and carries no data anomaly is
    not economically meaningful and classifies to ``None``.
    """

    def __init__(self, tables: dict[HintDomain, HintTable] | None = None):
        self.tables = DEFAULT_TABLES if tables is None else tables

    def lookup(self, hint: str | None, domains: Sequence[HintDomain] | None = None) -> HintRule | None:
        if not hint:
            return None
        for domain in domains if domains is not None else list(self.tables):
            table = self.tables.get(domain)
            if table is None:
                continue
            rule = table.lookup(hint)
            if rule is not None:
                return rule
        return None

    def classify(
        self,
        flow: NetFlow,
        hint: str | None = None,
        domains: Sequence[HintDomain] | None = None,
    ) -> Classification | None:
        anomalies = list(flow.anomalies)
        if flow.is_empty and not anomalies:
            return None

        if flow.is_coinbase:
            return Classification(
                TransactionType.TRANSFER_RECEIVED, TaxTag.RECEIVE, "Mining reward",
                anomalies=tuple(anomalies),
            )

        if hint:
            rule = self.lookup(hint, domains)
            if rule is not None:
                return Classification(rule.type, rule.tag, rule.note, anomalies=tuple(anomalies))
            logger.debug("No hint table entry for %r, falling back to net flow", hint)
            anomalies.append(AmbiguityReason.UNKNOWN_HINT)

        if flow.sent > 0 and flow.received == 0:
            return Classification(
                TransactionType.TRANSFER_SENT, TaxTag.PAYMENT, "Transfer sent",
                anomalies=tuple(anomalies),
            )
        if flow.received > 0 and flow.sent == 0:
            return Classification(
                TransactionType.TRANSFER_RECEIVED, TaxTag.RECEIVE, "Transfer received",
                anomalies=tuple(anomalies),
            )
        if flow.sent > 0 and flow.received > 0:
            if flow.sent_currency == flow.received_currency:
                anomalies.append(AmbiguityReason.SAME_CURRENCY_SWAP)
            return Classification(
                TransactionType.SWAP, TaxTag.TRADE,
                f"Swap {flow.sent_currency} -> {flow.received_currency}",
                anomalies=tuple(anomalies),
            )
        if flow.fee > 0:
            return Classification(
                TransactionType.APPROVE, TaxTag.PAYMENT, "Fee-only transaction",
                derivation=Derivation.ASSUMED_DIRECTION,
                anomalies=tuple(anomalies),
            )

        # Only defaulted/inconsistent data is left: keep it visible for review
        anomalies.append(AmbiguityReason.UNCLASSIFIABLE_ENTRY)
        return Classification(
            TransactionType.APPROVE, TaxTag.PAYMENT, "Amounts could not be determined",
            derivation=Derivation.ASSUMED_DIRECTION,
            anomalies=tuple(dict.fromkeys(anomalies)),
        )


class EntryClassifier:
    """Turns raw entries of one source into canonical transactions for one wallet."""

    def __init__(
        self,
        source: str,
        wallet: str,
        native_currency: str,
        domains: Sequence[HintDomain] = (),
        calculator: NetFlowCalculator | None = None,
        classifier: EventClassifier | None = None,
        reward_calculator: DerivedRewardCalculator | None = None,
    ):
        self.source = source
        self.wallet = wallet
        self.native_currency = native_currency
        self.domains = list(domains)
        self.calculator = calculator or NetFlowCalculator()
        self.classifier = classifier or EventClassifier()
        self.reward_calculator = reward_calculator or DerivedRewardCalculator()

    def qualify(self, entry_id: str) -> str:
        return f"{self.source}:{entry_id}"

    def classify_entry(self, entry: UtxoEntry | AccountEntry) -> CanonicalTransaction | None:
        """Classify one entry. Data anomalies never propagate out of here."""
        try:
            return self._classify(entry)
        except DataAnomalyError as exc:
            logger.warning("%s", exc)
            return self._anomaly_record(entry)

    def classify_entries(self, entries: Iterable[UtxoEntry | AccountEntry]) -> list[CanonicalTransaction]:
        results: list[CanonicalTransaction] = []
        for entry in entries:
            tx = self.classify_entry(entry)
            if tx is not None:
                results.append(tx)
        return results

    def derived_rewards(
        self,
        snapshots: list[BalanceSnapshot],
        activity: list[StakeActivity] | None = None,
    ) -> list[CanonicalTransaction]:
        rewards: list[CanonicalTransaction] = []
        for reward in self.reward_calculator.infer(snapshots, activity):
            rewards.append(CanonicalTransaction(
                id=self.qualify(f"reward-{reward.snapshot_id}"),
                timestamp=reward.timestamp,
                type=TransactionType.EMISSION_REWARD,
                tag=TaxTag.CLAIM_REWARDS,
                received_amount=reward.amount,
                received_currency=self.native_currency,
                fee_currency=self.native_currency,
                notes=f"Staking emission reward ({reward.snapshot_id})",
                derivation=Derivation.DERIVED_REWARD,
                data_flags=reward.anomalies,
            ))
        return rewards

    def _classify(self, entry: object) -> CanonicalTransaction | None:
        if isinstance(entry, UtxoEntry):
            if not entry.accepted:
                return None
            flow = self.calculator.utxo(self.wallet, entry)
        elif isinstance(entry, AccountEntry):
            flow = self.calculator.account(self.wallet, entry)
        else:
            raise DataAnomalyError(_entry_id(entry), f"unsupported entry type {type(entry).__name__}")

        if not entry.entry_id:
            raise DataAnomalyError(_entry_id(entry), "entry has no identifier")

        classification = self.classifier.classify(flow, entry.hint, self.domains)
        if classification is None:
            return None
        return self._build(entry.entry_id, entry.timestamp, flow, classification, entry.transaction_hash)

    def _build(
        self,
        entry_id: str,
        timestamp: datetime,
        flow: NetFlow,
        classification: Classification,
        transaction_hash: str,
    ) -> CanonicalTransaction:
        fee_currency = flow.fee_currency or self.native_currency
        sent_amount = flow.sent if flow.sent > 0 else None
        sent_currency = flow.sent_currency if sent_amount is not None else None
        received_amount = flow.received if flow.received > 0 else None
        received_currency = flow.received_currency if received_amount is not None else None
        if sent_amount is None and received_amount is None:
            # Fee-only or unclassifiable: zero on the sent side keeps both sides from being null
            sent_amount = ZERO
            sent_currency = fee_currency

        notes = classification.notes
        counterparty = truncate_address(flow.counterparty, 16)
        if counterparty and classification.type == TransactionType.TRANSFER_SENT:
            notes = f"Transfer to {counterparty}"
        elif counterparty and classification.type == TransactionType.TRANSFER_RECEIVED and not flow.is_coinbase:
            notes = f"Transfer from {counterparty}"

        try:
            return CanonicalTransaction(
                id=self.qualify(entry_id),
                timestamp=timestamp,
                type=classification.type,
                tag=classification.tag,
                sent_amount=sent_amount,
                sent_currency=sent_currency,
                received_amount=received_amount,
                received_currency=received_currency,
                fee_amount=flow.fee,
                fee_currency=fee_currency,
                transaction_hash=transaction_hash or "",
                counterparty_hint=counterparty,
                notes=notes,
                derivation=classification.derivation,
                data_flags=classification.anomalies,
            )
        except ValidationError as exc:
            raise DataAnomalyError(entry_id, str(exc)) from exc

    def _anomaly_record(self, entry: object) -> CanonicalTransaction | None:
        entry_id = getattr(entry, "entry_id", "") or f"anomaly-{_fingerprint(entry)}"
        try:
            return CanonicalTransaction(
                id=self.qualify(entry_id),
                timestamp=getattr(entry, "timestamp", None),
                type=TransactionType.APPROVE,
                tag=TaxTag.PAYMENT,
                sent_amount=ZERO,
                sent_currency=self.native_currency,
                fee_currency=self.native_currency,
                transaction_hash=getattr(entry, "transaction_hash", "") or "",
                notes="Entry could not be classified",
                derivation=Derivation.ASSUMED_DIRECTION,
                data_flags=(AmbiguityReason.UNCLASSIFIABLE_ENTRY,),
            )
        except ValidationError:
            logger.error("Dropping entry %s: no usable timestamp", entry_id)
            return None


def stake_activity_from(transactions: Iterable[CanonicalTransaction]) -> list[StakeActivity]:
    """Explicit stake/unstake movements, used to net out derived balance changes."""
    activity: list[StakeActivity] = []
    for tx in transactions:
        if tx.type in _STAKE_TYPES and tx.sent_amount:
            activity.append(StakeActivity(timestamp=tx.timestamp, amount=tx.sent_amount, is_stake=True))
        elif tx.type in _UNSTAKE_TYPES and tx.received_amount:
            activity.append(StakeActivity(timestamp=tx.timestamp, amount=tx.received_amount, is_stake=False))
    return activity


def _entry_id(entry: object) -> str:
    return getattr(entry, "entry_id", "") or "<unknown>"


def _fingerprint(entry: object) -> str:
    return hashlib.sha1(repr(entry).encode("utf-8")).hexdigest()[:12]
