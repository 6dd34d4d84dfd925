"""Net-flow calculator: signed asset movement for one wallet.

Three accounting modes share one result shape:

- UTXO: the entry consumes a list of inputs and creates a list of outputs;
  the wallet's movement is the difference between its input and output
  participation, and the fee is whatever the inputs did not pay out.
- Account: the entry is a signed balance delta (per currency) against the
  wallet.
- Derived state: no explicit record exists; rewards are inferred from
  successive staked-balance snapshots minus explicit stake activity.

All magnitudes in a ``NetFlow`` are non-negative. Malformed amounts never
raise: they become zero and the substitution is recorded in ``anomalies``.
"""

import logging
from collections import defaultdict
from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal

from chainledger.models.enums import AmbiguityReason
from chainledger.models.raw import AccountEntry, BalanceSnapshot, StakeActivity, UtxoEntry
from chainledger.models.transaction import to_utc_millis
from chainledger.normalization.amounts import ZERO, normalize_address, parse_amount

logger = logging.getLogger(__name__)

DEFAULT_REWARD_EPSILON = Decimal("0.0001")
DEFAULT_MAX_REWARD_RATE = Decimal("0.005")


@dataclass(frozen=True)
class NetFlow:
    sent: Decimal = ZERO
    received: Decimal = ZERO
    fee: Decimal = ZERO
    sent_currency: str | None = None
    received_currency: str | None = None
    fee_currency: str = ""
    is_coinbase: bool = False
    anomalies: tuple[AmbiguityReason, ...] = ()
    counterparty: str = ""

    @property
    def is_empty(self) -> bool:
        return self.sent == 0 and self.received == 0 and self.fee == 0


@dataclass(frozen=True)
class DerivedReward:
    """A reward inferred from two consecutive balance snapshots."""

    snapshot_id: str
    timestamp: datetime
    amount: Decimal
    previous_balance: Decimal
    implausible: bool = False
    anomalies: tuple[AmbiguityReason, ...] = ()


def _unique(reasons: list[AmbiguityReason]) -> tuple[AmbiguityReason, ...]:
    return tuple(dict.fromkeys(reasons))


class NetFlowCalculator:
    """Computes ``{sent, received, fee}`` for a wallet from one raw entry."""

    def utxo(self, wallet: str, entry: UtxoEntry) -> NetFlow:
        wallet_key = normalize_address(wallet)
        anomalies: list[AmbiguityReason] = []

        total_inputs = ZERO
        input_sum = ZERO
        all_inputs_ours = bool(entry.inputs)
        sender = ""
        for participant in entry.inputs:
            amount = self._participant_amount(participant.amount, entry.decimals, anomalies)
            total_inputs += amount
            if normalize_address(participant.address) == wallet_key:
                input_sum += amount
            else:
                all_inputs_ours = False
                sender = sender or participant.address

        total_outputs = ZERO
        output_sum = ZERO
        all_outputs_ours = bool(entry.outputs)
        recipient = ""
        for participant in entry.outputs:
            amount = self._participant_amount(participant.amount, entry.decimals, anomalies)
            total_outputs += amount
            if normalize_address(participant.address) == wallet_key:
                output_sum += amount
            else:
                all_outputs_ours = False
                recipient = recipient or participant.address

        currency = entry.currency

        # Coinbase: nothing was spent to create these outputs
        if not entry.inputs:
            return NetFlow(
                received=output_sum,
                received_currency=currency if output_sum > 0 else None,
                fee_currency=currency,
                is_coinbase=True,
                anomalies=_unique(anomalies),
            )

        system_fee = total_inputs - total_outputs
        if system_fee < 0:
            logger.warning(
                "Entry %s pays out %s more than its inputs; clamping fee to zero",
                entry.entry_id, -system_fee,
            )
            anomalies.append(AmbiguityReason.INCONSISTENT_AMOUNTS)
            system_fee = ZERO
        fee = system_fee if input_sum > 0 else ZERO

        if input_sum > 0 and all_inputs_ours and all_outputs_ours:
            # Consolidation / self-payment: only the fee leaves the wallet
            sent = ZERO
            received = ZERO
        else:
            sent = max(ZERO, input_sum - output_sum)
            if input_sum == 0:
                received = output_sum
            elif output_sum > input_sum:
                received = output_sum - input_sum
            else:
                received = ZERO

        return NetFlow(
            sent=sent,
            received=received,
            fee=fee,
            sent_currency=currency if sent > 0 else None,
            received_currency=currency if received > 0 else None,
            fee_currency=currency,
            anomalies=_unique(anomalies),
            counterparty=recipient if sent > 0 else sender,
        )

    def account(self, wallet: str, entry: AccountEntry) -> NetFlow:
        wallet_key = normalize_address(wallet)
        anomalies: list[AmbiguityReason] = []

        sent_by_currency: dict[str, Decimal] = defaultdict(Decimal)
        received_by_currency: dict[str, Decimal] = defaultdict(Decimal)
        for leg in entry.legs:
            amount, defaulted = parse_amount(leg.amount, entry.decimals)
            if defaulted:
                anomalies.append(AmbiguityReason.DEFAULTED_AMOUNT)
            if amount < 0:
                sent_by_currency[leg.currency] += -amount
            elif amount > 0:
                received_by_currency[leg.currency] += amount

        fee = ZERO
        if entry.fee is not None and entry.fee != "":
            fee, defaulted = parse_amount(entry.fee, entry.decimals)
            if defaulted:
                anomalies.append(AmbiguityReason.DEFAULTED_AMOUNT)
            fee = abs(fee)

        sent_currency, sent = self._dominant_leg(sent_by_currency, anomalies)
        received_currency, received = self._dominant_leg(received_by_currency, anomalies)

        if entry.initiator is not None:
            wallet_pays = normalize_address(entry.initiator) == wallet_key
        else:
            wallet_pays = sent > 0 or received == 0
        if not wallet_pays:
            fee = ZERO

        fee_currency = entry.fee_currency or sent_currency or received_currency or ""

        # Some sources report the delta with the fee already taken out
        if entry.fee_in_delta and fee > 0 and sent > 0 and fee_currency == sent_currency:
            if fee > sent:
                anomalies.append(AmbiguityReason.INCONSISTENT_AMOUNTS)
                sent = ZERO
            else:
                sent -= fee

        return NetFlow(
            sent=sent,
            received=received,
            fee=fee,
            sent_currency=sent_currency if sent > 0 else None,
            received_currency=received_currency if received > 0 else None,
            fee_currency=fee_currency,
            anomalies=_unique(anomalies),
            counterparty=entry.counterparty,
        )

    @staticmethod
    def _participant_amount(raw: object, decimals: int, anomalies: list[AmbiguityReason]) -> Decimal:
        amount, defaulted = parse_amount(raw, decimals)
        if defaulted:
            anomalies.append(AmbiguityReason.DEFAULTED_AMOUNT)
        if amount < 0:
            anomalies.append(AmbiguityReason.INCONSISTENT_AMOUNTS)
            return ZERO
        return amount

    @staticmethod
    def _dominant_leg(
        by_currency: dict[str, Decimal], anomalies: list[AmbiguityReason]
    ) -> tuple[str | None, Decimal]:
        legs = [(currency, amount) for currency, amount in by_currency.items() if amount > 0]
        if not legs:
            return None, ZERO
        if len(legs) > 1:
            anomalies.append(AmbiguityReason.MULTI_ASSET_LEGS)
        # max() keeps the first leg on ties, so leg order decides
        return max(legs, key=lambda leg: leg[1])


class DerivedRewardCalculator:
    """Infers staking rewards from a staked-balance time series.

    reward[t] = (balance[t] - balance[t-1]) - net explicit stake activity on
    the date of t, where stakes count positive and unstakes negative. Each
    date's activity is netted out once, against the first snapshot that
    falls on it. Results at or below ``epsilon`` are rounding noise or
    explicit activity already captured elsewhere and are dropped.
    """

    def __init__(
        self,
        epsilon: Decimal = DEFAULT_REWARD_EPSILON,
        max_reward_rate: Decimal = DEFAULT_MAX_REWARD_RATE,
    ):
        self.epsilon = epsilon
        self.max_reward_rate = max_reward_rate

    def infer(
        self,
        snapshots: list[BalanceSnapshot],
        activity: list[StakeActivity] | None = None,
    ) -> list[DerivedReward]:
        if len(snapshots) < 2:
            return []

        activity_anomalies: dict[date, list[AmbiguityReason]] = defaultdict(list)
        net_by_date: dict[date, Decimal] = defaultdict(Decimal)
        for event in activity or []:
            amount, defaulted = parse_amount(event.amount, event.decimals)
            day = to_utc_millis(event.timestamp).date()
            if defaulted:
                activity_anomalies[day].append(AmbiguityReason.DEFAULTED_AMOUNT)
            net_by_date[day] += abs(amount) if event.is_stake else -abs(amount)

        ordered = sorted(snapshots, key=lambda s: (to_utc_millis(s.timestamp), s.snapshot_id))
        rewards: list[DerivedReward] = []
        for previous, current in zip(ordered, ordered[1:]):
            anomalies: list[AmbiguityReason] = []
            prev_balance, prev_defaulted = parse_amount(previous.balance, previous.decimals)
            curr_balance, curr_defaulted = parse_amount(current.balance, current.decimals)
            if prev_defaulted or curr_defaulted:
                anomalies.append(AmbiguityReason.DEFAULTED_AMOUNT)

            day = to_utc_millis(current.timestamp).date()
            explicit = net_by_date.pop(day, ZERO)
            anomalies.extend(activity_anomalies.pop(day, []))

            reward = (curr_balance - prev_balance) - explicit
            if reward <= self.epsilon:
                continue

            implausible = prev_balance <= 0 or reward > prev_balance * self.max_reward_rate
            if implausible:
                anomalies.append(AmbiguityReason.IMPLAUSIBLE_REWARD)
            rewards.append(DerivedReward(
                snapshot_id=current.snapshot_id,
                timestamp=current.timestamp,
                amount=reward,
                previous_balance=prev_balance,
                implausible=implausible,
                anomalies=_unique(anomalies),
            ))

        return rewards
