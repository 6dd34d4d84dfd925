"""Tests for the net-flow calculator and derived reward inference."""

from decimal import Decimal

from chainledger.models.enums import AmbiguityReason
from chainledger.models.raw import AccountEntry, AssetDelta, BalanceSnapshot, Participant, StakeActivity, UtxoEntry
from chainledger.normalization.amounts import parse_amount, truncate_address
from chainledger.normalization.net_flow import DerivedRewardCalculator, NetFlowCalculator
from conftest import OTHER, THIRD, WALLET, ts


def utxo(inputs, outputs, **kwargs) -> UtxoEntry:
    return UtxoEntry(
        entry_id=kwargs.pop("entry_id", "tx"),
        timestamp=ts(1),
        inputs=[Participant(a, v) for a, v in inputs],
        outputs=[Participant(a, v) for a, v in outputs],
        currency="KAS",
        **kwargs,
    )


class TestParseAmount:
    def test_plain_values(self):
        assert parse_amount("1.5") == (Decimal("1.5"), False)
        assert parse_amount(7) == (Decimal("7"), False)
        assert parse_amount(0.1) == (Decimal("0.1"), False)

    def test_smallest_unit_scaling(self):
        amount, defaulted = parse_amount("123456789", decimals=8)
        assert amount == Decimal("1.23456789")
        assert not defaulted

    def test_large_integer_keeps_precision(self):
        amount, _ = parse_amount(str(10**30 + 1), decimals=18)
        assert amount == Decimal("1000000000000.000000000000000001")

    def test_malformed_defaults_to_zero(self):
        for raw in (None, "", "abc", "NaN", True, object()):
            assert parse_amount(raw) == (Decimal("0"), True)

    def test_truncate_address(self):
        assert truncate_address("abcdefghijkl") == "abcdefgh..."
        assert truncate_address("short") == "short"
        assert truncate_address("") == ""


class TestUtxoFlow:
    def test_send_with_fee(self, send_entry):
        flow = NetFlowCalculator().utxo(WALLET, send_entry)
        assert flow.sent == Decimal("10")
        assert flow.received == Decimal("0")
        assert flow.fee == Decimal("0.5")
        assert flow.sent_currency == "KAS"
        assert flow.counterparty == OTHER

    def test_coinbase(self, coinbase_entry):
        flow = NetFlowCalculator().utxo(WALLET, coinbase_entry)
        assert flow.is_coinbase
        assert flow.received == Decimal("5")
        assert flow.sent == Decimal("0")
        assert flow.fee == Decimal("0")

    def test_send_with_change(self):
        entry = utxo([(WALLET, "10")], [(OTHER, "6"), (WALLET, "3.9")])
        flow = NetFlowCalculator().utxo(WALLET, entry)
        assert flow.sent == Decimal("6.1")
        assert flow.fee == Decimal("0.1")
        assert flow.received == Decimal("0")

    def test_receive_does_not_charge_fee(self):
        entry = utxo([(OTHER, "10")], [(WALLET, "4"), (OTHER, "5.9")])
        flow = NetFlowCalculator().utxo(WALLET, entry)
        assert flow.received == Decimal("4")
        assert flow.sent == Decimal("0")
        assert flow.fee == Decimal("0")
        assert flow.counterparty == OTHER

    def test_self_payment_is_fee_only(self):
        entry = utxo([(WALLET, "10")], [(WALLET, "9.99")])
        flow = NetFlowCalculator().utxo(WALLET, entry)
        assert (flow.sent, flow.received, flow.fee) == (Decimal("0"), Decimal("0"), Decimal("0.01"))

    def test_not_involved_is_empty(self):
        entry = utxo([(OTHER, "10")], [(THIRD, "9")])
        assert NetFlowCalculator().utxo(WALLET, entry).is_empty

    def test_address_match_is_case_insensitive(self):
        entry = utxo([(WALLET.upper(), "10")], [(OTHER, "9.5")])
        assert NetFlowCalculator().utxo(WALLET, entry).sent == Decimal("10")

    def test_outputs_exceeding_inputs_flagged(self):
        entry = utxo([(WALLET, "5")], [(OTHER, "6")])
        flow = NetFlowCalculator().utxo(WALLET, entry)
        assert flow.fee == Decimal("0")
        assert AmbiguityReason.INCONSISTENT_AMOUNTS in flow.anomalies

    def test_malformed_amount_flagged(self):
        entry = utxo([(WALLET, "garbage")], [(OTHER, "1")])
        flow = NetFlowCalculator().utxo(WALLET, entry)
        assert AmbiguityReason.DEFAULTED_AMOUNT in flow.anomalies
        assert flow.sent >= 0 and flow.received >= 0 and flow.fee >= 0

    def test_smallest_units(self):
        entry = utxo([(WALLET, 1_000_000_000)], [(OTHER, 950_000_000)], decimals=8)
        flow = NetFlowCalculator().utxo(WALLET, entry)
        assert flow.sent == Decimal("10")
        assert flow.fee == Decimal("0.5")


class TestAccountFlow:
    def test_outgoing_transfer(self):
        entry = AccountEntry("a", ts(1), legs=[AssetDelta("DOT", "-4")], fee="0.02", fee_currency="DOT")
        flow = NetFlowCalculator().account(WALLET, entry)
        assert flow.sent == Decimal("4")
        assert flow.fee == Decimal("0.02")
        assert flow.received == Decimal("0")

    def test_incoming_transfer_fee_paid_by_sender(self):
        entry = AccountEntry(
            "a", ts(1), legs=[AssetDelta("DOT", "4")], fee="0.02", fee_currency="DOT", initiator=OTHER,
        )
        flow = NetFlowCalculator().account(WALLET, entry)
        assert flow.received == Decimal("4")
        assert flow.fee == Decimal("0")

    def test_fee_included_in_delta(self):
        entry = AccountEntry(
            "a", ts(1), legs=[AssetDelta("XRP", "-10.000012")], fee="0.000012",
            fee_currency="XRP", fee_in_delta=True,
        )
        flow = NetFlowCalculator().account(WALLET, entry)
        assert flow.sent == Decimal("10")
        assert flow.fee == Decimal("0.000012")

    def test_swap_legs(self, swap_entry):
        flow = NetFlowCalculator().account(WALLET, swap_entry)
        assert (flow.sent_currency, flow.sent) == ("OSMO", Decimal("100"))
        assert (flow.received_currency, flow.received) == ("ATOM", Decimal("12.5"))
        assert flow.fee == Decimal("0.01")

    def test_multi_asset_legs_keep_dominant(self):
        entry = AccountEntry(
            "a", ts(1), legs=[AssetDelta("A", "2"), AssetDelta("B", "5")], initiator=OTHER,
        )
        flow = NetFlowCalculator().account(WALLET, entry)
        assert flow.received_currency == "B"
        assert AmbiguityReason.MULTI_ASSET_LEGS in flow.anomalies

    def test_defaulted_leg(self):
        entry = AccountEntry("a", ts(1), legs=[AssetDelta("DOT", None)])
        flow = NetFlowCalculator().account(WALLET, entry)
        assert flow.is_empty
        assert flow.anomalies == (AmbiguityReason.DEFAULTED_AMOUNT,)


class TestDerivedRewards:
    def test_balance_increase_becomes_reward(self):
        snapshots = [BalanceSnapshot("d1", ts(1), "100"), BalanceSnapshot("d2", ts(2), "102")]
        rewards = DerivedRewardCalculator().infer(snapshots)
        assert len(rewards) == 1
        assert rewards[0].amount == Decimal("2")
        assert rewards[0].timestamp == ts(2)
        assert rewards[0].snapshot_id == "d2"

    def test_explicit_stake_netted_out(self):
        snapshots = [BalanceSnapshot("d1", ts(1), "100"), BalanceSnapshot("d2", ts(2), "150.3")]
        activity = [StakeActivity(ts(2, hour=3), "50")]
        rewards = DerivedRewardCalculator().infer(snapshots, activity)
        assert [r.amount for r in rewards] == [Decimal("0.3")]
        assert not rewards[0].implausible

    def test_unstake_netted_out(self):
        snapshots = [BalanceSnapshot("d1", ts(1), "100"), BalanceSnapshot("d2", ts(2), "60.2")]
        activity = [StakeActivity(ts(2), "40", is_stake=False)]
        rewards = DerivedRewardCalculator().infer(snapshots, activity)
        assert [r.amount for r in rewards] == [Decimal("0.2")]

    def test_decrease_and_noise_dropped(self):
        snapshots = [
            BalanceSnapshot("d1", ts(1), "100"),
            BalanceSnapshot("d2", ts(2), "99"),
            BalanceSnapshot("d3", ts(3), "99.00001"),
        ]
        assert DerivedRewardCalculator().infer(snapshots) == []

    def test_unsorted_snapshots(self):
        snapshots = [BalanceSnapshot("d2", ts(2), "100.2"), BalanceSnapshot("d1", ts(1), "100")]
        rewards = DerivedRewardCalculator().infer(snapshots)
        assert rewards[0].snapshot_id == "d2"

    def test_implausible_reward_flagged(self):
        snapshots = [BalanceSnapshot("d1", ts(1), "100"), BalanceSnapshot("d2", ts(2), "110")]
        (reward,) = DerivedRewardCalculator().infer(snapshots)
        assert reward.implausible
        assert AmbiguityReason.IMPLAUSIBLE_REWARD in reward.anomalies

    def test_single_snapshot(self):
        assert DerivedRewardCalculator().infer([BalanceSnapshot("d1", ts(1), "100")]) == []
