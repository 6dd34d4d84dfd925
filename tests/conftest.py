"""Shared test fixtures for chainledger."""

from datetime import UTC, datetime
from decimal import Decimal

import pytest

from chainledger.models.enums import Derivation, PerpsTag, TaxTag, TransactionType
from chainledger.models.raw import AccountEntry, AssetDelta, Participant, PerpsFill, UtxoEntry
from chainledger.models.transaction import CanonicalTransaction, PerpsTransaction

WALLET = "kaspa:qrwallet0000000000000000000000000000000000000000000000000"
OTHER = "kaspa:qrother00000000000000000000000000000000000000000000000000"
THIRD = "kaspa:qrthird00000000000000000000000000000000000000000000000000"


class FakeClock:
    """Monotonic clock whose ``sleep`` advances time instead of blocking."""

    def __init__(self, start: float = 1000.0):
        self.now = start
        self.sleeps: list[float] = []

    def __call__(self) -> float:
        return self.now

    def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds

    def advance(self, seconds: float) -> None:
        self.now += seconds


def ts(day: int, hour: int = 12, month: int = 3, year: int = 2024) -> datetime:
    return datetime(year, month, day, hour, 0, tzinfo=UTC)


def make_tx(
    tx_id: str,
    when: datetime,
    tx_type: TransactionType = TransactionType.TRANSFER_RECEIVED,
    tag: TaxTag = TaxTag.RECEIVE,
    **kwargs,
) -> CanonicalTransaction:
    if "sent_amount" not in kwargs and "received_amount" not in kwargs:
        kwargs["received_amount"] = Decimal("1")
        kwargs.setdefault("received_currency", "KAS")
    kwargs.setdefault("fee_currency", "KAS")
    return CanonicalTransaction(id=tx_id, timestamp=when, type=tx_type, tag=tag, **kwargs)


def make_perps(tx_id: str, when: datetime, pnl: str = "0", tag: PerpsTag = PerpsTag.CLOSE_POSITION, **kwargs):
    kwargs.setdefault("derivation", Derivation.OBSERVED)
    return PerpsTransaction(
        id=tx_id, timestamp=when, asset="BTC", amount=Decimal("1"), pnl=Decimal(pnl), tag=tag, **kwargs
    )


@pytest.fixture
def wallet() -> str:
    return WALLET


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def send_entry() -> UtxoEntry:
    """10 KAS in from the wallet, 9.5 KAS out to someone else."""
    return UtxoEntry(
        entry_id="tx-send",
        timestamp=ts(1),
        inputs=[Participant(WALLET, "10")],
        outputs=[Participant(OTHER, "9.5")],
        currency="KAS",
        transaction_hash="hash-send",
    )


@pytest.fixture
def coinbase_entry() -> UtxoEntry:
    return UtxoEntry(
        entry_id="tx-coinbase",
        timestamp=ts(2),
        inputs=[],
        outputs=[Participant(WALLET, "5")],
        currency="KAS",
    )


@pytest.fixture
def swap_entry() -> AccountEntry:
    return AccountEntry(
        entry_id="tx-swap",
        timestamp=ts(3),
        legs=[AssetDelta("OSMO", "-100"), AssetDelta("ATOM", "12.5")],
        fee="0.01",
        fee_currency="OSMO",
        initiator=WALLET,
        hint="swap_exact_amount_in",
    )


@pytest.fixture
def open_fill() -> PerpsFill:
    return PerpsFill(
        fill_id="fill-1",
        timestamp=ts(4),
        market="BTC-USD",
        size="0.5",
        fee="1.25",
        realized_pnl="0",
        side="buy",
        price="65000",
    )
