"""Raw ledger entries handed over by source adapters.

These are deliberately plain dataclasses rather than validated models: the
amount fields hold whatever the upstream API delivered (int, str, Decimal,
None, garbage) and are parsed leniently by the net-flow calculator, which
defaults malformed values to zero and records the substitution.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any


@dataclass(frozen=True)
class Participant:
    """One side of a UTXO-style transaction: an address and its amount."""

    address: str
    amount: Any


@dataclass(frozen=True)
class UtxoEntry:
    entry_id: str
    timestamp: datetime
    inputs: list[Participant] = field(default_factory=list)
    outputs: list[Participant] = field(default_factory=list)
    currency: str = ""
    decimals: int = 0
    hint: str | None = None
    transaction_hash: str = ""
    accepted: bool = True


@dataclass(frozen=True)
class AssetDelta:
    """A signed balance change of one currency for the wallet."""

    currency: str
    amount: Any


@dataclass(frozen=True)
class AccountEntry:
    entry_id: str
    timestamp: datetime
    legs: list[AssetDelta] = field(default_factory=list)
    fee: Any = 0
    fee_currency: str = ""
    fee_in_delta: bool = False
    initiator: str | None = None
    hint: str | None = None
    counterparty: str = ""
    transaction_hash: str = ""
    decimals: int = 0


@dataclass(frozen=True)
class BalanceSnapshot:
    """Staked (or otherwise derived) balance observed at a point in time."""

    snapshot_id: str
    timestamp: datetime
    balance: Any
    decimals: int = 0


@dataclass(frozen=True)
class StakeActivity:
    """An explicit stake/unstake used to net out derived balance changes."""

    timestamp: datetime
    amount: Any
    is_stake: bool = True
    decimals: int = 0


@dataclass(frozen=True)
class PerpsFill:
    fill_id: str
    timestamp: datetime
    market: str
    size: Any
    fee: Any = 0
    realized_pnl: Any = 0
    hint: str | None = None
    is_liquidation: bool = False
    side: str = ""
    price: Any = None
    payment_token: str = "USDC"
    transaction_hash: str = ""


@dataclass(frozen=True)
class FundingPayment:
    payment_id: str
    timestamp: datetime
    market: str
    payment: Any
    position_size: Any = 0
    rate: Any = None
    payment_token: str = "USDC"
    hint: str | None = None


RawLedgerEntry = UtxoEntry | AccountEntry | BalanceSnapshot | StakeActivity | PerpsFill | FundingPayment
