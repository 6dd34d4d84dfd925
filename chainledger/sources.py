"""Per-source profiles.

A source is described by data, not code: its accounting mode, native unit
and precision, the fetch categories in authority order (most authoritative
first, so the reconciler keeps that category's record when two report the
same event), the hint tables its method/event names are looked up in, and
its request budget.
"""

from dataclasses import dataclass, field

from chainledger.exceptions import UnknownSourceError
from chainledger.ingestion.fetch import (
    BurstWindowLimiter,
    FixedDelayLimiter,
    RateLimiter,
    SlidingWindowLimiter,
    TokenBucketLimiter,
)
from chainledger.models.enums import AccountingMode, EntryKind, HintDomain


@dataclass(frozen=True)
class CategorySpec:
    name: str
    kind: EntryKind
    description: str = ""


@dataclass(frozen=True)
class RateBudget:
    """Request budget of one source. ``kind`` is fixed, burst, sliding or bucket."""

    kind: str = "fixed"
    interval: float = 0.0
    burst: int = 0
    window: float = 0.0
    rate: float = 0.0
    capacity: int = 0

    def build_limiter(self, **kwargs) -> RateLimiter:
        """kwargs (clock, sleep) are passed through to the limiter."""
        if self.kind == "fixed":
            return FixedDelayLimiter(self.interval, **kwargs)
        if self.kind == "burst":
            return BurstWindowLimiter(self.burst, self.window, **kwargs)
        if self.kind == "sliding":
            return SlidingWindowLimiter(self.burst, self.window, **kwargs)
        if self.kind == "bucket":
            return TokenBucketLimiter(self.rate, self.capacity, **kwargs)
        raise ValueError(f"Unknown rate budget kind: {self.kind}")


@dataclass(frozen=True)
class SourceProfile:
    name: str
    display_name: str
    mode: AccountingMode
    native_currency: str
    decimals: int
    categories: tuple[CategorySpec, ...]
    hint_domains: tuple[HintDomain, ...] = ()
    rate_budget: RateBudget = field(default_factory=RateBudget)
    max_concurrency: int = 4

    @property
    def category_names(self) -> list[str]:
        return [category.name for category in self.categories]

    def category(self, name: str) -> CategorySpec | None:
        for category in self.categories:
            if category.name == name:
                return category
        return None


U = EntryKind.UTXO
A = EntryKind.ACCOUNT

_SUBSTRATE_CATEGORIES = (
    CategorySpec("transfers", A, "balance transfers"),
    CategorySpec("rewards", A, "staking reward and slash events"),
    CategorySpec("extrinsics", A, "staking calls: bond, unbond, nominate, ..."),
    CategorySpec("crowdloans", A, "crowdloan contributions and refunds"),
)


def _profiles() -> dict[str, SourceProfile]:
    profiles = [
        SourceProfile(
            name="kaspa", display_name="Kaspa", mode=AccountingMode.UTXO,
            native_currency="KAS", decimals=8,
            categories=(CategorySpec("transactions", U),),
            rate_budget=RateBudget("fixed", interval=0.1),
        ),
        SourceProfile(
            name="ergo", display_name="Ergo", mode=AccountingMode.UTXO,
            native_currency="ERG", decimals=9,
            categories=(CategorySpec("transactions", U),),
            rate_budget=RateBudget("fixed", interval=0.1),
        ),
        SourceProfile(
            name="bittensor", display_name="Bittensor", mode=AccountingMode.DERIVED_STATE,
            native_currency="TAO", decimals=9,
            categories=(
                CategorySpec("transfers", A),
                CategorySpec("delegations", A, "stake / unstake events"),
                CategorySpec("stake_balance", EntryKind.BALANCE_SNAPSHOT, "staked balance history"),
            ),
            hint_domains=(HintDomain.STAKING,),
            rate_budget=RateBudget("burst", burst=5, window=62.0),
            max_concurrency=1,
        ),
        SourceProfile(
            name="kusama", display_name="Kusama", mode=AccountingMode.ACCOUNT,
            native_currency="KSM", decimals=12,
            categories=_SUBSTRATE_CATEGORIES,
            hint_domains=(HintDomain.STAKING,),
            rate_budget=RateBudget("bucket", rate=5.0, capacity=5),
        ),
        SourceProfile(
            name="polkadot", display_name="Polkadot", mode=AccountingMode.ACCOUNT,
            native_currency="DOT", decimals=10,
            categories=_SUBSTRATE_CATEGORIES,
            hint_domains=(HintDomain.STAKING,),
            rate_budget=RateBudget("bucket", rate=5.0, capacity=5),
        ),
        SourceProfile(
            name="ronin", display_name="Ronin", mode=AccountingMode.ACCOUNT,
            native_currency="RON", decimals=18,
            categories=(
                CategorySpec("transactions", A, "decoded wallet history"),
                CategorySpec("token_transfers", A),
                CategorySpec("nft_transfers", A),
            ),
            hint_domains=(HintDomain.NFT, HintDomain.DEX, HintDomain.TOKEN),
            rate_budget=RateBudget("sliding", burst=25, window=1.0),
        ),
        SourceProfile(
            name="xrpl", display_name="XRP Ledger", mode=AccountingMode.ACCOUNT,
            native_currency="XRP", decimals=6,
            categories=(CategorySpec("transactions", A),),
            hint_domains=(HintDomain.DEX, HintDomain.TOKEN, HintDomain.NFT, HintDomain.STAKING),
            rate_budget=RateBudget("fixed", interval=0.1),
        ),
        SourceProfile(
            name="osmosis", display_name="Osmosis", mode=AccountingMode.ACCOUNT,
            native_currency="OSMO", decimals=6,
            categories=(CategorySpec("transactions", A),),
            hint_domains=(HintDomain.DEX, HintDomain.STAKING),
            rate_budget=RateBudget("fixed", interval=0.2),
        ),
        SourceProfile(
            name="hedera", display_name="Hedera", mode=AccountingMode.ACCOUNT,
            native_currency="HBAR", decimals=8,
            categories=(CategorySpec("transactions", A),),
            hint_domains=(HintDomain.TOKEN, HintDomain.STAKING),
            rate_budget=RateBudget("fixed", interval=0.029),
        ),
        SourceProfile(
            name="stellar", display_name="Stellar", mode=AccountingMode.ACCOUNT,
            native_currency="XLM", decimals=7,
            categories=(CategorySpec("operations", A),),
            hint_domains=(HintDomain.DEX, HintDomain.TOKEN),
            rate_budget=RateBudget("fixed", interval=0.05),
        ),
        SourceProfile(
            name="dydx", display_name="dYdX", mode=AccountingMode.PERPS,
            native_currency="USDC", decimals=0,
            categories=(
                CategorySpec("fills", EntryKind.PERPS_FILL),
                CategorySpec("funding", EntryKind.FUNDING_PAYMENT),
            ),
            rate_budget=RateBudget("fixed", interval=0.1),
        ),
        SourceProfile(
            name="gmx", display_name="GMX", mode=AccountingMode.PERPS,
            native_currency="USDC", decimals=0,
            categories=(
                CategorySpec("trades", EntryKind.PERPS_FILL),
                CategorySpec("claims", EntryKind.FUNDING_PAYMENT),
            ),
            rate_budget=RateBudget("fixed", interval=0.2),
        ),
        SourceProfile(
            name="extended", display_name="Extended", mode=AccountingMode.PERPS,
            native_currency="USDC", decimals=0,
            categories=(
                CategorySpec("trades", EntryKind.PERPS_FILL),
                CategorySpec("funding", EntryKind.FUNDING_PAYMENT),
            ),
            rate_budget=RateBudget("fixed", interval=0.1),
        ),
    ]
    return {profile.name: profile for profile in profiles}


SOURCES: dict[str, SourceProfile] = _profiles()


def get_profile(name: str) -> SourceProfile:
    try:
        return SOURCES[name.strip().lower()]
    except KeyError:
        raise UnknownSourceError(name) from None
