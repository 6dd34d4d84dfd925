"""Closed per-domain lookup tables mapping source hints to canonical types.

Sources describe events with their own vocabulary: explorer categories
("token swap"), extrinsic call names ("bond_extra"), transaction types
("TrustSet"), contract event names ("PositionLiquidated"). Each domain
table maps the normalized form of those hints (lower-case, alphanumerics
only) to a canonical type and tax tag. New sources extend a table; they do
not add branches to the classifier.
"""

import re
from dataclasses import dataclass, field

from chainledger.models.enums import HintDomain, PerpsTag, TaxTag, TransactionType

_NON_ALNUM = re.compile(r"[^a-z0-9]")


def normalize_hint(hint: str | None) -> str:
    """Case-fold and strip separators: "Bond_Extra" and "bond extra" -> "bondextra"."""
    if not hint:
        return ""
    return _NON_ALNUM.sub("", hint.lower())


@dataclass(frozen=True)
class HintRule:
    type: TransactionType
    tag: TaxTag
    note: str = ""


@dataclass(frozen=True)
class HintTable:
    domain: HintDomain
    rules: dict[str, HintRule] = field(default_factory=dict)

    def lookup(self, hint: str | None) -> HintRule | None:
        return self.rules.get(normalize_hint(hint))


def _table(domain: HintDomain, entries: dict[str, tuple[TransactionType, TaxTag, str]]) -> HintTable:
    return HintTable(
        domain=domain,
        rules={normalize_hint(k): HintRule(t, tag, note) for k, (t, tag, note) in entries.items()},
    )


T = TransactionType
G = TaxTag

STAKING_HINTS = _table(HintDomain.STAKING, {
    "stake": (T.STAKE, G.STAKING_DEPOSIT, "Stake"),
    "add_stake": (T.STAKE, G.STAKING_DEPOSIT, "Stake"),
    "delegate": (T.STAKE, G.STAKING_DEPOSIT, "Delegation"),
    "ValidatorStake": (T.STAKE, G.STAKING_DEPOSIT, "Stake to validator"),
    "rebond": (T.STAKE, G.STAKING_DEPOSIT, "Rebonded (cancelled unstaking)"),
    "crowdloan_contribute": (T.STAKE, G.STAKING_DEPOSIT, "Crowdloan contribution"),
    "auction_bid": (T.STAKE, G.STAKING_DEPOSIT, "Auction bid"),
    "unstake": (T.UNSTAKE, G.UNSTAKING_WITHDRAW, "Unstake"),
    "remove_stake": (T.UNSTAKE, G.UNSTAKING_WITHDRAW, "Unstake"),
    "undelegate": (T.UNSTAKE, G.UNSTAKING_WITHDRAW, "Undelegation"),
    "ValidatorUnstake": (T.UNSTAKE, G.UNSTAKING_WITHDRAW, "Unstake from validator"),
    "withdraw_unbonded": (T.UNSTAKE, G.UNSTAKING_WITHDRAW, "Withdrew unbonded funds"),
    "bond": (T.BOND, G.STAKING_DEPOSIT, "Initial staking bond"),
    "bond_extra": (T.BOND, G.STAKING_DEPOSIT, "Add to staking bond"),
    "unbond": (T.UNBOND, G.UNSTAKING_WITHDRAW, "Unbonding started"),
    "Reward": (T.EMISSION_REWARD, G.CLAIM_REWARDS, "Staking reward"),
    "Rewarded": (T.EMISSION_REWARD, G.CLAIM_REWARDS, "Staking reward"),
    "payout_stakers": (T.EMISSION_REWARD, G.CLAIM_REWARDS, "Staking payout"),
    "claim_rewards": (T.EMISSION_REWARD, G.CLAIM_REWARDS, "Claimed rewards"),
    "withdraw_delegator_reward": (T.EMISSION_REWARD, G.CLAIM_REWARDS, "Claimed delegator reward"),
    "Slash": (T.SLASH, G.LOST, "Slashing penalty"),
    "Slashed": (T.SLASH, G.LOST, "Slashing penalty"),
    "crowdloan_refund": (T.TRANSFER_RECEIVED, G.RECEIVE, "Crowdloan refund"),
    "nominate": (T.APPROVE, G.PAYMENT, "Nomination"),
    "chill": (T.APPROVE, G.PAYMENT, "Stopped nominating"),
    "EscrowCreate": (T.STAKE, G.STAKING_DEPOSIT, "Escrow created"),
    "EscrowFinish": (T.UNSTAKE, G.UNSTAKING_WITHDRAW, "Escrow released"),
    "EscrowCancel": (T.UNSTAKE, G.UNSTAKING_WITHDRAW, "Escrow cancelled"),
})

DEX_HINTS = _table(HintDomain.DEX, {
    "swap": (T.SWAP, G.TRADE, "Swap"),
    "token swap": (T.SWAP, G.TRADE, "Token swap"),
    "swap_exact_amount_in": (T.SWAP, G.TRADE, "Swap"),
    "swap_exact_amount_out": (T.SWAP, G.TRADE, "Swap"),
    "OfferCreate": (T.SWAP, G.TRADE, "DEX offer filled"),
    "add_liquidity": (T.LIQUIDITY_ADD, G.STAKING_DEPOSIT, "Liquidity added"),
    "join_pool": (T.LIQUIDITY_ADD, G.STAKING_DEPOSIT, "Joined pool"),
    "AMMCreate": (T.LIQUIDITY_ADD, G.STAKING_DEPOSIT, "AMM pool created"),
    "AMMDeposit": (T.LIQUIDITY_ADD, G.STAKING_DEPOSIT, "AMM deposit"),
    "remove_liquidity": (T.LIQUIDITY_REMOVE, G.UNSTAKING_WITHDRAW, "Liquidity removed"),
    "exit_pool": (T.LIQUIDITY_REMOVE, G.UNSTAKING_WITHDRAW, "Exited pool"),
    "AMMWithdraw": (T.LIQUIDITY_REMOVE, G.UNSTAKING_WITHDRAW, "AMM withdrawal"),
    "approve": (T.APPROVE, G.PAYMENT, "Approval"),
    "revoke": (T.APPROVE, G.PAYMENT, "Approval revoked"),
    "TrustSet": (T.APPROVE, G.PAYMENT, "Trust line set"),
    "OfferCancel": (T.APPROVE, G.PAYMENT, "Offer cancelled"),
    "change_trust": (T.APPROVE, G.PAYMENT, "Trust line changed"),
})

NFT_HINTS = _table(HintDomain.NFT, {
    "nft purchase": (T.NFT_PURCHASE, G.PAYMENT, "NFT purchase"),
    "nft sale": (T.NFT_SALE, G.RECEIVE, "NFT sale"),
    "nft send": (T.NFT_SENT, G.GIFT_SENT, "NFT sent"),
    "nft receive": (T.NFT_RECEIVED, G.GIFT_RECEIVED, "NFT received"),
    "mint": (T.MINT, G.RECEIVE, "Mint"),
    "NFTokenMint": (T.MINT, G.RECEIVE, "NFT minted"),
    "burn": (T.BURN, G.LOST, "Burn"),
    "NFTokenBurn": (T.BURN, G.LOST, "NFT burned"),
    "NFTokenAcceptOffer": (T.SWAP, G.TRADE, "NFT offer accepted"),
    "NFTokenCreateOffer": (T.APPROVE, G.PAYMENT, "NFT offer created"),
    "NFTokenCancelOffer": (T.APPROVE, G.PAYMENT, "NFT offer cancelled"),
    "airdrop": (T.AIRDROP, G.AIRDROP, "Airdrop"),
})

TOKEN_HINTS = _table(HintDomain.TOKEN, {
    "token send": (T.TOKEN_SENT, G.PAYMENT, "Token sent"),
    "token receive": (T.TOKEN_RECEIVED, G.RECEIVE, "Token received"),
    "CheckCash": (T.TRANSFER_RECEIVED, G.RECEIVE, "Check cashed"),
    "Clawback": (T.BURN, G.LOST, "Clawback"),
    "AccountSet": (T.APPROVE, G.PAYMENT, "Account settings"),
    "SetRegularKey": (T.APPROVE, G.PAYMENT, "Regular key set"),
    "SignerListSet": (T.APPROVE, G.PAYMENT, "Signer list set"),
})

DEFAULT_TABLES: dict[HintDomain, HintTable] = {
    table.domain: table for table in (STAKING_HINTS, DEX_HINTS, NFT_HINTS, TOKEN_HINTS)
}


@dataclass(frozen=True)
class PerpsHintRule:
    tag: PerpsTag
    is_liquidation: bool = False
    note: str = ""


PERPS_HINTS: dict[str, PerpsHintRule] = {
    normalize_hint(k): v for k, v in {
        "PositionLiquidated": PerpsHintRule(PerpsTag.CLOSE_POSITION, True, "LIQUIDATION"),
        "LIQUIDATED": PerpsHintRule(PerpsTag.CLOSE_POSITION, True, "LIQUIDATION"),
        "LIQUIDATION": PerpsHintRule(PerpsTag.CLOSE_POSITION, True, "LIQUIDATION"),
        "DELEVERAGED": PerpsHintRule(PerpsTag.CLOSE_POSITION, True, "DELEVERAGED"),
        "PositionIncrease": PerpsHintRule(PerpsTag.OPEN_POSITION, note="Position increase"),
        "PositionDecrease": PerpsHintRule(PerpsTag.CLOSE_POSITION, note="Position decrease"),
        "ClaimFunding": PerpsHintRule(PerpsTag.FUNDING_PAYMENT, note="Funding claim"),
        "FundingPayment": PerpsHintRule(PerpsTag.FUNDING_PAYMENT, note="Funding payment"),
    }.items()
}
