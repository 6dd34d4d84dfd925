"""Enumerations for chainledger."""

from enum import StrEnum


class TransactionType(StrEnum):
    TRANSFER_SENT = "transfer_sent"
    TRANSFER_RECEIVED = "transfer_received"
    TOKEN_SENT = "token_sent"
    TOKEN_RECEIVED = "token_received"
    NFT_SENT = "nft_sent"
    NFT_RECEIVED = "nft_received"
    NFT_PURCHASE = "nft_purchase"
    NFT_SALE = "nft_sale"
    STAKE = "stake"
    UNSTAKE = "unstake"
    BOND = "bond"
    UNBOND = "unbond"
    EMISSION_REWARD = "emission_reward"
    SLASH = "slash"
    SWAP = "swap"
    LIQUIDITY_ADD = "liquidity_add"
    LIQUIDITY_REMOVE = "liquidity_remove"
    AIRDROP = "airdrop"
    MINT = "mint"
    BURN = "burn"
    APPROVE = "approve"


class TaxTag(StrEnum):
    PAYMENT = "payment"
    WALLET_TRANSFER = "wallet_transfer"
    RECEIVE = "receive"
    STAKING_DEPOSIT = "staking_deposit"
    UNSTAKING_WITHDRAW = "unstaking_withdraw"
    CLAIM_REWARDS = "claim_rewards"
    LOST = "lost"
    TRADE = "trade"
    GIFT_SENT = "gift_sent"
    GIFT_RECEIVED = "gift_received"
    AIRDROP = "airdrop"


class PerpsTag(StrEnum):
    OPEN_POSITION = "open_position"
    CLOSE_POSITION = "close_position"
    FUNDING_PAYMENT = "funding_payment"


class Derivation(StrEnum):
    """How a classification was reached."""

    OBSERVED = "observed"
    DERIVED_REWARD = "derived_reward"
    INFERRED_POSITION = "inferred_position"
    ASSUMED_DIRECTION = "assumed_direction"


class AmbiguityReason(StrEnum):
    DEFAULTED_AMOUNT = "defaulted_amount"
    INCONSISTENT_AMOUNTS = "inconsistent_amounts"
    MULTI_ASSET_LEGS = "multi_asset_legs"
    UNKNOWN_HINT = "unknown_hint"
    UNCLASSIFIABLE_ENTRY = "unclassifiable_entry"
    SAME_CURRENCY_SWAP = "same_currency_swap"
    DERIVED_REWARD = "derived_reward"
    IMPLAUSIBLE_REWARD = "implausible_reward"
    INFERRED_POSITION = "inferred_position"
    LIQUIDATION = "liquidation"
    ZERO_VALUE_WITH_FEE = "zero_value_with_fee"
    UNRESOLVED_CURRENCY = "unresolved_currency"
    MISSING_FIAT_PRICE = "missing_fiat_price"
    AMOUNT_OUTLIER = "amount_outlier"
    ZERO_PNL_CLOSE = "zero_pnl_close"
    PNL_OUTLIER = "pnl_outlier"


class ErrorKind(StrEnum):
    NOT_FOUND = "not_found"
    RATE_LIMITED = "rate_limited"
    TRANSIENT = "transient"
    DATA_ANOMALY = "data_anomaly"
    PARTIAL_RESULT = "partial_result"


class AccountingMode(StrEnum):
    UTXO = "utxo"
    ACCOUNT = "account"
    DERIVED_STATE = "derived_state"
    PERPS = "perps"


class EntryKind(StrEnum):
    """Shape of the raw records a fetch category delivers."""

    UTXO = "utxo"
    ACCOUNT = "account"
    BALANCE_SNAPSHOT = "balance_snapshot"
    STAKE_ACTIVITY = "stake_activity"
    PERPS_FILL = "perps_fill"
    FUNDING_PAYMENT = "funding_payment"


class HintDomain(StrEnum):
    STAKING = "staking"
    PERPS = "perps"
    DEX = "dex"
    NFT = "nft"
    TOKEN = "token"


class ExportStatus(StrEnum):
    COMPLETE = "COMPLETE"
    PARTIAL = "PARTIAL"
    FAILED = "FAILED"
