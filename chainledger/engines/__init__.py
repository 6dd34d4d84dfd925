"""Reconciliation engines: pricing, merge, ambiguity flagging and the wallet export."""

from chainledger.engines.ambiguity import AmbiguityDetector, PerpsAmbiguityDetector
from chainledger.engines.export import WalletExportEngine, filter_by_date_range
from chainledger.engines.pricing import CachedPriceSource, PriceEnricher, required_date_range
from chainledger.engines.reconciler import LedgerReconciler, merge_and_sort

__all__ = [
    "AmbiguityDetector",
    "CachedPriceSource",
    "LedgerReconciler",
    "PerpsAmbiguityDetector",
    "PriceEnricher",
    "WalletExportEngine",
    "filter_by_date_range",
    "merge_and_sort",
    "required_date_range",
]
