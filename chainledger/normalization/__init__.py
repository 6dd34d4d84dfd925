"""Normalization layer: raw entries -> net flow -> canonical records."""

from chainledger.normalization.classifier import EntryClassifier, EventClassifier
from chainledger.normalization.net_flow import DerivedRewardCalculator, NetFlowCalculator
from chainledger.normalization.perps import PerpsClassifier

__all__ = [
    "DerivedRewardCalculator",
    "EntryClassifier",
    "EventClassifier",
    "NetFlowCalculator",
    "PerpsClassifier",
]
