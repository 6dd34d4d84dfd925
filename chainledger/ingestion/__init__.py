"""Ingestion: source adapters and the rate-limited fetch contract they share."""

from chainledger.ingestion.base import DateRange, FetchResult, Page, SourceAdapter
from chainledger.ingestion.cache import ExportCache
from chainledger.ingestion.fetch import FetchOrchestrator

__all__ = [
    "DateRange",
    "ExportCache",
    "FetchOrchestrator",
    "FetchResult",
    "Page",
    "SourceAdapter",
]
