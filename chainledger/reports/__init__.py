"""Report generation for chainledger."""

from chainledger.reports.rows import ledger_row, perps_row
from chainledger.reports.summary import SummaryReportGenerator, summarize_ledger, summarize_perps

__all__ = [
    "SummaryReportGenerator",
    "ledger_row",
    "perps_row",
    "summarize_ledger",
    "summarize_perps",
]
