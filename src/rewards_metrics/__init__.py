"""Streaming aggregation of per-user rewards exports into a metrics report.

Decodes one user per line, accumulates portfolio totals, holder
distributions, loyalty tiers and interest statistics, and finalizes them
into rankings and averages once the whole export has been read.
"""

from rewards_metrics.aggregation import (
    AggregateState,
    RewardsMetrics,
    accumulate,
    finalize,
    merge_states,
)
from rewards_metrics.decoder import DecodedRow, decode_line
from rewards_metrics.exceptions import (
    MalformedRecordError,
    ReportAlreadyFinalizedError,
    RewardsMetricsError,
)
from rewards_metrics.models import CoinRecord, LedgerEntry
from rewards_metrics.runner import RewardsPipeline, run_report

__all__ = [
    "AggregateState",
    "CoinRecord",
    "DecodedRow",
    "LedgerEntry",
    "MalformedRecordError",
    "ReportAlreadyFinalizedError",
    "RewardsMetrics",
    "RewardsMetricsError",
    "RewardsPipeline",
    "accumulate",
    "decode_line",
    "finalize",
    "merge_states",
    "run_report",
]
