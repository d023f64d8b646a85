"""Aggregation core: streaming accumulation, partition merge, and finalization.

The accumulator folds decoded user records into an AggregateState one at a
time; the finalizer runs once over the complete state to produce the
sorted, ranked RewardsMetrics report.
"""

from rewards_metrics.aggregation.accumulator import (
    LedgerSummary,
    accumulate,
    match_loyalty_tier,
    summarize_ledger,
)
from rewards_metrics.aggregation.finalizer import (
    RANK_LEVELS,
    extract_ranking_levels,
    finalize,
    safe_average,
)
from rewards_metrics.aggregation.merge import merge_states
from rewards_metrics.aggregation.models import (
    AggregateState,
    CoinDistributionRow,
    GlobalStats,
    LoyaltyTierSummary,
    PortfolioEntry,
    RankingLevels,
    RewardsMetrics,
)

__all__ = [
    "AggregateState",
    "CoinDistributionRow",
    "GlobalStats",
    "LedgerSummary",
    "LoyaltyTierSummary",
    "PortfolioEntry",
    "RANK_LEVELS",
    "RankingLevels",
    "RewardsMetrics",
    "accumulate",
    "extract_ranking_levels",
    "finalize",
    "match_loyalty_tier",
    "merge_states",
    "safe_average",
    "summarize_ledger",
]
