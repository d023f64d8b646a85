"""Merging of independently accumulated partitions.

Input may be partitioned by user and each partition accumulated into its
own AggregateState. ``merge_states`` combines them before the finalizer
runs once over the result: sums add, maxima take the maximum, lists
concatenate in partition order.
"""

from dataclasses import replace

from rewards_metrics.aggregation.models import AggregateState, RewardsMetrics
from rewards_metrics.exceptions import ReportAlreadyFinalizedError


def merge_states(left: AggregateState, right: AggregateState) -> AggregateState:
    """Combine two unfinalized partition states into a new state.

    Neither input is modified. Distribution rows and per-user interest
    values keep left-then-right order, which only matters for tie order
    when the merged state is sorted.

    Raises:
        ReportAlreadyFinalizedError: If either state was already finalized.
    """
    if left.finalized or right.finalized:
        raise ReportAlreadyFinalizedError("finalized states cannot be merged")

    left_metrics = left.metrics
    right_metrics = right.metrics

    portfolio = {coin: replace(entry) for coin, entry in left_metrics.portfolio.items()}
    for coin, entry in right_metrics.portfolio.items():
        existing = portfolio.get(coin)
        portfolio[coin] = replace(entry) if existing is None else existing.merge(entry)

    coin_distributions = {coin: list(rows) for coin, rows in left_metrics.coin_distributions.items()}
    for coin, rows in right_metrics.coin_distributions.items():
        coin_distributions.setdefault(coin, []).extend(rows)

    merged = RewardsMetrics(
        portfolio=portfolio,
        coin_distributions=coin_distributions,
        loyalty_tier_summary=left_metrics.loyalty_tier_summary.merge(
            right_metrics.loyalty_tier_summary
        ),
        stats=left_metrics.stats.merge(right_metrics.stats),
    )

    return AggregateState(
        metrics=merged,
        interest_earned_per_user=[
            *left.interest_earned_per_user,
            *right.interest_earned_per_user,
        ],
        records_missing_baseline=left.records_missing_baseline + right.records_missing_baseline,
    )
