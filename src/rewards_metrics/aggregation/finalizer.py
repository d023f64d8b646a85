"""Finalization pass: turn running aggregates into rankings and averages.

Runs exactly once, after the last record has been accumulated. Sorting
uses float conversions of the Decimal totals as the sort key: only the
relative order is float-derived, the stored values stay exact Decimals.
Ties keep input order (Python's sort is stable), so identical input
always produces identical output.
"""

from collections.abc import Callable
from decimal import Decimal
from typing import TypeVar

from rewards_metrics.aggregation.models import (
    ZERO,
    AggregateState,
    CoinDistributionRow,
    RankingLevels,
    RewardsMetrics,
)
from rewards_metrics.exceptions import ReportAlreadyFinalizedError
from rewards_metrics.logging import get_logger

logger = get_logger(__name__)

T = TypeVar("T")

# 1-indexed rank -> RankingLevels field
RANK_LEVELS: tuple[tuple[int, str], ...] = (
    (1, "top_one"),
    (10, "top_ten"),
    (100, "top_hundred"),
    (1000, "top_thousand"),
    (10000, "top_ten_thousand"),
)

DEFAULT_TOP_HOLDERS_LIMIT = 500000


def sort_descending(items: list[T], key: Callable[[T], Decimal]) -> list[T]:
    """Return items sorted by key, largest first, ties in original order."""
    return sorted(items, key=lambda item: float(key(item)), reverse=True)


def extract_ranking_levels(sorted_values: list[Decimal]) -> RankingLevels:
    """Read rank markers and the median from a descending list of values.

    Ranks past the end of the list keep the zero marker; an empty list
    yields all zeros. The median is the value at index ``len // 2``.
    """
    levels = RankingLevels()
    for rank, name in RANK_LEVELS:
        if rank <= len(sorted_values):
            setattr(levels, name, sorted_values[rank - 1])
    if sorted_values:
        levels.median_value = sorted_values[len(sorted_values) // 2]
    return levels


def safe_average(total: Decimal | int, count: int) -> Decimal:
    """Divide total by count, returning zero when count is zero."""
    if count == 0:
        return ZERO
    return Decimal(total) / Decimal(count)


def finalize(
    state: AggregateState,
    top_holders_limit: int = DEFAULT_TOP_HOLDERS_LIMIT,
) -> RewardsMetrics:
    """Sort, rank, cap, and average the aggregate in place.

    Args:
        state: Fully accumulated state. Must not be a partial, aborted run.
        top_holders_limit: Maximum rows kept per coin distribution list.

    Returns:
        The finalized RewardsMetrics report (the state's own metrics object).

    Raises:
        ReportAlreadyFinalizedError: If the state was already finalized.
    """
    if state.finalized:
        raise ReportAlreadyFinalizedError("report has already been finalized")

    metrics = state.metrics
    stats = metrics.stats

    for coin, rows in metrics.coin_distributions.items():
        sorted_rows: list[CoinDistributionRow] = sort_descending(rows, key=lambda row: row.total)
        metrics.coin_distributions_levels[coin] = extract_ranking_levels(
            [row.total for row in sorted_rows]
        )
        metrics.coin_distributions[coin] = sorted_rows[:top_holders_limit]

    sorted_interest = sort_descending(state.interest_earned_per_user, key=lambda value: value)
    state.interest_earned_per_user = sorted_interest
    metrics.interest_earned_rankings = extract_ranking_levels(sorted_interest)

    stats.average_number_of_coins_per_user = safe_average(
        stats.total_portfolio_coin_positions, stats.total_users
    )
    stats.average_interest_per_user = safe_average(
        stats.total_interest_paid_in_usd, stats.total_users
    )

    state.finalized = True

    logger.info(
        "finalize_complete",
        coins=len(metrics.portfolio),
        users=stats.total_users,
        total_interest_paid_in_usd=str(stats.total_interest_paid_in_usd),
        records_missing_baseline=state.records_missing_baseline,
    )
    return metrics
