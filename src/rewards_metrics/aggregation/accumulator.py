"""Streaming accumulation of per-user rewards records.

``accumulate`` folds one user's coin records into an AggregateState. It is
called once per input line, strictly in file order, and never suspends.
Data anomalies inside a record (unknown loyalty tier, missing opening
balance) are logged and absorbed here; they never abort a run.

Two coins are bookkept per record: the holding coin receives the balance
and ledger sums, the interest coin receives the reported interest. They
can be the same PortfolioEntry or two different ones.
"""

from dataclasses import dataclass
from decimal import Decimal, localcontext

from rewards_metrics.aggregation.models import (
    EXACT_CONTEXT,
    ZERO,
    AggregateState,
    CoinDistributionRow,
)
from rewards_metrics.exceptions import ReportAlreadyFinalizedError
from rewards_metrics.logging import get_logger
from rewards_metrics.models import CoinRecord, LedgerEntry, LedgerKind, LoyaltyTier

logger = get_logger(__name__)


@dataclass
class LedgerSummary:
    """Sums over one holding's ledger, by entry kind."""

    current_balance: Decimal = ZERO
    collateral_locked: Decimal = ZERO  # sum of negative collateral movements
    collateral_unlocked: Decimal = ZERO  # sum of positive collateral movements
    withdrawals: Decimal = ZERO
    deposits: Decimal = ZERO
    rewards: Decimal = ZERO
    opening_balance: Decimal = ZERO
    has_opening_balance: bool = False


def summarize_ledger(entries: list[LedgerEntry]) -> LedgerSummary:
    """Walk a holding's ledger once and sum it by kind.

    The current balance is the balance carried by the last entry; entries
    are trusted to hold correct running balances. The opening balance is
    the amount of the opening-balance entry (the last one, should several
    appear), not a sum. An empty ledger summarizes to all zeros.

    Args:
        entries: Ledger entries in chronological order.

    Returns:
        LedgerSummary for the holding.
    """
    summary = LedgerSummary()
    if entries:
        summary.current_balance = entries[-1].new_balance

    with localcontext(EXACT_CONTEXT):
        for entry in entries:
            kind = entry.kind
            amount = entry.amount
            if kind == LedgerKind.COLLATERAL:
                if amount < ZERO:
                    summary.collateral_locked += amount
                elif amount > ZERO:
                    summary.collateral_unlocked += amount
            elif kind == LedgerKind.WITHDRAWAL:
                summary.withdrawals += amount
            elif kind == LedgerKind.DEPOSIT:
                summary.deposits += amount
            elif kind == LedgerKind.INTEREST:
                summary.rewards += amount
            elif kind == LedgerKind.OPENING_BALANCE:
                summary.opening_balance = amount
                summary.has_opening_balance = True

    return summary


def match_loyalty_tier(label: str) -> LoyaltyTier | None:
    """Map a tier title to its bucket, case-insensitively; None if unknown."""
    try:
        return LoyaltyTier(label.strip().lower())
    except ValueError:
        return None


def accumulate(user_id: str, records: list[CoinRecord], state: AggregateState) -> None:
    """Fold one user's coin records into the aggregate state.

    Args:
        user_id: The user identifier from the input line.
        records: The user's coin records, in input order.
        state: Aggregate state to mutate.

    Raises:
        ReportAlreadyFinalizedError: If the state has already been finalized.
    """
    if state.finalized:
        raise ReportAlreadyFinalizedError(
            f"cannot accumulate user {user_id!r} into a finalized report"
        )

    with localcontext(EXACT_CONTEXT):
        _fold_user(user_id, records, state)


def _fold_user(user_id: str, records: list[CoinRecord], state: AggregateState) -> None:
    metrics = state.metrics
    stats = metrics.stats
    interest_per_user = ZERO
    is_earning_in_cel = False
    tier_label = ""

    for record in records:
        coin = record.holding_coin
        interest_coin = record.resolved_interest_coin
        tier_label = record.loyalty_tier

        # Both lookups before any update: they may return the same entry
        holding_entry = metrics.portfolio_entry(coin)
        interest_entry = metrics.portfolio_entry(interest_coin)

        ledger = summarize_ledger(record.ledger)
        if not ledger.has_opening_balance:
            state.records_missing_baseline += 1
            logger.debug("missing_opening_balance", user_id=user_id, coin=coin)

        metrics.coin_distributions.setdefault(coin, []).append(
            CoinDistributionRow(
                uuid=user_id,
                total=ledger.collateral_locked + ledger.current_balance,
                balance=ledger.current_balance,
                collateral_locked=ledger.collateral_locked,
                collateral_unlocked=ledger.collateral_unlocked,
                withdrawal=ledger.withdrawals,
                deposit=ledger.deposits,
                rewards=ledger.rewards,
                initial_balance=ledger.opening_balance,
            )
        )

        holding_entry.total += ledger.current_balance
        holding_entry.number_of_users_holding += 1
        holding_entry.withdrawals += ledger.withdrawals
        holding_entry.deposits += ledger.deposits
        holding_entry.collaterals_locked += ledger.collateral_locked
        holding_entry.collaterals_unlocked += ledger.collateral_unlocked
        holding_entry.rewards += ledger.rewards

        # A user earning in CEL on any one coin counts as earning in CEL
        if record.is_earning_in_cel:
            holding_entry.total_earn_in_cel += 1
            is_earning_in_cel = True

        interest_entry.total_interest_in_coin += record.total_interest_in_coin
        interest_entry.total_interest_in_usd += record.total_interest_in_usd

        interest_per_user += record.total_interest_in_usd
        stats.total_interest_paid_in_usd += record.total_interest_in_usd

    state.interest_earned_per_user.append(interest_per_user)
    if interest_per_user > stats.max_interest_earned:
        stats.max_interest_earned = interest_per_user

    stats.total_users += 1
    stats.total_portfolio_coin_positions += len(records)
    if len(records) > stats.maximum_portfolio_size:
        stats.maximum_portfolio_size = len(records)

    if is_earning_in_cel:
        stats.total_users_earning_in_cel += 1

    tier = match_loyalty_tier(tier_label)
    if tier is None:
        metrics.loyalty_tier_summary.uncategorized += 1
        logger.warning("unexpected_loyalty_tier", tier=tier_label, user_id=user_id)
    else:
        metrics.loyalty_tier_summary.increment(tier)
