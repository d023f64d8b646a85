"""Aggregate state and report models for the rewards metrics pipeline.

The same structures serve as the running aggregate during streaming and as
the final report once the finalizer has sorted and ranked them. Presentation
layers may read them but never mutate them.

All monetary values use Decimal exclusively. Counts are Python ints, which
are exact at any size. Everything is serialized as strings by ``to_dict``,
never as binary floats.
"""

from dataclasses import dataclass, field
from decimal import (
    MAX_PREC,
    Context,
    Decimal,
    DivisionByZero,
    Inexact,
    InvalidOperation,
    Overflow,
    localcontext,
)

from rewards_metrics.models import LoyaltyTier

ZERO = Decimal("0")

# Running sums are exact: no rounding at any digit count, and a rounded
# result raises instead of passing silently
EXACT_CONTEXT = Context(
    prec=MAX_PREC,
    traps=[InvalidOperation, DivisionByZero, Overflow, Inexact],
)


def format_decimal(value: Decimal | int) -> str:
    """Render a Decimal or int as a plain positional string (no exponent)."""
    if isinstance(value, int):
        return str(value)
    return format(value, "f")


@dataclass
class PortfolioEntry:
    """Running totals across all users for one coin symbol.

    ``total`` and the ledger sums come from records holding this coin.
    ``total_interest_in_coin`` and ``total_interest_in_usd`` come from
    records paying interest in this coin, which may be other holdings.
    """

    total: Decimal = ZERO
    total_earn_in_cel: int = 0  # holders of this coin earning in CEL
    total_interest_in_coin: Decimal = ZERO
    total_interest_in_usd: Decimal = ZERO
    number_of_users_holding: int = 0
    collaterals_locked: Decimal = ZERO
    collaterals_unlocked: Decimal = ZERO
    withdrawals: Decimal = ZERO
    deposits: Decimal = ZERO
    rewards: Decimal = ZERO  # interest payout ledger entries on this holding

    def merge(self, other: "PortfolioEntry") -> "PortfolioEntry":
        """Return a new entry with every field of both entries added."""
        with localcontext(EXACT_CONTEXT):
            return PortfolioEntry(
                total=self.total + other.total,
                total_earn_in_cel=self.total_earn_in_cel + other.total_earn_in_cel,
                total_interest_in_coin=self.total_interest_in_coin + other.total_interest_in_coin,
                total_interest_in_usd=self.total_interest_in_usd + other.total_interest_in_usd,
                number_of_users_holding=self.number_of_users_holding + other.number_of_users_holding,
                collaterals_locked=self.collaterals_locked + other.collaterals_locked,
                collaterals_unlocked=self.collaterals_unlocked + other.collaterals_unlocked,
                withdrawals=self.withdrawals + other.withdrawals,
                deposits=self.deposits + other.deposits,
                rewards=self.rewards + other.rewards,
            )

    def to_dict(self) -> dict:
        return {
            "total": format_decimal(self.total),
            "totalEarnInCEL": format_decimal(self.total_earn_in_cel),
            "totalInterestInCoin": format_decimal(self.total_interest_in_coin),
            "totalInterestInUsd": format_decimal(self.total_interest_in_usd),
            "numberOfUsersHolding": format_decimal(self.number_of_users_holding),
            "collaterals_locked": format_decimal(self.collaterals_locked),
            "collaterals_unlocked": format_decimal(self.collaterals_unlocked),
            "withdrawals": format_decimal(self.withdrawals),
            "deposits": format_decimal(self.deposits),
            "rewards": format_decimal(self.rewards),
        }


@dataclass
class CoinDistributionRow:
    """One user's snapshot for one coin, used only for rankings."""

    uuid: str
    total: Decimal  # locked collateral + balance
    balance: Decimal
    collateral_locked: Decimal
    collateral_unlocked: Decimal
    withdrawal: Decimal
    deposit: Decimal
    rewards: Decimal
    initial_balance: Decimal

    def to_dict(self) -> dict:
        return {
            "uuid": self.uuid,
            "total": format_decimal(self.total),
            "balance": format_decimal(self.balance),
            "collateral_locked": format_decimal(self.collateral_locked),
            "collateral_unlocked": format_decimal(self.collateral_unlocked),
            "withdrawal": format_decimal(self.withdrawal),
            "deposit": format_decimal(self.deposit),
            "rewards": format_decimal(self.rewards),
            "initialBalance": format_decimal(self.initial_balance),
        }


@dataclass
class RankingLevels:
    """Values held at fixed ranks of a descending population, plus the median.

    A rank beyond the population size keeps the zero marker.
    """

    top_one: Decimal = ZERO
    top_ten: Decimal = ZERO
    top_hundred: Decimal = ZERO
    top_thousand: Decimal = ZERO
    top_ten_thousand: Decimal = ZERO
    median_value: Decimal = ZERO

    def to_dict(self) -> dict:
        return {
            "topOne": format_decimal(self.top_one),
            "topTen": format_decimal(self.top_ten),
            "topHundred": format_decimal(self.top_hundred),
            "topThousand": format_decimal(self.top_thousand),
            "topTenThousand": format_decimal(self.top_ten_thousand),
            "medianValue": format_decimal(self.median_value),
        }


@dataclass
class LoyaltyTierSummary:
    """Users per loyalty tier.

    Tier labels are taken verbatim from the export. A large share of users
    reports "none" even where the CEL earning rate suggests otherwise; that
    is a known data-quality caveat of the source, not corrected here.
    """

    platinum: int = 0
    gold: int = 0
    silver: int = 0
    bronze: int = 0
    none: int = 0
    uncategorized: int = 0  # labels outside the five buckets

    def increment(self, tier: LoyaltyTier) -> None:
        setattr(self, tier.value, getattr(self, tier.value) + 1)

    def merge(self, other: "LoyaltyTierSummary") -> "LoyaltyTierSummary":
        return LoyaltyTierSummary(
            platinum=self.platinum + other.platinum,
            gold=self.gold + other.gold,
            silver=self.silver + other.silver,
            bronze=self.bronze + other.bronze,
            none=self.none + other.none,
            uncategorized=self.uncategorized + other.uncategorized,
        )

    def to_dict(self) -> dict:
        return {
            "platinum": str(self.platinum),
            "gold": str(self.gold),
            "silver": str(self.silver),
            "bronze": str(self.bronze),
            "none": str(self.none),
            "uncategorized": str(self.uncategorized),
        }


@dataclass
class GlobalStats:
    """Population-wide running totals and, after finalization, averages."""

    total_users: int = 0
    total_users_earning_in_cel: int = 0
    maximum_portfolio_size: int = 0
    total_portfolio_coin_positions: int = 0
    total_interest_paid_in_usd: Decimal = ZERO
    max_interest_earned: Decimal = ZERO
    # Derived by the finalizer; zero when no users were processed
    average_number_of_coins_per_user: Decimal = ZERO
    average_interest_per_user: Decimal = ZERO

    def merge(self, other: "GlobalStats") -> "GlobalStats":
        """Sum the running totals and keep the larger of each maximum."""
        with localcontext(EXACT_CONTEXT):
            return GlobalStats(
                total_users=self.total_users + other.total_users,
                total_users_earning_in_cel=(
                    self.total_users_earning_in_cel + other.total_users_earning_in_cel
                ),
                maximum_portfolio_size=max(
                    self.maximum_portfolio_size, other.maximum_portfolio_size
                ),
                total_portfolio_coin_positions=(
                    self.total_portfolio_coin_positions + other.total_portfolio_coin_positions
                ),
                total_interest_paid_in_usd=(
                    self.total_interest_paid_in_usd + other.total_interest_paid_in_usd
                ),
                max_interest_earned=max(self.max_interest_earned, other.max_interest_earned),
            )

    def to_dict(self) -> dict:
        return {
            "totalUsers": format_decimal(self.total_users),
            "totalUsersEarningInCel": format_decimal(self.total_users_earning_in_cel),
            "maximumPortfolioSize": format_decimal(self.maximum_portfolio_size),
            "averageNumberOfCoinsPerUser": format_decimal(
                self.average_number_of_coins_per_user
            ),
            "totalPortfolioCoinPositions": format_decimal(
                self.total_portfolio_coin_positions
            ),
            "totalInterestPaidInUsd": format_decimal(self.total_interest_paid_in_usd),
            "maxInterestEarned": format_decimal(self.max_interest_earned),
            "averageInterestPerUser": format_decimal(self.average_interest_per_user),
        }


@dataclass
class RewardsMetrics:
    """The aggregate report.

    During streaming only ``portfolio``, ``coin_distributions`` (in input
    order), ``loyalty_tier_summary`` and the running ``stats`` are filled.
    The finalizer sorts and caps the distributions and fills the rankings
    and averages.
    """

    portfolio: dict[str, PortfolioEntry] = field(default_factory=dict)
    coin_distributions: dict[str, list[CoinDistributionRow]] = field(default_factory=dict)
    coin_distributions_levels: dict[str, RankingLevels] = field(default_factory=dict)
    interest_earned_rankings: RankingLevels = field(default_factory=RankingLevels)
    loyalty_tier_summary: LoyaltyTierSummary = field(default_factory=LoyaltyTierSummary)
    stats: GlobalStats = field(default_factory=GlobalStats)

    def portfolio_entry(self, coin: str) -> PortfolioEntry:
        """Get the portfolio entry for a coin, inserting a zeroed one on first sight."""
        entry = self.portfolio.get(coin)
        if entry is None:
            entry = PortfolioEntry()
            self.portfolio[coin] = entry
        return entry

    def to_dict(self) -> dict:
        """Serialize to a JSON-ready dict with every number as a string."""
        return {
            "portfolio": {coin: entry.to_dict() for coin, entry in self.portfolio.items()},
            "coinDistributions": {
                coin: [row.to_dict() for row in rows]
                for coin, rows in self.coin_distributions.items()
            },
            "coinDistributionsLevels": {
                coin: levels.to_dict()
                for coin, levels in self.coin_distributions_levels.items()
            },
            "interestEarnedRankings": self.interest_earned_rankings.to_dict(),
            "loyaltyTierSummary": self.loyalty_tier_summary.to_dict(),
            "stats": self.stats.to_dict(),
        }


@dataclass
class AggregateState:
    """Everything the accumulator mutates, owned by the pipeline driver.

    ``interest_earned_per_user`` holds one total per processed user in input
    order; it feeds the interest-earned ranking and is not part of the report.
    """

    metrics: RewardsMetrics = field(default_factory=RewardsMetrics)
    interest_earned_per_user: list[Decimal] = field(default_factory=list)
    records_missing_baseline: int = 0
    finalized: bool = False
