"""Input data models for per-user rewards records.

One CoinRecord describes one (user, coin) relationship from the rewards
export: the coin the balance is held in, the coin interest is paid in,
the user's loyalty tier, and the dated ledger of events for the holding.

CRITICAL: All amounts and balances use Decimal. Never use float for balances or interest.
"""

from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Any

# Legacy or duplicate tickers collapsed to one canonical symbol before aggregation
COIN_ALIASES: dict[str, str] = {
    "USDT ERC20": "USDT",
    "MCDAI": "DAI",
}

CEL_COIN = "CEL"


class LedgerKind(str, Enum):
    """Ledger entry type tags as they appear in the export."""

    OPENING_BALANCE = "initialBalance"
    COLLATERAL = "collateral"
    WITHDRAWAL = "withdrawal"
    DEPOSIT = "deposit"
    INTEREST = "interest"


class LoyaltyTier(str, Enum):
    """Loyalty tier buckets, keyed by lower-cased tier title."""

    PLATINUM = "platinum"
    GOLD = "gold"
    SILVER = "silver"
    BRONZE = "bronze"
    NONE = "none"


def resolve_coin(symbol: str) -> str:
    """Map a coin symbol through the alias table."""
    return COIN_ALIASES.get(symbol, symbol)


def to_decimal(value: Any, field_name: str) -> Decimal:
    """Convert a JSON string or number to Decimal without a float round trip.

    Raises:
        ValueError: If the value is missing or not a finite decimal.
    """
    if value is None or isinstance(value, bool):
        raise ValueError(f"{field_name} is not a decimal value: {value!r}")
    try:
        result = Decimal(str(value))
    except InvalidOperation as e:
        raise ValueError(f"{field_name} is not a decimal value: {value!r}") from e
    if not result.is_finite():
        raise ValueError(f"{field_name} is not a finite decimal: {value!r}")
    return result


def _to_bool(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() == "true"
    return bool(value)


@dataclass
class LedgerEntry:
    """A single dated event for a coin holding.

    Collateral amounts are signed: negative locks collateral, positive unlocks it.
    """

    kind: str  # LedgerKind value, or an unrecognized tag kept verbatim
    amount: Decimal
    new_balance: Decimal
    date: str | None = None

    @staticmethod
    def from_dict(raw: dict) -> "LedgerEntry":
        """Build a LedgerEntry from one ``distributionData`` element.

        Raises:
            ValueError: If a required field is missing or not a decimal.
        """
        if not isinstance(raw, dict):
            raise ValueError(f"ledger entry is not an object: {raw!r}")
        if "type" not in raw:
            raise ValueError("ledger entry has no type")
        return LedgerEntry(
            kind=str(raw["type"]),
            amount=to_decimal(raw.get("value"), "value"),
            new_balance=to_decimal(raw.get("newBalance"), "newBalance"),
            date=raw.get("date"),
        )

    def to_dict(self) -> dict:
        """Serialize back to the export's field names, Decimals as strings."""
        result = {
            "type": self.kind,
            "value": str(self.amount),
            "newBalance": str(self.new_balance),
        }
        if self.date is not None:
            result["date"] = self.date
        return result


@dataclass
class CoinRecord:
    """One (user, coin) rewards record.

    ``coin`` is the holding coin and ``interest_coin`` the coin rewards are
    paid in; they differ whenever a user elects to earn in another coin.
    Both are kept exactly as exported; aliasing happens at aggregation time.
    """

    coin: str
    interest_coin: str
    total_interest_in_coin: Decimal
    total_interest_in_usd: Decimal
    earning_interest_in_cel: bool = False
    loyalty_tier: str = ""
    ledger: list[LedgerEntry] = field(default_factory=list)

    @staticmethod
    def from_dict(raw: dict) -> "CoinRecord":
        """Build a CoinRecord from one element of the export's ``data`` list.

        Raises:
            ValueError: If a required field is missing or has the wrong shape.
        """
        if not isinstance(raw, dict):
            raise ValueError(f"coin record is not an object: {raw!r}")
        for key in ("originalInterestCoin", "interestCoin"):
            if not isinstance(raw.get(key), str):
                raise ValueError(f"coin record has no {key}")

        tier = raw.get("loyaltyTier")
        if isinstance(tier, dict):
            tier_title = str(tier.get("title") or "")
        elif isinstance(tier, str):
            tier_title = tier
        else:
            tier_title = ""

        ledger_raw = raw.get("distributionData") or []
        if not isinstance(ledger_raw, list):
            raise ValueError("distributionData is not a list")

        return CoinRecord(
            coin=raw["originalInterestCoin"],
            interest_coin=raw["interestCoin"],
            total_interest_in_coin=to_decimal(
                raw.get("totalInterestInCoin"), "totalInterestInCoin"
            ),
            total_interest_in_usd=to_decimal(
                raw.get("totalInterestInUsd"), "totalInterestInUsd"
            ),
            earning_interest_in_cel=_to_bool(raw.get("earningInterestInCel", False)),
            loyalty_tier=tier_title,
            ledger=[LedgerEntry.from_dict(entry) for entry in ledger_raw],
        )

    def to_dict(self) -> dict:
        """Serialize back to the export's field names, Decimals as strings."""
        return {
            "originalInterestCoin": self.coin,
            "interestCoin": self.interest_coin,
            "totalInterestInCoin": str(self.total_interest_in_coin),
            "totalInterestInUsd": str(self.total_interest_in_usd),
            "earningInterestInCel": self.earning_interest_in_cel,
            "loyaltyTier": {"title": self.loyalty_tier},
            "distributionData": [entry.to_dict() for entry in self.ledger],
        }

    @property
    def holding_coin(self) -> str:
        """Holding coin symbol after aliasing."""
        return resolve_coin(self.coin)

    @property
    def resolved_interest_coin(self) -> str:
        """Interest coin symbol after aliasing."""
        return resolve_coin(self.interest_coin)

    @property
    def is_earning_in_cel(self) -> bool:
        """True when rewards for this holding are paid in CEL."""
        return self.earning_interest_in_cel or self.resolved_interest_coin == CEL_COIN
