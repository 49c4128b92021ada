"""
Domain records shared by the fetcher, the accrual engine and the exporters.

Amounts are Python ints in base units throughout; they are only rendered to
decimal strings by RewardRow.to_record().
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional

from config.settings import (
    EVENT_ESCROW_ADD,
    EVENT_ESCROW_DEBONDING_START,
    ROSE_DECIMALS,
    SHARE_PRICE_EXTRA_DECIMALS,
)
from rewards.utils import format_amount, normalize_address, safe_get

logger = logging.getLogger(__name__)


class Address(str):
    """Canonical (lowercased) account or validator address."""

    def __new__(cls, value: Optional[str] = None):
        return super().__new__(cls, normalize_address(value))


class Granularity(str, Enum):
    YEAR = "year"
    MONTH = "month"

    @classmethod
    def parse(cls, value) -> "Granularity":
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).lower())
        except ValueError:
            raise ValueError(f"Unknown granularity {value!r}; expected 'year' or 'month'") from None


class EventKind(str, Enum):
    ADD = EVENT_ESCROW_ADD
    DEBOND_START = EVENT_ESCROW_DEBONDING_START


# Body field holding the share count for each event kind
_SHARES_FIELD = {
    EventKind.ADD: "new_shares",
    EventKind.DEBOND_START: "debonding_shares",
}


@dataclass(frozen=True)
class DelegationEvent:
    """An escrow add (delegation) or debonding start (undelegation)."""

    kind: EventKind
    epoch: int
    owner: Address
    validator: Address
    shares: int
    amount: int

    @classmethod
    def from_api(cls, record: Dict[str, Any], kind: EventKind) -> Optional["DelegationEvent"]:
        """
        Build an event from a Nexus consensus event record.

        Returns None for records without a positive epoch.
        """
        epoch = int(safe_get(record, "body.epoch", 0) or record.get("epoch") or 0)
        if epoch <= 0:
            logger.debug(f"Dropping {kind.value} event without epoch: {record}")
            return None

        return cls(
            kind=kind,
            epoch=epoch,
            owner=Address(safe_get(record, "body.owner")),
            validator=Address(safe_get(record, "body.escrow")),
            shares=int(safe_get(record, f"body.{_SHARES_FIELD[kind]}", "0")),
            amount=int(safe_get(record, "body.amount", "0")),
        )


@dataclass(frozen=True)
class ValidatorSnapshot:
    """Validator pool state sampled at one epoch."""

    epoch: int
    active_balance: int
    active_shares: int

    @classmethod
    def from_api(cls, record: Dict[str, Any]) -> "ValidatorSnapshot":
        return cls(
            epoch=int(record["epoch"]),
            active_balance=int(record.get("active_balance") or 0),
            active_shares=int(record.get("active_shares") or 0),
        )


@dataclass
class PagedResult:
    """All items of a paginated collection and whether the source clipped its count."""

    items: List[Dict[str, Any]] = field(default_factory=list)
    was_clipped: bool = False


CSV_FIELDS = [
    "start_timestamp",
    "end_timestamp",
    "start_epoch",
    "end_epoch",
    "validator",
    "shares",
    "share_price",
    "delegation_value",
    "rewards",
]


@dataclass
class RewardRow:
    """Rewards earned at one validator between two sample epochs."""

    validator: Address
    start_epoch: int
    end_epoch: int
    start_timestamp: Optional[str]
    end_timestamp: Optional[str]
    shares: int
    share_price: int  # active_balance * 10**18 // active_shares
    delegation_value: int
    rewards: int
    prev_total_value: int = 0
    period_delegation_value: int = 0
    period_undelegation_value: int = 0
    # Epoch of the previous close; differs from start_epoch after the first row
    period_start_epoch: int = 0

    def to_record(self) -> Dict[str, str]:
        """Render exported fields as strings; amounts use exact decimal formatting."""
        return {
            "start_timestamp": self.start_timestamp or "",
            "end_timestamp": self.end_timestamp or "",
            "start_epoch": str(self.start_epoch),
            "end_epoch": str(self.end_epoch),
            "validator": str(self.validator),
            "shares": str(self.shares),
            "share_price": format_amount(self.share_price, ROSE_DECIMALS, SHARE_PRICE_EXTRA_DECIMALS),
            "delegation_value": format_amount(self.delegation_value),
            "rewards": format_amount(self.rewards),
        }


@dataclass
class RewardsResult:
    """Outcome of one rewards computation run."""

    address: Address
    granularity: Granularity
    start_epoch: int
    end_epoch: int
    rows: List[RewardRow] = field(default_factory=list)
    year: Optional[int] = None
    was_clipped: bool = False
    clamped_positions: int = 0
    warnings: List[str] = field(default_factory=list)
