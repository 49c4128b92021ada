"""
Validator pool history: sorting, snapshot lookup and share valuation.
"""

import logging
from typing import Any, Dict, Iterable, List, Optional

from config.settings import SHARE_PRICE_SCALE
from rewards.models import ValidatorSnapshot

logger = logging.getLogger(__name__)

History = List[ValidatorSnapshot]


def sort_history(records: Iterable[Dict[str, Any]]) -> History:
    """
    Parse raw history records into an ascending, epoch-unique History.

    Records without an epoch are dropped. If the API returns the same epoch
    twice, the last record wins.
    """
    by_epoch: Dict[int, ValidatorSnapshot] = {}
    for record in records:
        if record.get("epoch") is None:
            logger.debug(f"Dropping history record without epoch: {record}")
            continue
        snapshot = ValidatorSnapshot.from_api(record)
        by_epoch[snapshot.epoch] = snapshot
    return [by_epoch[epoch] for epoch in sorted(by_epoch)]


def locate(history: History, target_epoch: int) -> Optional[ValidatorSnapshot]:
    """
    Find the latest snapshot at or before target_epoch.

    Args:
        history: Snapshots sorted ascending by epoch
        target_epoch: Epoch to look up

    Returns:
        Matching snapshot, or None if history is empty or starts after target_epoch
    """
    low, high = 0, len(history) - 1
    result = None

    while low <= high:
        mid = (low + high) // 2
        if history[mid].epoch <= target_epoch:
            result = history[mid]
            low = mid + 1
        else:
            high = mid - 1

    return result


def share_value(shares: int, snapshot: Optional[ValidatorSnapshot]) -> int:
    """Value of shares in base units at a snapshot (truncating division)."""
    if snapshot is None or snapshot.active_shares == 0:
        return 0
    return (shares * snapshot.active_balance) // snapshot.active_shares


def share_price_scaled(snapshot: Optional[ValidatorSnapshot]) -> int:
    """Base units per share, multiplied by 10**18 to keep precision."""
    if snapshot is None or snapshot.active_shares == 0:
        return 0
    return (snapshot.active_balance * SHARE_PRICE_SCALE) // snapshot.active_shares
