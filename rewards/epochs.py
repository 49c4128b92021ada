"""
Calendar year to epoch range resolution.

Known years come from config.settings.EPOCH_RANGES. Other years are found
by binary search over epoch start timestamps.
"""

import logging
from datetime import datetime, timezone
from typing import Optional, Tuple

from config.settings import EPOCH_RANGES
from rewards.nexus_client import NexusAPIError, NexusClient

logger = logging.getLogger(__name__)


class EpochRangeError(ValueError):
    """A calendar year could not be mapped to an epoch range."""


def _parse_timestamp(timestamp: str) -> datetime:
    return datetime.fromisoformat(timestamp.replace("Z", "+00:00"))


def find_epoch_at_timestamp(client: NexusClient, target: datetime, latest_epoch: int) -> Optional[int]:
    """
    Find the first epoch starting at or after target.

    Args:
        client: Nexus client
        target: UTC datetime
        latest_epoch: Highest epoch id to consider

    Returns:
        Epoch id, or None if every epoch up to latest_epoch starts before target
    """
    left, right = 1, latest_epoch
    best = None

    while left <= right:
        mid = (left + right) // 2
        started_at = _parse_timestamp(client.fetch_epoch_start_timestamp(mid))

        if started_at >= target:
            best = mid
            right = mid - 1
        else:
            left = mid + 1

    return best


def resolve_epoch_range(year: int, client: Optional[NexusClient] = None) -> Tuple[int, int]:
    """
    Map a calendar year to its first and last epoch.

    Args:
        year: Calendar year (UTC)
        client: Nexus client, required for years missing from EPOCH_RANGES

    Returns:
        (start_epoch, end_epoch)

    Raises:
        EpochRangeError: If the year is unknown and cannot be resolved
    """
    if year in EPOCH_RANGES:
        return EPOCH_RANGES[year]

    if client is None:
        raise EpochRangeError(f"No epoch range known for {year}")

    try:
        latest = client.fetch_latest_epoch()
        start = find_epoch_at_timestamp(client, datetime(year, 1, 1, tzinfo=timezone.utc), latest)
        if start is None:
            raise EpochRangeError(f"Year {year} has not started yet")

        next_start = find_epoch_at_timestamp(client, datetime(year + 1, 1, 1, tzinfo=timezone.utc), latest)
    except EpochRangeError:
        raise
    except (NexusAPIError, ValueError) as e:
        raise EpochRangeError(f"Could not resolve epochs for {year}: {e}") from e

    # An unfinished year ends at the latest epoch
    end = next_start - 1 if next_start is not None else latest
    if end <= start:
        raise EpochRangeError(f"Year {year} spans no complete epoch range ({start}-{end})")

    logger.info(f"Resolved {year} to epochs {start}-{end}")
    return start, end
