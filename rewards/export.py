"""
CSV and JSON export of reward rows.

Every amount is written as an exact decimal string; nothing passes through
float.
"""

import csv
import json
from pathlib import Path
from typing import IO, Dict, Iterable, List, Union

from rewards.accrual import rewards_by_validator
from rewards.models import CSV_FIELDS, RewardRow, RewardsResult
from rewards.utils import format_amount


def rows_to_records(rows: Iterable[RewardRow]) -> List[Dict[str, str]]:
    return [row.to_record() for row in rows]


def total_rewards(rows: Iterable[RewardRow]) -> int:
    """Sum of rewards over all rows, in base units."""
    return sum(row.rewards for row in rows)


def write_csv(rows: Iterable[RewardRow], target: Union[str, Path, IO[str]]) -> int:
    """
    Write reward rows as CSV.

    Args:
        rows: Reward rows
        target: Output path or open text stream

    Returns:
        Number of data rows written
    """
    records = rows_to_records(rows)

    if isinstance(target, (str, Path)):
        with open(target, "w", newline="", encoding="utf-8") as handle:
            _write_records(records, handle)
    else:
        _write_records(records, target)

    return len(records)


def _write_records(records: List[Dict[str, str]], handle: IO[str]) -> None:
    writer = csv.DictWriter(handle, fieldnames=CSV_FIELDS)
    writer.writeheader()
    writer.writerows(records)


def to_json(result: RewardsResult, indent: int = 2) -> str:
    """Serialize a computation result, rows included, to JSON."""
    payload = {
        "address": str(result.address),
        "year": result.year,
        "granularity": result.granularity.value,
        "start_epoch": result.start_epoch,
        "end_epoch": result.end_epoch,
        "was_clipped": result.was_clipped,
        "warnings": result.warnings,
        "total_rewards": format_amount(total_rewards(result.rows)),
        "rewards_by_validator": {
            str(validator): format_amount(amount)
            for validator, amount in rewards_by_validator(result.rows).items()
        },
        "rows": rows_to_records(result.rows),
    }
    return json.dumps(payload, indent=indent)
