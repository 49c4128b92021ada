"""
Rewards accrual engine.

Tracks each validator's delegated position across sample epochs and splits
the change in position value into rewards and principal movement:

    reward = total_value - prev_total_value
             - value delegated during the period
             + value undelegated during the period

Delegated/undelegated values are priced at the snapshot in effect at the
event's epoch. Because a period is only closed when a row is emitted,
skipped samples roll into the next one and the per-period rewards sum to
the start-to-end figure. A validator with no shares and no value at the
last close is skipped outright, including any principal that moved through
it since.
"""

import logging
from collections import defaultdict
from dataclasses import dataclass, replace
from typing import Dict, Iterable, List, Mapping, Optional, Tuple

from rewards.history import History, locate, share_price_scaled, share_value
from rewards.models import Address, DelegationEvent, EventKind, RewardRow, ValidatorSnapshot

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ValidatorAccrualState:
    """Delegator position at one validator within the open period."""

    shares: int
    prev_total_value: int
    period_start_epoch: int
    period_delegation_value: int = 0
    period_undelegation_value: int = 0

    @property
    def is_empty(self) -> bool:
        """No position now and none valued at the last close."""
        return self.shares == 0 and self.prev_total_value == 0


def seed_state(
    shares: int,
    start_snapshot: Optional[ValidatorSnapshot],
    start_epoch: int,
) -> ValidatorAccrualState:
    """Initial state at the period start, valued at the start snapshot."""
    return ValidatorAccrualState(
        shares=shares,
        prev_total_value=share_value(shares, start_snapshot),
        period_start_epoch=start_epoch,
    )


def apply_event(
    state: ValidatorAccrualState,
    event: DelegationEvent,
    snapshot: Optional[ValidatorSnapshot],
) -> Tuple[ValidatorAccrualState, bool]:
    """
    Apply one delegation event.

    Args:
        state: Current state
        event: Event to apply
        snapshot: Snapshot in effect at the event's epoch (prices the event)

    Returns:
        (new state, whether shares had to be clamped at zero)
    """
    value = share_value(event.shares, snapshot)

    if event.kind is EventKind.ADD:
        return (
            replace(
                state,
                shares=state.shares + event.shares,
                period_delegation_value=state.period_delegation_value + value,
            ),
            False,
        )

    shares = state.shares - event.shares
    clamped = shares < 0
    return (
        replace(
            state,
            shares=max(shares, 0),
            period_undelegation_value=state.period_undelegation_value + value,
        ),
        clamped,
    )


def close_period(
    state: ValidatorAccrualState,
    snapshot: ValidatorSnapshot,
    epoch: int,
) -> Tuple[ValidatorAccrualState, int, int]:
    """
    Close the open period at epoch.

    Returns:
        (state for the next period, total value at epoch, reward for the period)
    """
    total_value = share_value(state.shares, snapshot)
    reward = (
        total_value
        - state.prev_total_value
        - state.period_delegation_value
        + state.period_undelegation_value
    )
    next_state = ValidatorAccrualState(
        shares=state.shares,
        prev_total_value=total_value,
        period_start_epoch=epoch,
    )
    return next_state, total_value, reward


class AccrualEngine:
    """
    Folds delegation events and validator snapshots into reward rows.

    One engine instance serves one computation run. Samples must be fed in
    ascending order.
    """

    def __init__(
        self,
        histories: Mapping[Address, History],
        events: Iterable[DelegationEvent],
        start_epoch: int,
        timestamps: Optional[Mapping[int, Optional[str]]] = None,
    ):
        """
        Initialize the engine.

        Args:
            histories: Sorted snapshot history per validator
            events: Owner's delegation events; only those after start_epoch are applied
            start_epoch: Period baseline epoch
            timestamps: Epoch -> ISO timestamp for the start and sample epochs
        """
        self.histories = histories
        self.start_epoch = start_epoch
        self.timestamps = timestamps or {}
        self.states: Dict[Address, ValidatorAccrualState] = {}
        self.clamped_positions = 0
        self.missing_baselines: List[Address] = []

        self._events = sorted((ev for ev in events if ev.epoch > start_epoch), key=lambda ev: ev.epoch)
        self._next_event = 0
        self._last_epoch = start_epoch

    def seed(self, start_shares: Mapping[Address, int], validators: Iterable[Address]) -> None:
        """
        Create the initial state of every tracked validator.

        A validator holding shares without a snapshot at the start epoch is
        seeded with a zero baseline, which overstates its first reward.
        """
        for validator in validators:
            shares = start_shares.get(validator, 0)
            snapshot = locate(self.histories.get(validator, []), self.start_epoch)
            if snapshot is None and shares > 0:
                logger.warning(
                    f"No snapshot for {validator} at start epoch {self.start_epoch}; "
                    f"first reward will include the full starting value"
                )
                self.missing_baselines.append(validator)
            self.states[validator] = seed_state(shares, snapshot, self.start_epoch)

    def advance(self, epoch: int) -> None:
        """Apply every event with last processed epoch < event epoch <= epoch."""
        if epoch < self._last_epoch:
            raise ValueError(f"Epoch {epoch} is before last processed epoch {self._last_epoch}")

        while self._next_event < len(self._events) and self._events[self._next_event].epoch <= epoch:
            event = self._events[self._next_event]
            self._next_event += 1

            state = self.states.get(event.validator)
            if state is None:
                logger.debug(f"Ignoring event at untracked validator {event.validator}")
                continue

            snapshot = locate(self.histories.get(event.validator, []), event.epoch)
            state, clamped = apply_event(state, event, snapshot)
            if clamped:
                self.clamped_positions += 1
                logger.warning(
                    f"Debond of {event.shares} shares at epoch {event.epoch} exceeds position "
                    f"at {event.validator}; clamping to zero"
                )
            self.states[event.validator] = state

        self._last_epoch = epoch

    def emit(self, epoch: int, final: bool = False) -> List[RewardRow]:
        """
        Close the period at epoch for every tracked validator that can report.

        Validators with no position, no snapshot at epoch, or (for non-final
        samples) no known timestamp keep their period open.
        """
        timestamp = self.timestamps.get(epoch)
        if not timestamp and not final:
            logger.info(f"Timestamp for sample epoch {epoch} unknown; deferring rows to next sample")
            return []

        rows = []
        for validator, state in self.states.items():
            if state.is_empty:
                continue

            snapshot = locate(self.histories.get(validator, []), epoch)
            if snapshot is None:
                logger.debug(f"No snapshot for {validator} at epoch {epoch}; skipping sample")
                continue

            next_state, total_value, reward = close_period(state, snapshot, epoch)
            rows.append(
                RewardRow(
                    validator=validator,
                    start_epoch=self.start_epoch,
                    end_epoch=epoch,
                    start_timestamp=self.timestamps.get(self.start_epoch),
                    end_timestamp=timestamp,
                    shares=state.shares,
                    share_price=share_price_scaled(snapshot),
                    delegation_value=total_value,
                    rewards=reward,
                    prev_total_value=state.prev_total_value,
                    period_delegation_value=state.period_delegation_value,
                    period_undelegation_value=state.period_undelegation_value,
                    period_start_epoch=state.period_start_epoch,
                )
            )
            self.states[validator] = next_state

        return rows

    def run(self, sample_epochs: List[int]) -> List[RewardRow]:
        """
        Process all samples in order and return the emitted rows.

        Args:
            sample_epochs: Ascending sample epochs; the last one closes the period

        Returns:
            Reward rows ordered by sample epoch, then validator
        """
        rows: List[RewardRow] = []
        for index, epoch in enumerate(sample_epochs):
            self.advance(epoch)
            rows.extend(self.emit(epoch, final=index == len(sample_epochs) - 1))
        return rows


def rewards_by_validator(rows: Iterable[RewardRow]) -> Dict[Address, int]:
    """Sum of rewards per validator."""
    totals: Dict[Address, int] = defaultdict(int)
    for row in rows:
        totals[row.validator] += row.rewards
    return dict(totals)
