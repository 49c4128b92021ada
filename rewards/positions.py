"""
Share-position reconstruction.

The API only exposes a delegator's current shares. The position at an
earlier epoch is derived by undoing every delegation event after it: adds
are subtracted and debonds are added back. Both are plain additions on one
scalar per validator, so the order of reversal does not matter.
"""

import logging
from collections import defaultdict
from typing import Dict, Iterable, List, Mapping, Optional, Tuple

from rewards.models import Address, DelegationEvent, EventKind

logger = logging.getLogger(__name__)


def filter_owner_events(events: Iterable[DelegationEvent], owner: str) -> List[DelegationEvent]:
    """Keep events initiated by owner (rel= queries also return escrow-side events)."""
    owner = Address(owner)
    return [ev for ev in events if ev.owner == owner]


def events_in_range(
    events: Iterable[DelegationEvent],
    start_epoch: int,
    end_epoch: Optional[int] = None,
) -> List[DelegationEvent]:
    """Events with start_epoch < epoch <= end_epoch, sorted by epoch."""
    return sorted(
        (
            ev
            for ev in events
            if ev.epoch > start_epoch and (end_epoch is None or ev.epoch <= end_epoch)
        ),
        key=lambda ev: ev.epoch,
    )


def reconstruct_shares(
    current_shares: Mapping[Address, int],
    events: Iterable[DelegationEvent],
    start_epoch: int,
    end_epoch: Optional[int] = None,
) -> Tuple[Dict[Address, int], int]:
    """
    Derive per-validator shares at start_epoch from the current position.

    Args:
        current_shares: Shares held now, keyed by validator
        events: Delegation events of the owner
        start_epoch: Epoch to reconstruct (events at this epoch are already included)
        end_epoch: Epoch of current_shares; None means "now"

    Returns:
        (shares per validator, number of validators clamped at zero)
    """
    shares: Dict[Address, int] = defaultdict(int)
    for validator, amount in current_shares.items():
        shares[Address(validator)] += amount

    for ev in events_in_range(events, start_epoch, end_epoch):
        if ev.kind is EventKind.ADD:
            shares[ev.validator] -= ev.shares
        else:
            shares[ev.validator] += ev.shares

    clamped = 0
    for validator, amount in shares.items():
        if amount < 0:
            logger.warning(
                f"Reconstructed shares for {validator} at epoch {start_epoch} are negative "
                f"({amount}); clamping to zero"
            )
            shares[validator] = 0
            clamped += 1

    return dict(shares), clamped


def active_validators(
    start_shares: Mapping[Address, int],
    current_shares: Mapping[Address, int],
) -> List[Address]:
    """Validators with shares at the start or a current delegation."""
    validators = {v for v, amount in start_shares.items() if amount > 0}
    validators.update(current_shares)
    return sorted(Address(v) for v in validators if v)
