"""
Staking rewards calculator.

Runs one rewards computation for a delegator:
  1. Resolve the epoch range of the requested year
  2. Fetch delegation events and current delegations
  3. Reconstruct the share position at the start epoch
  4. Fetch validator histories (in parallel)
  5. Fold events and snapshots into reward rows per sample epoch

Nothing is persisted; a fetch failure aborts the run and discards all
partial state.
"""

import logging
from concurrent.futures import ThreadPoolExecutor, as_completed
from typing import Callable, Dict, Iterable, List, Optional, Tuple, Union

from config import Config
from config.settings import HISTORY_LOOKBACK_EPOCHS
from rewards.accrual import AccrualEngine
from rewards.epochs import resolve_epoch_range
from rewards.history import History, sort_history
from rewards.models import (
    Address,
    DelegationEvent,
    EventKind,
    Granularity,
    RewardsResult,
)
from rewards.nexus_client import NexusClient
from rewards.positions import active_validators, events_in_range, filter_owner_events, reconstruct_shares
from rewards.sampler import sample_epochs

logger = logging.getLogger(__name__)


class StakingRewardsCalculator:
    """Computes per-validator staking reward rows for a delegator."""

    def __init__(
        self,
        client: Optional[NexusClient] = None,
        progress: Optional[Callable[[str], None]] = None,
        workers: Optional[int] = None,
    ):
        """
        Initialize calculator.

        Args:
            client: Nexus client (a default one is created if omitted)
            progress: Optional callback receiving progress messages
            workers: Parallel validator history fetches
        """
        self.client = client or NexusClient()
        self.progress = progress
        self.workers = workers or Config.FETCH_WORKERS

    def _report(self, message: str) -> None:
        logger.info(message)
        if self.progress:
            self.progress(message)

    def fetch_owner_events(self, address: Address) -> Tuple[List[DelegationEvent], bool]:
        """
        Fetch the delegator's add and debonding-start events.

        Returns:
            (events initiated by address, whether any listing was clipped)
        """
        events: List[DelegationEvent] = []
        clipped = False

        for kind in EventKind:
            page = self.client.fetch_events(address, kind.value)
            clipped = clipped or page.was_clipped
            for record in page.items:
                event = DelegationEvent.from_api(record, kind)
                if event is not None:
                    events.append(event)

        return filter_owner_events(events, address), clipped

    def fetch_current_shares(self, address: Address) -> Tuple[Dict[Address, int], bool]:
        """
        Fetch current shares per validator.

        Returns:
            (shares keyed by validator, whether the listing was clipped)
        """
        page = self.client.fetch_delegations(address)
        shares: Dict[Address, int] = {}
        for delegation in page.items:
            validator = Address(delegation.get("validator"))
            if validator and delegation.get("shares"):
                shares[validator] = shares.get(validator, 0) + int(delegation["shares"])
        return shares, page.was_clipped

    def fetch_histories(
        self,
        validators: Iterable[Address],
        from_epoch: int,
        to_epoch: int,
    ) -> Tuple[Dict[Address, History], bool]:
        """
        Fetch and sort the snapshot history of each validator in parallel.

        The first failure cancels outstanding fetches and is re-raised.

        Returns:
            (history per validator, whether any listing was clipped)
        """
        validators = list(validators)
        histories: Dict[Address, History] = {}
        clipped = False
        if not validators:
            return histories, clipped

        with ThreadPoolExecutor(max_workers=min(self.workers, len(validators))) as executor:
            futures = {
                executor.submit(self.client.fetch_validator_history, validator, from_epoch, to_epoch): validator
                for validator in validators
            }
            try:
                for future in as_completed(futures):
                    validator = futures[future]
                    page = future.result()
                    clipped = clipped or page.was_clipped
                    histories[validator] = sort_history(page.items)
                    logger.debug(f"Fetched {len(histories[validator])} snapshots for {validator}")
            except Exception:
                for pending in futures:
                    pending.cancel()
                raise

        return histories, clipped

    def fetch_timestamps(self, epochs: Iterable[int]) -> Dict[int, Optional[str]]:
        """Start timestamps per epoch; unknown timestamps map to None."""
        return {epoch: self.client.fetch_epoch_timestamp(epoch) for epoch in epochs}

    def compute_rewards(
        self,
        address: str,
        year: Optional[int] = None,
        granularity: Union[Granularity, str] = Granularity.YEAR,
        start_epoch: Optional[int] = None,
        end_epoch: Optional[int] = None,
    ) -> RewardsResult:
        """
        Compute reward rows for a delegator over a year (or explicit epochs).

        Args:
            address: Delegator address
            year: Calendar year, used when start/end epochs are not given
            granularity: "year" or "month"
            start_epoch: Optional explicit period start
            end_epoch: Optional explicit period end

        Returns:
            RewardsResult with rows ordered by sample epoch then validator

        Raises:
            NexusAPIError: If any required fetch fails
            ValueError: For invalid granularity or epoch range
        """
        address = Address(address)
        if not address:
            raise ValueError("Delegator address is required")
        granularity = Granularity.parse(granularity)

        if start_epoch is None or end_epoch is None:
            if year is None:
                raise ValueError("Either year or both start_epoch and end_epoch are required")
            start_epoch, end_epoch = resolve_epoch_range(year, self.client)
        samples = sample_epochs(start_epoch, end_epoch, granularity)
        self._report(f"Epoch range: {start_epoch} - {end_epoch}")

        result = RewardsResult(
            address=address,
            granularity=granularity,
            start_epoch=start_epoch,
            end_epoch=end_epoch,
            year=year,
        )

        events, events_clipped = self.fetch_owner_events(address)
        period_events = events_in_range(events, start_epoch, end_epoch)
        adds = sum(1 for ev in period_events if ev.kind is EventKind.ADD)
        self._report(
            f"Found {adds} delegations and {len(period_events) - adds} undelegations in period"
        )

        current_shares, delegations_clipped = self.fetch_current_shares(address)

        # Current shares are "now", so every later event is reversed too
        start_shares, clamped = reconstruct_shares(current_shares, events, start_epoch)
        validators = active_validators(start_shares, current_shares)
        self._report(f"Found {len(validators)} active validators")

        histories, histories_clipped = self.fetch_histories(
            validators, max(1, start_epoch - HISTORY_LOOKBACK_EPOCHS), end_epoch
        )

        self._report(f"Fetching timestamps for {len(samples) + 1} epochs")
        timestamps = self.fetch_timestamps([start_epoch] + samples)

        engine = AccrualEngine(histories, period_events, start_epoch, timestamps)
        engine.seed(start_shares, validators)
        result.rows = engine.run(samples)
        self._report(f"Computed {len(result.rows)} reward rows")

        result.was_clipped = events_clipped or delegations_clipped or histories_clipped
        result.clamped_positions = clamped + engine.clamped_positions

        if result.was_clipped:
            result.warnings.append(
                "The API clipped at least one result set; rewards may be incomplete"
            )
        if result.clamped_positions:
            result.warnings.append(
                f"{result.clamped_positions} share position(s) went negative and were clamped to zero"
            )
        for validator in engine.missing_baselines:
            result.warnings.append(
                f"No snapshot for {validator} at epoch {start_epoch}; its first reward includes the starting value"
            )

        for warning in result.warnings:
            logger.warning(warning)

        return result


def compute_rewards(
    address: str,
    year: int,
    granularity: Union[Granularity, str] = Granularity.YEAR,
    client: Optional[NexusClient] = None,
) -> RewardsResult:
    """Convenience wrapper around StakingRewardsCalculator.compute_rewards."""
    return StakingRewardsCalculator(client).compute_rewards(address, year, granularity)
