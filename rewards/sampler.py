"""Sample epoch selection for yearly and monthly reward rows."""

from typing import List, Union

from config.settings import MONTHLY_SAMPLES
from rewards.models import Granularity


def sample_epochs(
    start_epoch: int,
    end_epoch: int,
    granularity: Union[Granularity, str],
) -> List[int]:
    """
    Select the epochs at which reward rows are emitted.

    start_epoch is the baseline and is not a sample unless the period is a
    single epoch. The last sample is always end_epoch, whatever the step
    rounding.

    Args:
        start_epoch: First epoch of the period (baseline)
        end_epoch: Last epoch of the period
        granularity: "year" for one sample, "month" for ~12 evenly spaced ones

    Returns:
        Ascending sample epochs

    Raises:
        ValueError: If end_epoch precedes start_epoch or granularity is unknown
    """
    granularity = Granularity.parse(granularity)
    if end_epoch < start_epoch:
        raise ValueError(f"end_epoch {end_epoch} is before start_epoch {start_epoch}")

    if granularity is Granularity.YEAR or end_epoch == start_epoch:
        return [end_epoch]

    step = max(1, (end_epoch - start_epoch + 1) // MONTHLY_SAMPLES)
    samples = list(range(start_epoch + step, end_epoch + 1, step))
    if not samples or samples[-1] != end_epoch:
        samples.append(end_epoch)
    return samples
