import pytest

from conftest import (
    DELEGATOR,
    VALIDATOR_A,
    VALIDATOR_B,
    FakeResponse,
    event_record,
    paged,
    snapshot_record,
)
from rewards.models import Granularity
from rewards.nexus_client import NexusAPIError
from rewards.staking_rewards import StakingRewardsCalculator, compute_rewards

ADD = "staking.escrow.add"
DEBOND = "staking.escrow.debonding_start"
OTHER_DELEGATOR = "oasis1qrvzxld9rz83wv92lvnkpmr30c77kj2tvg0pednz"


def install_epoch_timestamps(session, epochs, missing=()):
    for epoch in epochs:
        session.routes[f"/consensus/epochs/{epoch}"] = {"id": epoch, "start_height": epoch * 10}
        if epoch not in missing:
            session.routes[f"/consensus/blocks/{epoch * 10}"] = {
                "height": epoch * 10,
                "timestamp": f"2024-01-01T00:00:{epoch % 60:02d}Z",
            }


def install_account(session, events, delegations, clipped=False):
    def events_handler(params):
        matching = [ev for ev in events if ev["type"] == params["type"]]
        return paged("events", matching)(params)

    session.routes["/consensus/events"] = events_handler
    session.routes[f"/consensus/accounts/{DELEGATOR}/delegations"] = paged("delegations", delegations, clipped)


@pytest.fixture()
def scenario(session):
    events = [
        event_record(ADD, 160, DELEGATOR.upper(), VALIDATOR_A.upper(), 200, 220),
        event_record(DEBOND, 210, DELEGATOR, VALIDATOR_A, 100, 130),
        # after the period: reversed for the start position, not accrued
        event_record(ADD, 300, DELEGATOR, VALIDATOR_A, 50, 70),
        # someone else delegating to this account's escrow
        event_record(ADD, 170, OTHER_DELEGATOR, DELEGATOR, 999, 999),
    ]
    delegations = [
        {"validator": VALIDATOR_A, "delegator": DELEGATOR, "shares": "650", "amount": "910"},
        {"validator": VALIDATOR_B.upper(), "delegator": DELEGATOR, "shares": "1000", "amount": "1200"},
    ]
    install_account(session, events, delegations)

    session.routes[f"/consensus/validators/{VALIDATOR_A}/history"] = paged(
        "history",
        [
            snapshot_record(220, 1_400, 1_000),
            snapshot_record(100, 1_000, 1_000),
            snapshot_record(200, 1_300, 1_000),
            snapshot_record(150, 1_100, 1_000),
        ],
    )
    session.routes[f"/consensus/validators/{VALIDATOR_B}/history"] = paged(
        "history",
        [snapshot_record(90, 1_000, 1_000), snapshot_record(220, 1_200, 1_000)],
    )
    install_epoch_timestamps(session, range(100, 221, 10))
    return session


def test_yearly_rewards_end_to_end(client, scenario):
    result = StakingRewardsCalculator(client).compute_rewards(
        DELEGATOR, granularity="year", start_epoch=100, end_epoch=220
    )

    assert result.granularity is Granularity.YEAR
    assert [(row.validator, row.rewards) for row in result.rows] == [(VALIDATOR_A, 250), (VALIDATOR_B, 200)]
    row_a = result.rows[0]
    assert row_a.shares == 600
    assert row_a.start_timestamp == "2024-01-01T00:00:40Z"
    assert row_a.end_timestamp == "2024-01-01T00:00:40Z"
    assert result.warnings == []
    assert result.was_clipped is False


def test_monthly_rewards_reconcile_end_to_end(client, scenario):
    calculator = StakingRewardsCalculator(client)
    monthly = calculator.compute_rewards(DELEGATOR, granularity="month", start_epoch=100, end_epoch=220)
    yearly = calculator.compute_rewards(DELEGATOR, granularity="year", start_epoch=100, end_epoch=220)

    def totals(result):
        out = {}
        for row in result.rows:
            out[row.validator] = out.get(row.validator, 0) + row.rewards
        return out

    assert len(monthly.rows) == 24
    assert totals(monthly) == totals(yearly) == {VALIDATOR_A: 250, VALIDATOR_B: 200}


def test_history_fetched_with_lookback(client, scenario):
    StakingRewardsCalculator(client).compute_rewards(DELEGATOR, granularity="year", start_epoch=150, end_epoch=220)

    history_calls = [params for path, params in scenario.calls if path.endswith("/history")]
    assert {(params["from"], params["to"]) for params in history_calls} == {(50, 220)}


def test_progress_messages_reported(client, scenario):
    messages = []
    StakingRewardsCalculator(client, progress=messages.append).compute_rewards(
        DELEGATOR, granularity="year", start_epoch=100, end_epoch=220
    )
    assert messages[0] == "Epoch range: 100 - 220"
    assert "Found 1 delegations and 1 undelegations in period" in messages
    assert "Found 2 active validators" in messages


def test_clipped_results_are_flagged(client, session):
    install_account(
        session,
        [],
        [{"validator": VALIDATOR_A, "shares": "10"}],
        clipped=True,
    )
    session.routes[f"/consensus/validators/{VALIDATOR_A}/history"] = paged(
        "history", [snapshot_record(100, 1, 1)]
    )
    install_epoch_timestamps(session, [100, 220])

    result = StakingRewardsCalculator(client).compute_rewards(
        DELEGATOR, granularity="year", start_epoch=100, end_epoch=220
    )

    assert result.was_clipped is True
    assert any("clipped" in warning for warning in result.warnings)
    assert [row.rewards for row in result.rows] == [0]


def test_history_failure_aborts_run(client, scenario):
    scenario.routes[f"/consensus/validators/{VALIDATOR_B}/history"] = FakeResponse({}, 503)

    with pytest.raises(NexusAPIError):
        StakingRewardsCalculator(client).compute_rewards(
            DELEGATOR, granularity="month", start_epoch=100, end_epoch=220
        )


def test_event_fetch_failure_aborts_run(client, session):
    session.routes["/consensus/events"] = FakeResponse({}, 500)

    with pytest.raises(NexusAPIError):
        StakingRewardsCalculator(client).compute_rewards(
            DELEGATOR, granularity="year", start_epoch=100, end_epoch=220
        )


def test_missing_timestamps_do_not_change_totals(client, scenario):
    install_epoch_timestamps(scenario, range(100, 221, 10), missing={130, 180, 220})
    for height in (1300, 1800, 2200):
        scenario.routes.pop(f"/consensus/blocks/{height}")

    result = StakingRewardsCalculator(client).compute_rewards(
        DELEGATOR, granularity="month", start_epoch=100, end_epoch=220
    )

    end_epochs = {row.end_epoch for row in result.rows}
    assert 130 not in end_epochs and 180 not in end_epochs
    assert 220 in end_epochs
    assert sum(row.rewards for row in result.rows if row.validator == VALIDATOR_A) == 250


def test_clamped_reconstruction_is_warned(client, session):
    install_account(
        session,
        [event_record(ADD, 150, DELEGATOR, VALIDATOR_A, 500)],
        [{"validator": VALIDATOR_A, "shares": "100"}],
    )
    session.routes[f"/consensus/validators/{VALIDATOR_A}/history"] = paged(
        "history", [snapshot_record(100, 1, 1)]
    )
    install_epoch_timestamps(session, [100, 220])

    result = StakingRewardsCalculator(client).compute_rewards(
        DELEGATOR, granularity="year", start_epoch=100, end_epoch=220
    )

    assert result.clamped_positions == 1
    assert any("clamped" in warning for warning in result.warnings)


def test_missing_start_snapshot_is_warned(client, session):
    install_account(session, [], [{"validator": VALIDATOR_A, "shares": "100"}])
    session.routes[f"/consensus/validators/{VALIDATOR_A}/history"] = paged(
        "history", [snapshot_record(150, 2, 1)]
    )
    install_epoch_timestamps(session, [100, 220])

    result = StakingRewardsCalculator(client).compute_rewards(
        DELEGATOR, granularity="year", start_epoch=100, end_epoch=220
    )

    assert result.rows[0].rewards == 200
    assert any("first reward includes the starting value" in warning for warning in result.warnings)


def test_year_uses_known_epoch_range(client, session):
    install_account(session, [], [{"validator": VALIDATOR_A, "shares": "500000000000"}])
    session.routes[f"/consensus/validators/{VALIDATOR_A}/history"] = paged(
        "history",
        [
            snapshot_record(28809, 1_000_000_000_000, 1_000_000_000_000),
            snapshot_record(37689, 1_100_000_000_000, 1_000_000_000_000),
        ],
    )
    install_epoch_timestamps(session, [28809 + 740 * k for k in range(13)])

    result = compute_rewards(DELEGATOR, 2024, "month", client=client)

    assert (result.start_epoch, result.end_epoch) == (28809, 37689)
    assert len(result.rows) == 12
    assert sum(row.rewards for row in result.rows) == 50_000_000_000
    assert result.rows[-1].to_record()["rewards"] == "50"


def test_invalid_arguments(client):
    calculator = StakingRewardsCalculator(client)
    with pytest.raises(ValueError):
        calculator.compute_rewards("", 2024)
    with pytest.raises(ValueError):
        calculator.compute_rewards(DELEGATOR, granularity="week", start_epoch=1, end_epoch=2)
    with pytest.raises(ValueError):
        calculator.compute_rewards(DELEGATOR)
