"""
Main CLI entry point for Oasis Staking Rewards.
"""

import logging
import sys

import click
from rich.console import Console

from analysis.rewards_report import RewardsReport
from config import Config
from rewards.epochs import EpochRangeError, resolve_epoch_range
from rewards.export import to_json, write_csv
from rewards.models import Granularity
from rewards.nexus_client import NexusAPIError, NexusClient
from rewards.staking_rewards import StakingRewardsCalculator
from rewards.utils import setup_logging

console = Console()


@click.group()
@click.option("--debug", is_flag=True, help="Enable debug logging")
def cli(debug):
    """Oasis Staking Rewards - Per-validator staking reward history."""
    log_level = "DEBUG" if debug else Config.LOG_LEVEL
    setup_logging(log_level, Config.LOG_FILE or None)


@cli.command()
def setup():
    """Validate configuration and test the Nexus connection."""
    console.print("[bold]Checking Oasis Staking Rewards setup...[/bold]\n")

    errors = Config.validate()
    if errors:
        console.print("[bold red]Configuration errors:[/bold red]")
        for error in errors:
            console.print(f"  ❌ {error}")
        sys.exit(1)

    console.print("✅ Configuration valid")

    try:
        latest = NexusClient().fetch_latest_epoch()
        console.print(f"✅ Connected to Nexus (epoch: {latest})")
    except NexusAPIError as e:
        console.print(f"[red]❌ Nexus connection failed: {e}[/red]")
        sys.exit(1)

    console.print("\n[bold green]Setup complete! Ready to use.[/bold green]")


@cli.command()
@click.argument("year", type=int)
def epochs(year):
    """Show the epoch range of a calendar year."""
    try:
        start, end = resolve_epoch_range(year, NexusClient())
    except EpochRangeError as e:
        console.print(f"[red]{e}[/red]")
        sys.exit(1)

    console.print(f"{year}: epochs {start} - {end}")


@cli.command()
@click.argument("address", required=False)
@click.option("--year", type=int, default=None, help="Calendar year to report")
@click.option(
    "--granularity",
    type=click.Choice([g.value for g in Granularity]),
    default=Granularity.MONTH.value,
    help="One row per month or one row for the whole year",
)
@click.option("--start-epoch", type=int, default=None, help="Explicit period start epoch")
@click.option("--end-epoch", type=int, default=None, help="Explicit period end epoch")
@click.option("--format", "output_format", type=click.Choice(["rich", "json", "csv"]), default="rich")
@click.option("--output", type=click.Path(dir_okay=False, writable=True), default=None, help="Write to file")
def rewards(address, year, granularity, start_epoch, end_epoch, output_format, output):
    """Compute staking rewards for ADDRESS (defaults to DELEGATOR_ADDRESS)."""
    address = address or Config.DELEGATOR_ADDRESS
    if not address:
        console.print("[red]No address given and DELEGATOR_ADDRESS not set[/red]")
        sys.exit(1)

    if year is None and (start_epoch is None or end_epoch is None):
        console.print("[red]Pass --year or both --start-epoch and --end-epoch[/red]")
        sys.exit(1)

    status = console.status("Computing rewards...")
    calculator = StakingRewardsCalculator(progress=lambda message: status.update(message))

    try:
        with status:
            result = calculator.compute_rewards(
                address,
                year=year,
                granularity=granularity,
                start_epoch=start_epoch,
                end_epoch=end_epoch,
            )
    except (NexusAPIError, ValueError) as e:
        console.print(f"[red]Error computing rewards: {e}[/red]")
        logging.exception("Rewards computation error")
        sys.exit(1)

    if output_format == "rich":
        RewardsReport(result, console).display()
        return

    if output_format == "csv":
        if output:
            count = write_csv(result.rows, output)
            console.print(f"✅ Wrote {count} rows to {output}")
        else:
            write_csv(result.rows, sys.stdout)
    else:
        payload = to_json(result)
        if output:
            with open(output, "w", encoding="utf-8") as handle:
                handle.write(payload)
            console.print(f"✅ Wrote {len(result.rows)} rows to {output}")
        else:
            click.echo(payload)

    for warning in result.warnings:
        click.echo(f"Warning: {warning}", err=True)


if __name__ == "__main__":
    cli()
