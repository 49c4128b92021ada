"""
Console display of staking reward results.
"""

import logging
from typing import Optional

from rich.console import Console
from rich.table import Table

from rewards.accrual import rewards_by_validator
from rewards.export import total_rewards
from rewards.models import RewardsResult
from rewards.utils import format_amount, format_timestamp_date, truncate_address

logger = logging.getLogger(__name__)


class RewardsReport:
    """Renders a RewardsResult as rich tables."""

    def __init__(self, result: RewardsResult, console: Optional[Console] = None):
        self.result = result
        self.console = console or Console()

    def build_rows_table(self) -> Table:
        """Per-sample reward rows."""
        table = Table(show_header=True, header_style="bold magenta")
        table.add_column("Validator", style="cyan")
        table.add_column("Epochs", justify="right")
        table.add_column("End Date", justify="center")
        table.add_column("Shares", justify="right", style="yellow")
        table.add_column("Value (ROSE)", justify="right", style="blue")
        table.add_column("Rewards (ROSE)", justify="right", style="green")

        for row in self.result.rows:
            record = row.to_record()
            table.add_row(
                truncate_address(record["validator"]),
                f"{row.period_start_epoch}-{row.end_epoch}",
                format_timestamp_date(row.end_timestamp),
                record["shares"],
                record["delegation_value"],
                record["rewards"],
            )

        return table

    def build_summary_table(self) -> Table:
        """Total rewards per validator."""
        table = Table(show_header=True, header_style="bold magenta")
        table.add_column("Validator", style="cyan")
        table.add_column("Rewards (ROSE)", justify="right", style="green")

        for validator, amount in rewards_by_validator(self.result.rows).items():
            table.add_row(str(validator), format_amount(amount))

        return table

    def display(self) -> None:
        result = self.result
        period = f"{result.year} " if result.year else ""

        self.console.print("\n" + "━" * 60)
        self.console.print(
            f"  [bold cyan]STAKING REWARDS[/bold cyan] - {period}"
            f"(epochs {result.start_epoch}-{result.end_epoch}, {result.granularity.value})"
        )
        self.console.print(f"  {result.address}")
        self.console.print("━" * 60 + "\n")

        if not result.rows:
            self.console.print("[yellow]No reward rows for this period[/yellow]")
        else:
            self.console.print(self.build_rows_table())
            self.console.print()
            self.console.print(self.build_summary_table())

        self.console.print("\n" + "━" * 60)
        self.console.print(
            f"[bold]Total Rewards:[/bold] {format_amount(total_rewards(result.rows))} ROSE"
        )
        self.console.print("━" * 60)

        for warning in result.warnings:
            self.console.print(f"⚠️ [yellow]{warning}[/yellow]")

        self.console.print()
