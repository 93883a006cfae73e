"""stats command — today's reviews, streak and overall progress."""

from __future__ import annotations

import click
from rich.console import Console
from rich.table import Table

from mindpalace_cli.services import build_history, get_config

console = Console()


@click.command("stats")
@click.option("--goal", "daily_goal", type=int, default=None, help="Daily goal. Overrides config file.")
@click.pass_context
def stats_cmd(ctx, daily_goal: int | None):
    """Show review statistics across all repositories."""
    goal = daily_goal if daily_goal is not None else get_config(ctx).get("daily_goal", 10)
    stats = build_history(ctx).statistics(daily_goal=goal)

    table = Table(title="Study Progress", show_header=False)
    table.add_column("Metric", style="bold")
    table.add_column("Value", justify="right")
    table.add_row("Reviewed today", f"{stats.reviewed_today} / {stats.daily_goal}")
    table.add_row("Current streak", f"{stats.current_streak} day(s)")
    table.add_row("Sections", str(stats.total_sections))
    table.add_row("Reviewed at least once", f"{stats.reviewed_sections} ({stats.progress * 100:.1f}%)")
    table.add_row("Never reviewed", str(stats.new_sections))
    console.print(table)

    if stats.daily_progress >= 1.0:
        console.print("[green]Daily goal reached.[/green]")
