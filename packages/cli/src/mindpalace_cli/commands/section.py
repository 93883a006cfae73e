"""section commands — ignore or favorite individual sections."""

from __future__ import annotations

import click
from rich.console import Console
from rich.table import Table

from mindpalace_cli.services import get_store

console = Console()


def _get_section_or_fail(store, section_id: int):
    section = store.get_section(section_id)
    if section is None:
        raise click.UsageError(f"No section with id {section_id}.")
    return section


@click.group("section")
def section_group():
    """Flag sections as ignored or favorite."""


def _flag_command(name: str, help_text: str, **flags):
    @section_group.command(name, help=help_text)
    @click.argument("section_id", type=int)
    @click.pass_context
    def command(ctx, section_id: int):
        store = get_store(ctx)
        section = _get_section_or_fail(store, section_id)
        store.set_section_flags(section.id, **flags)
        console.print(f"[green]{name.capitalize()}d:[/green] {section.title}")

    return command


_flag_command("ignore", "Never serve this section for review.", ignored=True)
_flag_command("unignore", "Serve this section for review again.", ignored=False)
_flag_command("favorite", "Boost this section in the review order.", favorite=True)
_flag_command("unfavorite", "Remove the favorite boost from this section.", favorite=False)


@section_group.command("list")
@click.option("--ignored", is_flag=True, help="Only ignored sections.")
@click.option("--favorites", is_flag=True, help="Only favorite sections.")
@click.pass_context
def list_cmd(ctx, ignored: bool, favorites: bool):
    """List flagged sections."""
    store = get_store(ctx)
    sections = [s for s in store.list_sections() if (ignored and s.ignored) or (favorites and s.favorite)]
    if not ignored and not favorites:
        sections = [s for s in store.list_sections() if s.ignored or s.favorite]
    if not sections:
        console.print("[yellow]No flagged sections.[/yellow]")
        return

    table = Table(show_header=True, header_style="bold cyan")
    table.add_column("ID", justify="right", width=6)
    table.add_column("Title", max_width=50)
    table.add_column("Flags", width=18)
    for s in sections:
        flags = ", ".join(f for f, on in (("ignored", s.ignored), ("favorite", s.favorite)) if on)
        table.add_row(str(s.id), s.title, flags)
    console.print(table)
