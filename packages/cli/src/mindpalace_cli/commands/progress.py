"""progress commands — reset, back up or restore review history.

Backups live in a private GitHub Gist (see mindpalace_store.gist). Records
are keyed by section natural key, so a backup can be restored into a fresh
database once the same repositories have been synced.
"""

from __future__ import annotations

import click
from rich.console import Console

from mindpalace_cli.services import build_history, get_config

console = Console()


def _gist_store(ctx):
    from mindpalace_store.gist import GistProgressStore

    config = get_config(ctx)
    token = config.get("github_token")
    if not token:
        raise click.UsageError(
            "Progress backup needs a GitHub token with 'gist' scope. "
            "Set GITHUB_TOKEN or run `gh auth login` first."
        )
    return GistProgressStore(gist_id=config.get("gist_id"), token=token)


@click.group("progress")
def progress_group():
    """Reset, back up or restore review history."""


@progress_group.command("reset")
@click.option("--yes", "-y", is_flag=True, help="Skip the confirmation prompt.")
@click.pass_context
def reset_cmd(ctx, yes: bool):
    """Delete all review history. Sections and documents are kept."""
    if not yes:
        click.confirm("Delete ALL review history?", abort=True)
    removed = build_history(ctx).reset()
    console.print(f"[green]Deleted {removed} review event(s).[/green]")


@progress_group.command("push")
@click.pass_context
def push_cmd(ctx):
    """Back up review history to a GitHub Gist."""
    from mindpalace_core.config import save_config_value

    gist = _gist_store(ctx)
    if gist.gist_id is None:
        gist_id = gist.create()
        save_config_value("gist_id", gist_id, ctx.obj.get("config_path", ".mindpalace.yml"))
        console.print(f"[green]Created progress Gist {gist_id} and saved it to the config file.[/green]")

    records = build_history(ctx).export_progress()
    if not gist.save(records):
        raise click.ClickException("Could not write progress to the Gist. Check the token's 'gist' scope.")
    console.print(f"[green]Backed up {len(records)} review event(s).[/green]")


@progress_group.command("pull")
@click.pass_context
def pull_cmd(ctx):
    """Restore review history from the configured GitHub Gist."""
    gist = _gist_store(ctx)
    if gist.gist_id is None:
        raise click.UsageError("No gist_id configured. Run `mindpalace progress push` first.")

    records = gist.load()
    added = build_history(ctx).import_progress(records)
    console.print(f"[green]Restored {added} of {len(records)} review event(s).[/green]")
