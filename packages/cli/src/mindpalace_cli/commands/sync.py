"""sync command — pull Markdown content from GitHub into the local store."""

from __future__ import annotations

import click
from rich.console import Console
from rich.progress import BarColumn, Progress, TextColumn

from mindpalace_cli.services import build_sync_engine, find_repository_or_fail, get_store
from mindpalace_core.errors import AuthError, RateLimitError, SyncError

console = Console()


@click.command("sync")
@click.option("--repo", "full_name", default=None, help="Sync only this repository (owner/name).")
@click.pass_context
def sync_cmd(ctx, full_name: str | None):
    """Sync repositories from GitHub.

    The first sync of a repository downloads one snapshot of the whole
    branch; later syncs fetch only files whose content changed.
    """
    if full_name:
        repositories = [find_repository_or_fail(ctx, full_name)]
    else:
        repositories = get_store(ctx).list_repositories()
    if not repositories:
        console.print("[yellow]No repositories to sync. Add one with `mindpalace repo add`.[/yellow]")
        return

    engine = build_sync_engine(ctx)
    failed = 0
    for repository in repositories:
        with Progress(
            TextColumn("[bold]{task.description}"),
            BarColumn(),
            TextColumn("{task.percentage:>3.0f}%"),
            console=console,
            transient=True,
        ) as progress:
            task = progress.add_task(repository.full_name, total=1.0)
            try:
                result = engine.sync_repository(
                    repository,
                    on_progress=lambda value: progress.update(task, completed=value),
                )
            except (AuthError, RateLimitError) as e:
                # Retrying other repositories would fail the same way.
                raise click.ClickException(str(e))
            except SyncError as e:
                failed += 1
                console.print(f"[red]{repository.full_name}: {e}[/red]")
                continue

        console.print(
            f"[green]{repository.full_name}[/green] ({result.mode}): "
            f"{result.documents} document(s), {len(result.fetched)} fetched, {len(result.skipped)} unchanged"
            + (f", {len(result.removed)} removed" if result.removed else "")
        )

    if failed:
        raise click.ClickException(f"{failed} repository sync(s) failed.")
