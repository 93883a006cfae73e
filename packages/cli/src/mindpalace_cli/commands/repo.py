"""repo commands — manage studied repositories and their path preferences."""

from __future__ import annotations

import click
from rich.console import Console
from rich.table import Table

from mindpalace_cli.services import find_repository_or_fail, get_store
from mindpalace_core.gh.repository import parse_repo_url
from mindpalace_core.utils.paths import INCLUDE_NOTHING
from mindpalace_store.models import Repository

console = Console()


@click.group("repo")
def repo_group():
    """Add, list and configure GitHub repositories."""


@repo_group.command("add")
@click.argument("url")
@click.option("--branch", default="main", show_default=True, help="Branch to use until the first sync resolves it.")
@click.pass_context
def add_cmd(ctx, url: str, branch: str):
    """Add a repository by URL or owner/name. Run `mindpalace sync` afterwards."""
    try:
        owner, name = parse_repo_url(url)
    except ValueError as e:
        raise click.UsageError(str(e))

    store = get_store(ctx)
    if store.find_repository(owner, name) is not None:
        console.print(f"[yellow]{owner}/{name} is already added.[/yellow]")
        return

    store.add_repository(
        Repository(owner=owner, name=name, url=f"https://github.com/{owner}/{name}", default_branch=branch)
    )
    console.print(f"[green]Added {owner}/{name}.[/green] Run [bold]mindpalace sync[/bold] to fetch its notes.")


@repo_group.command("list")
@click.pass_context
def list_cmd(ctx):
    """List repositories with their document counts and last sync time."""
    store = get_store(ctx)
    repositories = store.list_repositories()
    if not repositories:
        console.print("[yellow]No repositories added yet.[/yellow]")
        return

    table = Table(title="Repositories", show_header=True, header_style="bold cyan")
    table.add_column("Repository", style="bold")
    table.add_column("Branch")
    table.add_column("Documents", justify="right")
    table.add_column("Include")
    table.add_column("Exclude")
    table.add_column("Last Sync")

    for r in repositories:
        table.add_row(
            r.full_name,
            r.default_branch,
            str(len(store.list_documents(r.id))),
            ", ".join(r.include_paths) or "[dim]all[/dim]",
            ", ".join(r.exclude_paths) or "—",
            r.last_synced_at.astimezone().strftime("%Y-%m-%d %H:%M") if r.last_synced_at else "never",
        )

    console.print(table)


@repo_group.command("remove")
@click.argument("full_name")
@click.option("--yes", "-y", is_flag=True, help="Skip the confirmation prompt.")
@click.pass_context
def remove_cmd(ctx, full_name: str, yes: bool):
    """Remove a repository with all of its documents and review history."""
    repository = find_repository_or_fail(ctx, full_name)
    if not yes:
        click.confirm(f"Delete {full_name} and all of its review history?", abort=True)
    get_store(ctx).delete_repository(repository.id)
    console.print(f"[green]Removed {full_name}.[/green]")


@repo_group.command("paths")
@click.argument("full_name")
@click.option("--include", "include", multiple=True, help="Path to include (repeatable).")
@click.option("--exclude", "exclude", multiple=True, help="Path to exclude (repeatable).")
@click.option("--favorite", "favorite", multiple=True, help="Favorite folder or file (repeatable).")
@click.option("--none", "include_none", is_flag=True, help="Include nothing from this repository.")
@click.option("--clear", is_flag=True, help="Reset include, exclude and favorite paths.")
@click.pass_context
def paths_cmd(ctx, full_name: str, include, exclude, favorite, include_none: bool, clear: bool):
    """Show or edit which paths of a repository are studied.

    \b
    An explicit include beats an exclude. With no includes, everything that
    is not excluded is studied. Changes apply to study immediately and to
    downloads on the next sync.
    """
    repository = find_repository_or_fail(ctx, full_name)

    if clear:
        repository.include_paths, repository.exclude_paths, repository.favorite_paths = [], [], []
    if include_none:
        repository.include_paths, repository.exclude_paths = [INCLUDE_NOTHING], []
    elif include:
        repository.include_paths = [p for p in repository.include_paths if p != INCLUDE_NOTHING]
        repository.include_paths += [p.strip("/") for p in include if p.strip("/") not in repository.include_paths]
    repository.exclude_paths += [p.strip("/") for p in exclude if p.strip("/") not in repository.exclude_paths]
    repository.favorite_paths += [p.strip("/") for p in favorite if p.strip("/") not in repository.favorite_paths]

    if clear or include_none or include or exclude or favorite:
        get_store(ctx).save_repository(repository)

    console.print(f"[bold]{repository.full_name}[/bold]")
    console.print(f"  Include:   {', '.join(repository.include_paths) or 'all'}")
    console.print(f"  Exclude:   {', '.join(repository.exclude_paths) or '—'}")
    console.print(f"  Favorites: {', '.join(repository.favorite_paths) or '—'}")
