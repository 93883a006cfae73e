"""CLI entry point for mindpalace.

Commands:
  repo      — add, list, remove repositories and edit their path preferences
  sync      — pull Markdown content from GitHub into the local store
  study     — review sections one at a time in priority order
  section   — ignore or favorite individual sections
  stats     — today's reviews, streak and overall progress
  progress  — reset, back up or restore review history
"""

from __future__ import annotations

import importlib.metadata
import logging

import click
from rich.console import Console
from rich.logging import RichHandler

from mindpalace_cli.commands.progress import progress_group
from mindpalace_cli.commands.repo import repo_group
from mindpalace_cli.commands.section import section_group
from mindpalace_cli.commands.stats import stats_cmd
from mindpalace_cli.commands.study import study_cmd
from mindpalace_cli.commands.sync import sync_cmd

console = Console()


def _build_store(config: dict):
    """Instantiate the local store from .mindpalace.yml settings.

    This factory lives in cli.py so neither mindpalace_core nor
    mindpalace_store know about the CLI config format.
    """
    from mindpalace_store.sqlite import SQLiteStore

    return SQLiteStore(db_path=config.get("store_path", ".mindpalace.db"))


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        handlers=[RichHandler(console=Console(stderr=True), show_path=False)],
        force=True,
    )


@click.group()
@click.version_option(
    version=importlib.metadata.version("mindpalace"),
    prog_name="mindpalace",
)
@click.option(
    "--config",
    "config_path",
    default=".mindpalace.yml",
    show_default=True,
    help="Path to the configuration file.",
    envvar="MINDPALACE_CONFIG",
)
@click.option("--verbose", "-v", is_flag=True, help="Log debug output to stderr.")
@click.pass_context
def main(ctx: click.Context, config_path: str, verbose: bool):
    """Study your Markdown notes from GitHub, one section at a time."""
    from mindpalace_core.config import load_config
    from mindpalace_cli.auth import resolve_github_token

    _configure_logging(verbose)
    ctx.ensure_object(dict)

    config = load_config(config_path)

    # Resolve token early so all subcommands share the same resolution.
    token = resolve_github_token()
    if token:
        config["github_token"] = token

    store = _build_store(config)
    ctx.obj["store"] = store
    ctx.obj["config"] = config
    ctx.obj["config_path"] = config_path
    ctx.call_on_close(store.close)


main.add_command(repo_group)
main.add_command(sync_cmd)
main.add_command(study_cmd)
main.add_command(section_group)
main.add_command(stats_cmd)
main.add_command(progress_group)
