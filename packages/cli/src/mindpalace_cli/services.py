"""Construct core services from the click context.

The group callback in cli.py puts ``config`` and ``store`` into ``ctx.obj``;
commands ask for the services they need here, so every command wires the
core the same way and tests can patch one place.
"""

from __future__ import annotations

import click

from mindpalace_core.gh.repository import GitHubContentProvider
from mindpalace_core.history import ReviewHistoryStore
from mindpalace_core.scheduler import ReviewScheduler, SchedulerSettings
from mindpalace_core.sync import ContentSyncEngine
from mindpalace_store.models import Repository


def get_store(ctx: click.Context):
    return ctx.obj["store"]


def get_config(ctx: click.Context) -> dict:
    return ctx.obj["config"]


def build_provider(config: dict) -> GitHubContentProvider:
    return GitHubContentProvider(token=config.get("github_token"), timeout=config.get("timeout", 30))


def build_sync_engine(ctx: click.Context) -> ContentSyncEngine:
    config = get_config(ctx)
    return ContentSyncEngine(
        store=get_store(ctx),
        provider=build_provider(config),
        staging_dir=config.get("staging_dir"),
        preserve_history=bool(config.get("preserve_history_on_resync", False)),
    )


def build_history(ctx: click.Context) -> ReviewHistoryStore:
    return ReviewHistoryStore(get_store(ctx))


def build_scheduler(ctx: click.Context) -> ReviewScheduler:
    return ReviewScheduler(
        store=get_store(ctx),
        history=build_history(ctx),
        settings=SchedulerSettings.from_config(get_config(ctx)),
    )


def find_repository_or_fail(ctx: click.Context, full_name: str) -> Repository:
    """Resolve "owner/name" to a stored repository or raise a UsageError."""
    owner, _, name = full_name.partition("/")
    repository = get_store(ctx).find_repository(owner, name) if name else None
    if repository is None:
        raise click.UsageError(f"Unknown repository {full_name!r}. Add it with `mindpalace repo add`.")
    return repository
