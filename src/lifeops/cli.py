"""Command-line entry point for lifeops."""

from __future__ import annotations

import asyncio
import json
import logging
import sys
from collections.abc import Awaitable, Callable
from datetime import datetime
from pathlib import Path
from typing import Any, TypeVar
from zoneinfo import ZoneInfo

import click

from lifeops import __version__
from lifeops.app import LifeOpsApp, open_app
from lifeops.config import CONFIG_FILENAME, ConfigError, LifeOpsConfig, load_config
from lifeops.core.logging import configure_logging, resolve_log_root
from lifeops.db import Database
from lifeops.errors import LifeOpsError
from lifeops.migrations import run_migrations
from lifeops.modules.calendar.models import Interval
from lifeops.modules.finance import get_current_balance
from lifeops.modules.news import get_summarized_news

logger = logging.getLogger(__name__)

T = TypeVar("T")


def _load(ctx: click.Context) -> LifeOpsConfig:
    config: LifeOpsConfig = ctx.obj["config"]
    return config


def _run(coro: Awaitable[T]) -> T:
    """Run *coro*, turning lifeops errors into a clean CLI failure."""
    try:
        return asyncio.run(coro)
    except LifeOpsError as exc:
        raise click.ClickException(str(exc)) from exc


async def _with_app(
    config: LifeOpsConfig,
    action: Callable[[LifeOpsApp], Awaitable[T]],
    *,
    with_calendar: bool = True,
) -> T:
    async with open_app(config, with_calendar=with_calendar) as app:
        return await action(app)


def _parse_moment(value: str, tz: str) -> datetime:
    moment = datetime.fromisoformat(value)
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=ZoneInfo(tz))
    return moment


def _echo_json(payload: Any) -> None:
    click.echo(json.dumps(payload, indent=2, default=str))


@click.group()
@click.version_option(version=__version__)
@click.option(
    "--config",
    "config_path",
    type=click.Path(path_type=Path),
    default=Path(CONFIG_FILENAME),
    envvar="LIFEOPS_CONFIG",
    show_default=True,
    help="Path to lifeops.toml (or the directory containing it)",
)
@click.pass_context
def cli(ctx: click.Context, config_path: Path) -> None:
    """lifeops: personal life-management assistant."""
    try:
        config = load_config(config_path)
    except ConfigError as exc:
        raise click.ClickException(str(exc)) from exc

    configure_logging(
        level=config.logging.level,
        fmt=config.logging.format,
        log_root=resolve_log_root(config.logging.log_root),
        app_name=config.name,
    )
    ctx.ensure_object(dict)
    ctx.obj["config"] = config


@cli.command()
@click.pass_context
def migrate(ctx: click.Context) -> None:
    """Create the database if needed and upgrade the schema to head."""
    config = _load(ctx)

    async def _migrate() -> None:
        db = Database.from_env(config.db.name, schema=config.db.schema)
        await db.provision()
        await run_migrations(db.url, schema=config.db.schema)

    _run(_migrate())
    click.echo(f"Database '{config.db.name}' is up to date.")


@cli.command()
@click.pass_context
def sync(ctx: click.Context) -> None:
    """Run one calendar synchronization pass."""
    report = _run(_with_app(_load(ctx), lambda app: app.calendar.sync_events()))
    _echo_json(report.as_dict())


@cli.command("free-time")
@click.pass_context
def free_time(ctx: click.Context) -> None:
    """Show the rest of today's free intervals."""
    config = _load(ctx)
    tz = ZoneInfo(config.timezone)
    now = datetime.now(tz)
    intervals = _run(_with_app(config, lambda app: app.calendar.free_intervals(now)))
    if not intervals:
        click.echo("No free time left today.")
        return
    for interval in intervals:
        click.echo(f"{interval.start.isoformat()}  ->  {interval.end.isoformat()}")


@cli.command()
@click.argument("task_id")
@click.option("--tz", "timezone", default=None, help="Timezone for the suggestions")
@click.pass_context
def suggest(ctx: click.Context, task_id: str, timezone: str | None) -> None:
    """Suggest slots over the next week that fit a task."""
    config = _load(ctx)
    tz = timezone or config.timezone
    slots = _run(_with_app(config, lambda app: app.scheduler.suggest_time_slots(task_id, tz)))
    if not slots:
        click.echo("No slot is long enough for this task.")
        return
    for slot in slots:
        click.echo(f"{slot.start.isoformat()}  ->  {slot.end.isoformat()}")


@cli.command()
@click.argument("task_id")
@click.argument("start")
@click.argument("end")
@click.pass_context
def schedule(ctx: click.Context, task_id: str, start: str, end: str) -> None:
    """Schedule a task between START and END (ISO-8601)."""
    config = _load(ctx)
    try:
        slot = Interval(
            start=_parse_moment(start, config.timezone), end=_parse_moment(end, config.timezone)
        )
    except ValueError as exc:
        raise click.BadParameter(str(exc)) from exc
    task = _run(_with_app(config, lambda app: app.scheduler.schedule_task(task_id, slot)))
    click.echo(f"Task scheduled. Calendar event ID: {task.linked_event_id}")


@cli.command()
@click.argument("task_id")
@click.pass_context
def unschedule(ctx: click.Context, task_id: str) -> None:
    """Remove a task from the calendar."""
    _run(_with_app(_load(ctx), lambda app: app.scheduler.unschedule_task(task_id)))
    click.echo("Task unscheduled.")


@cli.command()
@click.pass_context
def unscheduled(ctx: click.Context) -> None:
    """List unscheduled tasks, to-dos and study sessions."""
    items = _run(_with_app(_load(ctx), lambda app: app.scheduler.get_unscheduled_tasks()))
    if not items:
        click.echo("Nothing left to schedule.")
        return
    for item in items:
        click.echo(f"[{item.kind}] {item.id}  {item.title}")


@cli.group()
def task() -> None:
    """Manage tasks."""


@task.command("add")
@click.argument("title")
@click.option("--hours", type=float, required=True, help="Task duration in hours")
@click.pass_context
def task_add(ctx: click.Context, title: str, hours: float) -> None:
    """Create an unscheduled task."""
    created = _run(
        _with_app(
            _load(ctx),
            lambda app: app.tasks.create_task({"title": title, "duration_hours": hours}),
            with_calendar=False,
        )
    )
    click.echo(f"Created task {created.id}")


@cli.command()
@click.pass_context
def balance(ctx: click.Context) -> None:
    """Show total income minus total expenses."""
    amount = _run(
        _with_app(_load(ctx), lambda app: get_current_balance(app.pool), with_calendar=False)
    )
    click.echo(f"Current balance: {amount}")


@cli.command()
@click.argument("categories", nargs=-1)
@click.pass_context
def news(ctx: click.Context, categories: tuple[str, ...]) -> None:
    """Fetch and summarize top headlines."""
    summaries = _run(
        _with_app(
            _load(ctx),
            lambda app: get_summarized_news(
                app.news_fetcher, app.summarizer, list(categories) or None
            ),
            with_calendar=False,
        )
    )
    _echo_json([summary.model_dump(by_alias=True) for summary in summaries])


def main() -> None:
    try:
        cli()
    except KeyboardInterrupt:
        sys.exit(130)
