"""Application container wiring config, database and remote clients together."""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import Any

from lifeops.config import LifeOpsConfig
from lifeops.db import Database
from lifeops.modules.calendar.google import GoogleCalendarProvider
from lifeops.modules.calendar.provider import CalendarProvider
from lifeops.modules.calendar.service import CalendarService
from lifeops.modules.calendar.store import PostgresEventStore
from lifeops.modules.health.client import FitbitClient
from lifeops.modules.news.fetcher import NewsFetcher
from lifeops.modules.news.summarizer import NewsSummarizer
from lifeops.modules.tasks.manager import TaskManager
from lifeops.modules.tasks.scheduler import TaskScheduler
from lifeops.modules.tasks.store import PostgresTaskStore

logger = logging.getLogger(__name__)


@dataclass
class LifeOpsApp:
    """Live services for one process. Built and torn down by :func:`open_app`."""

    config: LifeOpsConfig
    db: Database
    tasks: TaskManager
    news_fetcher: NewsFetcher
    summarizer: NewsSummarizer
    fitbit: FitbitClient
    calendar: CalendarService | None = None
    scheduler: TaskScheduler | None = None

    @property
    def pool(self) -> Any:
        """Pool-like handle accepted by the function-style modules."""
        return self.db


def build_calendar_provider(config: LifeOpsConfig) -> CalendarProvider:
    return GoogleCalendarProvider(config.calendar.load_credentials())


@asynccontextmanager
async def open_app(
    config: LifeOpsConfig,
    *,
    db: Database | None = None,
    provider: CalendarProvider | None = None,
    with_calendar: bool = True,
) -> AsyncIterator[LifeOpsApp]:
    """Connect to the database and build every service.

    The pool and all HTTP clients are closed on exit, including when the
    block raises. *db* and *provider* may be injected; injected objects are
    still closed on exit. With *with_calendar* false no calendar credential
    is needed and ``calendar``/``scheduler`` stay ``None``.
    """
    db = db or Database.from_env(config.db.name, schema=config.db.schema)
    await db.connect()

    provider_instance: CalendarProvider | None = None
    news_fetcher: NewsFetcher | None = None
    summarizer: NewsSummarizer | None = None
    fitbit: FitbitClient | None = None
    try:
        task_store = PostgresTaskStore(db)
        calendar: CalendarService | None = None
        scheduler: TaskScheduler | None = None
        if with_calendar:
            provider_instance = provider or build_calendar_provider(config)
            calendar = CalendarService(
                PostgresEventStore(db),
                provider_instance,
                calendar_id=config.calendar.calendar_id,
                sync_window_days=config.calendar.sync_window_days,
            )
            scheduler = TaskScheduler(task_store, calendar)
        elif provider is not None:
            provider_instance = provider
        news_fetcher = NewsFetcher(config.news)
        summarizer = NewsSummarizer(config.summarizer)
        fitbit = FitbitClient(config.health)

        logger.info("lifeops '%s' ready (calendar=%s)", config.name, with_calendar)
        yield LifeOpsApp(
            config=config,
            db=db,
            tasks=TaskManager(task_store),
            news_fetcher=news_fetcher,
            summarizer=summarizer,
            fitbit=fitbit,
            calendar=calendar,
            scheduler=scheduler,
        )
    finally:
        for client in (fitbit, summarizer, news_fetcher, provider_instance):
            if client is not None:
                await client.shutdown()
        await db.close()
