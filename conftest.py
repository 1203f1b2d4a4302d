"""Root conftest: shared fixtures for the lifeops test suite.

Unit tests get the in-memory fakes from ``tests.fakes``. Integration tests
use a session-scoped PostgreSQL testcontainer and get a freshly migrated
database per test.
"""

from __future__ import annotations

import logging
import time
import uuid
from collections.abc import AsyncIterator, Callable, Iterator
from contextlib import AbstractAsyncContextManager, asynccontextmanager
from typing import TYPE_CHECKING

import pytest

from tests.fakes import FakeCalendarProvider, InMemoryEventStore, InMemoryTaskStore

if TYPE_CHECKING:
    from testcontainers.postgres import PostgresContainer

    from lifeops.db import Database

logger = logging.getLogger(__name__)

_TEARDOWN_TRANSIENT_SNIPPETS = (
    "did not receive an exit event",
    "is already in progress",
    "no such container",
)
_TESTCONTAINER_STOP_RETRY_ATTEMPTS = 4
_TESTCONTAINER_STOP_BASE_DELAY_SECONDS = 0.1


# ---------------------------------------------------------------------------
# Fake fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def event_store() -> InMemoryEventStore:
    return InMemoryEventStore()


@pytest.fixture
def calendar_provider() -> FakeCalendarProvider:
    return FakeCalendarProvider()


@pytest.fixture
def task_store() -> InMemoryTaskStore:
    return InMemoryTaskStore()


# ---------------------------------------------------------------------------
# PostgreSQL testcontainer
# ---------------------------------------------------------------------------


def _unique_test_db_name() -> str:
    return f"test_{uuid.uuid4().hex[:12]}"


def _safe_exception_text(exc: BaseException) -> str:
    explanation_text = str(getattr(exc, "explanation", "") or "")
    return " ".join(part for part in (explanation_text, str(exc)) if part)


def _is_transient_testcontainer_teardown_error(exc: BaseException) -> bool:
    """True for known transient Docker API teardown races from force-remove."""
    try:
        from docker.errors import APIError
    except ImportError:
        return False

    if not isinstance(exc, APIError):
        return False
    status_code = getattr(getattr(exc, "response", None), "status_code", None)
    if status_code != 500:
        return False
    error_text = _safe_exception_text(exc).lower()
    return any(marker in error_text for marker in _TEARDOWN_TRANSIENT_SNIPPETS)


def _retry_testcontainer_stop(
    stop_call: Callable[[], None],
    *,
    max_attempts: int = _TESTCONTAINER_STOP_RETRY_ATTEMPTS,
    base_delay_seconds: float = _TESTCONTAINER_STOP_BASE_DELAY_SECONDS,
) -> None:
    """Retry transient Docker teardown races with bounded backoff."""
    if max_attempts < 1:
        raise ValueError("max_attempts must be >= 1")

    delay = base_delay_seconds
    for attempt in range(1, max_attempts + 1):
        try:
            stop_call()
            return
        except Exception as exc:
            if attempt >= max_attempts or not _is_transient_testcontainer_teardown_error(exc):
                raise
            logger.warning(
                "Transient Docker API teardown race (attempt %s/%s): %s",
                attempt,
                max_attempts,
                _safe_exception_text(exc),
            )
            time.sleep(delay)
            delay *= 2


@pytest.fixture(scope="session")
def postgres_container() -> Iterator[PostgresContainer]:
    """Shared Postgres testcontainer for all DB-backed tests in this pytest session.

    Each use of ``provisioned_postgres_pool`` gets its own database, so rows
    never leak between tests.
    """
    from testcontainers.postgres import PostgresContainer

    pg = PostgresContainer("postgres:16")
    pg.start()
    try:
        yield pg
    finally:
        _retry_testcontainer_stop(pg.stop)


@pytest.fixture
def provisioned_postgres_pool(
    postgres_container: PostgresContainer,
) -> Callable[..., AbstractAsyncContextManager[Database]]:
    """Create a fresh, migrated database for a single test usage.

    Tests should use this as:
        async with provisioned_postgres_pool() as db:
            ...
    """
    from lifeops.db import Database
    from lifeops.migrations import run_migrations

    @asynccontextmanager
    async def _provision(
        *,
        migrate: bool = True,
        min_pool_size: int = 1,
        max_pool_size: int = 3,
    ) -> AsyncIterator[Database]:
        db = Database(
            db_name=_unique_test_db_name(),
            host=postgres_container.get_container_host_ip(),
            port=int(postgres_container.get_exposed_port(5432)),
            user=postgres_container.username,
            password=postgres_container.password,
            min_pool_size=min_pool_size,
            max_pool_size=max_pool_size,
        )
        await db.provision()
        if migrate:
            await run_migrations(db.url)
        await db.connect()
        try:
            yield db
        finally:
            await db.close()

    return _provision


