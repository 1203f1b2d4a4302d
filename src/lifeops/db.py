"""PostgreSQL access: provisioning, the asyncpg pool, and error translation.

Every store receives a :class:`Database` (or any asyncpg pool-like object)
from its caller. Failures of the driver or the network inside a
:func:`db_operation` block surface as ``AdapterError``.
"""

from __future__ import annotations

import logging
import os
import re
from collections.abc import AsyncIterator, Awaitable, Callable
from contextlib import asynccontextmanager
from typing import Any, TypeVar
from urllib.parse import parse_qs, urlparse

import asyncpg

from lifeops.errors import AdapterError

logger = logging.getLogger(__name__)

T = TypeVar("T")

SSL_MODES = frozenset({"disable", "prefer", "allow", "require", "verify-ca", "verify-full"})
_SSL_UPGRADE_LOST = "unexpected connection_lost() call"
_IDENTIFIER = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")

_DEFAULT_HOST = "localhost"
_DEFAULT_PORT = 5432
_DEFAULT_CREDENTIAL = "lifeops"


def _ssl_mode(raw: str | None) -> str | None:
    if raw is None or not raw.strip():
        return None
    mode = raw.strip().lower()
    if mode not in SSL_MODES:
        logger.warning("Ignoring unknown PostgreSQL sslmode %r", raw)
        return None
    return mode


def _schema_name(raw: str | None) -> str | None:
    if raw is None or not raw.strip():
        return None
    name = raw.strip()
    if not _IDENTIFIER.fullmatch(name):
        raise ValueError(f"Invalid schema name: {raw!r}. Expected a SQL identifier-style string.")
    return name


def db_params_from_env() -> dict[str, str | int | None]:
    """Connection parameters from ``DATABASE_URL``, else the ``POSTGRES_*`` variables."""
    env = os.environ
    if database_url := env.get("DATABASE_URL"):
        parsed = urlparse(database_url)
        return {
            "host": parsed.hostname or _DEFAULT_HOST,
            "port": parsed.port or _DEFAULT_PORT,
            "user": parsed.username or _DEFAULT_CREDENTIAL,
            "password": parsed.password or _DEFAULT_CREDENTIAL,
            "ssl": _ssl_mode(parse_qs(parsed.query).get("sslmode", [None])[0]),
        }
    return {
        "host": env.get("POSTGRES_HOST", _DEFAULT_HOST),
        "port": int(env.get("POSTGRES_PORT", str(_DEFAULT_PORT))),
        "user": env.get("POSTGRES_USER", _DEFAULT_CREDENTIAL),
        "password": env.get("POSTGRES_PASSWORD", _DEFAULT_CREDENTIAL),
        "ssl": _ssl_mode(env.get("POSTGRES_SSLMODE")),
    }


def should_retry_with_ssl_disable(exc: Exception, configured_ssl: str | None) -> bool:
    """True when the server dropped the STARTTLS upgrade and no sslmode was asked for."""
    return (
        configured_ssl is None
        and isinstance(exc, ConnectionError)
        and _SSL_UPGRADE_LOST in str(exc)
    )


@asynccontextmanager
async def db_operation(operation: str, target_id: Any = None) -> AsyncIterator[None]:
    """Report driver and network failures inside the block as ``AdapterError``."""
    try:
        yield
    except (asyncpg.PostgresError, asyncpg.InterfaceError, OSError) as exc:
        raise AdapterError(
            f"Database call failed: {exc}", operation=operation, target_id=target_id
        ) from exc


class Database:
    """One lifeops database and its asyncpg pool.

    ``provision()`` creates the database when missing, ``connect()`` opens
    the pool and ``close()`` releases it. The query methods proxy to the
    pool so a ``Database`` can be handed to stores directly.
    """

    def __init__(
        self,
        db_name: str,
        schema: str | None = None,
        host: str = _DEFAULT_HOST,
        port: int = _DEFAULT_PORT,
        user: str = "postgres",
        password: str = "postgres",
        ssl: str | None = None,
        min_pool_size: int = 1,
        max_pool_size: int = 10,
    ) -> None:
        self.db_name = db_name
        self.schema = _schema_name(schema)
        self.host = host
        self.port = port
        self.user = user
        self.password = password
        self.ssl = ssl
        self.min_pool_size = min_pool_size
        self.max_pool_size = max_pool_size
        self.pool: asyncpg.Pool | None = None

    @classmethod
    def from_env(cls, db_name: str, schema: str | None = None) -> Database:
        params = db_params_from_env()
        ssl = params["ssl"]
        return cls(
            db_name,
            schema=schema,
            host=str(params["host"]),
            port=int(params["port"]),
            user=str(params["user"]),
            password=str(params["password"]),
            ssl=ssl if isinstance(ssl, str) else None,
        )

    @property
    def url(self) -> str:
        """SQLAlchemy-style URL, used by the migration runner."""
        url = f"postgresql://{self.user}:{self.password}@{self.host}:{self.port}/{self.db_name}"
        return f"{url}?sslmode={self.ssl}" if self.ssl is not None else url

    def _connect_kwargs(self, database: str) -> dict[str, Any]:
        kwargs: dict[str, Any] = {
            "host": self.host,
            "port": self.port,
            "user": self.user,
            "password": self.password,
            "database": database,
        }
        if self.ssl is not None:
            kwargs["ssl"] = self.ssl
        return kwargs

    async def _open(self, factory: Callable[..., Awaitable[T]], kwargs: dict[str, Any]) -> T:
        """Call *factory*, retrying once without TLS when the upgrade was dropped."""
        try:
            return await factory(**kwargs)
        except Exception as exc:
            if not should_retry_with_ssl_disable(exc, self.ssl):
                raise
        logger.info(
            "PostgreSQL dropped the SSL upgrade for %s; retrying with ssl=disable", self.db_name
        )
        return await factory(**{**kwargs, "ssl": "disable"})

    async def provision(self) -> None:
        """Create the database through the ``postgres`` maintenance database if missing."""
        conn = await self._open(asyncpg.connect, self._connect_kwargs("postgres"))
        try:
            if await conn.fetchval("SELECT 1 FROM pg_database WHERE datname = $1", self.db_name):
                logger.info("Database already exists: %s", self.db_name)
                return
            # Identifiers cannot be bound as parameters.
            quoted = self.db_name.replace('"', '""')
            await conn.execute(f'CREATE DATABASE "{quoted}" TEMPLATE template0')
            logger.info("Created database: %s", self.db_name)
        finally:
            await conn.close()

    async def connect(self) -> asyncpg.Pool:
        kwargs = self._connect_kwargs(self.db_name)
        kwargs["min_size"] = self.min_pool_size
        kwargs["max_size"] = self.max_pool_size
        if self.schema is not None:
            kwargs["server_settings"] = {"search_path": f"{self.schema},public"}
        self.pool = await self._open(asyncpg.create_pool, kwargs)
        logger.info("Connection pool open for %s (schema=%s)", self.db_name, self.schema)
        return self.pool

    async def close(self) -> None:
        if self.pool is None:
            return
        await self.pool.close()
        self.pool = None
        logger.info("Connection pool closed for %s", self.db_name)

    # Pool proxies

    def _live_pool(self) -> asyncpg.Pool:
        if self.pool is None:
            raise RuntimeError(f"Database '{self.db_name}' has no active connection pool")
        return self.pool

    def acquire(self) -> Any:
        return self._live_pool().acquire()

    async def fetch(self, query: str, *args: Any, timeout: float | None = None) -> list[Any]:
        return await self._live_pool().fetch(query, *args, timeout=timeout)

    async def fetchrow(self, query: str, *args: Any, timeout: float | None = None) -> Any:
        return await self._live_pool().fetchrow(query, *args, timeout=timeout)

    async def fetchval(self, query: str, *args: Any, timeout: float | None = None) -> Any:
        return await self._live_pool().fetchval(query, *args, timeout=timeout)

    async def execute(self, query: str, *args: Any, timeout: float | None = None) -> str:
        return await self._live_pool().execute(query, *args, timeout=timeout)
