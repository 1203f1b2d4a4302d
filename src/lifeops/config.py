"""Configuration loading and validation.

Reads ``lifeops.toml``, resolves ``${VAR_NAME}`` references from the
environment, and returns a validated ``LifeOpsConfig`` dataclass. Module
sections are validated by the pydantic models their modules own.
"""

from __future__ import annotations

import os
import re
import tomllib
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError

from lifeops.modules.calendar.models import CalendarConfig
from lifeops.modules.health.client import HealthConfig
from lifeops.modules.news.fetcher import NewsConfig
from lifeops.modules.news.summarizer import SummarizerConfig

CONFIG_FILENAME = "lifeops.toml"
DEFAULT_APP_NAME = "lifeops"
DEFAULT_TIMEZONE = "UTC"

# Pattern matching ${VAR_NAME}
_ENV_VAR_PATTERN = re.compile(r"\$\{([A-Za-z_][A-Za-z0-9_]*)\}")
_DB_SCHEMA_PATTERN = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")


class ConfigError(Exception):
    """Raised when configuration is missing, malformed, or invalid."""


@dataclass
class LoggingConfig:
    """Logging configuration from the [lifeops.logging] section."""

    level: str = "INFO"
    format: str = "text"  # "text" or "json"
    log_root: str | None = None


@dataclass
class DatabaseConfig:
    """Database configuration from the [lifeops.db] section.

    Connection parameters (host, credentials) come from ``DATABASE_URL`` or
    ``POSTGRES_*`` environment variables; only the database name and the
    optional schema live in the file.
    """

    name: str = "lifeops"
    schema: str | None = None


@dataclass
class LifeOpsConfig:
    """Fully parsed configuration."""

    name: str = DEFAULT_APP_NAME
    timezone: str = DEFAULT_TIMEZONE
    db: DatabaseConfig = field(default_factory=DatabaseConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)
    calendar: CalendarConfig = field(default_factory=CalendarConfig)
    news: NewsConfig = field(default_factory=NewsConfig)
    summarizer: SummarizerConfig = field(default_factory=SummarizerConfig)
    health: HealthConfig = field(default_factory=HealthConfig)


def resolve_env_vars(value: Any) -> Any:
    """Recursively resolve ``${VAR_NAME}`` references in config values.

    Walks dicts, lists, and strings. Non-string leaf values are returned
    unchanged.

    Raises
    ------
    ConfigError
        If a referenced environment variable is not set.
    """
    if isinstance(value, dict):
        return {k: resolve_env_vars(v) for k, v in value.items()}

    if isinstance(value, list):
        return [resolve_env_vars(item) for item in value]

    if isinstance(value, str):
        return _resolve_string(value)

    return value


def _resolve_string(s: str) -> str:
    """Replace all ``${VAR_NAME}`` occurrences in *s* with env var values.

    Collects all missing variable names and reports them in a single error.
    """
    missing: list[str] = []

    def _replace(match: re.Match) -> str:
        var_name = match.group(1)
        env_value = os.environ.get(var_name)
        if env_value is None:
            missing.append(var_name)
            return match.group(0)
        return env_value

    result = _ENV_VAR_PATTERN.sub(_replace, s)

    if missing:
        vars_str = ", ".join(missing)
        raise ConfigError(
            f"Unresolved environment variable(s) in config value: {vars_str} (original: {s!r})"
        )

    return result


def _parse_section(model: type[BaseModel], raw: Any, section: str) -> Any:
    if raw is None:
        raw = {}
    if not isinstance(raw, dict):
        raise ConfigError(f"[{section}] must be a table")
    try:
        return model.model_validate(raw)
    except PydanticValidationError as exc:
        details = "; ".join(
            f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}" for err in exc.errors()
        )
        raise ConfigError(f"Invalid [{section}] section: {details}") from exc


def _parse_logging(section: Any) -> LoggingConfig:
    if not isinstance(section, dict):
        raise ConfigError("[lifeops.logging] must be a table")
    level = str(section.get("level", "INFO")).upper()
    fmt = str(section.get("format", "text")).lower()
    if fmt not in ("text", "json"):
        raise ConfigError(f"Invalid lifeops.logging.format: {fmt!r}. Expected 'text' or 'json'.")
    return LoggingConfig(level=level, format=fmt, log_root=section.get("log_root"))


def _parse_db(section: Any, app_name: str) -> DatabaseConfig:
    if not isinstance(section, dict):
        raise ConfigError("[lifeops.db] must be a table")
    name = str(section.get("name", app_name)).strip()
    if not name:
        raise ConfigError("lifeops.db.name must be a non-empty string")

    schema_raw = section.get("schema")
    schema: str | None = None
    if schema_raw is not None:
        if not isinstance(schema_raw, str) or _DB_SCHEMA_PATTERN.fullmatch(schema_raw) is None:
            raise ConfigError(
                f"Invalid lifeops.db.schema: {schema_raw!r}. "
                "Expected a valid SQL identifier-style value."
            )
        schema = schema_raw
    return DatabaseConfig(name=name, schema=schema)


def parse_config(data: dict[str, Any]) -> LifeOpsConfig:
    """Validate an already-decoded TOML document."""
    data = resolve_env_vars(data)

    app_section = data.get("lifeops", {})
    if not isinstance(app_section, dict):
        raise ConfigError("[lifeops] must be a table")

    name = str(app_section.get("name", DEFAULT_APP_NAME)).strip() or DEFAULT_APP_NAME
    timezone = str(app_section.get("timezone", DEFAULT_TIMEZONE)).strip()
    try:
        ZoneInfo(timezone)
    except (ZoneInfoNotFoundError, ValueError) as exc:
        raise ConfigError(f"Invalid lifeops.timezone: {timezone!r}") from exc

    return LifeOpsConfig(
        name=name,
        timezone=timezone,
        db=_parse_db(app_section.get("db", {}), name),
        logging=_parse_logging(app_section.get("logging", {})),
        calendar=_parse_section(CalendarConfig, data.get("calendar"), "calendar"),
        news=_parse_section(NewsConfig, data.get("news"), "news"),
        summarizer=_parse_section(SummarizerConfig, data.get("summarizer"), "summarizer"),
        health=_parse_section(HealthConfig, data.get("health"), "health"),
    )


def load_config(path: Path) -> LifeOpsConfig:
    """Load and validate a config file.

    *path* may be the TOML file itself or a directory containing
    ``lifeops.toml``.

    Raises
    ------
    ConfigError
        If the file is missing, contains invalid TOML, or fails validation.
    """
    toml_path = path / CONFIG_FILENAME if path.is_dir() else path

    if not toml_path.exists():
        raise ConfigError(f"Config file not found: {toml_path}")

    try:
        data = tomllib.loads(toml_path.read_bytes().decode())
    except tomllib.TOMLDecodeError as exc:
        raise ConfigError(f"Invalid TOML in {toml_path}: {exc}") from exc

    return parse_config(data)
