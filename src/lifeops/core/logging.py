"""Structured logging for lifeops.

Uses structlog's ProcessorFormatter to upgrade all existing
``logging.getLogger(__name__)`` call sites without touching them.

Two output formats:
- ``text``: colored, human-readable console output (dev default)
- ``json``: machine-parseable JSON lines

The application name is injected by a processor that reads a ContextVar.
When ``log_root`` is set, JSON lines are also written to
``{log_root}/{app_name}.log``.
"""

from __future__ import annotations

import logging
import os
import sys
from contextvars import ContextVar
from pathlib import Path

import structlog

_app_context: ContextVar[str | None] = ContextVar("app_name", default=None)


def set_app_context(name: str) -> None:
    """Set the application name for the current async context."""
    _app_context.set(name)


def get_app_context() -> str | None:
    return _app_context.get()


def add_app_context(
    logger: logging.Logger,  # noqa: ARG001
    method_name: str,  # noqa: ARG001
    event_dict: dict,
) -> dict:
    """Inject ``app`` key from the ContextVar into the event dict."""
    event_dict["app"] = _app_context.get()
    return event_dict


_NOISE_LOGGERS = (
    "httpx",
    "httpcore",
    "asyncpg",
    "alembic.runtime.migration",
)

_DISABLED_LOG_ROOT_VALUES = {"", "none", "off", "false", "0"}


def resolve_log_root(configured: str | Path | None) -> Path | None:
    """Resolve the effective log root.

    ``LIFEOPS_LOG_ROOT`` overrides the configured value; setting it to
    ``none``/``off`` disables file logging. ``None`` means console only.
    """
    env_value = os.environ.get("LIFEOPS_LOG_ROOT")
    if env_value is not None:
        if env_value.strip().lower() in _DISABLED_LOG_ROOT_VALUES:
            return None
        return Path(env_value)
    if configured is None:
        return None
    return Path(configured)


def _build_processors(time_fmt: str) -> list[structlog.types.Processor]:
    """Build the pre-chain processor list with the given timestamp format."""
    return [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt=time_fmt),
        add_app_context,
        structlog.stdlib.ExtraAdder(),
    ]


def _make_file_handler(path: Path, processors: list) -> logging.FileHandler:
    """Create a JSON file handler at *path*."""
    formatter = structlog.stdlib.ProcessorFormatter(
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            structlog.processors.JSONRenderer(),
        ],
        foreign_pre_chain=processors,
    )
    handler = logging.FileHandler(path)
    handler.setFormatter(formatter)
    handler.setLevel(logging.DEBUG)
    return handler


def configure_logging(
    level: str = "INFO",
    fmt: str = "text",
    log_root: Path | None = None,
    app_name: str | None = None,
) -> None:
    """Configure structured logging for the process.

    Parameters
    ----------
    level:
        Root log level (e.g. "DEBUG", "INFO", "WARNING").
    fmt:
        Output format: ``"text"`` for colored console, ``"json"`` for JSON lines.
    log_root:
        Directory for the JSON log file. Created if missing.
    app_name:
        Application identity. Set in the ContextVar and used for file naming.
    """
    if app_name:
        set_app_context(app_name)

    if fmt == "json":
        console_processors = _build_processors(time_fmt="iso")
        renderer = structlog.processors.JSONRenderer()
    else:
        console_processors = _build_processors(time_fmt="%H:%M:%S")
        renderer = structlog.dev.ConsoleRenderer()

    formatter = structlog.stdlib.ProcessorFormatter(
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            renderer,
        ],
        foreign_pre_chain=console_processors,
    )

    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setFormatter(formatter)

    root = logging.getLogger()
    # Avoid duplicate output on reconfiguration
    root.handlers.clear()
    root.addHandler(console_handler)
    root.setLevel(getattr(logging, level.upper(), logging.INFO))

    for name in _NOISE_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    if log_root is not None:
        log_root = Path(log_root)
        log_root.mkdir(parents=True, exist_ok=True)
        file_handler = _make_file_handler(
            log_root / f"{app_name or 'lifeops'}.log",
            _build_processors(time_fmt="iso"),
        )
        root.addHandler(file_handler)

    structlog.configure(
        processors=[
            *console_processors,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )
