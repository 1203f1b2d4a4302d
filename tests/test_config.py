"""Tests for lifeops configuration loading and validation."""

from __future__ import annotations

from pathlib import Path

import pytest

from lifeops.config import (
    DEFAULT_APP_NAME,
    ConfigError,
    LifeOpsConfig,
    load_config,
    parse_config,
    resolve_env_vars,
)

pytestmark = pytest.mark.unit

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

FULL_TOML = """\
[lifeops]
name = "home"
timezone = "Europe/Berlin"

[lifeops.db]
name = "home_ops"
schema = "personal"

[lifeops.logging]
level = "debug"
format = "JSON"
log_root = "/var/log/lifeops"

[calendar]
calendar_id = "me@example.com"
sync_window_days = 14

[news]
categories = ["Technology", "Science"]
country = "de"

[summarizer]
model = "gpt-4o"
max_tokens = 512

[health]
client_id = "ABC123"
redirect_uri = "https://localhost/callback"
"""


def _write(tmp_path: Path, content: str) -> Path:
    path = tmp_path / "lifeops.toml"
    path.write_text(content)
    return path


# ---------------------------------------------------------------------------
# load_config
# ---------------------------------------------------------------------------


class TestLoadConfig:
    def test_full_config(self, tmp_path: Path):
        config = load_config(_write(tmp_path, FULL_TOML))

        assert config.name == "home"
        assert config.timezone == "Europe/Berlin"
        assert config.db.name == "home_ops"
        assert config.db.schema == "personal"
        assert config.logging.level == "DEBUG"
        assert config.logging.format == "json"
        assert config.logging.log_root == "/var/log/lifeops"
        assert config.calendar.calendar_id == "me@example.com"
        assert config.calendar.sync_window_days == 14
        assert config.news.categories == ["technology", "science"]
        assert config.news.country == "de"
        assert config.summarizer.model == "gpt-4o"
        assert config.summarizer.max_tokens == 512
        assert config.health.client_id == "ABC123"

    def test_directory_path_reads_lifeops_toml(self, tmp_path: Path):
        _write(tmp_path, FULL_TOML)
        assert load_config(tmp_path).name == "home"

    def test_empty_file_uses_defaults(self, tmp_path: Path):
        config = load_config(_write(tmp_path, ""))

        assert config.name == DEFAULT_APP_NAME
        assert config.timezone == "UTC"
        assert config.db.name == DEFAULT_APP_NAME
        assert config.db.schema is None
        assert config.logging.level == "INFO"
        assert config.calendar.calendar_id == "primary"
        assert config.news.categories == ["technology"]

    def test_db_name_defaults_to_app_name(self, tmp_path: Path):
        config = load_config(_write(tmp_path, '[lifeops]\nname = "casa"\n'))
        assert config.db.name == "casa"

    def test_missing_file(self, tmp_path: Path):
        with pytest.raises(ConfigError, match="not found"):
            load_config(tmp_path / "nope.toml")

    def test_invalid_toml(self, tmp_path: Path):
        with pytest.raises(ConfigError, match="Invalid TOML"):
            load_config(_write(tmp_path, "[lifeops\nname = "))


# ---------------------------------------------------------------------------
# Validation
# ---------------------------------------------------------------------------


class TestValidation:
    def test_unknown_timezone(self):
        with pytest.raises(ConfigError, match="timezone"):
            parse_config({"lifeops": {"timezone": "Mars/Olympus"}})

    def test_bad_logging_format(self):
        with pytest.raises(ConfigError, match="logging.format"):
            parse_config({"lifeops": {"logging": {"format": "xml"}}})

    @pytest.mark.parametrize("schema", ["1abc", "bad-schema", "a b", 42])
    def test_bad_db_schema(self, schema):
        with pytest.raises(ConfigError, match="db.schema"):
            parse_config({"lifeops": {"db": {"schema": schema}}})

    def test_blank_db_name(self):
        with pytest.raises(ConfigError, match="non-empty"):
            parse_config({"lifeops": {"db": {"name": "  "}}})

    def test_module_section_must_be_table(self):
        with pytest.raises(ConfigError, match=r"\[calendar\] must be a table"):
            parse_config({"calendar": "primary"})

    def test_module_section_rejects_unknown_keys(self):
        with pytest.raises(ConfigError, match=r"Invalid \[news\] section: colour"):
            parse_config({"news": {"colour": "red"}})

    def test_module_section_bounds(self):
        with pytest.raises(ConfigError, match="sync_window_days"):
            parse_config({"calendar": {"sync_window_days": 0}})

    def test_returns_dataclass(self):
        assert isinstance(parse_config({}), LifeOpsConfig)


# ---------------------------------------------------------------------------
# Environment variable resolution
# ---------------------------------------------------------------------------


class TestEnvVars:
    def test_resolves_nested_values(self, monkeypatch: pytest.MonkeyPatch):
        monkeypatch.setenv("LIFEOPS_CAL", "work@example.com")
        monkeypatch.setenv("LIFEOPS_TOPIC", "science")

        resolved = resolve_env_vars(
            {"calendar": {"calendar_id": "${LIFEOPS_CAL}"}, "topics": ["${LIFEOPS_TOPIC}", 3]}
        )

        assert resolved == {"calendar": {"calendar_id": "work@example.com"}, "topics": ["science", 3]}

    def test_partial_substitution(self, monkeypatch: pytest.MonkeyPatch):
        monkeypatch.setenv("LIFEOPS_HOST", "localhost")
        assert resolve_env_vars("https://${LIFEOPS_HOST}/cb") == "https://localhost/cb"

    def test_missing_variables_reported_together(self, monkeypatch: pytest.MonkeyPatch):
        monkeypatch.delenv("LIFEOPS_A", raising=False)
        monkeypatch.delenv("LIFEOPS_B", raising=False)

        with pytest.raises(ConfigError, match="LIFEOPS_A, LIFEOPS_B"):
            resolve_env_vars("${LIFEOPS_A}-${LIFEOPS_B}")

    def test_load_config_resolves_env(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch):
        monkeypatch.setenv("FITBIT_CLIENT", "XYZ")
        config = load_config(_write(tmp_path, '[health]\nclient_id = "${FITBIT_CLIENT}"\n'))
        assert config.health.client_id == "XYZ"
