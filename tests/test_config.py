"""Tests for the YAML/.env configuration layer."""

from pathlib import Path

import pytest

from sorionlib.config import Config


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    monkeypatch.delenv("DISCORD_TOKEN", raising=False)
    monkeypatch.delenv("DISCORD_GUILD_ID", raising=False)


class TestDefaults:

    def test_empty_settings(self, tmp_path):
        config = Config(config_dir=tmp_path / "config", settings={})
        assert config.discord_token == ""
        assert config.prefix == "!"
        assert config.guild_id is None
        assert config.max_events == 100
        assert config.default_event_timeout_ms == 0
        assert config.metrics_retention_hours == 24
        assert config.max_container_components == 40
        assert config.storage_type is None
        assert config.logging_level == "INFO"
        assert config.log_dir == tmp_path / "logs"

    def test_invalid_values_fall_back(self, tmp_path):
        config = Config(
            config_dir=tmp_path,
            settings={"discord": {"prefix": "  ", "guild_id": "abc"}, "events": {"max_events": -5}},
        )
        assert config.prefix == "!"
        assert config.guild_id is None
        assert config.max_events == 100
        config.validate()


class TestLoading:

    def test_reads_settings_yaml(self, tmp_path):
        (tmp_path / "settings.yaml").write_text(
            "discord:\n"
            "  token: yaml-token\n"
            "  prefix: '?'\n"
            "  guild_id: 1234\n"
            "events:\n"
            "  max_events: 10\n"
            "  default_timeout_ms: 500\n"
            "storage:\n"
            "  type: SQLite\n"
            "  path: bot.db\n"
        )
        config = Config(config_dir=tmp_path)
        assert config.discord_token == "yaml-token"
        assert config.prefix == "?"
        assert config.guild_id == 1234
        assert config.max_events == 10
        assert config.default_event_timeout_ms == 500
        assert config.storage_type == "sqlite"
        assert config.storage_path == tmp_path.parent / "data" / "bot.db"

    def test_missing_yaml_is_empty(self, tmp_path):
        assert Config(config_dir=tmp_path).settings == {}

    def test_env_overrides_yaml(self, tmp_path, monkeypatch):
        monkeypatch.setenv("DISCORD_TOKEN", "env-token")
        monkeypatch.setenv("DISCORD_GUILD_ID", "999")
        config = Config(
            config_dir=tmp_path,
            settings={"discord": {"token": "yaml-token", "guild_id": 1}},
        )
        assert config.discord_token == "env-token"
        assert config.guild_id == 999

    def test_dotenv_file(self, tmp_path, monkeypatch):
        # Record the variable so load_dotenv's write is undone afterwards
        monkeypatch.setenv("DISCORD_TOKEN", "")
        monkeypatch.delenv("DISCORD_TOKEN")
        (tmp_path / ".env").write_text("DISCORD_TOKEN=dotenv-token\n")
        config = Config(config_dir=tmp_path, settings={})
        assert config.discord_token == "dotenv-token"


class TestStorage:

    def test_disabled(self, tmp_path):
        config = Config(config_dir=tmp_path, settings={"storage": {"type": "json", "enabled": False}})
        assert config.storage_type is None

    def test_json_default_path(self, tmp_path):
        config = Config(config_dir=tmp_path / "config", settings={"storage": {"type": "json"}})
        assert config.storage_type == "json"
        assert config.storage_path == tmp_path / "data" / "database.json"

    def test_absolute_path_kept(self, tmp_path):
        target = tmp_path / "elsewhere.json"
        config = Config(config_dir=tmp_path, settings={"storage": {"path": str(target)}})
        assert config.storage_path == Path(target)
