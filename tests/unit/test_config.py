"""Unit tests for settings and model host configuration."""

import json

import pytest

from prosefix.core.config import (
    ConfigStore,
    HostConfig,
    Settings,
    get_settings,
    parse_bool,
    settings,
)
from prosefix.core.exceptions import ConfigPersistError

pytestmark = pytest.mark.unit


def test_settings_initialization():
    """Test settings are initialized properly."""
    assert settings.APP_NAME == "Prosefix Workbench"
    assert settings.API_PREFIX == "/api"
    assert settings.ENVIRONMENT == "test"
    assert settings.STREAM_PACE_MS == 0
    assert get_settings() is settings


def test_settings_allowed_origins_from_env(monkeypatch):
    monkeypatch.setenv("ALLOWED_ORIGINS", "http://a.test, http://b.test ,")
    assert Settings().ALLOWED_ORIGINS == ["http://a.test", "http://b.test"]


def test_settings_host_defaults():
    config = settings.host_defaults()
    assert isinstance(config, HostConfig)
    assert config.autostart is False


@pytest.mark.parametrize(
    ("value", "expected"),
    [
        ("1", True),
        ("true", True),
        ("YES", True),
        ("on", True),
        (True, True),
        ("0", False),
        ("off", False),
        ("", False),
        ("truthy", False),
        (False, False),
    ],
)
def test_parse_bool(value, expected):
    assert parse_bool(value) is expected


def test_parse_bool_none_uses_fallback():
    assert parse_bool(None, True) is True


class TestHostConfig:
    def test_defaults(self):
        config = HostConfig.from_mapping(None)
        assert config == HostConfig(
            host="127.0.0.1",
            port=11434,
            autostart=False,
            start_timeout_ms=15000,
            run_timeout_ms=120000,
            concurrency=2,
        )

    def test_string_values_are_normalized(self):
        config = HostConfig.from_mapping(
            {
                "OLLAMA_HOST": " localhost ",
                "OLLAMA_PORT": "11500",
                "OLLAMA_AUTOSTART": "yes",
                "OLLAMA_START_TIMEOUT_MS": "5000",
                "OLLAMA_RUN_TIMEOUT_MS": "60000",
                "OLLAMA_CONCURRENCY": "4",
            }
        )
        assert config.host == "localhost"
        assert config.port == 11500
        assert config.autostart is True
        assert config.start_timeout == 5.0
        assert config.run_timeout == 60.0
        assert config.concurrency == 4

    @pytest.mark.parametrize(
        ("raw", "expected"),
        [("0", 2), ("", 2), ("abc", 2), ("-3", 1), (8, 8)],
    )
    def test_concurrency_minimum(self, raw, expected):
        assert HostConfig.from_mapping({"OLLAMA_CONCURRENCY": raw}).concurrency == expected

    def test_invalid_numbers_fall_back(self):
        config = HostConfig.from_mapping({"OLLAMA_PORT": "not-a-port", "OLLAMA_RUN_TIMEOUT_MS": 0})
        assert config.port == 11434
        assert config.run_timeout_ms == 120000

        for port in (70000, "65536", -1):
            assert HostConfig.from_mapping({"OLLAMA_PORT": port}).port == 11434
        assert HostConfig.from_mapping({"OLLAMA_PORT": "65535"}).port == 65535

    def test_wire_keys(self):
        config = HostConfig(host="127.0.0.1", port=1234)
        assert list(config.to_dict()) == list(HostConfig.KEYS)
        assert config.address == "127.0.0.1:1234"
        assert config.is_local

    def test_round_trip_through_wire_keys(self):
        config = HostConfig(host="10.0.0.5", port=9999, autostart=True, concurrency=3)
        assert HostConfig.from_mapping(config.to_dict()) == config


class TestConfigStore:
    def test_without_file_uses_defaults(self, tmp_path):
        defaults = HostConfig(port=12000)
        store = ConfigStore(defaults, path=tmp_path / "missing.json")
        assert store.snapshot() == defaults

    def test_file_overrides_env_defaults(self, tmp_path):
        path = tmp_path / "config.json"
        path.write_text(json.dumps({"OLLAMA_CONCURRENCY": 5}), encoding="utf-8")

        store = ConfigStore(HostConfig(port=12000), path=path)

        assert store.snapshot().concurrency == 5
        assert store.snapshot().port == 12000

    @pytest.mark.parametrize("content", ["{not json", "[1, 2]"])
    def test_unusable_file_is_ignored(self, tmp_path, content):
        path = tmp_path / "config.json"
        path.write_text(content, encoding="utf-8")
        assert ConfigStore(HostConfig(), path=path).snapshot() == HostConfig()

    def test_update_merges_and_ignores_unknown_keys(self, config_store):
        before = config_store.snapshot()
        after = config_store.update({"OLLAMA_CONCURRENCY": "6", "SOMETHING_ELSE": 1})

        assert after.concurrency == 6
        assert after.port == before.port
        assert config_store.snapshot() is after
        assert before.concurrency == 2  # earlier snapshot unchanged
        assert not config_store.path.exists()

    def test_persist_writes_json_and_reloads(self, config_store):
        config_store.update({"OLLAMA_PORT": 11999, "OLLAMA_AUTOSTART": True}, persist=True)

        written = json.loads(config_store.path.read_text(encoding="utf-8"))
        assert written["OLLAMA_PORT"] == 11999
        assert written["OLLAMA_AUTOSTART"] is True

        reloaded = ConfigStore(HostConfig(), path=config_store.path)
        assert reloaded.snapshot() == config_store.snapshot()

    def test_persist_failure_raises_but_keeps_update(self, tmp_path):
        blocker = tmp_path / "blocker"
        blocker.write_text("a file, not a directory", encoding="utf-8")
        store = ConfigStore(HostConfig(), path=blocker / "config.json")

        with pytest.raises(ConfigPersistError) as exc_info:
            store.update({"OLLAMA_CONCURRENCY": 3}, persist=True)

        assert exc_info.value.error_code == "config_write_error"
        assert store.snapshot().concurrency == 3

    def test_persist_without_path(self):
        store = ConfigStore(HostConfig())
        with pytest.raises(ConfigPersistError):
            store.update({}, persist=True)
