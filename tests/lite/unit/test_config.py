"""Tests for the config loader and environment-driven config manager."""

import json
from pathlib import Path
from types import SimpleNamespace

import pytest

from venuecal.core.config_loader import DEFAULT_VIEW_CAPS, Config, load_config
from venuecal.core.config_manager import ConfigManager, get_config_value

pytestmark = pytest.mark.unit


class TestConfigFromDict:
    def test_defaults(self):
        config = Config.from_dict(None)
        assert config.display_timezone == "America/Denver"
        assert config.max_occurrences_per_event == 250
        assert config.view_caps == DEFAULT_VIEW_CAPS
        assert config.category_precedence == ("game_day", "poker", "karaoke")
        assert config.data_file is None

    def test_caps_and_precedence_are_parsed(self):
        config = Config.from_dict(
            {
                "month_caps": [3, 1],
                "category_precedence": "Karaoke, poker",
                "log_level": "debug",
            }
        )
        assert config.view_caps["month"] == (3, 1)
        assert config.view_caps["week"] == (5, 10)
        assert config.category_precedence == ("karaoke", "poker")
        assert config.log_level == "DEBUG"

    @pytest.mark.parametrize(
        ("data", "expected"),
        [
            ({"max_occurrences_per_event": "many"}, 250),
            ({"max_occurrences_per_event": "0"}, 1),
            ({"max_occurrences_per_event": "40"}, 40),
        ],
    )
    def test_max_occurrences_coercion(self, data, expected):
        assert Config.from_dict(data).max_occurrences_per_event == expected

    def test_bad_caps_are_ignored(self):
        config = Config.from_dict({"week_caps": [1, -2], "day_caps": "lots"})
        assert config.view_caps["week"] == DEFAULT_VIEW_CAPS["week"]
        assert config.view_caps["day"] == DEFAULT_VIEW_CAPS["day"]


class TestLoadConfig:
    def test_yaml_file_with_overrides(self, tmp_path: Path):
        path = tmp_path / "venuecal.yaml"
        path.write_text("display_timezone: America/Chicago\ndata_file: events.json\n", encoding="utf-8")

        config = load_config(str(path), overrides={"data_file": "other.json"})

        assert config.display_timezone == "America/Chicago"
        assert config.data_file == "other.json"

    def test_json_file(self, tmp_path: Path):
        path = tmp_path / "venuecal.json"
        path.write_text(json.dumps({"max_occurrences_per_event": 12}), encoding="utf-8")
        assert load_config(str(path)).max_occurrences_per_event == 12

    def test_empty_yaml_uses_defaults(self, tmp_path: Path):
        path = tmp_path / "venuecal.yaml"
        path.write_text("", encoding="utf-8")
        assert load_config(str(path)) == Config()

    def test_missing_file_uses_defaults(self, tmp_path: Path):
        assert load_config(str(tmp_path / "absent.yaml")) == Config()

    def test_non_mapping_raises(self, tmp_path: Path):
        path = tmp_path / "venuecal.yaml"
        path.write_text("- just\n- a list\n", encoding="utf-8")
        with pytest.raises(ValueError):
            load_config(str(path))


class TestConfigManager:
    def test_env_file_does_not_override_environment(self, tmp_path: Path, monkeypatch):
        env_file = tmp_path / ".env"
        env_file.write_text(
            "# defaults\nVENUECAL_DATA_FILE='from-file.json'\nVENUECAL_LOG_LEVEL=warning\n",
            encoding="utf-8",
        )
        monkeypatch.setenv("VENUECAL_LOG_LEVEL", "ERROR")

        loaded = ConfigManager(env_file).load_env_file()

        assert loaded == ["VENUECAL_DATA_FILE"]
        assert ConfigManager(env_file).build_config_from_env() == {
            "data_file": "from-file.json",
            "log_level": "ERROR",
        }

    def test_missing_env_file(self, tmp_path: Path):
        assert ConfigManager(tmp_path / ".env").load_env_file() == []

    def test_invalid_max_occurrences_is_ignored(self, tmp_path: Path, monkeypatch):
        monkeypatch.setenv("VENUECAL_MAX_OCCURRENCES", "lots")
        assert "max_occurrences_per_event" not in ConfigManager(tmp_path / ".env").build_config_from_env()

    def test_full_config_layers_environment_over_file(self, tmp_path: Path, monkeypatch):
        config_file = tmp_path / "venuecal.yaml"
        config_file.write_text("display_timezone: America/Chicago\nmonth_caps: [1, 3]\n", encoding="utf-8")
        monkeypatch.setenv("VENUECAL_CONFIG", str(config_file))
        monkeypatch.setenv("VENUECAL_DISPLAY_TIMEZONE", "America/Phoenix")
        monkeypatch.setenv("VENUECAL_CATEGORY_PRECEDENCE", "poker,game_day")

        config = ConfigManager(tmp_path / ".env").load_full_config()

        assert config.display_timezone == "America/Phoenix"
        assert config.view_caps["month"] == (1, 3)
        assert config.category_precedence == ("poker", "game_day")


@pytest.mark.parametrize(
    "source", [{"data_file": "x.json"}, SimpleNamespace(data_file="x.json")]
)
def test_get_config_value_supports_dicts_and_objects(source):
    assert get_config_value(source, "data_file") == "x.json"
    assert get_config_value(source, "missing", "fallback") == "fallback"
