"""Tests for configuration loading."""

import json

from shifttracker.config import Config


class TestConfig:
    """Test file, environment and default configuration."""

    def test_defaults_without_file(self, tmp_path):
        config = Config(str(tmp_path / "absent.json"), use_env=False)
        assert config.remote_configured is False
        assert config.sync["debounce_seconds"] == 2.0
        assert config.web["port"] == 8080
        assert config.validate() == (True, [])

    def test_json_file_merged_over_defaults(self, tmp_path):
        path = tmp_path / "config.json"
        path.write_text(json.dumps({"storage": {"data_dir": str(tmp_path / "d")}, "web": {"port": 9000}}))

        config = Config(str(path), use_env=False)

        assert config.web["port"] == 9000
        assert config.storage["db_file"] == "shifttracker.db"
        assert config.db_path == tmp_path / "d" / "shifttracker.db"

    def test_yaml_file(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("remote:\n  project_id: demo\n  api_key: secret\n")

        config = Config(str(path), use_env=False)

        assert config.remote_configured is True

    def test_env_overrides(self, tmp_path, monkeypatch):
        monkeypatch.setenv("SHIFTTRACKER_WEB_PORT", "9100")
        monkeypatch.setenv("SHIFTTRACKER_METRICS_ENABLED", "true")
        monkeypatch.setenv("SHIFTTRACKER_SYNC_DEBOUNCE_SECONDS", "0.5")

        config = Config(str(tmp_path / "absent.json"))

        assert config.web["port"] == 9100
        assert config.metrics["enabled"] is True
        assert config.sync["debounce_seconds"] == 0.5

    def test_validate_reports_errors(self, tmp_path):
        config = Config(str(tmp_path / "absent.json"), use_env=False)
        config.remote["project_id"] = "demo"
        config.web["port"] = 0
        config.log["level"] = "LOUD"

        is_valid, errors = config.validate()

        assert is_valid is False
        assert len(errors) == 3

    def test_to_dict_masks_api_key(self, tmp_path):
        config = Config(str(tmp_path / "absent.json"), use_env=False)
        config.remote["api_key"] = "secret"
        assert config.to_dict()["remote"]["api_key"] == "***"
        assert config.remote["api_key"] == "secret"
