"""Configuration loader for shifttracker.

Reads a JSON (or YAML) file and overlays environment variables, which may
come from a ``.env`` file. A missing file yields defaults: the tracker runs
fully offline without any configuration.
"""

import copy
import json
import os
from pathlib import Path
from typing import Any, Dict, Optional

import yaml
from dotenv import load_dotenv

DEFAULTS: Dict[str, Dict[str, Any]] = {
    "storage": {"data_dir": "./data", "db_file": "shifttracker.db"},
    "remote": {
        "project_id": "",
        "api_key": "",
        "collection": "rooms",
        "base_url": "https://firestore.googleapis.com/v1",
        "auth_url": "https://identitytoolkit.googleapis.com/v1",
        "timeout_seconds": 30,
    },
    "sync": {
        "debounce_seconds": 2.0,
        "poll_interval_seconds": 5,
        "journal_file": "sync_journal.db",
        "journal_retention_days": 90,
    },
    "log": {"level": "INFO", "log_dir": "./logs"},
    "web": {"port": 8080},
    "metrics": {"enabled": False, "metrics_dir": "./metrics"},
}

# Environment variable -> (section, key, converter)
ENV_OVERRIDES = {
    "SHIFTTRACKER_DATA_DIR": ("storage", "data_dir", str),
    "SHIFTTRACKER_LOG_LEVEL": ("log", "level", str),
    "SHIFTTRACKER_LOG_DIR": ("log", "log_dir", str),
    "SHIFTTRACKER_FIRESTORE_PROJECT_ID": ("remote", "project_id", str),
    "SHIFTTRACKER_FIRESTORE_API_KEY": ("remote", "api_key", str),
    "SHIFTTRACKER_SYNC_DEBOUNCE_SECONDS": ("sync", "debounce_seconds", float),
    "SHIFTTRACKER_WEB_PORT": ("web", "port", int),
    "SHIFTTRACKER_METRICS_ENABLED": (
        "metrics",
        "enabled",
        lambda v: v.lower() in ("true", "1", "yes", "on"),
    ),
}


class Config:
    """Configuration container."""

    def __init__(self, config_path: Optional[str] = "config.json", use_env: bool = True) -> None:
        """Initialize configuration.

        Args:
            config_path: Path to a .json, .yaml or .yml file; may be absent
            use_env: Apply environment variable overrides
        """
        self.path = Path(config_path) if config_path else None
        self.data: Dict[str, Dict[str, Any]] = copy.deepcopy(DEFAULTS)

        if self.path is not None and self.path.exists():
            self._merge(self._read_file(self.path))

        if use_env:
            load_dotenv()
            self._apply_env()

    @staticmethod
    def _read_file(path: Path) -> Dict[str, Any]:
        with open(path, encoding="utf-8") as f:
            if path.suffix in (".yaml", ".yml"):
                loaded = yaml.safe_load(f)
            else:
                loaded = json.load(f)
        if loaded is None:
            return {}
        if not isinstance(loaded, dict):
            raise ValueError(f"Configuration root must be a mapping: {path}")
        return loaded

    def _merge(self, loaded: Dict[str, Any]) -> None:
        for section, values in loaded.items():
            if isinstance(values, dict):
                self.data.setdefault(section, {}).update(values)
            else:
                self.data[section] = values

    def _apply_env(self) -> None:
        for env_key, (section, key, convert) in ENV_OVERRIDES.items():
            value = os.getenv(env_key)
            if value is not None and value != "":
                self.data[section][key] = convert(value)

    @property
    def storage(self) -> Dict[str, Any]:
        """Get local storage configuration."""
        return self.data["storage"]

    @property
    def remote(self) -> Dict[str, Any]:
        """Get remote document store configuration."""
        return self.data["remote"]

    @property
    def sync(self) -> Dict[str, Any]:
        """Get sync configuration."""
        return self.data["sync"]

    @property
    def log(self) -> Dict[str, Any]:
        """Get logging configuration."""
        return self.data["log"]

    @property
    def web(self) -> Dict[str, Any]:
        """Get web API configuration."""
        return self.data["web"]

    @property
    def metrics(self) -> Dict[str, Any]:
        """Get metrics configuration."""
        return self.data["metrics"]

    @property
    def db_path(self) -> Path:
        return Path(self.storage["data_dir"]) / self.storage["db_file"]

    @property
    def journal_path(self) -> Path:
        return Path(self.storage["data_dir"]) / self.sync["journal_file"]

    @property
    def remote_configured(self) -> bool:
        """Whether a remote backend is configured."""
        return bool(self.remote.get("project_id")) and bool(self.remote.get("api_key"))

    def validate(self) -> tuple[bool, list[str]]:
        """Validate configuration values.

        Returns:
            Tuple of (is_valid, error_messages)
        """
        errors: list[str] = []

        if bool(self.remote.get("project_id")) != bool(self.remote.get("api_key")):
            errors.append("remote.project_id and remote.api_key must be set together")

        try:
            if float(self.sync.get("debounce_seconds", 0)) < 0:
                errors.append("sync.debounce_seconds must not be negative")
        except (TypeError, ValueError):
            errors.append("sync.debounce_seconds must be a number")

        try:
            if float(self.sync.get("poll_interval_seconds", 0)) <= 0:
                errors.append("sync.poll_interval_seconds must be positive")
        except (TypeError, ValueError):
            errors.append("sync.poll_interval_seconds must be a number")

        port = self.web.get("port")
        if not isinstance(port, int) or not 0 < port < 65536:
            errors.append("web.port must be an integer between 1 and 65535")

        if str(self.log.get("level", "")).upper() not in (
            "DEBUG",
            "INFO",
            "WARNING",
            "ERROR",
            "CRITICAL",
        ):
            errors.append("log.level must be a standard logging level")

        return len(errors) == 0, errors

    def to_dict(self) -> Dict[str, Any]:
        """Return configuration as dictionary with secrets masked."""
        data = copy.deepcopy(self.data)
        if data["remote"].get("api_key"):
            data["remote"]["api_key"] = "***"
        return data
