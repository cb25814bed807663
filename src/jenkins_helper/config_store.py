"""Jenkins connection settings and their on-disk store.

Settings live in a JSON file so they survive across server restarts. The
default location is ``~/.jenkins-helper/config.json`` and can be overridden
with the ``JENKINS_HELPER_CONFIG_PATH`` environment variable.
"""

from __future__ import annotations

import json
import os
import threading
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Any

from loguru import logger


def _default_config_path() -> Path:
    """Return the default path for the config file."""
    custom = os.environ.get("JENKINS_HELPER_CONFIG_PATH")
    if custom:
        return Path(custom)
    return Path.home() / ".jenkins-helper" / "config.json"


@dataclass(frozen=True)
class JenkinsConfig:
    url: str = ""
    username: str = ""
    token: str = ""
    webhook: str = ""
    default_env: str = ""

    def is_complete(self) -> bool:
        """True when url, username and token are all non-blank."""
        return all(
            isinstance(v, str) and v.strip()
            for v in (self.url, self.username, self.token)
        )

    def to_dict(self) -> dict[str, str]:
        data = asdict(self)
        data["defaultEnv"] = data.pop("default_env")
        return data

    @classmethod
    def from_dict(cls, data: Any) -> "JenkinsConfig | None":
        """Build a config from its JSON form, or None if the shape is wrong."""
        if not isinstance(data, dict):
            return None
        values = {
            "url": data.get("url", ""),
            "username": data.get("username", ""),
            "token": data.get("token", ""),
            "webhook": data.get("webhook") or "",
            "default_env": data.get("defaultEnv") or "",
        }
        if not all(isinstance(v, str) for v in values.values()):
            return None
        return cls(**values)

    @classmethod
    def from_env(cls) -> "JenkinsConfig":
        """Read a config from environment variables.

        Environment variables:
            JENKINS_URL: Jenkins server URL
            JENKINS_USERNAME: Jenkins username
            JENKINS_API_TOKEN: Jenkins API token
            JENKINS_HELPER_WEBHOOK: optional webhook notified on completion
            JENKINS_HELPER_DEFAULT_ENV: optional preselected environment
        """
        return cls(
            url=os.environ.get("JENKINS_URL", ""),
            username=os.environ.get("JENKINS_USERNAME", ""),
            token=os.environ.get("JENKINS_API_TOKEN", ""),
            webhook=os.environ.get("JENKINS_HELPER_WEBHOOK", ""),
            default_env=os.environ.get("JENKINS_HELPER_DEFAULT_ENV", ""),
        )


DEFAULT_CONFIG = JenkinsConfig()


class ConfigStore:
    """Thread-safe, file-backed store for the Jenkins config."""

    def __init__(self, path: Path | None = None) -> None:
        self._path = path or _default_config_path()
        self._lock = threading.Lock()

    @property
    def path(self) -> Path:
        return self._path

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------
    def _read(self) -> JenkinsConfig:
        if not self._path.exists():
            return DEFAULT_CONFIG
        try:
            data = json.loads(self._path.read_text(encoding="utf-8"))
        except (json.JSONDecodeError, OSError) as e:
            logger.error(f"Failed to read config file {self._path}: {e}")
            return DEFAULT_CONFIG
        config = JenkinsConfig.from_dict(data)
        if config is None or not config.is_complete():
            logger.warning(f"Config file {self._path} is invalid, using defaults")
            return DEFAULT_CONFIG
        return config

    def _write(self, config: JenkinsConfig) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        self._path.write_text(
            json.dumps(config.to_dict(), ensure_ascii=False, indent=2),
            encoding="utf-8",
        )

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------
    def load(self) -> JenkinsConfig:
        """Return the stored config, or the empty default."""
        with self._lock:
            return self._read()

    def save(self, config: JenkinsConfig) -> None:
        """Persist *config*; incomplete configs are rejected."""
        if not config.is_complete():
            raise ValueError(
                "Jenkins config is incomplete: url, username and token are required."
            )
        with self._lock:
            self._write(config)

    def clear(self) -> None:
        """Reset the stored config to the empty default."""
        with self._lock:
            self._write(DEFAULT_CONFIG)


class Session:
    """Process-lifetime cache of the current config.

    The cached config is an immutable object replaced on every write, so
    readers never observe a half-updated value.
    """

    def __init__(self, store: ConfigStore | None = None) -> None:
        self._store = store or ConfigStore()
        self._config = DEFAULT_CONFIG

    @property
    def config(self) -> JenkinsConfig:
        return self._config

    @property
    def store(self) -> ConfigStore:
        return self._store

    def load(self) -> JenkinsConfig:
        config = self._store.load()
        if not config.is_complete():
            env_config = JenkinsConfig.from_env()
            if env_config.is_complete():
                logger.info("Using Jenkins config from environment variables")
                config = env_config
        self._config = config
        return config

    def save(self, config: JenkinsConfig) -> None:
        self._store.save(config)
        self._config = config

    def clear(self) -> None:
        self._store.clear()
        self._config = DEFAULT_CONFIG
