"""Broker configuration.

Values come from an optional YAML file (BROKER_CONFIG_PATH, default
config/broker.yaml) and are overridden by environment variables.
"""

import os
from dataclasses import dataclass, fields

import yaml

from internal.atlas.client import DEFAULT_BASE_URL, DEFAULT_TIMEOUT_SECONDS


class ConfigError(Exception):
    pass


# setting name -> environment variable
ENV_VARS = {
    "atlas_base_url": "ATLAS_BASE_URL",
    "atlas_group_id": "ATLAS_GROUP_ID",
    "atlas_public_key": "ATLAS_PUBLIC_KEY",
    "atlas_private_key": "ATLAS_PRIVATE_KEY",
    "atlas_timeout_seconds": "ATLAS_TIMEOUT_SECONDS",
    "host": "BROKER_HOST",
    "port": "BROKER_PORT",
    "username": "BROKER_USERNAME",
    "password": "BROKER_PASSWORD",
    "log_level": "BROKER_LOG_LEVEL",
}

_REQUIRED = (
    "atlas_group_id", "atlas_public_key", "atlas_private_key", "username", "password",
)


@dataclass
class BrokerSettings:
    atlas_group_id: str = ""
    atlas_public_key: str = ""
    atlas_private_key: str = ""
    atlas_base_url: str = DEFAULT_BASE_URL
    atlas_timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS
    host: str = "0.0.0.0"
    port: int = 4000
    username: str = ""
    password: str = ""
    log_level: str = "INFO"

    def validate(self) -> list:
        """Return a list of configuration errors (empty if valid)."""
        errors = []
        for name in _REQUIRED:
            if not getattr(self, name):
                errors.append(f"{name} is required (set {ENV_VARS[name]})")
        if not isinstance(self.port, int) or not 0 < self.port < 65536:
            errors.append("port must be an integer between 1 and 65535")
        if not isinstance(self.atlas_timeout_seconds, (int, float)) or self.atlas_timeout_seconds <= 0:
            errors.append("atlas_timeout_seconds must be a positive number")
        return errors


class SettingsStore:
    def __init__(self, path: str | None = None, environ=None):
        self.path = path or os.environ.get("BROKER_CONFIG_PATH", "config/broker.yaml")
        self.environ = os.environ if environ is None else environ
        self._cache = None

    def load(self) -> BrokerSettings:
        if self._cache is None:
            self._cache = self._build()
        return self._cache

    def reload(self) -> BrokerSettings:
        self._cache = None
        return self.load()

    def _build(self) -> BrokerSettings:
        values = {}
        if os.path.exists(self.path):
            with open(self.path, "r", encoding="utf-8") as f:
                raw = yaml.safe_load(f) or {}
            if not isinstance(raw, dict):
                raise ConfigError(f"{self.path} must contain a mapping")
            values.update(raw)

        for name, env in ENV_VARS.items():
            if env in self.environ:
                values[name] = self.environ[env]

        known = {f.name for f in fields(BrokerSettings)}
        unknown = sorted(set(values) - known)
        if unknown:
            raise ConfigError(f"Unknown settings: {unknown}")

        try:
            if "port" in values:
                values["port"] = int(values["port"])
            if "atlas_timeout_seconds" in values:
                values["atlas_timeout_seconds"] = float(values["atlas_timeout_seconds"])
        except (TypeError, ValueError) as exc:
            raise ConfigError(f"Invalid numeric setting: {exc}") from exc

        return BrokerSettings(**values)


settings_store = SettingsStore()
