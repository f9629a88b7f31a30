"""Tests for broker configuration loading."""

import os
import sys

PROJECT_ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
if PROJECT_ROOT not in sys.path:
    sys.path.insert(0, PROJECT_ROOT)

import pytest

from internal.atlas.client import DEFAULT_BASE_URL
from internal.config.settings import BrokerSettings, ConfigError, SettingsStore

_FULL_ENV = {
    "ATLAS_GROUP_ID": "group-1",
    "ATLAS_PUBLIC_KEY": "pub",
    "ATLAS_PRIVATE_KEY": "priv",
    "BROKER_USERNAME": "username",
    "BROKER_PASSWORD": "password",
}


def _store(tmp_path, content=None, environ=None):
    path = tmp_path / "broker.yaml"
    if content is not None:
        path.write_text(content, encoding="utf-8")
    return SettingsStore(path=str(path), environ=environ or {})


def test_defaults_without_file_or_env(tmp_path):
    settings = _store(tmp_path).load()
    assert settings.atlas_base_url == DEFAULT_BASE_URL
    assert settings.port == 4000
    assert settings.host == "0.0.0.0"


def test_missing_required_settings_reported(tmp_path):
    errors = _store(tmp_path).load().validate()
    for name in ("atlas_group_id", "atlas_public_key", "atlas_private_key", "username", "password"):
        assert any(name in e for e in errors)


def test_env_only_is_valid(tmp_path):
    settings = _store(tmp_path, environ=_FULL_ENV).load()
    assert settings.validate() == []
    assert settings.atlas_group_id == "group-1"


def test_yaml_file_values(tmp_path):
    settings = _store(tmp_path, content="port: 8081\natlas_group_id: from-file\n").load()
    assert settings.port == 8081
    assert settings.atlas_group_id == "from-file"


def test_env_overrides_file(tmp_path):
    environ = dict(_FULL_ENV, BROKER_PORT="9000", ATLAS_TIMEOUT_SECONDS="2.5")
    settings = _store(tmp_path, content="port: 8081\natlas_group_id: from-file\n", environ=environ).load()
    assert settings.port == 9000
    assert settings.atlas_timeout_seconds == 2.5
    assert settings.atlas_group_id == "group-1"


def test_unknown_setting_rejected(tmp_path):
    with pytest.raises(ConfigError):
        _store(tmp_path, content="listen_addr: 1.2.3.4\n").load()


def test_non_mapping_file_rejected(tmp_path):
    with pytest.raises(ConfigError):
        _store(tmp_path, content="- a\n- b\n").load()


def test_invalid_port_rejected(tmp_path):
    with pytest.raises(ConfigError):
        _store(tmp_path, environ={"BROKER_PORT": "http"}).load()


def test_port_out_of_range_reported():
    settings = BrokerSettings(
        atlas_group_id="g", atlas_public_key="p", atlas_private_key="k",
        username="u", password="p", port=70000,
    )
    assert any("port" in e for e in settings.validate())


def test_load_is_cached_until_reload(tmp_path):
    environ = dict(_FULL_ENV)
    store = _store(tmp_path, environ=environ)
    first = store.load()
    environ["ATLAS_GROUP_ID"] = "group-2"
    assert store.load() is first
    assert store.reload().atlas_group_id == "group-2"
