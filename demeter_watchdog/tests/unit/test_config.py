from __future__ import annotations

import json

import pytest

from demeter_watchdog.core.config import apply_refresh_override, get_settings, load_settings
from demeter_watchdog.core.errors import ConfigurationInvalidError, ConfigurationMissingError


def _write_config(tmp_path, payload) -> str:
    path = tmp_path / "conf.json"
    path.write_text(json.dumps(payload), encoding="utf-8")
    return str(path)


def _base_payload() -> dict:
    return {
        "neo4j": {
            "url": "bolt://graph.local:7687",
            "username": "imaging",
            "password": "imaging-pass",
            "encrypted": False,
        },
        "refreshRate": 5000,
    }


def test_load_settings_reads_json_document_shape(tmp_path) -> None:
    settings = load_settings(_write_config(tmp_path, _base_payload()))

    assert settings.refresh_rate == 5000
    assert settings.neo4j.url == "bolt://graph.local:7687"
    assert settings.neo4j.username == "imaging"
    assert settings.tag_prefix == "Dmg_"
    assert settings.failure_threshold == 5

    poll = settings.poll_config()
    assert poll.refresh_rate_ms == 5000
    assert poll.tag_prefix == "Dmg_"
    assert poll.failure_threshold == 5


def test_environment_overrides_file_values(tmp_path, monkeypatch) -> None:
    monkeypatch.setenv("NEO4J__PASSWORD", "from-env")
    settings = load_settings(_write_config(tmp_path, _base_payload()))
    assert settings.neo4j.password == "from-env"
    assert settings.neo4j.username == "imaging"


def test_missing_file_is_reported(tmp_path) -> None:
    with pytest.raises(ConfigurationMissingError):
        load_settings(tmp_path / "absent.json")


def test_malformed_json_is_reported(tmp_path) -> None:
    path = tmp_path / "conf.json"
    path.write_text("{not json", encoding="utf-8")
    with pytest.raises(ConfigurationInvalidError):
        load_settings(path)


@pytest.mark.parametrize(
    "payload",
    [[1, 2], {"refreshRate": 0}, {"refreshRate": "soon"}, {"refreshRate": 100, "log_level": "LOUD"}],
)
def test_invalid_values_are_reported(tmp_path, payload) -> None:
    with pytest.raises(ConfigurationInvalidError):
        load_settings(_write_config(tmp_path, payload))


def test_get_settings_is_cached(tmp_path) -> None:
    path = _write_config(tmp_path, _base_payload())
    assert get_settings(path) is get_settings(path)


def test_refresh_override_applies_only_above_one(tmp_path) -> None:
    settings = load_settings(_write_config(tmp_path, _base_payload()))

    assert apply_refresh_override(settings, 2000).refresh_rate == 2000
    assert settings.refresh_rate == 5000
    for ignored in (1, 0, -1, None):
        assert apply_refresh_override(settings, ignored).refresh_rate == 5000


def test_redacted_masks_password(tmp_path) -> None:
    settings = load_settings(_write_config(tmp_path, _base_payload()))
    redacted = settings.redacted()
    assert redacted["neo4j"]["password"] == "****"
    assert settings.neo4j.password == "imaging-pass"


def test_log_level_is_normalized(tmp_path) -> None:
    payload = _base_payload() | {"log_level": "debug"}
    assert load_settings(_write_config(tmp_path, payload)).log_level == "DEBUG"
