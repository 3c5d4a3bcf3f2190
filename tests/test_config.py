# tests/test_config.py
# Default settings merged with overrides.json

import json
from pathlib import Path

import webfarm.settings as default_settings
from webfarm.local.config import MergedSettings


def test_defaults_without_overrides_file(tmp_path):
    settings = MergedSettings(overrides_path=tmp_path / "overrides.json")

    assert settings.DRAIN_TIMEOUT == default_settings.DRAIN_TIMEOUT
    assert settings.DELETE_RETRY_ATTEMPTS == 6
    assert settings.DELETE_RETRY_DELAY == 0.2
    assert settings.SIDECAR_FILENAME == "web.config"
    assert isinstance(settings.SITES_DIR, Path)


def test_only_modifiable_settings_are_overridden(tmp_path):
    overrides = tmp_path / "overrides.json"
    overrides.write_text(json.dumps({
        "DRAIN_TIMEOUT": 2.5,
        "DELETE_RETRY_ATTEMPTS": 10,
        "SITES_DIR": "/somewhere/else",
        "NOT_A_SETTING": 1,
    }))

    settings = MergedSettings(overrides_path=overrides)

    assert settings.DRAIN_TIMEOUT == 2.5
    assert settings.DELETE_RETRY_ATTEMPTS == 10
    assert settings.SITES_DIR == default_settings.SITES_DIR
    assert not hasattr(settings, "NOT_A_SETTING")


def test_malformed_overrides_keep_defaults(tmp_path):
    overrides = tmp_path / "overrides.json"
    overrides.write_text("{not json")

    settings = MergedSettings(overrides_path=overrides)

    assert settings.DRAIN_TIMEOUT == default_settings.DRAIN_TIMEOUT


def test_non_object_overrides_are_ignored(tmp_path):
    overrides = tmp_path / "overrides.json"
    overrides.write_text("[1, 2, 3]")

    settings = MergedSettings(overrides_path=overrides)

    assert settings.FANOUT_WORKERS == default_settings.FANOUT_WORKERS


def test_save_overrides_filters_and_round_trips(tmp_path):
    overrides = tmp_path / "nested" / "overrides.json"
    settings = MergedSettings(overrides_path=overrides)

    settings.save_overrides({"SUPERVISOR_SLEEP_INTERVAL": 5, "EXECUTION_DIR": "/tmp/x"})

    assert json.loads(overrides.read_text()) == {"SUPERVISOR_SLEEP_INTERVAL": 5}
    assert MergedSettings(overrides_path=overrides).SUPERVISOR_SLEEP_INTERVAL == 5


def test_as_dict_lists_every_setting(tmp_path):
    values = MergedSettings(overrides_path=tmp_path / "overrides.json").as_dict()

    assert "MODIFIABLE_SETTINGS" in values
    assert values["BUNDLE_DIR_NAME"] == "bin"


def test_save_overrides_merges_with_existing_file(tmp_path):
    overrides = tmp_path / "overrides.json"
    overrides.write_text(json.dumps({"DRAIN_TIMEOUT": 3.0, "SITES_DIR": "/ignored"}))
    settings = MergedSettings(overrides_path=overrides)

    assert settings.save_overrides({"FANOUT_WORKERS": 4}) is True

    assert json.loads(overrides.read_text()) == {"DRAIN_TIMEOUT": 3.0, "FANOUT_WORKERS": 4}
    assert settings.FANOUT_WORKERS == 4
    assert settings.DRAIN_TIMEOUT == 3.0


def test_save_overrides_without_modifiable_keys_writes_nothing(tmp_path):
    overrides = tmp_path / "overrides.json"
    settings = MergedSettings(overrides_path=overrides)

    assert settings.save_overrides({"SITES_DIR": "/tmp/x"}) is False
    assert not overrides.exists()
