"""
Tests for settings loading
"""
import json
from datetime import timedelta

import pytest
from pydantic import ValidationError

from fleetwatch.config.loader import load_settings
from fleetwatch.config.settings import FleetSettings


@pytest.fixture
def config_file(tmp_path):
    def write(data):
        path = tmp_path / "fleetwatch.json"
        path.write_text(json.dumps(data), encoding="utf-8")
        return path

    return write


def test_defaults():
    settings = FleetSettings()

    assert settings.staleness_threshold == timedelta(minutes=30)
    assert settings.rate_window == timedelta(hours=24)
    assert settings.admin_key is None
    assert settings.rate_limit_policy().post_limit_per_day == 5
    assert settings.rate_limit_policy().vote_limit_per_day == 20


def test_blank_admin_key_is_unset():
    assert FleetSettings(admin_key="   ").admin_key is None


def test_load_file(config_file):
    path = config_file({"staleness_minutes": 15, "port": 9000, "log_level": "debug"})

    settings = load_settings(path, env={})

    assert settings.staleness_threshold == timedelta(minutes=15)
    assert settings.port == 9000
    assert settings.log_level == "DEBUG"


def test_env_substitution(config_file):
    path = config_file({"admin_key": "${SECRET}", "host": "${UNSET_VAR}"})

    settings = load_settings(path, env={"SECRET": "s3cret"})

    assert settings.admin_key == "s3cret"
    assert settings.host == "${UNSET_VAR}"


def test_env_overrides_file(config_file):
    path = config_file({"admin_key": "from-file", "vote_limit_per_day": 10})

    settings = load_settings(path, env={"FLEETWATCH_ADMIN_KEY": "from-env", "FLEETWATCH_VOTE_LIMIT": "30"})

    assert settings.admin_key == "from-env"
    assert settings.vote_limit_per_day == 30


def test_legacy_admin_key_variable(config_file):
    path = config_file({})

    assert load_settings(path, env={"ADMIN_PUBLIC_KEY": "legacy"}).admin_key == "legacy"
    both = {"ADMIN_PUBLIC_KEY": "legacy", "FLEETWATCH_ADMIN_KEY": "current"}
    assert load_settings(path, env=both).admin_key == "current"


def test_missing_explicit_file(tmp_path):
    with pytest.raises(FileNotFoundError):
        load_settings(tmp_path / "nope.json", env={})


def test_invalid_value(config_file):
    path = config_file({"staleness_minutes": 0})

    with pytest.raises(ValidationError):
        load_settings(path, env={})


def test_non_object_root(config_file):
    path = config_file([1, 2, 3])

    with pytest.raises(ValueError):
        load_settings(path, env={})
