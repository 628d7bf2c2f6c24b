"""Tests for the profile store."""

import json
import os
import stat

import pytest

from llm_cli.config import (
    Config,
    apply_profile_setting,
    get_config_path,
    load_config,
    save_config,
)
from llm_cli.constants import DEFAULT_MODEL, DEFAULT_PROFILE_NAME, DEFAULT_PROVIDER
from llm_cli.domain.profile import Profile
from llm_cli.errors import ConfigurationError, ProfileNotFoundError


def test_missing_config_file_yields_default_profile(config_path):
    config = load_config(config_path)
    assert config.current_profile == DEFAULT_PROFILE_NAME
    profile = config.get_profile()
    assert profile.provider == DEFAULT_PROVIDER
    assert profile.model == DEFAULT_MODEL
    assert not config_path.exists()


def test_save_then_load_preserves_profiles(config_path):
    config = Config()
    config.add("work")
    config.set_value("provider", "openai", name="work")
    config.set_value("model", "gpt-4o-mini", name="work")
    config.use("work")
    save_config(config, config_path)

    loaded = load_config(config_path)
    assert loaded.current_profile == "work"
    assert loaded.get_profile().provider == "openai"
    assert loaded.get_profile().model == "gpt-4o-mini"


@pytest.mark.skipif(os.name != "posix", reason="POSIX permissions")
def test_save_config_uses_owner_only_permissions(config_path):
    save_config(Config(), config_path)
    assert stat.S_IMODE(config_path.stat().st_mode) == 0o600
    assert stat.S_IMODE(config_path.parent.stat().st_mode) == 0o700


def test_load_config_rejects_invalid_json(config_path):
    config_path.parent.mkdir(parents=True)
    config_path.write_text("{not json", encoding="utf-8")
    with pytest.raises(ConfigurationError, match="Invalid JSON"):
        load_config(config_path)


def test_load_config_rejects_missing_current_profile(config_path):
    config_path.parent.mkdir(parents=True)
    config_path.write_text(
        json.dumps({"current_profile": "ghost", "profiles": {}}), encoding="utf-8"
    )
    with pytest.raises(ProfileNotFoundError):
        load_config(config_path)


def test_load_config_names_the_broken_profile(config_path):
    config_path.parent.mkdir(parents=True)
    config_path.write_text(
        json.dumps({"profiles": {"bad": {"provider": "mock", "model": "m", "timeout": "x"}}}),
        encoding="utf-8",
    )
    with pytest.raises(ConfigurationError, match="profile 'bad'"):
        load_config(config_path)


def test_add_copies_default_and_rejects_duplicates():
    config = Config()
    config.set_value("model", "mistral")
    added = config.add("copy")
    assert added.model == "mistral"
    with pytest.raises(ConfigurationError, match="already exists"):
        config.add("copy")


def test_remove_refuses_default_and_active_profiles():
    config = Config()
    config.add("other")
    with pytest.raises(ConfigurationError, match="default"):
        config.remove(DEFAULT_PROFILE_NAME)
    config.use("other")
    with pytest.raises(ConfigurationError, match="active"):
        config.remove("other")
    config.use(DEFAULT_PROFILE_NAME)
    config.remove("other")
    assert "other" not in config.profiles
    with pytest.raises(ProfileNotFoundError):
        config.remove("other")


def test_use_unknown_profile_raises():
    with pytest.raises(ProfileNotFoundError):
        Config().use("missing")


def test_apply_profile_setting_parses_limit_keys():
    profile = Profile(provider="mock", model="echo")
    profile = apply_profile_setting(profile, "limits.on_output_exceeded", "warn")
    profile = apply_profile_setting(profile, "limits.max_response_size_bytes", "1024")
    profile = apply_profile_setting(profile, "limits.enabled", "false")
    profile = apply_profile_setting(profile, "timeout", "30")
    assert profile.limits.on_output_exceeded == "warn"
    assert profile.limits.max_response_size_bytes == 1024
    assert profile.limits.enabled is False
    assert profile.timeout == 30


@pytest.mark.parametrize(
    ("key", "value"),
    [
        ("limits.on_input_exceeded", "drop"),
        ("limits.max_prompt_size_bytes", "ten"),
        ("limits.max_prompt_size_bytes", "0"),
        ("limits.enabled", "maybe"),
        ("limits.unknown", "1"),
        ("colour", "blue"),
    ],
)
def test_apply_profile_setting_rejects_bad_values(key, value):
    with pytest.raises(ConfigurationError):
        apply_profile_setting(Profile(provider="mock", model="echo"), key, value)


def test_get_config_path_honors_override(tmp_path):
    override = tmp_path / "custom.json"
    assert get_config_path(str(override)) == override
    assert get_config_path().name == "config.json"
