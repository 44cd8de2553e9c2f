import tomllib

import platformdirs
import pytest

from raiagent import keystore
from raiagent.config import Config
from raiagent.profiles import ConfigError

INTEGRATION_CONFIG = (
    'default_profile = "default"\nactive_profile = "default"\nproviders = ["poe"]\n'
    'default_provider = "poe"\ndefault_model = "gpt-4o"\ntool_mode = "ask"\n'
    "no_tools = false\nauto_approve = false\n"
)


@pytest.fixture
def config_home(tmp_path, monkeypatch):
    config_dir = tmp_path / "config" / "rai"
    data_dir = tmp_path / "data"
    monkeypatch.setattr(platformdirs, "user_config_dir", lambda *a, **k: str(config_dir))
    monkeypatch.setattr(platformdirs, "user_data_dir", lambda *a, **k: str(data_dir))
    monkeypatch.setenv("HOME", str(tmp_path))
    monkeypatch.delenv("RAI_PROFILE", raising=False)
    return config_dir


def test_config_dir_follows_platform_location(config_home):
    assert Config.config_dir() == config_home


def test_profile_show_bootstraps_missing_default_profile(config_home):
    config_home.mkdir(parents=True)
    (config_home / "config.toml").write_text(
        'default_profile = "default"\nactive_profile = "default"\n'
    )
    config = Config.load()
    assert config.profile == "default"
    assert config.default_model == "gpt-4o"
    content = (config_home / "config.toml").read_text()
    assert "default_provider" in content
    assert tomllib.loads(content)["active_profile"] == "default"


def test_load_integration_home_config(config_home):
    config_home.mkdir(parents=True)
    (config_home / "config.toml").write_text(INTEGRATION_CONFIG)
    config = Config.load()
    assert config.provider == "poe"
    assert config.providers == ["poe"]
    assert config.default_provider == "poe"
    assert config.default_model == "gpt-4o"
    assert config.tool_mode == "ask"
    assert config.no_tools is False


def test_profile_list_contains_default(config_home):
    config_home.mkdir(parents=True)
    (config_home / "config.toml").write_text(INTEGRATION_CONFIG)
    assert Config.list_profiles() == ["default"]


def test_list_profiles_without_directory_is_empty(config_home):
    assert Config.list_profiles() == []


def test_fresh_load_writes_default_profile(config_home):
    config = Config.load()
    assert config.profile == "default"
    assert config.provider == ""
    assert config.providers == []
    assert config.default_provider is None
    assert config.tool_mode == "ask"
    saved = tomllib.loads((config_home / "config.toml").read_text())
    assert saved["default_provider"] == "openai"
    assert saved["default_profile"] == "default"


def test_create_profile_and_list(config_home):
    Config.create_profile("work")
    assert (config_home / "config.work.toml").exists()
    assert Config.list_profiles() == ["work"]
    Config.load()
    assert Config.list_profiles() == ["default", "work"]


def test_create_profile_copies_source(config_home):
    config_home.mkdir(parents=True)
    (config_home / "config.toml").write_text(INTEGRATION_CONFIG)
    Config.create_profile("copy", copy_from="default")
    config = Config.load("copy")
    assert config.profile == "copy"
    assert config.provider == "poe"


def test_create_existing_profile_fails(config_home):
    Config.create_profile("work")
    with pytest.raises(ConfigError, match="already exists"):
        Config.create_profile("work")


def test_explicit_missing_profile_fails(config_home):
    with pytest.raises(ConfigError, match="Profile 'ghost' not found"):
        Config.load("ghost")


def test_invalid_profile_override_fails(config_home):
    with pytest.raises(ConfigError, match="path separators"):
        Config.load("bad/name")


def test_environment_selects_profile(config_home, monkeypatch):
    Config.create_profile("work")
    monkeypatch.setenv("RAI_PROFILE", "work")
    assert Config.load().profile == "work"


def test_blank_environment_profile_is_ignored(config_home, monkeypatch):
    monkeypatch.setenv("RAI_PROFILE", "  ")
    assert Config.load().profile == "default"


def test_missing_active_profile_falls_back_to_default(config_home):
    config_home.mkdir(parents=True)
    (config_home / "config.toml").write_text('active_profile = "gone"\n')
    config = Config.load()
    assert config.profile == "default"
    assert Config.read_global_profile_settings() == ("default", "default")


def test_delete_default_profile_fails(config_home):
    Config.load()
    with pytest.raises(ConfigError, match="Cannot delete default profile"):
        Config.delete_profile("default")


def test_delete_active_profile_fails(config_home):
    Config.create_profile("work")
    Config.set_active_profile("work")
    with pytest.raises(ConfigError, match="Cannot delete active profile"):
        Config.delete_profile("work")


def test_delete_profile_removes_file(config_home):
    Config.create_profile("work")
    Config.delete_profile("work")
    assert not (config_home / "config.work.toml").exists()
    with pytest.raises(ConfigError, match="not found"):
        Config.delete_profile("work")


def test_rename_profile_follows_active(config_home):
    Config.create_profile("work")
    Config.set_active_profile("work")
    Config.rename_profile("work", "job")
    assert (config_home / "config.job.toml").exists()
    assert not (config_home / "config.work.toml").exists()
    assert Config.read_global_profile_settings() == ("default", "job")


def test_rename_to_existing_profile_fails(config_home):
    Config.create_profile("one")
    Config.create_profile("two")
    with pytest.raises(ConfigError, match="Profile 'two' already exists"):
        Config.rename_profile("one", "two")


def test_set_profiles_require_existing(config_home):
    with pytest.raises(ConfigError, match="not found"):
        Config.set_active_profile("nope")
    with pytest.raises(ConfigError, match="not found"):
        Config.set_default_profile("nope")


def test_set_default_profile(config_home):
    Config.create_profile("work")
    Config.set_default_profile("work")
    assert Config.read_global_profile_settings()[0] == "work"


def test_save_round_trip(config_home):
    config = Config.load()
    config.providers = ["anthropic"]
    config.default_model = "claude"
    config.tool_permissions = {"shell": "ask"}
    config.save()
    reloaded = Config.load()
    assert reloaded.provider == "anthropic"
    assert reloaded.default_model == "claude"
    assert reloaded.tool_permissions == {"shell": "ask"}
    assert Config.read_global_profile_settings() == ("default", "default")


def test_save_named_profile_has_no_global_keys(config_home):
    Config.create_profile("work")
    config = Config.load("work")
    assert config.auto_approve is False
    config.auto_approve = True
    config.save()
    reloaded = Config.load("work")
    assert reloaded.profile == "work"
    assert reloaded.auto_approve is True
    saved = tomllib.loads((config_home / "config.work.toml").read_text())
    assert saved["auto_approve"] is True
    assert "default_profile" not in saved
    assert "active_profile" not in saved


def test_providers_are_normalized(config_home):
    config_home.mkdir(parents=True)
    (config_home / "config.toml").write_text(
        'providers = [" OpenAI ", "poe", "openai"]\ndefault_provider = "POE"\n'
    )
    config = Config.load()
    assert config.providers == ["openai", "poe"]
    assert config.default_provider == "poe"
    assert config.provider == "poe"


def test_invalid_toml_raises(config_home):
    config_home.mkdir(parents=True)
    (config_home / "config.toml").write_text("providers = [\n")
    with pytest.raises(ConfigError, match="Failed to parse"):
        Config.load()


def test_wrong_field_type_raises(config_home):
    config_home.mkdir(parents=True)
    (config_home / "config.toml").write_text("no_tools = 3\n")
    with pytest.raises(ConfigError, match="Failed to parse"):
        Config.load()


def test_resolve_api_key_prefers_profile_scope(config_home):
    keystore.set_api_key("work:poe", "placeholder")
    keystore.set_api_key("poe", "token")
    config = Config(profile="work", provider=" POE ")
    config.resolve_api_key()
    assert config.provider == "poe"
    assert config.api_key == "placeholder"


def test_resolve_api_key_falls_back_to_provider_scope(config_home):
    keystore.set_api_key("poe", "token")
    config = Config(profile="work", provider="poe")
    config.resolve_api_key()
    assert config.api_key == "token"


def test_resolve_api_key_from_environment(config_home, monkeypatch):
    monkeypatch.setenv("RAI_TEST_BLANK_KEY", "   ")
    monkeypatch.setenv("RAI_TEST_POE_KEY", "secret")
    config = Config(provider="poe")
    config.resolve_api_key(["RAI_TEST_BLANK_KEY", "RAI_TEST_POE_KEY"])
    assert config.api_key == "secret"


def test_resolve_api_key_without_provider_is_noop(config_home, monkeypatch):
    monkeypatch.setenv("RAI_TEST_POE_KEY", "secret")
    config = Config(provider="  ")
    config.resolve_api_key(["RAI_TEST_POE_KEY"])
    assert config.api_key == ""
    assert config.provider == "  "