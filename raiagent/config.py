"""User configuration: a global settings file plus named profile files."""

from __future__ import annotations

import os
import tomllib
from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, TypeVar

import platformdirs
import tomli_w

from raiagent import keystore
from raiagent.profiles import (
    ConfigError,
    normalize_provider_list,
    normalize_provider_name,
    profile_name_from_file,
    resolve_active_provider,
    validate_profile_name,
)

DEFAULT_PROFILE_NAME = "default"
DEFAULT_MODEL_NAME = "gpt-4o"
DEFAULT_TOOL_MODE = "ask"

_APP_NAME = "rai"
_GLOBAL_FILE_NAME = "config.toml"
_PROFILE_ENV_VAR = "RAI_PROFILE"

_T = TypeVar("_T")


class _FieldError(ValueError):
    """A configuration key holds a value of the wrong type."""


def _get(data: Mapping[str, Any], key: str, kind: type, default: Any) -> Any:
    if key not in data:
        return default
    value = data[key]
    if not isinstance(value, kind):
        raise _FieldError(f"invalid type for '{key}'")
    return value


def _get_optional_str(data: Mapping[str, Any], key: str) -> str | None:
    return _get(data, key, str, None)


def _get_str_list(data: Mapping[str, Any], key: str) -> list[str]:
    values = _get(data, key, list, [])
    if not all(isinstance(value, str) for value in values):
        raise _FieldError(f"invalid type for '{key}'")
    return list(values)


@dataclass
class _GlobalSettings:
    default_profile: str = DEFAULT_PROFILE_NAME
    active_profile: str | None = DEFAULT_PROFILE_NAME

    @classmethod
    def parse(cls, data: Mapping[str, Any]) -> _GlobalSettings:
        return cls(
            default_profile=_get(data, "default_profile", str, DEFAULT_PROFILE_NAME),
            active_profile=_get_optional_str(data, "active_profile"),
        )

    def to_toml(self) -> dict[str, Any]:
        table: dict[str, Any] = {"default_profile": self.default_profile}
        if self.active_profile is not None:
            table["active_profile"] = self.active_profile
        return table


@dataclass
class _ProfileData:
    provider: str = ""
    providers: list[str] = field(default_factory=list)
    default_provider: str | None = None
    default_model: str = ""
    provider_base_url: str = ""
    tool_mode: str = ""
    no_tools: bool = False
    auto_approve: bool = False
    tool_permissions: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def parse(cls, data: Mapping[str, Any]) -> _ProfileData:
        return cls(
            provider=_get(data, "provider", str, ""),
            providers=_get_str_list(data, "providers"),
            default_provider=_get_optional_str(data, "default_provider"),
            default_model=_get(data, "default_model", str, ""),
            provider_base_url=_get(data, "provider_base_url", str, ""),
            tool_mode=_get(data, "tool_mode", str, ""),
            no_tools=_get(data, "no_tools", bool, False),
            auto_approve=_get(data, "auto_approve", bool, False),
            tool_permissions=dict(_get(data, "tool_permissions", dict, {})),
        )

    def has_meaningful_fields(self, include_permissions: bool = True) -> bool:
        return bool(
            self.provider.strip()
            or self.providers
            or self.default_provider is not None
            or self.default_model.strip()
            or self.provider_base_url.strip()
            or self.tool_mode.strip()
            or self.no_tools
            or self.auto_approve
            or (include_permissions and self.tool_permissions)
        )

    def to_toml(self) -> dict[str, Any]:
        table: dict[str, Any] = {
            "provider": self.provider,
            "providers": list(self.providers),
        }
        if self.default_provider is not None:
            table["default_provider"] = self.default_provider
        table.update(
            default_model=self.default_model,
            provider_base_url=self.provider_base_url,
            tool_mode=self.tool_mode,
            no_tools=self.no_tools,
            auto_approve=self.auto_approve,
            tool_permissions=dict(self.tool_permissions),
        )
        return table


def _default_profile_data() -> _ProfileData:
    return _ProfileData(
        default_provider="openai",
        default_model=DEFAULT_MODEL_NAME,
        tool_mode=DEFAULT_TOOL_MODE,
    )


def _load_file(path: Path, what: str, parser: Callable[[Mapping[str, Any]], _T]) -> _T:
    content = path.read_text(encoding="utf-8")
    try:
        return parser(tomllib.loads(content))
    except (tomllib.TOMLDecodeError, _FieldError) as exc:
        raise ConfigError(f"Failed to parse {what}: {exc}") from exc


def _write_file(path: Path, table: Mapping[str, Any]) -> None:
    path.write_text(tomli_w.dumps(dict(table)), encoding="utf-8")


def _combined(settings: _GlobalSettings, data: _ProfileData) -> dict[str, Any]:
    return {**settings.to_toml(), **data.to_toml()}


def _global_path(directory: Path) -> Path:
    return directory / _GLOBAL_FILE_NAME


def _profile_path(directory: Path, profile: str) -> Path:
    if profile == DEFAULT_PROFILE_NAME:
        return _global_path(directory)
    return directory / f"config.{profile}.toml"


def _load_global(directory: Path) -> _GlobalSettings:
    path = _global_path(directory)
    if not path.exists():
        return _GlobalSettings()
    return _load_file(path, "global config file", _GlobalSettings.parse)


def _save_global(directory: Path, settings: _GlobalSettings) -> None:
    path = _global_path(directory)
    existing = (
        _load_file(path, "global config file", _ProfileData.parse)
        if path.exists()
        else _ProfileData()
    )
    _write_file(path, _combined(settings, existing))


def _profile_exists(directory: Path, profile: str) -> bool:
    profile = validate_profile_name(profile)
    path = _profile_path(directory, profile)
    if not path.exists():
        return False
    if profile == DEFAULT_PROFILE_NAME:
        data = _load_file(path, "profile config file", _ProfileData.parse)
        return data.has_meaningful_fields()
    return True


def _load_profile(directory: Path, profile: str) -> _ProfileData:
    profile = validate_profile_name(profile)
    path = _profile_path(directory, profile)
    if not path.exists():
        raise ConfigError(
            f"Profile '{profile}' not found. "
            f"Run `rai start` or `rai profile create {profile}`."
        )
    data = _load_file(path, "profile config file", _ProfileData.parse)
    if profile == DEFAULT_PROFILE_NAME and not data.has_meaningful_fields():
        data = _default_profile_data()
        _save_profile(directory, DEFAULT_PROFILE_NAME, data)
    return data


def _save_profile(directory: Path, profile: str, data: _ProfileData) -> None:
    profile = validate_profile_name(profile)
    path = _profile_path(directory, profile)
    if profile == DEFAULT_PROFILE_NAME:
        settings = (
            _load_file(path, "global config file", _GlobalSettings.parse)
            if path.exists()
            else _GlobalSettings()
        )
        _write_file(path, _combined(settings, data))
    else:
        _write_file(path, data.to_toml())


def _resolve_profile_from_global(settings: _GlobalSettings) -> str:
    if settings.active_profile is not None:
        return validate_profile_name(settings.active_profile)
    return validate_profile_name(settings.default_profile)


def _ensure_default_profile_exists(directory: Path, settings: _GlobalSettings) -> None:
    path = _profile_path(directory, DEFAULT_PROFILE_NAME)
    if not path.exists() or not _profile_exists(directory, DEFAULT_PROFILE_NAME):
        _save_profile(directory, DEFAULT_PROFILE_NAME, _default_profile_data())

    changed = False
    if not settings.default_profile.strip():
        settings.default_profile = DEFAULT_PROFILE_NAME
        changed = True
    if settings.active_profile is None:
        settings.active_profile = DEFAULT_PROFILE_NAME
        changed = True
    if changed:
        _save_global(directory, settings)


def _parse_legacy(data: Mapping[str, Any]) -> _ProfileData:
    return _ProfileData.parse({k: v for k, v in data.items() if k != "tool_permissions"})


def _migrate_legacy_if_needed(directory: Path, settings: _GlobalSettings) -> None:
    if _profile_path(directory, DEFAULT_PROFILE_NAME).exists():
        if not settings.default_profile.strip():
            settings.default_profile = DEFAULT_PROFILE_NAME
            _save_global(directory, settings)
        return

    path = _global_path(directory)
    if not path.exists():
        return
    try:
        legacy = _load_file(path, "legacy config", _parse_legacy)
    except ConfigError:
        legacy = _ProfileData()
    if not legacy.has_meaningful_fields(include_permissions=False):
        return

    _save_profile(directory, DEFAULT_PROFILE_NAME, legacy)
    settings.default_profile = DEFAULT_PROFILE_NAME
    if settings.active_profile is None:
        settings.active_profile = DEFAULT_PROFILE_NAME
    _save_global(directory, settings)


@dataclass
class Config:
    """The settings of one profile, with the API key resolved at runtime."""

    profile: str = DEFAULT_PROFILE_NAME
    provider: str = ""
    providers: list[str] = field(default_factory=list)
    default_provider: str | None = None
    default_model: str = DEFAULT_MODEL_NAME
    provider_base_url: str = ""
    tool_mode: str = DEFAULT_TOOL_MODE
    no_tools: bool = False
    auto_approve: bool = False
    tool_permissions: dict[str, Any] = field(default_factory=dict)
    api_key: str = field(default="", repr=False)

    @staticmethod
    def config_dir() -> Path:
        """The directory that holds the configuration files."""
        return Path(platformdirs.user_config_dir(_APP_NAME, _APP_NAME))

    @classmethod
    def load(cls, profile_override: str | None = None) -> Config:
        """Load the requested, environment-selected or active profile."""
        directory = cls.config_dir()
        directory.mkdir(parents=True, exist_ok=True)

        settings = _load_global(directory)
        _migrate_legacy_if_needed(directory, settings)

        env_profile = os.environ.get(_PROFILE_ENV_VAR)
        if profile_override is not None:
            requested, explicit = validate_profile_name(profile_override), True
        elif env_profile is not None and env_profile.strip():
            requested, explicit = validate_profile_name(env_profile), True
        else:
            requested, explicit = _resolve_profile_from_global(settings), False

        if not explicit and not _profile_exists(directory, requested):
            requested = DEFAULT_PROFILE_NAME
            _ensure_default_profile_exists(directory, settings)
            if settings.active_profile != DEFAULT_PROFILE_NAME:
                settings.active_profile = DEFAULT_PROFILE_NAME
                _save_global(directory, settings)

        return cls._from_profile_data(requested, _load_profile(directory, requested))

    def save(self) -> None:
        """Write this profile and make sure the global settings are complete."""
        directory = self.config_dir()
        directory.mkdir(parents=True, exist_ok=True)
        settings = _load_global(directory)
        if not settings.default_profile.strip():
            settings.default_profile = DEFAULT_PROFILE_NAME
        if settings.active_profile is None:
            settings.active_profile = self.profile
        _save_global(directory, settings)
        _save_profile(directory, self.profile, self._to_profile_data())

    @classmethod
    def list_profiles(cls) -> list[str]:
        """Names of all profiles that exist, sorted."""
        directory = cls.config_dir()
        if not directory.exists():
            return []
        names = [
            name
            for name in (profile_name_from_file(entry.name) for entry in directory.iterdir())
            if name is not None
        ]
        if DEFAULT_PROFILE_NAME not in names and _profile_exists(directory, DEFAULT_PROFILE_NAME):
            names.append(DEFAULT_PROFILE_NAME)
        return sorted(names)

    @classmethod
    def profile_exists(cls, profile: str) -> bool:
        """Whether ``profile`` has been set up."""
        return _profile_exists(cls.config_dir(), profile)

    @classmethod
    def create_profile(cls, name: str, copy_from: str | None = None) -> None:
        """Create a profile from defaults or as a copy of another profile."""
        profile_name = validate_profile_name(name)
        directory = cls.config_dir()
        directory.mkdir(parents=True, exist_ok=True)
        if _profile_exists(directory, profile_name):
            raise ConfigError(f"Profile '{profile_name}' already exists.")

        if copy_from is not None:
            source = _load_profile(directory, validate_profile_name(copy_from))
        else:
            source = _default_profile_data()
        _save_profile(directory, profile_name, source)

        settings = _load_global(directory)
        if not settings.default_profile.strip():
            settings.default_profile = profile_name
        if settings.active_profile is None:
            settings.active_profile = profile_name
        _save_global(directory, settings)

    @classmethod
    def delete_profile(cls, name: str) -> None:
        """Delete a profile that is neither the default nor the active one."""
        profile_name = validate_profile_name(name)
        directory = cls.config_dir()
        path = _profile_path(directory, profile_name)
        if not path.exists():
            raise ConfigError(f"Profile '{profile_name}' not found.")

        settings = _load_global(directory)
        if settings.default_profile == profile_name:
            raise ConfigError(
                f"Cannot delete default profile '{profile_name}'. "
                "Set another default profile first."
            )
        if settings.active_profile == profile_name:
            raise ConfigError(
                f"Cannot delete active profile '{profile_name}'. Switch active profile first."
            )
        path.unlink()

    @classmethod
    def rename_profile(cls, old_name: str, new_name: str) -> None:
        """Rename a profile, following it in the global settings."""
        old_name = validate_profile_name(old_name)
        new_name = validate_profile_name(new_name)
        directory = cls.config_dir()
        old_path = _profile_path(directory, old_name)
        new_path = _profile_path(directory, new_name)
        if not old_path.exists():
            raise ConfigError(f"Profile '{old_name}' not found.")
        if new_path.exists():
            raise ConfigError(f"Profile '{new_name}' already exists.")

        old_path.rename(new_path)

        settings = _load_global(directory)
        if settings.default_profile == old_name:
            settings.default_profile = new_name
        if settings.active_profile == old_name:
            settings.active_profile = new_name
        _save_global(directory, settings)

    @classmethod
    def set_active_profile(cls, name: str) -> None:
        """Make ``name`` the profile used when none is requested."""
        profile_name = validate_profile_name(name)
        directory = cls.config_dir()
        if not _profile_path(directory, profile_name).exists():
            raise ConfigError(f"Profile '{profile_name}' not found.")
        settings = _load_global(directory)
        settings.active_profile = profile_name
        _save_global(directory, settings)

    @classmethod
    def set_default_profile(cls, name: str) -> None:
        """Make ``name`` the default profile."""
        profile_name = validate_profile_name(name)
        directory = cls.config_dir()
        if not _profile_path(directory, profile_name).exists():
            raise ConfigError(f"Profile '{profile_name}' not found.")
        settings = _load_global(directory)
        settings.default_profile = profile_name
        _save_global(directory, settings)

    @classmethod
    def read_global_profile_settings(cls) -> tuple[str, str | None]:
        """The default and active profile names."""
        settings = _load_global(cls.config_dir())
        return settings.default_profile, settings.active_profile

    def resolve_api_key(self, env_vars: Iterable[str] = ()) -> None:
        """Find the provider's API key in the credentials store, then in ``env_vars``."""
        if not self.provider.strip():
            return
        provider = normalize_provider_name(self.provider) or self.provider.strip().lower()
        self.provider = provider

        for account in (f"{self.profile}:{provider}", provider):
            try:
                self.api_key = keystore.get_api_key(account)
            except (LookupError, OSError):
                continue
            return

        for name in env_vars:
            value = os.environ.get(name)
            if value is not None and value.strip():
                self.api_key = value
                return

    @classmethod
    def _from_profile_data(cls, profile: str, data: _ProfileData) -> Config:
        providers = normalize_provider_list(data.providers)
        default_provider = (
            normalize_provider_name(data.default_provider)
            if data.default_provider is not None
            else None
        )
        if default_provider not in providers:
            default_provider = None

        provider = resolve_active_provider(data.provider, providers, default_provider) or ""
        if not providers and provider:
            providers.append(provider)
        if default_provider is None and providers:
            default_provider = providers[0]

        return cls(
            profile=profile,
            provider=provider,
            providers=providers,
            default_provider=default_provider,
            default_model=data.default_model if data.default_model.strip() else DEFAULT_MODEL_NAME,
            provider_base_url=data.provider_base_url.strip(),
            tool_mode=data.tool_mode if data.tool_mode.strip() else DEFAULT_TOOL_MODE,
            no_tools=data.no_tools,
            auto_approve=data.auto_approve,
            tool_permissions=dict(data.tool_permissions),
        )

    def _to_profile_data(self) -> _ProfileData:
        return _ProfileData(
            provider=self.provider,
            providers=list(self.providers),
            default_provider=self.default_provider,
            default_model=self.default_model,
            provider_base_url=self.provider_base_url,
            tool_mode=self.tool_mode,
            no_tools=self.no_tools,
            auto_approve=self.auto_approve,
            tool_permissions=dict(self.tool_permissions),
        )