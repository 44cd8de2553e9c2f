"""Profile names and provider selection rules for configuration."""

from __future__ import annotations

import string
from collections.abc import Iterable

_PROFILE_NAME_CHARS = frozenset(string.ascii_letters + string.digits + "-_.")
_PROFILE_FILE_PREFIX = "config."
_PROFILE_FILE_SUFFIX = ".toml"
_GLOBAL_FILE_NAME = "config.toml"


class ConfigError(ValueError):
    """Raised when configuration or a profile request is invalid."""


def validate_profile_name(name: str) -> str:
    """Return ``name`` trimmed; raise ConfigError if it is not a usable profile name."""
    trimmed = name.strip()
    if not trimmed:
        raise ConfigError("Profile name cannot be empty.")
    if "/" in trimmed or "\\" in trimmed:
        raise ConfigError("Profile name cannot contain path separators.")
    if not all(c in _PROFILE_NAME_CHARS for c in trimmed):
        raise ConfigError(
            f"Invalid profile name '{trimmed}'. Use only letters, numbers, '-', '_' or '.'."
        )
    return trimmed


def profile_name_from_file(file_name: str) -> str | None:
    """The profile a ``config.<name>.toml`` file holds, or None for other files."""
    if file_name == _GLOBAL_FILE_NAME:
        return None
    if (
        len(file_name) > len(_PROFILE_FILE_PREFIX) + len(_PROFILE_FILE_SUFFIX)
        and file_name.startswith(_PROFILE_FILE_PREFIX)
        and file_name.endswith(_PROFILE_FILE_SUFFIX)
    ):
        return file_name[len(_PROFILE_FILE_PREFIX) : -len(_PROFILE_FILE_SUFFIX)]
    return None


def normalize_provider_name(provider: str) -> str | None:
    """The canonical lower-case provider name, or None if ``provider`` is blank."""
    normalized = provider.strip().lower()
    return normalized or None


def normalize_provider_list(providers: Iterable[str]) -> list[str]:
    """Normalized provider names in their first-seen order, without blanks or repeats."""
    normalized: list[str] = []
    for provider in providers:
        name = normalize_provider_name(provider)
        if name is not None and name not in normalized:
            normalized.append(name)
    return normalized


def resolve_active_provider(
    legacy_provider: str,
    configured_providers: Iterable[str],
    default_provider: str | None,
) -> str | None:
    """Pick the provider a profile uses from its configured list and preferences."""
    legacy = normalize_provider_name(legacy_provider)
    providers = normalize_provider_list(configured_providers)

    if not providers:
        return legacy
    if len(providers) == 1:
        return providers[0]

    if default_provider is not None:
        preferred = normalize_provider_name(default_provider)
        if preferred in providers:
            return preferred

    if legacy in providers:
        return legacy

    return providers[0]