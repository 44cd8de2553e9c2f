"""API keys kept in a private JSON credentials file."""

from __future__ import annotations

import json
import os
from pathlib import Path

import platformdirs

_APP_NAME = "rai"


def credentials_path() -> Path:
    """Where the credentials file lives."""
    if os.name == "posix":
        home = os.environ.get("HOME")
        if home is None:
            raise OSError("HOME not set")
        return Path(home) / ".local" / "share" / _APP_NAME / "credentials"
    return Path(platformdirs.user_data_dir(_APP_NAME, _APP_NAME)) / "credentials"


def _read_credentials() -> dict[str, str]:
    path = credentials_path()
    if not path.exists():
        return {}
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except ValueError:
        return {}
    if not isinstance(data, dict):
        return {}
    return {str(k): v for k, v in data.items() if isinstance(v, str)}


def _write_credentials(credentials: dict[str, str]) -> None:
    path = credentials_path()
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(credentials, separators=(",", ":")), encoding="utf-8")
    if os.name == "posix":
        path.chmod(0o600)


def set_api_key(account: str, api_key: str) -> None:
    """Store ``api_key`` for ``account``, replacing any earlier one."""
    credentials = _read_credentials()
    credentials[account] = api_key
    _write_credentials(credentials)


def get_api_key(account: str) -> str:
    """Return the key stored for ``account``; raise LookupError if there is none."""
    try:
        return _read_credentials()[account]
    except KeyError:
        raise LookupError("No API key found for account") from None


def delete_api_key(account: str) -> None:
    """Forget the key stored for ``account``, if any."""
    credentials = _read_credentials()
    credentials.pop(account, None)
    _write_credentials(credentials)