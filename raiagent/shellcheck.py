"""Finding the program a shell command runs and checking it is installed."""

from __future__ import annotations

import string
import subprocess
from collections.abc import Mapping
from typing import Any

_ASCII_ALNUM = frozenset(string.ascii_letters + string.digits)
_ENV_KEY_CHARS = _ASCII_ALNUM | {"_"}
_EXECUTABLE_CHARS = _ASCII_ALNUM | set("_-./+")

# Wrappers whose following option flags are skipped to reach the real program.
_FLAG_WRAPPERS = frozenset({"sudo", "command", "time"})


def looks_like_env_assignment(token: str) -> bool:
    """Whether ``token`` has the shape ``NAME=value``."""
    key, sep, _ = token.partition("=")
    return bool(sep) and bool(key) and all(c in _ENV_KEY_CHARS for c in key)


def is_simple_executable_token(token: str) -> bool:
    """Whether ``token`` is a plain program name or path with no shell syntax."""
    return bool(token) and all(c in _EXECUTABLE_CHARS for c in token)


def extract_shell_executable(command: str) -> str | None:
    """Return the program a simple shell command would run, if it can be told."""
    tokens = command.split()
    if not tokens:
        return None

    index = 0
    while index < len(tokens) and looks_like_env_assignment(tokens[index]):
        index += 1
    if index >= len(tokens):
        return None

    wrapper = tokens[index]
    if wrapper in _FLAG_WRAPPERS:
        index += 1
        while index < len(tokens) and tokens[index].startswith("-"):
            index += 1
    elif wrapper == "env":
        index += 1
        while index < len(tokens) and (
            tokens[index].startswith("-") or looks_like_env_assignment(tokens[index])
        ):
            index += 1
    elif wrapper == "nohup":
        index += 1

    if index >= len(tokens):
        return None
    candidate = tokens[index]
    return candidate if is_simple_executable_token(candidate) else None


def find_missing_shell_executable(arguments: Any) -> str | None:
    """Return the program named by a shell tool call if ``sh`` cannot find it."""
    if not isinstance(arguments, Mapping):
        return None
    command = arguments.get("command")
    if not isinstance(command, str):
        return None
    executable = extract_shell_executable(command)
    if not executable:
        return None

    try:
        completed = subprocess.run(
            ["sh", "-c", 'command -v "$1" >/dev/null 2>&1', "sh", executable],
            stdin=subprocess.DEVNULL,
            stdout=subprocess.DEVNULL,
            stderr=subprocess.DEVNULL,
            check=False,
        )
    except OSError:
        return None
    return None if completed.returncode == 0 else executable