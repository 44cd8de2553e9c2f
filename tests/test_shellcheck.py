import pytest

from raiagent.shellcheck import (
    extract_shell_executable,
    find_missing_shell_executable,
    is_simple_executable_token,
    looks_like_env_assignment,
)

MISSING = "__rai_cmd_does_not_exist_123456__"


def test_extracts_executable_after_env_assignments_and_env_wrapper():
    assert extract_shell_executable("FOO=bar env BAR=baz whois google.com") == "whois"


def test_extracts_executable_after_sudo_flags():
    assert extract_shell_executable("sudo -n whois google.com") == "whois"


@pytest.mark.parametrize(
    ("command", "expected"),
    [
        ("ls -la", "ls"),
        ("nohup python3 script.py", "python3"),
        ("time -p ls", "ls"),
        ("command -v git", "git"),
        ("env -i A=1 ./run.sh", "./run.sh"),
        ("/usr/bin/g++ main.cpp", "/usr/bin/g++"),
    ],
)
def test_extracts_through_wrappers(command, expected):
    assert extract_shell_executable(command) == expected


@pytest.mark.parametrize(
    "command",
    ["", "   ", "FOO=bar", "FOO=bar BAZ=qux", "sudo", "sudo -n", "$(whoami) x", "echo>out"],
)
def test_no_executable_for_unusable_commands(command):
    assert extract_shell_executable(command) is None


@pytest.mark.parametrize(
    ("token", "expected"),
    [
        ("FOO=bar", True),
        ("A_1=", True),
        ("=value", False),
        ("no-equals", False),
        ("BAD-KEY=1", False),
    ],
)
def test_env_assignment_shape(token, expected):
    assert looks_like_env_assignment(token) is expected


@pytest.mark.parametrize(
    ("token", "expected"),
    [
        ("whois", True),
        ("./a.out", True),
        ("c++", True),
        ("", False),
        ("a;b", False),
        ("é", False),
    ],
)
def test_simple_executable_token(token, expected):
    assert is_simple_executable_token(token) is expected


def test_missing_shell_command_detection_flags_nonexistent_command():
    assert find_missing_shell_executable({"command": f"{MISSING} --help"}) == MISSING


def test_existing_command_is_not_reported():
    assert find_missing_shell_executable({"command": "sh -c true"}) is None


@pytest.mark.parametrize(
    "arguments",
    [None, "ls", {}, {"command": 5}, {"command": ""}, {"command": "$(x)"}],
)
def test_unusable_arguments_report_nothing(arguments):
    assert find_missing_shell_executable(arguments) is None