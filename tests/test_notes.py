import pytest

from raiagent.notes import (
    build_retry_after_failed_terminal_response,
    build_retry_after_failed_text_response,
    build_retry_after_failed_tool_calls,
    should_retry_after_failed_terminal_response,
    truncate_for_retry_note,
)

HINT = "Hint: if a shell command is missing, do NOT end the loop."


def test_truncate_keeps_short_text():
    assert truncate_for_retry_note("abc", 3) == "abc"


def test_truncate_cuts_and_marks():
    result = truncate_for_retry_note("x" * 20, 5)
    assert result == "x" * 5 + "..."


def test_truncate_counts_characters_not_bytes():
    text = "ü" * 10
    assert truncate_for_retry_note(text, 10) == text
    assert truncate_for_retry_note(text, 4) == "ü" * 4 + "..."


def test_tool_call_note_lists_numbered_failures():
    note = build_retry_after_failed_tool_calls([("shell", "boom"), ("web_fetch", "timeout")])
    assert note.startswith("[Tool execution update]\n")
    assert note.endswith("\n1. shell: boom\n2. web_fetch: timeout")
    assert HINT not in note


def test_tool_call_note_adds_hint_for_missing_command():
    note = build_retry_after_failed_tool_calls([("shell", "[stderr] sh: 1: whois: NOT FOUND")])
    assert "\n1. shell: [stderr] sh: 1: whois: NOT FOUND\n" in note
    assert HINT in note


def test_tool_call_note_truncates_long_errors():
    error = "e" * 400
    note = build_retry_after_failed_tool_calls([("shell", error)])
    assert note.endswith("1. shell: " + "e" * 280 + "...")


def test_text_response_note_quotes_reply():
    note = build_retry_after_failed_text_response("Could not finish yet.")
    assert note.startswith("[Retry required]\n")
    assert note.endswith("Last reply:\nCould not finish yet.")


def test_text_response_note_truncates_reply():
    note = build_retry_after_failed_text_response("r" * 600)
    assert note.endswith("\n" + "r" * 500 + "...")


def test_terminal_note_reports_budget_and_reply():
    note = build_retry_after_failed_terminal_response('{"state":"fail"}', 1, 2)
    assert 'Your last reply used `state: "fail"`' in note
    assert "Retry budget: 1/2.\n" in note
    assert note.endswith('Last reply:\n{"state":"fail"}')


@pytest.mark.parametrize(
    ("saw", "used", "maximum", "expected"),
    [
        (True, 0, 2, True),
        (True, 1, 2, True),
        (True, 2, 2, False),
        (False, 0, 2, False),
        (True, 0, 0, False),
    ],
)
def test_should_retry_after_failed_terminal_response(saw, used, maximum, expected):
    assert should_retry_after_failed_terminal_response(saw, used, maximum) is expected