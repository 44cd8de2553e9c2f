"""Follow-up notes that push the model to keep going after a failure."""

from __future__ import annotations

from collections.abc import Iterable

_TOOL_ERROR_LIMIT = 280
_REPLY_LIMIT = 500


def truncate_for_retry_note(text: str, max_chars: int) -> str:
    """Cut ``text`` to ``max_chars`` characters, marking a cut with ``...``."""
    if len(text) <= max_chars:
        return text
    return text[:max_chars] + "..."


def build_retry_after_failed_tool_calls(failed_calls: Iterable[tuple[str, str]]) -> str:
    """Note listing failed tool calls and asking the model to try another way."""
    failed_calls = list(failed_calls)
    note = (
        "[Tool execution update]\nOne or more tool calls failed. Do not stop yet.\n"
        "Try alternative tools or approaches and continue until the original request "
        "is fulfilled or the iteration limit is reached.\nFailed calls:"
    )
    note += "".join(
        f"\n{number}. {tool_name}: {truncate_for_retry_note(error, _TOOL_ERROR_LIMIT)}"
        for number, (tool_name, error) in enumerate(failed_calls, start=1)
    )
    if any("not found" in error.lower() for _, error in failed_calls):
        note += (
            "\nHint: if a shell command is missing, do NOT end the loop. "
            "Use `web_search` for discovery and `web_fetch` to verify details, then continue."
        )
    return note


def build_retry_after_failed_text_response(text: str) -> str:
    """Note sent when the model answers in text while earlier tool calls failed."""
    return (
        "[Retry required]\nSome previous tool calls failed and your last reply did not "
        "complete the request. Continue trying with alternative tools/sources.\n"
        f"Last reply:\n{truncate_for_retry_note(text, _REPLY_LIMIT)}"
    )


def build_retry_after_failed_terminal_response(
    text: str, retries_used: int, max_retries: int
) -> str:
    """Note sent when the model gives up but the task may still be recoverable."""
    return (
        '[Retry required]\nYour last reply used `state: "fail"`, '
        "but this task may still be recoverable.\n"
        "Try another tool/source strategy now (for web tasks: choose a different result "
        "URL or reduce `web_fetch.max_chars`). "
        'Use `state: "proceeding"` while continuing.\n'
        'Only return `state: "fail"` after alternative attempts are exhausted.\n'
        f"Retry budget: {retries_used}/{max_retries}.\n"
        f"Last reply:\n{truncate_for_retry_note(text, _REPLY_LIMIT)}"
    )


def should_retry_after_failed_terminal_response(
    saw_any_tool_calls: bool, retries_used: int, max_retries: int
) -> bool:
    """Whether a reported failure should be retried rather than returned."""
    return saw_any_tool_calls and max_retries > 0 and retries_used < max_retries