"""Reading the completion status an assistant reply reports."""

from __future__ import annotations

import json
from enum import Enum
from typing import Any

_STATUS_LINE_LIMIT = 12


class AssistantStatus(Enum):
    """The state a model reply declares for the task."""

    SUCCESS = "success"
    SUCCESS_WITH_WARNINGS = "success_with_warnings"
    SUCCESS_BUT_CAN_GO_DEEPER = "success_but_can_go_deeper"
    FAILED_AND_END_THE_LOOP = "failed_and_end_the_loop"
    FAILED_BUT_NEED_FURTHER_STEPS = "failed_but_need_further_steps"


_JSON_STATES = {
    "success": AssistantStatus.SUCCESS,
    "fail": AssistantStatus.FAILED_AND_END_THE_LOOP,
    "proceeding": AssistantStatus.FAILED_BUT_NEED_FURTHER_STEPS,
}

_LINE_STATES = {
    **_JSON_STATES,
    **{status.value: status for status in AssistantStatus},
}

_SUCCESS_STATES = frozenset(
    {
        AssistantStatus.SUCCESS,
        AssistantStatus.SUCCESS_WITH_WARNINGS,
        AssistantStatus.SUCCESS_BUT_CAN_GO_DEEPER,
    }
)


def parse_json_like_object(text: str) -> dict[str, Any] | None:
    """Return the JSON object in ``text``, or the one between its outer braces."""
    trimmed = text.strip()
    if not trimmed:
        return None
    try:
        value = json.loads(trimmed)
    except ValueError:
        value = None
    if isinstance(value, dict):
        return value
    first, last = trimmed.find("{"), trimmed.rfind("}")
    if first < 0 or last <= first:
        return None
    try:
        value = json.loads(trimmed[first : last + 1])
    except ValueError:
        return None
    return value if isinstance(value, dict) else None


def _status_from_json(text: str) -> AssistantStatus | None:
    value = parse_json_like_object(text)
    if value is None:
        return None
    state = value.get("state")
    if not isinstance(state, str):
        return None
    return _JSON_STATES.get(state.strip().lower())


def _status_from_lines(text: str) -> AssistantStatus | None:
    for line in text.split("\n")[:_STATUS_LINE_LIMIT]:
        trimmed = line.strip()
        if not trimmed:
            continue
        label, sep, raw_value = trimmed.partition(":")
        if not sep or label.strip().lower() not in ("status", "state"):
            continue
        normalized = raw_value.strip().lower().replace(" ", "_").replace("-", "_")
        status = _LINE_STATES.get(normalized)
        if status is not None:
            return status
    return None


def parse_assistant_status(text: str) -> AssistantStatus | None:
    """Find the status in a JSON payload or in a leading ``status:`` line."""
    return _status_from_json(text) or _status_from_lines(text)


def is_success_status(status: AssistantStatus | None) -> bool:
    """Whether ``status`` is one of the success states."""
    return status in _SUCCESS_STATES