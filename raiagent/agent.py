"""The tool-using agent loop that drives a model until the task is done."""

from __future__ import annotations

import logging
import os
import sys
from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from raiagent.messages import (
    Message,
    Permission,
    Provider,
    Tool,
    ToolCall,
    ToolDefinition,
    ToolResult,
    format_messages_for_detail,
    format_tool_calls_for_detail,
)
from raiagent.notes import (
    build_retry_after_failed_terminal_response,
    build_retry_after_failed_text_response,
    build_retry_after_failed_tool_calls,
    should_retry_after_failed_terminal_response,
)
from raiagent.shellcheck import find_missing_shell_executable
from raiagent.status import AssistantStatus, is_success_status, parse_assistant_status

log = logging.getLogger(__name__)

DEFAULT_MAX_ITERATIONS = 30
DEFAULT_MAX_RECOVERABLE_FAIL_RETRIES = 2

_RETRY_FURTHER_STEPS = (
    "[Retry required]\nYou reported `failed_but_need_further_steps`.\n"
    "Continue executing additional steps/tools to fulfill the original request. "
    "Do not stop yet."
)
_ASK_UNAVAILABLE = (
    "The ask tool is only available via `rai plan`. "
    "Make your best judgment and proceed without user input."
)
_NON_INTERACTIVE = "Denied: non-interactive mode. Use --yes to auto-approve."
_DENIED_BY_USER = "Denied by user."

_CHOICES = ("Yes", "No", "Edit", "Always (approve all for this session)")
_CHOICE_ALIASES = {
    "": 0, "1": 0, "y": 0, "yes": 0,
    "2": 1, "n": 1, "no": 1,
    "3": 2, "e": 2, "edit": 2,
    "4": 3, "a": 3, "always": 3,
}
_YES, _NO, _EDIT, _ALWAYS = range(4)

# Which argument an edited approval replaces, by tool name.
_EDIT_FIELDS = {
    "shell": "command",
    "list_dir": "path",
    "file_read": "path",
    "file_write": "path",
    "file_append": "path",
    "file_edit": "path",
    "http_get": "url",
    "http_request": "url",
    "web_fetch": "url",
    "web_search": "query",
    "git_operations": "operation",
}

SystemPrompt = str | Callable[[bool, bool], str]


class AgentLoopError(RuntimeError):
    """Raised when the agent runs out of iterations without an answer."""


@dataclass
class AgentConfig:
    """Settings that steer one agent session."""

    auto_approve: bool = False
    max_iterations: int = DEFAULT_MAX_ITERATIONS
    max_recoverable_fail_retries: int = DEFAULT_MAX_RECOVERABLE_FAIL_RETRIES
    blocked_patterns: list[str] = field(default_factory=list)
    detail_enabled: bool = False
    think_enabled: bool = False
    silent_enabled: bool = False
    plan_enabled: bool = False

    @property
    def ask_enabled(self) -> bool:
        return self.plan_enabled and not self.auto_approve and not self.silent_enabled


class _Verdict(Enum):
    ALLOW = "allow"
    DENY = "deny"
    ASK = "ask"


def _eprint(text: str) -> None:
    print(text, file=sys.stderr)


def _color_enabled() -> bool:
    return "NO_COLOR" not in os.environ and sys.stdout.isatty()


def _print_detail(kind: str, color: str, number: int, message: str) -> None:
    label = f"[detail][{kind} #{number}]"
    if _color_enabled():
        print(f"\x1b[{color}m{label}\x1b[0m {message}")
    else:
        print(f"{label} {message}")


def _blocked_reason(target: str, patterns: Sequence[str]) -> str | None:
    for pattern in patterns:
        pattern = pattern.strip()
        if pattern and pattern in target:
            return f"matches blocked pattern '{pattern}'"
    return None


def _read_line(prompt: str) -> str | None:
    sys.stderr.write(prompt)
    sys.stderr.flush()
    line = sys.stdin.readline()
    if not line:
        return None
    return line.rstrip("\r\n")


def _select_option() -> int | None:
    for number, label in enumerate(_CHOICES, start=1):
        _eprint(f"  {number}. {label}")
    while True:
        answer = _read_line("Allow? [1]: ")
        if answer is None:
            return None
        choice = _CHOICE_ALIASES.get(answer.strip().lower())
        if choice is not None:
            return choice
        _eprint(f"Please choose 1-{len(_CHOICES)}.")


class Agent:
    """Runs a conversation with a provider, executing the tools it asks for."""

    def __init__(
        self,
        provider: Provider,
        model: str,
        tools: Sequence[Tool],
        config: AgentConfig | None = None,
        system_prompt: SystemPrompt = "",
    ) -> None:
        self.provider = provider
        self.model = model
        self.tools = list(tools)
        self.config = config if config is not None else AgentConfig()
        self._system_prompt = system_prompt
        self._ask_once_memory: dict[str, bool] = {}

    def _build_system_prompt(self, ask_enabled: bool) -> str:
        if callable(self._system_prompt):
            return self._system_prompt(self.config.think_enabled, ask_enabled)
        return self._system_prompt

    async def run(self, prompt: str) -> str:
        """Drive the model until it answers; return the final reply text."""
        config = self.config
        ask_enabled = config.ask_enabled
        active_tools: list[ToolDefinition] = [
            definition
            for definition in (tool.definition() for tool in self.tools)
            if definition.permission is not Permission.DENY
            and (ask_enabled or definition.name != "ask")
        ]

        messages = [
            Message.system(self._build_system_prompt(ask_enabled)),
            Message.user(prompt),
        ]
        pending_retry_after_failure = False
        recoverable_fail_retries_used = 0
        saw_any_tool_calls = False

        for request_number in range(1, config.max_iterations + 1):
            log.info("Agent iteration %d/%d", request_number, config.max_iterations)
            if config.detail_enabled:
                _print_detail("request", "34", request_number,
                              format_messages_for_detail(messages))

            response = await self.provider.chat_with_tools(
                self.model, list(messages), active_tools
            )

            if response.text is not None:
                text = response.text
                if config.detail_enabled:
                    _print_detail("response", "33", request_number, text)
                status = parse_assistant_status(text)
                if is_success_status(status):
                    pending_retry_after_failure = False
                    recoverable_fail_retries_used = 0
                if status is AssistantStatus.FAILED_BUT_NEED_FURTHER_STEPS:
                    if config.silent_enabled:
                        return text
                    pending_retry_after_failure = True
                    messages.append(Message.user(_RETRY_FURTHER_STEPS))
                    continue
                if (
                    status is AssistantStatus.FAILED_AND_END_THE_LOOP
                    and should_retry_after_failed_terminal_response(
                        saw_any_tool_calls,
                        recoverable_fail_retries_used,
                        config.max_recoverable_fail_retries,
                    )
                ):
                    pending_retry_after_failure = True
                    recoverable_fail_retries_used += 1
                    messages.append(Message.user(build_retry_after_failed_terminal_response(
                        text, recoverable_fail_retries_used,
                        config.max_recoverable_fail_retries,
                    )))
                    continue
                if pending_retry_after_failure and status is None:
                    messages.append(Message.user(build_retry_after_failed_text_response(text)))
                    continue
                return text

            tool_calls = list(response.tool_calls or ())
            if config.detail_enabled:
                _print_detail("response", "33", request_number,
                              format_tool_calls_for_detail(tool_calls))
            if tool_calls:
                saw_any_tool_calls = True
            messages.append(Message.assistant_tool_calls(tool_calls))

            failed_calls: list[tuple[str, str]] = []
            success_count = 0
            for call in tool_calls:
                result = self.handle_tool_call(call)
                if result.success:
                    success_count += 1
                    output = result.output
                else:
                    failed_calls.append((call.name, result.output))
                    output = f"[Tool call failed] {result.output}"
                messages.append(Message.tool_result(result.tool_call_id, output))

            if failed_calls:
                pending_retry_after_failure = True
                messages.append(Message.user(build_retry_after_failed_tool_calls(failed_calls)))
            elif success_count:
                pending_retry_after_failure = False
                recoverable_fail_retries_used = 0

        raise AgentLoopError(
            f"Agent loop reached maximum iterations ({config.max_iterations}). Stopping."
        )

    def _find_tool(self, name: str) -> Tool | None:
        return next((tool for tool in self.tools if tool.definition().name == name), None)

    @staticmethod
    def _execute(tool: Tool, call: ToolCall, args: Any) -> ToolResult:
        try:
            output = tool.execute(args)
        except Exception as exc:  # a failing tool is reported back to the model
            return ToolResult(call.id, f"Error: {exc}", False)
        return ToolResult(call.id, output, True)

    def _decide(self, definition: ToolDefinition, name: str) -> tuple[_Verdict, str]:
        permission = definition.permission
        if permission is Permission.DENY:
            return _Verdict.DENY, "tool is disabled"
        if self.config.auto_approve or permission is Permission.ALLOW:
            return _Verdict.ALLOW, ""
        if permission is Permission.ASK_ONCE and name in self._ask_once_memory:
            if self._ask_once_memory[name]:
                return _Verdict.ALLOW, ""
            return _Verdict.DENY, "previously denied"
        return _Verdict.ASK, ""

    def handle_tool_call(self, call: ToolCall) -> ToolResult:
        """Check permissions for one tool call and run it if allowed."""
        tool = self._find_tool(call.name)
        if tool is None:
            return ToolResult(call.id, f"Unknown tool: {call.name}", False)

        definition = tool.definition()
        target = tool.match_target(call.arguments)
        detail = self.config.detail_enabled

        if call.name == "shell":
            missing = find_missing_shell_executable(call.arguments)
            if missing is not None:
                if detail:
                    _eprint(f"[rai] {call.name}: {target}  ✗ (command not found: {missing})")
                return ToolResult(call.id, f"[stderr] sh: 1: {missing}: not found", False)

        if call.name == "ask" and not self.config.ask_enabled:
            return ToolResult(call.id, _ASK_UNAVAILABLE, False)

        reason = _blocked_reason(target, self.config.blocked_patterns)
        if reason is not None:
            if detail:
                _eprint(f"[rai] {call.name} → {target}  ✗ ({reason})")
            return ToolResult(call.id, f"Blocked: {reason}", False)

        verdict, reason = self._decide(definition, call.name)
        if verdict is _Verdict.ALLOW:
            if detail:
                _eprint(f"[rai] {call.name}: {target}  ✓")
            return self._execute(tool, call, call.arguments)
        if verdict is _Verdict.DENY:
            if detail:
                _eprint(f"[rai] {call.name}: {target}  ✗ ({reason})")
            return ToolResult(call.id, f"Denied: {reason}", False)
        return self._interactive_approve(call, tool, definition, target)

    def _interactive_approve(
        self, call: ToolCall, tool: Tool, definition: ToolDefinition, target: str
    ) -> ToolResult:
        detail = self.config.detail_enabled
        if not sys.stdin.isatty():
            if detail:
                _eprint(f"[rai] {call.name}: {target}  ✗ "
                        "(non-interactive, use --yes to auto-approve)")
            return ToolResult(call.id, _NON_INTERACTIVE, False)

        _eprint("\n[rai] AI wants to execute:\n")
        _eprint(f"  {call.name}: {target}\n")
        selection = _select_option()
        remember = definition.permission is Permission.ASK_ONCE

        if selection == _YES:
            if remember:
                self._ask_once_memory[call.name] = True
            if detail:
                _eprint(f"[rai] {call.name}: {target}  ✓")
            return self._execute(tool, call, call.arguments)

        if selection == _EDIT:
            answer = _read_line(f"Edit command [{target}]: ")
            edited = answer if answer else target
            args = dict(call.arguments) if isinstance(call.arguments, Mapping) else {}
            args[_EDIT_FIELDS.get(call.name, "command")] = edited
            reason = _blocked_reason(edited, self.config.blocked_patterns)
            if reason is not None:
                if detail:
                    _eprint(f"[rai] Edited command also blocked: {reason}")
                return ToolResult(call.id, f"Blocked: {reason}", False)
            if detail:
                _eprint(f"[rai] {call.name}: {edited}  ✓ (edited)")
            return self._execute(tool, call, args)

        if selection == _ALWAYS:
            self.config.auto_approve = True
            if detail:
                _eprint("[rai] Auto-approving all remaining tool calls this session.")
                _eprint(f"[rai] {call.name}: {target}  ✓")
            return self._execute(tool, call, call.arguments)

        if remember:
            self._ask_once_memory[call.name] = False
        if detail:
            _eprint(f"[rai] {call.name}: {target}  ✗ (user denied)")
        return ToolResult(call.id, _DENIED_BY_USER, False)