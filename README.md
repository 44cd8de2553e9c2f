# raiagent

`raiagent` is a library that runs an AI model in a loop with a set of tools.
On each turn the model does one of two things:

- it answers in text;
- it asks for tool calls.

When it asks for tool calls, the agent checks each call and runs the ones that
are allowed. It then sends the results back and asks again. This goes on until
the model gives a final answer or the iteration limit is reached.

## Modules

| Module | Contents |
| --- | --- |
| `raiagent.messages` | Messages, tool calls and results, and the `Provider` and `Tool` base classes. |
| `raiagent.status` | Reads the completion status a model reply reports. |
| `raiagent.shellcheck` | Finds the program a shell command runs and checks that `sh` can find it. |
| `raiagent.notes` | The retry notes added to the conversation after a failure. |
| `raiagent.agent` | `Agent`, `AgentConfig` and `AgentLoopError`. |
| `raiagent.profiles` | Profile name validation and the rules for choosing a provider. |
| `raiagent.config` | `Config`: global settings and profiles stored as TOML files. |
| `raiagent.keystore` | API keys kept in a JSON credentials file. |

## Writing providers and tools

### Providers

A provider subclasses `raiagent.messages.Provider` and implements the async
method `chat_with_tools(model, messages, tools)`. It returns a
`ProviderResponse` that holds exactly one of:

- `text`;
- `tool_calls`.

A response that holds both, or neither, raises `ValueError`.

### Tools

A tool subclasses `raiagent.messages.Tool` and implements three methods:

- `definition()` returns a `ToolDefinition` with:
  - `name`;
  - `description`;
  - `parameters`, a JSON schema;
  - `permission`, one of `Permission.ALLOW`, `ASK`, `ASK_ONCE` or `DENY`.
- `execute(args)` returns the output as a string and raises an exception on
  failure.
- `match_target(args)` returns the text that blocklists are matched against,
  for example a command, a path or a URL.

## Running the agent

```python
import asyncio

from raiagent.agent import Agent, AgentConfig, AgentLoopError

agent = Agent(
    my_provider,
    "gpt-4o",
    [my_shell_tool, my_search_tool],
    AgentConfig(auto_approve=True, max_iterations=10),
    "You are a helpful assistant working in a terminal.",
)

try:
    print(asyncio.run(agent.run("What is the weather in Shanghai?")))
except AgentLoopError as exc:
    print(f"Gave up: {exc}")
```

### The system prompt

`system_prompt` can be given in one of two forms:

- a string;
- a callable `(think_enabled, ask_enabled) -> str`, which builds the prompt for
  each run.

### `AgentConfig` fields

| Field | Default | Effect |
| --- | --- | --- |
| `auto_approve` | `False` | Allows every tool call that is not `DENY`. |
| `max_iterations` | 30 | Largest number of model requests in one run. |
| `max_recoverable_fail_retries` | 2 | Retry budget after a recoverable failure. |
| `blocked_patterns` | empty | Substrings that block any call whose target contains them. |
| `detail_enabled` | `False` | Prints each request and response to stdout, and each permission decision to stderr. Colour is used unless `NO_COLOR` is set or stdout is not a terminal. |
| `think_enabled` | `False` | Passed to a callable system prompt. |
| `silent_enabled` | `False` | Returns a "proceeding" reply as it is, instead of retrying. |
| `plan_enabled` | `False` | Makes the `ask` tool available, unless `auto_approve` or `silent_enabled` is also set. |

### How a tool call is checked

`Agent.handle_tool_call(call)` applies these checks in order:

1. **Unknown tools** are refused.
2. **Shell commands** are refused when `sh` cannot find the program they name.
3. **The `ask` tool** is refused unless asking is enabled.
4. **Blocked patterns** refuse any call whose target contains one of them.
5. **The tool's permission** decides the rest:
   - `DENY` is always refused.
   - `ALLOW`, or any permission when `auto_approve` is set, runs the call.
   - `ASK_ONCE` remembers the user's first answer for that tool.
   - Otherwise the user is asked on the terminal. The choices are Yes, No, Edit,
     and Always, which approves everything for the rest of the session.

   When stdin is not a terminal, a call that needs approval is refused.

### Retries

When tool calls fail, the agent adds a retry note and keeps going. It also
keeps going after text replies in these cases:

- **A "proceeding" reply.** The agent always continues.
- **A "fail" reply after tool use.** The agent continues while the retry
  budget lasts.
- **A reply with no status after failed tool calls.** The agent continues.

If the iteration limit is reached, `run` raises `AgentLoopError`.

## Parsing a model's status

`parse_assistant_status` reads the status from one of two places:

- **A JSON object** with a `state` of `success`, `fail` or `proceeding`.
- **A `status:` or `state:` line** within the first 12 lines of the reply.

```python
from raiagent.status import parse_assistant_status

parse_assistant_status('{"state":"fail","output":"","description":"nope"}')
# AssistantStatus.FAILED_AND_END_THE_LOOP
parse_assistant_status("STATUS: success_with_warnings\nDone")
# AssistantStatus.SUCCESS_WITH_WARNINGS
parse_assistant_status("No status here")
# None
```

## Profiles and configuration

```python
from raiagent.config import Config

Config.create_profile("work", None)
Config.set_active_profile("work")
print(Config.list_profiles())

config = Config.load(None)
print(config.profile, config.provider, config.default_model)
```

### Where settings are stored

Files live in `Config.config_dir()`:

- `config.toml` holds the global settings `default_profile` and
  `active_profile`, together with the `default` profile.
- Every other profile `<name>` is stored in `config.<name>.toml`.

### Which profile is loaded

`Config.load` takes the first of these that applies:

1. the profile passed to it;
2. a non-empty `RAI_PROFILE` environment variable;
3. the active profile;
4. the default profile.

If the profile found through the active or default setting does not exist,
`Config.load` falls back to `default`, creating it if needed. Errors raise
`raiagent.profiles.ConfigError`.

Profile names may contain only:

- letters and digits;
- `-`, `_` and `.`.

## Storing API keys

```python
from raiagent.keystore import delete_api_key, get_api_key, set_api_key

set_api_key("work:openai", api_key="placeholder")
get_api_key("work:openai")
delete_api_key("work:openai")
```

### Where keys are stored

- On POSIX systems, keys are kept in `~/.local/share/rai/credentials`, with
  mode 0600.
- Elsewhere, they are kept in the platform's user data directory.

`get_api_key` raises `LookupError` when no key is stored for the account.

### Looking up a profile's key

`Config.resolve_api_key(env_vars)` looks for a key in this order:

1. the account `<profile>:<provider>`;
2. the account `<provider>`;
3. the given environment variables, in order.

## What this package does not do

- **No command-line program.** The package is a library only.
- **No built-in providers, tools or system prompt.** You supply them.
- **No provider catalogue.** Provider names are only trimmed and lower-cased.
  The environment variables to search for a key must be passed to
  `resolve_api_key`.
- **No system keyring.** Keys are stored only in the credentials file.