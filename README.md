# agentinfra

Infrastructure pieces for LLM agent runtimes:

- **Conversation events** (`agentinfra.events`). `Part`, `Content` and `Event`
  dataclasses, with `to_dict` / `from_dict` for their JSON form.
- **A JSONL session store** (`agentinfra.jsonl_store`). Each session is kept
  on disk as an append-only event log plus a small metadata file.
- **A shell tool** (`agentinfra.shell_tool`). It runs a command with a timeout
  and caps how much output it returns.

The package has no dependencies outside the standard library. The shell tool
needs a POSIX system with `sh`.

## Installation

```
pip install agentinfra
```

## Events

```python
from agentinfra.events import Content, Event, Part, new_event

event = new_event("inv-1")          # unique id, current UTC timestamp
event.author = "user"
event.content = Content(role="user", parts=[Part(text="hello")])

data = event.to_dict()              # keys: ID, Timestamp, InvocationID, Branch,
                                    # Author, Partial, TurnComplete, Content
assert Event.from_dict(data) == event
```

In JSON, a `Part` uses the keys `text`, `thought` and `thoughtSignature`.
`thoughtSignature` holds the signature bytes base64-encoded. Any other keys of
a part are kept in `Part.extra` and written back unchanged. Input of the wrong
shape makes `from_dict` raise `ValueError`.

## Session store

```python
from agentinfra.events import Content, Part, new_event
from agentinfra.jsonl_store import JSONLSessionService, SessionNotFoundError

service = JSONLSessionService("./sessions")
session = service.create("myapp", "user1", "sess1")

event = new_event("inv-1")
event.author = "user"
event.content = Content(role="user", parts=[Part(text="hello")])
service.append_event(session, event)

restored = service.get("myapp", "user1", "sess1", num_recent_events=0)
print(restored.event_at(0).content.parts[0].text)  # hello

for s in service.list("myapp", "user1"):
    print(s.id, s.user_id, s.last_update_time)

service.delete("myapp", "user1", "sess1")
```

The files on disk are laid out like this:

```
<directory>/<session-id>.jsonl       one JSON event per line
<directory>/<session-id>.meta.json   app_name, user_id, session_id, created_at
```

### `JSONLSessionService`

- `create(app_name, user_id, session_id=None)` needs an app name and a user
  id. If no session id is given, a UUID is generated. The directory is created
  if it is missing. If a session's metadata file already exists, its files are
  left as they are.
- `get(app_name, user_id, session_id, num_recent_events=0)` replays the log.
  Lines that do not parse are skipped and a warning is logged. A line of 1 MiB
  or more raises `SessionStoreError`. A positive `num_recent_events` keeps
  only that many of the most recent events. The session is looked up by its
  id. If it does not exist, `get` raises `SessionNotFoundError`.
- `list(app_name, user_id="")` returns the sessions of an app, sorted by file
  name. If `user_id` is given, only that user's sessions are returned. Each
  result's `last_update_time` is the session's creation time. Unreadable or
  corrupt metadata files are skipped with a warning.
- `delete(app_name, user_id, session_id)` removes both files. Files that are
  already gone are ignored.
- `append_event(session, event)` ignores partial (streaming) events. Other
  events are added to the in-memory `Session` and appended to its log as one
  line. Thought signatures are removed before writing; see
  `strip_thought_signatures(content)`, which returns a copy and leaves its
  argument alone.

Missing required arguments raise `ValueError`. File-system failures raise
`SessionStoreError`, and `SessionNotFoundError` is a subclass of it.

### `Session`

A `Session` has the attributes `app_name`, `user_id` and `id`. It also has:

- `events`, a tuple snapshot of its events;
- `event_at(index)`, which returns `None` when the index is out of range;
- `append(event)`;
- `last_update_time`;
- `state`, a thread-safe `SessionState` with `get`, `set` and `items`.
  `get` raises `StateKeyNotFoundError` (a `KeyError`) for a missing key.

### What the store does not do

Session state lives only in memory. It is not written to disk, and a session
returned by `get` or `list` starts with empty state. The store only holds
events. It does not talk to a model or run an agent.

## Shell tool

```python
import threading
from agentinfra.shell_tool import ShellInput, handler

result = handler(ShellInput(command="echo hello"))
print(result.exit_code, result.stdout)
print(result.to_dict())  # {"stdout": "hello\n", "exit_code": 0}

cancel = threading.Event()
result = handler(ShellInput(command="sleep 10"), timeout=5.0, cancel=cancel)
```

How `handler(input, timeout=30.0, cancel=None)` behaves:

- Commands run through `sh -c`, with stderr merged into stdout.
- Output longer than 8192 bytes (`MAX_OUTPUT_BYTES`) is cut off and ends with
  ` [output truncated]` (`TRUNCATION_MARKER`).
- A command that exits with a non-zero status reports that status in
  `exit_code`, with no `error`.
- `cancel` can be any object with an `is_set()` method. If the command cannot
  be started, passes `timeout` seconds, or is cancelled through `cancel`, its
  process group is killed, `exit_code` is `-1` and `error` describes what
  happened (for example `exec error: context deadline exceeded`).
- `ShellOutput.to_dict()` leaves out `error` when it is empty.