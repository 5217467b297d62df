"""Shell command execution tool for an LLM agent."""

from __future__ import annotations

import os
import signal
import subprocess
import time
from dataclasses import dataclass
from typing import Any, Protocol

MAX_OUTPUT_BYTES = 8192
"""Output longer than this many bytes is truncated."""

TRUNCATION_MARKER = " [output truncated]"
DEFAULT_TIMEOUT = 30.0

_POLL_INTERVAL = 0.05


class _Cancellation(Protocol):
    def is_set(self) -> bool: ...


@dataclass
class ShellInput:
    """A shell command requested by the model."""

    command: str


@dataclass
class ShellOutput:
    """The combined output and exit status of a shell command."""

    stdout: str = ""
    exit_code: int = 0
    error: str = ""

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"stdout": self.stdout, "exit_code": self.exit_code}
        if self.error:
            data["error"] = self.error
        return data


def _kill_group(proc: subprocess.Popen[bytes]) -> None:
    try:
        os.killpg(proc.pid, signal.SIGKILL)
    except (ProcessLookupError, PermissionError):
        proc.kill()


def _truncate(raw: bytes) -> str:
    if len(raw) > MAX_OUTPUT_BYTES:
        return raw[:MAX_OUTPUT_BYTES].decode("utf-8", errors="replace") + TRUNCATION_MARKER
    return raw.decode("utf-8", errors="replace")


def handler(
    input: ShellInput,
    timeout: float = DEFAULT_TIMEOUT,
    cancel: _Cancellation | None = None,
) -> ShellOutput:
    """Run ``input.command`` with ``sh -c`` and return its combined output.

    Stdout and stderr are merged. The command is killed when ``timeout``
    seconds pass or when ``cancel`` (anything with ``is_set()``, such as a
    ``threading.Event``) becomes set; in that case, or when the command cannot
    be started, the exit code is -1 and ``error`` describes the failure.
    """
    if cancel is not None and cancel.is_set():
        return ShellOutput(stdout="", exit_code=-1, error="exec error: context canceled")

    try:
        proc = subprocess.Popen(
            ["sh", "-c", input.command],
            stdin=subprocess.DEVNULL,
            stdout=subprocess.PIPE,
            stderr=subprocess.STDOUT,
            start_new_session=True,
        )
    except OSError as exc:
        return ShellOutput(stdout="", exit_code=-1, error=f"exec error: {exc}")

    deadline = time.monotonic() + timeout
    failure = ""
    output = b""
    while True:
        if cancel is not None and cancel.is_set():
            failure = "context canceled"
        else:
            remaining = deadline - time.monotonic()
            if remaining <= 0:
                failure = "context deadline exceeded"
            else:
                try:
                    output, _ = proc.communicate(timeout=min(_POLL_INTERVAL, remaining))
                    break
                except subprocess.TimeoutExpired:
                    continue
        _kill_group(proc)
        output, _ = proc.communicate()
        break

    stdout = _truncate(output or b"")
    if failure:
        return ShellOutput(stdout=stdout, exit_code=-1, error=f"exec error: {failure}")

    code = proc.returncode
    return ShellOutput(stdout=stdout, exit_code=code if code >= 0 else -1)