import threading
import time

from agentinfra.shell_tool import (
    MAX_OUTPUT_BYTES,
    TRUNCATION_MARKER,
    ShellInput,
    ShellOutput,
    handler,
)


def test_returns_stdout_and_zero_exit_code_when_command_succeeds():
    output = handler(ShellInput(command="echo hello"))
    assert output.exit_code == 0
    assert "hello" in output.stdout
    assert output.error == ""


def test_returns_nonzero_exit_code_when_command_fails():
    output = handler(ShellInput(command="exit 1"))
    assert output.exit_code == 1
    assert output.error == ""


def test_reports_specific_exit_code():
    assert handler(ShellInput(command="exit 3")).exit_code == 3


def test_combines_stderr_into_stdout():
    output = handler(ShellInput(command="echo out; echo err 1>&2"))
    assert "out" in output.stdout
    assert "err" in output.stdout


def test_truncates_output_when_it_exceeds_limit():
    output = handler(ShellInput(command="head -c 10000 /dev/urandom | base64"))
    assert len(output.stdout) <= 8192 + len(" [output truncated]")
    assert output.stdout.endswith(" [output truncated]")


def test_truncation_keeps_exactly_limit_bytes():
    output = handler(ShellInput(command="yes a | head -c 10000"))
    assert output.stdout == ("a\n" * 5000)[:MAX_OUTPUT_BYTES] + TRUNCATION_MARKER


def test_output_at_limit_is_not_truncated():
    output = handler(ShellInput(command="yes a | head -c 8192"))
    assert len(output.stdout) == 8192
    assert not output.stdout.endswith(TRUNCATION_MARKER)


def test_sets_error_field_when_cancelled_before_start():
    cancel = threading.Event()
    cancel.set()
    output = handler(ShellInput(command="sleep 10"), cancel=cancel)
    assert output.error == "exec error: context canceled"
    assert output.exit_code == -1


def test_cancellation_during_run_kills_command():
    cancel = threading.Event()
    timer = threading.Timer(0.2, cancel.set)
    timer.start()
    started = time.monotonic()
    try:
        output = handler(ShellInput(command="sleep 10"), cancel=cancel)
    finally:
        timer.cancel()
    assert time.monotonic() - started < 5
    assert output.error == "exec error: context canceled"
    assert output.exit_code == -1


def test_timeout_kills_command():
    started = time.monotonic()
    output = handler(ShellInput(command="sleep 10"), timeout=0.2)
    assert time.monotonic() - started < 5
    assert output.error == "exec error: context deadline exceeded"
    assert output.exit_code == -1


def test_to_dict_omits_empty_error():
    assert ShellOutput(stdout="hi", exit_code=0).to_dict() == {"stdout": "hi", "exit_code": 0}


def test_to_dict_includes_error():
    data = ShellOutput(stdout="", exit_code=-1, error="exec error: boom").to_dict()
    assert data == {"stdout": "", "exit_code": -1, "error": "exec error: boom"}