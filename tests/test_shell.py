from __future__ import annotations

import subprocess

import pytest

from openrouter_cli.shell import (
    DEFAULT_SHELL_PATH,
    MAX_OUTPUT_BYTES,
    SubprocessShell,
    create_shell_executor,
    resolve_shell_path,
)
from openrouter_cli.shell.base import normalize_output, sanitize_command


def test_resolve_shell_prefers_override_then_env_then_default() -> None:
    assert resolve_shell_path("/bin/zsh", {"SHELL": "/bin/fish"}) == "/bin/zsh"
    assert resolve_shell_path(None, {"SHELL": "/bin/fish"}) == "/bin/fish"
    assert resolve_shell_path("  ", {"SHELL": ""}) == DEFAULT_SHELL_PATH
    assert resolve_shell_path(None, {}) == "/bin/bash"


def test_factory_honours_override(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("SHELL", "/bin/sh")

    assert create_shell_executor("/bin/dash").name == "/bin/dash"
    assert create_shell_executor().name == "/bin/sh"


def test_default_cap_is_ten_mebibytes() -> None:
    assert MAX_OUTPUT_BYTES == 10 * 1024 * 1024
    assert SubprocessShell("/bin/sh").max_output_bytes == MAX_OUTPUT_BYTES


def test_successful_command_captures_stdout() -> None:
    result = SubprocessShell("/bin/sh").execute("echo hi")

    assert result.exit_code == 0
    assert result.stdout == "hi\n"
    assert result.stderr == ""
    assert result.launched is True
    assert result.output_truncated is False


def test_repeated_runs_are_identical() -> None:
    shell = SubprocessShell("/bin/sh")

    first = shell.execute("printf 'a\\nb\\n'")
    second = shell.execute("printf 'a\\nb\\n'")

    assert (first.stdout, first.stderr, first.exit_code) == (
        second.stdout,
        second.stderr,
        second.exit_code,
    )


def test_non_zero_exit_keeps_both_streams() -> None:
    result = SubprocessShell("/bin/sh").execute("echo out; echo err >&2; exit 3")

    assert result.exit_code == 3
    assert result.stdout == "out\n"
    assert result.stderr == "err\n"


def test_empty_streams_are_empty_strings() -> None:
    result = SubprocessShell("/bin/sh").execute("true")

    assert result.stdout == ""
    assert result.stderr == ""
    assert result.exit_code == 0


def test_working_directory_is_used(tmp_path) -> None:
    result = SubprocessShell("/bin/sh", working_directory=str(tmp_path)).execute("pwd")

    assert result.stdout.strip() == str(tmp_path)


def test_launch_failure_is_reported_not_raised() -> None:
    result = SubprocessShell("/definitely/missing/shell").execute("echo hi")

    assert result.launched is False
    assert result.exit_code == 1
    assert result.stdout == ""
    assert "missing" in result.stderr


def test_output_over_cap_is_a_failure_with_captured_prefix() -> None:
    shell = SubprocessShell("/bin/sh", max_output_bytes=64)

    result = shell.execute("head -c 100000 /dev/zero | tr '\\0' 'x'")

    assert result.output_truncated is True
    assert result.exit_code == 1
    assert result.stdout == "x" * 64
    assert "exceeded 64 bytes" in result.stderr


def test_timeout_kills_command() -> None:
    result = SubprocessShell("/bin/sh", timeout=0.2).execute("sleep 5")

    assert result.timed_out is True
    assert result.exit_code == 124


def test_signal_termination_maps_to_generic_failure() -> None:
    result = SubprocessShell("/bin/sh").execute("kill -9 $$")

    assert result.exit_code == 1


def test_popen_oserror_is_caught(monkeypatch: pytest.MonkeyPatch) -> None:
    def fake_popen(*_args: object, **_kwargs: object) -> None:
        raise PermissionError(13, "Permission denied")

    monkeypatch.setattr(subprocess, "Popen", fake_popen)

    result = SubprocessShell("/bin/sh").execute("echo hi")

    assert result.exit_code == 1
    assert "Permission denied" in result.stderr


def test_sanitize_command_masks_secrets() -> None:
    sanitized = sanitize_command(
        "curl -H 'Authorization: Bearer sk-or-123' --api-key abc TOKEN=xyz"
    )

    assert "sk-or-123" not in sanitized
    assert "abc" not in sanitized
    assert "xyz" not in sanitized


def test_normalize_output_handles_none_text_and_utf8() -> None:
    assert normalize_output(None) == ""
    assert normalize_output("text") == "text"
    assert normalize_output("héllo".encode()) == "héllo"


def test_command_with_nul_byte_is_reported_not_raised() -> None:
    result = SubprocessShell("/bin/sh").execute("echo a\x00b")

    assert result.launched is False
    assert result.exit_code == 1
    assert result.stdout == ""
    assert "null byte" in result.stderr


def test_normalize_output_replaces_undecodable_bytes(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr("openrouter_cli.shell.base.locale.getpreferredencoding", lambda _do_setlocale: "utf-8")

    assert normalize_output(b"\xff\xfe\x00") == "\ufffd\ufffd\x00"
