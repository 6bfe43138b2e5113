"""Shell executor backed by ``subprocess`` with bounded output capture."""

from __future__ import annotations

import os
import selectors
import subprocess
from collections.abc import Mapping
from dataclasses import dataclass
from typing import IO, cast

from .base import (
    LAUNCH_FAILURE_EXIT_CODE,
    MAX_OUTPUT_BYTES,
    TIMEOUT_EXIT_CODE,
    ShellExecutor,
    ShellResult,
    normalize_output,
)

DEFAULT_SHELL_PATH = "/bin/bash"
_READ_CHUNK_BYTES = 64 * 1024


@dataclass(slots=True)
class _Capture:
    stdout: bytes
    stderr: bytes
    returncode: int
    overflowed: bool = False
    timed_out: bool = False


class SubprocessShell(ShellExecutor):
    """Run commands as ``<shell> -c <command>``.

    Combined stdout and stderr are capped at ``max_output_bytes``; a command
    that writes more is killed and reported as a failure carrying whatever was
    captured up to the cap.
    """

    def __init__(
        self,
        executable: str | None = None,
        *,
        working_directory: str | None = None,
        timeout: float | None = None,
        max_output_bytes: int = MAX_OUTPUT_BYTES,
        environ: Mapping[str, str] | None = None,
    ) -> None:
        self.executable = resolve_shell_path(executable, environ)
        self.working_directory = working_directory
        self.timeout = timeout
        self.max_output_bytes = max_output_bytes

    @property
    def name(self) -> str:
        return self.executable

    def execute(self, command: str) -> ShellResult:
        self.log_request(command, timeout=self.timeout)
        started = self.monotonic_now()
        try:
            process = subprocess.Popen(
                [self.executable, "-c", command],
                stdin=subprocess.DEVNULL,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                cwd=self.working_directory,
            )
        except (OSError, ValueError) as exc:
            # ValueError: arguments Popen cannot pass to exec, such as embedded NUL bytes
            result = ShellResult(
                command=command,
                shell=self.name,
                stdout="",
                stderr=str(exc),
                exit_code=LAUNCH_FAILURE_EXIT_CODE,
                duration_seconds=self.monotonic_now() - started,
                launched=False,
            )
            self.log_result(result)
            return result

        capture = self._collect(process)
        stderr = normalize_output(capture.stderr)
        if capture.overflowed:
            notice = f"output exceeded {self.max_output_bytes} bytes; command terminated"
            stderr = f"{stderr}\n{notice}" if stderr else notice

        result = ShellResult(
            command=command,
            shell=self.name,
            stdout=normalize_output(capture.stdout),
            stderr=stderr,
            exit_code=_exit_code(capture),
            duration_seconds=self.monotonic_now() - started,
            timed_out=capture.timed_out,
            output_truncated=capture.overflowed,
        )
        self.log_result(result)
        return result

    def _collect(self, process: subprocess.Popen[bytes]) -> _Capture:
        stdout = cast(IO[bytes], process.stdout)
        stderr = cast(IO[bytes], process.stderr)
        buffers = {stdout: bytearray(), stderr: bytearray()}
        total = 0
        overflowed = False
        timed_out = False
        deadline = None if self.timeout is None else self.monotonic_now() + self.timeout

        with selectors.DefaultSelector() as selector:
            for stream in buffers:
                selector.register(stream, selectors.EVENT_READ)
            while selector.get_map() and not overflowed:
                wait = None if deadline is None else deadline - self.monotonic_now()
                if wait is not None and wait <= 0:
                    timed_out = True
                    break
                for key, _events in selector.select(wait):
                    chunk = os.read(key.fd, _READ_CHUNK_BYTES)
                    if not chunk:
                        selector.unregister(key.fileobj)
                        continue
                    room = max(self.max_output_bytes - total, 0)
                    buffers[key.fileobj] += chunk[:room]
                    total += len(chunk)
                    if total > self.max_output_bytes:
                        overflowed = True
                        break

        if overflowed or timed_out:
            process.kill()
        elif deadline is not None:
            try:
                process.wait(timeout=max(deadline - self.monotonic_now(), 0))
            except subprocess.TimeoutExpired:
                timed_out = True
                process.kill()
        returncode = process.wait()
        stdout.close()
        stderr.close()

        return _Capture(
            stdout=bytes(buffers[stdout]),
            stderr=bytes(buffers[stderr]),
            returncode=returncode,
            overflowed=overflowed,
            timed_out=timed_out,
        )


def resolve_shell_path(
    override: str | None,
    environ: Mapping[str, str] | None = None,
) -> str:
    """Explicit override, then ``$SHELL``, then ``/bin/bash``."""
    if override and override.strip():
        return override.strip()
    env = os.environ if environ is None else environ
    from_env = env.get("SHELL", "").strip()
    return from_env or DEFAULT_SHELL_PATH


def _exit_code(capture: _Capture) -> int:
    if capture.timed_out:
        return TIMEOUT_EXIT_CODE
    if capture.overflowed:
        return LAUNCH_FAILURE_EXIT_CODE
    # killed by a signal: no exit status to report
    if capture.returncode < 0:
        return LAUNCH_FAILURE_EXIT_CODE
    return capture.returncode
