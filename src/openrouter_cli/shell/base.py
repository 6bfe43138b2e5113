"""Base shell executor primitives."""

from __future__ import annotations

import abc
import locale
import logging
import re
import time
from dataclasses import dataclass

LOGGER = logging.getLogger(__name__)

MAX_OUTPUT_BYTES = 10 * 1024 * 1024
LAUNCH_FAILURE_EXIT_CODE = 1
TIMEOUT_EXIT_CODE = 124

_SECRET_PATTERNS = [
    re.compile(pattern, re.IGNORECASE)
    for pattern in (
        r"(--?(?:password|token|secret|api[-_]?key)\s+)([^\s]+)",
        r"((?:password|token|secret|api[-_]?key)\s*=\s*)([^\s]+)",
        r"(Bearer\s+)([^\s'\"]+)",
    )
]


@dataclass(slots=True)
class ShellResult:
    """Outcome of one command execution.

    ``stdout`` and ``stderr`` are always strings, empty when the stream
    produced nothing.
    """

    command: str
    shell: str
    stdout: str
    stderr: str
    exit_code: int
    duration_seconds: float = 0.0
    timed_out: bool = False
    output_truncated: bool = False
    launched: bool = True


class ShellExecutor(abc.ABC):
    """Runs a single command string and reports a normalized result."""

    @property
    @abc.abstractmethod
    def name(self) -> str:
        """Shell executable used to run commands."""

    @abc.abstractmethod
    def execute(self, command: str) -> ShellResult:
        """Execute ``command``; implementations never raise."""

    def log_request(self, command: str, *, timeout: float | None) -> None:
        LOGGER.info(
            "command_request",
            extra={
                "shell": self.name,
                "command": sanitize_command(command),
                "timeout": timeout,
            },
        )

    def log_result(self, result: ShellResult) -> None:
        LOGGER.info(
            "command_result",
            extra={
                "shell": result.shell,
                "exit_code": result.exit_code,
                "timed_out": result.timed_out,
                "output_truncated": result.output_truncated,
                "launched": result.launched,
                "duration_seconds": round(result.duration_seconds, 4),
                "stdout_length": len(result.stdout),
                "stderr_length": len(result.stderr),
            },
        )

    @staticmethod
    def monotonic_now() -> float:
        return time.monotonic()


def sanitize_command(command: str) -> str:
    """Mask secret-looking arguments before a command reaches the logs."""
    sanitized = command
    for pattern in _SECRET_PATTERNS:
        sanitized = pattern.sub(r"\1***", sanitized)
    return sanitized


def normalize_output(payload: bytes | str | None) -> str:
    if payload is None:
        return ""
    if isinstance(payload, str):
        return payload

    for encoding in ("utf-8", "utf-8-sig", locale.getpreferredencoding(False)):
        try:
            return payload.decode(encoding)
        except (LookupError, UnicodeDecodeError):
            continue
    return payload.decode("utf-8", errors="replace")
