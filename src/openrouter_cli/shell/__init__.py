"""Shell executor implementations."""

from .base import MAX_OUTPUT_BYTES, ShellExecutor, ShellResult
from .subprocess_shell import DEFAULT_SHELL_PATH, SubprocessShell, resolve_shell_path


def create_shell_executor(
    shell: str | None = None,
    *,
    working_directory: str | None = None,
    timeout: float | None = None,
) -> ShellExecutor:
    return SubprocessShell(shell, working_directory=working_directory, timeout=timeout)


__all__ = [
    "DEFAULT_SHELL_PATH",
    "MAX_OUTPUT_BYTES",
    "ShellExecutor",
    "ShellResult",
    "SubprocessShell",
    "create_shell_executor",
    "resolve_shell_path",
]
