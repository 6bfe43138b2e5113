"""Data models used by the autonomous agent loop."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Literal

from openrouter_cli.agent.actions import CommandAction
from openrouter_cli.shell import ShellResult

LoopStatus = Literal["finished", "budget_exhausted", "failed"]

EMPTY_STREAM_PLACEHOLDER = "(empty)"


@dataclass(slots=True)
class StepRecord:
    """A command the model asked for and what running it produced."""

    step: int
    action: CommandAction
    result: ShellResult

    def feedback_message(self) -> str:
        """Render the result as the user turn fed back to the model."""
        return (
            f"command: {self.action.command}\n"
            f"exitCode: {self.result.exit_code}\n"
            f"stdout:\n{self.result.stdout or EMPTY_STREAM_PLACEHOLDER}\n"
            f"stderr:\n{self.result.stderr or EMPTY_STREAM_PLACEHOLDER}"
        )


@dataclass(slots=True)
class LoopOutcome:
    """Terminal state of one agent run."""

    status: LoopStatus
    summary: str | None = None
    reason: str | None = None
    steps: list[StepRecord] = field(default_factory=list)
    gateway_calls: int = 0

    @property
    def succeeded(self) -> bool:
        return self.status == "finished"
