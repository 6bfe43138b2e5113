"""Bounded request/execute/feedback loop for autonomous shell use."""

from __future__ import annotations

import logging
from collections.abc import Callable
from typing import Protocol

from openrouter_cli.agent.actions import (
    CommandAction,
    FinishAction,
    InvalidActionJSONError,
    MissingCommandError,
    UnknownActionError,
    decode_action,
)
from openrouter_cli.agent.models import LoopOutcome, StepRecord
from openrouter_cli.errors import GatewayError
from openrouter_cli.llm.client import Message, SamplingParams, WebSearchConfig, message_content
from openrouter_cli.shell import ShellExecutor

LOGGER = logging.getLogger(__name__)

DEFAULT_MAX_STEPS = 8
DEFAULT_YOLO_SYSTEM_PROMPT = "\n".join(
    [
        "You are an autonomous terminal agent. To reach the goal you may ask to run shell commands.",
        "Reply ONLY with JSON using one of these shapes:",
        '{"action":"command","command":"<shell command>","comment":"<short reason>"}',
        '{"action":"finish","summary":"<what you accomplished>"}',
        "Do not wrap JSON in markdown or add extra text.",
    ]
)

CommandStarted = Callable[[int, CommandAction], None]
CommandFinished = Callable[[StepRecord], None]


class ChatGateway(Protocol):
    def complete_chat(
        self,
        model: str,
        messages: list[Message],
        *,
        sampling: SamplingParams | None = None,
        json_mode: bool = False,
        web_search: WebSearchConfig | None = None,
    ) -> dict[str, object]: ...


class AgentLoop:
    """Asks the model for one action per step until it finishes or the budget runs out.

    Every failure (gateway error, empty reply, undecodable action) ends the run
    immediately. A command that exits non-zero is not a failure: its result is
    fed back so the model can react.
    """

    def __init__(
        self,
        *,
        client: ChatGateway,
        shell: ShellExecutor,
        model: str,
        system_prompt: str = DEFAULT_YOLO_SYSTEM_PROMPT,
        max_steps: int = DEFAULT_MAX_STEPS,
        sampling: SamplingParams | None = None,
        web_search: WebSearchConfig | None = None,
        on_command_started: CommandStarted | None = None,
        on_command_finished: CommandFinished | None = None,
    ) -> None:
        self.client = client
        self.shell = shell
        self.model = model
        self.system_prompt = system_prompt or DEFAULT_YOLO_SYSTEM_PROMPT
        self.max_steps = max_steps if max_steps > 0 else DEFAULT_MAX_STEPS
        self.sampling = sampling
        self.web_search = web_search
        self.on_command_started = on_command_started
        self.on_command_finished = on_command_finished

    def run(self, goal: str) -> LoopOutcome:
        history: list[Message] = [
            {"role": "system", "content": self.system_prompt},
            {"role": "user", "content": f"Goal: {goal}"},
        ]
        steps: list[StepRecord] = []

        for step in range(1, self.max_steps + 1):
            LOGGER.info(
                "agent_step_started",
                extra={"step": step, "max_steps": self.max_steps, "model": self.model},
            )
            try:
                response = self.client.complete_chat(
                    self.model,
                    list(history),
                    sampling=self.sampling,
                    json_mode=True,
                    web_search=self.web_search,
                )
            except GatewayError as exc:
                return self._failed(str(exc), step=step, steps=steps)

            content = message_content(response)
            if not content:
                return self._failed("No message content returned.", step=step, steps=steps)

            try:
                action = decode_action(content)
            except InvalidActionJSONError:
                return self._failed(
                    f"Step {step}: Model did not return valid JSON: {content}",
                    step=step,
                    steps=steps,
                )
            except MissingCommandError:
                return self._failed(
                    f"Step {step}: Model response missing command to run.",
                    step=step,
                    steps=steps,
                )
            except UnknownActionError as exc:
                return self._failed(
                    f"Step {step}: Model returned an unrecognized action ({exc}): {content}",
                    step=step,
                    steps=steps,
                )

            if isinstance(action, FinishAction):
                LOGGER.info("agent_finished", extra={"step": step, "commands_run": len(steps)})
                return LoopOutcome(
                    status="finished",
                    summary=action.display_summary,
                    steps=steps,
                    gateway_calls=step,
                )

            history.append({"role": "assistant", "content": content})
            if self.on_command_started:
                self.on_command_started(step, action)

            result = self.shell.execute(action.command)
            record = StepRecord(step=step, action=action, result=result)
            steps.append(record)
            history.append({"role": "user", "content": record.feedback_message()})

            if self.on_command_finished:
                self.on_command_finished(record)

        LOGGER.info("agent_budget_exhausted", extra={"max_steps": self.max_steps})
        return LoopOutcome(
            status="budget_exhausted",
            reason=f"Max steps reached ({self.max_steps}) without a finish action.",
            steps=steps,
            gateway_calls=self.max_steps,
        )

    @staticmethod
    def _failed(reason: str, *, step: int, steps: list[StepRecord]) -> LoopOutcome:
        LOGGER.error("agent_step_failed", extra={"step": step, "reason": reason})
        return LoopOutcome(status="failed", reason=reason, steps=steps, gateway_calls=step)
