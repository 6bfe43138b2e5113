"""Decoding of model replies into agent actions.

A reply is either ``{"action": "command", "command": ..., "comment": ...}`` or
``{"action": "finish", "summary": ...}``. Anything else is rejected rather
than coerced into one of the two shapes.
"""

from __future__ import annotations

import json
from dataclasses import dataclass

FINISH_FALLBACK_SUMMARY = "Finished."


@dataclass(frozen=True, slots=True)
class CommandAction:
    """Run ``command`` in the local shell."""

    command: str
    comment: str | None = None


@dataclass(frozen=True, slots=True)
class FinishAction:
    """Stop the loop; the goal is reached."""

    summary: str | None = None

    @property
    def display_summary(self) -> str:
        if self.summary and self.summary.strip():
            return self.summary.strip()
        return FINISH_FALLBACK_SUMMARY


Action = CommandAction | FinishAction


class ActionDecodeError(ValueError):
    """The reply text is not a valid action."""

    def __init__(self, message: str, raw: str) -> None:
        super().__init__(message)
        self.raw = raw


class InvalidActionJSONError(ActionDecodeError):
    """The reply is not a JSON document."""


class MissingCommandError(ActionDecodeError):
    """A ``command`` action without a non-empty command string."""


class UnknownActionError(ActionDecodeError):
    """Valid JSON with an unrecognized or malformed action shape."""


def decode_action(raw: str) -> Action:
    try:
        parsed = json.loads(raw)
    except json.JSONDecodeError as exc:
        raise InvalidActionJSONError(f"invalid JSON: {exc}", raw) from exc

    if not isinstance(parsed, dict):
        raise UnknownActionError("reply is not a JSON object", raw)

    tag = parsed.get("action")
    if tag == "finish":
        summary = _optional_string(parsed, "summary", raw)
        return FinishAction(summary=summary)
    if tag == "command":
        command = parsed.get("command")
        if not isinstance(command, str) or not command.strip():
            raise MissingCommandError("missing command", raw)
        comment = _optional_string(parsed, "comment", raw)
        return CommandAction(command=command, comment=comment)
    if tag is None:
        raise UnknownActionError("missing action field", raw)
    raise UnknownActionError(f"unknown action {tag!r}", raw)


def _optional_string(parsed: dict[str, object], key: str, raw: str) -> str | None:
    value = parsed.get(key)
    if value is None or isinstance(value, str):
        return value
    raise UnknownActionError(f"{key} must be a string", raw)
