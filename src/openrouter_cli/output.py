"""Terminal rendering for chat replies, streams, model lists and agent progress."""

from __future__ import annotations

import json
import re
import sys
from collections.abc import Iterable

from openrouter_cli.agent.actions import CommandAction
from openrouter_cli.agent.models import StepRecord
from openrouter_cli.llm.client import message_annotations, message_content
from openrouter_cli.llm.streaming import StreamEvent

SNIPPET_MAX_CHARS = 140
_SCHEME_PATTERN = re.compile(r"^https?://")


def print_chat_response(response: dict[str, object], *, as_json: bool, quiet: bool) -> None:
    if as_json:
        print(json.dumps(response, indent=2))
        return

    content = message_content(response).strip()
    if content:
        print(content)
        print_annotations(message_annotations(response), quiet=quiet)
    else:
        print("No message content returned.")

    if not quiet:
        usage_line = render_usage(response.get("usage"))
        if usage_line:
            print(usage_line, file=sys.stderr)


def render_usage(usage: object) -> str | None:
    if not isinstance(usage, dict):
        return None
    parts = []
    for label, key in (("prompt", "prompt_tokens"), ("completion", "completion_tokens")):
        value = usage.get(key)
        if isinstance(value, int) and not isinstance(value, bool):
            parts.append(f"{label}={value}")
    if not parts:
        return None
    return f"usage {' '.join(parts)}"


def print_stream(events: Iterable[StreamEvent], *, as_json: bool, quiet: bool) -> None:
    """Write deltas in arrival order, then the collected citations."""
    annotations: list[dict[str, object]] = []
    for event in events:
        if as_json:
            print(json.dumps(event.payload))
            continue
        if event.content:
            sys.stdout.write(event.content)
            sys.stdout.flush()
        annotations.extend(event.annotations)

    if not as_json:
        sys.stdout.write("\n")
        print_annotations(annotations, quiet=quiet)


def render_annotations(annotations: Iterable[dict[str, object]]) -> list[str]:
    """Format unique ``url_citation`` annotations as source lines."""
    seen: set[str] = set()
    lines: list[str] = []
    for annotation in annotations:
        if annotation.get("type") != "url_citation":
            continue
        citation = annotation.get("url_citation")
        if not isinstance(citation, dict):
            continue
        url = citation.get("url")
        if not isinstance(url, str) or not url or url in seen:
            continue
        seen.add(url)

        title = citation.get("title")
        label = title if isinstance(title, str) and title else _SCHEME_PATTERN.sub("", url)
        content = citation.get("content")
        snippet = ""
        if isinstance(content, str) and content:
            cut = content[:SNIPPET_MAX_CHARS]
            ellipsis = "…" if len(content) > SNIPPET_MAX_CHARS else ""
            snippet = f" — {cut}{ellipsis}"
        lines.append(f"- {label} ({url}){snippet}")
    return lines


def print_annotations(annotations: Iterable[dict[str, object]], *, quiet: bool) -> None:
    if quiet:
        return
    lines = render_annotations(annotations)
    if not lines:
        return
    print("\nSources:")
    for line in lines:
        print(line)


def print_models(models: list[dict[str, object]], *, as_json: bool) -> None:
    if as_json:
        print(json.dumps(models, indent=2))
        return
    if not models:
        print("No models returned.")
        return
    for model in models:
        print(render_model(model))


def render_model(model: dict[str, object]) -> str:
    pricing = model.get("pricing")
    prompt_cost = completion_cost = None
    if isinstance(pricing, dict):
        prompt_cost = pricing.get("prompt")
        completion_cost = pricing.get("completion")
    suffix = ""
    if prompt_cost or completion_cost:
        suffix = (
            f" (prompt: {prompt_cost if prompt_cost is not None else '?'}"
            f" completion: {completion_cost if completion_cost is not None else '?'})"
        )
    return f"- {model.get('id')}{suffix}"


def report_command_started(step: int, action: CommandAction) -> None:
    if action.comment:
        print(f"Reason: {action.comment}", file=sys.stderr)
    print(f"[YOLO step {step}] {action.command}", file=sys.stderr)


def report_command_finished(record: StepRecord) -> None:
    result = record.result
    if result.stdout:
        sys.stdout.write(result.stdout)
        sys.stdout.flush()
    if result.stderr:
        sys.stderr.write(result.stderr)
        sys.stderr.flush()
    if result.exit_code != 0:
        print(
            f"Command exited with code {result.exit_code}; continuing conversation.",
            file=sys.stderr,
        )


def print_error(message: str) -> None:
    print(f"Error: {message}", file=sys.stderr)
