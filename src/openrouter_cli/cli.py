"""Command-line interface for openrouter-cli."""

from __future__ import annotations

import argparse
import logging
import sys
from collections.abc import Callable
from pathlib import Path
from typing import TextIO, cast

from . import __version__
from .agent.loop import AgentLoop
from .config import AppConfig
from .errors import OpenRouterError, PromptError
from .llm.client import (
    WEB_SEARCH_ENGINES,
    GatewayClient,
    Message,
    SamplingParams,
    WebSearchConfig,
    ensure_online_suffix,
)
from .output import (
    print_chat_response,
    print_error,
    print_models,
    print_stream,
    report_command_finished,
    report_command_started,
)
from .shell import create_shell_executor

LOGGER = logging.getLogger(__name__)

Handler = Callable[[argparse.Namespace, AppConfig], int]


class CLIArgs(argparse.Namespace):
    handler: Handler
    api_key: str | None
    base_url: str | None
    referer: str | None
    title: str | None
    verbose: bool


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="openrouter",
        description="CLI interface for models through OpenRouter",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    _add_global_options(parser, default=None)
    subparsers = parser.add_subparsers(dest="command", metavar="{chat,yolo,models}")
    subparsers.required = True

    chat = subparsers.add_parser(
        "chat",
        help="Send a chat prompt to OpenRouter",
        description="Send a chat prompt to OpenRouter",
    )
    chat.add_argument("prompt", nargs="*", help="Prompt text")
    chat.add_argument("-m", "--model", help="Model id to use")
    chat.add_argument("--system", help="System prompt")
    _add_prompt_source_options(chat, noun="prompt")
    chat.add_argument("--stream", action="store_true", help="Stream tokens as they arrive")
    chat.add_argument(
        "--json",
        action="store_true",
        help="Print raw JSON response instead of message text",
    )
    chat.add_argument(
        "--json-mode",
        action="store_true",
        help="Request structured JSON from the model",
    )
    _add_web_options(chat)
    _add_sampling_options(chat, max_tokens_help="Max tokens for completion")
    chat.add_argument("--quiet", action="store_true", help="Suppress usage line and sources")
    _add_global_options(chat, default=argparse.SUPPRESS)
    chat.set_defaults(handler=run_chat)

    yolo = subparsers.add_parser(
        "yolo",
        help="Autonomous mode that lets the model run shell commands (unsafe)",
        description=(
            "Autonomous mode that lets the model run shell commands without confirmation. "
            "Only use it in a disposable environment."
        ),
    )
    yolo.add_argument("goal", nargs="*", help="Goal for the autonomous session")
    yolo.add_argument("-m", "--model", help="Model id to use")
    yolo.add_argument("--system", help="Override the system prompt used for autonomy")
    _add_prompt_source_options(yolo, noun="goal")
    yolo.add_argument(
        "--max-steps",
        type=int,
        help="Limit number of command iterations (default 8)",
    )
    _add_web_options(yolo)
    _add_sampling_options(yolo, max_tokens_help="Max tokens for each model reply")
    yolo.add_argument(
        "--shell",
        help="Shell to execute commands with (default $SHELL or /bin/bash)",
    )
    _add_global_options(yolo, default=argparse.SUPPRESS)
    yolo.set_defaults(handler=run_yolo)

    models = subparsers.add_parser(
        "models",
        help="List models available via OpenRouter",
        description="List models available via OpenRouter",
    )
    models.add_argument("--search", help="Filter models containing term (case-insensitive)")
    models.add_argument("--limit", type=int, help="Limit number of models shown")
    models.add_argument("--json", action="store_true", help="Print raw JSON")
    _add_global_options(models, default=argparse.SUPPRESS)
    models.set_defaults(handler=run_models)

    return parser


def _add_global_options(parser: argparse.ArgumentParser, *, default: object) -> None:
    # Subcommands repeat these with SUPPRESS so values given before the
    # subcommand are not reset by the subparser defaults.
    parser.add_argument(
        "-k",
        "--api-key",
        default=default,
        help="OpenRouter API key (or OPENROUTER_API_KEY)",
    )
    parser.add_argument("--base-url", default=default, help="Override API base URL")
    parser.add_argument(
        "--referer",
        default=default,
        help="HTTP Referer header (OPENROUTER_REFERER)",
    )
    parser.add_argument("--title", default=default, help="X-Title header (OPENROUTER_TITLE)")
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        default=False if default is None else default,
        help="Log requests and command execution to stderr",
    )


def _add_prompt_source_options(parser: argparse.ArgumentParser, *, noun: str) -> None:
    parser.add_argument("-f", "--file", help=f"Read {noun} from file")
    parser.add_argument("--stdin", action="store_true", help=f"Read {noun} from stdin")


def _add_web_options(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--web",
        action="store_true",
        help="Enable built-in OpenRouter web search plugin",
    )
    parser.add_argument(
        "--online",
        action="store_true",
        help="Append :online to the model id (shortcut for web search)",
    )
    parser.add_argument(
        "--web-engine",
        type=str.lower,
        choices=WEB_SEARCH_ENGINES,
        help="Web search engine to use: auto|native|exa",
    )
    parser.add_argument(
        "--web-max-results",
        type=int,
        help="Maximum number of web results to fetch",
    )
    parser.add_argument(
        "--web-search-prompt",
        help="Custom prompt used to guide the web search",
    )


def _add_sampling_options(parser: argparse.ArgumentParser, *, max_tokens_help: str) -> None:
    parser.add_argument("--max-tokens", type=int, help=max_tokens_help)
    parser.add_argument("--temperature", type=float, help="Sampling temperature")
    parser.add_argument("--top-p", type=float, help="Nucleus sampling top-p")


def resolve_prompt(
    words: list[str] | None,
    *,
    file: str | None,
    use_stdin: bool,
    stdin: TextIO | None = None,
) -> str:
    """Pick the prompt from a file, piped stdin, or positional words, in that order."""
    if file:
        try:
            return Path(file).read_text(encoding="utf-8", errors="replace").strip()
        except OSError as exc:
            raise PromptError(f"Unable to read file {file}: {exc.strerror or exc}") from exc

    stream = sys.stdin if stdin is None else stdin
    if use_stdin or not stream.isatty():
        piped = stream.read().strip()
        if piped:
            return piped

    joined = " ".join(words or []).strip()
    if joined:
        return joined
    raise PromptError("No prompt provided. Pass text, --file, or pipe via stdin.")


def build_client(args: argparse.Namespace, config: AppConfig) -> GatewayClient:
    return GatewayClient(
        api_key=args.api_key or config.api_key,
        base_url=args.base_url or config.base_url,
        referer=args.referer or config.referer,
        title=args.title or config.title,
        timeout=config.timeout,
    )


def _selected_model(args: argparse.Namespace, config: AppConfig) -> str:
    model = args.model or config.model
    return ensure_online_suffix(model) if args.online else model


def _web_search(args: argparse.Namespace) -> WebSearchConfig | None:
    if not args.web:
        return None
    return WebSearchConfig(
        engine=args.web_engine,
        max_results=args.web_max_results,
        search_prompt=args.web_search_prompt,
    )


def _sampling(args: argparse.Namespace) -> SamplingParams:
    return SamplingParams(
        temperature=args.temperature,
        top_p=args.top_p,
        max_tokens=args.max_tokens,
    )


def run_chat(args: argparse.Namespace, config: AppConfig) -> int:
    prompt = resolve_prompt(args.prompt, file=args.file, use_stdin=args.stdin)
    client = build_client(args, config)

    messages: list[Message] = []
    if args.system:
        messages.append({"role": "system", "content": args.system})
    messages.append({"role": "user", "content": prompt})

    model = _selected_model(args, config)
    if args.stream:
        events = client.stream_chat(
            model,
            messages,
            sampling=_sampling(args),
            json_mode=args.json_mode,
            web_search=_web_search(args),
        )
        print_stream(events, as_json=args.json, quiet=args.quiet)
        return 0

    response = client.complete_chat(
        model,
        messages,
        sampling=_sampling(args),
        json_mode=args.json_mode,
        web_search=_web_search(args),
    )
    print_chat_response(response, as_json=args.json, quiet=args.quiet)
    return 0


def run_yolo(args: argparse.Namespace, config: AppConfig) -> int:
    goal = resolve_prompt(args.goal, file=args.file, use_stdin=args.stdin)
    client = build_client(args, config)
    shell = create_shell_executor(args.shell or config.shell)
    max_steps = (
        args.max_steps
        if isinstance(args.max_steps, int) and args.max_steps > 0
        else config.max_steps
    )

    loop = AgentLoop(
        client=client,
        shell=shell,
        model=_selected_model(args, config),
        system_prompt=args.system or config.yolo_system_prompt,
        max_steps=max_steps,
        sampling=_sampling(args),
        web_search=_web_search(args),
        on_command_started=report_command_started,
        on_command_finished=report_command_finished,
    )
    LOGGER.debug("shell_executor_selected", extra={"shell": shell.name, "max_steps": max_steps})
    outcome = loop.run(goal)

    if outcome.status == "finished":
        print(outcome.summary)
        return 0
    if outcome.status == "budget_exhausted":
        print(outcome.reason, file=sys.stderr)
        return 0
    print_error(outcome.reason or "Agent loop failed.")
    return 1


def run_models(args: argparse.Namespace, config: AppConfig) -> int:
    client = build_client(args, config)
    models = client.list_models(search=args.search, limit=args.limit)
    print_models(models, as_json=args.json)
    return 0


def configure_logging(verbose: bool, level_name: str | None) -> None:
    if verbose:
        level = logging.DEBUG
    elif level_name:
        resolved = logging.getLevelName(level_name.upper())
        if not isinstance(resolved, int):
            return
        level = resolved
    else:
        return
    logging.basicConfig(
        level=level,
        stream=sys.stderr,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = cast(CLIArgs, parser.parse_args(argv))
    config = AppConfig.from_env()
    configure_logging(args.verbose, config.log_level)

    try:
        return args.handler(args, config)
    except OpenRouterError as exc:
        print_error(str(exc))
        return 1


if __name__ == "__main__":
    raise SystemExit(main())
