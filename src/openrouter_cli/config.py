"""Environment-backed application configuration."""

from __future__ import annotations

import json
import os
from dataclasses import dataclass
from pathlib import Path

from openrouter_cli.agent.loop import DEFAULT_MAX_STEPS, DEFAULT_YOLO_SYSTEM_PROMPT
from openrouter_cli.llm.client import DEFAULT_BASE_URL

DEFAULT_MODEL = "x-ai/grok-4.1-fast:free"
DEFAULT_TIMEOUT_SECONDS = 120.0
CONFIG_FILE_NAME = "openrouter.config.json"
LOCAL_CONFIG_FILE_NAME = "openrouter.config.local.json"


@dataclass(slots=True)
class AppConfig:
    """Runtime settings loaded from environment variables and config files."""

    api_key: str | None
    base_url: str
    model: str
    referer: str | None
    title: str | None
    shell: str | None
    max_steps: int
    yolo_system_prompt: str
    timeout: float
    log_level: str | None

    @classmethod
    def from_env(cls) -> AppConfig:
        file_config = _load_preferred_file_config()

        return cls(
            api_key=(
                _to_optional_string(os.getenv("OPENROUTER_API_KEY"))
                or _to_optional_string(file_config.get("api_key"))
            ),
            base_url=(
                _to_optional_string(os.getenv("OPENROUTER_BASE_URL"))
                or _to_optional_string(file_config.get("base_url"))
                or DEFAULT_BASE_URL
            ),
            model=(
                _to_optional_string(os.getenv("OPENROUTER_MODEL"))
                or _to_optional_string(file_config.get("default_model"))
                or DEFAULT_MODEL
            ),
            referer=(
                _to_optional_string(os.getenv("OPENROUTER_REFERER"))
                or _to_optional_string(file_config.get("referer"))
            ),
            title=(
                _to_optional_string(os.getenv("OPENROUTER_TITLE"))
                or _to_optional_string(file_config.get("title"))
            ),
            shell=(
                _to_optional_string(os.getenv("OPENROUTER_SHELL"))
                or _to_optional_string(file_config.get("shell"))
            ),
            max_steps=_to_positive_int(
                os.getenv("OPENROUTER_MAX_STEPS") or file_config.get("max_steps"),
                default=DEFAULT_MAX_STEPS,
            ),
            yolo_system_prompt=(
                os.getenv("OPENROUTER_YOLO_SYSTEM")
                or _to_optional_string(file_config.get("yolo_system_prompt"))
                or DEFAULT_YOLO_SYSTEM_PROMPT
            ),
            timeout=_to_positive_float(
                os.getenv("OPENROUTER_TIMEOUT") or file_config.get("timeout"),
                default=DEFAULT_TIMEOUT_SECONDS,
            ),
            log_level=(
                _to_optional_string(os.getenv("OPENROUTER_LOG_LEVEL"))
                or _to_optional_string(file_config.get("log_level"))
            ),
        )


def _to_optional_string(value: object) -> str | None:
    if isinstance(value, str) and value.strip():
        return value.strip()
    return None


def _load_file_config(path_value: str) -> dict[str, object]:
    path = Path(path_value).expanduser()
    if not path.exists() or not path.is_file():
        return {}
    try:
        with path.open("r", encoding="utf-8") as fh:
            parsed = json.load(fh)
    except (OSError, json.JSONDecodeError):
        return {}
    if isinstance(parsed, dict):
        return parsed
    return {}


def _load_preferred_file_config() -> dict[str, object]:
    explicit_path = os.getenv("OPENROUTER_CONFIG_FILE")
    if explicit_path:
        return _load_file_config(explicit_path)

    shared_config = _load_file_config(CONFIG_FILE_NAME)
    local_override = _load_file_config(LOCAL_CONFIG_FILE_NAME)
    return {**shared_config, **local_override}


def _to_positive_int(value: object, *, default: int) -> int:
    if isinstance(value, bool):
        return default
    if isinstance(value, int):
        return value if value > 0 else default
    if isinstance(value, str):
        try:
            parsed = int(value.strip())
        except ValueError:
            return default
        return parsed if parsed > 0 else default
    return default


def _to_positive_float(value: object, *, default: float) -> float:
    if isinstance(value, bool):
        return default
    if isinstance(value, (int, float)):
        return float(value) if value > 0 else default
    if isinstance(value, str):
        try:
            parsed = float(value.strip())
        except ValueError:
            return default
        return parsed if parsed > 0 else default
    return default
