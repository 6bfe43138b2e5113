"""HTTP client for an OpenRouter-compatible chat gateway."""

from __future__ import annotations

import json
import logging
import math
from collections.abc import Iterator
from dataclasses import dataclass
from typing import IO
from urllib import request
from urllib.error import HTTPError, URLError

from openrouter_cli.errors import ConfigurationError, GatewayHTTPError, GatewayTransportError
from openrouter_cli.llm.streaming import StreamEvent, iter_stream_events

DEFAULT_BASE_URL = "https://openrouter.ai/api/v1"
ONLINE_SUFFIX = ":online"
WEB_SEARCH_ENGINES = ("auto", "native", "exa")
_STREAM_CHUNK_BYTES = 8192
LOGGER = logging.getLogger(__name__)

Message = dict[str, str]


@dataclass(slots=True)
class SamplingParams:
    """Optional sampling controls forwarded verbatim to the gateway."""

    temperature: float | None = None
    top_p: float | None = None
    max_tokens: int | None = None

    def to_payload(self) -> dict[str, object]:
        payload: dict[str, object] = {}
        if _is_number(self.temperature):
            payload["temperature"] = self.temperature
        if _is_number(self.top_p):
            payload["top_p"] = self.top_p
        if _is_number(self.max_tokens):
            payload["max_tokens"] = self.max_tokens
        return payload


@dataclass(slots=True)
class WebSearchConfig:
    """Settings for the gateway's server-side ``web`` plugin."""

    engine: str | None = None
    max_results: int | None = None
    search_prompt: str | None = None

    def to_plugin(self) -> dict[str, object]:
        plugin: dict[str, object] = {"id": "web"}
        engine = (self.engine or "").strip().lower()
        # "auto" leaves engine selection to the gateway
        if engine in {"native", "exa"}:
            plugin["engine"] = engine
        if isinstance(self.max_results, int) and self.max_results > 0:
            plugin["max_results"] = self.max_results
        if self.search_prompt:
            plugin["search_prompt"] = self.search_prompt
        return plugin


class GatewayClient:
    """Small HTTP client for chat completions and model listing."""

    def __init__(
        self,
        *,
        api_key: str | None,
        base_url: str = DEFAULT_BASE_URL,
        referer: str | None = None,
        title: str | None = None,
        timeout: float = 120.0,
    ) -> None:
        self.api_key = api_key
        self.base_url = normalize_base_url(base_url or DEFAULT_BASE_URL)
        self.referer = referer
        self.title = title
        self.timeout = timeout

    def build_headers(self) -> dict[str, str]:
        if not self.api_key:
            raise ConfigurationError("Missing API key. Set OPENROUTER_API_KEY or pass --api-key.")
        headers = {
            "Content-Type": "application/json",
            "Authorization": f"Bearer {self.api_key}",
        }
        if self.referer:
            headers["HTTP-Referer"] = self.referer
        if self.title:
            headers["X-Title"] = self.title
        return headers

    def build_chat_payload(
        self,
        model: str,
        messages: list[Message],
        *,
        sampling: SamplingParams | None = None,
        stream: bool = False,
        json_mode: bool = False,
        web_search: WebSearchConfig | None = None,
    ) -> dict[str, object]:
        payload: dict[str, object] = {
            "model": model,
            "messages": [dict(message) for message in messages],
            "stream": stream,
        }
        if json_mode:
            payload["response_format"] = {"type": "json_object"}
        if web_search is not None:
            payload["plugins"] = [web_search.to_plugin()]
        if sampling is not None:
            payload.update(sampling.to_payload())
        return payload

    def complete_chat(
        self,
        model: str,
        messages: list[Message],
        *,
        sampling: SamplingParams | None = None,
        json_mode: bool = False,
        web_search: WebSearchConfig | None = None,
    ) -> dict[str, object]:
        """Send a non-streaming completion request and return the JSON body."""
        payload = self.build_chat_payload(
            model,
            messages,
            sampling=sampling,
            stream=False,
            json_mode=json_mode,
            web_search=web_search,
        )
        response = self._send("POST", "/chat/completions", payload)
        with response:
            parsed = self._read_json(response)
        if not isinstance(parsed, dict):
            raise GatewayTransportError("Gateway returned a non-object completion response.")
        return parsed

    def stream_chat(
        self,
        model: str,
        messages: list[Message],
        *,
        sampling: SamplingParams | None = None,
        json_mode: bool = False,
        web_search: WebSearchConfig | None = None,
    ) -> Iterator[StreamEvent]:
        """Send a streaming request; HTTP errors raise before the first event."""
        payload = self.build_chat_payload(
            model,
            messages,
            sampling=sampling,
            stream=True,
            json_mode=json_mode,
            web_search=web_search,
        )
        response = self._send("POST", "/chat/completions", payload)
        return self._iter_events(response)

    def list_models(
        self,
        *,
        search: str | None = None,
        limit: int | None = None,
    ) -> list[dict[str, object]]:
        response = self._send("GET", "/models")
        with response:
            parsed = self._read_json(response)

        raw_models: object = None
        if isinstance(parsed, dict):
            raw_models = parsed.get("data")
            if not isinstance(raw_models, list):
                raw_models = parsed.get("models")
        if not isinstance(raw_models, list):
            return []
        models = [item for item in raw_models if isinstance(item, dict)]
        return filter_models(models, search=search, limit=limit)

    def _send(
        self,
        method: str,
        path: str,
        payload: dict[str, object] | None = None,
    ) -> IO[bytes]:
        url = f"{self.base_url}{path}"
        headers = self.build_headers()
        body = json.dumps(payload).encode("utf-8") if payload is not None else None

        LOGGER.debug(
            "gateway_request_prepared",
            extra={
                "url": url,
                "method": method,
                "model": payload.get("model") if payload else None,
                "stream": payload.get("stream") if payload else None,
                "payload_bytes": len(body) if body else 0,
            },
        )

        req = request.Request(url, data=body, headers=headers, method=method)
        try:
            return request.urlopen(req, timeout=self.timeout)  # noqa: S310
        except HTTPError as exc:
            response_body = _read_error_body(exc)
            LOGGER.error(
                "gateway_http_error",
                extra={"url": url, "http_status": exc.code, "reason": exc.reason},
            )
            raise GatewayHTTPError(exc.code, response_body, reason=str(exc.reason)) from exc
        except URLError as exc:
            LOGGER.error("gateway_transport_error", extra={"url": url, "reason": str(exc.reason)})
            raise GatewayTransportError(f"Request to {url} failed: {exc.reason}") from exc
        except TimeoutError as exc:
            LOGGER.error("gateway_timeout", extra={"url": url, "timeout_seconds": self.timeout})
            raise GatewayTransportError(
                f"Request to {url} timed out after {self.timeout:.1f}s"
            ) from exc
        except OSError as exc:
            raise GatewayTransportError(f"Request to {url} failed: {exc}") from exc

    @staticmethod
    def _read_json(response: IO[bytes]) -> object:
        try:
            return json.loads(response.read().decode("utf-8"))
        except (UnicodeDecodeError, json.JSONDecodeError) as exc:
            LOGGER.error("gateway_response_parse_error", extra={"error": str(exc)})
            raise GatewayTransportError(f"Gateway returned an unreadable response: {exc}") from exc
        except OSError as exc:
            raise GatewayTransportError(f"Reading the gateway response failed: {exc}") from exc

    @staticmethod
    def _iter_events(response: IO[bytes]) -> Iterator[StreamEvent]:
        with response:
            chunks = iter(lambda: response.read1(_STREAM_CHUNK_BYTES), b"")  # type: ignore[attr-defined]
            try:
                yield from iter_stream_events(chunks)
            except OSError as exc:
                raise GatewayTransportError(f"Stream interrupted: {exc}") from exc


def normalize_base_url(base_url: str) -> str:
    return base_url.rstrip("/")


def ensure_online_suffix(model: str) -> str:
    return model if ONLINE_SUFFIX in model else f"{model}{ONLINE_SUFFIX}"


def filter_models(
    models: list[dict[str, object]],
    *,
    search: str | None = None,
    limit: int | None = None,
) -> list[dict[str, object]]:
    """Case-insensitive id substring filter followed by an optional cap."""
    filtered = models
    if search:
        needle = search.lower()
        filtered = [
            model
            for model in filtered
            if isinstance(model.get("id"), str) and needle in str(model["id"]).lower()
        ]
    if isinstance(limit, int) and limit > 0:
        filtered = filtered[:limit]
    return filtered


def first_message(response: dict[str, object]) -> dict[str, object]:
    choices = response.get("choices")
    if isinstance(choices, list) and choices and isinstance(choices[0], dict):
        message = choices[0].get("message")
        if isinstance(message, dict):
            return message
    return {}


def message_content(response: dict[str, object]) -> str:
    """Return the first choice's text, joining multi-part content."""
    content = first_message(response).get("content")
    if isinstance(content, str):
        return content
    if isinstance(content, list):
        parts = []
        for chunk in content:
            if isinstance(chunk, dict) and chunk.get("type") == "text":
                text = chunk.get("text", "")
                parts.append(text if isinstance(text, str) else "")
        return "".join(parts)
    return ""


def message_annotations(response: dict[str, object]) -> list[dict[str, object]]:
    annotations = first_message(response).get("annotations")
    if not isinstance(annotations, list):
        return []
    return [item for item in annotations if isinstance(item, dict)]


def _is_number(value: object) -> bool:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return False
    return not math.isnan(value)


def _read_error_body(exc: HTTPError) -> str:
    if exc.fp is None:
        return ""
    try:
        raw = exc.read()
    except OSError:
        return ""
    if not raw:
        return ""
    return raw.decode("utf-8", errors="replace")
