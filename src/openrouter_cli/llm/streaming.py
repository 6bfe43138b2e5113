"""Incremental decoding of server-sent chat completion events."""

from __future__ import annotations

import codecs
import json
import logging
from collections.abc import Iterable, Iterator
from dataclasses import dataclass, field

LOGGER = logging.getLogger(__name__)

DONE_SENTINEL = "[DONE]"
RECORD_SEPARATOR = "\n\n"


@dataclass(slots=True)
class StreamEvent:
    """One decoded ``data:`` payload from the stream."""

    payload: dict[str, object]
    content: str = ""
    annotations: list[dict[str, object]] = field(default_factory=list)


class SSEDecoder:
    """Splits a byte stream into complete SSE records.

    Partial trailing data stays buffered until a blank-line record boundary
    arrives, or until :meth:`close` flushes it at end of stream.
    """

    def __init__(self) -> None:
        self._decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
        self._buffer = ""

    def feed(self, chunk: bytes) -> list[StreamEvent]:
        self._buffer = (self._buffer + self._decoder.decode(chunk)).replace("\r\n", "\n")
        *records, self._buffer = self._buffer.split(RECORD_SEPARATOR)
        events: list[StreamEvent] = []
        for record in records:
            event = parse_record(record)
            if event is not None:
                events.append(event)
        return events

    def close(self) -> list[StreamEvent]:
        self._buffer += self._decoder.decode(b"", final=True)
        remainder, self._buffer = self._buffer, ""
        event = parse_record(remainder)
        return [event] if event is not None else []


def iter_stream_events(chunks: Iterable[bytes]) -> Iterator[StreamEvent]:
    decoder = SSEDecoder()
    for chunk in chunks:
        yield from decoder.feed(chunk)
    yield from decoder.close()


def parse_record(record: str) -> StreamEvent | None:
    """Decode one SSE record; comments, ``[DONE]`` and bad JSON yield None."""
    data_lines = [
        line[len("data:") :].strip()
        for line in record.strip().split("\n")
        if line.startswith("data:")
    ]
    data = "\n".join(data_lines).strip()
    if not data or data == DONE_SENTINEL:
        return None
    try:
        payload = json.loads(data)
    except json.JSONDecodeError:
        LOGGER.debug("stream_record_skipped", extra={"record_length": len(data)})
        return None
    if not isinstance(payload, dict):
        return None
    return StreamEvent(
        payload=payload,
        content=_delta_content(payload),
        annotations=_delta_annotations(payload),
    )


def _first_choice(payload: dict[str, object]) -> dict[str, object]:
    choices = payload.get("choices")
    if isinstance(choices, list) and choices and isinstance(choices[0], dict):
        return choices[0]
    return {}


def _delta_content(payload: dict[str, object]) -> str:
    delta = _first_choice(payload).get("delta")
    if isinstance(delta, dict):
        content = delta.get("content")
        if isinstance(content, str):
            return content
    return ""


def _delta_annotations(payload: dict[str, object]) -> list[dict[str, object]]:
    choice = _first_choice(payload)
    for key in ("delta", "message"):
        container = choice.get(key)
        if not isinstance(container, dict):
            continue
        annotations = container.get("annotations")
        if isinstance(annotations, list):
            return [item for item in annotations if isinstance(item, dict)]
    return []
