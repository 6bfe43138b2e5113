from __future__ import annotations

import json

from openrouter_cli.llm.streaming import SSEDecoder, iter_stream_events, parse_record


def _record(payload: dict[str, object]) -> bytes:
    return f"data: {json.dumps(payload, ensure_ascii=False)}\n\n".encode()


def _delta(text: str) -> dict[str, object]:
    return {"choices": [{"delta": {"content": text}}]}


def test_partial_record_waits_for_boundary() -> None:
    decoder = SSEDecoder()
    raw = _record(_delta("Hello"))

    assert decoder.feed(raw[:10]) == []
    assert decoder.feed(raw[10:-1]) == []
    events = decoder.feed(raw[-1:])

    assert [event.content for event in events] == ["Hello"]


def test_multiple_records_in_one_chunk_keep_order() -> None:
    decoder = SSEDecoder()

    events = decoder.feed(_record(_delta("a")) + _record(_delta("b")) + _record(_delta("c")))

    assert "".join(event.content for event in events) == "abc"


def test_multibyte_character_split_across_chunks() -> None:
    raw = _record(_delta("héllo wörld"))
    split_at = raw.index("é".encode()) + 1

    events = list(iter_stream_events([raw[:split_at], raw[split_at:]]))

    assert [event.content for event in events] == ["héllo wörld"]


def test_done_comments_and_malformed_records_are_skipped() -> None:
    chunks = [
        b": OPENROUTER PROCESSING\n\n",
        b"data: {not json}\n\n",
        _record(_delta("ok")),
        b"data: [DONE]\n\n",
    ]

    events = list(iter_stream_events(chunks))

    assert [event.content for event in events] == ["ok"]


def test_trailing_record_without_boundary_is_flushed() -> None:
    chunks = [_record(_delta("first")), f"data: {json.dumps(_delta('last'))}".encode()]

    events = list(iter_stream_events(chunks))

    assert [event.content for event in events] == ["first", "last"]


def test_crlf_boundaries_are_recognized() -> None:
    raw = f"data: {json.dumps(_delta('x'))}\r\n\r\n".encode()

    events = list(iter_stream_events([raw]))

    assert [event.content for event in events] == ["x"]


def test_annotations_read_from_delta_or_message() -> None:
    citation = {"type": "url_citation", "url_citation": {"url": "https://example.com"}}

    from_delta = parse_record(
        f"data: {json.dumps({'choices': [{'delta': {'annotations': [citation]}}]})}"
    )
    from_message = parse_record(
        f"data: {json.dumps({'choices': [{'message': {'annotations': [citation]}}]})}"
    )

    assert from_delta is not None and from_delta.annotations == [citation]
    assert from_message is not None and from_message.annotations == [citation]


def test_event_keeps_full_payload() -> None:
    payload = {"id": "gen-1", "choices": [{"delta": {"content": "hi"}}], "usage": None}

    event = parse_record(f"data: {json.dumps(payload)}")

    assert event is not None
    assert event.payload == payload
