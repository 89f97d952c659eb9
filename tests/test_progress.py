"""Tests for the SSE framing in services.progress."""

import asyncio
import json
from unittest.mock import patch

from metagen.models.result import MetadataResult, ProgressEvent
from metagen.services.progress import format_sse, percent, stream_progress


def _parse_frame(frame: str):
    assert frame.endswith("\n\n")
    lines = frame.rstrip("\n").split("\n")
    assert len(lines) == 2
    event_line, data_line = lines
    assert event_line.startswith("event: ")
    assert data_line.startswith("data: ")
    return event_line[len("event: "):], json.loads(data_line[len("data: "):])


def _collect(events):
    async def source():
        for event in events:
            if isinstance(event, Exception):
                raise event
            yield event

    async def run():
        return [frame async for frame in stream_progress(source())]

    return asyncio.run(run())


class TestPercent:
    def test_rounds_half_up(self):
        assert percent(1, 8) == 13
        assert percent(1, 3) == 33
        assert percent(2, 3) == 67

    def test_bounds(self):
        assert percent(0, 5) == 0
        assert percent(5, 5) == 100


class TestFormatSse:
    def test_frame_without_result(self):
        name, payload = _parse_frame(format_sse(ProgressEvent(message="Starting", progress=0)))
        assert name == "progress"
        assert payload == {"message": "Starting", "progress": 0}

    def test_frame_with_result_uses_camel_case(self):
        result = MetadataResult(
            url="https://a.example",
            page_title="T",
            meta_description="D",
            og_title="OT",
            og_description="OD",
            status="success",
        )
        _, payload = _parse_frame(
            format_sse(ProgressEvent(message="Processed", progress=50, result=result))
        )
        assert payload["result"] == {
            "url": "https://a.example",
            "pageTitle": "T",
            "metaDescription": "D",
            "ogTitle": "OT",
            "ogDescription": "OD",
            "status": "success",
            "error": None,
        }

    def test_data_stays_on_one_line(self):
        frame = format_sse(ProgressEvent(message="line one\nline two", progress=10))
        _, payload = _parse_frame(frame)
        assert payload["message"] == "line one\nline two"

    def test_custom_event_name(self):
        name, _ = _parse_frame(format_sse(ProgressEvent(message="m", progress=1), "error"))
        assert name == "error"


class TestStreamProgress:
    def test_frames_follow_events(self):
        frames = _collect(
            [ProgressEvent(message="a", progress=0), ProgressEvent(message="b", progress=100)]
        )
        assert [_parse_frame(f)[1]["message"] for f in frames] == ["a", "b"]

    def test_fatal_error_ends_with_zero_progress_frame(self):
        frames = _collect([ProgressEvent(message="a", progress=0), RuntimeError("boom")])
        assert len(frames) == 2
        _, last = _parse_frame(frames[-1])
        assert last["progress"] == 0
        assert "boom" in last["message"]

    def test_unencodable_frame_is_skipped(self):
        real_format = format_sse
        calls = {"n": 0}

        def flaky_format(event, *args):
            calls["n"] += 1
            if calls["n"] == 1:
                raise TypeError("cannot encode")
            return real_format(event, *args)

        with patch("metagen.services.progress.format_sse", side_effect=flaky_format):
            frames = _collect(
                [ProgressEvent(message="a", progress=0), ProgressEvent(message="b", progress=100)]
            )
        assert [_parse_frame(f)[1]["message"] for f in frames] == ["b"]
