"""Tests for SSE framing on both ends of the stream."""

import asyncio

import pytest

from tars.models.events import (
    AssistantEvent,
    DoneEvent,
    ErrorEvent,
    InfoEvent,
    ToolCallEvent,
    ToolResultEvent,
)
from tars.services.broadcaster import EventChannel
from tars.utils.sse import KEEP_ALIVE_FRAME, SSEDecoder, decode_stream, encode_event, extract_data, sse_stream

EVENTS = [
    AssistantEvent(text="Hello, **world**"),
    AssistantEvent(text="line one\nline two\n\nafter a blank line"),
    AssistantEvent(text="café ☕ 日本語 🚀"),
    ToolCallEvent(name="edit_file", input={"path": "notes.md", "old_str": "", "new_str": "ünïcode"}),
    ToolResultEvent(content="old_str not found in file", is_error=True),
    ToolResultEvent(content='["a.txt","b/"]'),
    InfoEvent(message="thinking"),
    ErrorEvent(message="API error: 500 - boom"),
    DoneEvent(),
]


def feed_split(wire: bytes, offset: int) -> list:
    decoder = SSEDecoder()
    return decoder.feed(wire[:offset]) + decoder.feed(wire[offset:])


class TestEncode:
    """Server-side framing."""

    def test_done_frame(self):
        """Test the exact wire form of a done event."""
        assert encode_event(DoneEvent()) == 'data: {"type":"done"}\n\n'

    def test_tool_result_omits_nothing(self):
        """Test that tool results always carry their error flag."""
        assert encode_event(ToolResultEvent(content="ok")) == (
            'data: {"type":"tool_result","content":"ok","is_error":false}\n\n'
        )

    @pytest.mark.parametrize("event", EVENTS)
    def test_single_data_line(self, event):
        """Test that newlines inside payloads are escaped, keeping one data line per frame."""
        frame = encode_event(event)
        assert frame.endswith("\n\n")
        assert frame[:-2].count("\n") == 0


class TestDecode:
    """Client-side decoding."""

    @pytest.mark.parametrize("event", EVENTS)
    def test_round_trip_at_every_split(self, event):
        """Test that an event survives being split at any byte offset."""
        wire = encode_event(event).encode("utf-8")
        for offset in range(len(wire) + 1):
            assert feed_split(wire, offset) == [event], f"split at byte {offset}"

    def test_many_frames_byte_by_byte(self):
        """Test a whole stream delivered one byte at a time."""
        wire = "".join(encode_event(event) for event in EVENTS).encode("utf-8")
        decoder = SSEDecoder()

        decoded = []
        for i in range(len(wire)):
            decoded.extend(decoder.feed(wire[i : i + 1]))

        assert decoded == EVENTS
        assert decoder.buffered == ""

    def test_crlf_line_endings_at_every_split(self):
        """Test CRLF-terminated frames, including a split between CR and LF."""
        wire = b'data: {"type":"info","message":"hi"}\r\n\r\ndata: {"type":"done"}\r\n\r\n'
        for offset in range(len(wire) + 1):
            assert feed_split(wire, offset) == [InfoEvent(message="hi"), DoneEvent()], f"split at byte {offset}"

    def test_keep_alive_yields_nothing(self):
        """Test that comment frames are consumed silently."""
        decoder = SSEDecoder()
        assert decoder.feed(KEEP_ALIVE_FRAME * 3) == []
        assert decoder.feed(KEEP_ALIVE_FRAME + encode_event(DoneEvent())) == [DoneEvent()]

    def test_malformed_frame_is_discarded(self):
        """Test that invalid payloads are skipped and decoding continues."""
        decoder = SSEDecoder()
        wire = (
            "data: not json\n\n"
            'data: {"type":"unknown"}\n\n'
            'data: {"type":"assistant"}\n\n'
            'data: {"type":"assistant","text":"still here"}\n\n'
        )
        assert decoder.feed(wire) == [AssistantEvent(text="still here")]

    def test_multi_line_data_is_joined(self):
        """Test that consecutive data lines form one payload joined by newlines."""
        decoder = SSEDecoder()
        wire = 'event: message\ndata: {"type":\ndata: "assistant", "text": "joined"}\n\n'
        assert decoder.feed(wire) == [AssistantEvent(text="joined")]

    def test_incomplete_frame_stays_buffered(self):
        """Test that nothing is emitted until the blank line arrives."""
        decoder = SSEDecoder()
        assert decoder.feed(b'data: {"type":"done"}\n') == []
        assert decoder.buffered == 'data: {"type":"done"}\n'
        assert decoder.feed(b"\n") == [DoneEvent()]

    def test_extract_data(self):
        """Test data line parsing rules."""
        assert extract_data("data:no-space") == "no-space"
        assert extract_data("data:  two spaces") == " two spaces"
        assert extract_data("data: a\nid: 7\ndata: b") == "a\nb"
        assert extract_data(": comment") is None
        assert extract_data("event: ping") is None

    @pytest.mark.asyncio
    async def test_decode_stream(self):
        """Test decoding an async byte stream with arbitrary chunking."""
        wire = "".join(encode_event(event) for event in EVENTS).encode("utf-8")

        async def chunks():
            for i in range(0, len(wire), 7):
                yield wire[i : i + 7]

        assert [event async for event in decode_stream(chunks())] == EVENTS


class TestSSEStream:
    """Server-side streaming of a subscription."""

    @pytest.mark.asyncio
    async def test_keep_alive_while_idle(self):
        """Test that idle streams emit keep-alive comments, then events as they arrive."""
        channel = EventChannel()
        stream = sse_stream(channel.subscribe(), keepalive_interval=0.01)

        assert await anext(stream) == KEEP_ALIVE_FRAME

        channel.publish(AssistantEvent(text="hi"))
        frame = await anext(stream)
        while frame == KEEP_ALIVE_FRAME:
            frame = await anext(stream)
        assert frame == encode_event(AssistantEvent(text="hi"))

        await stream.aclose()

    @pytest.mark.asyncio
    async def test_closing_stream_unsubscribes(self):
        """Test that a closed stream stops receiving events."""
        channel = EventChannel()
        stream = sse_stream(channel.subscribe(), keepalive_interval=10)
        channel.publish(DoneEvent())

        assert await anext(stream) == encode_event(DoneEvent())
        assert channel.subscriber_count == 1

        await stream.aclose()
        assert channel.subscriber_count == 0

    @pytest.mark.asyncio
    async def test_cancelled_consumer_unsubscribes(self):
        """Test that cancelling a pending read releases the subscription."""
        channel = EventChannel()
        stream = sse_stream(channel.subscribe(), keepalive_interval=10)

        task = asyncio.create_task(anext(stream))
        await asyncio.sleep(0.01)
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task

        assert channel.subscriber_count == 0
