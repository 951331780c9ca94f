"""Server-Sent Events framing for stream events.

The server side turns events into ``data:`` frames and keeps idle connections
open with comment frames. The client side rebuilds events from whatever byte
chunks the network delivers, however the frames were split.
"""

import asyncio
import codecs
from collections.abc import AsyncIterable, AsyncIterator

from pydantic import ValidationError

from tars.models.events import StreamEvent, dump_stream_event, parse_stream_event
from tars.services.broadcaster import Subscription
from tars.utils.logging import get_logger

logger = get_logger(__name__)

KEEP_ALIVE_FRAME = ": keep-alive\n\n"
DEFAULT_KEEPALIVE_INTERVAL = 15.0


def encode_event(event: StreamEvent) -> str:
    """Frame an event as one ``data:`` line per payload line plus a blank line."""
    payload = dump_stream_event(event)
    return "".join(f"data: {line}\n" for line in payload.split("\n")) + "\n"


async def sse_stream(
    subscription: Subscription,
    keepalive_interval: float = DEFAULT_KEEPALIVE_INTERVAL,
) -> AsyncIterator[str]:
    """Yield SSE frames for a subscription until the consumer goes away.

    A keep-alive comment is sent whenever no event arrives within
    ``keepalive_interval`` seconds. The subscription is closed when the
    generator is closed or cancelled.
    """
    try:
        while True:
            try:
                event = await asyncio.wait_for(subscription.get(), timeout=keepalive_interval)
            except TimeoutError:
                yield KEEP_ALIVE_FRAME
                continue
            yield encode_event(event)
    finally:
        subscription.close()


def extract_data(frame: str) -> str | None:
    """Join the payloads of a frame's ``data:`` lines, None if it has none."""
    data_lines = []
    for line in frame.split("\n"):
        if not line.startswith("data:"):
            continue
        value = line[len("data:") :]
        if value.startswith(" "):
            value = value[1:]
        data_lines.append(value)

    if not data_lines:
        return None
    return "\n".join(data_lines)


class SSEDecoder:
    """Incremental decoder from raw SSE bytes to stream events."""

    def __init__(self) -> None:
        self._decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
        self._buffer = ""

    def feed(self, chunk: bytes | str) -> list[StreamEvent]:
        """Consume a chunk and return every event completed by it.

        Frames that do not hold a valid event are dropped. An incomplete
        trailing frame stays buffered for the next chunk.
        """
        text = chunk if isinstance(chunk, str) else self._decoder.decode(chunk)
        self._buffer += text
        if "\r" in self._buffer:
            # A trailing "\r" is kept until its "\n" arrives in the next chunk.
            self._buffer = self._buffer.replace("\r\n", "\n")

        events: list[StreamEvent] = []
        while (separator := self._buffer.find("\n\n")) != -1:
            frame = self._buffer[:separator]
            self._buffer = self._buffer[separator + 2 :]

            data = extract_data(frame)
            if data is None:
                continue
            try:
                events.append(parse_stream_event(data))
            except ValidationError:
                logger.debug(f"Discarding malformed event frame: {data[:100]}")

        return events

    @property
    def buffered(self) -> str:
        """Text received but not yet part of a complete frame."""
        return self._buffer


async def decode_stream(chunks: AsyncIterable[bytes]) -> AsyncIterator[StreamEvent]:
    """Decode an async byte stream into stream events."""
    decoder = SSEDecoder()
    async for chunk in chunks:
        for event in decoder.feed(chunk):
            yield event
