"""Bounded capture of child process output.

Each stream is read to EOF so the child never blocks on a full pipe, but only
the first ``limit`` bytes are kept. Anything past the limit is counted and
reported with a marker instead of being silently dropped.
"""

import asyncio

TRUNCATION_MARKER = "\n[output truncated: {dropped} bytes omitted]"

_CHUNK_SIZE = 64 * 1024


class BoundedOutput:
    """Byte buffer that keeps at most ``limit`` bytes.

    Attributes:
        limit: Maximum number of bytes retained.
        dropped: Number of bytes received past the limit.
    """

    def __init__(self, limit: int) -> None:
        self.limit = limit
        self.dropped = 0
        self._buffer = bytearray()

    def feed(self, data: bytes) -> None:
        """Append data, discarding whatever does not fit."""
        room = self.limit - len(self._buffer)
        if room > 0:
            self._buffer.extend(data[:room])
        self.dropped += max(0, len(data) - max(room, 0))

    @property
    def truncated(self) -> bool:
        return self.dropped > 0

    def text(self) -> str:
        """Decode the captured bytes, appending a marker when truncated."""
        decoded = self._buffer.decode("utf-8", errors="replace")
        if self.truncated:
            decoded += TRUNCATION_MARKER.format(dropped=self.dropped)
        return decoded


async def drain_stream(
    stream: asyncio.StreamReader | None, sink: BoundedOutput
) -> None:
    """Read a stream to EOF into a bounded sink.

    Args:
        stream: The process pipe to read (None if it was not captured).
        sink: Destination buffer.
    """
    if stream is None:
        return
    while True:
        chunk = await stream.read(_CHUNK_SIZE)
        if not chunk:
            break
        sink.feed(chunk)
