"""In-process ordered byte channel between the scheduler and the publisher."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterator

from aioopendj.errors import ChannelClosedError

logger = logging.getLogger(__name__)

_EOF = b""


class ByteChannel:
    """
    Bounded, ordered stream of byte chunks with one writer and one reader.

    Writers block while the channel holds max_chunks chunks, which keeps the
    producer at most that far ahead of the consumer. Closing the writer side
    marks the end of the stream. Closing the reader side fails all current and
    future writes with ChannelClosedError, so a producer never waits on a
    consumer that is gone.
    """

    def __init__(self, max_chunks: int = 16) -> None:
        """Initialize an empty channel."""
        self._queue: asyncio.Queue[bytes] = asyncio.Queue(maxsize=max_chunks)
        self._writer_closed = False
        self._reader_closed = False
        self._eof_received = False
        self._bytes_written = 0
        self._bytes_read = 0

    @property
    def bytes_written(self) -> int:
        """Total bytes accepted by write()."""
        return self._bytes_written

    @property
    def bytes_read(self) -> int:
        """Total bytes handed out by read()."""
        return self._bytes_read

    @property
    def writer_closed(self) -> bool:
        """Whether the end of the stream was signalled."""
        return self._writer_closed

    @property
    def reader_closed(self) -> bool:
        """Whether the consumer stopped reading."""
        return self._reader_closed

    async def write(self, data: bytes) -> None:
        """
        Append a chunk to the stream, waiting for room if the channel is full.

        Raises:
            ChannelClosedError: If the reader is gone or the stream was already ended.
        """
        if self._reader_closed:
            raise ChannelClosedError("output channel has no reader")
        if self._writer_closed:
            raise ChannelClosedError("write to output channel after end of stream")
        if not data:
            return
        await self._queue.put(data)
        # close_reader() drains the queue to wake blocked writers
        if self._reader_closed:
            raise ChannelClosedError("output channel has no reader")
        self._bytes_written += len(data)

    async def close(self) -> None:
        """Signal the end of the stream to the reader."""
        if self._writer_closed:
            return
        self._writer_closed = True
        if self._reader_closed:
            return
        await self._queue.put(_EOF)
        logger.debug("Output channel closed after %d bytes", self._bytes_written)

    def close_reader(self) -> None:
        """Stop consuming; pending and future writes fail."""
        if self._reader_closed:
            return
        self._reader_closed = True
        dropped = 0
        while not self._queue.empty():
            dropped += len(self._queue.get_nowait())
        if dropped:
            logger.debug("Dropped %d unread bytes from output channel", dropped)

    async def read(self) -> bytes:
        """Return the next chunk, or b"" once the stream has ended."""
        if self._eof_received or self._reader_closed:
            return _EOF
        data = await self._queue.get()
        if not data:
            self._eof_received = True
            return _EOF
        self._bytes_read += len(data)
        return data

    async def __aiter__(self) -> AsyncIterator[bytes]:
        """Iterate over chunks until the end of the stream."""
        while data := await self.read():
            yield data
