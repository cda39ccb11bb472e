"""Deliver the intermediate stream to the live streaming endpoint."""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING, Protocol

from aioopendj.config import DjConfig
from aioopendj.errors import TransportFailedError
from aioopendj.util import find_binary

from .process import StderrTail, reap

if TYPE_CHECKING:
    from aioopendj.dj.channel import ByteChannel

logger = logging.getLogger(__name__)


class OutputTransport(Protocol):
    """Relays the channel to an endpoint over one connection."""

    async def publish(self, source: ByteChannel, endpoint: str) -> None:
        """
        Forward everything read from source to endpoint until the end of the stream.

        Raises:
            TransportFailedError: If the endpoint can't be reached or the connection drops.
        """
        ...


class FFmpegRtmpTransport:
    """Remux the stream with ffmpeg and push it to an RTMP (or any ffmpeg) URL."""

    def __init__(self, config: DjConfig | None = None) -> None:
        """
        Initialize the transport.

        Raises:
            MissingBinaryError: If ffmpeg can't be found.
        """
        self._config = config or DjConfig()
        self._binary = find_binary(self._config.ffmpeg_path)

    def publish_args(self, endpoint: str) -> list[str]:
        """Return the ffmpeg arguments used to publish to endpoint."""
        return [
            "-hide_banner",
            "-loglevel", "error",
            "-re",
            "-i", "pipe:0",
            "-c", "copy",
            "-f", self._config.output_format,
            endpoint,
        ]  # fmt: skip

    async def publish(self, source: ByteChannel, endpoint: str) -> None:
        """Pump the channel into ffmpeg's stdin until the stream ends."""
        process = await asyncio.create_subprocess_exec(
            self._binary,
            *self.publish_args(endpoint),
            stdin=asyncio.subprocess.PIPE,
            stdout=asyncio.subprocess.DEVNULL,
            stderr=asyncio.subprocess.PIPE,
        )
        stderr = StderrTail(process.stderr, "ffmpeg publisher")
        assert process.stdin is not None
        broken_pipe: OSError | None = None
        try:
            try:
                async for chunk in source:
                    process.stdin.write(chunk)
                    await process.stdin.drain()
                process.stdin.close()
                await process.stdin.wait_closed()
            except (BrokenPipeError, ConnectionResetError) as err:
                broken_pipe = err
            else:
                await process.wait()
        finally:
            await reap(process)
            await stderr.finish()
        returncode = process.returncode
        if broken_pipe is not None:
            raise TransportFailedError(
                f"failed to stream to {endpoint}: {stderr.text or broken_pipe}", returncode
            ) from broken_pipe
        if returncode != 0:
            raise TransportFailedError(
                f"failed to stream to {endpoint}: publisher exited with {returncode}: {stderr.text}",
                returncode,
            )
        logger.debug("Publisher finished after %d bytes", source.bytes_read)
