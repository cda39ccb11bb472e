"""Encode tracks and silence into the shared intermediate stream."""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING, Protocol

from aioopendj.config import TS_PACKET_SIZE, DjConfig
from aioopendj.errors import EncodeFailedError
from aioopendj.util import find_binary

from .process import StderrTail, reap

if TYPE_CHECKING:
    from aioopendj.dj.channel import ByteChannel

logger = logging.getLogger(__name__)


class Transcoder(Protocol):
    """Produces encoded audio in one fixed container format."""

    async def encode(self, stream_url: str, target: ByteChannel, *, padding_seconds: float) -> None:
        """
        Encode the audio at stream_url into target, followed by padding_seconds of silence.

        Raises:
            EncodeFailedError: If the encoder fails.
            ChannelClosedError: If target no longer accepts data.
        """
        ...

    async def silence(self, seconds: float, target: ByteChannel) -> None:
        """
        Write seconds of encoded silence into target.

        Raises:
            EncodeFailedError: If the encoder fails.
            ChannelClosedError: If target no longer accepts data.
        """
        ...


class FFmpegTranscoder:
    """Transcoder running one ffmpeg process per segment."""

    def __init__(self, config: DjConfig | None = None) -> None:
        """
        Initialize the transcoder.

        Raises:
            MissingBinaryError: If ffmpeg can't be found.
        """
        self._config = config or DjConfig()
        self._binary = find_binary(self._config.ffmpeg_path)

    def output_args(self) -> list[str]:
        """Return the ffmpeg output arguments shared by every segment."""
        encoding = self._config.encoding
        return [
            "-c:a", encoding.codec,
            "-ar", str(encoding.sample_rate),
            "-b:a", encoding.bitrate,
            "-ac", str(encoding.channels),
            "-f", encoding.container,
            "pipe:1",
        ]  # fmt: skip

    def encode_args(self, stream_url: str, padding_seconds: float) -> list[str]:
        """Return the full ffmpeg arguments to encode a track."""
        args: list[str] = []
        if stream_url.startswith(("http://", "https://")):
            args += ["-reconnect", "1"]
        args += ["-i", stream_url]
        if padding_seconds > 0:
            args += ["-af", f"apad=pad_dur={padding_seconds:g}"]
        return args + self.output_args()

    def silence_args(self, seconds: float) -> list[str]:
        """Return the full ffmpeg arguments to generate silence."""
        encoding = self._config.encoding
        return [
            "-re",
            "-t", f"{seconds:g}",
            "-f", "lavfi",
            "-i", f"anullsrc=r={encoding.sample_rate}:cl={encoding.channel_layout}",
            *self.output_args(),
        ]  # fmt: skip

    async def encode(self, stream_url: str, target: ByteChannel, *, padding_seconds: float) -> None:
        """Encode a track into the channel."""
        await self._run(self.encode_args(stream_url, padding_seconds), target)

    async def silence(self, seconds: float, target: ByteChannel) -> None:
        """Encode silence into the channel."""
        await self._run(self.silence_args(seconds), target)

    async def _run(self, args: list[str], target: ByteChannel) -> None:
        """Run ffmpeg and copy its stdout into the channel."""
        process = await asyncio.create_subprocess_exec(
            self._binary,
            "-hide_banner",
            "-nostdin",
            "-loglevel", "error",
            *args,
            stdin=asyncio.subprocess.DEVNULL,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )  # fmt: skip
        stderr = StderrTail(process.stderr, "ffmpeg")
        assert process.stdout is not None
        # Forward whole MPEG-TS packets so an aborted segment doesn't leave half a packet behind
        packet_size = TS_PACKET_SIZE if self._config.encoding.container == "mpegts" else 1
        pending = bytearray()
        try:
            while chunk := await process.stdout.read(self._config.read_chunk_size):
                pending += chunk
                usable = len(pending) - len(pending) % packet_size
                if usable:
                    await target.write(bytes(pending[:usable]))
                    del pending[:usable]
            if pending:
                await target.write(bytes(pending))
            returncode = await process.wait()
        finally:
            await reap(process)
            await stderr.finish()
        if returncode != 0:
            raise EncodeFailedError(returncode, stderr.text)
        logger.debug("Segment finished, %d bytes written so far", target.bytes_written)
