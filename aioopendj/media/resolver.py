"""Resolve request URLs into directly streamable locators."""

from __future__ import annotations

import asyncio
import logging
from datetime import timedelta
from typing import Any, Protocol

import orjson

from aioopendj.config import DjConfig
from aioopendj.errors import ResolutionFailedError
from aioopendj.models.core import Media
from aioopendj.util import find_binary

from .process import reap

logger = logging.getLogger(__name__)


class MediaResolver(Protocol):
    """Turns a request URL into a locator the transcoder can read from."""

    async def resolve(self, url: str) -> str:
        """
        Return a directly streamable locator for the request URL.

        Raises:
            ResolutionFailedError: If the source can't be located or is restricted.
        """
        ...


class YtDlpResolver:
    """Resolve URLs with yt-dlp; anything yt-dlp supports can be queued."""

    def __init__(self, config: DjConfig | None = None) -> None:
        """
        Initialize the resolver.

        Raises:
            MissingBinaryError: If yt-dlp can't be found.
        """
        self._config = config or DjConfig()
        self._binary = find_binary(self._config.ytdlp_path)

    async def _run(self, url: str, *args: str) -> bytes:
        """Run yt-dlp for a URL and return its stdout."""
        process = await asyncio.create_subprocess_exec(
            self._binary,
            *args,
            "--no-warnings",
            "--",
            url,
            stdin=asyncio.subprocess.DEVNULL,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )
        try:
            stdout, stderr = await process.communicate()
        finally:
            await reap(process)
        if process.returncode != 0:
            diagnostic = stderr.decode(errors="replace").strip()
            raise ResolutionFailedError(url, diagnostic or f"yt-dlp exited with {process.returncode}")
        return stdout

    async def resolve(self, url: str) -> str:
        """Return the direct URL of the best audio stream of a request."""
        logger.debug("Resolving %s", url)
        output = await self._run(url, "-f", self._config.audio_format, "-g")
        lines = output.decode(errors="replace").split()
        if not lines:
            raise ResolutionFailedError(url, "yt-dlp returned no stream URL")
        return lines[0]

    async def describe(self, url: str) -> Media:
        """Look up the title and duration of a request URL."""
        logger.debug("Describing %s", url)
        output = await self._run(url, "-J", "--no-playlist")
        try:
            info: dict[str, Any] = orjson.loads(output)
        except orjson.JSONDecodeError as err:
            raise ResolutionFailedError(url, f"invalid yt-dlp output: {err}") from err
        return Media(
            title=info.get("title") or url,
            url=info.get("webpage_url") or url,
            duration=timedelta(seconds=float(info.get("duration") or 0)),
        )
