"""Helpers for running the external media tools as asyncio subprocesses."""

from __future__ import annotations

import asyncio
import logging
from collections import deque
from contextlib import suppress

logger = logging.getLogger(__name__)


class StderrTail:
    """Continuously drain a subprocess stderr pipe, keeping its last lines.

    The pipe must be drained while the process runs, otherwise a chatty tool
    blocks once the pipe buffer is full.
    """

    def __init__(self, stream: asyncio.StreamReader | None, name: str, max_lines: int = 20) -> None:
        """Start draining the given stream."""
        self._lines: deque[str] = deque(maxlen=max_lines)
        self._name = name
        self._task: asyncio.Task[None] | None = None
        if stream is not None:
            self._task = asyncio.get_running_loop().create_task(self._drain(stream))

    async def _drain(self, stream: asyncio.StreamReader) -> None:
        while True:
            try:
                line = await stream.readline()
            except ValueError:
                # Line longer than the stream limit; the remainder was discarded
                continue
            if not line:
                return
            text = line.decode(errors="replace").rstrip()
            if text:
                self._lines.append(text)
                logger.debug("%s: %s", self._name, text)

    @property
    def text(self) -> str:
        """Return the collected lines joined by newlines."""
        return "\n".join(self._lines)

    async def finish(self) -> None:
        """Wait briefly for the remaining output, then stop draining."""
        if self._task is None:
            return
        with suppress(TimeoutError):
            await asyncio.wait_for(asyncio.shield(self._task), timeout=1.0)
        self._task.cancel()
        with suppress(asyncio.CancelledError):
            await self._task


async def reap(process: asyncio.subprocess.Process) -> None:
    """Kill the process if it is still running and wait for it to exit."""
    if process.returncode is None:
        with suppress(ProcessLookupError):
            process.kill()
    # Wait even if cancelled, so the child never outlives us as a zombie
    await asyncio.shield(process.wait())
