"""Context shared by the scheduler and publisher for one playback session."""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Callable, Coroutine
from typing import Any

from aioopendj.models.core import PlaybackState, QueueEntry

from .channel import ByteChannel

logger = logging.getLogger(__name__)


class PlaybackSession:
    """
    One run of the scheduler and publisher against one output endpoint.

    The session owns the byte channel joining both loops, the playback state the
    scheduler updates and queries read, and the skip/stop signals. The scheduler
    performs its work as interruptible steps so that skip() and stop() can abort
    a running transcode without touching the publisher.
    """

    endpoint: str
    channel: ByteChannel
    _state: PlaybackState
    _clock: Callable[[], float]
    _interrupt: asyncio.Event
    """Set to abort the current step."""
    _stop_requested: bool
    _skip_pending: bool
    """Set by skip() until the next entry becomes current."""
    _step: asyncio.Future[None] | None

    def __init__(
        self,
        endpoint: str,
        channel: ByteChannel,
        *,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        """
        Initialize a session.

        Args:
            endpoint: Address the publisher streams to.
            channel: Channel joining the scheduler and the publisher.
            clock: Monotonic clock in seconds used for playback timestamps.
        """
        self.endpoint = endpoint
        self.channel = channel
        self._clock = clock
        self._state = PlaybackState()
        self._interrupt = asyncio.Event()
        self._stop_requested = False
        self._skip_pending = False
        self._step = None

    @property
    def state(self) -> PlaybackState:
        """Snapshot of what is playing right now."""
        return self._state

    @property
    def stop_requested(self) -> bool:
        """Whether stop() was called."""
        return self._stop_requested

    @property
    def step_running(self) -> bool:
        """Whether an interruptible step is in progress."""
        return self._step is not None and not self._step.done()

    @property
    def skip_pending(self) -> bool:
        """Whether the current entry was skipped."""
        return self._skip_pending

    def now(self) -> float:
        """Return the current time of the session clock."""
        return self._clock()

    def set_current(self, entry: QueueEntry) -> None:
        """Mark an entry as playing, starting now."""
        self._skip_pending = False
        self._state = PlaybackState(entry=entry, started_at=self._clock())

    def restart_clock(self) -> None:
        """Restamp the start time of the current entry."""
        self._state = PlaybackState(entry=self._state.entry, started_at=self._clock())

    def clear_current(self) -> None:
        """Mark that nothing is playing."""
        self._skip_pending = False
        if self._state.entry is not None:
            self._state = PlaybackState()

    def request_skip(self) -> bool:
        """
        Skip the current entry.

        A skip sent while the entry is still being resolved is kept until its
        step starts, which then ends immediately. Silence filling an empty queue
        can't be skipped.

        Returns True if an entry is current and will be skipped.
        """
        if self._state.entry is None:
            return False
        logger.debug("Skip requested for %r", self._state.entry.media.title)
        self._skip_pending = True
        self._interrupt.set()
        return True

    def request_stop(self) -> None:
        """Abort the current step and end the session once it unwinds."""
        if self._stop_requested:
            return
        logger.debug("Stop requested")
        self._stop_requested = True
        self._interrupt.set()

    async def run_step(self, step: Coroutine[Any, Any, None]) -> bool:
        """
        Run one unit of scheduler work, abortable by skip or stop.

        Returns True if the step ran to completion and False if it was aborted.
        Errors raised by the step propagate.
        """
        if self._stop_requested or self._skip_pending:
            step.close()
            return False
        self._interrupt.clear()
        task = asyncio.ensure_future(step)
        waiter = asyncio.ensure_future(self._interrupt.wait())
        self._step = task
        try:
            await asyncio.wait({task, waiter}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            waiter.cancel()
            self._step = None
            if not task.done():
                task.cancel()
                try:
                    await task
                except asyncio.CancelledError:
                    pass
        if task.cancelled():
            return False
        task.result()
        return True
