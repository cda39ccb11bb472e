"""Producer loop: turns queue entries into one continuous encoded stream."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from aioopendj.config import DjConfig
from aioopendj.errors import EmptyQueueError, EncodeFailedError
from aioopendj.models.core import QueueEntry
from aioopendj.models.types import SessionEndReason

from .events import HandlerRegistry
from .queue import WaitingQueue
from .session import PlaybackSession

if TYPE_CHECKING:
    from aioopendj.media.resolver import MediaResolver
    from aioopendj.media.transcoder import Transcoder

logger = logging.getLogger(__name__)


class Scheduler:
    """
    Drains the queue one entry at a time into the session's byte channel.

    While the queue is empty, silence segments keep the stream going; after
    max_empty_streak consecutive segments the loop gives up and ends the stream.
    A failed encode of an entry is reported to the end of song handler and the
    loop moves on. Resolution failures and an unwritable channel end the loop
    with an exception.
    """

    def __init__(
        self,
        queue: WaitingQueue,
        resolver: MediaResolver,
        transcoder: Transcoder,
        handlers: HandlerRegistry,
        config: DjConfig,
    ) -> None:
        """Initialize the scheduler."""
        self._queue = queue
        self._resolver = resolver
        self._transcoder = transcoder
        self._handlers = handlers
        self._config = config

    async def run(self, session: PlaybackSession) -> SessionEndReason:
        """
        Run the producer loop until the queue stays empty or a stop is requested.

        On a graceful exit the channel is closed so the publisher can drain it.
        """
        empty_streak = 0
        reason = SessionEndReason.STOPPED
        while not session.stop_requested:
            try:
                entry = self._queue.pop_front()
            except EmptyQueueError:
                session.clear_current()
                if empty_streak >= self._config.max_empty_streak:
                    logger.info("Queue stayed empty for %d silence segments, ending stream", empty_streak)
                    reason = SessionEndReason.QUEUE_EXHAUSTED
                    break
                logger.debug("Queue is empty, filling %.1fs with silence", self._config.silence_seconds)
                await session.run_step(
                    self._transcoder.silence(self._config.silence_seconds, session.channel)
                )
                empty_streak += 1
                continue

            empty_streak = 0
            await self._play_entry(session, entry)

        session.clear_current()
        await session.channel.close()
        return reason

    async def _play_entry(self, session: PlaybackSession, entry: QueueEntry) -> None:
        """Resolve and stream a single entry, notifying the handlers around it."""
        session.set_current(entry)
        stream_url = await self._resolver.resolve(entry.media.url)
        if session.stop_requested:
            # Nothing of it was streamed, so it keeps its place
            logger.info("Stopped before %r started, returning it to the queue", entry.media.title)
            self._queue.insert(entry, 0)
            return

        logger.info("Now playing %r requested by %s", entry.media.title, entry.owner)
        self._handlers.notify_new_song(entry)
        session.restart_clock()

        error: EncodeFailedError | None = None
        try:
            completed = await session.run_step(
                self._transcoder.encode(
                    stream_url,
                    session.channel,
                    padding_seconds=self._config.track_padding_seconds,
                )
            )
        except EncodeFailedError as err:
            logger.warning("Error while streaming %r: %s", entry.media.title, err)
            error = err
        else:
            if not completed:
                logger.info("Skipped %r", entry.media.title)

        self._handlers.notify_end_of_song(entry, error)
