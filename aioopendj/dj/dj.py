"""The Dj: a request queue that is played, in order, to a live streaming endpoint."""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Callable, Iterable
from datetime import timedelta

from aioopendj.config import DjConfig
from aioopendj.errors import ChannelClosedError, NothingPlayingError
from aioopendj.media.resolver import MediaResolver, YtDlpResolver
from aioopendj.media.transcoder import FFmpegTranscoder, Transcoder
from aioopendj.media.transport import FFmpegRtmpTransport, OutputTransport
from aioopendj.models.core import CurrentSong, PlaybackState, QueueEntry
from aioopendj.models.types import SessionEndReason, SessionState

from .channel import ByteChannel
from .events import EndOfSongHandler, HandlerRegistry, NewSongHandler, PlaybackErrorHandler
from .publisher import Publisher
from .queue import WaitingQueue
from .scheduler import Scheduler
from .session import PlaybackSession

logger = logging.getLogger(__name__)


def _session_error(tasks: Iterable[asyncio.Task[object]]) -> Exception | None:
    """Return the error that ended a session, retrieving every task exception."""
    errors: list[Exception] = []
    for task in tasks:
        if not task.done() or task.cancelled():
            continue
        err = task.exception()
        if isinstance(err, Exception):
            errors.append(err)
    # A closed channel is only the producer noticing that the publisher failed
    for err in errors:
        if not isinstance(err, ChannelClosedError):
            return err
    return errors[0] if errors else None


class Dj:
    """
    Stores the queue and handlers and plays the queue to a streaming endpoint.

    The queue can be changed at any time, from any thread, including while a
    session is playing. Handlers should be registered before play() is called.
    """

    _queue: WaitingQueue
    _handlers: HandlerRegistry
    _session: PlaybackSession | None
    """The running playback session, if any."""

    def __init__(
        self,
        queue: Iterable[QueueEntry] | None = None,
        *,
        config: DjConfig | None = None,
        resolver: MediaResolver | None = None,
        transcoder: Transcoder | None = None,
        transport: OutputTransport | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        """
        Initialize a new Dj.

        Collaborators that aren't passed in default to the yt-dlp resolver and the
        ffmpeg transcoder and transport.

        Args:
            queue: Entries to seed the queue with.
            config: Timing, buffering and binary settings.
            resolver: Turns request URLs into stream URLs.
            transcoder: Encodes tracks and silence into the intermediate stream.
            transport: Delivers the stream to the endpoint.
            clock: Monotonic clock in seconds used for playback timing.

        Raises:
            MissingBinaryError: If a default collaborator's executable can't be found.
        """
        self._config = config or DjConfig()
        if resolver is None:
            resolver = YtDlpResolver(self._config)
        if transcoder is None:
            transcoder = FFmpegTranscoder(self._config)
        if transport is None:
            transport = FFmpegRtmpTransport(self._config)
        self._queue = WaitingQueue(queue)
        self._handlers = HandlerRegistry()
        self._scheduler = Scheduler(self._queue, resolver, transcoder, self._handlers, self._config)
        self._publisher = Publisher(transport, self._config)
        self._clock = clock
        self._session = None
        logger.debug("Dj initialized with %d queued entries", len(self._queue))

    @property
    def config(self) -> DjConfig:
        """Configuration of this Dj."""
        return self._config

    @property
    def state(self) -> SessionState:
        """Lifecycle state of the playback session."""
        if self._session is None:
            return SessionState.IDLE
        if self._session.stop_requested:
            return SessionState.STOPPING
        return SessionState.PLAYING

    @property
    def is_playing(self) -> bool:
        """Whether a playback session is running."""
        return self._session is not None

    # Handlers

    def _warn_if_playing(self, kind: str) -> None:
        if self._session is not None:
            logger.warning("Registering %s handler while a playback session is running", kind)

    def add_new_song_handler(self, handler: NewSongHandler | None) -> None:
        """Set a function that will be called every time a new song starts playing."""
        self._warn_if_playing("new song")
        self._handlers.set_new_song_handler(handler)

    def add_end_of_song_handler(self, handler: EndOfSongHandler | None) -> None:
        """
        Set a function that will be called every time a song stops playing.

        It gets passed the entry that finished playing and the error encountered
        during playback, if any. Sometimes ffmpeg exits with an error even though
        the song was streamed successfully.
        """
        self._warn_if_playing("end of song")
        self._handlers.set_end_of_song_handler(handler)

    def add_playback_error_handler(self, handler: PlaybackErrorHandler | None) -> None:
        """Set a function that will be called once when playback stops because of an error."""
        self._warn_if_playing("playback error")
        self._handlers.set_playback_error_handler(handler)

    # Queue

    def queue(self) -> list[QueueEntry]:
        """Return the current queue as a list of entries."""
        return self._queue.snapshot()

    def add_entry(self, entry: QueueEntry) -> None:
        """Add the entry at the end of the queue."""
        self._queue.add(entry)

    def insert_entry(self, entry: QueueEntry, index: int) -> None:
        """
        Insert the entry into the queue at the given index.

        If the index is too high it has the same effect as add_entry().

        Raises:
            QueueIndexError: If the index is negative.
        """
        self._queue.insert(entry, index)

    def remove_index(self, index: int) -> QueueEntry:
        """
        Remove the entry at the given index from the queue and return it.

        Raises:
            QueueIndexError: If the index is out of range.
        """
        return self._queue.remove_at(index)

    def change_index(self, entry: QueueEntry, index: int) -> None:
        """
        Swap the entry at the given index for the provided one.

        Raises:
            QueueIndexError: If the index is out of range.
        """
        self._queue.replace_at(entry, index)

    def add_dedication(self, index: int, dedication: str | None) -> QueueEntry:
        """
        Dedicate the entry at the given index to someone and return the updated entry.

        Raises:
            QueueIndexError: If the index is out of range.
        """
        return self._queue.set_dedication(index, dedication)

    def entry_at_index(self, index: int) -> QueueEntry:
        """
        Return the entry at the given index.

        Raises:
            QueueIndexError: If the index is out of range.
        """
        return self._queue.entry_at(index)

    # Queries

    def _playback_state(self) -> tuple[PlaybackState, float]:
        session = self._session
        if session is None:
            return PlaybackState(), self._clock()
        return session.state, session.now()

    def currently_playing(self) -> CurrentSong:
        """
        Return the song that is currently being played and for how long it has been playing.

        Raises:
            NothingPlayingError: If there is nothing playing.
        """
        state, now = self._playback_state()
        if state.entry is None:
            raise NothingPlayingError("there is no song being played")
        return CurrentSong(state.entry, state.elapsed(now))

    def user_positions(self, owner: str) -> list[int]:
        """Return all positions in the queue that belong to the given user."""
        return self._queue.positions_of(owner)

    def duration_until_user(self, owner: str) -> list[timedelta]:
        """Return the time until each of the given user's entries starts playing."""
        state, now = self._playback_state()
        return self._queue.cumulative_wait_for(owner, state.remaining(now))

    # Playback

    def skip(self) -> bool:
        """
        Stop the current song and continue with the next entry.

        A song that is still being resolved is skipped before any of it is
        streamed. Silence played while the queue is empty is not affected.
        Returns True if a song was current and got skipped.
        """
        if self._session is None:
            return False
        return self._session.request_skip()

    def stop(self) -> bool:
        """
        Stop the running session gracefully.

        The current song is cut, the buffered stream is flushed to the endpoint
        and play() returns SessionEndReason.STOPPED. Returns False if nothing was
        playing.
        """
        if self._session is None:
            return False
        self._session.request_stop()
        return True

    def start(self, endpoint: str) -> asyncio.Task[SessionEndReason]:
        """Run play() as a background task and return the task."""
        return asyncio.get_running_loop().create_task(self.play(endpoint), name="aioopendj-session")

    async def play(self, endpoint: str) -> SessionEndReason:
        """
        Play the queue to the given endpoint until the session ends.

        If nothing is in the queue, silence is streamed while waiting for new
        content; if the queue stays empty the session ends. A fatal error is
        passed to the playback error handler instead of being raised.

        Raises:
            RuntimeError: If a session is already running.
        """
        if self._session is not None:
            raise RuntimeError("a playback session is already running")

        session = PlaybackSession(
            endpoint, ByteChannel(self._config.channel_max_chunks), clock=self._clock
        )
        self._session = session
        loop = asyncio.get_running_loop()
        producer = loop.create_task(self._scheduler.run(session), name="aioopendj-producer")
        consumer = loop.create_task(self._publisher.run(session), name="aioopendj-consumer")
        tasks: set[asyncio.Task[object]] = {producer, consumer}  # type: ignore[arg-type]
        logger.info("Starting playback to %s", endpoint)

        try:
            _, pending = await asyncio.wait(tasks, return_when=asyncio.FIRST_EXCEPTION)
            for task in pending:
                task.cancel()
            if pending:
                await asyncio.wait(pending)
        finally:
            for task in tasks:
                if not task.done():
                    task.cancel()
            if not all(task.done() for task in tasks):
                await asyncio.wait(tasks)
            error = _session_error(tasks)
            session.clear_current()
            self._session = None

        if error is not None:
            logger.error("Playback to %s failed: %s", endpoint, error)
            self._handlers.notify_playback_error(error)
            return SessionEndReason.FAILED

        reason = producer.result()
        logger.info("Playback to %s ended: %s", endpoint, reason.value)
        return reason
