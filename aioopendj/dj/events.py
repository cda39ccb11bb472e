"""Single-slot handler registry for playback events."""

from __future__ import annotations

import logging
from collections.abc import Callable

from aioopendj.models.core import QueueEntry

logger = logging.getLogger(__name__)

NewSongHandler = Callable[[QueueEntry], None]
"""Called with the entry that is about to start streaming."""
EndOfSongHandler = Callable[[QueueEntry, Exception | None], None]
"""Called with the entry that finished and the error encountered while streaming it, if any."""
PlaybackErrorHandler = Callable[[Exception], None]
"""Called once with the error that ended a playback session."""


class HandlerRegistry:
    """
    Holds at most one handler per event kind.

    Registering a handler replaces the previous one; passing None removes it.
    Handlers run synchronously on the scheduler task, so they must return quickly:
    a blocked handler stalls the live output. An exception raised by a handler is
    logged and otherwise ignored.
    """

    def __init__(self) -> None:
        """Initialize an empty registry."""
        self._new_song: NewSongHandler | None = None
        self._end_of_song: EndOfSongHandler | None = None
        self._playback_error: PlaybackErrorHandler | None = None

    def set_new_song_handler(self, handler: NewSongHandler | None) -> None:
        """Set the handler called every time a new song starts playing."""
        self._new_song = handler

    def set_end_of_song_handler(self, handler: EndOfSongHandler | None) -> None:
        """Set the handler called every time a song stops playing."""
        self._end_of_song = handler

    def set_playback_error_handler(self, handler: PlaybackErrorHandler | None) -> None:
        """Set the handler called when a playback session ends with an error."""
        self._playback_error = handler

    def notify_new_song(self, entry: QueueEntry) -> None:
        """Invoke the new song handler, if any."""
        if self._new_song is None:
            return
        try:
            self._new_song(entry)
        except Exception:
            logger.exception("Error in new song handler")

    def notify_end_of_song(self, entry: QueueEntry, error: Exception | None) -> None:
        """Invoke the end of song handler, if any."""
        if self._end_of_song is None:
            return
        try:
            self._end_of_song(entry, error)
        except Exception:
            logger.exception("Error in end of song handler")

    def notify_playback_error(self, error: Exception) -> None:
        """Invoke the playback error handler, if any."""
        if self._playback_error is None:
            return
        try:
            self._playback_error(error)
        except Exception:
            logger.exception("Error in playback error handler")
