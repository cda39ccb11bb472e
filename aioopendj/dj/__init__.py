"""Playback runtime: queue, scheduler, publisher and the Dj facade."""

from .channel import ByteChannel
from .dj import Dj
from .events import EndOfSongHandler, HandlerRegistry, NewSongHandler, PlaybackErrorHandler
from .publisher import Publisher
from .queue import WaitingQueue
from .scheduler import Scheduler
from .session import PlaybackSession

__all__ = [
    "ByteChannel",
    "Dj",
    "EndOfSongHandler",
    "HandlerRegistry",
    "NewSongHandler",
    "PlaybackErrorHandler",
    "PlaybackSession",
    "Publisher",
    "Scheduler",
    "WaitingQueue",
]
