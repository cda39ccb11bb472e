"""Collaborative radio playback core: play a queue of requests to a live stream."""

from .config import AudioEncoding, DjConfig
from .dj import Dj
from .errors import (
    ChannelClosedError,
    EmptyQueueError,
    EncodeFailedError,
    MediaNotFoundError,
    MissingBinaryError,
    NothingPlayingError,
    OpenDjError,
    PlaybackError,
    QueueIndexError,
    ResolutionFailedError,
    TransportFailedError,
)
from .models import CurrentSong, Media, PlaybackState, QueueEntry, SessionEndReason, SessionState

__all__ = [
    "AudioEncoding",
    "ChannelClosedError",
    "CurrentSong",
    "Dj",
    "DjConfig",
    "EmptyQueueError",
    "EncodeFailedError",
    "Media",
    "MediaNotFoundError",
    "MissingBinaryError",
    "NothingPlayingError",
    "OpenDjError",
    "PlaybackError",
    "PlaybackState",
    "QueueEntry",
    "QueueIndexError",
    "ResolutionFailedError",
    "SessionEndReason",
    "SessionState",
    "TransportFailedError",
]
