"""Models for the aioopendj playback core."""

from __future__ import annotations

__all__ = [
    "CurrentSong",
    "Media",
    "PlaybackState",
    "QueueEntry",
    "SessionEndReason",
    "SessionState",
    "core",
    "types",
]

from . import core, types
from .core import CurrentSong, Media, PlaybackState, QueueEntry
from .types import SessionEndReason, SessionState
