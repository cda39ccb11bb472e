"""Models for enum types used by aioopendj."""

from enum import Enum


class SessionState(Enum):
    """Lifecycle of the playback session owned by a Dj."""

    IDLE = "idle"
    """No session is running."""
    PLAYING = "playing"
    """Producer and consumer are running."""
    STOPPING = "stopping"
    """A stop was requested; the session is draining."""


class SessionEndReason(Enum):
    """Why a playback session ended."""

    QUEUE_EXHAUSTED = "queue_exhausted"
    """The queue stayed empty for the maximum number of silence segments."""
    STOPPED = "stopped"
    """The caller requested a stop."""
    FAILED = "failed"
    """A fatal error ended the session; it was delivered to the playback error handler."""
