"""Exceptions raised by aioopendj."""

from __future__ import annotations


class OpenDjError(Exception):
    """Base class for all aioopendj errors."""


class QueueIndexError(OpenDjError, IndexError):
    """An index passed to a queue operation is out of range."""

    def __init__(self, index: int, length: int) -> None:
        """Initialize with the offending index and the queue length at the time."""
        super().__init__(f"index {index} out of range for queue of length {length}")
        self.index = index
        self.length = length


class EmptyQueueError(OpenDjError):
    """Can't pop from an empty queue."""


class NothingPlayingError(OpenDjError):
    """There is no song being played."""


class MissingBinaryError(OpenDjError):
    """A required executable could not be found."""

    def __init__(self, name: str) -> None:
        """Initialize with the name of the missing executable."""
        super().__init__(f"required executable {name!r} not found in PATH")
        self.name = name


class MediaNotFoundError(OpenDjError):
    """Metadata lookup did not find the requested media."""


class PlaybackError(OpenDjError):
    """Base class for errors that happen while a playback session runs."""


class ResolutionFailedError(PlaybackError):
    """The resolver could not turn a request URL into a playable stream."""

    def __init__(self, url: str, diagnostic: str) -> None:
        """Initialize with the request URL and the upstream diagnostic."""
        super().__init__(f"failed to resolve {url}: {diagnostic}")
        self.url = url
        self.diagnostic = diagnostic


class EncodeFailedError(PlaybackError):
    """The transcoder exited with an error.

    Sometimes ffmpeg exits non-zero even though the song was streamed
    successfully, so the scheduler reports this error and moves on.
    """

    def __init__(self, returncode: int | None, diagnostic: str = "") -> None:
        """Initialize with the transcoder exit code and its stderr tail."""
        message = f"failed to write to pipe: transcoder exited with {returncode}"
        if diagnostic:
            message = f"{message}: {diagnostic}"
        super().__init__(message)
        self.returncode = returncode
        self.diagnostic = diagnostic


class TransportFailedError(PlaybackError):
    """The output stream could not be delivered to the endpoint."""

    def __init__(self, message: str, returncode: int | None = None) -> None:
        """Initialize with a description and, if known, the exit code."""
        super().__init__(message)
        self.returncode = returncode


class ChannelClosedError(TransportFailedError):
    """The ordered byte channel no longer accepts writes."""
