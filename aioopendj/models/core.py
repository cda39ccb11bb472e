"""
Core data types for aioopendj.

Media and queue entries are immutable values that can be serialised to and from
JSON, e.g. to seed a queue at startup. Playback state is an immutable snapshot the
scheduler swaps as a whole, so readers never see a half-updated value.
"""

from __future__ import annotations

import time
from dataclasses import dataclass, replace
from datetime import timedelta
from typing import NamedTuple

from mashumaro.config import BaseConfig
from mashumaro.mixins.orjson import DataClassORJSONMixin


@dataclass(frozen=True)
class Media(DataClassORJSONMixin):
    """A video or song that can be streamed.

    This can be anything the resolver supports.
    """

    title: str
    """Human readable title."""
    url: str
    """Opaque locator handed to the resolver."""
    duration: timedelta = timedelta(0)
    """Length of the media, serialised as seconds."""


@dataclass(frozen=True)
class QueueEntry(DataClassORJSONMixin):
    """Media and metadata that can be entered into a queue."""

    media: Media
    owner: str
    """Identity of the user who submitted the request."""
    dedication: str | None = None
    """Optional user the request is dedicated to."""

    class Config(BaseConfig):
        """Config for serialising queue entries."""

        omit_none = True

    def with_dedication(self, dedication: str | None) -> QueueEntry:
        """Return a copy of this entry with the dedication replaced."""
        return replace(self, dedication=dedication)


@dataclass(frozen=True)
class PlaybackState:
    """What the scheduler is playing right now."""

    entry: QueueEntry | None = None
    """The entry being streamed, or None while silence fills the gap."""
    started_at: float = 0.0
    """Monotonic timestamp (seconds) at which the entry started."""

    @property
    def playing(self) -> bool:
        """Whether an entry is currently playing."""
        return self.entry is not None

    def elapsed(self, now: float | None = None) -> timedelta:
        """Return how long the current entry has been playing."""
        if now is None:
            now = time.monotonic()
        return timedelta(seconds=now - self.started_at)

    def remaining(self, now: float | None = None) -> timedelta:
        """Return the time left in the current entry, zero if nothing is playing."""
        if self.entry is None:
            return timedelta(0)
        return self.entry.media.duration - self.elapsed(now)


class CurrentSong(NamedTuple):
    """Result of Dj.currently_playing()."""

    entry: QueueEntry
    elapsed: timedelta
