"""Thread-safe queue of pending requests."""

from __future__ import annotations

import logging
import threading
from collections.abc import Iterable
from datetime import timedelta

from aioopendj.errors import EmptyQueueError, QueueIndexError
from aioopendj.models.core import QueueEntry

logger = logging.getLogger(__name__)


class WaitingQueue:
    """
    Ordered list of entries waiting to be played.

    Every operation holds the same lock for its whole duration, so callers on any
    thread or task observe the effects in one total order and never see a
    half-shifted list. No operation blocks on anything but that lock.
    """

    _items: list[QueueEntry]
    _lock: threading.Lock

    def __init__(self, entries: Iterable[QueueEntry] | None = None) -> None:
        """Initialize the queue, optionally seeded with entries."""
        self._items = list(entries) if entries is not None else []
        self._lock = threading.Lock()

    def __len__(self) -> int:
        """Return the number of pending entries."""
        with self._lock:
            return len(self._items)

    def _check_index(self, index: int) -> None:
        # Caller must hold the lock
        if index < 0 or index >= len(self._items):
            raise QueueIndexError(index, len(self._items))

    def snapshot(self) -> list[QueueEntry]:
        """Return a copy of the current contents in queue order."""
        with self._lock:
            return list(self._items)

    def add(self, entry: QueueEntry) -> None:
        """Append an entry at the end of the queue."""
        with self._lock:
            self._items.append(entry)
            logger.debug("Added %r for %s at position %d", entry.media.title, entry.owner, len(self._items) - 1)

    def insert(self, entry: QueueEntry, index: int) -> None:
        """
        Insert an entry at the given index.

        An index past the end has the same effect as add().

        Raises:
            QueueIndexError: If the index is negative.
        """
        with self._lock:
            if index < 0:
                raise QueueIndexError(index, len(self._items))
            if index >= len(self._items):
                self._items.append(entry)
            else:
                self._items.insert(index, entry)
            logger.debug("Inserted %r for %s at position %d", entry.media.title, entry.owner, index)

    def remove_at(self, index: int) -> QueueEntry:
        """
        Remove and return the entry at the given index.

        Raises:
            QueueIndexError: If the index is out of range.
        """
        with self._lock:
            self._check_index(index)
            entry = self._items.pop(index)
            logger.debug("Removed %r from position %d", entry.media.title, index)
            return entry

    def replace_at(self, entry: QueueEntry, index: int) -> None:
        """
        Swap the entry at the given index for the provided one.

        Raises:
            QueueIndexError: If the index is out of range.
        """
        with self._lock:
            self._check_index(index)
            self._items[index] = entry

    def entry_at(self, index: int) -> QueueEntry:
        """
        Return the entry at the given index.

        Raises:
            QueueIndexError: If the index is out of range.
        """
        with self._lock:
            self._check_index(index)
            return self._items[index]

    def set_dedication(self, index: int, dedication: str | None) -> QueueEntry:
        """
        Replace the dedication of the entry at the given index.

        Returns the updated entry.

        Raises:
            QueueIndexError: If the index is out of range.
        """
        with self._lock:
            self._check_index(index)
            entry = self._items[index].with_dedication(dedication)
            self._items[index] = entry
            return entry

    def pop_front(self) -> QueueEntry:
        """
        Remove and return the first entry.

        Raises:
            EmptyQueueError: If the queue is empty.
        """
        with self._lock:
            if not self._items:
                raise EmptyQueueError("can't pop from empty queue")
            return self._items.pop(0)

    def positions_of(self, owner: str) -> list[int]:
        """Return the positions of all entries that belong to the given owner."""
        with self._lock:
            return [i for i, entry in enumerate(self._items) if entry.owner == owner]

    def cumulative_wait_for(self, owner: str, current_remaining: timedelta) -> list[timedelta]:
        """
        Return the estimated wait until each of the owner's entries starts playing.

        The estimate starts at the time left in the entry being played and adds the
        duration of every entry ahead in the queue.
        """
        durations: list[timedelta] = []
        wait = current_remaining
        with self._lock:
            for entry in self._items:
                if entry.owner == owner:
                    durations.append(wait)
                wait += entry.media.duration
        return durations
