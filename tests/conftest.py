from __future__ import annotations

import asyncio
from collections.abc import Callable
from datetime import timedelta

import pytest

from aioopendj.config import DjConfig
from aioopendj.dj.channel import ByteChannel
from aioopendj.errors import EncodeFailedError, ResolutionFailedError, TransportFailedError
from aioopendj.models.core import Media, QueueEntry


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, now: float = 1000.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now


class FakeResolver:
    """Resolves every URL to stream://<url> unless told to fail."""

    def __init__(self) -> None:
        self.resolved: list[str] = []
        self.failures: dict[str, str] = {}
        self.gates: dict[str, asyncio.Event] = {}
        """URLs whose resolution waits until the event is set."""
        self.waiting = asyncio.Event()
        """Set once a gated URL is being resolved."""

    async def resolve(self, url: str) -> str:
        await asyncio.sleep(0)
        if url in self.gates:
            self.waiting.set()
            await self.gates[url].wait()
        if url in self.failures:
            raise ResolutionFailedError(url, self.failures[url])
        self.resolved.append(url)
        return f"stream://{url}"


class FakeTranscoder:
    """Writes a marker per segment into the channel."""

    def __init__(self) -> None:
        self.segments: list[str] = []
        self.hang: set[str] = set()
        """Stream URLs whose encode never finishes on its own."""
        self.fail: dict[str, int] = {}
        """Stream URLs whose encode exits with the given code."""
        self.on_silence: Callable[[int], None] | None = None
        self.silence_fails = False

    async def encode(self, stream_url: str, target: ByteChannel, *, padding_seconds: float) -> None:
        self.segments.append(stream_url)
        await target.write(f"<{stream_url}>".encode())
        if stream_url in self.hang:
            await asyncio.Event().wait()
        await asyncio.sleep(0.001)
        if stream_url in self.fail:
            raise EncodeFailedError(self.fail[stream_url], "exit status from fake encoder")

    async def silence(self, seconds: float, target: ByteChannel) -> None:
        self.segments.append("silence")
        if self.silence_fails:
            raise EncodeFailedError(1, "lavfi unavailable")
        await target.write(b"<silence>")
        await asyncio.sleep(0.001)
        if self.on_silence is not None:
            self.on_silence(self.segments.count("silence"))


class FakeTransport:
    """Collects everything published; can drop the connection after some bytes."""

    def __init__(self) -> None:
        self.data = bytearray()
        self.endpoints: list[str] = []
        self.fail_after: int | None = None

    async def publish(self, source: ByteChannel, endpoint: str) -> None:
        self.endpoints.append(endpoint)
        async for chunk in source:
            self.data += chunk
            if self.fail_after is not None and len(self.data) >= self.fail_after:
                raise TransportFailedError(f"connection to {endpoint} dropped")


def entry(title: str, owner: str, seconds: float = 60, dedication: str | None = None) -> QueueEntry:
    return QueueEntry(
        media=Media(title=title, url=title.lower(), duration=timedelta(seconds=seconds)),
        owner=owner,
        dedication=dedication,
    )


@pytest.fixture
def make_entry() -> Callable[..., QueueEntry]:
    return entry


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def resolver() -> FakeResolver:
    return FakeResolver()


@pytest.fixture
def transcoder() -> FakeTranscoder:
    return FakeTranscoder()


@pytest.fixture
def transport() -> FakeTransport:
    return FakeTransport()


@pytest.fixture
def fast_config() -> DjConfig:
    return DjConfig(
        silence_seconds=0.01,
        track_padding_seconds=0,
        publisher_warmup_seconds=0,
        max_empty_streak=4,
    )
