from __future__ import annotations

import asyncio
from datetime import timedelta

import pytest

from aioopendj import Dj, SessionEndReason, SessionState
from aioopendj.errors import (
    ChannelClosedError,
    EncodeFailedError,
    NothingPlayingError,
    ResolutionFailedError,
    TransportFailedError,
)

ENDPOINT = "rtmp://live.example.com/app/stream-key"


def _make_dj(entries, fast_config, resolver, transcoder, transport, clock=None) -> Dj:
    kwargs = {}
    if clock is not None:
        kwargs["clock"] = clock
    return Dj(
        entries,
        config=fast_config,
        resolver=resolver,
        transcoder=transcoder,
        transport=transport,
        **kwargs,
    )


class _Recorder:
    def __init__(self, dj: Dj) -> None:
        self.events: list[tuple] = []
        self.errors: list[Exception] = []
        self.started = asyncio.Event()
        dj.add_new_song_handler(self._new_song)
        dj.add_end_of_song_handler(self._end_of_song)
        dj.add_playback_error_handler(self.errors.append)

    def _new_song(self, entry) -> None:
        self.events.append(("new", entry.media.title))
        self.started.set()

    def _end_of_song(self, entry, err) -> None:
        self.events.append(("end", entry.media.title, err))


@pytest.mark.asyncio
async def test_plays_queue_then_silence_then_ends(
    make_entry, fast_config, resolver, transcoder, transport
) -> None:
    dj = _make_dj(
        [make_entry("A", "User1"), make_entry("B", "User2")], fast_config, resolver, transcoder, transport
    )
    recorder = _Recorder(dj)

    reason = await asyncio.wait_for(dj.play(ENDPOINT), timeout=5)

    assert reason is SessionEndReason.QUEUE_EXHAUSTED
    assert recorder.events == [
        ("new", "A"),
        ("end", "A", None),
        ("new", "B"),
        ("end", "B", None),
    ]
    assert recorder.errors == []
    assert resolver.resolved == ["a", "b"]
    assert transcoder.segments == ["stream://a", "stream://b"] + ["silence"] * 4
    assert bytes(transport.data) == b"<stream://a><stream://b>" + b"<silence>" * 4
    assert transport.endpoints == [ENDPOINT]
    assert dj.queue() == []
    assert not dj.is_playing
    assert dj.state is SessionState.IDLE
    with pytest.raises(NothingPlayingError):
        dj.currently_playing()


@pytest.mark.asyncio
async def test_empty_queue_streams_silence_only(fast_config, resolver, transcoder, transport) -> None:
    dj = _make_dj(None, fast_config, resolver, transcoder, transport)
    recorder = _Recorder(dj)

    reason = await asyncio.wait_for(dj.play(ENDPOINT), timeout=5)

    assert reason is SessionEndReason.QUEUE_EXHAUSTED
    assert recorder.events == []
    assert transcoder.segments == ["silence"] * 4


@pytest.mark.asyncio
async def test_entry_added_during_silence_is_played(
    make_entry, fast_config, resolver, transcoder, transport
) -> None:
    dj = _make_dj(None, fast_config, resolver, transcoder, transport)
    recorder = _Recorder(dj)

    def _on_silence(count: int) -> None:
        if count == 2:
            dj.add_entry(make_entry("Late", "User3"))

    transcoder.on_silence = _on_silence

    reason = await asyncio.wait_for(dj.play(ENDPOINT), timeout=5)

    assert reason is SessionEndReason.QUEUE_EXHAUSTED
    assert recorder.events == [("new", "Late"), ("end", "Late", None)]
    assert transcoder.segments == ["silence", "silence", "stream://late"] + ["silence"] * 4


@pytest.mark.asyncio
async def test_skip_moves_to_next_entry(make_entry, fast_config, resolver, transcoder, transport) -> None:
    transcoder.hang.add("stream://a")
    dj = _make_dj(
        [make_entry("A", "User1"), make_entry("B", "User2")], fast_config, resolver, transcoder, transport
    )
    recorder = _Recorder(dj)

    task = dj.start(ENDPOINT)
    await asyncio.wait_for(recorder.started.wait(), timeout=5)
    assert dj.currently_playing().entry.media.title == "A"
    assert dj.skip() is True

    reason = await asyncio.wait_for(task, timeout=5)

    assert reason is SessionEndReason.QUEUE_EXHAUSTED
    assert recorder.events == [
        ("new", "A"),
        ("end", "A", None),
        ("new", "B"),
        ("end", "B", None),
    ]
    assert bytes(transport.data).startswith(b"<stream://a><stream://b>")


@pytest.mark.asyncio
async def test_skip_while_resolving(make_entry, fast_config, resolver, transcoder, transport) -> None:
    release = asyncio.Event()
    resolver.gates["a"] = release
    dj = _make_dj(
        [make_entry("A", "User1"), make_entry("B", "User2")], fast_config, resolver, transcoder, transport
    )
    recorder = _Recorder(dj)

    task = dj.start(ENDPOINT)
    await asyncio.wait_for(resolver.waiting.wait(), timeout=5)
    assert dj.currently_playing().entry.media.title == "A"
    assert dj.skip() is True
    release.set()

    reason = await asyncio.wait_for(task, timeout=5)

    assert reason is SessionEndReason.QUEUE_EXHAUSTED
    assert recorder.events == [
        ("new", "A"),
        ("end", "A", None),
        ("new", "B"),
        ("end", "B", None),
    ]
    assert transcoder.segments == ["stream://b"] + ["silence"] * 4


@pytest.mark.asyncio
async def test_skip_during_silence_is_ignored(fast_config, resolver, transcoder, transport) -> None:
    dj = _make_dj(None, fast_config, resolver, transcoder, transport)
    skipped: list[bool] = []
    transcoder.on_silence = lambda _count: skipped.append(dj.skip())

    reason = await asyncio.wait_for(dj.play(ENDPOINT), timeout=5)

    assert reason is SessionEndReason.QUEUE_EXHAUSTED
    assert skipped == [False] * 4
    assert transcoder.segments == ["silence"] * 4


@pytest.mark.asyncio
async def test_empty_queue_leaves_nothing_playing(
    make_entry, fast_config, resolver, transcoder, transport
) -> None:
    dj = _make_dj([make_entry("A", "User1")], fast_config, resolver, transcoder, transport)
    observed: list[tuple] = []

    def _on_silence(_count: int) -> None:
        with pytest.raises(NothingPlayingError):
            dj.currently_playing()
        observed.append((dj.queue(), dj.duration_until_user("User1")))

    transcoder.on_silence = _on_silence

    reason = await asyncio.wait_for(dj.play(ENDPOINT), timeout=5)

    assert reason is SessionEndReason.QUEUE_EXHAUSTED
    assert observed == [([], [])] * 4


@pytest.mark.asyncio
async def test_stop_while_resolving_keeps_entry(
    make_entry, fast_config, resolver, transcoder, transport
) -> None:
    release = asyncio.Event()
    resolver.gates["a"] = release
    dj = _make_dj(
        [make_entry("A", "User1"), make_entry("B", "User2")], fast_config, resolver, transcoder, transport
    )
    recorder = _Recorder(dj)

    task = dj.start(ENDPOINT)
    await asyncio.wait_for(resolver.waiting.wait(), timeout=5)
    assert dj.stop() is True
    release.set()

    reason = await asyncio.wait_for(task, timeout=5)

    assert reason is SessionEndReason.STOPPED
    assert recorder.events == []
    assert recorder.errors == []
    assert transcoder.segments == []
    assert [e.media.title for e in dj.queue()] == ["A", "B"]


@pytest.mark.asyncio
async def test_stop_ends_session_and_keeps_queue(
    make_entry, fast_config, resolver, transcoder, transport
) -> None:
    transcoder.hang.add("stream://a")
    dj = _make_dj(
        [make_entry("A", "User1"), make_entry("B", "User2")], fast_config, resolver, transcoder, transport
    )
    recorder = _Recorder(dj)

    task = dj.start(ENDPOINT)
    await asyncio.wait_for(recorder.started.wait(), timeout=5)
    assert dj.state is SessionState.PLAYING
    assert dj.stop() is True
    assert dj.state is SessionState.STOPPING

    reason = await asyncio.wait_for(task, timeout=5)

    assert reason is SessionEndReason.STOPPED
    assert recorder.events == [("new", "A"), ("end", "A", None)]
    assert recorder.errors == []
    assert [e.media.title for e in dj.queue()] == ["B"]
    assert bytes(transport.data) == b"<stream://a>"
    assert dj.state is SessionState.IDLE


@pytest.mark.asyncio
async def test_resolution_failure_ends_session(
    make_entry, fast_config, resolver, transcoder, transport
) -> None:
    resolver.failures["a"] = "ERROR: Video unavailable"
    dj = _make_dj(
        [make_entry("A", "User1"), make_entry("B", "User2")], fast_config, resolver, transcoder, transport
    )
    recorder = _Recorder(dj)

    reason = await asyncio.wait_for(dj.play(ENDPOINT), timeout=5)

    assert reason is SessionEndReason.FAILED
    assert recorder.events == []
    assert len(recorder.errors) == 1
    assert isinstance(recorder.errors[0], ResolutionFailedError)
    assert "Video unavailable" in str(recorder.errors[0])
    assert not dj.is_playing


@pytest.mark.asyncio
async def test_encode_failure_is_reported_per_entry(
    make_entry, fast_config, resolver, transcoder, transport
) -> None:
    transcoder.fail["stream://a"] = 1
    dj = _make_dj(
        [make_entry("A", "User1"), make_entry("B", "User2")], fast_config, resolver, transcoder, transport
    )
    recorder = _Recorder(dj)

    reason = await asyncio.wait_for(dj.play(ENDPOINT), timeout=5)

    assert reason is SessionEndReason.QUEUE_EXHAUSTED
    assert recorder.errors == []
    (_, title, err), *rest = recorder.events[1:]
    assert title == "A"
    assert isinstance(err, EncodeFailedError)
    assert err.returncode == 1
    assert rest == [("new", "B"), ("end", "B", None)]


@pytest.mark.asyncio
async def test_silence_failure_ends_session(fast_config, resolver, transcoder, transport) -> None:
    transcoder.silence_fails = True
    dj = _make_dj(None, fast_config, resolver, transcoder, transport)
    recorder = _Recorder(dj)

    reason = await asyncio.wait_for(dj.play(ENDPOINT), timeout=5)

    assert reason is SessionEndReason.FAILED
    assert len(recorder.errors) == 1
    assert isinstance(recorder.errors[0], EncodeFailedError)


@pytest.mark.asyncio
async def test_transport_failure_is_reported_once(
    make_entry, fast_config, resolver, transcoder, transport
) -> None:
    transport.fail_after = 1
    dj = _make_dj(
        [make_entry("A", "User1"), make_entry("B", "User2")], fast_config, resolver, transcoder, transport
    )
    recorder = _Recorder(dj)

    reason = await asyncio.wait_for(dj.play(ENDPOINT), timeout=5)

    assert reason is SessionEndReason.FAILED
    assert len(recorder.errors) == 1
    assert isinstance(recorder.errors[0], TransportFailedError)
    assert not isinstance(recorder.errors[0], ChannelClosedError)
    assert not dj.is_playing


@pytest.mark.asyncio
async def test_cancelling_play_tears_down_session(
    make_entry, fast_config, resolver, transcoder, transport
) -> None:
    transcoder.hang.add("stream://a")
    dj = _make_dj([make_entry("A", "User1")], fast_config, resolver, transcoder, transport)
    recorder = _Recorder(dj)

    task = dj.start(ENDPOINT)
    await asyncio.wait_for(recorder.started.wait(), timeout=5)
    task.cancel()

    with pytest.raises(asyncio.CancelledError):
        await task
    assert not dj.is_playing
    assert recorder.errors == []


@pytest.mark.asyncio
async def test_only_one_session_at_a_time(make_entry, fast_config, resolver, transcoder, transport) -> None:
    transcoder.hang.add("stream://a")
    dj = _make_dj([make_entry("A", "User1")], fast_config, resolver, transcoder, transport)
    recorder = _Recorder(dj)

    task = dj.start(ENDPOINT)
    await asyncio.wait_for(recorder.started.wait(), timeout=5)
    with pytest.raises(RuntimeError):
        await dj.play(ENDPOINT)

    dj.stop()
    assert await asyncio.wait_for(task, timeout=5) is SessionEndReason.STOPPED


@pytest.mark.asyncio
async def test_failing_handler_does_not_break_playback(
    make_entry, fast_config, resolver, transcoder, transport
) -> None:
    dj = _make_dj([make_entry("A", "User1")], fast_config, resolver, transcoder, transport)

    def _broken(_entry) -> None:
        raise RuntimeError("handler bug")

    dj.add_new_song_handler(_broken)

    reason = await asyncio.wait_for(dj.play(ENDPOINT), timeout=5)

    assert reason is SessionEndReason.QUEUE_EXHAUSTED
    assert transcoder.segments[0] == "stream://a"


@pytest.mark.asyncio
async def test_queries_while_playing(make_entry, fast_config, resolver, transcoder, transport, clock) -> None:
    transcoder.hang.add("stream://a")
    dj = _make_dj(
        [make_entry("A", "X", 10), make_entry("B", "Y", 5), make_entry("C", "X", 7)],
        fast_config,
        resolver,
        transcoder,
        transport,
        clock=clock,
    )
    recorder = _Recorder(dj)

    task = dj.start(ENDPOINT)
    await asyncio.wait_for(recorder.started.wait(), timeout=5)
    await asyncio.sleep(0)
    clock.now += 3
    queue_before = dj.queue()
    state_before = dj._session.state  # noqa: SLF001

    current = dj.currently_playing()
    assert current.entry.media.title == "A"
    assert current.elapsed == timedelta(seconds=3)
    assert dj.user_positions("X") == [1]
    assert dj.duration_until_user("X") == [timedelta(seconds=12)]
    assert dj.duration_until_user("Y") == [timedelta(seconds=7)]
    assert dj.duration_until_user("nobody") == []

    # An entry running past its nominal duration makes the estimate negative
    clock.now += 60
    assert dj.duration_until_user("Y") == [timedelta(seconds=-53)]

    # Queries leave the queue and the playback state untouched
    assert dj.queue() == queue_before
    assert dj._session.state is state_before  # noqa: SLF001
    assert dj.currently_playing().entry == state_before.entry

    dj.stop()
    await asyncio.wait_for(task, timeout=5)


def test_queries_while_idle(make_entry, resolver, transcoder, transport, fast_config) -> None:
    dj = _make_dj(
        [make_entry("A", "X", 10), make_entry("B", "Y", 5), make_entry("C", "X", 7)],
        fast_config,
        resolver,
        transcoder,
        transport,
    )

    queue_before = dj.queue()

    with pytest.raises(NothingPlayingError):
        dj.currently_playing()
    assert dj.user_positions("X") == [0, 2]
    assert dj.duration_until_user("X") == [timedelta(0), timedelta(seconds=15)]
    with pytest.raises(NothingPlayingError):
        dj.currently_playing()
    assert dj.queue() == queue_before
    assert dj.skip() is False
    assert dj.stop() is False
    assert dj.state is SessionState.IDLE


def test_queue_editing_through_dj(make_entry, resolver, transcoder, transport, fast_config) -> None:
    dj = _make_dj([make_entry("A", "X")], fast_config, resolver, transcoder, transport)

    dj.add_entry(make_entry("C", "Z"))
    dj.insert_entry(make_entry("B", "Y"), 1)
    dj.change_index(make_entry("D", "W"), 2)
    assert [e.media.title for e in dj.queue()] == ["A", "B", "D"]

    dedicated = dj.add_dedication(1, "Z")
    assert dedicated.dedication == "Z"
    assert dj.entry_at_index(1) == dedicated

    removed = dj.remove_index(0)
    assert removed.media.title == "A"
    assert [e.media.title for e in dj.queue()] == ["B", "D"]
