"""Tests for the debounced autosave writer."""

import asyncio

from src.application.persistence import DebouncedWriter


class _Recorder:
    def __init__(self, result: bool = True):
        self.state = 0
        self.writes: list[int] = []
        self.result = result

    def read(self) -> int:
        return self.state

    def write(self, value: int) -> bool:
        self.writes.append(value)
        return self.result


def test_zero_delay_writes_immediately():
    recorder = _Recorder()
    writer = DebouncedWriter(0, recorder.read, recorder.write)

    recorder.state = 7
    writer.schedule()

    assert recorder.writes == [7]
    assert not writer.pending


def test_without_event_loop_write_waits_for_flush():
    recorder = _Recorder()
    writer = DebouncedWriter(1.2, recorder.read, recorder.write)

    writer.schedule()
    assert writer.pending
    assert recorder.writes == []

    recorder.state = 3
    assert writer.flush() is True
    assert recorder.writes == [3]
    assert writer.flush() is None


def test_cancel_drops_pending_write():
    recorder = _Recorder()
    writer = DebouncedWriter(1.2, recorder.read, recorder.write)

    writer.schedule()
    writer.cancel()

    assert not writer.pending
    assert writer.flush() is None
    assert recorder.writes == []


def test_failed_write_reported():
    recorder = _Recorder(result=False)
    writer = DebouncedWriter(1.2, recorder.read, recorder.write)
    writer.schedule()

    assert writer.flush() is False


def test_write_exception_is_contained():
    def explode(_value: int) -> bool:
        raise OSError("disk full")

    writer = DebouncedWriter(1.2, lambda: 1, explode)
    writer.schedule()

    assert writer.flush() is False
    assert not writer.pending


async def test_rapid_edits_collapse_into_one_write():
    recorder = _Recorder()
    writer = DebouncedWriter(0.05, recorder.read, recorder.write)

    for value in range(1, 6):
        recorder.state = value
        writer.schedule()
        await asyncio.sleep(0.01)

    assert recorder.writes == []
    await asyncio.sleep(0.15)

    # State is read when the timer fires, so only the latest value is written
    assert recorder.writes == [5]
    assert not writer.pending


async def test_flush_cancels_timer():
    recorder = _Recorder()
    writer = DebouncedWriter(0.05, recorder.read, recorder.write)

    writer.schedule()
    assert writer.flush() is True
    await asyncio.sleep(0.1)

    assert recorder.writes == [0]
