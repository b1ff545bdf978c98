"""Shared fixtures: a scriptable media element and a manual clock."""
import asyncio
from typing import Optional

import pytest

from reelforge.playback.media import ENDED, LOADED_METADATA, TIME_UPDATE, EventEmitter


class FakeMedia(EventEmitter):
    """Stand-in for a browser audio element.

    ``play`` can be held open with ``gate`` and made to fail with
    ``play_error``. Every call is logged in ``calls``.
    """

    def __init__(self, duration: Optional[float] = None):
        super().__init__()
        self.current_time = 0.0
        self._duration = duration
        self.calls = []
        self.play_error: Optional[BaseException] = None
        self.gate: Optional[asyncio.Event] = None

    @property
    def duration(self) -> Optional[float]:
        return self._duration

    async def play(self) -> None:
        self.calls.append("play")
        if self.gate is not None:
            await self.gate.wait()
        if self.play_error is not None:
            self.calls.append("rejected")
            raise self.play_error
        self.calls.append("started")

    def pause(self) -> None:
        self.calls.append("pause")

    def load_metadata(self, duration: float) -> None:
        self._duration = duration
        self.emit(LOADED_METADATA)

    def tick(self, position: float) -> None:
        self.current_time = position
        self.emit(TIME_UPDATE)

    def end(self) -> None:
        if self._duration is not None:
            self.current_time = self._duration
        self.emit(ENDED)


class ManualClock:
    """Monotonic clock that only moves when told to."""

    def __init__(self, start: float = 100.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def fake_media():
    return FakeMedia()


@pytest.fixture
def clock():
    return ManualClock()
