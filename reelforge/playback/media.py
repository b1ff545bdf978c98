"""Media element abstraction driven by the playback controller."""
import asyncio
import logging
from typing import Callable, Dict, List, Optional, Protocol

logger = logging.getLogger(__name__)

# Events a media element emits to its listeners
LOADED_METADATA = "loadedmetadata"
TIME_UPDATE = "timeupdate"
ENDED = "ended"
MEDIA_EVENTS = (LOADED_METADATA, TIME_UPDATE, ENDED)


class AutoplayBlockedError(Exception):
    """The host refused to start playback without a user gesture."""


class MediaElement(Protocol):
    """What the controller needs from an audio element.

    ``current_time`` is the authoritative playback clock. ``duration`` is
    None until metadata has loaded. ``play`` may raise, most commonly
    AutoplayBlockedError.
    """

    current_time: float

    @property
    def duration(self) -> Optional[float]: ...

    async def play(self) -> None: ...

    def pause(self) -> None: ...

    def add_listener(self, event: str, callback: Callable[[], None]) -> None: ...

    def remove_listener(self, event: str, callback: Callable[[], None]) -> None: ...


class EventEmitter:
    """Listener bookkeeping shared by media element implementations."""

    def __init__(self):
        self._listeners: Dict[str, List[Callable[[], None]]] = {e: [] for e in MEDIA_EVENTS}

    def add_listener(self, event: str, callback: Callable[[], None]) -> None:
        if event not in self._listeners:
            raise ValueError(f"Unknown media event: {event}")
        self._listeners[event].append(callback)

    def remove_listener(self, event: str, callback: Callable[[], None]) -> None:
        try:
            self._listeners[event].remove(callback)
        except (KeyError, ValueError):
            pass

    def listener_count(self, event: Optional[str] = None) -> int:
        if event is not None:
            return len(self._listeners.get(event, []))
        return sum(len(callbacks) for callbacks in self._listeners.values())

    def emit(self, event: str) -> None:
        # Copy so a listener may detach itself while being notified
        for callback in list(self._listeners.get(event, [])):
            callback()


class SilentTrack(EventEmitter):
    """
    Media element with no sound, used when a media set has no narration.

    Advances ``current_time`` from an injectable clock on a fixed tick and
    emits ``timeupdate`` events, then ``ended`` once ``length`` is reached.

    Args:
        length: Track length in seconds
        clock: Monotonic time source in seconds (defaults to the loop clock)
        tick_seconds: Interval between timeupdate events
    """

    def __init__(
        self,
        length: float,
        clock: Optional[Callable[[], float]] = None,
        tick_seconds: float = 0.25,
    ):
        super().__init__()
        self.length = length
        self._clock = clock
        self._tick_seconds = tick_seconds
        self._position = 0.0
        self._started_at: Optional[float] = None
        self._task: Optional[asyncio.Task] = None

    def _now(self) -> float:
        if self._clock is not None:
            return self._clock()
        return asyncio.get_running_loop().time()

    @property
    def duration(self) -> Optional[float]:
        return self.length

    @property
    def current_time(self) -> float:
        if self._started_at is None:
            return self._position
        return min(self.length, self._position + (self._now() - self._started_at))

    @current_time.setter
    def current_time(self, value: float) -> None:
        self._position = max(0.0, min(self.length, value))
        if self._started_at is not None:
            self._started_at = self._now()

    @property
    def paused(self) -> bool:
        return self._started_at is None

    async def play(self) -> None:
        if self._started_at is not None:
            return
        if self._position >= self.length:
            self._position = 0.0
        self._started_at = self._now()
        self._task = asyncio.ensure_future(self._run())

    def pause(self) -> None:
        if self._started_at is None:
            return
        self._position = self.current_time
        self._started_at = None
        self._cancel_task()

    def close(self) -> None:
        self.pause()

    def _cancel_task(self) -> None:
        task, self._task = self._task, None
        if task is not None and task is not asyncio.current_task() and not task.done():
            task.cancel()

    async def _run(self) -> None:
        try:
            while self._started_at is not None:
                await asyncio.sleep(self._tick_seconds)
                if self._started_at is None:
                    break
                self.emit(TIME_UPDATE)
                if self.current_time >= self.length:
                    self._position = self.length
                    self._started_at = None
                    self._task = None
                    self.emit(ENDED)
                    break
        except asyncio.CancelledError:
            logger.debug("Silent track ticker cancelled")
            raise
