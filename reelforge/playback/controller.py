"""Playback controller: keeps the active slide in step with the narration clock."""
import asyncio
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Dict, List, Optional

from reelforge.playback.media import (
    ENDED,
    LOADED_METADATA,
    TIME_UPDATE,
    AutoplayBlockedError,
    MediaElement,
    SilentTrack,
)
from reelforge.playback.timeline import (
    DEFAULT_MIN_SLIDE_SECONDS,
    MediaSet,
    Timeline,
    compute_timeline,
)

logger = logging.getLogger(__name__)

AUTOPLAY_NOTICE = "Tap play to start audio"
PLAYBACK_FAILED_NOTICE = "Audio could not start. Tap play to try again"

# Tolerance when comparing the media clock against interval boundaries
_EPSILON = 1e-6


class PlaybackStatus(str, Enum):
    """Lifecycle of a player."""
    IDLE = "idle"
    PLAYING = "playing"
    PAUSED = "paused"
    ENDED = "ended"


@dataclass(frozen=True)
class PlaybackSnapshot:
    """Immutable view of the player for UIs and serializers."""
    status: PlaybackStatus
    position_seconds: float
    active_slide_index: Optional[int]
    total_duration: float
    notice: Optional[str] = None


class PlaybackController:
    """
    State machine driving slideshow playback from a media element's clock.

    States: idle -> playing <-> paused -> ended. The element's
    ``current_time`` is the only source of the playback position; the active
    slide is always derived from it. When the timeline runs past the end of
    the narration, a silent tail clock carries the position on to the end.

    All calls that touch the element (play, pause, seek, restart) are
    serialised on one lock so a second request waits for the first to
    settle. Listeners are attached per element and removed on ``load`` or
    ``close``.

    Args:
        media_set: Images and optional narration reference
        media: Element playing the narration; None builds a SilentTrack,
            which is only valid for media sets without audio
        minimum_slide_seconds: Floor on each slide's display time
        clock: Monotonic time source in seconds for silent playback
        tick_seconds: Position update interval for silent playback
    """

    def __init__(
        self,
        media_set: MediaSet,
        media: Optional[MediaElement] = None,
        *,
        minimum_slide_seconds: float = DEFAULT_MIN_SLIDE_SECONDS,
        clock: Optional[Callable[[], float]] = None,
        tick_seconds: float = 0.25,
    ):
        self._minimum_slide_seconds = minimum_slide_seconds
        self._clock = clock
        self._tick_seconds = tick_seconds
        self._lock = asyncio.Lock()
        self._observers: List[Callable[[PlaybackSnapshot], None]] = []

        self._media: Optional[MediaElement] = None
        self._owns_media = False
        self._listeners: Dict[str, Callable[[], None]] = {}
        self._generation = 0

        self._tail_task: Optional[asyncio.Task] = None
        self._tail_origin = 0.0
        self._tail_started_at = 0.0

        self._status = PlaybackStatus.IDLE
        self._position = 0.0
        self._notice: Optional[str] = None
        self._closed = False
        self.load(media_set, media)

    # ------------------------------------------------------------------
    # Read-only state
    # ------------------------------------------------------------------

    @property
    def media_set(self) -> MediaSet:
        return self._media_set

    @property
    def timeline(self) -> Timeline:
        return self._timeline

    @property
    def status(self) -> PlaybackStatus:
        return self._status

    @property
    def position_seconds(self) -> float:
        return self._position

    @property
    def active_slide_index(self) -> Optional[int]:
        return self._timeline.slide_at(self._position)

    @property
    def notice(self) -> Optional[str]:
        """Recoverable, user-actionable message (e.g. autoplay was blocked)."""
        return self._notice

    def snapshot(self) -> PlaybackSnapshot:
        return PlaybackSnapshot(
            status=self._status,
            position_seconds=self._position,
            active_slide_index=self.active_slide_index,
            total_duration=self._timeline.total_duration,
            notice=self._notice,
        )

    def subscribe(self, callback: Callable[[PlaybackSnapshot], None]) -> Callable[[], None]:
        """Register a state observer; returns a function that unsubscribes it."""
        self._observers.append(callback)

        def unsubscribe():
            if callback in self._observers:
                self._observers.remove(callback)

        return unsubscribe

    def dismiss_notice(self) -> None:
        self._notice = None
        self._notify()

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def load(self, media_set: MediaSet, media: Optional[MediaElement] = None) -> None:
        """
        Switch to a new media set, fully releasing the previous element.

        Listeners on the old element are detached and pending timers are
        cancelled before anything is attached to the new one, so two
        timelines never race over the same element.
        """
        if media is None:
            if media_set.has_audio:
                raise ValueError("A media element is required for a media set with narration")
            length = media_set.image_count * self._minimum_slide_seconds
            media = SilentTrack(length, clock=self._clock, tick_seconds=self._tick_seconds)
            owns_media = True
        else:
            owns_media = False

        self._release_media()
        self._generation += 1

        self._media_set = media_set
        self._media = media
        self._owns_media = owns_media
        self._status = PlaybackStatus.IDLE
        self._position = 0.0
        self._notice = None
        self._closed = False
        self._timeline = self._build_timeline(media.duration if media_set.has_audio else None)
        self._attach(media)
        logger.debug(
            "Loaded media set with %d slides over %.2fs",
            media_set.image_count,
            self._timeline.total_duration,
        )
        self._notify()

    def close(self) -> None:
        """Detach from the element and cancel timers; the controller is unusable after."""
        self._release_media()
        self._generation += 1
        self._closed = True

    def _release_media(self) -> None:
        self._stop_tail()
        media = self._media
        if media is None:
            return
        for event, callback in self._listeners.items():
            media.remove_listener(event, callback)
        self._listeners = {}
        media.pause()
        if self._owns_media and isinstance(media, SilentTrack):
            media.close()
        self._media = None

    def _attach(self, media: MediaElement) -> None:
        generation = self._generation

        def guarded(handler):
            def callback():
                # Late events from a previous element are ignored
                if self._generation != generation or self._media is not media:
                    return
                handler()
            return callback

        self._listeners = {
            LOADED_METADATA: guarded(self._on_metadata_loaded),
            TIME_UPDATE: guarded(self._on_time_update),
            ENDED: guarded(self._on_ended),
        }
        for event, callback in self._listeners.items():
            media.add_listener(event, callback)

    def _build_timeline(self, audio_duration: Optional[float]) -> Timeline:
        return compute_timeline(
            self._media_set.image_count,
            audio_duration,
            self._minimum_slide_seconds,
        )

    # ------------------------------------------------------------------
    # Commands
    # ------------------------------------------------------------------

    async def play(self) -> bool:
        """
        Start or resume playback.

        Returns False when the element refused to play; the controller is
        then left paused with a notice instead of falsely playing.
        """
        self._ensure_open()
        async with self._lock:
            if self._status is PlaybackStatus.PLAYING:
                return True
            if self._status is PlaybackStatus.ENDED:
                self._move_to(0.0)
            return await self._start_playback()

    async def pause(self) -> None:
        self._ensure_open()
        async with self._lock:
            if self._status is not PlaybackStatus.PLAYING:
                return
            self._halt()
            self._status = PlaybackStatus.PAUSED
            self._notify()

    async def restart(self) -> bool:
        """Rewind to the first slide and play."""
        self._ensure_open()
        async with self._lock:
            self._halt()
            self._move_to(0.0)
            return await self._start_playback()

    async def seek(self, seconds: float) -> bool:
        """
        Jump to a playback position.

        While playing, playback is re-requested at the new position; while
        paused or idle only the position moves. Returns False only if a
        re-requested play was refused.
        """
        self._ensure_open()
        async with self._lock:
            target = min(max(0.0, seconds), self._timeline.total_duration)
            was_playing = self._status is PlaybackStatus.PLAYING
            if was_playing:
                self._halt()
            elif self._status is PlaybackStatus.ENDED:
                self._status = PlaybackStatus.PAUSED

            self._move_to(target)
            if target >= self._timeline.total_duration:
                self._finish()
                return True
            if was_playing:
                return await self._start_playback()
            self._notify()
            return True

    async def jump_to_slide(self, index: int) -> bool:
        start = self._timeline.start_of(index)
        return await self.seek(start)

    def _ensure_open(self) -> None:
        if self._closed:
            raise RuntimeError("Playback controller has been closed")

    async def _start_playback(self) -> bool:
        # Caller holds the lock
        self._status = PlaybackStatus.PLAYING
        self._notice = None
        self._notify()

        if self._in_trailing_silence():
            self._start_tail(self._position)
            return True

        generation = self._generation
        media = self._media
        try:
            await media.play()
        except AutoplayBlockedError as e:
            logger.info("Autoplay blocked: %s", e)
            return self._play_refused(generation, AUTOPLAY_NOTICE)
        except Exception as e:
            logger.warning("Media element refused to play: %s", e)
            return self._play_refused(generation, PLAYBACK_FAILED_NOTICE)

        if generation != self._generation:
            return False
        return True

    def _play_refused(self, generation: int, notice: str) -> bool:
        if generation != self._generation:
            # The element was replaced while the request was pending
            return False
        if self._status is PlaybackStatus.PLAYING:
            self._status = PlaybackStatus.PAUSED
        self._notice = notice
        self._notify()
        return False

    def _halt(self) -> None:
        """Stop whichever clock is running, keeping the current position."""
        if self._tail_task is not None:
            self._position = self._tail_position()
            self._stop_tail()
        else:
            self._position = self._media.current_time
            self._media.pause()

    def _move_to(self, position: float) -> None:
        self._stop_tail()
        self._position = position
        audio_end = self._media.duration
        if audio_end:
            self._media.current_time = min(position, audio_end)
        else:
            self._media.current_time = position

    # ------------------------------------------------------------------
    # Media events
    # ------------------------------------------------------------------

    def _on_metadata_loaded(self) -> None:
        if not self._media_set.has_audio:
            return
        self._timeline = self._build_timeline(self._media.duration)
        logger.debug("Timeline recomputed for %.2fs of audio", self._timeline.audio_duration or 0.0)
        self._apply_position(self._position)

    def _on_time_update(self) -> None:
        if self._tail_task is not None:
            return
        self._apply_position(self._media.current_time)

    def _on_ended(self) -> None:
        if self._status is PlaybackStatus.IDLE or self._status is PlaybackStatus.ENDED:
            return
        if self._status is PlaybackStatus.PLAYING and self._position_after_audio() < self._timeline.total_duration - _EPSILON:
            # Narration finished before the last slide's floor ran out
            self._start_tail(self._position_after_audio())
            return
        self._finish()

    def _position_after_audio(self) -> float:
        return max(self._position, self._timeline.audio_duration or self._media.current_time)

    def _apply_position(self, position: float) -> None:
        if self._status is PlaybackStatus.ENDED:
            # Position stays pinned to the end once finished
            self._position = self._timeline.total_duration
            return
        previous_index = self.active_slide_index
        self._position = position
        if position >= self._timeline.total_duration and self._status in (
            PlaybackStatus.PLAYING,
            PlaybackStatus.PAUSED,
        ):
            self._finish()
            return
        if self.active_slide_index != previous_index:
            self._notify()

    def _finish(self) -> None:
        self._stop_tail()
        self._position = self._timeline.total_duration
        self._status = PlaybackStatus.ENDED
        logger.debug("Playback ended at %.2fs", self._position)
        self._notify()

    # ------------------------------------------------------------------
    # Silent tail after the narration ends
    # ------------------------------------------------------------------

    def _in_trailing_silence(self) -> bool:
        audio_duration = self._timeline.audio_duration
        if not self._media_set.has_audio or not audio_duration:
            return False
        return self._timeline.extends_past_audio and self._position >= audio_duration - _EPSILON

    def _now(self) -> float:
        if self._clock is not None:
            return self._clock()
        return asyncio.get_running_loop().time()

    def _tail_position(self) -> float:
        elapsed = self._now() - self._tail_started_at
        return min(self._timeline.total_duration, self._tail_origin + elapsed)

    def _start_tail(self, origin: float) -> None:
        self._stop_tail()
        self._position = origin
        self._tail_origin = origin
        self._tail_started_at = self._now()
        self._tail_task = asyncio.ensure_future(self._run_tail())

    def _stop_tail(self) -> None:
        task, self._tail_task = self._tail_task, None
        if task is not None and task is not asyncio.current_task() and not task.done():
            task.cancel()

    async def _run_tail(self) -> None:
        while self._status is PlaybackStatus.PLAYING:
            await asyncio.sleep(self._tick_seconds)
            if self._status is not PlaybackStatus.PLAYING:
                break
            self._apply_position(self._tail_position())

    def _notify(self) -> None:
        if not self._observers:
            return
        snapshot = self.snapshot()
        for callback in list(self._observers):
            try:
                callback(snapshot)
            except Exception:
                logger.exception("Playback observer failed")
