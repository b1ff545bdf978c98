"""Slide timeline computation.

Partitions the narration timeline into one interval per image. The audio
track is the source of truth for pacing, but no slide is ever shown for less
than the minimum slide duration: when the narration is too short for the
number of images, the slideshow runs past the end of the audio instead.
"""
import math
from bisect import bisect_right
from dataclasses import dataclass
from typing import Optional, Tuple

from reelforge.errors import InvalidMediaSetError

DEFAULT_MIN_SLIDE_SECONDS = 2.0


@dataclass(frozen=True)
class MediaSet:
    """Images and narration for one generated video.

    Never mutated after construction; edits produce a new MediaSet.
    """
    images: Tuple[str, ...]
    audio_track: Optional[str] = None

    def __post_init__(self):
        # Accept any sequence but always store a tuple
        object.__setattr__(self, "images", tuple(self.images))
        if not self.images:
            raise InvalidMediaSetError("A media set needs at least one image")
        if self.audio_track is not None and not self.audio_track.strip():
            object.__setattr__(self, "audio_track", None)

    @property
    def image_count(self) -> int:
        return len(self.images)

    @property
    def has_audio(self) -> bool:
        return self.audio_track is not None

    def with_images(self, images) -> "MediaSet":
        return MediaSet(tuple(images), self.audio_track)

    def with_audio(self, audio_track: Optional[str]) -> "MediaSet":
        return MediaSet(self.images, audio_track)


@dataclass(frozen=True)
class SlideInterval:
    """Half-open display window ``[start, end)`` for one slide, in seconds."""
    start: float
    end: float

    @property
    def duration(self) -> float:
        return self.end - self.start

    def contains(self, position: float) -> bool:
        return self.start <= position < self.end


@dataclass(frozen=True)
class Timeline:
    """Read-only partition of the playback duration into slide intervals."""
    slide_intervals: Tuple[SlideInterval, ...]
    total_duration: float
    audio_duration: Optional[float] = None
    minimum_slide_seconds: float = DEFAULT_MIN_SLIDE_SECONDS

    @property
    def slide_count(self) -> int:
        return len(self.slide_intervals)

    @property
    def slide_duration(self) -> float:
        return self.slide_intervals[0].duration

    @property
    def extends_past_audio(self) -> bool:
        """True when the floor pushed the slideshow beyond the narration."""
        if not self.audio_duration:
            return False
        return self.total_duration > self.audio_duration

    def slide_at(self, position: float) -> Optional[int]:
        """Index of the slide active at ``position``, or None outside the timeline."""
        if position < 0 or position >= self.total_duration:
            return None
        starts = [interval.start for interval in self.slide_intervals]
        return bisect_right(starts, position) - 1

    def start_of(self, index: int) -> float:
        if not 0 <= index < self.slide_count:
            raise IndexError(f"Slide {index} out of range (0..{self.slide_count - 1})")
        return self.slide_intervals[index].start

    def to_dict(self) -> dict:
        return {
            "totalDuration": self.total_duration,
            "audioDuration": self.audio_duration,
            "slideDuration": self.slide_duration,
            "slideIntervals": [
                {"start": interval.start, "end": interval.end}
                for interval in self.slide_intervals
            ],
        }


def _known_duration(audio_duration_seconds: Optional[float]) -> Optional[float]:
    if audio_duration_seconds is None:
        return None
    if math.isnan(audio_duration_seconds) or math.isinf(audio_duration_seconds):
        return None
    if audio_duration_seconds < 0:
        raise ValueError("audio_duration_seconds must be >= 0")
    return audio_duration_seconds or None


def compute_timeline(
    image_count: int,
    audio_duration_seconds: Optional[float] = None,
    minimum_slide_seconds: float = DEFAULT_MIN_SLIDE_SECONDS,
) -> Timeline:
    """
    Compute per-slide display intervals for a slideshow.

    Args:
        image_count: Number of slides (must be >= 1)
        audio_duration_seconds: Narration length; None, NaN or 0 when unknown
        minimum_slide_seconds: Floor on every slide's width

    Returns:
        Timeline whose intervals cover [0, total_duration) with no gaps

    Pure function: calling it again with better duration estimates returns
    a fresh Timeline to replace the old one.
    """
    if image_count < 1:
        raise ValueError("image_count must be at least 1")
    if not minimum_slide_seconds > 0:
        raise ValueError("minimum_slide_seconds must be positive")

    audio_duration = _known_duration(audio_duration_seconds)

    if audio_duration is None:
        width = minimum_slide_seconds
        total = image_count * minimum_slide_seconds
    else:
        naive = audio_duration / image_count
        if naive >= minimum_slide_seconds:
            width = naive
            total = audio_duration
        else:
            width = minimum_slide_seconds
            total = image_count * minimum_slide_seconds

    # Boundaries are i * width so repeated calls agree exactly; the last end
    # is pinned to total to absorb float error.
    intervals = []
    for i in range(image_count):
        start = i * width
        end = total if i == image_count - 1 else (i + 1) * width
        intervals.append(SlideInterval(start, end))

    return Timeline(
        slide_intervals=tuple(intervals),
        total_duration=total,
        audio_duration=audio_duration,
        minimum_slide_seconds=minimum_slide_seconds,
    )


def duration_in_frames(timeline: Timeline, fps: int = 30) -> int:
    """Frame count a renderer needs to cover the whole timeline."""
    return max(1, math.ceil(timeline.total_duration * fps))
