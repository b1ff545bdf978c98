"""Audio-driven slide timing, playback synchronisation and artifact rendering."""
from .timeline import (
    DEFAULT_MIN_SLIDE_SECONDS,
    MediaSet,
    SlideInterval,
    Timeline,
    compute_timeline,
    duration_in_frames,
)
from .media import AutoplayBlockedError, MediaElement, SilentTrack
from .controller import AUTOPLAY_NOTICE, PlaybackController, PlaybackSnapshot, PlaybackStatus
from .audio_refs import normalize_audio_reference
from .renderer import (
    ArtifactFailed,
    ArtifactReady,
    ArtifactResult,
    ArtifactUnavailable,
    FallbackRenderer,
)

__all__ = [
    "DEFAULT_MIN_SLIDE_SECONDS",
    "MediaSet",
    "SlideInterval",
    "Timeline",
    "compute_timeline",
    "duration_in_frames",
    "AutoplayBlockedError",
    "MediaElement",
    "SilentTrack",
    "AUTOPLAY_NOTICE",
    "PlaybackController",
    "PlaybackSnapshot",
    "PlaybackStatus",
    "normalize_audio_reference",
    "ArtifactFailed",
    "ArtifactReady",
    "ArtifactResult",
    "ArtifactUnavailable",
    "FallbackRenderer",
]
