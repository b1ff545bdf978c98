"""Downloadable-artifact rendering with graceful fallback to client playback."""
import json
import logging
from dataclasses import dataclass, field
from typing import Optional, Tuple, Union

import httpx

from reelforge import config
from reelforge.cache import TTLCache
from reelforge.errors import InvalidAudioReferenceError, RenderBackendError
from reelforge.pipeline.render_client import RenderClient
from reelforge.playback.audio_refs import is_blob_handle, normalize_audio_reference
from reelforge.playback.timeline import MediaSet, compute_timeline, duration_in_frames

logger = logging.getLogger(__name__)

SETUP_GUIDANCE = (
    "Cloud rendering is not configured, so the video plays as a slideshow in the browser.",
    "1. Deploy or sign up for a render service that accepts POST /renders",
    "2. Set RENDER_API_URL to its base URL",
    "3. Set RENDER_API_KEY if the service requires authentication",
    "4. Restart the server and request the download again",
)


@dataclass(frozen=True)
class ArtifactReady:
    """A rendered video is available for direct download."""
    url: str
    kind: str = field(default="ready", init=False)


@dataclass(frozen=True)
class ArtifactUnavailable:
    """No render backend is configured; present the slideshow client-side."""
    guidance: Tuple[str, ...] = SETUP_GUIDANCE
    kind: str = field(default="unavailable", init=False)


@dataclass(frozen=True)
class ArtifactFailed:
    """A render was attempted and failed. Retrying is left to the user."""
    reason: str
    retryable: bool = True
    kind: str = field(default="failed", init=False)


ArtifactResult = Union[ArtifactReady, ArtifactUnavailable, ArtifactFailed]


class FallbackRenderer:
    """
    Turns a media set into a downloadable video when a render backend exists.

    Each request takes a ticket; only the newest ticket may replace
    ``current``. A request that finishes after a newer one has started (or
    after ``supersede``) still returns its result to its own caller, but it
    is never applied as the current artifact.

    Failed renders are not retried automatically.
    """

    def __init__(
        self,
        client: Optional[RenderClient] = None,
        cache: Optional[TTLCache] = None,
        fps: int = config.RENDER_FPS,
        minimum_slide_seconds: float = config.MIN_SLIDE_SECONDS,
    ):
        self.client = client or RenderClient()
        self.cache = cache if cache is not None else TTLCache(config.VIDEO_CACHE_TTL)
        self.fps = fps
        self.minimum_slide_seconds = minimum_slide_seconds
        self._ticket = 0
        self._pending: Optional[int] = None
        self._current: Optional[ArtifactResult] = None

    @property
    def current(self) -> Optional[ArtifactResult]:
        return self._current

    @property
    def is_pending(self) -> bool:
        return self._pending is not None

    def supersede(self) -> None:
        """Invalidate any in-flight request, e.g. when assets are regenerated."""
        self._ticket += 1
        self._pending = None
        self._current = None

    async def request_downloadable_artifact(
        self,
        media_set: MediaSet,
        audio_duration_seconds: Optional[float] = None,
    ) -> ArtifactResult:
        self._ticket += 1
        ticket = self._ticket
        self._pending = ticket

        try:
            result = await self._render(media_set, audio_duration_seconds)
        finally:
            if ticket == self._ticket:
                self._pending = None

        if ticket == self._ticket:
            self._current = result
        else:
            logger.info("Discarding superseded render result (%s)", result.kind)
        return result

    async def _render(self, media_set: MediaSet, audio_duration_seconds: Optional[float]) -> ArtifactResult:
        if not self.client.configured:
            return ArtifactUnavailable()

        if not media_set.has_audio:
            return ArtifactFailed("Narration audio is required to render a video", retryable=False)

        try:
            audio_url = normalize_audio_reference(media_set.audio_track)
        except InvalidAudioReferenceError as e:
            return ArtifactFailed(f"Audio cannot be rendered: {e}", retryable=False)

        if is_blob_handle(audio_url) or any(is_blob_handle(image) for image in media_set.images):
            return ArtifactFailed("Browser-local blob references cannot be sent to the render service", retryable=False)

        timeline = compute_timeline(media_set.image_count, audio_duration_seconds, self.minimum_slide_seconds)
        frames = duration_in_frames(timeline, self.fps)
        images = list(media_set.images)

        cache_key = f"video-{json.dumps(images)}-{audio_url}-{frames}"
        cached_url = self.cache.get(cache_key)
        if cached_url:
            return ArtifactReady(cached_url)

        try:
            url = await self.client.render(images, audio_url, frames)
        except RenderBackendError as e:
            logger.warning("Render failed: %s", e)
            return ArtifactFailed(str(e))
        except httpx.HTTPError as e:
            logger.warning("Render service unreachable: %s", e)
            return ArtifactFailed(f"Render service request failed: {e}")
        except ValueError as e:
            # Malformed JSON from the render service
            logger.warning("Render service returned an invalid response: %s", e)
            return ArtifactFailed(f"Render service returned an invalid response: {e}")

        self.cache.set(cache_key, url)
        logger.info("Rendered %d slides to %s", media_set.image_count, url)
        return ArtifactReady(url)
