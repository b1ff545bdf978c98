"""HTTP client for the optional cloud video render service."""
import asyncio
import logging
from typing import Any, Dict, List, Optional

import httpx

from reelforge import config
from reelforge.errors import RenderBackendError

logger = logging.getLogger(__name__)

# Status strings the render service reports while a job is in flight
PENDING_STATUSES = {"queued", "planned", "waiting", "rendering", "processing", "transcribing"}
SUCCESS_STATUSES = {"succeeded", "success", "done", "complete", "completed"}
FAILURE_STATUSES = {"failed", "error", "cancelled"}

URL_FIELDS = ("videoUrl", "url", "renderUrl", "outputUrl")


def _find_url(payload: Dict[str, Any]) -> Optional[str]:
    for key in URL_FIELDS:
        value = payload.get(key)
        if isinstance(value, str) and value:
            return value
    return None


def _json_object(response: httpx.Response) -> Dict[str, Any]:
    data = response.json()
    if not isinstance(data, dict):
        raise RenderBackendError(f"Render service returned {type(data).__name__} instead of a JSON object")
    return data


class RenderClient:
    """
    Submits slideshow renders and polls them to a downloadable URL.

    An empty ``api_url`` means no render backend is configured, which is a
    normal condition: callers check ``configured`` and fall back to
    client-side playback.
    """

    def __init__(
        self,
        api_url: Optional[str] = None,
        api_key: Optional[str] = None,
        poll_interval: Optional[float] = None,
        poll_attempts: Optional[int] = None,
        timeout: float = 60.0,
    ):
        self.api_url = (config.RENDER_API_URL if api_url is None else api_url).rstrip("/")
        self.api_key = config.RENDER_API_KEY if api_key is None else api_key
        self.poll_interval = config.RENDER_POLL_INTERVAL if poll_interval is None else poll_interval
        self.poll_attempts = config.RENDER_POLL_ATTEMPTS if poll_attempts is None else poll_attempts
        self.timeout = timeout

    @property
    def configured(self) -> bool:
        return bool(self.api_url)

    def _headers(self) -> Dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"
        return headers

    async def submit(self, images: List[str], audio_url: str, duration_in_frames: int) -> Dict[str, Any]:
        """Start a render. Returns the service's JSON (``renderId`` and/or ``videoUrl``)."""
        if not self.configured:
            raise RenderBackendError("Render service is not configured")

        async with httpx.AsyncClient(timeout=self.timeout) as client:
            response = await client.post(
                f"{self.api_url}/renders",
                json={
                    "images": images,
                    "audioUrl": audio_url,
                    "durationInFrames": duration_in_frames,
                },
                headers=self._headers(),
            )
            response.raise_for_status()
            return _json_object(response)

    async def get_status(self, render_id: str) -> Dict[str, Any]:
        async with httpx.AsyncClient(timeout=self.timeout) as client:
            response = await client.get(
                f"{self.api_url}/renders/{render_id}",
                headers=self._headers(),
            )
            response.raise_for_status()
            return _json_object(response)

    async def render(self, images: List[str], audio_url: str, duration_in_frames: int) -> str:
        """
        Submit a render and wait for its output URL.

        Polling an accepted render is not a retry: a failed render raises
        immediately and is never resubmitted.

        Raises:
            RenderBackendError: If the service fails the render, answers
                without an id or URL, or never finishes within the poll budget
            httpx.HTTPError: On transport or HTTP status failures
        """
        submitted = await self.submit(images, audio_url, duration_in_frames)
        status = str(submitted.get("status", "")).lower()
        if status in FAILURE_STATUSES:
            raise RenderBackendError(submitted.get("error") or "Render was rejected")

        url = _find_url(submitted)
        if url and status not in PENDING_STATUSES:
            return url

        render_id = submitted.get("renderId") or submitted.get("id")
        if not render_id:
            raise RenderBackendError("Render service returned neither a render id nor a video URL")

        logger.info("Render %s submitted, polling for completion", render_id)
        for _ in range(self.poll_attempts):
            await asyncio.sleep(self.poll_interval)
            state = await self.get_status(render_id)
            status = str(state.get("status", "")).lower()

            if status in FAILURE_STATUSES:
                raise RenderBackendError(state.get("error") or f"Render {render_id} failed")
            if status in SUCCESS_STATUSES:
                url = _find_url(state)
                if not url:
                    raise RenderBackendError(f"Render {render_id} finished without a video URL")
                return url
            if status and status not in PENDING_STATUSES:
                logger.warning("Unknown render status %r for %s", status, render_id)

        raise RenderBackendError(f"Render {render_id} did not finish in time")
