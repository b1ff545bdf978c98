"""Tests for the render client and the fallback renderer."""
import asyncio

import httpx
import pytest

from reelforge.cache import TTLCache
from reelforge.errors import RenderBackendError
from reelforge.pipeline.render_client import RenderClient
from reelforge.playback.renderer import (
    SETUP_GUIDANCE,
    ArtifactFailed,
    ArtifactReady,
    ArtifactUnavailable,
    FallbackRenderer,
)
from reelforge.playback.timeline import MediaSet

IMAGES = ("https://img.example.com/1.png", "https://img.example.com/2.png", "https://img.example.com/3.png")
MEDIA = MediaSet(IMAGES, "https://cdn.example.com/voice.mp3")
RENDER_URL = "https://render.example.com"


def json_response(method, url, payload, status=200):
    return httpx.Response(status, json=payload, request=httpx.Request(method, url))


class StubClient:
    """Render client whose renders finish when the test says so."""

    def __init__(self, configured=True):
        self.configured = configured
        self.calls = []
        self.outcomes = {}

    async def render(self, images, audio_url, duration_in_frames):
        call = len(self.calls)
        self.calls.append((images, audio_url, duration_in_frames))
        outcome = self.outcomes.get(call)
        if isinstance(outcome, asyncio.Future):
            outcome = await outcome
        if isinstance(outcome, Exception):
            raise outcome
        return outcome or f"https://videos.example.com/{call}.mp4"


class TestRenderClient:

    @pytest.mark.asyncio
    async def test_immediate_video_url(self, monkeypatch):
        submitted = {}

        async def mock_post(self, url, **kwargs):
            submitted.update(kwargs["json"])
            return json_response("POST", url, {"videoUrl": "https://videos.example.com/a.mp4"})

        monkeypatch.setattr(httpx.AsyncClient, "post", mock_post)
        client = RenderClient(api_url=RENDER_URL, api_key="k", poll_interval=0)

        url = await client.render(list(IMAGES), "https://cdn.example.com/voice.mp3", 900)

        assert url == "https://videos.example.com/a.mp4"
        assert submitted == {
            "images": list(IMAGES),
            "audioUrl": "https://cdn.example.com/voice.mp3",
            "durationInFrames": 900,
        }

    @pytest.mark.asyncio
    async def test_polls_until_succeeded(self, monkeypatch):
        statuses = iter([
            {"status": "rendering"},
            {"status": "rendering"},
            {"status": "succeeded", "url": "https://videos.example.com/b.mp4"},
        ])
        polled = []

        async def mock_post(self, url, **kwargs):
            return json_response("POST", url, {"renderId": "r-1", "status": "planned"})

        async def mock_get(self, url, **kwargs):
            polled.append(url)
            return json_response("GET", url, next(statuses))

        monkeypatch.setattr(httpx.AsyncClient, "post", mock_post)
        monkeypatch.setattr(httpx.AsyncClient, "get", mock_get)
        client = RenderClient(api_url=RENDER_URL, poll_interval=0, poll_attempts=5)

        url = await client.render(list(IMAGES), "https://cdn.example.com/voice.mp3", 300)

        assert url == "https://videos.example.com/b.mp4"
        assert polled == [f"{RENDER_URL}/renders/r-1"] * 3

    @pytest.mark.asyncio
    async def test_failed_render_raises_without_resubmitting(self, monkeypatch):
        posts = []

        async def mock_post(self, url, **kwargs):
            posts.append(url)
            return json_response("POST", url, {"renderId": "r-2"})

        async def mock_get(self, url, **kwargs):
            return json_response("GET", url, {"status": "failed", "error": "Source image unreachable"})

        monkeypatch.setattr(httpx.AsyncClient, "post", mock_post)
        monkeypatch.setattr(httpx.AsyncClient, "get", mock_get)
        client = RenderClient(api_url=RENDER_URL, poll_interval=0)

        with pytest.raises(RenderBackendError, match="Source image unreachable"):
            await client.render(list(IMAGES), "https://cdn.example.com/voice.mp3", 300)
        assert len(posts) == 1

    @pytest.mark.asyncio
    async def test_poll_budget_exhausted(self, monkeypatch):
        async def mock_post(self, url, **kwargs):
            return json_response("POST", url, {"renderId": "r-3"})

        async def mock_get(self, url, **kwargs):
            return json_response("GET", url, {"status": "rendering"})

        monkeypatch.setattr(httpx.AsyncClient, "post", mock_post)
        monkeypatch.setattr(httpx.AsyncClient, "get", mock_get)
        client = RenderClient(api_url=RENDER_URL, poll_interval=0, poll_attempts=2)

        with pytest.raises(RenderBackendError, match="did not finish"):
            await client.render(list(IMAGES), "https://cdn.example.com/voice.mp3", 300)

    @pytest.mark.asyncio
    async def test_non_object_submit_response_raises(self, monkeypatch):
        async def mock_post(self, url, **kwargs):
            return json_response("POST", url, ["queued"])

        monkeypatch.setattr(httpx.AsyncClient, "post", mock_post)
        client = RenderClient(api_url=RENDER_URL, poll_interval=0)

        with pytest.raises(RenderBackendError, match="list instead of a JSON object"):
            await client.render(list(IMAGES), "https://cdn.example.com/voice.mp3", 300)

    @pytest.mark.asyncio
    async def test_null_status_response_raises(self, monkeypatch):
        async def mock_post(self, url, **kwargs):
            return json_response("POST", url, {"renderId": "r-4"})

        async def mock_get(self, url, **kwargs):
            return httpx.Response(200, content=b"null", request=httpx.Request("GET", url))

        monkeypatch.setattr(httpx.AsyncClient, "post", mock_post)
        monkeypatch.setattr(httpx.AsyncClient, "get", mock_get)
        client = RenderClient(api_url=RENDER_URL, poll_interval=0)

        with pytest.raises(RenderBackendError, match="NoneType"):
            await client.render(list(IMAGES), "https://cdn.example.com/voice.mp3", 300)

    def test_unconfigured_without_url(self):
        assert RenderClient(api_url="").configured is False
        assert RenderClient(api_url=RENDER_URL + "/").api_url == RENDER_URL


class TestFallbackRenderer:

    @pytest.mark.asyncio
    async def test_unconfigured_backend_gives_guidance(self):
        renderer = FallbackRenderer(client=StubClient(configured=False), cache=TTLCache(60))

        result = await renderer.request_downloadable_artifact(MEDIA)

        assert isinstance(result, ArtifactUnavailable)
        assert result.kind == "unavailable"
        assert result.guidance == SETUP_GUIDANCE
        assert renderer.current == result

    @pytest.mark.asyncio
    async def test_successful_render(self):
        client = StubClient()
        renderer = FallbackRenderer(client=client, cache=TTLCache(60), fps=30)

        result = await renderer.request_downloadable_artifact(MEDIA, audio_duration_seconds=45.0)

        assert result == ArtifactReady("https://videos.example.com/0.mp4")
        assert client.calls == [(list(IMAGES), "https://cdn.example.com/voice.mp3", 1350)]

    @pytest.mark.asyncio
    async def test_frames_cover_floored_timeline(self):
        client = StubClient()
        renderer = FallbackRenderer(client=client, cache=TTLCache(60), fps=30, minimum_slide_seconds=2.0)

        await renderer.request_downloadable_artifact(MEDIA, audio_duration_seconds=1.0)

        assert client.calls[0][2] == 180

    @pytest.mark.asyncio
    async def test_identical_request_served_from_cache(self):
        client = StubClient()
        renderer = FallbackRenderer(client=client, cache=TTLCache(60))

        first = await renderer.request_downloadable_artifact(MEDIA, 30.0)
        second = await renderer.request_downloadable_artifact(MEDIA, 30.0)

        assert first == second
        assert len(client.calls) == 1

    @pytest.mark.asyncio
    async def test_failure_is_reported_not_retried(self):
        client = StubClient()
        client.outcomes[0] = RenderBackendError("quota exceeded")
        renderer = FallbackRenderer(client=client, cache=TTLCache(60))

        result = await renderer.request_downloadable_artifact(MEDIA, 30.0)

        assert isinstance(result, ArtifactFailed)
        assert result.retryable is True
        assert "quota exceeded" in result.reason
        assert len(client.calls) == 1

    @pytest.mark.asyncio
    async def test_transport_error_is_a_failed_artifact(self):
        client = StubClient()
        client.outcomes[0] = httpx.ConnectError("Connection refused")
        renderer = FallbackRenderer(client=client, cache=TTLCache(60))

        result = await renderer.request_downloadable_artifact(MEDIA, 30.0)

        assert result.kind == "failed"
        assert result.retryable is True

    @pytest.mark.asyncio
    async def test_non_object_response_is_a_failed_artifact(self, monkeypatch):
        async def mock_post(self, url, **kwargs):
            return json_response("POST", url, ["queued"])

        monkeypatch.setattr(httpx.AsyncClient, "post", mock_post)
        renderer = FallbackRenderer(client=RenderClient(api_url=RENDER_URL, poll_interval=0), cache=TTLCache(60))

        result = await renderer.request_downloadable_artifact(MEDIA, 30.0)

        assert isinstance(result, ArtifactFailed)
        assert result.retryable is True
        assert not renderer.is_pending

    @pytest.mark.asyncio
    async def test_unexpected_error_clears_pending(self):
        client = StubClient()
        client.outcomes[0] = RuntimeError("boom")
        renderer = FallbackRenderer(client=client, cache=TTLCache(60))

        with pytest.raises(RuntimeError):
            await renderer.request_downloadable_artifact(MEDIA, 30.0)

        assert not renderer.is_pending
        assert renderer.current is None

    @pytest.mark.asyncio
    async def test_already_normalised_url_is_sent_unchanged(self):
        client = StubClient()
        renderer = FallbackRenderer(client=client, cache=TTLCache(60))
        media = MEDIA.with_audio("https://cdn.example.com/tts/1234?type=audio/mpeg")

        await renderer.request_downloadable_artifact(media, 10.0)

        assert client.calls[0][1] == "https://cdn.example.com/tts/1234?type=audio/mpeg"

    @pytest.mark.asyncio
    async def test_mislabelled_data_uri_is_normalised_before_submission(self):
        client = StubClient()
        renderer = FallbackRenderer(client=client, cache=TTLCache(60))
        media = MEDIA.with_audio("data:text/plain;base64,SUQzAwAAAA==")

        await renderer.request_downloadable_artifact(media, 10.0)

        assert client.calls[0][1] == "data:audio/mpeg;base64,SUQzAwAAAA=="

    @pytest.mark.asyncio
    async def test_undecodable_audio_is_rejected_without_calling_backend(self):
        client = StubClient()
        renderer = FallbackRenderer(client=client, cache=TTLCache(60))
        media = MEDIA.with_audio("data:audio/mpeg;base64,%%%")

        result = await renderer.request_downloadable_artifact(media, 10.0)

        assert isinstance(result, ArtifactFailed)
        assert result.retryable is False
        assert client.calls == []

    @pytest.mark.asyncio
    async def test_missing_audio_is_rejected(self):
        client = StubClient()
        renderer = FallbackRenderer(client=client, cache=TTLCache(60))

        result = await renderer.request_downloadable_artifact(MediaSet(IMAGES))

        assert isinstance(result, ArtifactFailed)
        assert result.retryable is False
        assert client.calls == []

    @pytest.mark.asyncio
    async def test_blob_images_are_rejected(self):
        client = StubClient()
        renderer = FallbackRenderer(client=client, cache=TTLCache(60))
        media = MEDIA.with_images(["blob:https://app.example.com/123"])

        result = await renderer.request_downloadable_artifact(media, 10.0)

        assert result.kind == "failed"
        assert client.calls == []


class TestSupersession:

    @pytest.mark.asyncio
    async def test_late_result_does_not_overwrite_newer_request(self):
        loop = asyncio.get_running_loop()
        client = StubClient()
        slow_a = loop.create_future()
        client.outcomes[0] = slow_a
        renderer = FallbackRenderer(client=client, cache=TTLCache(60))

        task_a = asyncio.ensure_future(renderer.request_downloadable_artifact(MEDIA, 30.0))
        await asyncio.sleep(0)
        regenerated = MEDIA.with_images(IMAGES[:2])
        result_b = await renderer.request_downloadable_artifact(regenerated, 30.0)
        assert renderer.current == result_b

        slow_a.set_result("https://videos.example.com/stale.mp4")
        result_a = await task_a

        assert result_a == ArtifactReady("https://videos.example.com/stale.mp4")
        assert renderer.current == result_b
        assert not renderer.is_pending

    @pytest.mark.asyncio
    async def test_supersede_discards_in_flight_request(self):
        loop = asyncio.get_running_loop()
        client = StubClient()
        slow = loop.create_future()
        client.outcomes[0] = slow
        renderer = FallbackRenderer(client=client, cache=TTLCache(60))

        task = asyncio.ensure_future(renderer.request_downloadable_artifact(MEDIA, 30.0))
        await asyncio.sleep(0)
        assert renderer.is_pending

        renderer.supersede()
        slow.set_result("https://videos.example.com/old.mp4")
        await task

        assert renderer.current is None
        assert not renderer.is_pending
