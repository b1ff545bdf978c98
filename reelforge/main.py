"""FastAPI backend for the trending-topic short video generator."""
import logging
import time
from typing import Optional

from fastapi import BackgroundTasks, Depends, FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles

from reelforge import __version__, config
from reelforge.cache import TTLCache
from reelforge.errors import GenerationError, InvalidAudioReferenceError
from reelforge.job_manager import RenderJobManager
from reelforge.models import (
    AudioRequest,
    AudioResponse,
    HealthResponse,
    ImageRequest,
    ImageResponse,
    JobStatus,
    MediaRequest,
    RenderJobResponse,
    ScriptRequest,
    ScriptResponse,
    SlideshowResponse,
    TrendingRequest,
    TrendingResponse,
)
from reelforge.pipeline import (
    ImageGenerator,
    NarrationService,
    RenderClient,
    ScriptGenerator,
    fetch_trending_topics,
)
from reelforge.playback import (
    FallbackRenderer,
    MediaSet,
    compute_timeline,
    normalize_audio_reference,
)

logger = logging.getLogger(__name__)


class Services:
    """Per-app service wrappers, each owning its own cache."""

    def __init__(self, render_client: Optional[RenderClient] = None):
        self.scripts = ScriptGenerator(TTLCache(config.SCRIPT_CACHE_TTL))
        self.images = ImageGenerator(TTLCache(config.IMAGE_CACHE_TTL))
        self.narration = NarrationService(TTLCache(config.AUDIO_CACHE_TTL))
        self.slideshows = TTLCache(config.SLIDESHOW_CACHE_TTL)
        self.videos = TTLCache(config.VIDEO_CACHE_TTL)
        self.render_client = render_client or RenderClient()
        self.jobs = RenderJobManager()

    def clean_up_caches(self) -> int:
        """Evict expired entries from every cache; returns how many were dropped."""
        caches = (self.scripts.cache, self.images.cache, self.narration.cache, self.slideshows, self.videos)
        return sum(cache.clean_up() for cache in caches)

    def new_renderer(self) -> FallbackRenderer:
        return FallbackRenderer(
            client=self.render_client,
            cache=self.videos,
            fps=config.RENDER_FPS,
            minimum_slide_seconds=config.MIN_SLIDE_SECONDS,
        )


# Initialize FastAPI app
app = FastAPI(
    title="Reelforge API",
    description="Turn trending topics into narrated short-form slideshow videos",
    version=__version__,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=config.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

config.AUDIO_DIR.mkdir(parents=True, exist_ok=True)
app.mount(config.AUDIO_URL_PREFIX, StaticFiles(directory=str(config.AUDIO_DIR)), name="audio")

app.state.services = Services()


def get_services(request: Request) -> Services:
    return request.app.state.services


@app.exception_handler(GenerationError)
async def generation_error_handler(request: Request, exc: GenerationError):
    """Vendor failures are retryable from the client's point of view."""
    logger.warning("%s %s failed: %s", request.method, request.url.path, exc.message)
    return JSONResponse(
        status_code=502,
        content={"detail": exc.message, "retryable": exc.retryable},
    )


@app.post("/api/trending", response_model=TrendingResponse)
async def trending_topics(body: TrendingRequest):
    """List current trending topics for a category."""
    try:
        topics = await fetch_trending_topics(body.category)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return TrendingResponse(trendingTopics=topics)


@app.post("/api/generate-script", response_model=ScriptResponse)
async def generate_script(body: ScriptRequest, services: Services = Depends(get_services)):
    """Generate a hook / main content / call-to-action script for a topic."""
    try:
        script = await services.scripts.generate(body.topic, body.category, body.description)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return ScriptResponse(**script)


@app.post("/api/generate-image", response_model=ImageResponse)
async def generate_image(body: ImageRequest, services: Services = Depends(get_services)):
    """Generate one image for a visual beat."""
    try:
        image_url = await services.images.generate(body.prompt, body.unique_id)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return ImageResponse(imageUrl=image_url)


@app.post("/api/generate-audio", response_model=AudioResponse)
async def generate_audio(body: AudioRequest, services: Services = Depends(get_services)):
    """Generate narration audio for the script text."""
    try:
        narration = await services.narration.generate(body.text, body.voice, body.unique_id)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return AudioResponse(**narration)


def _media_set_from(body: MediaRequest) -> MediaSet:
    images = [image for image in body.images if image and image.strip()]
    if not images:
        raise HTTPException(status_code=400, detail="At least one image is required")
    audio = None
    if body.audio_url:
        try:
            audio = normalize_audio_reference(body.audio_url)
        except InvalidAudioReferenceError as e:
            raise HTTPException(status_code=400, detail=str(e))
    return MediaSet(tuple(images), audio)


@app.post("/api/generate-video", response_model=SlideshowResponse)
async def generate_slideshow(body: MediaRequest, services: Services = Depends(get_services)):
    """
    Build the client-side slideshow payload.

    The timeline is computed from the narration length when it is known;
    players recompute it once the audio's metadata loads.
    """
    media_set = _media_set_from(body)

    cache_key = f"slideshow-{body.unique_id}" if body.unique_id else None
    if cache_key:
        cached = services.slideshows.get(cache_key)
        if cached and cached["images"] == list(media_set.images) and cached["audio"] == media_set.audio_track:
            return cached

    timeline = compute_timeline(
        media_set.image_count,
        body.audio_duration_seconds,
        config.MIN_SLIDE_SECONDS,
    )
    slideshow = {
        "images": list(media_set.images),
        "audio": media_set.audio_track,
        "type": "slideshow",
        "timeline": timeline.to_dict(),
        "created": int(time.time() * 1000),
    }
    if cache_key:
        services.clean_up_caches()
        services.slideshows.set(cache_key, slideshow)
    return slideshow


async def process_render(job_id: str, media_set: MediaSet, audio_duration: Optional[float], services: Services):
    """
    Background task resolving a render job to a downloadable artifact.

    The renderer never raises for vendor failures; they arrive as an
    ArtifactFailed result. Anything unexpected still lands on the job.
    """
    try:
        await services.jobs.update_job_progress(job_id, 10, JobStatus.PROCESSING)
        result = await services.new_renderer().request_downloadable_artifact(media_set, audio_duration)
        await services.jobs.complete_job(job_id, result)
    except Exception as e:
        logger.exception("Render job %s crashed", job_id)
        await services.jobs.mark_job_error(job_id, f"Video render failed: {e}")


@app.post("/api/render", response_model=RenderJobResponse)
async def start_render(
    body: MediaRequest,
    background_tasks: BackgroundTasks,
    services: Services = Depends(get_services),
):
    """
    Request a downloadable video.

    Poll ``/api/renders/{job_id}``. A newer request with the same uniqueId
    supersedes this one.
    """
    media_set = _media_set_from(body)
    await services.jobs.cleanup_old_jobs()
    services.clean_up_caches()
    job_id = await services.jobs.create_job(body.unique_id, media_set.image_count)
    background_tasks.add_task(process_render, job_id, media_set, body.audio_duration_seconds, services)
    return RenderJobResponse(jobId=job_id, status=JobStatus.QUEUED, progress=0)


@app.get("/api/renders/{job_id}", response_model=RenderJobResponse)
async def get_render(job_id: str, services: Services = Depends(get_services)):
    """Get the status of a render job."""
    job = await services.jobs.get_job(job_id)
    if not job:
        raise HTTPException(status_code=404, detail="Render job not found")
    return job.to_response()


@app.get("/api/health", response_model=HealthResponse)
async def health_check(services: Services = Depends(get_services)):
    """Health check endpoint."""
    return HealthResponse(status="ok", renderBackend=services.render_client.configured)


@app.on_event("startup")
async def startup_event():
    """Run startup tasks."""
    logging.basicConfig(
        level=config.LOG_LEVEL,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    logger.info("Reelforge API starting (audio dir: %s)", config.AUDIO_DIR)
    if not app.state.services.render_client.configured:
        logger.info("RENDER_API_URL not set; downloads fall back to client-side slideshows")


@app.on_event("shutdown")
async def shutdown_event():
    """Run shutdown tasks."""
    logger.info("Reelforge API shutting down")


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
