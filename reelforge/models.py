"""Pydantic models for the reelforge API."""
from enum import Enum
from typing import List, Optional, Union

from pydantic import BaseModel, Field


class JobStatus(str, Enum):
    """Status of a render job."""
    QUEUED = "queued"
    PROCESSING = "processing"
    COMPLETE = "complete"
    ERROR = "error"
    SUPERSEDED = "superseded"


class TrendingRequest(BaseModel):
    category: str = Field(..., min_length=1)


class TrendingTopic(BaseModel):
    title: str
    description: str = ""
    viral_score: Optional[Union[int, float]] = Field(None, alias="viralScore")
    date_started: Optional[str] = Field(None, alias="dateStarted")
    estimated_popularity: Optional[str] = Field(None, alias="estimatedPopularity")
    category: Optional[str] = None

    class Config:
        populate_by_name = True


class TrendingResponse(BaseModel):
    trending_topics: List[TrendingTopic] = Field(default_factory=list, alias="trendingTopics")

    class Config:
        populate_by_name = True


class ScriptRequest(BaseModel):
    """Request model for script generation."""
    topic: str = Field(..., min_length=1)
    category: str = Field(..., min_length=1)
    description: Optional[str] = None

    class Config:
        json_schema_extra = {
            "example": {
                "topic": "Solar sails reach interstellar space",
                "category": "space_exploration",
                "description": "A light-powered probe just crossed the heliopause",
            }
        }


class ScriptResponse(BaseModel):
    hook: str
    main_content: str = Field(..., alias="mainContent")
    call_to_action: str = Field(..., alias="callToAction")
    suggested_visuals: List[str] = Field(default_factory=list, alias="suggestedVisuals")

    class Config:
        populate_by_name = True


class ImageRequest(BaseModel):
    prompt: str = Field(..., min_length=1)
    unique_id: Optional[str] = Field(None, alias="uniqueId")

    class Config:
        populate_by_name = True


class ImageResponse(BaseModel):
    image_url: str = Field(..., alias="imageUrl")

    class Config:
        populate_by_name = True


class AudioRequest(BaseModel):
    text: str = Field(..., min_length=1)
    voice: Optional[str] = None
    unique_id: Optional[str] = Field(None, alias="uniqueId")

    class Config:
        populate_by_name = True


class AudioResponse(BaseModel):
    audio_url: str = Field(..., alias="audioUrl")
    duration_seconds: Optional[float] = Field(None, alias="durationSeconds")

    class Config:
        populate_by_name = True


class MediaRequest(BaseModel):
    """Images plus narration for a slideshow or render."""
    images: List[str] = Field(..., min_length=1)
    audio_url: Optional[str] = Field(None, alias="audioUrl")
    unique_id: Optional[str] = Field(None, alias="uniqueId")
    audio_duration_seconds: Optional[float] = Field(None, ge=0, alias="audioDurationSeconds")

    class Config:
        populate_by_name = True
        json_schema_extra = {
            "example": {
                "images": ["https://example.com/1.png", "https://example.com/2.png"],
                "audioUrl": "/audio/17291234567-en-US-JennyNeural.mp3",
                "uniqueId": "solar-sails-video",
                "audioDurationSeconds": 42.5,
            }
        }


class SlideIntervalModel(BaseModel):
    start: float
    end: float


class TimelineModel(BaseModel):
    total_duration: float = Field(..., alias="totalDuration")
    audio_duration: Optional[float] = Field(None, alias="audioDuration")
    slide_duration: float = Field(..., alias="slideDuration")
    slide_intervals: List[SlideIntervalModel] = Field(..., alias="slideIntervals")

    class Config:
        populate_by_name = True


class SlideshowResponse(BaseModel):
    images: List[str]
    audio: Optional[str] = None
    type: str = "slideshow"
    timeline: TimelineModel
    created: int

    class Config:
        populate_by_name = True


class RenderJobResponse(BaseModel):
    """Response model for render job status."""
    job_id: str = Field(..., alias="jobId")
    status: JobStatus
    progress: int = Field(ge=0, le=100, description="Progress percentage (0-100)")
    kind: Optional[str] = Field(None, description="ready, unavailable or failed once finished")
    url: Optional[str] = Field(None, description="Download URL when kind is ready")
    guidance: Optional[List[str]] = Field(None, description="Setup steps when kind is unavailable")
    reason: Optional[str] = Field(None, description="Failure reason when kind is failed")
    retryable: Optional[bool] = None

    class Config:
        populate_by_name = True
        json_schema_extra = {
            "example": {
                "jobId": "550e8400-e29b-41d4-a716-446655440000",
                "status": "complete",
                "progress": 100,
                "kind": "ready",
                "url": "https://renders.example.com/550e8400/out.mp4",
            }
        }


class HealthResponse(BaseModel):
    """Health check response."""
    status: str = "ok"
    render_backend: bool = Field(False, alias="renderBackend")

    class Config:
        populate_by_name = True
