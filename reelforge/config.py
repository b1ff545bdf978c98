"""Runtime configuration read from the environment."""
import os
from pathlib import Path

BASE_DIR = Path(__file__).parent

# OpenAI-compatible LLM endpoint used for scripts and trending topics
LLM_API_URL = os.getenv("LLM_API_URL", "https://api.openai.com/v1/chat/completions")
LLM_API_KEY = os.getenv("LLM_API_KEY", os.getenv("OPENAI_API_KEY", ""))
LLM_MODEL = os.getenv("LLM_MODEL", "gpt-4o")
LLM_TIMEOUT = float(os.getenv("LLM_TIMEOUT", "120"))

# Image generation
IMAGE_API_URL = os.getenv("IMAGE_API_URL", "https://api.openai.com/v1/images/generations")
IMAGE_MODEL = os.getenv("IMAGE_MODEL", "dall-e-3")
IMAGE_SIZE = os.getenv("IMAGE_SIZE", "1024x1024")

# Narration
TTS_VOICE = os.getenv("TTS_VOICE", "en-US-JennyNeural")
AUDIO_DIR = Path(os.environ.get("AUDIO_DIR", str(BASE_DIR / "audio")))
AUDIO_URL_PREFIX = "/audio"

# Cloud rendering (optional; unset means client-side slideshow only)
RENDER_API_URL = os.getenv("RENDER_API_URL", "")
RENDER_API_KEY = os.getenv("RENDER_API_KEY", "")
RENDER_FPS = int(os.getenv("RENDER_FPS", "30"))
RENDER_POLL_INTERVAL = float(os.getenv("RENDER_POLL_INTERVAL", "5"))
RENDER_POLL_ATTEMPTS = int(os.getenv("RENDER_POLL_ATTEMPTS", "60"))

# Cache lifetimes in seconds
SCRIPT_CACHE_TTL = float(os.getenv("SCRIPT_CACHE_TTL", str(60 * 60)))
IMAGE_CACHE_TTL = float(os.getenv("IMAGE_CACHE_TTL", str(24 * 60 * 60)))
AUDIO_CACHE_TTL = float(os.getenv("AUDIO_CACHE_TTL", str(24 * 60 * 60)))
SLIDESHOW_CACHE_TTL = float(os.getenv("SLIDESHOW_CACHE_TTL", str(24 * 60 * 60)))
VIDEO_CACHE_TTL = float(os.getenv("VIDEO_CACHE_TTL", str(12 * 60 * 60)))

# Slide timing
MIN_SLIDE_SECONDS = float(os.getenv("MIN_SLIDE_SECONDS", "2.0"))

CORS_ORIGINS = [o.strip() for o in os.getenv("CORS_ORIGINS", "*").split(",") if o.strip()]

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
