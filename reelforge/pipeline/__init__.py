"""Generation pipeline: scripts, images, narration, trending topics and cloud renders."""
from .script_generator import ScriptGenerator, parse_script
from .image_generator import ImageGenerator, clean_prompt
from .narration import NarrationService, synthesize_speech, list_available_voices
from .trending import fetch_trending_topics, parse_trending_topics, CATEGORIES
from .render_client import RenderClient

__all__ = [
    "ScriptGenerator",
    "parse_script",
    "ImageGenerator",
    "clean_prompt",
    "NarrationService",
    "synthesize_speech",
    "list_available_voices",
    "fetch_trending_topics",
    "parse_trending_topics",
    "CATEGORIES",
    "RenderClient",
]
