"""Text-to-image generation for the script's visual beats."""
import logging
import re
from typing import Optional

import httpx

from reelforge import config
from reelforge.cache import TTLCache
from reelforge.errors import GenerationError

logger = logging.getLogger(__name__)

STYLE_PROMPT = (
    "Create a Studio Ghibli style image with whimsical, painterly aesthetics. "
    "Use soft, vibrant colors, attention to natural elements, and dreamlike lighting. "
    "The image should be suitable for a short social media video about: {prompt}. "
    "Keep a hand-drawn animation look with detailed backgrounds and charming character design."
)

LABEL_PREFIX_PATTERN = re.compile(r"^[^:]+:\s*")


def clean_prompt(prompt: str) -> str:
    """Drop a leading ``Visual 1:`` style label from a visual description."""
    return LABEL_PREFIX_PATTERN.sub("", prompt, count=1).strip()


def image_cache_key(prompt: str, unique_id: Optional[str] = None) -> str:
    # Identical prompts from different topics get different images
    if unique_id:
        return f"image-{unique_id}-{prompt}"
    return f"image-{prompt}"


class ImageGenerator:
    """Generates one image per prompt, cached per topic."""

    def __init__(self, cache: Optional[TTLCache] = None, timeout: float = 120.0):
        self.cache = cache if cache is not None else TTLCache(config.IMAGE_CACHE_TTL)
        self.timeout = timeout

    async def generate(self, prompt: str, unique_id: Optional[str] = None) -> str:
        """
        Generate an image and return its URL (or a data URI for base64 answers).

        Raises:
            ValueError: If the prompt is empty
            GenerationError: If the image service fails or returns no image
        """
        if not prompt or not prompt.strip():
            raise ValueError("Prompt is required")

        key = image_cache_key(prompt, unique_id)
        cached = self.cache.get(key)
        if cached:
            return cached

        headers = {}
        if config.LLM_API_KEY:
            headers["Authorization"] = f"Bearer {config.LLM_API_KEY}"

        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                response = await client.post(
                    config.IMAGE_API_URL,
                    json={
                        "model": config.IMAGE_MODEL,
                        "prompt": STYLE_PROMPT.format(prompt=clean_prompt(prompt)),
                        "n": 1,
                        "size": config.IMAGE_SIZE,
                        "response_format": "url",
                    },
                    headers=headers,
                )
                response.raise_for_status()
                data = response.json()
        except httpx.HTTPError as e:
            logger.warning("Image generation failed: %s", e)
            raise GenerationError(f"Image generation failed: {e}") from e
        except ValueError as e:
            raise GenerationError("Image service returned a non-JSON response") from e

        image_url = _extract_image(data)
        if not image_url:
            raise GenerationError("No image URL returned from the image service")

        self.cache.set(key, image_url)
        return image_url


def _extract_image(data) -> Optional[str]:
    try:
        item = data["data"][0]
    except (KeyError, IndexError, TypeError):
        return None
    if not isinstance(item, dict):
        return None
    if item.get("url"):
        return item["url"]
    if item.get("b64_json"):
        return f"data:image/png;base64,{item['b64_json']}"
    return None
