"""Short-form video script generation via LLM."""
import json
import logging
from typing import Any, Dict, List, Optional

from reelforge import config
from reelforge.cache import TTLCache
from reelforge.errors import GenerationError
from reelforge.pipeline.llm import complete_chat, strip_code_fences

logger = logging.getLogger(__name__)

SCRIPT_SYSTEM_PROMPT = """You are an expert scriptwriter for viral short-form videos.
Create a 60-90 second script for a video on {topic} in the {category} category.
{context}
The script should be extremely engaging, catchy, and optimized for social media to maximize shares and subscribers.
Grab attention in the first 3 seconds, create an emotional connection, and end with a strong call to action.

Return your response in the EXACT following JSON format:
{{
  "hook": "A 5-7 second attention-grabbing opening that immediately hooks the viewer",
  "mainContent": "40-60 seconds of informative, entertaining content about the topic",
  "callToAction": "A 5-7 second compelling call to action that encourages subscriptions",
  "suggestedVisuals": ["Visual 1", "Visual 2", "Visual 3", "Visual 4", "Visual 5"]
}}

For suggestedVisuals, describe whimsical, painterly scenes with soft vibrant colors, natural elements
and dreamlike lighting, each clearly tied to the script content.

Respond with ONLY valid JSON, no markdown and no explanations. Use the EXACT field names shown above."""

SCRIPT_USER_PROMPT = (
    'Write a highly engaging script for a viral short video about "{topic}" in the {category} category.'
    "{context} Make it catchy enough to attract subscribers."
)

# Alternative keys some models use instead of the requested ones
HOOK_KEYS = ("Hook", "opening", "Opening", "introduction", "Introduction")
MAIN_CONTENT_KEYS = ("MainContent", "main_content", "content", "Content", "body", "Body")
CALL_TO_ACTION_KEYS = ("CallToAction", "call_to_action", "cta", "CTA", "conclusion", "Conclusion")
VISUALS_KEYS = ("suggestedVisuals", "SuggestedVisuals", "suggested_visuals", "visuals", "Visuals")


def _find_value(data: Dict[str, Any], keys) -> str:
    for key in keys:
        value = data.get(key)
        if value and isinstance(value, str):
            return value
    return ""


def _find_visuals(data: Dict[str, Any]) -> List[str]:
    for key in VISUALS_KEYS:
        value = data.get(key)
        if isinstance(value, list):
            return [str(v) for v in value if v]
    return []


def parse_script(content: str) -> Dict[str, Any]:
    """
    Parse an LLM answer into a script dict, tolerating alternate field names.

    Raises:
        GenerationError: If the answer is not JSON or carries no script text
    """
    try:
        data = json.loads(strip_code_fences(content))
    except json.JSONDecodeError as e:
        raise GenerationError("Invalid script format received") from e

    if not isinstance(data, dict):
        raise GenerationError("Invalid script format received")

    script = {
        "hook": data.get("hook") if isinstance(data.get("hook"), str) else "",
        "mainContent": data.get("mainContent") if isinstance(data.get("mainContent"), str) else "",
        "callToAction": data.get("callToAction") if isinstance(data.get("callToAction"), str) else "",
        "suggestedVisuals": _find_visuals(data),
    }

    if not (script["hook"] or script["mainContent"] or script["callToAction"]):
        script["hook"] = _find_value(data, HOOK_KEYS)
        script["mainContent"] = _find_value(data, MAIN_CONTENT_KEYS)
        script["callToAction"] = _find_value(data, CALL_TO_ACTION_KEYS)

    if not (script["hook"] or script["mainContent"] or script["callToAction"]):
        raise GenerationError("Script response did not contain any script text")

    return script


def script_cache_key(topic: str, category: str, description: Optional[str] = None) -> str:
    if description:
        return f"script-{category}-{topic}-{description[:20]}"
    return f"script-{category}-{topic}"


class ScriptGenerator:
    """Generates and caches video scripts for a topic."""

    def __init__(self, cache: Optional[TTLCache] = None):
        self.cache = cache if cache is not None else TTLCache(config.SCRIPT_CACHE_TTL)

    async def generate(self, topic: str, category: str, description: Optional[str] = None) -> Dict[str, Any]:
        if not topic or not topic.strip() or not category or not category.strip():
            raise ValueError("Topic and category are required")

        key = script_cache_key(topic, category, description)
        cached = self.cache.get(key)
        if cached:
            logger.debug("Script cache hit for %s", key)
            return cached

        context = f"Additional context about the topic: {description}" if description else ""
        user_context = f" The topic is about: {description}" if description else ""
        content = await complete_chat([
            {
                "role": "system",
                "content": SCRIPT_SYSTEM_PROMPT.format(topic=topic, category=category, context=context),
            },
            {
                "role": "user",
                "content": SCRIPT_USER_PROMPT.format(topic=topic, category=category, context=user_context),
            },
        ])

        script = parse_script(content)
        self.cache.set(key, script)
        return script
