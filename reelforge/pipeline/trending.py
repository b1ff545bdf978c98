"""Trending topic discovery per category."""
import json
import logging
import re
from typing import Any, Dict, List

from reelforge.pipeline.llm import complete_chat, strip_code_fences

logger = logging.getLogger(__name__)

CATEGORIES = (
    "technology",
    "science",
    "news",
    "facts",
    "myths",
    "health",
    "entertainment",
    "sports",
    "finance",
    "education",
    "space_exploration",
)

TRENDING_PROMPT = """You are a viral trend analyst specializing in {category}.
Identify the 10 most recent trending topics in {category} from the LAST 5-6 DAYS that have HIGH VIRAL POTENTIAL.
Only include real, current topics. Do not invent topics.

For each trending topic, provide:
- title: A concise, catchy title for the trend
- description: A clear explanation of what the trend is about (1-2 sentences)
- viralScore: A number between 70-100 representing viral potential (higher = more viral)
- dateStarted: The date when this topic started trending
- estimatedPopularity: One of "medium", "high", or "very high"

Format your response as VALID JSON ONLY: {{"trendingTopics": [...array of topic objects...]}}
Do NOT include any markdown formatting or text outside the JSON structure."""

TRENDING_JSON_PATTERN = re.compile(r'\{[\s\S]*"trendingTopics"[\s\S]*\}')


def _topics_from(data: Any) -> List[Dict[str, Any]]:
    if isinstance(data, dict):
        topics = data.get("trendingTopics", data.get("topics"))
        if isinstance(topics, list):
            return [t for t in topics if isinstance(t, dict) and t.get("title")]
    raise ValueError("Invalid response structure")


def parse_trending_topics(output: str) -> List[Dict[str, Any]]:
    """
    Extract the topic list from an LLM answer.

    Tries the whole answer (minus code fences) first, then the first JSON
    object mentioning ``trendingTopics``. Unparseable answers yield [].
    """
    try:
        return _topics_from(json.loads(strip_code_fences(output)))
    except ValueError:
        pass

    match = TRENDING_JSON_PATTERN.search(output)
    if match:
        try:
            return _topics_from(json.loads(match.group(0)))
        except ValueError:
            pass

    logger.warning("Could not parse trending topics from LLM output")
    return []


async def fetch_trending_topics(category: str) -> List[Dict[str, Any]]:
    """Ask the LLM for current trending topics in a category."""
    if not category or not category.strip():
        raise ValueError("Category is required")

    output = await complete_chat(
        [{"role": "user", "content": TRENDING_PROMPT.format(category=category)}],
    )
    topics = parse_trending_topics(output or '{"trendingTopics": []}')
    for topic in topics:
        topic.setdefault("category", category)
    return topics
