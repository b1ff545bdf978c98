"""Thin client for an OpenAI-compatible chat completions endpoint."""
import logging
import re
from typing import Dict, List

import httpx

from reelforge import config
from reelforge.errors import GenerationError

logger = logging.getLogger(__name__)

CODE_FENCE_PATTERN = re.compile(r"```(?:json)?\n?|\n?```")


def strip_code_fences(text: str) -> str:
    """Remove markdown code fences some models wrap JSON answers in."""
    return CODE_FENCE_PATTERN.sub("", text.strip()).strip()


async def complete_chat(
    messages: List[Dict[str, str]],
    json_mode: bool = True,
    temperature: float = 0.8,
) -> str:
    """
    Run a chat completion and return the assistant message text.

    Raises:
        GenerationError: On transport/HTTP failure or an unexpected response shape
    """
    payload = {
        "model": config.LLM_MODEL,
        "messages": messages,
        "temperature": temperature,
    }
    if json_mode:
        payload["response_format"] = {"type": "json_object"}

    headers = {}
    if config.LLM_API_KEY:
        headers["Authorization"] = f"Bearer {config.LLM_API_KEY}"

    try:
        async with httpx.AsyncClient(timeout=config.LLM_TIMEOUT) as client:
            response = await client.post(config.LLM_API_URL, json=payload, headers=headers)
            response.raise_for_status()
            data = response.json()
    except httpx.HTTPError as e:
        logger.warning("LLM request failed: %s", e)
        raise GenerationError(f"LLM request failed: {e}") from e
    except ValueError as e:
        raise GenerationError("LLM returned a non-JSON response") from e

    try:
        return data["choices"][0]["message"]["content"] or ""
    except (KeyError, IndexError, TypeError) as e:
        raise GenerationError("LLM response is missing message content") from e
