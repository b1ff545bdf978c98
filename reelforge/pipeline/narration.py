"""Narration audio using edge-tts with gTTS fallback."""
import asyncio
import logging
import random
import time
from pathlib import Path
from typing import Any, Dict, List, Optional

import aiofiles
import edge_tts
from gtts import gTTS

try:
    # moviepy 2.x
    from moviepy import AudioFileClip
except ImportError:
    # moviepy 1.x
    from moviepy.editor import AudioFileClip

from reelforge import config
from reelforge.cache import TTLCache
from reelforge.errors import GenerationError

logger = logging.getLogger(__name__)

# Short voice names accepted from clients, mapped to edge-tts voices
VOICE_ALIASES = {
    "alloy": "en-US-JennyNeural",
    "echo": "en-US-GuyNeural",
    "fable": "en-GB-SoniaNeural",
    "onyx": "en-US-ChristopherNeural",
    "nova": "en-US-AriaNeural",
    "shimmer": "en-US-MichelleNeural",
}


def resolve_voice(voice: Optional[str]) -> str:
    if not voice:
        return config.TTS_VOICE
    return VOICE_ALIASES.get(voice.lower(), voice)


async def synthesize_speech(text: str, output_path: str, voice: str) -> Dict[str, Any]:
    """
    Write narration for ``text`` to ``output_path`` as MP3.

    Args:
        text: Narration text
        output_path: Destination MP3 path
        voice: edge-tts voice name

    Returns:
        Dict with keys:
            - audio_path: Path to the generated audio file
            - word_timings: List of {word, start_ms, end_ms} from edge-tts
              WordBoundary events (None if gTTS fallback was used)
            - engine: "edge-tts" or "gtts"
    """
    Path(output_path).parent.mkdir(parents=True, exist_ok=True)

    try:
        communicate = edge_tts.Communicate(text, voice, boundary="WordBoundary")
        audio_chunks = []
        word_timings: Optional[List[Dict[str, Any]]] = []
        async for chunk in communicate.stream():
            if chunk["type"] == "audio":
                audio_chunks.append(chunk["data"])
            elif chunk["type"] == "WordBoundary":
                start_ms = chunk["offset"] // 10000  # 100-ns ticks to ms
                word_timings.append({
                    "word": chunk["text"],
                    "start_ms": start_ms,
                    "end_ms": start_ms + chunk["duration"] // 10000,
                })

        if not audio_chunks:
            raise GenerationError("edge-tts produced no audio")

        async with aiofiles.open(output_path, "wb") as f:
            for chunk in audio_chunks:
                await f.write(chunk)
        engine = "edge-tts"

    except Exception as e:
        logger.warning("edge-tts failed (%s), falling back to gTTS", e)
        try:
            tts = gTTS(text=text, lang="en")
            await asyncio.to_thread(tts.save, output_path)
        except Exception as fallback_error:
            raise GenerationError(f"Speech synthesis failed: {fallback_error}") from fallback_error
        word_timings = None
        engine = "gtts"

    return {
        "audio_path": output_path,
        "word_timings": word_timings,
        "engine": engine,
    }


def get_audio_duration(audio_path: str) -> Optional[float]:
    """Read an audio file's duration in seconds, or None if it can't be read."""
    try:
        audio = AudioFileClip(audio_path)
    except Exception as e:
        logger.warning("Could not read duration of %s: %s", audio_path, e)
        return None
    try:
        return float(audio.duration) if audio.duration else None
    finally:
        audio.close()


def estimate_duration(word_timings: Optional[List[Dict[str, Any]]]) -> Optional[float]:
    """Narration length implied by the last word boundary."""
    if not word_timings:
        return None
    return max(w["end_ms"] for w in word_timings) / 1000.0


def audio_cache_key(text: str, voice: str, unique_id: Optional[str] = None) -> str:
    if unique_id:
        return f"audio-{unique_id}-{voice}"
    return f"audio-{text[:50]}-{voice}"


class NarrationService:
    """Generates narration files under ``audio_dir`` and caches their URLs."""

    def __init__(
        self,
        cache: Optional[TTLCache] = None,
        audio_dir: Optional[Path] = None,
        url_prefix: str = config.AUDIO_URL_PREFIX,
    ):
        self.cache = cache if cache is not None else TTLCache(config.AUDIO_CACHE_TTL)
        self.audio_dir = Path(audio_dir) if audio_dir is not None else config.AUDIO_DIR
        self.url_prefix = url_prefix.rstrip("/")

    def _new_filename(self, voice: str) -> str:
        return f"{int(time.time() * 1000)}{random.randint(0, 9999)}-{voice}.mp3"

    async def generate(
        self,
        text: str,
        voice: Optional[str] = None,
        unique_id: Optional[str] = None,
    ) -> Dict[str, Any]:
        """
        Generate narration and return ``{audioUrl, durationSeconds}``.

        ``durationSeconds`` is None when it can't be determined; players then
        fall back to fixed per-slide timing until the audio's metadata loads.
        """
        if not text or not text.strip():
            raise ValueError("Text is required")

        voice_name = resolve_voice(voice)
        key = audio_cache_key(text, voice_name, unique_id)
        cached = self.cache.get(key)
        if cached:
            return cached

        filename = self._new_filename(voice_name)
        output_path = self.audio_dir / filename
        result = await synthesize_speech(text, str(output_path), voice_name)

        duration = await asyncio.to_thread(get_audio_duration, result["audio_path"])
        if duration is None:
            duration = estimate_duration(result["word_timings"])

        narration = {
            "audioUrl": f"{self.url_prefix}/{filename}",
            "durationSeconds": duration,
        }
        self.cache.set(key, narration)
        logger.info("Generated narration %s (%s, %.1fs)", filename, result["engine"], duration or 0.0)
        return narration


async def list_available_voices() -> list:
    """English voices offered by edge-tts."""
    voices = await edge_tts.list_voices()
    return [v for v in voices if v["Locale"].startswith("en-")]
