"""Normalisation of narration references before playback or rendering."""
import base64
import binascii
import re
from urllib.parse import parse_qs, unquote_to_bytes, urlsplit

from reelforge.errors import InvalidAudioReferenceError

DEFAULT_AUDIO_MIME = "audio/mpeg"

AUDIO_EXTENSION_PATTERN = re.compile(r"\.(mp3|wav|ogg|m4a|aac)($|\?)", re.IGNORECASE)
DATA_URI_PATTERN = re.compile(r"^data:(?P<mime>[^;,]*)(?P<params>(?:;[^;,]*)*),(?P<payload>.*)$", re.DOTALL)


def is_data_uri(reference: str) -> bool:
    return reference.startswith("data:")


def is_blob_handle(reference: str) -> bool:
    """Browser-local handles that no remote service can fetch."""
    return reference.startswith("blob:")


def normalize_audio_reference(reference: str) -> str:
    """
    Turn an audio reference into a form an audio element or renderer will play.

    - Data URIs with a missing or non-audio MIME type are relabelled as
      audio/mpeg; a data URI whose payload cannot be decoded is rejected.
    - URLs without a recognised audio extension or an existing ``type``
      parameter get a ``type=audio/mpeg`` query hint.
    - Blob handles are returned unchanged.

    Raises:
        InvalidAudioReferenceError: If the reference is empty or malformed
    """
    if reference is None or not reference.strip():
        raise InvalidAudioReferenceError("Audio reference is empty")
    reference = reference.strip()

    if is_blob_handle(reference):
        return reference

    if is_data_uri(reference):
        return _normalize_data_uri(reference)

    if AUDIO_EXTENSION_PATTERN.search(reference) or _has_type_hint(reference):
        return reference
    separator = "&" if "?" in reference else "?"
    return f"{reference}{separator}type={DEFAULT_AUDIO_MIME}"


def _has_type_hint(reference: str) -> bool:
    return "type" in parse_qs(urlsplit(reference).query)


def _normalize_data_uri(reference: str) -> str:
    match = DATA_URI_PATTERN.match(reference)
    if not match:
        raise InvalidAudioReferenceError("Malformed data URI: missing ',' separator")

    mime = match.group("mime").strip().lower()
    params = match.group("params")
    payload = match.group("payload")

    if not payload:
        raise InvalidAudioReferenceError("Data URI carries no audio payload")

    if ";base64" in params.lower():
        try:
            base64.b64decode(payload, validate=True)
        except (binascii.Error, ValueError) as e:
            raise InvalidAudioReferenceError(f"Data URI payload is not valid base64: {e}") from e
    else:
        unquote_to_bytes(payload)

    if not mime.startswith("audio/"):
        mime = DEFAULT_AUDIO_MIME
    return f"data:{mime}{params},{payload}"
