"""
Speech synthesis for lesson text.

Returns MP3 bytes from one of two server-side providers:
- openai:        OpenAI speech API
- google_cloud:  Google Cloud Text-to-Speech REST API (Japanese neural voice)

The browser provider is played by the client itself and is not available
here. Results are cached in memory per provider, voice and text, since
review sessions replay the same words. Playback is the caller's concern.
"""

from __future__ import annotations

import base64
import binascii
import logging
from typing import Optional

import httpx
from openai import OpenAI, OpenAIError

from core import config
from core.errors import SpeechError
from core.schemas import Settings

logger = logging.getLogger(__name__)

DEFAULT_VOICE = "alloy"

GOOGLE_TTS_URL = "https://texttospeech.googleapis.com/v1/text:synthesize"
GOOGLE_TTS_VOICE = "ja-JP-Neural2-B"
GOOGLE_TTS_TIMEOUT = 30.0

# Oldest entries are evicted first once the cache is full
MAX_CACHE_ENTRIES = 256

_audio_cache: dict[str, bytes] = {}


def clear_cache() -> None:
    _audio_cache.clear()


def _cache_get(key: str) -> Optional[bytes]:
    audio = _audio_cache.pop(key, None)
    if audio is not None:
        _audio_cache[key] = audio
    return audio


def _cache_put(key: str, audio: bytes) -> None:
    while len(_audio_cache) >= MAX_CACHE_ENTRIES:
        _audio_cache.pop(next(iter(_audio_cache)))
    _audio_cache[key] = audio


# ---- Providers ----

def _openai_speech(text: str, settings: Settings, voice: str, client: Optional[OpenAI]) -> bytes:
    if client is None:
        api_key = settings.openai_key or config.get_api_key("openai")
        if not api_key:
            raise SpeechError("Missing OpenAI API key")
        client = OpenAI(api_key=api_key)

    try:
        response = client.audio.speech.create(
            model=config.OPENAI_TTS_MODEL,
            voice=voice,
            input=text,
        )
    except OpenAIError as exc:
        logger.error("OpenAI speech synthesis failed for %r", text, exc_info=True)
        raise SpeechError(f"Speech synthesis failed: {exc}") from exc
    return response.content


def _google_error_message(response: httpx.Response) -> str:
    try:
        return response.json()["error"]["message"]
    except (ValueError, KeyError, TypeError):
        return f"Google TTS error (HTTP {response.status_code})"


def _google_speech(text: str, settings: Settings, voice: str, http_client: Optional[httpx.Client]) -> bytes:
    api_key = settings.google_tts_key or config.get_api_key("google_tts")
    if not api_key:
        raise SpeechError("Missing Google Cloud TTS API key")

    payload = {
        "input": {"text": text},
        "voice": {"languageCode": "ja-JP", "name": voice},
        "audioConfig": {"audioEncoding": "MP3"},
    }
    client = http_client or httpx.Client(timeout=GOOGLE_TTS_TIMEOUT)
    try:
        response = client.post(GOOGLE_TTS_URL, params={"key": api_key}, json=payload)
    except httpx.HTTPError as exc:
        logger.error("Google speech synthesis failed for %r", text, exc_info=True)
        raise SpeechError(f"Speech synthesis failed: {exc}") from exc
    finally:
        if http_client is None:
            client.close()

    if response.is_error:
        message = _google_error_message(response)
        logger.error("Google speech synthesis failed for %r: %s", text, message)
        raise SpeechError(message)

    try:
        return base64.b64decode(response.json()["audioContent"], validate=True)
    except (ValueError, KeyError, TypeError, binascii.Error) as exc:
        raise SpeechError("Google TTS reply contains no audio") from exc


# ---- Public API ----

def synthesize(
    text: str,
    settings: Settings,
    voice: Optional[str] = None,
    client: Optional[OpenAI] = None,
    http_client: Optional[httpx.Client] = None
) -> bytes:
    """
    Synthesize `text` with the provider selected in settings.

    Args:
        text: Text to speak
        settings: User settings (tts_provider and keys)
        voice: Provider voice name (defaults to the provider's Japanese voice)
        client: Pre-built OpenAI client (openai provider)
        http_client: Pre-built httpx client (google_cloud provider)

    Returns:
        MP3 audio bytes

    Raises:
        SpeechError: if the provider is unsupported, a key is missing or
            synthesis fails
    """
    provider = settings.tts_provider
    if provider == "openai":
        voice = voice or DEFAULT_VOICE
    elif provider == "google_cloud":
        voice = voice or GOOGLE_TTS_VOICE
    else:
        raise SpeechError(f"TTS provider {provider!r} is played by the client")

    cache_key = f"{provider}:{voice}:{text}"
    audio = _cache_get(cache_key)
    if audio is not None:
        return audio

    if provider == "openai":
        audio = _openai_speech(text, settings, voice, client)
    else:
        audio = _google_speech(text, settings, voice, http_client)

    _cache_put(cache_key, audio)
    return audio
