"""
EXAMINER Speech Gateways
========================
Thin async wrappers around the two audio black boxes:
- Transcription: Whisper via Groq (audio bytes -> text)
- Speech: Microsoft Edge TTS (text -> MP3 bytes)
"""

import os
import logging
import tempfile
from typing import Optional

import aiofiles
import edge_tts
from groq import APIError, APIStatusError

from .config import STT_MODEL, STT_LANGUAGE, DEFAULT_AUDIO_EXTENSION, TTS_VOICE, TTS_RATE
from .errors import TranscriptionError, SpeechError
from .llm_gateway import llm_gateway, AsyncLLMGateway

logger = logging.getLogger(__name__)

# Checked in order: "audio/mp4" must resolve before the "m4a" marker is tried.
MIME_EXTENSIONS = [
    ("mp4", "mp4"),
    ("mpeg", "mpeg"),
    ("mpga", "mpga"),
    ("wav", "wav"),
    ("m4a", "m4a"),
    ("ogg", "ogg"),
    ("flac", "flac"),
    ("webm", "webm"),
]


def extension_for_mime(mime_type: Optional[str]) -> str:
    """Pick the upload file extension Whisper should see for a declared MIME type."""
    if mime_type:
        for marker, extension in MIME_EXTENSIONS:
            if marker in mime_type:
                return extension
    return DEFAULT_AUDIO_EXTENSION


class TranscriptionGateway:

    def __init__(self, client_source: Optional[AsyncLLMGateway] = None, model: str = STT_MODEL, language: str = STT_LANGUAGE):
        # Shares the completion gateway's key rotation
        self.client_source = client_source or llm_gateway
        self.model = model
        self.language = language

    async def transcribe(self, audio: bytes, mime_type: Optional[str] = None) -> str:
        if not audio:
            raise TranscriptionError("No audio file provided", 400)

        filename = f"audio.{extension_for_mime(mime_type)}"
        logger.info(f"Sending {len(audio)} bytes ({mime_type or 'unknown type'}) as {filename} for transcription...")

        client = self.client_source.get_client()
        try:
            transcription = await client.audio.transcriptions.create(
                model=self.model,
                file=(filename, audio),
                language=self.language
            )
        except APIStatusError as e:
            logger.error(f"STT Error: [{e.status_code}] {e.message}")
            raise TranscriptionError(e.message, e.status_code) from e
        except APIError as e:
            logger.error(f"STT Error: {e.message}")
            raise TranscriptionError(e.message) from e

        text = (transcription.text or "").strip()
        logger.info(f"Transcription received: {text!r}")
        return text


class SpeechGateway:

    def __init__(self, voice: str = TTS_VOICE, rate: str = TTS_RATE):
        self.voice = voice
        self.rate = rate

    async def synthesize(self, text: str) -> bytes:
        """Render text as MP3 bytes."""
        if not text or not text.strip():
            raise SpeechError("No text provided to speak", 400)

        logger.info(f"Generating speech for text: {text!r}...")

        fd, output_path = tempfile.mkstemp(suffix=".mp3", prefix="examiner_speech_")
        os.close(fd)
        try:
            communicate = edge_tts.Communicate(text, self.voice, rate=self.rate)
            await communicate.save(output_path)
            async with aiofiles.open(output_path, "rb") as f:
                audio = await f.read()
        except Exception as e:
            logger.error(f"TTS Error: {e}")
            raise SpeechError(f"Speech synthesis failed: {e}") from e
        finally:
            if os.path.exists(output_path):
                os.remove(output_path)

        if not audio:
            raise SpeechError("TTS engine returned an empty audio stream.")

        logger.info(f"Speech generated successfully ({len(audio)} bytes).")
        return audio


transcription_gateway = TranscriptionGateway()
speech_gateway = SpeechGateway()
