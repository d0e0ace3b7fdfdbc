"""
Speech edges of the conversation API.

SpeechService exposes two contracts to the HTTP layer:
    speech_to_text(audio) -> SpeechResult(success, text)
    text_to_speech(text)  -> SpeechResult(success, audio_data)

Transcription defaults to faster-whisper, loaded lazily on first use and
run in a worker thread. Synthesis is whatever async callable the deployment
injects; without one, text_to_speech reports failure.

Also holds per-user conversation mode (a remembered session id used when a
voice request arrives without one).
"""

import asyncio
import logging
import os
import re
import tempfile
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Awaitable, Callable, Protocol

from ..config import settings
from ..exceptions import SpeechError

logger = logging.getLogger(__name__)

Synthesizer = Callable[[str], Awaitable[bytes]]


@dataclass
class SpeechResult:
    success: bool
    text: str | None = None
    audio_data: bytes | None = None
    error: str | None = None


class Transcriber(Protocol):
    async def transcribe_bytes(self, audio: bytes, suffix: str = ".wav") -> str:
        ...


# --------------------------------------------------------------------------- #
# faster-whisper                                                              #
# --------------------------------------------------------------------------- #

def _load_model(model_name: str, device: str, compute_type: str):
    """Load the faster-whisper model synchronously (called in a thread)."""
    from faster_whisper import WhisperModel  # type: ignore[import]
    logger.info("Loading Whisper model '%s' on %s (%s)", model_name, device, compute_type)
    return WhisperModel(model_name, device=device, compute_type=compute_type)


def _transcribe_sync(model, audio_path: str) -> str:
    segments, info = model.transcribe(audio_path, beam_size=5)
    logger.debug(
        "Detected language '%s' (%.0f%% confidence)",
        info.language, info.language_probability * 100,
    )
    return " ".join(seg.text.strip() for seg in segments).strip()


class WhisperTranscriber:
    """Transcribes uploaded audio with faster-whisper. The model is cached per instance."""

    def __init__(
        self,
        model_name: str | None = None,
        device: str | None = None,
        compute_type: str | None = None,
    ) -> None:
        self._model_name = model_name or settings.whisper_model
        self._device = device or settings.whisper_device
        self._compute_type = compute_type or settings.whisper_compute_type
        self._model = None
        self._lock = asyncio.Lock()

    async def _get_model(self):
        if self._model is not None:
            return self._model
        async with self._lock:
            if self._model is None:
                self._model = await asyncio.to_thread(
                    _load_model, self._model_name, self._device, self._compute_type
                )
        return self._model

    async def transcribe_bytes(self, audio: bytes, suffix: str = ".wav") -> str:
        """Write audio to a temp file and transcribe it. Raises SpeechError on failure."""
        tmp_path = None
        try:
            with tempfile.NamedTemporaryFile(suffix=suffix, delete=False) as f:
                f.write(audio)
                tmp_path = f.name
            model = await self._get_model()
            transcript = await asyncio.to_thread(_transcribe_sync, model, tmp_path)
            logger.info("Transcribed %d chars", len(transcript))
            return transcript
        except Exception as e:
            raise SpeechError(f"Transcription failed: {e}") from e
        finally:
            if tmp_path and os.path.exists(tmp_path):
                try:
                    os.unlink(tmp_path)
                except OSError:
                    pass


# --------------------------------------------------------------------------- #
# Text cleaning                                                               #
# --------------------------------------------------------------------------- #

_CODE_BLOCK_RE = re.compile(r"```.*?```", re.DOTALL)
_INLINE_CODE_RE = re.compile(r"`([^`]*)`")
_IMAGE_RE = re.compile(r"!\[([^\]]*)\]\([^)]*\)")
_LINK_RE = re.compile(r"\[([^\]]+)\]\([^)]*\)")
_BARE_URL_RE = re.compile(r"https?://\S+")
_HEADING_RE = re.compile(r"^\s{0,3}#{1,6}\s*", re.MULTILINE)
_BULLET_RE = re.compile(r"^\s*(?:[-*+•]|\d+[.)])\s+", re.MULTILINE)
_QUOTE_RE = re.compile(r"^\s*>\s?", re.MULTILINE)
_EMPHASIS_RE = re.compile(r"(\*\*|\*|~~)(\S(?:.*?\S)?)\1")
_UNDERSCORE_RE = re.compile(r"(?<!\w)(__|_)(\S(?:.*?\S)?)\1(?!\w)")
_RULE_RE = re.compile(r"^\s*(?:-{3,}|\*{3,}|_{3,})\s*$", re.MULTILINE)
_TABLE_PIPE_RE = re.compile(r"\s*\|\s*")
_SPACES_RE = re.compile(r"[ \t]+")
_NEWLINES_RE = re.compile(r"\n{2,}")


def clean_text_for_speech(text: str) -> str:
    """Strip markdown so the text reads naturally when spoken or shown as plain text."""
    if not text:
        return ""
    out = _CODE_BLOCK_RE.sub(" ", text)
    out = _INLINE_CODE_RE.sub(r"\1", out)
    out = _IMAGE_RE.sub(r"\1", out)
    out = _LINK_RE.sub(r"\1", out)
    out = _BARE_URL_RE.sub("", out)
    out = _RULE_RE.sub("", out)
    out = _HEADING_RE.sub("", out)
    out = _QUOTE_RE.sub("", out)
    out = _BULLET_RE.sub("", out)
    out = _EMPHASIS_RE.sub(r"\2", out)
    out = _UNDERSCORE_RE.sub(r"\2", out)
    out = _TABLE_PIPE_RE.sub(" ", out)
    out = _SPACES_RE.sub(" ", out)
    out = "\n".join(line.strip() for line in out.splitlines())
    out = _NEWLINES_RE.sub("\n", out)
    return out.strip()


# --------------------------------------------------------------------------- #
# Service                                                                     #
# --------------------------------------------------------------------------- #

@dataclass
class ConversationMode:
    session_id: str | None
    enabled_at: str


class SpeechService:
    """STT/TTS facade plus per-user conversation mode."""

    def __init__(
        self,
        transcriber: Transcriber | None = None,
        synthesizer: Synthesizer | None = None,
    ) -> None:
        self._transcriber = transcriber if transcriber is not None else WhisperTranscriber()
        self._synthesizer = synthesizer
        self._modes: dict[str, ConversationMode] = {}

    @property
    def can_synthesize(self) -> bool:
        return self._synthesizer is not None

    async def speech_to_text(self, audio: bytes, suffix: str = ".wav") -> SpeechResult:
        if not audio:
            return SpeechResult(success=False, error="Empty audio")
        try:
            text = await self._transcriber.transcribe_bytes(audio, suffix=suffix)
        except Exception as e:
            logger.error("Speech recognition failed: %s", e)
            return SpeechResult(success=False, error=str(e))
        text = text.strip()
        if not text:
            return SpeechResult(success=False, error="No speech detected")
        return SpeechResult(success=True, text=text)

    async def text_to_speech(self, text: str) -> SpeechResult:
        if self._synthesizer is None:
            return SpeechResult(success=False, error="Text-to-speech not configured")
        spoken = clean_text_for_speech(text)
        if not spoken:
            return SpeechResult(success=False, error="Nothing to synthesize")
        try:
            audio = await self._synthesizer(spoken)
        except Exception as e:
            logger.error("Speech synthesis failed: %s", e)
            return SpeechResult(success=False, error=str(e))
        if not audio:
            return SpeechResult(success=False, error="Synthesizer returned no audio")
        return SpeechResult(success=True, audio_data=audio)

    # ── Conversation mode ───────────────────────────────────────────────────────

    def enable_conversation_mode(self, user_id: str, session_id: str | None = None) -> ConversationMode:
        mode = ConversationMode(session_id=session_id, enabled_at=datetime.now(timezone.utc).isoformat())
        self._modes[user_id] = mode
        logger.info("Conversation mode enabled for user %s (session %s)", user_id, session_id)
        return mode

    def disable_conversation_mode(self, user_id: str) -> None:
        self._modes.pop(user_id, None)
        logger.info("Conversation mode disabled for user %s", user_id)

    def get_conversation_mode(self, user_id: str) -> ConversationMode | None:
        return self._modes.get(user_id)
