"""Tests for mcp_orchestrator/voice/speech.py and utils/timezones.py."""

from datetime import datetime, timezone

import pytest

from mcp_orchestrator.exceptions import SpeechError
from mcp_orchestrator.utils.timezones import local_now, resolve_zone, time_of_day
from mcp_orchestrator.voice.speech import SpeechService, clean_text_for_speech


class StubTranscriber:
    def __init__(self, text="", error=None):
        self.text = text
        self.error = error
        self.received = []

    async def transcribe_bytes(self, audio, suffix=".wav"):
        self.received.append((audio, suffix))
        if self.error:
            raise self.error
        return self.text


# --------------------------------------------------------------------------- #
# clean_text_for_speech                                                        #
# --------------------------------------------------------------------------- #

def test_strips_markdown():
    text = "# Today\n\n- **Standup** at 9\n- *Lunch* with [Ana](https://x.example)\n\n> note"
    assert clean_text_for_speech(text) == "Today\nStandup at 9\nLunch with Ana\nnote"


def test_drops_code_blocks_and_urls():
    text = "Run this:\n```python\nprint(1)\n```\nthen see https://docs.example/page for `details`."
    cleaned = clean_text_for_speech(text)
    assert "print" not in cleaned
    assert "https://" not in cleaned
    assert "details" in cleaned and "`" not in cleaned


def test_keeps_snake_case_words():
    assert clean_text_for_speech("Use get_todays_events and snake_case_names") == (
        "Use get_todays_events and snake_case_names"
    )


def test_underscore_emphasis_is_removed():
    assert clean_text_for_speech("This is _really_ __important__") == "This is really important"


def test_empty_input():
    assert clean_text_for_speech("") == ""


# --------------------------------------------------------------------------- #
# SpeechService                                                                #
# --------------------------------------------------------------------------- #

@pytest.mark.asyncio
async def test_speech_to_text_success():
    transcriber = StubTranscriber(text="  what's on today  ")
    service = SpeechService(transcriber=transcriber)
    result = await service.speech_to_text(b"RIFF", suffix=".webm")
    assert result.success and result.text == "what's on today"
    assert transcriber.received == [(b"RIFF", ".webm")]


@pytest.mark.asyncio
async def test_speech_to_text_failures():
    assert (await SpeechService(transcriber=StubTranscriber()).speech_to_text(b"")).error == "Empty audio"
    assert (await SpeechService(transcriber=StubTranscriber(text="  ")).speech_to_text(b"x")).error == (
        "No speech detected"
    )
    broken = SpeechService(transcriber=StubTranscriber(error=SpeechError("decoder failed")))
    result = await broken.speech_to_text(b"x")
    assert result.success is False and "decoder failed" in result.error


@pytest.mark.asyncio
async def test_text_to_speech_without_synthesizer():
    service = SpeechService(transcriber=StubTranscriber())
    assert service.can_synthesize is False
    result = await service.text_to_speech("hello")
    assert result.success is False
    assert result.error == "Text-to-speech not configured"


@pytest.mark.asyncio
async def test_text_to_speech_cleans_before_synthesis():
    spoken = []

    async def synth(text):
        spoken.append(text)
        return b"WAVDATA"

    service = SpeechService(transcriber=StubTranscriber(), synthesizer=synth)
    result = await service.text_to_speech("**Hello** [there](https://x.example)")
    assert result.success and result.audio_data == b"WAVDATA"
    assert spoken == ["Hello there"]


@pytest.mark.asyncio
async def test_text_to_speech_synth_error():
    async def synth(text):
        raise RuntimeError("voice engine crashed")

    result = await SpeechService(transcriber=StubTranscriber(), synthesizer=synth).text_to_speech("hi")
    assert result.success is False and "crashed" in result.error


def test_conversation_mode_lifecycle():
    service = SpeechService(transcriber=StubTranscriber())
    assert service.get_conversation_mode("u1") is None
    mode = service.enable_conversation_mode("u1", "sess-1")
    assert service.get_conversation_mode("u1") is mode
    assert mode.session_id == "sess-1"
    service.disable_conversation_mode("u1")
    assert service.get_conversation_mode("u1") is None
    service.disable_conversation_mode("u1")


# --------------------------------------------------------------------------- #
# Timezones                                                                    #
# --------------------------------------------------------------------------- #

def test_resolve_zone_unknown_is_utc():
    assert resolve_zone("Mars/Olympus") is timezone.utc
    assert resolve_zone("") is timezone.utc
    assert str(resolve_zone("Australia/Sydney")) == "Australia/Sydney"


def test_local_now_converts_and_treats_naive_as_utc():
    local = local_now("Australia/Sydney", datetime(2026, 1, 1, 12, 0))
    assert local.hour == 23  # AEDT is UTC+11 in January


def test_time_of_day_boundaries():
    assert time_of_day(0) == "morning"
    assert time_of_day(11) == "morning"
    assert time_of_day(12) == "afternoon"
    assert time_of_day(16) == "afternoon"
    assert time_of_day(17) == "evening"
