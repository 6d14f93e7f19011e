"""Shared pytest fixtures for the civics quiz test suite.

Provides in-memory stand-ins for the microphone, the speakers and the
inference gateway, plus generated PCM audio.
"""

import asyncio
import math
import struct
from unittest.mock import AsyncMock

import pytest

from src.core.exceptions import NotInitializedError
from src.core.models import AnswerResult
from src.services.audio.capture import AudioEncoding, RecordingBuffer
from src.services.gateway import BaseGateway

# ---------------------------------------------------------------------------
# Device fakes
# ---------------------------------------------------------------------------


class FakeCapture:
    """Microphone double that hands out a fixed recording."""

    def __init__(self, audio: bytes = b"RIFF-fake-answer") -> None:
        self.audio = audio
        self.encoding = AudioEncoding("WAV", "PCM_16")
        self.acquire_error: Exception | None = None
        self.release_error: Exception | None = None
        self.level = 0.0
        self.is_acquired = False
        self.is_recording = False
        self.acquire_calls = 0
        self.release_calls = 0
        self.start_calls = 0
        self.buffers: list[RecordingBuffer] = []

    async def acquire(self) -> None:
        if self.acquire_error is not None:
            raise self.acquire_error
        if not self.is_acquired:
            self.acquire_calls += 1
        self.is_acquired = True

    def start(self) -> None:
        if not self.is_acquired:
            raise NotInitializedError()
        self.start_calls += 1
        self.is_recording = True

    async def stop(self) -> RecordingBuffer | None:
        if not self.is_recording:
            return None
        self.is_recording = False
        # Encoding happens off the event loop in the real capture
        await asyncio.sleep(0)
        buffer = RecordingBuffer(self.audio, self.encoding)
        self.buffers.append(buffer)
        return buffer

    def abort(self) -> None:
        self.is_recording = False

    def release(self) -> None:
        if self.release_error is not None:
            raise self.release_error
        if self.is_acquired:
            self.release_calls += 1
        self.is_acquired = False


class FakePlayback:
    """Speaker double that records what was spoken."""

    def __init__(self) -> None:
        self.spoken: list[str] = []
        self.error: Exception | None = None
        self.fail_on: dict[str, Exception] = {}

    async def speak(self, text: str, on_complete=None) -> None:
        error = self.fail_on.get(text, self.error)
        if error is not None:
            raise error
        self.spoken.append(text)
        if on_complete is not None:
            on_complete()


@pytest.fixture
def capture():
    return FakeCapture()


@pytest.fixture
def playback():
    return FakePlayback()


# ---------------------------------------------------------------------------
# Gateway Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def mock_gateway():
    """Create a mock gateway that serves a two-turn conversation.

    Returns:
        AsyncMock: A mock implementing the BaseGateway interface. Agent
        ``A1`` opens session ``S1`` with question ``Q1``; answers advance
        the handle to ``S2`` then ``S3``.
    """
    gateway = AsyncMock(spec=BaseGateway)
    gateway.ensure_agent.return_value = "A1"
    gateway.start_session.return_value = ("S1", "Q1")
    gateway.speech_to_text.return_value = "reply"
    gateway.submit_answer.side_effect = [
        AnswerResult(feedback="F1", next_question="Q2", session_handle="S2"),
        AnswerResult(feedback="F2", next_question="Q3", session_handle="S3"),
    ]
    gateway.text_to_speech.return_value = b"ID3-fake-mp3"
    return gateway


# ---------------------------------------------------------------------------
# Audio Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def sample_pcm_bytes():
    """Generate 1 second of 440Hz sine-wave PCM audio (16kHz, 16-bit, mono).

    Returns:
        bytes: Raw PCM audio data.
    """
    sample_rate = 16000
    duration = 1.0
    frequency = 440.0
    amplitude = 16000  # ~50% of max int16

    samples = []
    for i in range(int(sample_rate * duration)):
        value = int(amplitude * math.sin(2 * math.pi * frequency * i / sample_rate))
        samples.append(struct.pack("<h", value))
    return b"".join(samples)


@pytest.fixture
def silent_pcm_bytes():
    """Generate 1 second of silence as PCM audio (16kHz, 16-bit, mono)."""
    sample_rate = 16000
    return b"\x00\x00" * sample_rate
