"""Tests for microphone capture, encoding negotiation and recording buffers.

sounddevice is replaced by a namespace double so no audio hardware or
PortAudio library is needed; encoding goes through the real soundfile.
"""

import io
from types import SimpleNamespace
from unittest.mock import MagicMock, patch

import numpy as np
import pytest
import soundfile as sf

from src.core.exceptions import (
    DeviceUnavailableError,
    NotInitializedError,
    PermissionDeniedError,
)
from src.services.audio.capture import (
    AudioEncoding,
    MicrophoneCapture,
    RecordingBuffer,
    negotiate_encoding,
)


class FakePortAudioError(Exception):
    pass


@pytest.fixture
def fake_sd():
    """A sounddevice stand-in whose InputStream never touches hardware."""
    stream = MagicMock()
    return SimpleNamespace(
        PortAudioError=FakePortAudioError,
        query_devices=MagicMock(return_value={"name": "Test Mic"}),
        InputStream=MagicMock(return_value=stream),
        stream=stream,
    )


@pytest.fixture
def mic(fake_sd):
    with patch("src.services.audio.capture.load_sounddevice", return_value=fake_sd):
        yield MicrophoneCapture(sample_rate=16000, channels=1, preferred_encodings=["WAV/PCM_16"])


def _block(pcm: bytes) -> np.ndarray:
    return np.frombuffer(pcm, dtype=np.int16).reshape(-1, 1)


# ---------------------------------------------------------------------------
# Encoding negotiation
# ---------------------------------------------------------------------------


class TestNegotiateEncoding:
    def test_first_supported_wins(self):
        supported = {("FLAC", "PCM_16")}
        with patch(
            "src.services.audio.capture.sf.check_format",
            side_effect=lambda c, s: (c, s) in supported,
        ):
            encoding = negotiate_encoding(["OGG/OPUS", "FLAC/PCM_16"])
        assert encoding == AudioEncoding("FLAC", "PCM_16")

    def test_falls_back_to_wav(self):
        with patch("src.services.audio.capture.sf.check_format", return_value=False):
            encoding = negotiate_encoding(["OGG/OPUS"])
        assert encoding == AudioEncoding("WAV", "PCM_16")

    def test_unknown_subtype_is_skipped(self):
        with patch("src.services.audio.capture.sf.check_format", side_effect=ValueError("?")):
            encoding = negotiate_encoding(["OGG/NOPE"])
        assert str(encoding) == "WAV/PCM_16"

    def test_parse_and_metadata(self):
        encoding = AudioEncoding.parse("ogg/opus")
        assert encoding.container == "OGG"
        assert encoding.subtype == "OPUS"
        assert encoding.extension == "ogg"
        assert encoding.mime_type == "audio/ogg"


# ---------------------------------------------------------------------------
# RecordingBuffer
# ---------------------------------------------------------------------------


class TestRecordingBuffer:
    def test_consume_once(self):
        buffer = RecordingBuffer(b"abc", AudioEncoding("WAV", "PCM_16"))
        assert not buffer.consumed
        assert buffer.consume() == b"abc"
        assert buffer.consumed
        with pytest.raises(ValueError, match="already consumed"):
            buffer.consume()

    def test_size_survives_consumption(self):
        buffer = RecordingBuffer(b"abcd", AudioEncoding("FLAC", "PCM_16"))
        buffer.consume()
        assert buffer.size == 4
        assert buffer.filename == "answer.flac"


# ---------------------------------------------------------------------------
# MicrophoneCapture
# ---------------------------------------------------------------------------


class TestAcquire:
    async def test_start_before_acquire(self, mic):
        with pytest.raises(NotInitializedError):
            mic.start()

    async def test_acquire_opens_stream_once(self, mic, fake_sd):
        await mic.acquire()
        await mic.acquire()
        assert mic.is_acquired
        fake_sd.InputStream.assert_called_once()
        assert fake_sd.InputStream.call_args.kwargs["dtype"] == "int16"
        fake_sd.stream.start.assert_called_once()

    async def test_no_input_device(self, mic, fake_sd):
        fake_sd.query_devices.side_effect = FakePortAudioError("Error querying device -1")
        with pytest.raises(DeviceUnavailableError):
            await mic.acquire()
        assert not mic.is_acquired

    async def test_permission_denied(self, mic, fake_sd):
        fake_sd.InputStream.side_effect = FakePortAudioError("Permission denied by host")
        with pytest.raises(PermissionDeniedError):
            await mic.acquire()

    async def test_missing_portaudio(self, mic):
        with patch(
            "src.services.audio.capture.load_sounddevice",
            side_effect=OSError("PortAudio library not found"),
        ):
            with pytest.raises(DeviceUnavailableError, match="PortAudio"):
                await mic.acquire()
        assert not mic.is_acquired

    async def test_other_open_failure(self, mic, fake_sd):
        fake_sd.InputStream.side_effect = FakePortAudioError("Device busy")
        with pytest.raises(DeviceUnavailableError):
            await mic.acquire()

    async def test_release_closes_stream(self, mic, fake_sd):
        await mic.acquire()
        mic.release()
        assert not mic.is_acquired
        fake_sd.stream.close.assert_called_once()


class TestRecording:
    async def test_stop_returns_encoded_buffer(self, mic, sample_pcm_bytes):
        await mic.acquire()
        mic.start()
        mic._on_audio(_block(sample_pcm_bytes), 16000, None, None)

        buffer = await mic.stop()

        assert buffer is not None
        assert buffer.encoding == AudioEncoding("WAV", "PCM_16")
        samples, rate = sf.read(io.BytesIO(buffer.consume()), dtype="int16")
        assert rate == 16000
        assert samples.tobytes() == sample_pcm_bytes

    async def test_second_stop_returns_none(self, mic, sample_pcm_bytes):
        await mic.acquire()
        mic.start()
        mic._on_audio(_block(sample_pcm_bytes), 16000, None, None)
        assert await mic.stop() is not None
        assert await mic.stop() is None

    async def test_frames_outside_recording_are_dropped(self, mic, sample_pcm_bytes):
        await mic.acquire()
        mic._on_audio(_block(sample_pcm_bytes), 16000, None, None)
        mic.start()

        buffer = await mic.stop()

        assert buffer.size == 0

    async def test_level_tracks_input(self, mic, sample_pcm_bytes, silent_pcm_bytes):
        await mic.acquire()
        mic._on_audio(_block(sample_pcm_bytes), 16000, None, None)
        assert mic.level > 0.1
        mic._on_audio(_block(silent_pcm_bytes), 16000, None, None)
        assert mic.level == 0.0

    async def test_abort_discards_frames(self, mic, sample_pcm_bytes):
        await mic.acquire()
        mic.start()
        mic._on_audio(_block(sample_pcm_bytes), 16000, None, None)
        mic.abort()
        assert not mic.is_recording
        assert await mic.stop() is None

    async def test_silent_recording_is_flagged(self, mic, silent_pcm_bytes, caplog):
        await mic.acquire()
        mic.start()
        mic._on_audio(_block(silent_pcm_bytes), 16000, None, None)

        with caplog.at_level("WARNING", logger="src.services.audio.capture"):
            buffer = await mic.stop()

        assert buffer.size > 0
        assert "silent" in caplog.text

    async def test_spoken_recording_is_not_flagged(self, mic, sample_pcm_bytes, caplog):
        await mic.acquire()
        mic.start()
        mic._on_audio(_block(sample_pcm_bytes), 16000, None, None)

        with caplog.at_level("WARNING", logger="src.services.audio.capture"):
            await mic.stop()

        assert "silent" not in caplog.text
