"""Microphone capture for spoken answers.

``MicrophoneCapture`` holds a ``sounddevice.InputStream`` and buffers int16
PCM frames between ``start()`` and ``stop()``. ``stop()`` encodes the frames
into the first container the local libsndfile can write and hands back a
``RecordingBuffer``, which can be consumed exactly once.
"""

import asyncio
import logging
import threading
from dataclasses import dataclass

import soundfile as sf

from src.core.exceptions import (
    DeviceUnavailableError,
    NotInitializedError,
    PermissionDeniedError,
)
from src.services.audio.processor import AudioProcessor

logger = logging.getLogger(__name__)

DEFAULT_ENCODING = "WAV/PCM_16"

_CONTAINER_TYPES = {
    "OGG": ("ogg", "audio/ogg"),
    "FLAC": ("flac", "audio/flac"),
    "WAV": ("wav", "audio/wav"),
    "MP3": ("mp3", "audio/mpeg"),
}

_PERMISSION_HINTS = ("permission", "not permitted", "access denied", "unauthorized")


def load_sounddevice():
    """Import sounddevice lazily; loading it requires the PortAudio library."""
    import sounddevice

    return sounddevice


@dataclass(frozen=True)
class AudioEncoding:
    """A libsndfile container/subtype pair, e.g. ``OGG/OPUS``."""

    container: str
    subtype: str

    @classmethod
    def parse(cls, value: str) -> "AudioEncoding":
        container, _, subtype = value.upper().partition("/")
        return cls(container=container, subtype=subtype or "PCM_16")

    @property
    def extension(self) -> str:
        return _CONTAINER_TYPES.get(self.container, (self.container.lower(), ""))[0]

    @property
    def mime_type(self) -> str:
        return _CONTAINER_TYPES.get(self.container, ("", "application/octet-stream"))[1]

    def __str__(self) -> str:
        return f"{self.container}/{self.subtype}"


def negotiate_encoding(preferred: list[str]) -> AudioEncoding:
    """Return the first preferred encoding libsndfile supports, else WAV."""
    for value in preferred:
        encoding = AudioEncoding.parse(value)
        try:
            supported = sf.check_format(encoding.container, encoding.subtype)
        except (ValueError, TypeError):
            supported = False
        if supported:
            return encoding
        logger.debug("Encoding %s not supported by libsndfile", encoding)
    return AudioEncoding.parse(DEFAULT_ENCODING)


class RecordingBuffer:
    """Encoded audio for one answer. ``consume()`` moves the bytes out once."""

    def __init__(self, data: bytes, encoding: AudioEncoding) -> None:
        self._data: bytes | None = data
        self._size = len(data)
        self.encoding = encoding

    @property
    def consumed(self) -> bool:
        return self._data is None

    @property
    def size(self) -> int:
        return self._size

    @property
    def filename(self) -> str:
        return f"answer.{self.encoding.extension}"

    def consume(self) -> bytes:
        """Return the audio bytes and mark the buffer consumed.

        Raises:
            ValueError: If the buffer was already consumed.
        """
        if self._data is None:
            raise ValueError("Recording buffer was already consumed")
        data, self._data = self._data, None
        return data


class MicrophoneCapture:
    """Records answers from the default input device.

    Args:
        sample_rate: Capture rate in Hz.
        channels: Number of input channels.
        preferred_encodings: Ordered ``CONTAINER/SUBTYPE`` candidates.
    """

    def __init__(
        self,
        sample_rate: int = 16000,
        channels: int = 1,
        preferred_encodings: list[str] | None = None,
    ) -> None:
        self._sample_rate = sample_rate
        self._channels = channels
        self._processor = AudioProcessor(sample_rate=sample_rate, channels=channels)
        self.encoding = negotiate_encoding(preferred_encodings or [])
        self._stream = None
        self._frames: list[bytes] = []
        self._lock = threading.Lock()
        self._recording = False
        self._level = 0.0

    @property
    def stream(self):
        """The live input stream, for amplitude visualizations."""
        return self._stream

    @property
    def is_acquired(self) -> bool:
        return self._stream is not None

    @property
    def is_recording(self) -> bool:
        return self._recording

    @property
    def level(self) -> float:
        """RMS level of the most recent input block (0.0 - 1.0)."""
        return self._level

    def _on_audio(self, indata, frames, time_info, status) -> None:
        """PortAudio callback; runs on the audio thread."""
        if status:
            logger.debug("Input stream status: %s", status)
        block = bytes(indata)
        self._level = self._processor.rms(self._processor.pcm_to_ndarray(block))
        if self._recording:
            with self._lock:
                self._frames.append(block)

    def _open_stream(self):
        try:
            sd = load_sounddevice()
        except OSError as exc:
            raise DeviceUnavailableError(f"Audio input unavailable: {exc}") from exc
        try:
            sd.query_devices(kind="input")
        except (ValueError, sd.PortAudioError) as exc:
            raise DeviceUnavailableError(f"No audio input device: {exc}") from exc

        try:
            stream = sd.InputStream(
                samplerate=self._sample_rate,
                channels=self._channels,
                dtype="int16",
                callback=self._on_audio,
            )
            stream.start()
        except sd.PortAudioError as exc:
            message = str(exc)
            if any(hint in message.lower() for hint in _PERMISSION_HINTS):
                raise PermissionDeniedError(f"Microphone access denied: {message}") from exc
            raise DeviceUnavailableError(f"Could not open microphone: {message}") from exc
        return stream

    async def acquire(self) -> None:
        """Open the microphone. No-op while a stream is already held.

        Raises:
            PermissionDeniedError: If the platform refuses access.
            DeviceUnavailableError: If no input device can be opened.
        """
        if self._stream is not None:
            return
        self._stream = await asyncio.to_thread(self._open_stream)
        logger.info(
            "Microphone acquired (%d Hz, %d ch, encoding %s)",
            self._sample_rate,
            self._channels,
            self.encoding,
        )

    def start(self) -> None:
        """Begin buffering audio from the held stream.

        Raises:
            NotInitializedError: If ``acquire()`` has not succeeded.
        """
        if self._stream is None:
            raise NotInitializedError()
        with self._lock:
            self._frames = []
        self._recording = True
        logger.debug("Recording started")

    async def stop(self) -> RecordingBuffer | None:
        """Finish the current recording and return its encoded buffer.

        Returns None when no recording is active, so a repeated stop never
        yields a second buffer.
        """
        if not self._recording:
            return None
        self._recording = False
        with self._lock:
            pcm = b"".join(self._frames)
            self._frames = []

        if not pcm:
            logger.warning("Recording stopped with no captured audio")
            return RecordingBuffer(b"", self.encoding)

        if self._processor.is_silent(self._processor.pcm_to_ndarray(pcm)):
            logger.warning("Recording is silent; the microphone may be muted")

        data = await asyncio.to_thread(
            self._processor.encode, pcm, self.encoding.container, self.encoding.subtype
        )
        logger.debug("Recording stopped: %d PCM bytes -> %d encoded", len(pcm), len(data))
        return RecordingBuffer(data, self.encoding)

    def abort(self) -> None:
        """Drop any in-progress recording without producing a buffer."""
        self._recording = False
        with self._lock:
            self._frames = []

    def release(self) -> None:
        """Close the microphone stream."""
        self.abort()
        if self._stream is None:
            return
        stream, self._stream = self._stream, None
        try:
            stream.stop()
            stream.close()
        finally:
            self._level = 0.0
            logger.info("Microphone released")
