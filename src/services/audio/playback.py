"""Speech playback: synthesize text, decode it, and play it on the speakers."""

import asyncio
import logging
from collections.abc import Awaitable, Callable

import numpy as np

from src.core.exceptions import PlaybackError
from src.services.audio.capture import load_sounddevice
from src.services.audio.processor import AudioProcessor

logger = logging.getLogger(__name__)


class SpeakerPlayback:
    """Plays synthesized speech through the default output device.

    Args:
        synthesize: Async text-to-speech call returning encoded audio bytes.
            Its errors (``SynthesisError``) propagate unchanged.
    """

    def __init__(self, synthesize: Callable[[str], Awaitable[bytes]]) -> None:
        self._synthesize = synthesize
        self._active = False

    @property
    def is_active(self) -> bool:
        return self._active

    @staticmethod
    def _decode(audio: bytes) -> tuple[np.ndarray, int]:
        try:
            return AudioProcessor.decode(audio)
        except (RuntimeError, ValueError, TypeError) as exc:
            raise PlaybackError(f"Could not decode synthesized audio: {exc}") from exc

    @staticmethod
    def _play(samples: np.ndarray, sample_rate: int) -> None:
        """Blocking playback; runs in a worker thread until the audio ends."""
        try:
            sd = load_sounddevice()
        except OSError as exc:
            raise PlaybackError(f"Audio output unavailable: {exc}") from exc
        try:
            sd.play(samples, samplerate=sample_rate)
            sd.wait()
        except sd.PortAudioError as exc:
            raise PlaybackError(f"Audio playback failed: {exc}") from exc

    async def speak(self, text: str, on_complete: Callable[[], None] | None = None) -> None:
        """Speak ``text`` and return once playback has finished.

        ``on_complete`` is called exactly once, after the audio ends. It is not
        called when synthesis or playback fails.

        Raises:
            SynthesisError: If text-to-speech fails.
            PlaybackError: If the audio cannot be decoded or played.
        """
        audio = await self._synthesize(text)
        samples, sample_rate = await asyncio.to_thread(self._decode, audio)

        self._active = True
        try:
            await asyncio.to_thread(self._play, samples, sample_rate)
        finally:
            self._active = False

        logger.debug("Played %.1fs of speech", len(samples) / sample_rate)
        if on_complete is not None:
            on_complete()
