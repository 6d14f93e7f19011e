"""
Abstract base class for Speech-to-Text providers.

All STT implementations (hosted OpenAI Whisper, local faster-whisper) must
implement this interface, enabling provider-agnostic transcription in the
inference gateway.
"""

from abc import ABC, abstractmethod


class BaseSTT(ABC):
    """Interface that every STT provider must implement."""

    @abstractmethod
    async def transcribe(self, audio: bytes, filename: str = "answer.wav", **kwargs) -> str:
        """Transcribe one encoded audio file to text.

        Args:
            audio: Encoded audio bytes (OGG, FLAC, WAV, WebM, ...).
            filename: Name whose extension tells the provider the container.
            **kwargs: Provider-specific options (language, beam_size, etc.).

        Returns:
            The transcribed text.

        Raises:
            RecognitionError: If the provider fails.
        """
