"""Local Whisper STT implementation using faster-whisper.

Transcribes answer recordings on the CPU without a network round trip.
The WhisperModel is loaded lazily and cached at module level to avoid
repeated initialization overhead.
"""

import asyncio
import io
import logging

from faster_whisper import WhisperModel

from src.core.config import get_settings
from src.core.exceptions import RecognitionError
from src.services.transcription.base import BaseSTT

logger = logging.getLogger(__name__)

_model_cache: WhisperModel | None = None


class WhisperSTT(BaseSTT):
    """Speech-to-text provider using faster-whisper (CTranslate2).

    Args:
        model_size: Whisper model size (tiny, base, small, medium, large-v3).
        device: Computation device ("cpu" or "cuda").
        compute_type: CTranslate2 compute type ("int8", "float16", etc.).
        settings: Optional Settings instance (defaults to get_settings()).
    """

    def __init__(
        self,
        model_size: str | None = None,
        device: str = "cpu",
        compute_type: str = "int8",
        settings=None,
    ) -> None:
        self._settings = settings or get_settings()
        self._model_size = model_size or self._settings.whisper_model
        self._language = self._settings.whisper_default_language or None
        self._device = device
        self._compute_type = compute_type

    def _get_model(self) -> WhisperModel:
        """Return the cached WhisperModel, loading it on first use."""
        global _model_cache  # noqa: PLW0603
        if _model_cache is None:
            logger.info(
                "Loading Whisper model: %s (device=%s, compute=%s)",
                self._model_size,
                self._device,
                self._compute_type,
            )
            _model_cache = WhisperModel(
                self._model_size,
                device=self._device,
                compute_type=self._compute_type,
            )
        return _model_cache

    def _run_transcription(
        self,
        audio: bytes,
        language: str | None = None,
        beam_size: int = 5,
        vad_filter: bool = True,
    ) -> str:
        """Run synchronous transcription (CPU-bound).

        Must be called via asyncio.to_thread(). The segment iterator is
        materialized inside this function to avoid CTranslate2
        thread-safety issues.
        """
        model = self._get_model()
        segments_iter, info = model.transcribe(
            io.BytesIO(audio),
            language=language,
            beam_size=beam_size,
            vad_filter=vad_filter,
        )
        # Materialize the generator in the same thread to avoid
        # CTranslate2 cross-thread issues.
        texts = [seg.text.strip() for seg in segments_iter if seg.text.strip()]
        logger.debug(
            "Whisper detected %s (p=%.2f) over %.1fs",
            info.language,
            info.language_probability,
            info.duration,
        )
        return " ".join(texts)

    async def transcribe(self, audio: bytes, filename: str = "answer.wav", **kwargs) -> str:
        """Transcribe an encoded recording held in memory.

        Args:
            audio: Encoded audio bytes; the container is sniffed by the decoder.
            filename: Unused, kept for interface parity.
            **kwargs: Optional keys: language, beam_size, vad_filter.
        """
        try:
            return await asyncio.to_thread(
                self._run_transcription,
                audio,
                language=kwargs.get("language", self._language),
                beam_size=kwargs.get("beam_size", 5),
                vad_filter=kwargs.get("vad_filter", True),
            )
        except Exception as exc:
            raise RecognitionError(f"Whisper transcription failed: {exc}") from exc
