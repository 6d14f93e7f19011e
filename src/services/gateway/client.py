"""
Shared OpenAI plumbing for the inference gateways.

Owns the ``AsyncOpenAI`` client, speech synthesis, transcription
delegation, and translation of SDK exceptions into quiz errors.
"""

import logging
from collections.abc import Iterator
from contextlib import contextmanager

import openai
from openai import AsyncOpenAI

from src.core.config import get_settings
from src.core.exceptions import QuizError, RecognitionError, SynthesisError
from src.services.gateway.base import BaseGateway
from src.services.transcription import BaseSTT, create_stt

logger = logging.getLogger(__name__)


@contextmanager
def translate_errors(error_cls: type[QuizError], action: str) -> Iterator[None]:
    """Re-raise OpenAI SDK exceptions as ``error_cls`` with a readable message."""
    try:
        yield
    except openai.OpenAIError as exc:
        logger.warning("%s failed: %s", action, exc)
        raise error_cls(f"{action} failed: {exc}") from exc


class OpenAIGateway(BaseGateway):
    """Base for gateways talking to the OpenAI API.

    Args:
        client: Optional pre-built ``AsyncOpenAI`` client.
        stt: Optional STT provider (defaults to ``QUIZ_STT_PROVIDER``).
        settings: Optional Settings instance (defaults to get_settings()).
    """

    def __init__(
        self,
        client: AsyncOpenAI | None = None,
        stt: BaseSTT | None = None,
        settings=None,
    ) -> None:
        self._settings = settings or get_settings()
        self._client = client or AsyncOpenAI(
            api_key=self._settings.openai_api_key,
            base_url=self._settings.openai_base_url,
        )
        self._model = self._settings.quiz_model
        self._vector_store_id = self._settings.quiz_vector_store_id
        if stt is None:
            provider = self._settings.quiz_stt_provider
            stt_kwargs = {"client": self._client} if provider == "openai" else {}
            stt = create_stt(provider, **stt_kwargs)
        self._stt = stt

    async def text_to_speech(self, text: str) -> bytes:
        if not text or not text.strip():
            raise SynthesisError("No text provided", status_code=400)
        with translate_errors(SynthesisError, "Speech synthesis"):
            response = await self._client.audio.speech.create(
                model=self._settings.quiz_tts_model,
                voice=self._settings.quiz_tts_voice,
                input=text,
                response_format=self._settings.quiz_tts_format,
            )
        audio = response.content
        if not audio:
            raise SynthesisError("Speech synthesis returned no audio")
        return audio

    async def speech_to_text(self, audio: bytes, filename: str = "answer.wav") -> str:
        if not audio:
            raise RecognitionError("No audio provided", status_code=400)
        text = await self._stt.transcribe(audio, filename=filename)
        logger.debug("Transcribed %d bytes -> %d chars", len(audio), len(text))
        return text
