"""Hosted Whisper STT through the OpenAI audio transcription endpoint."""

import logging

import openai
from openai import AsyncOpenAI

from src.core.config import get_settings
from src.core.exceptions import RecognitionError
from src.services.transcription.base import BaseSTT

logger = logging.getLogger(__name__)


class OpenAISTT(BaseSTT):
    """Speech-to-text provider backed by ``audio.transcriptions``.

    Args:
        client: Shared ``AsyncOpenAI`` client (created from settings if omitted).
        model: Transcription model name (defaults to ``QUIZ_STT_MODEL``).
    """

    def __init__(self, client: AsyncOpenAI | None = None, model: str | None = None) -> None:
        settings = get_settings()
        self._client = client or AsyncOpenAI(
            api_key=settings.openai_api_key, base_url=settings.openai_base_url
        )
        self._model = model or settings.quiz_stt_model

    async def transcribe(self, audio: bytes, filename: str = "answer.wav", **kwargs) -> str:
        try:
            response = await self._client.audio.transcriptions.create(
                model=self._model,
                file=(filename, audio),
                **kwargs,
            )
        except openai.OpenAIError as exc:
            logger.warning("OpenAI transcription failed: %s", exc)
            raise RecognitionError(f"Transcription failed: {exc}") from exc
        return response.text.strip()
