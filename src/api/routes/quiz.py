"""
Quiz REST endpoints.

The five calls a quiz client needs: ``init``, ``start``, ``answer``,
``speak`` and ``transcribe``. All endpoints delegate to the inference
gateway; no session state is kept here, the client owns the handles.
"""

import logging
from functools import lru_cache

from fastapi import APIRouter, Depends, File, UploadFile
from fastapi.responses import Response

from src.core.config import get_settings
from src.core.exceptions import InvalidRequestError
from src.core.models import (
    AnswerRequest,
    AnswerResponse,
    InitResponse,
    SpeakRequest,
    StartRequest,
    StartResponse,
    TranscribeResponse,
)
from src.services.gateway import BaseGateway, create_gateway

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/quiz", tags=["quiz"])

_AUDIO_MEDIA_TYPES = {
    "mp3": "audio/mpeg",
    "opus": "audio/ogg",
    "aac": "audio/aac",
    "flac": "audio/flac",
    "wav": "audio/wav",
    "pcm": "audio/L16",
}


@lru_cache
def get_gateway() -> BaseGateway:
    """Return the process-wide gateway for the configured provider."""
    settings = get_settings()
    return create_gateway(settings.quiz_gateway_provider)


@router.post("/init", response_model=InitResponse)
async def init_agent(gateway: BaseGateway = Depends(get_gateway)):
    """Look up or provision the quiz agent."""
    agent_id = await gateway.ensure_agent()
    return InitResponse(agent_id=agent_id)


@router.post("/start", response_model=StartResponse)
async def start_session(body: StartRequest, gateway: BaseGateway = Depends(get_gateway)):
    """Open a conversation and return its first question."""
    handle, question = await gateway.start_session(body.agent_id)
    logger.info("Started quiz session %s", handle)
    return StartResponse(session_handle=handle, question_text=question)


@router.post("/answer", response_model=AnswerResponse)
async def submit_answer(body: AnswerRequest, gateway: BaseGateway = Depends(get_gateway)):
    """Evaluate an answer and return feedback plus the next question."""
    result = await gateway.submit_answer(body.session_handle, body.agent_id, body.answer_text)
    return AnswerResponse(
        feedback_text=result.feedback,
        next_question_text=result.next_question,
        new_session_handle=result.session_handle,
    )


@router.post("/speak")
async def speak(body: SpeakRequest, gateway: BaseGateway = Depends(get_gateway)):
    """Synthesize text and return the raw audio."""
    audio = await gateway.text_to_speech(body.text)
    media_type = _AUDIO_MEDIA_TYPES.get(get_settings().quiz_tts_format, "application/octet-stream")
    return Response(
        content=audio,
        media_type=media_type,
        headers={"Content-Length": str(len(audio))},
    )


@router.post("/transcribe", response_model=TranscribeResponse)
async def transcribe(
    file: UploadFile | None = File(None),
    gateway: BaseGateway = Depends(get_gateway),
):
    """Transcribe an uploaded answer recording."""
    if file is None:
        raise InvalidRequestError("No file provided")
    audio = await file.read()
    text = await gateway.speech_to_text(audio, filename=file.filename or "answer.wav")
    return TranscribeResponse(text=text)
