"""
Pydantic v2 request / response models and session state types.

Wire models serialize with camelCase aliases (``agentId``, ``sessionHandle``)
and accept snake_case on input as well.
"""

from dataclasses import dataclass
from datetime import datetime
from enum import StrEnum

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

# ---------------------------------------------------------------------------
# Health
# ---------------------------------------------------------------------------


class HealthResponse(BaseModel):
    """GET /health response."""

    status: str = "ok"
    version: str = "0.1.0"
    timestamp: datetime


# ---------------------------------------------------------------------------
# Quiz wire models
# ---------------------------------------------------------------------------


class WireModel(BaseModel):
    """Base for JSON payloads exchanged with the quiz boundary."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class InitResponse(WireModel):
    """POST /quiz/init response."""

    agent_id: str


class StartRequest(WireModel):
    """POST /quiz/start request body."""

    agent_id: str = Field(min_length=1)


class StartResponse(WireModel):
    """POST /quiz/start response: the new session and its first question."""

    session_handle: str
    question_text: str


class AnswerRequest(WireModel):
    """POST /quiz/answer request body."""

    session_handle: str = Field(min_length=1)
    agent_id: str = Field(min_length=1)
    answer_text: str = ""


class AnswerResponse(WireModel):
    """POST /quiz/answer response.

    ``new_session_handle`` is the only handle valid for the next answer.
    """

    feedback_text: str
    next_question_text: str
    new_session_handle: str


class SpeakRequest(WireModel):
    """POST /quiz/speak request body."""

    text: str = ""


class TranscribeResponse(WireModel):
    """POST /quiz/transcribe response."""

    text: str


class ErrorResponse(BaseModel):
    """Error envelope returned with every non-2xx status."""

    error: str
    code: str
    timestamp: str


# ---------------------------------------------------------------------------
# Session
# ---------------------------------------------------------------------------


class SessionState(StrEnum):
    """States of the quiz session state machine."""

    idle = "idle"
    initializing = "initializing"
    speaking_question = "speaking_question"
    listening = "listening"
    processing = "processing"
    speaking_feedback = "speaking_feedback"
    error = "error"


class MicPolicy(StrEnum):
    """When the microphone device is released."""

    keep_open = "keep_open"
    release_per_turn = "release_per_turn"


@dataclass
class Turn:
    """One question / answer / feedback exchange."""

    question: str
    answer: str | None = None
    feedback: str | None = None


@dataclass
class AnswerResult:
    """Outcome of submitting an answer to the inference gateway."""

    feedback: str
    next_question: str
    session_handle: str
