"""
Abstract base class for inference gateways.

A gateway wraps the hosted AI service behind five request/response calls.
None of them retries on failure; recovery is the caller's decision.
"""

from abc import ABC, abstractmethod

from src.core.models import AnswerResult


class BaseGateway(ABC):
    """Interface that every inference provider must implement."""

    @abstractmethod
    async def ensure_agent(self) -> str:
        """Return the id of an agent bound to the configured corpus.

        Reuses an existing agent when one already matches, else provisions one.

        Raises:
            ProvisioningError: If lookup or creation fails.
        """

    @abstractmethod
    async def start_session(self, agent_id: str) -> tuple[str, str]:
        """Open a conversation and ask the first question.

        Returns:
            ``(session_handle, question_text)``.

        Raises:
            UpstreamError: If the remote call fails.
        """

    @abstractmethod
    async def submit_answer(self, session_handle: str, agent_id: str, answer: str) -> AnswerResult:
        """Evaluate an answer, then ask a new question anchored to the feedback.

        The returned ``session_handle`` replaces the one passed in.

        Raises:
            UpstreamError: If either remote call fails.
        """

    @abstractmethod
    async def text_to_speech(self, text: str) -> bytes:
        """Synthesize ``text`` to encoded audio.

        Raises:
            SynthesisError: On empty input or upstream failure.
        """

    @abstractmethod
    async def speech_to_text(self, audio: bytes, filename: str = "answer.wav") -> str:
        """Transcribe encoded audio.

        Raises:
            RecognitionError: On empty input or upstream failure.
        """
