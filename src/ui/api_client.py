"""
Asynchronous HTTP client for the civics quiz backend API.

``QuizAPIClient`` implements the gateway interface over HTTP, so the
session orchestrator can run against a remote server exactly as it does
against an in-process gateway. Error envelopes are turned back into the
matching ``QuizError`` subclasses.
"""

import logging

import httpx

from src.core.exceptions import (
    ERRORS_BY_CODE,
    QuizError,
    RecognitionError,
    SynthesisError,
    UpstreamError,
)
from src.core.models import (
    AnswerRequest,
    AnswerResponse,
    AnswerResult,
    InitResponse,
    SpeakRequest,
    StartRequest,
    StartResponse,
    TranscribeResponse,
)
from src.services.gateway import BaseGateway

logger = logging.getLogger(__name__)

_PREFIX = "/api/v1/quiz"


class QuizAPIClient(BaseGateway):
    """Thin async wrapper around httpx for calling the FastAPI backend.

    All methods return parsed results or raise a ``QuizError`` subclass
    carrying the server's human-readable message.
    """

    def __init__(self, base_url: str = "http://localhost:8000", timeout: float = 120.0) -> None:
        """Initialize the HTTP client.

        Args:
            base_url: Base URL of the quiz FastAPI backend.
            timeout: Per-request timeout in seconds; answer calls run two
                model invocations back to back.
        """
        self._base_url = base_url.rstrip("/")
        self._client = httpx.AsyncClient(base_url=self._base_url, timeout=timeout)

    async def _request(self, method: str, path: str, **kwargs) -> httpx.Response:
        """Execute an HTTP request, mapping failures to quiz errors.

        Raises:
            QuizError: The subclass named by the error envelope's ``code``.
            UpstreamError: On connection, timeout, or unrecognized errors.
        """
        try:
            resp = await self._client.request(method, f"{_PREFIX}{path}", **kwargs)
        except httpx.ConnectError:
            raise UpstreamError(
                f"Quiz server is not reachable at {self._base_url}. "
                "Start it with: `civics-quiz-server`"
            ) from None
        except httpx.TimeoutException:
            raise UpstreamError("Request timed out. The server may be overloaded.") from None
        except httpx.HTTPError as exc:
            raise UpstreamError(f"Network error: {exc}") from None

        if resp.is_success:
            return resp
        raise self._error_from(resp)

    @staticmethod
    def _error_from(resp: httpx.Response) -> QuizError:
        try:
            body = resp.json()
            message = body.get("error") or resp.text
            code = body.get("code", "")
        except ValueError:
            message, code = resp.text or f"HTTP {resp.status_code}", ""
        error_cls = ERRORS_BY_CODE.get(code, UpstreamError)
        logger.debug("Server returned %s %s: %s", resp.status_code, code, message)
        return error_cls(message)

    async def ensure_agent(self) -> str:
        resp = await self._request("POST", "/init")
        return InitResponse.model_validate(resp.json()).agent_id

    async def start_session(self, agent_id: str) -> tuple[str, str]:
        body = StartRequest(agent_id=agent_id).model_dump(by_alias=True)
        resp = await self._request("POST", "/start", json=body)
        data = StartResponse.model_validate(resp.json())
        return data.session_handle, data.question_text

    async def submit_answer(self, session_handle: str, agent_id: str, answer: str) -> AnswerResult:
        body = AnswerRequest(
            session_handle=session_handle, agent_id=agent_id, answer_text=answer
        ).model_dump(by_alias=True)
        resp = await self._request("POST", "/answer", json=body)
        data = AnswerResponse.model_validate(resp.json())
        return AnswerResult(
            feedback=data.feedback_text,
            next_question=data.next_question_text,
            session_handle=data.new_session_handle,
        )

    async def text_to_speech(self, text: str) -> bytes:
        if not text or not text.strip():
            raise SynthesisError("No text provided", status_code=400)
        resp = await self._request("POST", "/speak", json=SpeakRequest(text=text).model_dump())
        return resp.content

    async def speech_to_text(self, audio: bytes, filename: str = "answer.wav") -> str:
        if not audio:
            raise RecognitionError("No audio provided", status_code=400)
        resp = await self._request("POST", "/transcribe", files={"file": (filename, audio)})
        return TranscribeResponse.model_validate(resp.json()).text

    async def aclose(self) -> None:
        await self._client.aclose()
