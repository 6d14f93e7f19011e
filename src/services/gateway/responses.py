"""
Inference gateway on the OpenAI Responses API.

The agent is the configured model searching the corpus vector store, so
the agent id is the verified vector store id. A session is a chain of
responses: every call passes ``previous_response_id`` of the call before
it, and the id of the last call becomes the new session handle.
"""

import logging

from src.core.exceptions import ProvisioningError, UpstreamError
from src.core.models import AnswerResult
from src.services.gateway import prompts
from src.services.gateway.client import OpenAIGateway, translate_errors

logger = logging.getLogger(__name__)

_FAILED_STATUSES = frozenset({"failed", "cancelled", "incomplete"})


class ResponsesGateway(OpenAIGateway):
    """Response-chain gateway with ``file_search`` over the corpus."""

    async def ensure_agent(self) -> str:
        with translate_errors(ProvisioningError, "Corpus lookup"):
            store = await self._client.vector_stores.retrieve(self._vector_store_id)
        if store.status == "expired":
            raise ProvisioningError(f"Corpus {store.id} has expired")
        logger.info("Using corpus %s with model %s", store.id, self._model)
        return store.id

    async def start_session(self, agent_id: str) -> tuple[str, str]:
        response = await self._respond(
            agent_id, prompts.QUESTIONER, prompts.ASK_DIRECTIVE, previous=None
        )
        return response.id, response.output_text

    async def submit_answer(self, session_handle: str, agent_id: str, answer: str) -> AnswerResult:
        feedback = await self._respond(
            agent_id, prompts.EXAMINER, answer or prompts.NO_ANSWER, previous=session_handle
        )
        # Anchored to the feedback response, not to session_handle
        question = await self._respond(
            agent_id,
            prompts.next_question_instructions(),
            prompts.ASK_DIRECTIVE,
            previous=feedback.id,
        )
        return AnswerResult(
            feedback=feedback.output_text,
            next_question=question.output_text,
            session_handle=question.id,
        )

    async def _respond(self, agent_id: str, instructions: str, text: str, previous: str | None):
        kwargs = {}
        if previous:
            kwargs["previous_response_id"] = previous
        with translate_errors(UpstreamError, "Response"):
            response = await self._client.responses.create(
                model=self._model,
                instructions=instructions,
                input=text,
                tools=[{"type": "file_search", "vector_store_ids": [agent_id]}],
                **kwargs,
            )
        if response.status in _FAILED_STATUSES:
            reason = response.error.message if response.error else response.status
            raise UpstreamError(f"Response failed: {reason}")
        if not response.output_text:
            raise UpstreamError("Response contained no text")
        return response
