"""
Inference gateway on the OpenAI Assistants API.

The agent is an assistant tagged ``metadata.app`` whose ``file_search``
tool is bound to the corpus vector store. A session is a thread; every
call runs on that thread, so the handle returned by ``submit_answer`` is
the thread id it was given.
"""

import logging

from tenacity import AsyncRetrying, RetryError, retry_if_result, stop_after_delay, wait_fixed

from src.core.exceptions import ProvisioningError, UpstreamError
from src.core.models import AnswerResult
from src.services.gateway import prompts
from src.services.gateway.client import OpenAIGateway, translate_errors

logger = logging.getLogger(__name__)

_PENDING_STATUSES = frozenset({"queued", "in_progress", "cancelling"})


def _is_pending(run) -> bool:
    return run.status in _PENDING_STATUSES


def _bound_store_ids(assistant) -> list[str]:
    resources = assistant.tool_resources
    if resources is None or resources.file_search is None:
        return []
    return list(resources.file_search.vector_store_ids or [])


class AssistantsGateway(OpenAIGateway):
    """Thread/run based gateway. Runs are polled until they leave the queue."""

    def __init__(self, *args, **kwargs) -> None:
        super().__init__(*args, **kwargs)
        self._poll_interval = self._settings.quiz_run_poll_interval
        self._run_timeout = self._settings.quiz_run_timeout
        self._app_tag = self._settings.quiz_agent_app_tag

    async def ensure_agent(self) -> str:
        with translate_errors(ProvisioningError, "Assistant lookup"):
            page = await self._client.beta.assistants.list(limit=50)
        for assistant in page.data:
            metadata = assistant.metadata or {}
            if metadata.get("app") == self._app_tag and self._vector_store_id in _bound_store_ids(
                assistant
            ):
                logger.info("Reusing assistant %s", assistant.id)
                return assistant.id

        with translate_errors(ProvisioningError, "Assistant creation"):
            created = await self._client.beta.assistants.create(
                name=self._settings.quiz_agent_name,
                model=self._model,
                instructions=prompts.DEFAULT_INSTRUCTIONS,
                tools=[{"type": "file_search"}],
                tool_resources={"file_search": {"vector_store_ids": [self._vector_store_id]}},
                metadata={"app": self._app_tag},
            )
        logger.info("Created assistant %s for corpus %s", created.id, self._vector_store_id)
        return created.id

    async def start_session(self, agent_id: str) -> tuple[str, str]:
        with translate_errors(UpstreamError, "Thread creation"):
            thread = await self._client.beta.threads.create()
        question = await self._run(
            thread.id, agent_id, prompts.QUESTIONER, ask=prompts.ASK_DIRECTIVE
        )
        return thread.id, question

    async def submit_answer(self, session_handle: str, agent_id: str, answer: str) -> AnswerResult:
        with translate_errors(UpstreamError, "Posting answer"):
            await self._client.beta.threads.messages.create(
                session_handle,
                role="user",
                content=answer or prompts.NO_ANSWER,
            )
        feedback = await self._run(session_handle, agent_id, prompts.EXAMINER)
        # Runs on the same thread after the feedback, so the agent sees it
        question = await self._run(
            session_handle,
            agent_id,
            prompts.next_question_instructions(),
            ask=prompts.ASK_DIRECTIVE,
        )
        return AnswerResult(feedback=feedback, next_question=question, session_handle=session_handle)

    async def _run(
        self, thread_id: str, agent_id: str, instructions: str, ask: str | None = None
    ) -> str:
        """Run the assistant with overriding instructions and return its reply."""
        extra = {}
        if ask:
            extra["additional_messages"] = [{"role": "user", "content": ask}]

        with translate_errors(UpstreamError, "Assistant run"):
            run = await self._client.beta.threads.runs.create(
                thread_id=thread_id,
                assistant_id=agent_id,
                instructions=instructions,
                **extra,
            )
            run = await self._wait_for_run(thread_id, run)

        if run.status != "completed":
            reason = run.last_error.message if run.last_error else run.status
            raise UpstreamError(f"Run failed: {reason}")

        with translate_errors(UpstreamError, "Reading reply"):
            page = await self._client.beta.threads.messages.list(
                thread_id=thread_id, run_id=run.id, order="desc", limit=10
            )
        for message in page.data:
            if message.role != "assistant":
                continue
            for block in message.content:
                if block.type == "text":
                    return block.text.value
        raise UpstreamError("Assistant returned no text")

    async def _wait_for_run(self, thread_id: str, run):
        """Poll a run until it reaches a terminal status or the timeout passes."""
        if not _is_pending(run):
            return run
        retrying = AsyncRetrying(
            retry=retry_if_result(_is_pending),
            wait=wait_fixed(self._poll_interval),
            stop=stop_after_delay(self._run_timeout),
        )
        try:
            return await retrying(
                self._client.beta.threads.runs.retrieve, run.id, thread_id=thread_id
            )
        except RetryError as exc:
            raise UpstreamError(
                f"Run {run.id} did not finish within {self._run_timeout:.0f}s"
            ) from exc
