"""Quiz session orchestrator.

``QuizSession`` is the state machine that sequences one spoken turn:
question playback, recording, transcription, answer submission, feedback
playback, next question. Each turn runs as one awaited chain, so every
step starts only after the previous one has finished.

Usage::

    session = QuizSession(gateway, capture, playback, notify=render)
    await session.start()              # ... -> listening
    await session.toggle_recording()   # stop -> processing -> ... -> listening
    await session.end()
"""

import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass

from src.core.exceptions import InvalidTransitionError, QuizError
from src.core.models import MicPolicy, SessionState, Turn
from src.services.audio.capture import MicrophoneCapture, RecordingBuffer
from src.services.audio.playback import SpeakerPlayback
from src.services.gateway import BaseGateway

logger = logging.getLogger(__name__)

Notify = Callable[[dict], Awaitable[None]]


class _StaleTurn(Exception):
    """A turn kept running after end() or a new start() replaced it."""

# Error and idle are reachable from every state
TRANSITIONS: dict[SessionState, frozenset[SessionState]] = {
    SessionState.idle: frozenset({SessionState.initializing}),
    SessionState.initializing: frozenset({SessionState.speaking_question}),
    SessionState.speaking_question: frozenset({SessionState.listening}),
    SessionState.listening: frozenset({SessionState.processing}),
    SessionState.processing: frozenset({SessionState.speaking_feedback}),
    SessionState.speaking_feedback: frozenset({SessionState.speaking_question}),
    SessionState.error: frozenset({SessionState.initializing}),
}
_ALWAYS_REACHABLE = frozenset({SessionState.error, SessionState.idle})


@dataclass
class QuizState:
    """Everything the session owns. The presentation renders snapshots of it."""

    state: SessionState = SessionState.idle
    agent_id: str | None = None
    session_handle: str | None = None
    turn: Turn | None = None
    turns_completed: int = 0
    error_message: str = ""
    # Bumped by start() and end(); a turn only acts while its number is current
    generation: int = 0


class QuizSession:
    """Drives one quiz session across an unbounded series of turns.

    Args:
        gateway: Inference gateway (in-process or over HTTP).
        capture: Microphone capture.
        playback: Speech playback.
        mic_policy: Keep the microphone open for the session, or release it
            after every recording.
        notify: Optional async callback receiving a snapshot after every
            state change.
    """

    def __init__(
        self,
        gateway: BaseGateway,
        capture: MicrophoneCapture,
        playback: SpeakerPlayback,
        mic_policy: MicPolicy = MicPolicy.keep_open,
        notify: Notify | None = None,
    ) -> None:
        self._gateway = gateway
        self._capture = capture
        self._playback = playback
        self._mic_policy = MicPolicy(mic_policy)
        self._listeners: list[Notify] = [notify] if notify else []
        self._state = QuizState()

    # -- inspection --

    @property
    def state(self) -> SessionState:
        return self._state.state

    @property
    def session_handle(self) -> str | None:
        return self._state.session_handle

    @property
    def is_recording(self) -> bool:
        return self._capture.is_recording

    @property
    def input_level(self) -> float:
        """Live microphone level (0.0 - 1.0) for a level meter."""
        return self._capture.level

    @property
    def can_start(self) -> bool:
        return self._state.state in (SessionState.idle, SessionState.error)

    @property
    def can_toggle_recording(self) -> bool:
        """Recording is only controllable while listening for an answer."""
        return self._state.state == SessionState.listening

    def snapshot(self) -> dict:
        turn = self._state.turn
        return {
            "state": self._state.state.value,
            "question": turn.question if turn else "",
            "answer": turn.answer if turn else None,
            "feedback": turn.feedback if turn else None,
            "error": self._state.error_message,
            "turns_completed": self._state.turns_completed,
            "recording": self.is_recording,
            "can_start": self.can_start,
            "can_toggle_recording": self.can_toggle_recording,
        }

    def subscribe(self, notify: Notify) -> None:
        self._listeners.append(notify)

    # -- commands --

    async def start(self) -> None:
        """Begin a fresh session and run until the first answer is awaited.

        The agent id is reused across retries; the conversation is not.

        Raises:
            InvalidTransitionError: If a session is already running.
        """
        if not self.can_start:
            raise InvalidTransitionError(self._state.state, SessionState.initializing)
        generation = self._next_generation()
        self._state.session_handle = None
        self._state.turn = None
        self._state.error_message = ""
        await self._transition(SessionState.initializing, generation)
        try:
            await self._capture.acquire()
            self._check_current(generation)
            if self._state.agent_id is None:
                agent_id = await self._gateway.ensure_agent()
                self._check_current(generation)
                self._state.agent_id = agent_id
            handle, question = await self._gateway.start_session(self._state.agent_id)
            self._check_current(generation)
            self._state.session_handle = handle
            await self._ask(question, generation)
        except _StaleTurn:
            self._abandon("Session start")
        except Exception as exc:
            await self._fail(exc, generation)

    async def toggle_recording(self) -> None:
        """Stop the current recording (submitting it) or start a new one.

        Raises:
            InvalidTransitionError: Outside the listening state, where the
                record control is disabled.
        """
        if not self.can_toggle_recording:
            raise InvalidTransitionError(self._state.state, "recording")
        if self._capture.is_recording:
            await self.stop_recording()
            return
        generation = self._state.generation
        try:
            await self._begin_recording(generation)
        except _StaleTurn:
            self._abandon("Recording start")
        except Exception as exc:
            await self._fail(exc, generation)

    async def stop_recording(self) -> bool:
        """Stop recording and submit the result.

        Returns:
            True if a recording was submitted. Repeated stop events without a
            new recording in between return False and submit nothing.
        """
        if self._state.state != SessionState.listening or not self._capture.is_recording:
            logger.debug("Ignoring stop in %s: no active recording", self._state.state)
            return False
        generation = self._state.generation
        try:
            buffer = await self._capture.stop()
            if self._mic_policy == MicPolicy.release_per_turn:
                self._capture.release()
        except Exception as exc:
            await self._fail(exc, generation)
            return False
        if buffer is None or generation != self._state.generation:
            return False
        return await self.submit(buffer)

    async def submit(self, buffer: RecordingBuffer) -> bool:
        """Transcribe and submit a finished recording, then run the turn to
        the next question.

        Returns:
            False, doing nothing, if ``buffer`` was already submitted.

        Raises:
            InvalidTransitionError: If a fresh buffer arrives outside listening.
        """
        if buffer.consumed:
            logger.warning("Ignoring a recording that was already submitted")
            return False
        if self._state.state != SessionState.listening:
            raise InvalidTransitionError(self._state.state, SessionState.processing)

        generation = self._state.generation
        turn = self._state.turn
        audio = buffer.consume()
        await self._transition(SessionState.processing, generation)
        try:
            answer = await self._gateway.speech_to_text(audio, filename=buffer.filename)
            self._check_current(generation)
            turn.answer = answer
            result = await self._gateway.submit_answer(
                self._state.session_handle, self._state.agent_id, answer
            )
            self._check_current(generation)
            self._state.session_handle = result.session_handle
            turn.feedback = result.feedback
            self._state.turns_completed += 1

            await self._transition(SessionState.speaking_feedback, generation)
            await self._playback.speak(result.feedback)
            await self._ask(result.next_question, generation)
        except _StaleTurn:
            self._abandon("Turn")
        except Exception as exc:
            await self._fail(exc, generation)
        return True

    async def end(self) -> None:
        """Abandon the session and release the microphone.

        A turn still awaiting the gateway or playback is left to finish its
        current call, then stops without touching the session.
        """
        self._next_generation()
        self._capture.abort()
        self._release_capture()
        self._state.session_handle = None
        self._state.turn = None
        self._state.error_message = ""
        await self._transition(SessionState.idle)

    # -- internals --

    def _next_generation(self) -> int:
        self._state.generation += 1
        return self._state.generation

    def _check_current(self, generation: int) -> None:
        if generation != self._state.generation:
            raise _StaleTurn()

    async def _ask(self, question: str, generation: int) -> None:
        self._check_current(generation)
        self._state.turn = Turn(question=question)
        await self._transition(SessionState.speaking_question, generation)
        await self._playback.speak(question)
        await self._transition(SessionState.listening, generation)
        await self._begin_recording(generation)

    async def _begin_recording(self, generation: int) -> None:
        if self._mic_policy == MicPolicy.release_per_turn:
            await self._capture.acquire()
        self._check_current(generation)
        self._capture.start()
        await self._notify_all()

    def _abandon(self, what: str) -> None:
        logger.info("%s abandoned: the session was ended or restarted", what)
        # A device acquired after end() must not stay open
        if self._state.state == SessionState.idle:
            self._release_capture()

    def _release_capture(self) -> None:
        try:
            self._capture.release()
        except Exception:
            logger.warning("Failed to release microphone", exc_info=True)

    async def _fail(self, exc: Exception, generation: int) -> None:
        if generation != self._state.generation:
            logger.info("Ignoring failure of an abandoned turn: %s", exc)
            return
        if isinstance(exc, QuizError):
            message = exc.detail
            logger.warning("Quiz failed in %s: %s", self._state.state, message)
        else:
            message = f"Unexpected error: {exc}"
            logger.exception("Quiz failed in %s", self._state.state)

        self._capture.abort()
        self._release_capture()
        self._state.session_handle = None
        self._state.turn = None
        self._state.error_message = message or "Something went wrong"
        await self._transition(SessionState.error)

    async def _transition(self, target: SessionState, generation: int | None = None) -> None:
        if generation is not None:
            self._check_current(generation)
        current = self._state.state
        if target not in _ALWAYS_REACHABLE and target not in TRANSITIONS[current]:
            raise InvalidTransitionError(current, target)
        self._state.state = target
        logger.info("Quiz state %s -> %s", current, target)
        await self._notify_all()

    async def _notify_all(self) -> None:
        snapshot = self.snapshot()
        for notify in self._listeners:
            try:
                await notify(snapshot)
            except Exception:
                logger.warning("Notify callback failed (non-fatal)", exc_info=True)
