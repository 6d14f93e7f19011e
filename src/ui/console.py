"""
Terminal presentation for the civics quiz.

Renders each session snapshot with rich and turns Enter presses into
session commands: start (or retry) when idle, stop/start recording while
listening. Enter is ignored while a question or feedback is playing or an
answer is being processed, mirroring a disabled record button.

Usage:
    civics-quiz                # talk to the API server
    civics-quiz --local        # call OpenAI in-process, no server needed
"""

import argparse
import asyncio
import logging

import aioconsole
from rich.console import Console
from rich.panel import Panel
from rich.text import Text

from src.core.config import get_settings
from src.core.logging import configure_logging
from src.core.models import MicPolicy, SessionState
from src.services.audio.capture import MicrophoneCapture
from src.services.audio.playback import SpeakerPlayback
from src.services.gateway import BaseGateway, create_gateway
from src.services.orchestrator import QuizSession
from src.ui.api_client import QuizAPIClient

logger = logging.getLogger(__name__)

# Seconds between level meter redraws
_METER_INTERVAL = 0.1

_STATUS_TEXT = {
    SessionState.idle: "Press Enter to start the quiz.",
    SessionState.initializing: "Preparing your examiner...",
    SessionState.speaking_question: "Asking...",
    SessionState.listening: "Listening... press Enter when you have finished answering.",
    SessionState.processing: "Thinking...",
    SessionState.speaking_feedback: "Feedback...",
    SessionState.error: "Press Enter to retry.",
}


def level_bar(level: float, width: int = 24) -> Text:
    """Render a microphone level (0.0 - 1.0) as a horizontal bar."""
    # Speech RMS rarely exceeds 0.25, so that fills the bar
    filled = max(0, min(width, round(level * 4 * width)))
    bar = Text("Mic ", style="dim")
    bar.append("█" * filled, style="green")
    bar.append("░" * (width - filled), style="dim")
    return bar


class QuizConsole:
    """Interactive REPL bound to one ``QuizSession``."""

    def __init__(self, session: QuizSession, console: Console | None = None) -> None:
        self.session = session
        self.console = console or Console()
        self._task: asyncio.Task | None = None
        self._meter: asyncio.Task | None = None
        self._last_state: str | None = None
        self._last_recording = False
        session.subscribe(self.render)

    async def render(self, snapshot: dict) -> None:
        """Print what changed since the previous snapshot."""
        state = SessionState(snapshot["state"])
        if state.value == self._last_state and snapshot["recording"] == self._last_recording:
            return
        state_changed = state.value != self._last_state
        self._last_state = state.value
        self._last_recording = snapshot["recording"]

        if state_changed and state == SessionState.speaking_question and snapshot["question"]:
            self.console.print(Panel(snapshot["question"], title="Question", border_style="cyan"))
        elif state_changed and state == SessionState.speaking_feedback and snapshot["feedback"]:
            if snapshot["answer"]:
                self.console.print(Text(f"You said: {snapshot['answer']}", style="dim"))
            self.console.print(Panel(snapshot["feedback"], title="Feedback", border_style="yellow"))
        elif state == SessionState.error:
            self.console.print(Panel(snapshot["error"], title="Error", border_style="red"))

        status = _STATUS_TEXT[state]
        if state == SessionState.listening and not snapshot["recording"]:
            status = "Press Enter to record your answer."
        self.console.print(Text(status, style="bold" if snapshot["recording"] else "dim"))
        if snapshot["recording"] and (self._meter is None or self._meter.done()):
            self._meter = asyncio.create_task(self._show_level())

    async def _show_level(self) -> None:
        """Draw a live level meter until the recording stops."""
        with self.console.status(level_bar(0.0), spinner="dots") as status:
            while self.session.is_recording:
                status.update(level_bar(self.session.input_level))
                await asyncio.sleep(_METER_INTERVAL)

    def _report_failure(self, task: asyncio.Task) -> None:
        """Surface an exception that escaped a dispatched command."""
        if task.cancelled() or task.exception() is None:
            return
        exc = task.exception()
        logger.error("Quiz command failed: %s", exc, exc_info=exc)
        self.console.print(Text(f"Command failed: {exc}", style="red"))

    def _dispatch(self) -> None:
        """Start the command that Enter maps to in the current state."""
        if self.session.can_start:
            self._task = asyncio.create_task(self.session.start())
        elif self.session.can_toggle_recording:
            self._task = asyncio.create_task(self.session.toggle_recording())
        else:
            self.console.print(Text("Please wait...", style="dim"))
            return
        self._task.add_done_callback(self._report_failure)

    async def run(self) -> None:
        """Read commands until the user quits."""
        self.console.print(
            Panel(
                "Practice the civics questions of the US naturalization interview.\n"
                "Enter: start / stop answering    q: quit",
                title="Civics Quiz",
                border_style="blue",
            )
        )
        await self.render(self.session.snapshot())
        try:
            while True:
                line = await aioconsole.ainput("")
                if line.strip().lower() in ("q", "quit", "exit"):
                    break
                self._dispatch()
        except (EOFError, KeyboardInterrupt):
            pass
        finally:
            for task in (self._task, self._meter):
                if task is not None and not task.done():
                    task.cancel()
            await self.session.end()


def build_session(local: bool = False, mic_policy: str | None = None) -> tuple[QuizSession, BaseGateway]:
    """Wire a session to real devices and the configured gateway."""
    settings = get_settings()
    if local:
        gateway = create_gateway(settings.quiz_gateway_provider)
    else:
        gateway = QuizAPIClient(base_url=settings.api_base_url)
    capture = MicrophoneCapture(
        sample_rate=settings.quiz_sample_rate,
        channels=settings.quiz_channels,
        preferred_encodings=settings.quiz_preferred_encodings,
    )
    playback = SpeakerPlayback(gateway.text_to_speech)
    session = QuizSession(
        gateway,
        capture,
        playback,
        mic_policy=MicPolicy(mic_policy or settings.quiz_mic_policy),
    )
    return session, gateway


async def _run(args: argparse.Namespace) -> None:
    session, gateway = build_session(local=args.local, mic_policy=args.mic_policy)
    try:
        await QuizConsole(session).run()
    finally:
        if isinstance(gateway, QuizAPIClient):
            await gateway.aclose()


def main() -> None:
    """Main entry point."""
    parser = argparse.ArgumentParser(description="Spoken US civics test practice")
    parser.add_argument(
        "--local",
        action="store_true",
        help="Call the inference service directly instead of the API server",
    )
    parser.add_argument(
        "--mic-policy",
        choices=[policy.value for policy in MicPolicy],
        default=None,
        help="Keep the microphone open between answers or release it each turn",
    )
    parser.add_argument("--log-level", default=None, help="Override LOG_LEVEL")
    args = parser.parse_args()

    configure_logging(args.log_level)
    asyncio.run(_run(args))


if __name__ == "__main__":
    main()
