"""Candidate-side driver of the interview turn cycle.

The orchestrator speaks a question, listens for the answer and forwards it to
the session coordinator when one is reachable. When the coordinator is absent
or slow it keeps the interview going from the role's question bank and scores
locally, without abandoning the remote session.

All state lives on a single asyncio loop: phases, watchdog callbacks and
inbound coordinator events never run concurrently.
"""
from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Literal, Optional, Set, Tuple
from uuid import uuid4

from pydantic import ValidationError

from config.settings import settings
from interview_session.models import Answer, Question, Recommendation, utcnow
from observability import log_event
from services.question_bank import questions_for
from services.scoring import score

from .speech import SpeechChannel, SpeechInput, SpeechOutput, SpeechResourceUnavailable
from .transport import Transport, TransportUnavailable
from .watchdog import Watchdog

logger = logging.getLogger(__name__)

Mode = Literal["remote", "local"]
Phase = Literal[
    "idle",
    "starting",
    "speaking",
    "listening",
    "awaiting_answer",
    "awaiting_followup",
    "awaiting_finish",
    "completed",
    "blocked",
]
ResultSource = Literal["remote", "local"]

NO_MORE_QUESTIONS = "I have no further questions at this time."
LOCAL_SESSION_PREFIX = "local-"


def completion_message(recommendation: Recommendation) -> str:
    return (
        f"Interview complete. {recommendation.summary} "
        f"Recommendation: {recommendation.label}. "
        f"Overall score: {recommendation.score} out of 100."
    )


@dataclass
class LocalInterviewState:
    """Question bank snapshot and cursor used while the coordinator is not answering."""

    question_bank: Tuple[Question, ...]
    captured_answers: List[Answer] = field(default_factory=list)
    cursor: int = 0

    @classmethod
    def for_role(cls, role: str, captured_answers: Optional[List[Answer]] = None) -> "LocalInterviewState":
        return cls(question_bank=tuple(questions_for(role)), captured_answers=captured_answers if captured_answers is not None else [])

    @property
    def exhausted(self) -> bool:
        return self.cursor >= len(self.question_bank)

    def next_question(self) -> Optional[Question]:
        if self.exhausted:
            return None
        question = self.question_bank[self.cursor]
        self.cursor += 1
        return question


class ClientOrchestrator:
    """Drives one candidate's interview in remote or local mode."""

    def __init__(
        self,
        speaker: SpeechOutput,
        listener: SpeechInput,
        transport: Optional[Transport] = None,
        *,
        followup_timeout_s: Optional[float] = None,
        finish_timeout_s: Optional[float] = None,
        listen_delay_s: Optional[float] = None,
        duration_min: Optional[int] = None,
        on_complete: Optional[Callable[[Recommendation, ResultSource], None]] = None,
    ) -> None:
        self._speaker_device = speaker
        self._listener_device = listener
        self._speaker = SpeechChannel("speaker", speaker)
        self._listener = SpeechChannel("listener", listener)
        self._transport = transport
        self._watchdog = Watchdog()
        self._followup_timeout = settings.FOLLOWUP_WATCHDOG_SECONDS if followup_timeout_s is None else followup_timeout_s
        self._finish_timeout = settings.FINISH_WATCHDOG_SECONDS if finish_timeout_s is None else finish_timeout_s
        self._listen_delay = settings.LISTEN_DELAY_SECONDS if listen_delay_s is None else listen_delay_s
        self._duration_min = duration_min or settings.DEFAULT_DURATION_MIN
        self._on_complete = on_complete

        self.mode: Optional[Mode] = None
        self.phase: Phase = "idle"
        self.session_id: Optional[str] = None
        self.role = ""
        self.resume_text = ""
        self.current_question: Optional[Question] = None
        # Mirrors every captured answer so a local finish always has input.
        self.captured_answers: List[Answer] = []
        self.local: Optional[LocalInterviewState] = None
        self.result: Optional[Recommendation] = None
        self.result_source: Optional[ResultSource] = None
        self.blocked_reason: Optional[str] = None
        self.event_log: List[str] = []

        self._phase_task: Optional[asyncio.Task] = None
        self._local_question_ids: Set[str] = set()
        self._turn = 0
        self._pending_turn: Optional[int] = None
        # The coordinator replies to answers one for one, in order.
        self._answers_sent = 0
        self._replies_seen = 0
        self._finish_requested = False
        self._done = asyncio.Event()

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------
    @property
    def completed(self) -> bool:
        return self.phase == "completed"

    @property
    def remote(self) -> bool:
        return self.mode == "remote"

    async def start(self, role: str, resume_text: str = "") -> None:
        if self.phase != "idle" or self.mode is not None:
            raise RuntimeError("interview already started")
        self.role = role
        self.resume_text = resume_text or ""

        if self._transport is not None and self._transport.connected:
            self.mode = "remote"
            self.phase = "starting"
            self._watchdog.arm("start", self._followup_timeout, self._on_start_timeout)
            try:
                await self._transport.send(
                    "create_session",
                    {"role": role, "resume": self.resume_text, "durationMin": self._duration_min},
                )
            except TransportUnavailable as exc:
                self._watchdog.clear("start")
                self._note(f"Coordinator unavailable ({exc}); continuing locally")
                self._start_local()
            else:
                self._note("Requested interview session")
            return

        self._start_local()

    async def wait_until_complete(self, timeout: Optional[float] = None) -> Optional[Recommendation]:
        await asyncio.wait_for(self._done.wait(), timeout)
        return self.result

    async def drain(self) -> None:  # Wait for the running phase, e.g. the spoken result
        task = self._phase_task
        if task is not None and task is not asyncio.current_task():
            await asyncio.gather(task, return_exceptions=True)

    async def close(self) -> None:
        self._watchdog.clear()
        task = self._phase_task
        self._cancel_phase()
        if task is not None and task is not asyncio.current_task():
            await asyncio.gather(task, return_exceptions=True)

    # ------------------------------------------------------------------
    # Phases
    # ------------------------------------------------------------------
    def on_question_ready(self, question: Question) -> None:
        """Speak ``question`` then listen for the answer, replacing any running phase."""

        if self.completed or self._finish_requested or self.phase == "blocked":
            return
        self.current_question = question
        self.phase = "speaking"
        self._note(f"Question {question.id}: {question.text}")
        self._begin_phase(self._ask(question))

    def capture_answer(self) -> None:  # Re-open listening for the current question
        if self.current_question is None or self.completed or self._finish_requested:
            return
        self._begin_phase(self._guarded(self._listen()))

    async def on_answer_captured(self, transcript: str) -> None:
        question = self.current_question
        if question is None or self.completed or self._finish_requested:
            return
        self.captured_answers.append(Answer(question_id=question.id, transcript=transcript, answered_at=utcnow()))
        self._note(f"Answer to {question.id} captured")

        if self.remote:
            await self._submit_remote(question, transcript)
            return

        assert self.local is not None
        following = self.local.next_question()
        if following is None:
            self._complete(score(self.captured_answers, self.role), "local")
            return
        self.on_question_ready(following)

    async def request_finish(self) -> None:
        if self.completed or self._finish_requested:
            return
        self._finish_requested = True
        self._pending_turn = None
        self._watchdog.clear()
        self._cancel_phase()

        if not self.remote or self.session_id is None or self.session_id.startswith(LOCAL_SESSION_PREFIX):
            self._complete(score(self.captured_answers, self.role), "local")
            return

        self.phase = "awaiting_finish"
        self._watchdog.arm("finish", self._finish_timeout, self._on_finish_timeout)
        try:
            await self._transport.send("finish_interview", {"sessionId": self.session_id})
        except TransportUnavailable as exc:
            self._watchdog.clear("finish")
            self._note(f"Finish request failed ({exc}); scoring locally")
            self._complete(score(self.captured_answers, self.role), "local")

    # ------------------------------------------------------------------
    # Coordinator events
    # ------------------------------------------------------------------
    async def handle_event(self, event: str, data: Dict[str, Any]) -> None:
        handler = {
            "session_created": self._on_session_created,
            "followup": self._on_followup,
            "finished": self._on_finished,
            "error": self._on_error,
        }.get(event)
        if handler is None:
            logger.info("Ignoring unknown coordinator event %s", event)
            return
        try:
            handler(data or {})
        except (KeyError, ValidationError) as exc:
            logger.warning("Malformed %s event from coordinator: %s", event, exc)

    def _on_session_created(self, data: Dict[str, Any]) -> None:
        if self.phase != "starting" or not self.remote:
            self._late("session_created")
            return
        question = Question.model_validate(data["firstQuestion"])
        self.session_id = data["sessionId"]
        self._watchdog.clear("start")
        log_event("client_mode", self.session_id, mode="remote")
        self.on_question_ready(question)

    def _on_followup(self, data: Dict[str, Any]) -> None:
        latest = self._claim_answer_reply()
        if not latest or self._pending_turn is None or self.completed:
            self._late("followup")
            return
        followup = data.get("followup") or {}
        question = Question.model_validate(followup) if followup.get("text") else None
        self._watchdog.clear("followup")
        self._pending_turn = None
        if question is not None:
            self.on_question_ready(question)
            return
        self._note("Coordinator has no further questions")
        self._wrap_up()

    def _on_finished(self, data: Dict[str, Any]) -> None:
        if self.completed:
            self._late("finished")
            return
        recommendation = Recommendation.model_validate(data["recommendation"])
        self._watchdog.clear("finish")
        self._complete(recommendation, "remote")

    def _on_error(self, data: Dict[str, Any]) -> None:
        message = data.get("message", "")
        self._note(f"Coordinator error: {message}")
        log_event("client_error", self.session_id, level=logging.WARNING, reason=message)
        # A rejected request resolves its phase at once through the local path.
        latest = self._claim_answer_reply()
        if latest is not None:
            if not latest or self._pending_turn is None or self.completed:
                self._late("error")
                return
            turn = self._pending_turn
            self._watchdog.clear("followup")
            self._on_followup_timeout(turn)
        elif self.phase == "starting":
            self._watchdog.clear("start")
            self._start_local()
        elif self.phase == "awaiting_finish":
            self._watchdog.clear("finish")
            self._on_finish_timeout()

    # ------------------------------------------------------------------
    # Watchdogs
    # ------------------------------------------------------------------
    def _on_start_timeout(self) -> None:
        if self.phase != "starting":
            return
        log_event("watchdog_fired", None, watchdog="start")
        self._start_local()

    def _on_followup_timeout(self, turn: int) -> None:
        if self._pending_turn != turn or self.completed:
            return
        self._pending_turn = None
        log_event("watchdog_fired", self.session_id, watchdog="followup")
        if self.local is None:
            self.local = LocalInterviewState.for_role(self.role, self.captured_answers)
        question = self.local.next_question()
        if question is None:
            self._wrap_up()
            return
        self._local_question_ids.add(question.id)
        self.on_question_ready(question)

    def _on_finish_timeout(self) -> None:
        if self.completed:
            return
        log_event("watchdog_fired", self.session_id, watchdog="finish")
        self._complete(score(self.captured_answers, self.role), "local")

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------
    def _start_local(self) -> None:
        self.mode = "local"
        self.session_id = f"{LOCAL_SESSION_PREFIX}{uuid4().hex}"
        self.local = LocalInterviewState.for_role(self.role, self.captured_answers)
        log_event("client_mode", self.session_id, mode="local")
        self._note("Running the interview locally")
        first = self.local.next_question()
        if first is not None:
            self.on_question_ready(first)

    async def _submit_remote(self, question: Question, transcript: str) -> None:
        self._turn += 1
        turn = self._turn
        payload: Dict[str, Any] = {"sessionId": self.session_id, "questionId": question.id, "transcript": transcript}
        if question.id in self._local_question_ids:
            payload["questionText"] = question.text
        self.phase = "awaiting_followup"
        self._pending_turn = turn
        self._watchdog.arm("followup", self._followup_timeout, lambda: self._on_followup_timeout(turn))
        self._answers_sent += 1
        try:
            await self._transport.send("candidate_answer", payload)
        except TransportUnavailable as exc:
            self._answers_sent -= 1
            self._note(f"Answer not delivered ({exc}); continuing locally")
            self._watchdog.clear("followup")
            self._on_followup_timeout(turn)

    def _claim_answer_reply(self) -> Optional[bool]:
        """Match an inbound ``followup``/``error`` to the oldest unanswered answer.

        Returns None when no answer is waiting for a reply, otherwise whether
        the reply belongs to the most recently sent answer. Replies to older
        answers were already resolved by the follow-up watchdog.
        """

        if self._replies_seen >= self._answers_sent:
            return None
        self._replies_seen += 1
        return self._replies_seen == self._answers_sent

    def _wrap_up(self) -> None:
        self._begin_phase(self._guarded(self._closing()))

    async def _closing(self) -> None:
        self.phase = "speaking"
        await self._speaker.run(lambda: self._speaker_device.speak(NO_MORE_QUESTIONS))
        await self.request_finish()

    async def _ask(self, question: Question) -> None:
        try:
            self.phase = "speaking"
            await self._speaker.run(lambda: self._speaker_device.speak(question.text))
            if self._listen_delay:
                await asyncio.sleep(self._listen_delay)
            await self._listen()
        except SpeechResourceUnavailable as exc:
            self._block(str(exc))

    async def _listen(self) -> None:
        self.phase = "listening"
        transcript = await self._listener.run(self._listener_device.listen)
        if not transcript or not transcript.strip():
            self.phase = "awaiting_answer"
            self._note("No answer heard; capture again when ready")
            return
        await self.on_answer_captured(transcript.strip())

    async def _guarded(self, coro: Any) -> None:
        try:
            await coro
        except SpeechResourceUnavailable as exc:
            self._block(str(exc))

    async def _announce(self, text: str) -> None:
        try:
            await self._speaker.run(lambda: self._speaker_device.speak(text))
        except SpeechResourceUnavailable as exc:
            logger.warning("Could not speak the result: %s", exc)

    def _begin_phase(self, coro: Any) -> None:
        self._cancel_phase()
        self._phase_task = asyncio.ensure_future(coro)

    def _cancel_phase(self) -> None:
        task = self._phase_task
        self._phase_task = None
        if task is not None and not task.done() and task is not asyncio.current_task():
            task.cancel()
        self._speaker.cancel()
        self._listener.cancel()

    def _complete(self, recommendation: Recommendation, source: ResultSource) -> None:
        self._watchdog.clear()
        self._pending_turn = None
        self.result = recommendation
        self.result_source = source
        self.phase = "completed"
        log_event("client_completed", self.session_id, source=source, tier=recommendation.tier, score=recommendation.score)
        self._note(f"Interview complete ({source}): {recommendation.label}, score {recommendation.score}")
        if self._on_complete is not None:
            self._on_complete(recommendation, source)
        self._begin_phase(self._announce(completion_message(recommendation)))
        self._done.set()

    def _block(self, reason: str) -> None:
        self._watchdog.clear()
        self._pending_turn = None
        self.phase = "blocked"
        self.blocked_reason = reason
        log_event("speech_blocked", self.session_id, level=logging.ERROR, reason=reason)
        self._note(f"Blocked: {reason}")
        self._done.set()

    def _late(self, event: str) -> None:
        log_event("late_event_ignored", self.session_id, reason=event)

    def _note(self, text: str) -> None:
        self.event_log.append(text)
        logger.info("%s", text)


__all__ = [
    "ClientOrchestrator",
    "LocalInterviewState",
    "NO_MORE_QUESTIONS",
    "completion_message",
]
