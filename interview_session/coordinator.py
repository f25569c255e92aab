from __future__ import annotations  # Authoritative interview session coordinator

import logging
from typing import Callable, Optional, Tuple

from config.settings import settings
from observability import log_event, span
from services.question_bank import CANNED_FOLLOWUP, category_defaults
from services.scoring import score as heuristic_score
from storage.interviews import save_finished_session

from .errors import QuestionNotFound, SessionFinished
from .generator import (
    FollowupOut,
    GenerationKind,
    Generator,
    OpeningOut,
    Parsed,
    RecommendationOut,
    followup_context,
    opening_context,
    parse_output,
    recommendation_context,
)
from .models import Question, Recommendation, Session
from .store import SessionStore

logger = logging.getLogger(__name__)

Persist = Callable[[Session], object]


def default_opening_question(role: str) -> str:
    return f"Tell me about your experience relevant to the role of {role}."


class SessionCoordinator:  # Owns sessions and consults the generator for each transition
    def __init__(
        self,
        store: SessionStore,
        generator: Generator,
        *,
        persist: Optional[Persist] = save_finished_session,
        default_duration_min: Optional[int] = None,
    ) -> None:
        self._store = store
        self._generator = generator
        self._persist = persist
        self._default_duration = default_duration_min or settings.DEFAULT_DURATION_MIN

    @property
    def store(self) -> SessionStore:
        return self._store

    def get_session(self, session_id: str) -> Session:
        return self._store.get(session_id)

    def create_session(
        self,
        role: str,
        resume_text: str = "",
        duration_min_suggested: Optional[int] = None,
    ) -> Tuple[str, Question]:  # Open a session and ask its opening question
        session = Session.open(role, resume_text or "", duration_min_suggested or self._default_duration)
        if not session.resume_text.strip():
            session.planned_questions = list(category_defaults(role))

        text = ""
        raw = self._ask(session, "opening", opening_context(session))
        if raw is not None:
            output = parse_output(raw, OpeningOut)
            if isinstance(output, Parsed):
                text = output.value.question.strip()
        if not text:
            text = default_opening_question(role)
            log_event("generator_fallback", session.id, source="default_opening")

        question = session.add_question(text)
        self._store.add(session)
        log_event("session_created", session.id, question_id=question.id, role=role)
        return session.id, question

    def record_answer(
        self,
        session_id: str,
        question_id: str,
        transcript: str,
        question_text: Optional[str] = None,
    ) -> Optional[Question]:  # Append an answer and ask for a follow-up
        with self._store.locked(session_id) as session:
            if session.ended:
                raise SessionFinished(session_id)
            if not session.has_question(question_id):
                if not question_text:
                    raise QuestionNotFound(question_id)
                session.adopt_question(question_id, question_text)
            session.add_answer(question_id, transcript)
            log_event("answer_recorded", session_id, question_id=question_id)

            followup = self._followup_text(session)
            if not followup:
                log_event("followup", session_id, source="none")
                return None
            question = session.add_question(followup)
            log_event("followup", session_id, question_id=question.id)
            return question

    def finalize(self, session_id: str) -> Recommendation:  # Produce the recommendation once
        with self._store.locked(session_id) as session:
            if session.ended and session.recommendation is not None:
                return session.recommendation
            recommendation = self._recommendation(session)
            session.finish(recommendation)
            self._store.mark_finished(session_id)
        log_event("session_finalized", session_id, tier=recommendation.tier, score=recommendation.score)
        self._persist_quietly(session)
        return recommendation

    def purge(self) -> int:
        return len(self._store.purge())

    def _followup_text(self, session: Session) -> str:
        raw = self._ask(session, "followup", followup_context(session))
        if raw is None:
            planned = session.next_planned_question()
            log_event("generator_fallback", session.id, source="planned" if planned else "canned")
            return planned or CANNED_FOLLOWUP
        output = parse_output(raw, FollowupOut)
        if isinstance(output, Parsed):
            session.add_key_points(output.value.key_points)
            return output.value.followup.strip()
        log_event("generator_fallback", session.id, source="first_line")
        return output.first_line

    def _recommendation(self, session: Session) -> Recommendation:
        raw = self._ask(session, "recommendation", recommendation_context(session))
        if raw is None:
            log_event("generator_fallback", session.id, source="heuristic")
            return heuristic_score(session.answers, session.role)
        output = parse_output(raw, RecommendationOut)
        if isinstance(output, Parsed):
            return Recommendation(**output.value.model_dump())
        log_event("generator_fallback", session.id, source="undetermined")
        return Recommendation(tier="Undetermined", score=50, summary=output.raw)

    def _ask(self, session: Session, kind: GenerationKind, context: str) -> Optional[str]:
        with span(session, f"generator.{kind}") as record:
            try:
                return self._generator.generate(kind, session.role, session.resume_text, context)
            except Exception as exc:  # noqa: BLE001
                record["ok"] = False
                logger.warning("Generator %s call failed for %s: %s", kind, session.id, exc)
                log_event("generator_fallback", session.id, level=logging.WARNING, source="unavailable", reason=kind)
                return None

    def _persist_quietly(self, session: Session) -> None:
        if self._persist is None:
            return
        try:
            self._persist(session)
        except Exception as exc:  # noqa: BLE001
            logger.warning("Persisting interview %s failed: %s", session.id, exc)
            log_event("persistence_failed", session.id, level=logging.WARNING, reason=str(exc))


__all__ = ["SessionCoordinator", "default_opening_question"]
