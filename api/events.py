"""Transport-agnostic dispatch of protocol events onto the session coordinator."""
from __future__ import annotations

import logging
from typing import Any, Callable, Dict, List, Tuple

from pydantic import BaseModel, ValidationError

from api.schemas import (
    CandidateAnswerReq,
    CreateSessionReq,
    ErrorMsg,
    Finished,
    FinishReq,
    Followup,
    SessionCreated,
    SessionDetail,
    SessionView,
)
from interview_session.coordinator import SessionCoordinator
from interview_session.errors import QuestionNotFound, SessionFinished, SessionNotFound
from interview_session.models import Session

logger = logging.getLogger(__name__)

Outbound = Tuple[str, Dict[str, Any]]


def wire(model: BaseModel) -> Dict[str, Any]:
    return model.model_dump(mode="json", by_alias=True)


def session_view(session: Session) -> SessionView:
    return SessionView(
        questions=list(session.questions),
        answers=list(session.answers),
        key_points=list(session.key_points),
    )


def session_detail(session: Session) -> SessionDetail:
    return SessionDetail(
        session_id=session.id,
        role=session.role,
        status=session.status,
        start=session.started_at,
        end=session.ends_at,
        ended=session.ended,
        recommendation=session.recommendation,
        questions=list(session.questions),
        answers=list(session.answers),
        key_points=list(session.key_points),
        events=list(session.events),
    )


class EventDispatcher:  # Maps inbound events to coordinator calls
    def __init__(self, coordinator: SessionCoordinator) -> None:
        self._coordinator = coordinator
        self._handlers: Dict[str, Callable[[Dict[str, Any]], Outbound]] = {
            "create_session": self._create_session,
            "candidate_answer": self._candidate_answer,
            "finish_interview": self._finish_interview,
        }

    def dispatch(self, event: str, data: Dict[str, Any]) -> List[Outbound]:
        handler = self._handlers.get(event)
        if handler is None:
            return [("error", wire(ErrorMsg(message=f"unknown event: {event}")))]
        try:
            return [handler(data or {})]
        except ValidationError as exc:
            logger.info("Rejected %s payload: %s", event, exc)
            return [("error", wire(ErrorMsg(message=f"invalid payload for {event}")))]
        except (SessionNotFound, QuestionNotFound, SessionFinished) as exc:
            return [("error", wire(ErrorMsg(message=str(exc))))]

    def _create_session(self, data: Dict[str, Any]) -> Outbound:
        req = CreateSessionReq.model_validate(data)
        session_id, question = self._coordinator.create_session(req.role, req.resume, req.duration_min)
        session = self._coordinator.get_session(session_id)
        created = SessionCreated(
            session_id=session_id,
            start=session.started_at,
            end=session.ends_at,
            first_question=question,
        )
        return "session_created", wire(created)

    def _candidate_answer(self, data: Dict[str, Any]) -> Outbound:
        req = CandidateAnswerReq.model_validate(data)
        followup = self._coordinator.record_answer(
            req.session_id,
            req.question_id,
            req.transcript,
            question_text=req.question_text,
        )
        return "followup", wire(Followup(followup=followup))

    def _finish_interview(self, data: Dict[str, Any]) -> Outbound:
        req = FinishReq.model_validate(data)
        recommendation = self._coordinator.finalize(req.session_id)
        session = self._coordinator.get_session(req.session_id)
        return "finished", wire(Finished(recommendation=recommendation, session=session_view(session)))


__all__ = ["EventDispatcher", "session_detail", "session_view", "wire"]
