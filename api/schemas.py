"""Pydantic schemas for the interview event protocol."""
from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, List, Literal, Optional

from pydantic import Field

from interview_session.models import Answer, Question, Recommendation, WireModel

ClientEvent = Literal["create_session", "candidate_answer", "finish_interview"]
ServerEvent = Literal["session_created", "followup", "finished", "error"]


class CreateSessionReq(WireModel):
    role: str = Field(min_length=1)
    resume: str = ""
    duration_min: Optional[int] = Field(default=None, ge=1)


class CandidateAnswerReq(WireModel):
    session_id: str
    question_id: str
    transcript: str
    question_text: Optional[str] = None


class FinishReq(WireModel):
    session_id: str


class SessionCreated(WireModel):
    session_id: str
    start: datetime
    end: datetime
    first_question: Question


class Followup(WireModel):
    followup: Optional[Question] = None


class SessionView(WireModel):
    questions: List[Question] = Field(default_factory=list)
    answers: List[Answer] = Field(default_factory=list)
    key_points: List[str] = Field(default_factory=list)


class Finished(WireModel):
    recommendation: Recommendation
    session: SessionView


class ErrorMsg(WireModel):
    message: str


class SessionDetail(SessionView):
    session_id: str
    role: str
    status: str
    start: datetime
    end: datetime
    ended: bool
    recommendation: Optional[Recommendation] = None
    events: List[Dict[str, Any]] = Field(default_factory=list)


class EventFrame(WireModel):  # Envelope used on the realtime channel
    event: str
    data: Dict[str, Any] = Field(default_factory=dict)
