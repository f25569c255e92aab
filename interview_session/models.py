from __future__ import annotations  # Session state machine and value types

from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Iterable, List, Literal, Optional
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from .errors import QuestionNotFound, SessionFinished

Tier = Literal["Proceed", "Coach", "NeedsDevelopment", "Undetermined"]
SessionStatus = Literal["created", "awaiting_answer", "finished"]

TIER_LABELS: Dict[str, str] = {
    "Proceed": "Proceed to next-round interview",
    "Coach": "Consider technical coaching",
    "NeedsDevelopment": "Needs further development",
    "Undetermined": "Undetermined",
}

MAX_KEY_POINTS_PER_TURN = 3


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class WireModel(BaseModel):  # camelCase on the wire, snake_case in Python
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class Question(WireModel):  # Question asked to the candidate
    id: str
    text: str
    asked_at: Optional[datetime] = None


class Answer(WireModel):  # Captured candidate answer
    question_id: str
    transcript: str
    answered_at: Optional[datetime] = None


class Recommendation(WireModel):  # Final hiring recommendation
    tier: Tier
    score: int = Field(ge=0, le=100)
    summary: str
    strengths: List[str] = Field(default_factory=list)
    weaknesses: List[str] = Field(default_factory=list)

    @property
    def label(self) -> str:
        return TIER_LABELS[self.tier]


class Session(BaseModel):  # One candidate's interview run
    id: str = Field(frozen=True)
    role: str = Field(frozen=True)
    resume_text: str = Field(default="", frozen=True)
    duration_min_suggested: int = Field(frozen=True, ge=1)
    started_at: datetime = Field(frozen=True)
    ends_at: datetime = Field(frozen=True)
    questions: List[Question] = Field(default_factory=list)
    answers: List[Answer] = Field(default_factory=list)
    key_points: List[str] = Field(default_factory=list)
    recommendation: Optional[Recommendation] = None
    ended: bool = False
    planned_questions: List[str] = Field(default_factory=list)
    events: List[Dict[str, Any]] = Field(default_factory=list)

    @classmethod
    def open(cls, role: str, resume_text: str, duration_min_suggested: int, *, now: Optional[datetime] = None) -> "Session":
        started = now or utcnow()
        return cls(
            id=new_session_id(),
            role=role,
            resume_text=resume_text,
            duration_min_suggested=duration_min_suggested,
            started_at=started,
            ends_at=started + timedelta(minutes=duration_min_suggested),
        )

    @property
    def status(self) -> SessionStatus:
        if self.ended:
            return "finished"
        if not self.questions:
            return "created"
        return "awaiting_answer"

    @property
    def last_question(self) -> Optional[Question]:
        return self.questions[-1] if self.questions else None

    def has_question(self, question_id: str) -> bool:
        return any(question.id == question_id for question in self.questions)

    def add_question(self, text: str) -> Question:  # Append a newly asked question
        self._ensure_open()
        question = Question(id=self._next_question_id(), text=text, asked_at=utcnow())
        self.questions.append(question)
        return question

    def adopt_question(self, question_id: str, text: str) -> Question:  # Register a question asked outside the coordinator
        self._ensure_open()
        if self.has_question(question_id):
            return next(question for question in self.questions if question.id == question_id)
        question = Question(id=question_id, text=text, asked_at=utcnow())
        self.questions.append(question)
        return question

    def add_answer(self, question_id: str, transcript: str) -> Answer:
        self._ensure_open()
        if not self.has_question(question_id):
            raise QuestionNotFound(question_id)
        answer = Answer(question_id=question_id, transcript=transcript, answered_at=utcnow())
        self.answers.append(answer)
        return answer

    def add_key_points(self, points: Iterable[str]) -> List[str]:
        self._ensure_open()
        accepted = [point.strip() for point in points if point and point.strip()][:MAX_KEY_POINTS_PER_TURN]
        self.key_points.extend(accepted)
        return accepted

    def next_planned_question(self) -> Optional[str]:
        if self.planned_questions:
            return self.planned_questions.pop(0)
        return None

    def finish(self, recommendation: Recommendation) -> None:  # Terminal transition
        self._ensure_open()
        self.recommendation = recommendation
        self.ended = True

    def _next_question_id(self) -> str:  # q_<n>, skipping ids already adopted from the client
        taken = {question.id for question in self.questions}
        n = len(self.questions) + 1
        while f"q_{n}" in taken:
            n += 1
        return f"q_{n}"

    def _ensure_open(self) -> None:
        if self.ended:
            raise SessionFinished(self.id)


def new_session_id() -> str:
    return f"s_{uuid4().hex}"
