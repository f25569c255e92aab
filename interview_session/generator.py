from __future__ import annotations  # Question/recommendation generator contract and output parsing

import json
import logging
from dataclasses import dataclass
from pathlib import Path
from textwrap import dedent
from typing import Generic, List, Literal, Optional, Protocol, Type, TypeVar, Union

from pydantic import AliasChoices, BaseModel, Field, ValidationError, field_validator

from config import LlmRoute, load_route
from llm_gateway import HttpClient, complete

from .errors import GeneratorUnavailable
from .models import Session, Tier

logger = logging.getLogger(__name__)

GenerationKind = Literal["opening", "followup", "recommendation"]

T = TypeVar("T", bound=BaseModel)

_TIER_ALIASES = {
    "proceed": "Proceed",
    "pass": "Proceed",
    "hire": "Proceed",
    "coach": "Coach",
    "needsdevelopment": "NeedsDevelopment",
    "needs development": "NeedsDevelopment",
    "fail": "NeedsDevelopment",
}


class OpeningOut(BaseModel):  # Opening question payload
    question: str = Field(min_length=1)


class FollowupOut(BaseModel):  # Follow-up question and extracted key points
    followup: str = ""
    key_points: List[str] = Field(default_factory=list)


class RecommendationOut(BaseModel):  # Structured recommendation payload
    tier: Tier = Field(validation_alias=AliasChoices("tier", "recommendation"))
    score: int = Field(ge=0, le=100)
    summary: str = ""
    strengths: List[str] = Field(default_factory=list)
    weaknesses: List[str] = Field(default_factory=list)

    @field_validator("tier", mode="before")
    @classmethod
    def _normalize_tier(cls, value: object) -> object:
        if isinstance(value, str):
            return _TIER_ALIASES.get(value.strip().lower(), value.strip())
        return value


@dataclass(frozen=True)
class Parsed(Generic[T]):  # Generator output that matched its schema
    value: T
    raw: str


@dataclass(frozen=True)
class Unparsed:  # Generator output that could not be parsed
    raw: str

    @property
    def first_line(self) -> str:
        for line in self.raw.strip().splitlines():
            text = line.strip()
            if text:
                return text
        return ""


GeneratorOutput = Union[Parsed[T], Unparsed]


class Generator(Protocol):  # External text producer
    def generate(self, kind: GenerationKind, role: str, resume_text: str, context: str) -> str: ...


def parse_output(raw: str, schema: Type[T]) -> GeneratorOutput[T]:
    """Parse the first JSON object in ``raw`` against ``schema``."""

    text = _strip_code_fences(raw or "")
    start = text.find("{")
    if start < 0:
        return Unparsed(raw=raw or "")
    try:
        data, _ = json.JSONDecoder().raw_decode(text, start)
    except json.JSONDecodeError:
        return Unparsed(raw=raw)
    if not isinstance(data, dict):
        return Unparsed(raw=raw)
    try:
        return Parsed(value=schema.model_validate(data), raw=raw)
    except ValidationError as exc:
        logger.warning("Generator output failed validation: %s", exc.errors()[0].get("msg") if exc.errors() else exc)
        return Unparsed(raw=raw)


def _strip_code_fences(content: str) -> str:  # Remove common markdown fences from LLM output
    text = content.strip()
    if text.startswith("```"):
        lines = text.splitlines()[1:]
        while lines and lines[-1].strip() in ("", "```"):
            lines = lines[:-1]
        text = "\n".join(lines).strip()
    return text


def opening_context(session: Session) -> str:
    return f"Suggested duration: {session.duration_min_suggested} minutes."


def followup_context(session: Session) -> str:
    last_question = session.last_question.text if session.last_question else ""
    last_answer = session.answers[-1].transcript if session.answers else ""
    history = _qa_history(session)
    return dedent(
        f"""
        Interview so far:
        {history}

        Last question-answer pair:
        Q: {last_question}
        A: {last_answer}
        """
    ).strip()


def recommendation_context(session: Session) -> str:
    questions = "\n".join(f"Q{index}: {q.text}" for index, q in enumerate(session.questions, start=1))
    answers = "\n".join(f"A{index}: {a.transcript}" for index, a in enumerate(session.answers, start=1))
    return (
        f"Questions:\n{questions}\n\nAnswers:\n{answers}\n\n"
        f"Key points captured: {'; '.join(session.key_points)}"
    )


def _qa_history(session: Session) -> str:
    texts = {question.id: question.text for question in session.questions}
    lines = []
    for answer in session.answers:
        lines.append(f"Q: {texts.get(answer.question_id, '')}")
        lines.append(f"A: {answer.transcript}")
    return "\n".join(lines) or "(no answers yet)"


_SYSTEM_PROMPTS = {
    "opening": "You are an AI interviewer.",
    "followup": "You are an AI interviewer.",
    "recommendation": "You are an AI hiring manager.",
}


def build_task(kind: GenerationKind, role: str, resume_text: str, context: str) -> str:  # Build task prompt for LLM
    resume = resume_text.strip() or "(no resume provided)"
    if kind == "opening":
        instructions = (
            "Ask one opening question grounded in the resume and the role. "
            'Respond in JSON with key "question" (a single short question).'
        )
        header = "You are an experienced technical interviewer."
    elif kind == "followup":
        instructions = (
            'Respond in JSON with keys: "followup" (a short follow-up question, or empty when no further '
            'question is needed) and "key_points" (array of up to 3 short bullets learned from the answer).'
        )
        header = "You are an experienced technical interviewer."
    else:
        instructions = (
            'Return JSON: {"tier": "Proceed" | "Coach" | "NeedsDevelopment", "score": 0-100, '
            '"summary": short paragraph (max 80 words), "strengths": [], "weaknesses": []}'
        )
        header = "You are a senior technical interviewer."
    return f"{header} Candidate role: {role}. Resume: {resume}\n\n{context}\n\n{instructions}"


class LlmGenerator:  # Generator backed by an OpenAI-compatible chat route
    def __init__(self, route: LlmRoute, client: Optional[HttpClient] = None) -> None:
        self._route = route
        self._client = client

    def generate(self, kind: GenerationKind, role: str, resume_text: str, context: str) -> str:
        task = build_task(kind, role, resume_text, context)
        messages = [
            {"role": "system", "content": _SYSTEM_PROMPTS[kind]},
            {"role": "user", "content": task},
        ]
        return complete(messages, cfg=self._route, client=self._client)


class UnavailableGenerator:  # Generator used when no route is configured
    def __init__(self, reason: str = "generator not configured") -> None:
        self._reason = reason

    def generate(self, kind: GenerationKind, role: str, resume_text: str, context: str) -> str:
        raise GeneratorUnavailable(self._reason)


def generator_from_config(path: Path, target: str) -> Generator:  # Build generator from app config
    if not path.exists():
        logger.warning("Generator config %s missing; questions will use fallbacks", path)
        return UnavailableGenerator(f"config {path} missing")
    try:
        route = load_route(path, target)
    except (KeyError, ValidationError, ValueError) as exc:
        logger.error("Generator config %s invalid: %s", path, exc)
        return UnavailableGenerator(f"config {path} invalid")
    return LlmGenerator(route)


__all__ = [
    "FollowupOut",
    "GenerationKind",
    "Generator",
    "GeneratorOutput",
    "LlmGenerator",
    "OpeningOut",
    "Parsed",
    "RecommendationOut",
    "UnavailableGenerator",
    "Unparsed",
    "build_task",
    "followup_context",
    "generator_from_config",
    "opening_context",
    "parse_output",
    "recommendation_context",
]
