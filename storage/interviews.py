"""Persistence helpers for finished interviews."""
from __future__ import annotations

import datetime as dt
import json
import sqlite3
from typing import Any, List

from pydantic import BaseModel, Field

from .sqlite import connect


class InterviewRecord(BaseModel):
    id: str
    role: str
    resume: str
    started_at: str
    ended_at: str
    summary: str
    recommendation: str
    score: int
    key_points: List[str] = Field(default_factory=list)


def insert_interview(**data: Any) -> str:
    """Insert (or replace) a finished interview row and return its id."""

    payload = InterviewRecord(**data)
    timestamp = dt.datetime.now(dt.timezone.utc).isoformat()
    with connect() as conn:
        conn.execute(
            """INSERT OR REPLACE INTO interviews
               (id, role, resume, started_at, ended_at, summary, recommendation, score, key_points, created_at)
               VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)""",
            (
                payload.id,
                payload.role,
                payload.resume,
                payload.started_at,
                payload.ended_at,
                payload.summary,
                payload.recommendation,
                payload.score,
                json.dumps(payload.key_points),
                timestamp,
            ),
        )
    return payload.id


def get_interview(interview_id: str) -> InterviewRecord:
    """Load one interview row.

    Raises:
        KeyError: If no interview is stored under ``interview_id``.
    """

    with connect() as conn:
        row = conn.execute(
            """SELECT id, role, resume, started_at, ended_at, summary, recommendation, score, key_points
               FROM interviews WHERE id = ?""",
            (interview_id,),
        ).fetchone()
    if row is None:
        raise KeyError(interview_id)
    return _record(row)


def list_interviews(limit: int = 20) -> List[InterviewRecord]:
    """Return the most recently stored interviews."""

    with connect() as conn:
        rows = conn.execute(
            """SELECT id, role, resume, started_at, ended_at, summary, recommendation, score, key_points
               FROM interviews ORDER BY created_at DESC, rowid DESC LIMIT ?""",
            (limit,),
        ).fetchall()
    return [_record(row) for row in rows]


def _record(row: sqlite3.Row) -> InterviewRecord:
    fields = dict(row)
    fields["key_points"] = json.loads(fields["key_points"])
    return InterviewRecord(**fields)


def save_finished_session(session) -> str:
    """Persist a finalized session as a single interview row."""

    recommendation = session.recommendation
    return insert_interview(
        id=session.id,
        role=session.role,
        resume=session.resume_text,
        started_at=session.started_at.isoformat(),
        ended_at=dt.datetime.now(dt.timezone.utc).isoformat(),
        summary=recommendation.summary if recommendation else "",
        recommendation=recommendation.tier if recommendation else "",
        score=recommendation.score if recommendation else 0,
        key_points=list(session.key_points),
    )
