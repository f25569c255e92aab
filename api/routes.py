"""FastAPI routes mirroring the event protocol over plain HTTP."""
from __future__ import annotations

from typing import List

from fastapi import APIRouter, Depends, HTTPException, Query, Request

from api.events import session_detail, session_view
from api.schemas import (
    CandidateAnswerReq,
    CreateSessionReq,
    Finished,
    FinishReq,
    Followup,
    SessionCreated,
    SessionDetail,
)
from interview_session.coordinator import SessionCoordinator
from interview_session.errors import QuestionNotFound, SessionFinished, SessionNotFound
from storage.interviews import InterviewRecord, get_interview, list_interviews


router = APIRouter(prefix="/api/interview-sessions")
records_router = APIRouter(prefix="/api/interviews")


def get_coordinator(request: Request) -> SessionCoordinator:
    return request.app.state.coordinator


@router.post("/start", response_model=SessionCreated)
def start(req: CreateSessionReq, coordinator: SessionCoordinator = Depends(get_coordinator)) -> SessionCreated:
    session_id, question = coordinator.create_session(req.role, req.resume, req.duration_min)
    session = coordinator.get_session(session_id)
    return SessionCreated(
        session_id=session_id,
        start=session.started_at,
        end=session.ends_at,
        first_question=question,
    )


@router.post("/answer", response_model=Followup)
def answer(req: CandidateAnswerReq, coordinator: SessionCoordinator = Depends(get_coordinator)) -> Followup:
    try:
        followup = coordinator.record_answer(
            req.session_id,
            req.question_id,
            req.transcript,
            question_text=req.question_text,
        )
    except SessionNotFound as exc:
        raise HTTPException(status_code=404, detail="session not found") from exc
    except QuestionNotFound as exc:
        raise HTTPException(status_code=404, detail="question not found") from exc
    except SessionFinished as exc:
        raise HTTPException(status_code=409, detail="session already finished") from exc
    return Followup(followup=followup)


@router.post("/finish", response_model=Finished)
def finish(req: FinishReq, coordinator: SessionCoordinator = Depends(get_coordinator)) -> Finished:
    try:
        recommendation = coordinator.finalize(req.session_id)
        session = coordinator.get_session(req.session_id)
    except SessionNotFound as exc:
        raise HTTPException(status_code=404, detail="session not found") from exc
    return Finished(recommendation=recommendation, session=session_view(session))


@router.get("/{session_id}", response_model=SessionDetail)
def detail(session_id: str, coordinator: SessionCoordinator = Depends(get_coordinator)) -> SessionDetail:
    try:
        session = coordinator.get_session(session_id)
    except SessionNotFound as exc:
        raise HTTPException(status_code=404, detail="session not found") from exc
    return session_detail(session)


@records_router.get("", response_model=List[InterviewRecord])
def recent_interviews(limit: int = Query(default=20, ge=1, le=200)) -> List[InterviewRecord]:
    return list_interviews(limit)


@records_router.get("/{interview_id}", response_model=InterviewRecord)
def stored_interview(interview_id: str) -> InterviewRecord:
    try:
        return get_interview(interview_id)
    except KeyError as exc:
        raise HTTPException(status_code=404, detail="Interview not found") from exc
