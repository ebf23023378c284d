"""
api/routes.py — 원격 저장소 FastAPI 엔드포인트
"""

import logging
from typing import Any

from fastapi import APIRouter, HTTPException, Request
from pydantic import BaseModel, Field

import api.session as session
from lms_quiz.models.errors import (
    AttemptLimitError,
    AttemptOwnershipError,
    LoadError,
    ReviewUnavailableError,
)
from lms_quiz.models.session_state import DraftSnapshot, SubmitTiming
from lms_quiz.services.quiz_store import QuizStore

logger = logging.getLogger(__name__)

router = APIRouter()

MAX_ANSWERS_SIZE = 100_000  # 직렬화된 답안 최대 크기 (문자 수)


# ── Pydantic request bodies ──────────────────────────────────────────────────

class SubmitBody(BaseModel):
    quiz_id: str = Field(..., min_length=1)
    answers: dict[str, Any] = Field(default_factory=dict)
    timing: SubmitTiming


# ── 헬퍼 ─────────────────────────────────────────────────────────────────────

def _store(request: Request) -> QuizStore:
    return request.app.state.store


def _user_id(request: Request) -> str:
    uid = session.user_id(request.state.session_id)
    if uid is None:
        raise HTTPException(status_code=401, detail="세션이 만료되었습니다.")
    return uid


def _check_answers_size(answers: dict[str, Any]) -> None:
    if len(str(answers)) > MAX_ANSWERS_SIZE:
        raise HTTPException(status_code=413, detail="답안 데이터가 너무 큽니다.")


# ── 엔드포인트 ───────────────────────────────────────────────────────────────

@router.get("/api/quizzes")
async def list_quizzes(request: Request):
    return {"quizzes": _store(request).list_quizzes()}


@router.get("/api/quizzes/{quiz_id}")
async def get_quiz(quiz_id: str, request: Request):
    store = _store(request)
    try:
        quiz = store.get_quiz(quiz_id)
    except LoadError as e:
        raise HTTPException(status_code=404, detail=str(e))

    # 응시용 응답에는 정답/해설을 포함하지 않는다
    return {
        "id": quiz.id,
        "title": quiz.title,
        "description": quiz.description,
        "time_limit_seconds": quiz.time_limit_seconds,
        "passing_score": quiz.passing_score,
        "max_attempts": quiz.max_attempts,
        "questions": [q.model_dump(mode="json") for q in quiz.public_questions()],
    }


@router.put("/api/attempts/{attempt_id}/draft")
async def save_draft(attempt_id: str, body: DraftSnapshot, request: Request):
    if body.attempt_id != attempt_id:
        raise HTTPException(status_code=400, detail="경로와 본문의 attempt_id가 다릅니다.")
    _check_answers_size(body.answers)
    try:
        _store(request).save_draft(_user_id(request), body)
    except AttemptOwnershipError as e:
        raise HTTPException(status_code=403, detail=str(e))
    return {"ok": True, "saved_at": body.saved_at}


@router.get("/api/attempts/{attempt_id}/draft")
async def get_draft(attempt_id: str, request: Request):
    draft = _store(request).get_draft(_user_id(request), attempt_id)
    if draft is None:
        raise HTTPException(status_code=404, detail="임시 저장본이 없습니다.")
    return draft.model_dump(mode="json")


@router.post("/api/attempts/{attempt_id}/submit")
async def submit_attempt(attempt_id: str, body: SubmitBody, request: Request):
    _check_answers_size(body.answers)
    try:
        summary = _store(request).submit(
            _user_id(request), body.quiz_id, attempt_id, body.answers, body.timing
        )
    except LoadError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except AttemptLimitError as e:
        raise HTTPException(status_code=409, detail=str(e))
    except AttemptOwnershipError as e:
        raise HTTPException(status_code=403, detail=str(e))
    return summary.model_dump(mode="json")


@router.get("/api/attempts/{attempt_id}/review")
async def get_review(attempt_id: str, request: Request):
    try:
        review = _store(request).review(_user_id(request), attempt_id)
    except ReviewUnavailableError as e:
        raise HTTPException(status_code=409, detail=str(e))
    except LoadError as e:
        raise HTTPException(status_code=404, detail=str(e))
    return review.model_dump(mode="json")
