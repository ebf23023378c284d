"""
models/session_state.py

퀴즈 응시 상태를 담는 모델들.
Pydantic BaseModel 기반 — 직렬화/역직렬화 및 타입 안전성 확보.
UI 코드 없음.
"""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional, Set

from pydantic import BaseModel, Field


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class AttemptStatus(str, Enum):
    IN_PROGRESS = "in_progress"
    SUBMITTING = "submitting"
    SUBMITTED = "submitted"
    EXPIRED = "expired"


class QuizAttempt(BaseModel):
    """
    사용자 한 명의 퀴즈 응시 1회 전체 상태.

    Attributes:
        attempt_id:             응시 식별자. 제출 멱등성 키로 사용된다.
        current_question_index: 현재 풀고 있는 문제의 인덱스 (0-based).
        answers:                {question.id: 정규화된 답안 값}
        status:                 in_progress → submitting → submitted / expired
        started_at:             응시 시작 시각. 한 번 설정되면 바뀌지 않는다 (이어서 풀기도 원래 값을 복원).
    """

    attempt_id: str = Field(
        default_factory=lambda: uuid.uuid4().hex,
        description="응시 식별자 (제출 멱등성 키)"
    )
    quiz_id: str = Field(
        "",
        description="퀴즈 식별자"
    )
    user_id: str = Field(
        "",
        description="응시자 식별자"
    )
    started_at: datetime = Field(
        default_factory=utcnow,
        description="응시 시작 시각 (UTC)"
    )
    current_question_index: int = Field(
        default=0,
        ge=0,
        description="현재 풀고 있는 문제 인덱스 (0-based)"
    )
    answers: Dict[str, Any] = Field(
        default_factory=dict,
        description="답안지. key: question.id, value: 유형별 정규화된 답안"
    )
    time_limit_seconds: Optional[int] = Field(
        None,
        description="제한 시간 (초). None이면 시간 제한 없음"
    )
    status: AttemptStatus = Field(
        default=AttemptStatus.IN_PROGRESS,
        description="응시 상태"
    )
    submitted_at: Optional[datetime] = Field(
        None,
        description="제출 완료 시각"
    )
    flagged_questions: Set[str] = Field(
        default_factory=set,
        description="나중에 다시 볼 문제로 표시한 문제 ID"
    )
    visited_questions: Set[str] = Field(
        default_factory=set,
        description="한 번 이상 열어본 문제 ID"
    )
    time_spent: Dict[str, float] = Field(
        default_factory=dict,
        description="문제별 체류 시간 (초)"
    )

    model_config = {"arbitrary_types_allowed": True}


class SyncState(BaseModel):
    """저장 상태 표시용 파생 값. 답안 수정을 막는 용도로 쓰지 않는다."""

    last_saved_at: Optional[datetime] = None
    has_unsaved_changes: bool = False
    is_saving: bool = False
    last_error: Optional[str] = None


class SubmitTiming(BaseModel):
    started_at: datetime
    submitted_at: datetime
    elapsed_seconds: int = Field(..., ge=0)


class QuestionResult(BaseModel):
    question_id: str
    points: int
    earned: int
    # None: 자동 채점 불가 (서술형)
    is_correct: Optional[bool]


class ScoreSummary(BaseModel):
    """제출 결과 요약. 채점은 서버(또는 채점 협력자)가 수행한다."""

    attempt_id: str
    earned_points: int
    possible_points: int
    percentage: float
    passed: bool
    attempt_number: int = 1
    results: List[QuestionResult] = Field(default_factory=list)


class ReviewItem(BaseModel):
    question_id: str
    prompt: str
    type: str
    options: Optional[List[Any]] = None
    user_answer: Any = None
    correct_answer: Any = None
    is_correct: Optional[bool] = None
    explanation: Optional[str] = None


class QuizReview(BaseModel):
    """제출 이후에만 제공되는 리뷰 (정답 포함)."""

    attempt_id: str
    quiz_id: str
    summary: ScoreSummary
    items: List[ReviewItem] = Field(default_factory=list)


class DraftSnapshot(BaseModel):
    """임시 저장 단위. 로컬 캐시와 원격 저장소가 같은 형태를 사용한다."""

    attempt_id: str
    quiz_id: str = ""
    answers: Dict[str, Any] = Field(default_factory=dict)
    current_question_index: int = Field(0, ge=0)
    flagged_questions: List[str] = Field(default_factory=list)
    started_at: Optional[datetime] = Field(
        None,
        description="원래 응시 시작 시각. 이어서 풀기 시 그대로 복원한다"
    )
    remaining_seconds: Optional[float] = Field(
        None,
        ge=0,
        description="저장 시점의 남은 시간 (초). 시간 제한이 없으면 None"
    )
    saved_at: datetime = Field(default_factory=utcnow)
