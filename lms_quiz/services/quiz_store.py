"""
services/quiz_store.py

원격 저장소(퀴즈 뱅크 + 임시 저장 + 응시 기록)의 인메모리 구현.
FastAPI 라우터와 인프로세스 SyncChannel이 공유한다.

보장 사항:
- load 계열 응답에는 정답이 포함되지 않는다 (public_copy).
- 제출은 attempt_id 기준으로 멱등: 재전송된 제출은 처음 채점 결과를 그대로 돌려준다.
- 리뷰(정답 포함)는 제출이 끝난 응시에 대해서만 제공된다.
"""

from __future__ import annotations

import logging
import threading
from collections import defaultdict
from dataclasses import dataclass
from typing import Any, Dict, List, Mapping, Optional, Tuple

from config import FILL_BLANK_CASE_SENSITIVE
from lms_quiz.models.errors import (
    AttemptLimitError,
    AttemptOwnershipError,
    LoadError,
    ReviewUnavailableError,
)
from lms_quiz.models.question_model import Question, Quiz
from lms_quiz.models.session_state import DraftSnapshot, QuizReview, ScoreSummary, SubmitTiming
from lms_quiz.services.grading_service import build_review_items, grade_attempt

logger = logging.getLogger(__name__)


@dataclass
class _SubmissionRecord:
    quiz_id: str
    user_id: str
    answers: Dict[str, Any]
    timing: SubmitTiming
    summary: ScoreSummary


class QuizStore:
    def __init__(self, case_sensitive: bool = FILL_BLANK_CASE_SENSITIVE) -> None:
        self._lock = threading.Lock()
        self._case_sensitive = case_sensitive
        self._quizzes: Dict[str, Quiz] = {}
        self._drafts: Dict[str, Tuple[str, DraftSnapshot]] = {}
        self._submissions: Dict[str, _SubmissionRecord] = {}
        self._attempt_counts: Dict[Tuple[str, str], int] = defaultdict(int)

    # ── 퀴즈 뱅크 ────────────────────────────────────────────────────────────

    def add_quiz(self, quiz: Quiz) -> None:
        with self._lock:
            self._quizzes[quiz.id] = quiz

    def list_quizzes(self) -> List[Dict[str, Any]]:
        with self._lock:
            quizzes = list(self._quizzes.values())
        return [
            {
                "id": q.id,
                "title": q.title,
                "description": q.description,
                "question_count": len(q.questions),
                "time_limit_seconds": q.time_limit_seconds,
                "passing_score": q.passing_score,
                "max_attempts": q.max_attempts,
            }
            for q in quizzes
        ]

    def get_quiz(self, quiz_id: str) -> Quiz:
        with self._lock:
            quiz = self._quizzes.get(quiz_id)
        if quiz is None:
            raise LoadError(f"퀴즈를 찾을 수 없습니다: {quiz_id}")
        return quiz

    def public_questions(self, quiz_id: str) -> List[Question]:
        """응시용 문제 목록 (정답 제거)."""
        return self.get_quiz(quiz_id).public_questions()

    # ── 임시 저장 ────────────────────────────────────────────────────────────

    def save_draft(self, user_id: str, draft: DraftSnapshot) -> None:
        with self._lock:
            if draft.attempt_id in self._submissions:
                # 제출이 끝난 응시에 늦게 도착한 저장은 무시
                logger.info(f"제출 완료된 응시의 임시 저장 무시: {draft.attempt_id}")
                return
            owner = self._drafts.get(draft.attempt_id, (user_id, None))[0]
            if owner != user_id:
                raise AttemptOwnershipError("다른 사용자의 응시입니다.")
            self._drafts[draft.attempt_id] = (user_id, draft)

    def get_draft(self, user_id: str, attempt_id: str) -> Optional[DraftSnapshot]:
        with self._lock:
            entry = self._drafts.get(attempt_id)
        if entry is None or entry[0] != user_id:
            return None
        return entry[1]

    # ── 제출 / 리뷰 ──────────────────────────────────────────────────────────

    def submit(
        self,
        user_id: str,
        quiz_id: str,
        attempt_id: str,
        answers: Mapping[str, Any],
        timing: SubmitTiming,
    ) -> ScoreSummary:
        quiz = self.get_quiz(quiz_id)

        with self._lock:
            existing = self._submissions.get(attempt_id)
            if existing is not None:
                if existing.user_id != user_id:
                    raise AttemptOwnershipError("다른 사용자의 응시입니다.")
                logger.info(f"중복 제출 감지, 기존 결과 반환: {attempt_id}")
                return existing.summary

            key = (quiz_id, user_id)
            attempt_number = self._attempt_counts[key] + 1
            if quiz.max_attempts is not None and attempt_number > quiz.max_attempts:
                raise AttemptLimitError(f"최대 응시 횟수({quiz.max_attempts}회)를 초과했습니다.")

            summary = grade_attempt(
                attempt_id,
                quiz.questions,
                answers,
                passing_score=quiz.passing_score,
                case_sensitive=self._case_sensitive,
                attempt_number=attempt_number,
            )
            self._attempt_counts[key] = attempt_number
            self._submissions[attempt_id] = _SubmissionRecord(
                quiz_id=quiz_id,
                user_id=user_id,
                answers=dict(answers),
                timing=timing,
                summary=summary,
            )
            self._drafts.pop(attempt_id, None)

        logger.info(
            f"제출 완료: quiz={quiz_id} attempt={attempt_id} "
            f"{summary.earned_points}/{summary.possible_points}점 ({summary.percentage}%)"
        )
        return summary

    def review(self, user_id: str, attempt_id: str) -> QuizReview:
        with self._lock:
            record = self._submissions.get(attempt_id)
            has_draft = attempt_id in self._drafts
        if record is None:
            if has_draft:
                raise ReviewUnavailableError("제출되지 않은 응시는 리뷰할 수 없습니다.")
            raise LoadError(f"응시 기록을 찾을 수 없습니다: {attempt_id}")
        if record.user_id != user_id:
            raise LoadError(f"응시 기록을 찾을 수 없습니다: {attempt_id}")

        quiz = self.get_quiz(record.quiz_id)
        return QuizReview(
            attempt_id=attempt_id,
            quiz_id=record.quiz_id,
            summary=record.summary,
            items=build_review_items(quiz.questions, record.answers, record.summary),
        )
