"""
services/sync_channel.py

컨트롤러와 원격 저장소 사이의 경계 (SyncChannel).

구현체:
  - StoreSyncChannel  : 같은 프로세스의 QuizStore 직접 호출 (Streamlit 단독 실행, 테스트)
  - HttpSyncChannel   : FastAPI 저장소 API 호출 (requests, 요청당 타임아웃)
  - LocalDraftChannel : 임시 저장을 로컬 JSON 파일에 먼저 기록한 뒤 내부 채널로 전달하는 데코레이터
"""

from __future__ import annotations

import json
import logging
import os
import threading
from abc import ABC, abstractmethod
from datetime import datetime
from typing import Any, Dict, Iterable, List, Mapping, Optional

import requests
from pydantic import ValidationError

from config import DRAFT_DIR, SUBMIT_TIMEOUT_SECONDS
from lms_quiz.models.errors import (
    AttemptLimitError,
    AttemptOwnershipError,
    LoadError,
    ReviewUnavailableError,
    SaveError,
    SubmitError,
)
from lms_quiz.models.question_model import Question
from lms_quiz.models.session_state import DraftSnapshot, QuizReview, ScoreSummary, SubmitTiming
from lms_quiz.services.quiz_store import QuizStore

logger = logging.getLogger(__name__)


class SyncChannel(ABC):
    """원격 저장소 계약. 제출 멱등성(attempt_id 기준)은 저장소 쪽 책임이다."""

    @abstractmethod
    def save_draft(
        self,
        attempt_id: str,
        answers: Mapping[str, Any],
        current_question_index: int,
        quiz_id: str = "",
        flagged_questions: Iterable[str] = (),
        started_at: Optional[datetime] = None,
        remaining_seconds: Optional[float] = None,
    ) -> None:
        """
        임시 저장 (best-effort). 실패 시 SaveError.
        started_at / remaining_seconds는 이어서 풀기 시 타이머 복원에 쓰인다.
        """

    @abstractmethod
    def submit_attempt(
        self,
        attempt_id: str,
        answers: Mapping[str, Any],
        timing: SubmitTiming,
        quiz_id: str = "",
    ) -> ScoreSummary:
        """최종 제출. 실패 시 SubmitError."""

    @abstractmethod
    def load_quiz(self, quiz_id: str) -> List[Question]:
        """응시용 문제 목록 (정답 미포함). 실패 시 LoadError."""

    @abstractmethod
    def load_review(self, attempt_id: str) -> QuizReview:
        """제출 완료된 응시의 리뷰. 제출 전이면 ReviewUnavailableError."""

    def load_draft(self, attempt_id: str) -> Optional[DraftSnapshot]:
        return None

    def list_quizzes(self) -> List[Dict[str, Any]]:
        """응시 가능한 퀴즈 메타데이터 목록."""
        return []


def _make_draft(
    attempt_id: str,
    answers: Mapping[str, Any],
    current_question_index: int,
    quiz_id: str,
    flagged_questions: Iterable[str],
    started_at: Optional[datetime] = None,
    remaining_seconds: Optional[float] = None,
) -> DraftSnapshot:
    return DraftSnapshot(
        attempt_id=attempt_id,
        quiz_id=quiz_id,
        answers=dict(answers),
        current_question_index=current_question_index,
        flagged_questions=sorted(flagged_questions),
        started_at=started_at,
        remaining_seconds=remaining_seconds,
    )


# ══════════════════════════════════════════════════════════════════════════════
# 인프로세스 채널
# ══════════════════════════════════════════════════════════════════════════════

class StoreSyncChannel(SyncChannel):
    def __init__(self, store: QuizStore, user_id: str) -> None:
        self._store = store
        self._user_id = user_id

    def save_draft(
        self,
        attempt_id,
        answers,
        current_question_index,
        quiz_id="",
        flagged_questions=(),
        started_at=None,
        remaining_seconds=None,
    ):
        draft = _make_draft(
            attempt_id, answers, current_question_index, quiz_id, flagged_questions,
            started_at, remaining_seconds,
        )
        try:
            self._store.save_draft(self._user_id, draft)
        except AttemptOwnershipError as e:
            raise SaveError(str(e)) from e

    def submit_attempt(self, attempt_id, answers, timing, quiz_id=""):
        try:
            return self._store.submit(self._user_id, quiz_id, attempt_id, answers, timing)
        except (LoadError, AttemptOwnershipError) as e:
            raise SubmitError(str(e)) from e

    def load_quiz(self, quiz_id):
        return self._store.public_questions(quiz_id)

    def load_review(self, attempt_id):
        return self._store.review(self._user_id, attempt_id)

    def load_draft(self, attempt_id):
        return self._store.get_draft(self._user_id, attempt_id)

    def list_quizzes(self):
        return self._store.list_quizzes()


# ══════════════════════════════════════════════════════════════════════════════
# HTTP 채널
# ══════════════════════════════════════════════════════════════════════════════

class HttpSyncChannel(SyncChannel):
    """
    FastAPI 저장소 API 클라이언트.
    requests.Session이 세션 쿠키를 유지하므로 사용자 식별은 서버 미들웨어가 담당한다.
    """

    def __init__(
        self,
        base_url: str,
        timeout: float = SUBMIT_TIMEOUT_SECONDS,
        session: Optional[requests.Session] = None,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._timeout = timeout
        self._http = session or requests.Session()

    def _url(self, path: str) -> str:
        return f"{self._base_url}{path}"

    @staticmethod
    def _detail(response: requests.Response) -> str:
        try:
            return str(response.json().get("detail", response.text))
        except ValueError:
            return response.text

    def save_draft(
        self,
        attempt_id,
        answers,
        current_question_index,
        quiz_id="",
        flagged_questions=(),
        started_at=None,
        remaining_seconds=None,
    ):
        draft = _make_draft(
            attempt_id, answers, current_question_index, quiz_id, flagged_questions,
            started_at, remaining_seconds,
        )
        try:
            response = self._http.put(
                self._url(f"/api/attempts/{attempt_id}/draft"),
                json=draft.model_dump(mode="json"),
                timeout=self._timeout,
            )
        except requests.RequestException as e:
            raise SaveError(f"임시 저장 요청 실패: {e}") from e
        if response.status_code >= 400:
            raise SaveError(f"임시 저장 실패 ({response.status_code}): {self._detail(response)}")

    def submit_attempt(self, attempt_id, answers, timing, quiz_id=""):
        payload = {
            "quiz_id": quiz_id,
            "answers": dict(answers),
            "timing": timing.model_dump(mode="json"),
        }
        try:
            response = self._http.post(
                self._url(f"/api/attempts/{attempt_id}/submit"),
                json=payload,
                timeout=self._timeout,
            )
        except requests.RequestException as e:
            raise SubmitError(f"제출 요청 실패: {e}") from e

        if response.status_code == 409:
            raise AttemptLimitError(self._detail(response))
        if response.status_code >= 400:
            raise SubmitError(f"제출 실패 ({response.status_code}): {self._detail(response)}")
        try:
            return ScoreSummary.model_validate(response.json())
        except (ValueError, ValidationError) as e:
            raise SubmitError(f"제출 응답 형식 오류: {e}") from e

    def load_quiz(self, quiz_id):
        data = self._get_json(f"/api/quizzes/{quiz_id}")
        try:
            return [Question.model_validate(q) for q in data.get("questions", [])]
        except ValidationError as e:
            raise LoadError(f"문제 형식 오류: {e}") from e

    def load_review(self, attempt_id):
        data = self._get_json(f"/api/attempts/{attempt_id}/review")
        try:
            return QuizReview.model_validate(data)
        except ValidationError as e:
            raise LoadError(f"리뷰 형식 오류: {e}") from e

    def load_draft(self, attempt_id):
        try:
            data = self._get_json(f"/api/attempts/{attempt_id}/draft")
        except LoadError:
            return None
        try:
            return DraftSnapshot.model_validate(data)
        except ValidationError as e:
            raise LoadError(f"임시 저장본 형식 오류: {e}") from e

    def list_quizzes(self):
        return self._get_json("/api/quizzes").get("quizzes", [])

    def _get_json(self, path: str) -> Dict[str, Any]:
        try:
            response = self._http.get(self._url(path), timeout=self._timeout)
        except requests.RequestException as e:
            raise LoadError(f"요청 실패: {e}") from e
        if response.status_code == 409:
            raise ReviewUnavailableError(self._detail(response))
        if response.status_code >= 400:
            raise LoadError(f"로드 실패 ({response.status_code}): {self._detail(response)}")
        try:
            return response.json()
        except ValueError as e:
            raise LoadError(f"응답 형식 오류: {e}") from e


# ══════════════════════════════════════════════════════════════════════════════
# 로컬 임시 저장 캐시
# ══════════════════════════════════════════════════════════════════════════════

class LocalDraftChannel(SyncChannel):
    """
    임시 저장을 로컬 파일에 먼저 기록한 뒤 내부 채널로 전달한다.

    - 로컬 기록은 항상 시도되며, 내부 채널의 SaveError는 그대로 전파된다.
    - 제출이 성공하면 로컬 캐시를 삭제한다.
    - load_draft는 내부 채널이 응답하지 않을 때 로컬 캐시로 폴백한다.
    """

    def __init__(self, inner: SyncChannel, draft_dir: str = DRAFT_DIR) -> None:
        self._inner = inner
        self._draft_dir = draft_dir
        self._lock = threading.Lock()

    def _path(self, attempt_id: str) -> str:
        safe_id = "".join(c for c in attempt_id if c.isalnum() or c in "-_")
        return os.path.join(self._draft_dir, f"quiz-progress-{safe_id}.json")

    def _write_local(self, draft: DraftSnapshot) -> None:
        path = self._path(draft.attempt_id)
        tmp_path = f"{path}.tmp"
        with self._lock:
            os.makedirs(self._draft_dir, exist_ok=True)
            with open(tmp_path, "w", encoding="utf-8") as f:
                json.dump(draft.model_dump(mode="json"), f, ensure_ascii=False)
            os.replace(tmp_path, path)

    def read_local(self, attempt_id: str) -> Optional[DraftSnapshot]:
        path = self._path(attempt_id)
        if not os.path.exists(path):
            return None
        try:
            with open(path, encoding="utf-8") as f:
                return DraftSnapshot.model_validate(json.load(f))
        except (OSError, ValueError, ValidationError) as e:
            logger.warning(f"로컬 임시 저장 파일 읽기 실패 ({path}): {e}")
            return None

    def clear_local(self, attempt_id: str) -> None:
        path = self._path(attempt_id)
        with self._lock:
            if os.path.exists(path):
                os.remove(path)

    def save_draft(
        self,
        attempt_id,
        answers,
        current_question_index,
        quiz_id="",
        flagged_questions=(),
        started_at=None,
        remaining_seconds=None,
    ):
        flagged = list(flagged_questions)
        draft = _make_draft(
            attempt_id, answers, current_question_index, quiz_id, flagged,
            started_at, remaining_seconds,
        )
        try:
            self._write_local(draft)
        except OSError as e:
            logger.warning(f"로컬 임시 저장 실패: {e}")
        self._inner.save_draft(
            attempt_id, answers, current_question_index, quiz_id, flagged,
            started_at=started_at, remaining_seconds=remaining_seconds,
        )

    def submit_attempt(self, attempt_id, answers, timing, quiz_id=""):
        summary = self._inner.submit_attempt(attempt_id, answers, timing, quiz_id)
        try:
            self.clear_local(attempt_id)
        except OSError as e:
            logger.warning(f"로컬 임시 저장 삭제 실패: {e}")
        return summary

    def load_quiz(self, quiz_id):
        return self._inner.load_quiz(quiz_id)

    def load_review(self, attempt_id):
        return self._inner.load_review(attempt_id)

    def list_quizzes(self):
        return self._inner.list_quizzes()

    def load_draft(self, attempt_id):
        try:
            remote = self._inner.load_draft(attempt_id)
        except LoadError as e:
            logger.warning(f"원격 임시 저장 조회 실패, 로컬 캐시 사용: {e}")
            remote = None
        local = self.read_local(attempt_id)
        if remote is None:
            return local
        if local is None:
            return remote
        return local if local.saved_at >= remote.saved_at else remote
