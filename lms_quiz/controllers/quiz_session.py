"""
controllers/quiz_session.py

퀴즈 응시 1회의 단일 상태 원천 (QuizSessionController).

UI 이벤트(답안 변경, 이동, tick, 제출)를 받아 메모리 상태를 동기적으로 갱신하고,
원격 저장소와의 임시 저장(debounce) / 최종 제출(재시도) 프로토콜을 중재한다.

상태 전이:
    in_progress ──submit()──▶ submitting ──성공──▶ submitted
         │                        └──재시도 소진──▶ (이전 상태로 복귀)
         └──tick() 시간 종료──▶ expired ──강제 제출──▶ submitting ...

모든 상태 변경은 하나의 RLock 뒤에서 직렬화된다. 네트워크 호출은 락 밖에서 수행한다.
"""

from __future__ import annotations

import logging
import threading
import time
from typing import Any, Callable, Dict, List, Optional, Union

from config import (
    AUTOSAVE_DEBOUNCE_SECONDS,
    SAVE_ERROR_THRESHOLD,
    SUBMIT_BACKOFF_BASE,
    SUBMIT_MAX_RETRIES,
)
from lms_quiz.models.answer_shapes import is_present
from lms_quiz.models.errors import (
    AlreadySubmittingError,
    AttemptLimitError,
    InvalidAnswerShapeError,
    InvalidStateError,
    SaveError,
    SubmitError,
    UnknownQuestionError,
)
from lms_quiz.models.question_model import Question
from lms_quiz.models.session_state import (
    AttemptStatus,
    DraftSnapshot,
    QuizAttempt,
    QuizReview,
    ScoreSummary,
    SubmitTiming,
    SyncState,
    utcnow,
)
from lms_quiz.services import answer_service
from lms_quiz.services.debounce import Debouncer
from lms_quiz.services.sync_channel import SyncChannel
from lms_quiz.services.timer import QuizTimer, TimerLevel

logger = logging.getLogger(__name__)

Direction = Union[str, int]


class QuizSessionController:
    def __init__(
        self,
        channel: SyncChannel,
        quiz_id: str = "",
        user_id: str = "",
        debounce_seconds: float = AUTOSAVE_DEBOUNCE_SECONDS,
        max_submit_retries: int = SUBMIT_MAX_RETRIES,
        backoff_base: float = SUBMIT_BACKOFF_BASE,
        save_error_threshold: int = SAVE_ERROR_THRESHOLD,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._channel = channel
        self._quiz_id = quiz_id
        self._user_id = user_id
        self._max_submit_retries = max(1, max_submit_retries)
        self._backoff_base = backoff_base
        self._save_error_threshold = save_error_threshold
        self._sleep = sleep
        self._clock = clock

        self._lock = threading.RLock()
        self._attempt: Optional[QuizAttempt] = None
        self._questions: List[Question] = []
        self._by_id: Dict[str, Question] = {}
        self._timer: Optional[QuizTimer] = None
        self._entered_at: Optional[float] = None

        # 저장 상태
        self._sync = SyncState()
        self._debouncer = Debouncer(debounce_seconds, self._run_save)
        self._version = 0
        self._saved_version = 0
        self._save_in_flight = False
        self._save_failures = 0

        self._summary: Optional[ScoreSummary] = None
        self._last_submit_error: Optional[SubmitError] = None

    # ══════════════════════════════════════════════════════════════════════════
    # 시작
    # ══════════════════════════════════════════════════════════════════════════

    def start(
        self,
        questions: List[Question],
        time_limit_seconds: Optional[int] = None,
        attempt_id: Optional[str] = None,
    ) -> QuizAttempt:
        """
        응시를 시작한다. 컨트롤러당 한 번만 호출할 수 있다.

        정답이 포함된 문제가 넘어와도 응시 중에는 정답을 보관하지 않는다.
        """
        if not questions:
            raise ValueError("문제가 없는 퀴즈는 시작할 수 없습니다.")
        if time_limit_seconds is not None and time_limit_seconds <= 0:
            raise ValueError("제한 시간은 0보다 커야 합니다.")

        with self._lock:
            if self._attempt is not None:
                raise InvalidStateError("이미 시작된 응시입니다.")

            public = [q.public_copy() for q in questions]
            by_id = {q.id: q for q in public}
            if len(by_id) != len(public):
                raise ValueError("중복된 문제 ID가 있습니다.")
            self._questions = public
            self._by_id = by_id

            fields: Dict[str, Any] = {
                "quiz_id": self._quiz_id,
                "user_id": self._user_id,
                "time_limit_seconds": time_limit_seconds,
            }
            if attempt_id:
                fields["attempt_id"] = attempt_id
            attempt = QuizAttempt(**fields)
            attempt.visited_questions.add(self._questions[0].id)
            self._attempt = attempt

            if time_limit_seconds is not None:
                self._timer = QuizTimer(time_limit_seconds)
            self._entered_at = self._clock()

            logger.info(
                f"응시 시작: quiz={self._quiz_id} attempt={attempt.attempt_id} "
                f"문제 {len(self._questions)}개, 제한 시간 {time_limit_seconds or '없음'}"
            )
            return attempt.model_copy(deep=True)

    def load_and_start(self, time_limit_seconds: Optional[int] = None) -> QuizAttempt:
        """채널에서 응시용 문제를 불러와 시작한다."""
        questions = self._channel.load_quiz(self._quiz_id)
        return self.start(questions, time_limit_seconds)

    def resume(self, draft: DraftSnapshot) -> int:
        """
        임시 저장본에서 답안/커서/플래그와 시작 시각/남은 시간을 복원한다.
        형식이 맞지 않는 답안은 건너뛴다.
        남은 시간은 저장 이후 흐른 실제 시간만큼 줄어들며, 0이 되면 즉시 만료되어
        강제 제출이 수행된다.

        Returns:
            복원된 답안 수.
        """
        restored = 0
        with self._lock:
            attempt = self._require_in_progress()
            for question_id, raw in draft.answers.items():
                question = self._by_id.get(question_id)
                if question is None:
                    logger.warning(f"임시 저장본의 알 수 없는 문제 무시: {question_id}")
                    continue
                try:
                    value = answer_service.coerce_answer(question, raw)
                except InvalidAnswerShapeError as e:
                    logger.warning(f"임시 저장본 답안 복원 실패: {e}")
                    continue
                if is_present(question.type, value):
                    attempt.answers[question_id] = value
                    restored += 1
            attempt.flagged_questions = {q for q in draft.flagged_questions if q in self._by_id}
            self._move_to(self._clamp(draft.current_question_index))

            if draft.started_at is not None:
                attempt.started_at = draft.started_at
            remaining = self._restored_remaining(draft)
            if remaining is not None:
                self._timer.restore(remaining)
            logger.info(f"임시 저장본 복원: 답안 {restored}개, 남은 시간 {remaining}")

        if remaining is not None and remaining <= 0:
            self.tick(0)
        return restored

    def _restored_remaining(self, draft: DraftSnapshot) -> Optional[float]:
        if self._timer is None:
            return None
        now = utcnow()
        if draft.remaining_seconds is not None:
            away = max(0.0, (now - draft.saved_at).total_seconds())
            return max(0.0, draft.remaining_seconds - away)
        if draft.started_at is not None:
            elapsed = max(0.0, (now - draft.started_at).total_seconds())
            return max(0.0, self._timer.limit_seconds - elapsed)
        return None

    def restore_saved_draft(self) -> int:
        """채널(로컬 캐시 포함)에 남아 있는 같은 attempt_id의 임시 저장본을 복원."""
        draft = self._channel.load_draft(self.attempt_id)
        if draft is None:
            return 0
        return self.resume(draft)

    # ══════════════════════════════════════════════════════════════════════════
    # 답안 / 이동 / 플래그
    # ══════════════════════════════════════════════════════════════════════════

    def set_answer(self, question_id: str, raw_value: Any) -> None:
        """
        답안을 원자적으로 교체한다 (last-write-wins).
        None 또는 빈 값(빈 문자열, 빈 집합/매핑)은 답안 삭제로 처리한다.

        Raises:
            InvalidStateError:       응시 중이 아님
            UnknownQuestionError:    존재하지 않는 문제
            InvalidAnswerShapeError: 유형에 맞지 않는 답안
        """
        with self._lock:
            attempt = self._require_in_progress()
            question = self._by_id.get(question_id)
            if question is None:
                raise UnknownQuestionError(question_id)
            value = answer_service.coerce_answer(question, raw_value)

            if not is_present(question.type, value):
                attempt.answers.pop(question_id, None)
            else:
                attempt.answers[question_id] = value
            self._mark_dirty()

    def clear_answer(self, question_id: str) -> None:
        self.set_answer(question_id, None)

    def navigate(self, direction: Direction) -> int:
        """
        'next' / 'previous' / 인덱스로 이동. 범위를 벗어나면 양 끝으로 보정한다.
        응시 중이 아니면 아무것도 하지 않는다.

        Returns:
            이동 후 현재 인덱스.
        """
        with self._lock:
            attempt = self._attempt
            if attempt is None or attempt.status is not AttemptStatus.IN_PROGRESS:
                return attempt.current_question_index if attempt else 0

            current = attempt.current_question_index
            if direction == "next":
                target = current + 1
            elif direction == "previous":
                target = current - 1
            elif isinstance(direction, int) and not isinstance(direction, bool):
                target = direction
            else:
                raise ValueError(f"알 수 없는 이동 방향: {direction!r}")

            self._move_to(self._clamp(target))
            return attempt.current_question_index

    def toggle_flag(self, question_id: str) -> bool:
        """'나중에 다시 보기' 표시를 토글. 토글 후 표시 여부를 반환."""
        with self._lock:
            attempt = self._require_in_progress()
            if question_id not in self._by_id:
                raise UnknownQuestionError(question_id)
            flagged = question_id not in attempt.flagged_questions
            if flagged:
                attempt.flagged_questions.add(question_id)
            else:
                attempt.flagged_questions.discard(question_id)
            self._mark_dirty()
            return flagged

    # ══════════════════════════════════════════════════════════════════════════
    # 타이머
    # ══════════════════════════════════════════════════════════════════════════

    def tick(self, elapsed_seconds: float = 1) -> None:
        """
        남은 시간을 줄인다. 시간이 0에 처음 도달하면 expired로 전이하고
        대기 중인 임시 저장을 취소한 뒤 강제 제출을 정확히 한 번 수행한다.
        종료 상태 이후의 tick은 무시한다.
        """
        with self._lock:
            attempt = self._attempt
            if attempt is None or attempt.status is not AttemptStatus.IN_PROGRESS:
                return
            if self._timer is None or not self._timer.tick(elapsed_seconds):
                return

            attempt.status = AttemptStatus.EXPIRED
            self._debouncer.cancel()
            logger.info(f"시간 종료, 강제 제출: attempt={attempt.attempt_id}")

        try:
            self.submit()
        except (SubmitError, AlreadySubmittingError) as e:
            # 답안은 보존되며 status는 expired로 돌아간다. UI에서 수동 재시도.
            logger.error(f"강제 제출 실패: {e}")

    # ══════════════════════════════════════════════════════════════════════════
    # 제출
    # ══════════════════════════════════════════════════════════════════════════

    def submit(self) -> ScoreSummary:
        """
        최종 제출. 지수 백오프로 재시도하며, 모두 실패하면 이전 상태로 복귀하고
        SubmitError를 발생시킨다 (답안은 그대로 남는다).

        Raises:
            AlreadySubmittingError:  제출이 이미 진행 중
            InvalidStateError:       시작 전이거나 이미 제출 완료
            InvalidAnswerShapeError: 저장된 답안 재검증 실패
            SubmitError:             재시도 소진
        """
        with self._lock:
            attempt = self._attempt
            if attempt is None:
                raise InvalidStateError("시작되지 않은 응시입니다.")
            if attempt.status is AttemptStatus.SUBMITTING:
                raise AlreadySubmittingError("이미 제출 중입니다.")
            if attempt.status not in (AttemptStatus.IN_PROGRESS, AttemptStatus.EXPIRED):
                raise InvalidStateError(f"제출할 수 없는 상태입니다: {attempt.status.value}")

            previous_status = attempt.status
            attempt.status = AttemptStatus.SUBMITTING
            self._debouncer.cancel()
            self._record_time_spent()

            problems = answer_service.find_invalid_answers(self._questions, attempt.answers)
            if problems:
                attempt.status = previous_status
                question_id, reason = next(iter(problems.items()))
                question = self._by_id.get(question_id)
                raise InvalidAnswerShapeError(
                    question_id, question.type.value if question else "unknown", reason
                )

            answers = answer_service.answers_to_wire(attempt.answers)
            timing = self._build_timing(attempt)
            attempt_id = attempt.attempt_id

        summary, error = self._send_with_retry(attempt_id, answers, timing)

        with self._lock:
            if summary is None:
                attempt.status = previous_status
                self._last_submit_error = error
                self._sync.last_error = str(error)
                logger.error(f"제출 최종 실패 ({error.attempts}회 시도): {error}")
                raise error

            attempt.status = AttemptStatus.SUBMITTED
            attempt.submitted_at = timing.submitted_at
            self._summary = summary
            self._last_submit_error = None
            self._saved_version = self._version
            self._sync.has_unsaved_changes = False
            self._sync.last_error = None
            logger.info(
                f"제출 완료: attempt={attempt_id} "
                f"{summary.earned_points}/{summary.possible_points}점"
            )
            return summary

    def _send_with_retry(self, attempt_id, answers, timing):
        last_error: Optional[SubmitError] = None
        for n in range(1, self._max_submit_retries + 1):
            try:
                summary = self._channel.submit_attempt(attempt_id, answers, timing, self._quiz_id)
                return summary, None
            except AttemptLimitError as e:
                e.attempts = n
                return None, e
            except SubmitError as e:
                last_error = e
                if n < self._max_submit_retries:
                    wait = self._backoff_base * (2 ** (n - 1))
                    logger.warning(f"제출 실패, {wait:.1f}초 후 재시도 ({n}/{self._max_submit_retries}): {e}")
                    self._sleep(wait)
            except Exception as e:
                logger.error(f"제출 중 예상치 못한 오류: {type(e).__name__}: {e}")
                return None, SubmitError(f"예상치 못한 오류: {e}", attempts=n)

        return None, SubmitError(f"제출 실패: {last_error}", attempts=self._max_submit_retries)

    def _build_timing(self, attempt: QuizAttempt) -> SubmitTiming:
        submitted_at = utcnow()
        if self._timer is not None:
            elapsed = self._timer.elapsed_seconds
        else:
            elapsed = int((submitted_at - attempt.started_at).total_seconds())
        return SubmitTiming(
            started_at=attempt.started_at,
            submitted_at=submitted_at,
            elapsed_seconds=max(0, elapsed),
        )

    def load_review(self) -> QuizReview:
        """제출이 끝난 응시에 대해서만 정답이 포함된 리뷰를 불러온다."""
        with self._lock:
            attempt = self._attempt
            if attempt is None or attempt.status is not AttemptStatus.SUBMITTED:
                raise InvalidStateError("제출 완료 후에만 리뷰할 수 있습니다.")
            attempt_id = attempt.attempt_id
        return self._channel.load_review(attempt_id)

    # ══════════════════════════════════════════════════════════════════════════
    # 임시 저장 (debounce)
    # ══════════════════════════════════════════════════════════════════════════

    def save_now(self) -> None:
        """대기 중인 debounce를 건너뛰고 즉시 임시 저장."""
        self._debouncer.cancel()
        self._run_save()

    def close(self) -> None:
        self._debouncer.cancel()

    def _mark_dirty(self) -> None:
        self._version += 1
        self._sync.has_unsaved_changes = True
        self._debouncer.schedule()

    def _run_save(self) -> None:
        with self._lock:
            attempt = self._attempt
            if attempt is None or attempt.status is not AttemptStatus.IN_PROGRESS:
                return
            if self._save_in_flight or self._version == self._saved_version:
                # 진행 중인 저장이 끝나면 변경 여부를 보고 후속 저장을 예약한다
                return
            self._save_in_flight = True
            self._sync.is_saving = True
            snapshot_version = self._version
            attempt_id = attempt.attempt_id
            answers = answer_service.answers_to_wire(attempt.answers)
            index = attempt.current_question_index
            flagged = sorted(attempt.flagged_questions)
            started_at = attempt.started_at
            remaining = float(self._timer.remaining_seconds) if self._timer else None

        error: Optional[SaveError] = None
        try:
            self._channel.save_draft(
                attempt_id, answers, index, self._quiz_id, flagged,
                started_at=started_at, remaining_seconds=remaining,
            )
        except SaveError as e:
            error = e
        except Exception as e:
            logger.error(f"임시 저장 중 예상치 못한 오류: {type(e).__name__}: {e}")
            error = SaveError(f"예상치 못한 오류: {e}")
        finally:
            with self._lock:
                self._save_in_flight = False
                self._sync.is_saving = False

        with self._lock:
            if error is None:
                self._saved_version = max(self._saved_version, snapshot_version)
                self._sync.last_saved_at = utcnow()
                if self._save_failures >= self._save_error_threshold:
                    self._sync.last_error = None
                self._save_failures = 0
            else:
                self._save_failures += 1
                logger.warning(f"임시 저장 실패 ({self._save_failures}회 연속): {error}")
                if self._save_failures >= self._save_error_threshold:
                    self._sync.last_error = f"임시 저장이 {self._save_failures}회 연속 실패했습니다: {error}"

            self._sync.has_unsaved_changes = self._version != self._saved_version
            if self._sync.has_unsaved_changes and attempt.status is AttemptStatus.IN_PROGRESS:
                self._debouncer.schedule()

    # ══════════════════════════════════════════════════════════════════════════
    # 내부 헬퍼
    # ══════════════════════════════════════════════════════════════════════════

    def _require_in_progress(self) -> QuizAttempt:
        attempt = self._attempt
        if attempt is None:
            raise InvalidStateError("시작되지 않은 응시입니다.")
        if attempt.status is not AttemptStatus.IN_PROGRESS:
            raise InvalidStateError(f"응시 중이 아닙니다: {attempt.status.value}")
        return attempt

    def _clamp(self, index: int) -> int:
        return max(0, min(index, len(self._questions) - 1))

    def _record_time_spent(self) -> None:
        attempt = self._attempt
        if attempt is None or self._entered_at is None:
            return
        now = self._clock()
        question_id = self._questions[attempt.current_question_index].id
        attempt.time_spent[question_id] = attempt.time_spent.get(question_id, 0.0) + (now - self._entered_at)
        self._entered_at = now

    def _move_to(self, index: int) -> None:
        attempt = self._attempt
        if index == attempt.current_question_index:
            return
        self._record_time_spent()
        attempt.current_question_index = index
        attempt.visited_questions.add(self._questions[index].id)

    # ══════════════════════════════════════════════════════════════════════════
    # 조회 (UI용 스냅샷)
    # ══════════════════════════════════════════════════════════════════════════

    @property
    def is_started(self) -> bool:
        return self._attempt is not None

    @property
    def attempt(self) -> Optional[QuizAttempt]:
        with self._lock:
            return self._attempt.model_copy(deep=True) if self._attempt else None

    @property
    def attempt_id(self) -> str:
        with self._lock:
            if self._attempt is None:
                raise InvalidStateError("시작되지 않은 응시입니다.")
            return self._attempt.attempt_id

    @property
    def status(self) -> Optional[AttemptStatus]:
        with self._lock:
            return self._attempt.status if self._attempt else None

    @property
    def questions(self) -> List[Question]:
        return list(self._questions)

    @property
    def question_count(self) -> int:
        return len(self._questions)

    @property
    def answers(self) -> Dict[str, Any]:
        with self._lock:
            return dict(self._attempt.answers) if self._attempt else {}

    def get_answer(self, question_id: str) -> Any:
        with self._lock:
            return self._attempt.answers.get(question_id) if self._attempt else None

    def is_answered(self, question_id: str) -> bool:
        with self._lock:
            question = self._by_id.get(question_id)
            if question is None or self._attempt is None:
                return False
            return answer_service.is_answered(question, self._attempt.answers)

    @property
    def current_index(self) -> int:
        with self._lock:
            return self._attempt.current_question_index if self._attempt else 0

    @property
    def current_question(self) -> Optional[Question]:
        with self._lock:
            if self._attempt is None:
                return None
            return self._questions[self._attempt.current_question_index]

    @property
    def answered_count(self) -> int:
        with self._lock:
            if self._attempt is None:
                return 0
            return answer_service.answered_count(self._questions, self._attempt.answers)

    @property
    def progress_percentage(self) -> float:
        with self._lock:
            if self._attempt is None:
                return 0.0
            return answer_service.progress_percentage(self._questions, self._attempt.answers)

    @property
    def progress_display(self) -> int:
        """표시용으로 반올림한 진행률."""
        return round(self.progress_percentage)

    @property
    def remaining_seconds(self) -> Optional[int]:
        with self._lock:
            return self._timer.remaining_seconds if self._timer else None

    @property
    def timer_level(self) -> Optional[TimerLevel]:
        with self._lock:
            return self._timer.level() if self._timer else None

    @property
    def sync_state(self) -> SyncState:
        with self._lock:
            return self._sync.model_copy()

    @property
    def summary(self) -> Optional[ScoreSummary]:
        return self._summary

    @property
    def last_submit_error(self) -> Optional[SubmitError]:
        return self._last_submit_error
