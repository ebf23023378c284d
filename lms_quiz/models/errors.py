"""
models/errors.py

퀴즈 응시 세션의 예외 계층.

- 입력 오류 (UnknownQuestionError, InvalidAnswerShapeError): 즉시 발생, 상태 변경 없음
- 상태 오류 (InvalidStateError, AlreadySubmittingError): 호출 계약 위반, 재시도 없음
- 네트워크 오류 (SaveError, SubmitError, LoadError): SyncChannel 경계에서 발생
- 소유권 오류 (AttemptOwnershipError): 저장소가 다른 응시자의 attempt를 거부
"""

from __future__ import annotations


class QuizSessionError(Exception):
    """퀴즈 세션 예외의 공통 부모."""


class InvalidStateError(QuizSessionError):
    """현재 status에서 허용되지 않는 작업 (중복 start, 제출 후 답안 수정 등)."""


class AlreadySubmittingError(InvalidStateError):
    """이미 제출이 진행 중인데 submit()이 다시 호출된 경우."""


class UnknownQuestionError(QuizSessionError):
    """퀴즈에 존재하지 않는 문제 ID."""

    def __init__(self, question_id: str) -> None:
        super().__init__(f"알 수 없는 문제 ID: {question_id!r}")
        self.question_id = question_id


class InvalidAnswerShapeError(QuizSessionError):
    """답안 값을 문제 유형에 맞는 형태로 변환할 수 없는 경우."""

    def __init__(self, question_id: str, question_type: str, reason: str) -> None:
        super().__init__(f"문제 {question_id!r} ({question_type}) 답안 형식 오류: {reason}")
        self.question_id = question_id
        self.question_type = question_type
        self.reason = reason


class SaveError(QuizSessionError):
    """임시 저장 실패. 일시적 오류로 간주하며 다음 debounce 주기에 재시도."""


class SubmitError(QuizSessionError):
    """최종 제출 실패."""

    def __init__(self, message: str, attempts: int = 0) -> None:
        super().__init__(message)
        self.attempts = attempts


class LoadError(QuizSessionError):
    """퀴즈/리뷰 데이터 로드 실패."""


class ReviewUnavailableError(LoadError):
    """제출 전 시도에 대한 리뷰 요청 (정답 노출 금지)."""


class AttemptLimitError(SubmitError):
    """퀴즈의 최대 응시 횟수 초과. 재시도해도 결과가 바뀌지 않는다."""


class AttemptOwnershipError(QuizSessionError):
    """다른 응시자의 attempt_id로 임시 저장 / 제출을 시도한 경우."""
