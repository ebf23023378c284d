"""
services/grading_service.py

채점 및 리뷰 생성 비즈니스 로직 (서버/채점 협력자 측).
순수 Python 함수로 구성 — UI 코드, 전역 상태 변경 없음.

응시 중인 컨트롤러는 이 모듈을 호출하지 않는다. 정답은 제출 이후에만 사용된다.
"""

from typing import Any, List, Mapping, Optional

from lms_quiz.models.answer_shapes import QuestionType, coerce_value, to_wire
from lms_quiz.models.question_model import Question
from lms_quiz.models.session_state import QuestionResult, ReviewItem, ScoreSummary


def _normalize_text(text: str, case_sensitive: bool) -> str:
    text = text.strip()
    return text if case_sensitive else text.casefold()


def is_correct(
    question: Question,
    answer: Any,
    case_sensitive: bool = False,
) -> Optional[bool]:
    """
    단일 문제 정답 판정. 부분 점수 없음.

    정답 판정 기준:
    - 단일 선택 / 참거짓: 인덱스 일치
    - 복수 선택: 집합 일치 (순서 무관)
    - 빈칸 채우기: 앞뒤 공백 제거 후 문자열 일치 (case_sensitive에 따라 대소문자 구분)
    - 짝짓기 / 순서 배열: 매핑 전체 일치
    - 서술형: 자동 채점 불가 → None

    Returns:
        True / False, 자동 채점이 불가능하면 None.
    """
    if question.type is QuestionType.ESSAY:
        return None
    if question.correct_answer is None or answer is None:
        return False

    if question.type is QuestionType.FILL_BLANK:
        if not isinstance(answer, str):
            return False
        return _normalize_text(answer, case_sensitive) == _normalize_text(
            question.correct_answer, case_sensitive
        )

    # 전송 과정에서 list/str-key 형태로 바뀐 답안도 동일하게 비교하기 위해 재정규화
    try:
        normalized = coerce_value(question.type, question.option_count, answer)
    except (ValueError, TypeError):
        return False
    return normalized == question.correct_answer


def grade_attempt(
    attempt_id: str,
    questions: List[Question],
    user_answers: Mapping[str, Any],
    passing_score: float = 70.0,
    case_sensitive: bool = False,
    attempt_number: int = 1,
) -> ScoreSummary:
    """
    사용자 답안을 채점하여 ScoreSummary를 반환한다.

    응답하지 않은 문제(키 없음)는 오답으로 처리.
    서술형 문제의 배점은 만점에 포함되지만 자동으로 득점하지 않는다.

    Returns:
        percentage는 0.0 ~ 100.0 범위 (소수점 둘째 자리 반올림).
        questions가 빈 리스트이면 0점.
    """
    results: List[QuestionResult] = []
    for q in questions:
        correct = is_correct(q, user_answers.get(q.id), case_sensitive)
        results.append(
            QuestionResult(
                question_id=q.id,
                points=q.points,
                earned=q.points if correct else 0,
                is_correct=correct,
            )
        )

    possible = sum(r.points for r in results)
    earned = sum(r.earned for r in results)
    percentage = round(earned / possible * 100, 2) if possible else 0.0

    return ScoreSummary(
        attempt_id=attempt_id,
        earned_points=earned,
        possible_points=possible,
        percentage=percentage,
        passed=is_passed(percentage, passing_score),
        attempt_number=attempt_number,
        results=results,
    )


def build_review_items(
    questions: List[Question],
    user_answers: Mapping[str, Any],
    summary: ScoreSummary,
) -> List[ReviewItem]:
    """리뷰 화면용 항목 (정답/해설 포함). 원본 문제 순서 유지."""
    correctness = {r.question_id: r.is_correct for r in summary.results}
    items: List[ReviewItem] = []
    for q in questions:
        items.append(
            ReviewItem(
                question_id=q.id,
                prompt=q.prompt,
                type=q.type.value,
                options=list(q.options) if q.options else None,
                user_answer=to_wire(user_answers.get(q.id)),
                correct_answer=to_wire(q.correct_answer),
                is_correct=correctness.get(q.id),
                explanation=q.explanation,
            )
        )
    return items


def is_passed(score: float, pass_score: float = 70.0) -> bool:
    """
    합격 여부를 반환한다.

    Args:
        score:      grade_attempt()가 계산한 백분율 점수 (0.0 ~ 100.0).
        pass_score: 합격 기준 점수 (기본값 70.0점).
    """
    return score >= pass_score
