"""
services/answer_service.py

답안 검증 및 진행률 계산 로직.
순수 Python 함수로 구성 — UI 코드, 전역 상태 변경 없음.
"""

from typing import Any, Dict, List, Mapping

from lms_quiz.models.answer_shapes import AnswerValue, coerce_value, is_present, to_wire
from lms_quiz.models.errors import InvalidAnswerShapeError
from lms_quiz.models.question_model import Question


def coerce_answer(question: Question, raw_value: Any) -> AnswerValue | None:
    """
    원시 입력을 문제 유형에 맞는 답안 값으로 변환한다.

    Raises:
        InvalidAnswerShapeError: 변환 불가능한 형태 (예: 단일 선택에 문자열)
    """
    try:
        return coerce_value(question.type, question.option_count, raw_value)
    except (ValueError, TypeError) as e:
        raise InvalidAnswerShapeError(question.id, question.type.value, str(e)) from e


def is_answered(question: Question, answers: Mapping[str, Any]) -> bool:
    return is_present(question.type, answers.get(question.id))


def answered_count(questions: List[Question], answers: Mapping[str, Any]) -> int:
    """응답한(비어 있지 않은) 답안이 있는 문제 수."""
    return sum(1 for q in questions if is_answered(q, answers))


def progress_percentage(questions: List[Question], answers: Mapping[str, Any]) -> float:
    """
    진행률 (0.0 ~ 100.0). 반올림하지 않은 값을 반환하며,
    표시용 반올림은 호출하는 쪽에서 수행한다.
    """
    if not questions:
        return 0.0
    return answered_count(questions, answers) / len(questions) * 100


def find_invalid_answers(
    questions: List[Question],
    answers: Mapping[str, Any],
) -> Dict[str, str]:
    """
    저장된 답안 전체를 재검증한다 (제출 직전 방어적 확인).

    Returns:
        {question_id: 오류 사유}. 모두 정상이면 빈 dict.
    """
    by_id = {q.id: q for q in questions}
    problems: Dict[str, str] = {}
    for question_id, value in answers.items():
        question = by_id.get(question_id)
        if question is None:
            problems[question_id] = "퀴즈에 없는 문제"
            continue
        try:
            if coerce_value(question.type, question.option_count, value) != value:
                problems[question_id] = "정규화되지 않은 답안 값"
        except (ValueError, TypeError) as e:
            problems[question_id] = str(e)
    return problems


def answers_to_wire(answers: Mapping[str, Any]) -> Dict[str, Any]:
    """전송/저장용 JSON 호환 답안 dict."""
    return {question_id: to_wire(value) for question_id, value in answers.items()}
