"""
models/answer_shapes.py

문제 유형별 답안 형태(shape) 변환과 "응답 여부" 판정.
유형 분기는 이 모듈 한 곳에서만 수행하며, 다른 모듈은 여기의 함수를 호출할 뿐이다.

유형별 정규화된 답안 값:
  single_choice / true_false : int (보기 인덱스)
  multi_choice               : frozenset[int]
  fill_blank / essay         : str
  matching                   : dict[int, int]  (왼쪽 인덱스 → 오른쪽 인덱스)
  ordering                   : dict[int, int]  (원래 인덱스 → 1부터 시작하는 위치)
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from enum import Enum
from typing import Any, Dict, FrozenSet, Union


class QuestionType(str, Enum):
    SINGLE_CHOICE = "single_choice"
    MULTI_CHOICE = "multi_choice"
    TRUE_FALSE = "true_false"
    FILL_BLANK = "fill_blank"
    ESSAY = "essay"
    MATCHING = "matching"
    ORDERING = "ordering"


INDEX_TYPES = frozenset({QuestionType.SINGLE_CHOICE, QuestionType.TRUE_FALSE})
TEXT_TYPES = frozenset({QuestionType.FILL_BLANK, QuestionType.ESSAY})

AnswerValue = Union[int, FrozenSet[int], str, Dict[int, int]]


def _as_index(raw: Any, option_count: int, what: str = "보기 인덱스") -> int:
    # bool은 int의 하위 타입이므로 명시적으로 거부
    if isinstance(raw, bool) or not isinstance(raw, int):
        raise ValueError(f"{what}는 정수여야 합니다 (받은 값: {type(raw).__name__})")
    if not 0 <= raw < option_count:
        raise ValueError(f"{what} {raw}가 범위 [0, {option_count})를 벗어났습니다")
    return raw


def _as_mapping_key(raw: Any, option_count: int) -> int:
    # JSON 왕복 후에는 키가 문자열이 되므로 숫자 문자열은 허용
    if isinstance(raw, str) and raw.strip().isdigit():
        raw = int(raw.strip())
    return _as_index(raw, option_count, what="항목 인덱스")


def coerce_value(question_type: QuestionType, option_count: int, raw: Any) -> AnswerValue | None:
    """
    원시 입력을 유형별 정규 형태로 변환한다.

    None은 "답안 없음"을 의미하며 그대로 None을 반환한다.
    변환이 불가능하면 ValueError를 발생시킨다.
    """
    if raw is None:
        return None

    if question_type in INDEX_TYPES:
        return _as_index(raw, option_count)

    if question_type is QuestionType.MULTI_CHOICE:
        if isinstance(raw, (str, bytes, Mapping)) or not isinstance(raw, Iterable):
            raise ValueError(f"복수 선택 답안은 인덱스 집합이어야 합니다 (받은 값: {type(raw).__name__})")
        return frozenset(_as_index(item, option_count) for item in raw)

    if question_type in TEXT_TYPES:
        if not isinstance(raw, str):
            raise ValueError(f"주관식 답안은 문자열이어야 합니다 (받은 값: {type(raw).__name__})")
        return raw

    if question_type is QuestionType.MATCHING:
        if not isinstance(raw, Mapping):
            raise ValueError(f"짝짓기 답안은 매핑이어야 합니다 (받은 값: {type(raw).__name__})")
        return {
            _as_mapping_key(left, option_count): _as_index(right, option_count, what="오른쪽 항목 인덱스")
            for left, right in raw.items()
        }

    if question_type is QuestionType.ORDERING:
        if not isinstance(raw, Mapping):
            raise ValueError(f"순서 배열 답안은 매핑이어야 합니다 (받은 값: {type(raw).__name__})")
        order: Dict[int, int] = {}
        for item, position in raw.items():
            if isinstance(position, bool) or not isinstance(position, int):
                raise ValueError("순서 위치는 정수여야 합니다")
            if not 1 <= position <= option_count:
                raise ValueError(f"순서 위치 {position}가 범위 [1, {option_count}]를 벗어났습니다")
            order[_as_mapping_key(item, option_count)] = position
        if len(set(order.values())) != len(order):
            raise ValueError("같은 위치에 두 개 이상의 항목을 배치할 수 없습니다")
        return order

    raise ValueError(f"지원하지 않는 문제 유형: {question_type!r}")


def is_present(question_type: QuestionType, value: Any) -> bool:
    """진행률에 포함되는 "응답한" 답안인지 판정한다."""
    if value is None:
        return False
    if question_type in INDEX_TYPES:
        return isinstance(value, int) and not isinstance(value, bool) and value >= 0
    if question_type in TEXT_TYPES:
        return isinstance(value, str) and bool(value.strip())
    # multi_choice / matching / ordering: 비어 있지 않은 컬렉션
    return len(value) > 0


def to_wire(value: Any) -> Any:
    """정규화된 답안 값을 JSON 직렬화 가능한 형태로 변환."""
    if isinstance(value, (set, frozenset)):
        return sorted(value)
    if isinstance(value, Mapping):
        return {str(k): v for k, v in sorted(value.items())}
    return value
