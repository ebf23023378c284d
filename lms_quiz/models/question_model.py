from typing import Any, List, Optional, Tuple, Union

from pydantic import BaseModel, Field, ValidationInfo, field_validator, model_validator

from config import DEFAULT_PASSING_SCORE

from lms_quiz.models.answer_shapes import (
    TEXT_TYPES,
    QuestionType,
    coerce_value,
    is_present,
)

_TRUE_FALSE_OPTIONS = ["True", "False"]


class Question(BaseModel):
    """
    퀴즈 문제 모델 (로드 후 불변)
    Pydantic v2 적용
    """
    id: str = Field(
        ...,
        min_length=1,
        description="문제 식별자 (퀴즈 내에서 고유)"
    )
    prompt: str = Field(
        ...,
        min_length=1,
        description="발문/문제 내용"
    )
    type: QuestionType = Field(
        ...,
        description="문제 유형"
    )
    options: Optional[List[Union[str, Tuple[str, str]]]] = Field(
        None,
        description="보기. 선택형/순서형은 문자열 리스트, 짝짓기는 (왼쪽, 오른쪽) 쌍 리스트, 주관식은 None"
    )
    points: int = Field(
        1,
        ge=0,
        description="배점"
    )
    correct_answer: Optional[Any] = Field(
        None,
        description="정답. 응시 중에는 클라이언트에 절대 노출하지 않는다."
    )
    explanation: Optional[str] = Field(
        None,
        description="해설 (리뷰 모드에서만 노출)"
    )

    model_config = {"frozen": True}

    @field_validator('options')
    @classmethod
    def validate_options_length(cls, v):
        """
        검증 로직 1: 보기가 있다면 최소 2개 이상이어야 한다.
        """
        if v is not None and len(v) == 0:
            return None
        if v is not None and len(v) < 2:
            raise ValueError("보기(options)는 최소 2개 이상의 항목이 필요합니다.")
        return v

    @model_validator(mode='before')
    @classmethod
    def default_true_false_options(cls, data: Any) -> Any:
        if isinstance(data, dict) and data.get("type") in (QuestionType.TRUE_FALSE, "true_false"):
            if not data.get("options"):
                data = {**data, "options": list(_TRUE_FALSE_OPTIONS)}
        return data

    @model_validator(mode='after')
    def validate_options_shape(self) -> 'Question':
        """
        검증 로직 2: 보기 형태가 문제 유형과 일치해야 한다.
        """
        if self.type in TEXT_TYPES:
            if self.options is not None:
                raise ValueError(f"{self.type.value} 문제는 보기를 가질 수 없습니다.")
            return self

        if self.options is None:
            raise ValueError(f"{self.type.value} 문제는 보기가 필요합니다.")

        if self.type is QuestionType.MATCHING:
            if not all(isinstance(o, tuple) for o in self.options):
                raise ValueError("짝짓기 문제의 보기는 (왼쪽, 오른쪽) 쌍이어야 합니다.")
        elif not all(isinstance(o, str) for o in self.options):
            raise ValueError(f"{self.type.value} 문제의 보기는 문자열이어야 합니다.")

        if self.type is QuestionType.TRUE_FALSE and len(self.options) != 2:
            raise ValueError("참/거짓 문제는 보기가 정확히 2개여야 합니다.")
        return self

    @field_validator('correct_answer')
    @classmethod
    def validate_correct_answer(cls, v: Any, info: ValidationInfo) -> Any:
        """
        검증 로직 3: 정답이 존재하는 경우, 문제 유형의 답안 형태와 일치해야 한다.
        정답이 None인 경우는 허용한다 (공개용 사본, 수동 채점 문제).
        서술형은 참고 답안 문자열만 허용하며 자동 채점하지 않는다.
        """
        question_type = info.data.get("type")
        if v is None or question_type is None:
            return v
        if question_type is QuestionType.ESSAY:
            if not isinstance(v, str):
                raise ValueError("서술형 문제의 참고 답안은 문자열이어야 합니다.")
            return v

        options = info.data.get("options") or []
        normalized = coerce_value(question_type, len(options), v)
        if not is_present(question_type, normalized):
            raise ValueError("정답이 비어 있습니다.")
        return normalized

    @property
    def option_count(self) -> int:
        return len(self.options) if self.options else 0

    def public_copy(self) -> 'Question':
        """정답과 해설을 제거한 응시용 사본."""
        return self.model_copy(update={"correct_answer": None, "explanation": None})


class Quiz(BaseModel):
    """퀴즈 메타데이터 + 문제 목록."""

    id: str = Field(..., min_length=1, description="퀴즈 식별자")
    title: str = Field(..., min_length=1, description="퀴즈 제목")
    description: str = Field("", description="퀴즈 설명")
    time_limit_seconds: Optional[int] = Field(
        None,
        gt=0,
        description="제한 시간 (초). None이면 시간 제한 없음"
    )
    passing_score: float = Field(
        DEFAULT_PASSING_SCORE,
        ge=0,
        le=100,
        description="합격 기준 점수 (백분율)"
    )
    max_attempts: Optional[int] = Field(
        None,
        gt=0,
        description="사용자당 최대 응시 횟수. None이면 무제한"
    )
    questions: List[Question] = Field(default_factory=list)

    @model_validator(mode='after')
    def validate_unique_question_ids(self) -> 'Quiz':
        ids = [q.id for q in self.questions]
        if len(ids) != len(set(ids)):
            raise ValueError(f"퀴즈 {self.id}에 중복된 문제 ID가 있습니다.")
        return self

    def public_questions(self) -> List[Question]:
        return [q.public_copy() for q in self.questions]
