"""
views/components/question_card.py

단일 문제(Question)를 카드 형태로 렌더링하고
사용자의 입력을 원시 답안 값으로 반환하는 컴포넌트.
유형별 검증은 컨트롤러가 담당하고, 여기서는 위젯 값만 모은다.
"""

from __future__ import annotations

from typing import Any, Optional

import streamlit as st

from lms_quiz.models.answer_shapes import QuestionType
from lms_quiz.models.question_model import Question

_TYPE_LABELS = {
    QuestionType.SINGLE_CHOICE: "단일 선택",
    QuestionType.MULTI_CHOICE: "복수 선택",
    QuestionType.TRUE_FALSE: "참 / 거짓",
    QuestionType.FILL_BLANK: "빈칸 채우기",
    QuestionType.ESSAY: "서술형",
    QuestionType.MATCHING: "짝짓기",
    QuestionType.ORDERING: "순서 배열",
}


def _render_choice(question: Question, saved: Any) -> Optional[int]:
    indices = list(range(question.option_count))
    return st.radio(
        "보기를 선택하세요",
        options=indices,
        index=saved if isinstance(saved, int) and saved in indices else None,
        format_func=lambda i: question.options[i],
        key=f"answer_{question.id}",
        label_visibility="collapsed",
    )


def _render_multi(question: Question, saved: Any) -> list[int]:
    return st.multiselect(
        "해당하는 보기를 모두 선택하세요",
        options=list(range(question.option_count)),
        default=sorted(saved) if saved else [],
        format_func=lambda i: question.options[i],
        key=f"answer_{question.id}",
    )


def _render_matching(question: Question, saved: Any) -> dict[int, int]:
    saved = saved or {}
    rights = [pair[1] for pair in question.options]
    choices = [None] + list(range(len(rights)))
    selected: dict[int, int] = {}
    for left_idx, (left, _) in enumerate(question.options):
        current = saved.get(left_idx)
        value = st.selectbox(
            left,
            options=choices,
            index=choices.index(current) if current in choices else 0,
            format_func=lambda i: "— 선택 —" if i is None else rights[i],
            key=f"answer_{question.id}_{left_idx}",
        )
        if value is not None:
            selected[left_idx] = value
    return selected


def _render_ordering(question: Question, saved: Any) -> dict[int, int]:
    saved = saved or {}
    positions = [None] + list(range(1, question.option_count + 1))
    selected: dict[int, int] = {}
    for item_idx, item in enumerate(question.options):
        current = saved.get(item_idx)
        value = st.selectbox(
            item,
            options=positions,
            index=positions.index(current) if current in positions else 0,
            format_func=lambda p: "— 순서 —" if p is None else f"{p}번째",
            key=f"answer_{question.id}_{item_idx}",
        )
        if value is not None:
            selected[item_idx] = value
    return selected


def render(
    question: Question,
    question_number: int,
    total: int,
    saved_answer: Any = None,
) -> Any:
    """
    문제 카드를 렌더링하고 사용자의 현재 입력을 반환한다.

    Args:
        question:        렌더링할 Question 객체 (정답 미포함)
        question_number: 전체 문제 중 몇 번째 문제인지 (1-based 표시용)
        total:           전체 문제 수
        saved_answer:    컨트롤러에 저장된 현재 답안 (없으면 None)

    Returns:
        유형별 원시 답안 값. 아무것도 입력하지 않은 경우 None 또는 빈 값.
    """

    # ── 문제 헤더 ──────────────────────────────────────────────────────────
    st.markdown(
        f"""
        <div style="display:flex; align-items:center; gap:10px; margin-bottom:12px;">
            <span class="question-number-badge">문제 {question_number} / {total}</span>
            <span style="font-size:0.8rem; color:#9ca3af;">{_TYPE_LABELS[question.type]}</span>
            <span style="font-size:0.75rem; color:#c0ccd8; margin-left:auto;">
                {question.points}점
            </span>
        </div>
        """,
        unsafe_allow_html=True,
    )

    # ── 문제 본문 ──────────────────────────────────────────────────────────
    st.markdown(
        f"""
        <div class="question-card">
            <p style="font-size:1.05rem; font-weight:600; color:#1a1a2e;
                      line-height:1.7; margin:0;">
                {question.prompt}
            </p>
        </div>
        """,
        unsafe_allow_html=True,
    )

    # ── 유형별 입력 위젯 ───────────────────────────────────────────────────
    qtype = question.type
    if qtype in (QuestionType.SINGLE_CHOICE, QuestionType.TRUE_FALSE):
        return _render_choice(question, saved_answer)
    if qtype is QuestionType.MULTI_CHOICE:
        return _render_multi(question, saved_answer)
    if qtype is QuestionType.FILL_BLANK:
        return st.text_input(
            "답을 입력하세요",
            value=saved_answer or "",
            key=f"answer_{question.id}",
        )
    if qtype is QuestionType.ESSAY:
        return st.text_area(
            "답안을 작성하세요",
            value=saved_answer or "",
            height=200,
            key=f"answer_{question.id}",
        )
    if qtype is QuestionType.MATCHING:
        return _render_matching(question, saved_answer)
    return _render_ordering(question, saved_answer)
