"""
views/result_view.py — 응시 결과 화면 (리뷰 모드)

표시 내용:
  - 최종 점수 (획득 / 만점, 백분율)
  - 합격 / 불합격 배지
  - 통계 요약 (정답, 오답, 수동 채점 대상)
  - 문제별 리뷰 (내 답 / 정답 / 해설), 제출 이후에만 정답을 불러온다
  - 홈으로 버튼
"""

from __future__ import annotations

from typing import Any

import streamlit as st

from lms_quiz.controllers.quiz_session import QuizSessionController
from lms_quiz.models.errors import InvalidStateError, LoadError
from lms_quiz.models.session_state import QuizReview, ReviewItem


def _go_home() -> None:
    """홈 화면으로 이동하며 응시 상태 정리."""
    controller: QuizSessionController | None = st.session_state.get("controller")
    if controller is not None:
        controller.close()
    for key in ["controller", "review", "confirm_submit", "submit_error", "last_tick"]:
        if key in st.session_state:
            del st.session_state[key]
    # 답안 위젯 키도 정리
    widget_keys = [k for k in st.session_state if k.startswith(("answer_", "flag_", "nav_"))]
    for k in widget_keys:
        del st.session_state[k]
    st.query_params.clear()
    st.session_state.page = "home"


def _format_answer(item: ReviewItem, value: Any) -> str:
    if value is None or value == "" or value == [] or value == {}:
        return "미응답"
    options = item.options or []
    if item.type in ("single_choice", "true_false"):
        return options[value] if 0 <= value < len(options) else str(value)
    if item.type == "multi_choice":
        return ", ".join(options[i] for i in value if 0 <= i < len(options))
    if item.type == "matching":
        pairs = []
        for left, right in value.items():
            left_idx = int(left)
            if left_idx < len(options) and right < len(options):
                pairs.append(f"{options[left_idx][0]} → {options[right][1]}")
        return " / ".join(pairs)
    if item.type == "ordering":
        ranked = sorted(value.items(), key=lambda kv: kv[1])
        return " → ".join(options[int(k)] for k, _ in ranked if int(k) < len(options))
    return str(value)


def _load_review(controller: QuizSessionController) -> QuizReview | None:
    review = st.session_state.get("review")
    if review is not None:
        return review
    try:
        review = controller.load_review()
    except (InvalidStateError, LoadError) as e:
        st.error(f"리뷰를 불러오지 못했습니다: {e}")
        return None
    st.session_state.review = review
    return review


def render() -> None:
    """결과 화면 렌더링."""

    # ── 세션 가드 ──────────────────────────────────────────────────────────
    controller: QuizSessionController | None = st.session_state.get("controller")
    summary = controller.summary if controller is not None else None

    if summary is None:
        st.warning("결과 정보가 없습니다.")
        if st.button("홈으로", type="primary"):
            _go_home()
            st.rerun()
        return

    results = summary.results
    correct_count = sum(1 for r in results if r.is_correct)
    manual_count = sum(1 for r in results if r.is_correct is None)
    incorrect_count = len(results) - correct_count - manual_count

    # ── 중앙 3열 레이아웃 ──────────────────────────────────────────────────
    _, col, _ = st.columns([0.8, 2.5, 0.8])

    with col:
        score_color = "#10b981" if summary.passed else "#ef4444"
        st.markdown(
            f'<p class="score-big" style="color:{score_color};">{summary.percentage:.1f}%</p>',
            unsafe_allow_html=True,
        )
        st.markdown(
            f"<p style='text-align:center; font-size:0.9rem; color:#9ca3af;'>"
            f"{summary.earned_points} / {summary.possible_points}점 · {summary.attempt_number}회차</p>",
            unsafe_allow_html=True,
        )

        badge_class = "pass" if summary.passed else "fail"
        badge_text = "합격" if summary.passed else "불합격"
        st.markdown(
            f"<div style='text-align:center; margin-bottom:24px;'>"
            f"<span class='pass-badge {badge_class}'>{badge_text}</span></div>",
            unsafe_allow_html=True,
        )

        s1, s2, s3 = st.columns(3)
        _stat_card(s1, "정답", str(correct_count), "#10b981")
        _stat_card(s2, "오답", str(incorrect_count), "#ef4444")
        _stat_card(s3, "수동 채점", str(manual_count), "#f59e0b")

        st.button("홈으로", key="home_btn", type="primary", use_container_width=True, on_click=_go_home)

    # ── 문제별 리뷰 ────────────────────────────────────────────────────────
    review = _load_review(controller)
    if review is None:
        return

    st.markdown("### 문제별 리뷰")
    for number, item in enumerate(review.items, start=1):
        if item.is_correct is None:
            mark = "📝"
        else:
            mark = "O" if item.is_correct else "X"
        with st.expander(f"{mark} 문제 {number} | {item.prompt}", expanded=item.is_correct is False):
            st.markdown(f"**내 답**: {_format_answer(item, item.user_answer)}")
            if item.type != "essay":
                st.markdown(f"**정답**: {_format_answer(item, item.correct_answer)}")
            else:
                st.caption("서술형 문제는 수동 채점 대상입니다.")
            if item.explanation:
                st.info(f"해설: {item.explanation}")


def _stat_card(col, label: str, value: str, color: str) -> None:
    """통계 수치를 카드 형태로 렌더링하는 헬퍼."""
    with col:
        st.markdown(
            f"""
            <div style="text-align:center; background:#f7fafd; border-radius:12px;
                        padding:16px 8px; border-top:3px solid {color};">
                <p style="font-size:1.8rem; font-weight:800; color:{color};
                           margin:0 0 4px 0;">{value}</p>
                <p style="font-size:0.78rem; color:#9ca3af; margin:0;">{label}</p>
            </div>
            """,
            unsafe_allow_html=True,
        )
