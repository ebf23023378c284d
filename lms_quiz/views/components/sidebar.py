"""
views/components/sidebar.py

문제 번호 네비게이션 그리드 컴포넌트.
각 번호를 클릭하면 해당 문제로 바로 이동한다.
"""

from __future__ import annotations

import streamlit as st

from lms_quiz.controllers.quiz_session import QuizSessionController


def _label(number: int, is_current: bool, is_answered: bool, is_flagged: bool) -> str:
    mark = "🚩" if is_flagged else ("✔" if is_answered else "")
    text = f"{number}{mark}"
    return f"[{text}]" if is_current else text


def render(controller: QuizSessionController) -> None:
    """
    사이드바에 진행 현황과 문제 번호 버튼 그리드를 렌더링한다.

    표시:
      - 현재 문제: [번호]
      - 답한 문제: 번호✔
      - 표시한 문제: 번호🚩
    """
    questions = controller.questions
    total = len(questions)
    attempt = controller.attempt
    current_idx = controller.current_index

    # ── 진행 현황 ──────────────────────────────────────────────────────────
    st.markdown(
        f"""
        <div style="display:flex; justify-content:space-between;
                    font-size:0.8rem; color:#6b7280; margin-bottom:4px;">
            <span>진행률 {controller.progress_display}%</span>
            <span><b>{controller.answered_count}</b> / {total}</span>
        </div>
        """,
        unsafe_allow_html=True,
    )
    st.progress(controller.progress_percentage / 100)

    # ── 문제 번호 그리드 (5열) ─────────────────────────────────────────────
    cols_per_row = 5
    flagged = attempt.flagged_questions if attempt else set()

    for row_start in range(0, total, cols_per_row):
        row_qs = questions[row_start : row_start + cols_per_row]
        cols = st.columns(cols_per_row)
        for col_idx, q in enumerate(row_qs):
            q_idx = row_start + col_idx
            label = _label(
                q_idx + 1,
                is_current=q_idx == current_idx,
                is_answered=controller.is_answered(q.id),
                is_flagged=q.id in flagged,
            )
            with cols[col_idx]:
                if st.button(label, key=f"nav_{q_idx}", help=f"문제 {q_idx + 1}번으로 이동"):
                    controller.navigate(q_idx)
                    st.rerun()

    # ── 저장 상태 ──────────────────────────────────────────────────────────
    sync = controller.sync_state
    if sync.last_error:
        st.error(f"⚠️ {sync.last_error}")
    elif sync.is_saving:
        st.caption("저장 중...")
    elif sync.has_unsaved_changes:
        st.caption("저장되지 않은 변경 사항 있음")
    elif sync.last_saved_at:
        st.caption(f"마지막 저장: {sync.last_saved_at.astimezone().strftime('%H:%M:%S')}")
