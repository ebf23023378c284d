"""
views/components/timer.py

남은 응시 시간을 렌더링하는 컴포넌트.
남은 시간 25% 이하: 경고(주황), 10% 이하: 위험(빨강).
타이머는 사용자 상호작용 시(버튼 클릭 등) 갱신된다.
"""

from __future__ import annotations

import streamlit as st

from lms_quiz.controllers.quiz_session import QuizSessionController
from lms_quiz.services.timer import TimerLevel, format_time

_LEVEL_CLASS = {
    TimerLevel.NORMAL: "timer-display",
    TimerLevel.WARNING: "timer-display timer-warning",
    TimerLevel.CRITICAL: "timer-display timer-critical",
}


def render(controller: QuizSessionController) -> bool:
    """
    남은 시간 표시.

    Returns:
        True  — 시간이 남아 있음 (또는 시간 제한 없음)
        False — 시간 초과
    """
    remaining = controller.remaining_seconds
    if remaining is None:
        st.markdown('<div class="timer-display">⏱ 시간 제한 없음</div>', unsafe_allow_html=True)
        return True

    level = controller.timer_level or TimerLevel.NORMAL
    icon = "⚠️ " if level is not TimerLevel.NORMAL else "⏱ "
    st.markdown(
        f'<div class="{_LEVEL_CLASS[level]}">{icon}{format_time(remaining)}</div>',
        unsafe_allow_html=True,
    )

    if remaining == 0:
        st.warning("⏰ 응시 시간이 종료되었습니다.")
        return False
    return True
