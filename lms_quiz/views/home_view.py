"""
views/home_view.py — 홈 / 시작 화면

기능:
  - 응시 가능한 퀴즈 목록 표시
  - 퀴즈 정보 (문항 수, 제한 시간, 합격 기준) 확인 후 "시작" 버튼으로 응시 시작
  - 로컬에 남은 임시 저장본이 있으면 이어서 풀기
"""

from __future__ import annotations

import logging
import time

import streamlit as st

from lms_quiz.controllers.quiz_session import QuizSessionController
from lms_quiz.models.errors import LoadError
from lms_quiz.services.sync_channel import SyncChannel
from lms_quiz.services.timer import format_time

logger = logging.getLogger(__name__)


def _start_quiz(channel: SyncChannel, quiz: dict, resume_attempt_id: str | None = None) -> None:
    """컨트롤러 생성 후 exam 페이지로 이동."""
    controller = QuizSessionController(
        channel,
        quiz_id=quiz["id"],
        user_id=st.session_state.get("user_id", ""),
    )
    try:
        questions = channel.load_quiz(quiz["id"])
    except LoadError as e:
        st.error(f"퀴즈를 불러오지 못했습니다: {e}")
        return

    controller.start(questions, quiz.get("time_limit_seconds"), attempt_id=resume_attempt_id)
    if resume_attempt_id:
        restored = controller.restore_saved_draft()
        logger.info(f"이어서 풀기: {resume_attempt_id} (답안 {restored}개 복원)")

    st.session_state.controller = controller
    st.session_state.last_tick = time.monotonic()
    st.session_state.submit_error = None
    st.session_state.page = "exam"
    st.rerun()


def render(channel: SyncChannel) -> None:
    """홈 화면 렌더링."""
    _, col, _ = st.columns([1, 2.2, 1])

    with col:
        st.markdown('<p class="cbt-title">Quiz</p>', unsafe_allow_html=True)

        try:
            quizzes = channel.list_quizzes()
        except LoadError as e:
            st.error(f"퀴즈 목록을 불러오지 못했습니다: {e}")
            return

        if not quizzes:
            st.info("응시 가능한 퀴즈가 없습니다.")
            return

        titles = {q["id"]: q["title"] for q in quizzes}
        selected_id = st.selectbox(
            "퀴즈 선택",
            options=list(titles),
            format_func=lambda qid: titles[qid],
            key="quiz_select",
        )
        quiz = next(q for q in quizzes if q["id"] == selected_id)

        # ── 퀴즈 정보 ──────────────────────────────────────────────────────
        if quiz.get("description"):
            st.caption(quiz["description"])
        info_left, info_mid, info_right = st.columns(3)
        info_left.metric("문항 수", quiz["question_count"])
        limit = quiz.get("time_limit_seconds")
        info_mid.metric("제한 시간", format_time(limit) if limit else "없음")
        info_right.metric("합격 기준", f"{quiz['passing_score']:.0f}%")

        if st.button("시작", key="start_btn", type="primary", use_container_width=True):
            _start_quiz(channel, quiz)

        # ── 이어서 풀기 ────────────────────────────────────────────────────
        resume_id = st.session_state.get("resume_attempt_id")
        draft = channel.load_draft(resume_id) if resume_id else None
        if draft is not None and draft.quiz_id in titles:
            label = f"이어서 풀기 — {titles[draft.quiz_id]}"
            if st.button(label, key="resume_btn", use_container_width=True):
                resume_quiz = next(q for q in quizzes if q["id"] == draft.quiz_id)
                _start_quiz(channel, resume_quiz, resume_attempt_id=resume_id)
