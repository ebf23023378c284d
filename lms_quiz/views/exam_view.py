"""
views/exam_view.py — 퀴즈 응시 화면

레이아웃:
  - st.sidebar : 타이머 + 문제 번호 네비게이터 + 저장 상태 + 최종 제출
  - 메인 영역  : 현재 문제 카드 + 표시(flag) + 이전/다음

상태 관리:
  - st.session_state.controller (QuizSessionController): 단일 상태 원천
  - 위젯은 값을 읽어 controller.set_answer()로 전달할 뿐, 답안을 직접 보관하지 않는다
"""

from __future__ import annotations

import time
from typing import Any

import streamlit as st

from lms_quiz.controllers.quiz_session import QuizSessionController
from lms_quiz.models.errors import AlreadySubmittingError, InvalidAnswerShapeError, SubmitError
from lms_quiz.models.session_state import AttemptStatus
from lms_quiz.views.components import question_card as qcard
from lms_quiz.views.components import sidebar as nav
from lms_quiz.views.components import timer as tmr


def _normalize(value: Any) -> Any:
    """위젯 값과 저장된 값을 비교하기 위한 정규화. 빈 값은 None."""
    if value is None or value == "" or value == [] or value == {}:
        return None
    if isinstance(value, (list, set, frozenset)):
        return frozenset(value)
    return value


def _sync_widget_answer(controller: QuizSessionController, question_id: str, raw: Any) -> None:
    saved = controller.get_answer(question_id)
    if _normalize(raw) == _normalize(saved):
        return
    try:
        controller.set_answer(question_id, raw if _normalize(raw) is not None else None)
    except InvalidAnswerShapeError as e:
        st.error(f"답안 형식 오류: {e.reason}")


def _advance_clock(controller: QuizSessionController) -> None:
    """마지막 렌더 이후 경과 시간을 컨트롤러 타이머에 전달."""
    now = time.monotonic()
    last = st.session_state.get("last_tick", now)
    st.session_state.last_tick = now
    if now > last:
        controller.tick(now - last)


def _submit(controller: QuizSessionController) -> None:
    try:
        controller.submit()
    except AlreadySubmittingError:
        st.info("제출이 진행 중입니다...")
        return
    except SubmitError as e:
        st.session_state.submit_error = str(e)
        st.rerun()
        return
    st.session_state.submit_error = None
    st.session_state.page = "result"
    st.rerun()


def render() -> None:
    """응시 화면 렌더링."""

    # ── 세션 가드 ──────────────────────────────────────────────────────────
    controller: QuizSessionController | None = st.session_state.get("controller")
    if controller is None or not controller.is_started:
        st.warning("응시 정보가 없습니다. 홈 화면으로 돌아가세요.")
        if st.button("홈으로", type="primary"):
            st.session_state.page = "home"
            st.rerun()
        return

    _advance_clock(controller)
    st.query_params["attempt"] = controller.attempt_id

    if controller.status is AttemptStatus.SUBMITTED:
        st.session_state.page = "result"
        st.rerun()

    questions = controller.questions
    total = len(questions)
    current_idx = controller.current_index
    current_q = questions[current_idx]
    expired = controller.status is AttemptStatus.EXPIRED

    # ── 사이드바 ───────────────────────────────────────────────────────────
    with st.sidebar:
        st.markdown("### 📋 문제 목록")
        tmr.render(controller)
        st.markdown('<hr class="cbt-divider">', unsafe_allow_html=True)
        nav.render(controller)
        st.markdown('<hr class="cbt-divider">', unsafe_allow_html=True)

        unanswered = total - controller.answered_count
        if unanswered > 0 and not expired:
            st.caption(f"⚠️ 미응답 문제: {unanswered}개")

        if st.button("최종 제출", key="submit_sidebar", type="primary"):
            if unanswered > 0 and not expired:
                st.session_state["confirm_submit"] = True
                st.rerun()
            else:
                _submit(controller)

        # 미응답 상태에서 제출 확인 다이얼로그
        if st.session_state.get("confirm_submit"):
            st.warning(f"미응답 문제 {unanswered}개가 있습니다. 그래도 제출하시겠습니까?")
            col_yes, col_no = st.columns(2)
            with col_yes:
                if st.button("제출", key="confirm_yes", type="primary"):
                    st.session_state["confirm_submit"] = False
                    _submit(controller)
            with col_no:
                if st.button("취소", key="confirm_no"):
                    st.session_state["confirm_submit"] = False
                    st.rerun()

    # ── 제출 실패 / 시간 종료 안내 ─────────────────────────────────────────
    submit_error = st.session_state.get("submit_error")
    if controller.last_submit_error is not None:
        submit_error = str(controller.last_submit_error)
    if expired or submit_error:
        if submit_error:
            st.error(f"제출에 실패했습니다. 답안은 그대로 보존되어 있습니다. ({submit_error})")
        if expired:
            st.warning("⏰ 응시 시간이 종료되어 더 이상 답안을 수정할 수 없습니다.")
        if st.button("다시 제출", key="retry_submit", type="primary"):
            _submit(controller)

    # ── 문제 카드 ─────────────────────────────────────────────────────────
    raw = qcard.render(
        question=current_q,
        question_number=current_idx + 1,
        total=total,
        saved_answer=controller.get_answer(current_q.id),
    )
    if not expired:
        _sync_widget_answer(controller, current_q.id, raw)

    attempt = controller.attempt
    flagged = attempt is not None and current_q.id in attempt.flagged_questions
    if not expired and st.button("🚩 표시 해제" if flagged else "🚩 나중에 다시 보기", key=f"flag_{current_q.id}"):
        controller.toggle_flag(current_q.id)
        st.rerun()

    # ── 이전 / 다음 네비게이션 ────────────────────────────────────────────
    nav_left, nav_center, nav_right = st.columns([1, 2, 1])

    with nav_left:
        if current_idx > 0 and st.button("← 이전 문제", key="prev_btn", use_container_width=True):
            controller.navigate("previous")
            st.rerun()

    with nav_center:
        st.markdown(
            f"<p style='text-align:center; font-size:0.85rem; color:#9ca3af; "
            f"padding-top:8px;'>{current_idx + 1} / {total}</p>",
            unsafe_allow_html=True,
        )

    with nav_right:
        if current_idx < total - 1:
            if st.button("다음 문제 →", key="next_btn", type="primary", use_container_width=True):
                controller.navigate("next")
                st.rerun()
        elif st.button("제출하기 →", key="submit_last", type="primary", use_container_width=True):
            _submit(controller)
