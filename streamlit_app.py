"""
streamlit_app.py — Streamlit 응시 화면 진입점

QUIZ_API_URL이 설정되어 있으면 FastAPI 저장소를 HTTP로 사용하고,
없으면 같은 프로세스의 인메모리 저장소를 사용한다.
어느 쪽이든 임시 저장은 로컬 파일 캐시를 먼저 거친다.
"""

import logging
import uuid

import streamlit as st

from api.app import create_store
from api.config import API_URL
from lms_quiz.services.quiz_store import QuizStore
from lms_quiz.services.sync_channel import (
    HttpSyncChannel,
    LocalDraftChannel,
    StoreSyncChannel,
    SyncChannel,
)
from lms_quiz.views import exam_view, home_view, result_view

logging.basicConfig(level=logging.INFO, format="%(asctime)s [%(levelname)s] %(name)s: %(message)s")

_CSS = """
<style>
.cbt-title { text-align:center; font-size:1.8rem; font-weight:800; color:#1a1a2e; }
.timer-display { font-size:1.4rem; font-weight:700; color:#1a1a2e; text-align:center; }
.timer-warning { color:#d97706; }
.timer-critical { color:#dc2626; }
.question-number-badge { background:#1a1a2e; color:white; border-radius:12px;
                         padding:2px 12px; font-size:0.8rem; }
.question-card { background:#ffffff; border:1px solid #e5eaf2; border-radius:12px;
                 padding:20px 24px; margin-bottom:16px; }
.score-big { text-align:center; font-size:3.5rem; font-weight:800; margin:0; }
.pass-badge { padding:4px 16px; border-radius:16px; font-weight:700; }
.pass-badge.pass { background:#d1fae5; color:#065f46; }
.pass-badge.fail { background:#fee2e2; color:#991b1b; }
.cbt-divider { border:none; border-top:1px solid #e5eaf2; margin:16px 0; }
</style>
"""


@st.cache_resource
def _shared_store() -> QuizStore:
    return create_store()


def _make_channel() -> SyncChannel:
    if API_URL:
        inner: SyncChannel = HttpSyncChannel(API_URL)
    else:
        inner = StoreSyncChannel(_shared_store(), st.session_state.user_id)
    return LocalDraftChannel(inner)


def _init_state() -> None:
    defaults = {
        "page": "home",
        "user_id": f"user-{uuid.uuid4().hex[:12]}",
        "controller": None,
    }
    for key, value in defaults.items():
        if key not in st.session_state:
            st.session_state[key] = value
    if "channel" not in st.session_state:
        st.session_state.channel = _make_channel()
    st.session_state.resume_attempt_id = st.query_params.get("attempt")


st.set_page_config(page_title="Quiz", page_icon="📝", layout="wide")
st.markdown(_CSS, unsafe_allow_html=True)
_init_state()

page = st.session_state.page
if page == "exam":
    exam_view.render()
elif page == "result":
    result_view.render()
else:
    home_view.render(st.session_state.channel)
