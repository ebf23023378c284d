"""
api/app.py — FastAPI 앱 인스턴스 + 세션 미들웨어 + 저장소 초기화
"""

import logging
import threading
import time
from typing import Optional

from fastapi import FastAPI, Request, Response
from fastapi.middleware.cors import CORSMiddleware

from api.config import CLEANUP_INTERVAL, SESSION_COOKIE
from api.routes import router
from api.sample_quizzes import SAMPLE_QUIZZES
import api.session as session
from lms_quiz.services.quiz_store import QuizStore

logger = logging.getLogger(__name__)


def create_store() -> QuizStore:
    """샘플 퀴즈가 적재된 저장소."""
    store = QuizStore()
    for quiz in SAMPLE_QUIZZES:
        store.add_quiz(quiz)
    return store


def create_app(store: Optional[QuizStore] = None, cleanup: bool = True) -> FastAPI:
    app = FastAPI(title="Quiz Session Store", docs_url=None, redoc_url=None)
    app.state.store = store if store is not None else create_store()

    # CORS (Streamlit 등 다른 출처의 클라이언트 허용)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # 세션 미들웨어: 쿠키에서 세션 ID를 읽고, 없으면 새로 발급
    @app.middleware("http")
    async def session_middleware(request: Request, call_next):
        sid = request.cookies.get(SESSION_COOKIE)
        if not sid or session.get_session(sid) is None:
            sid = session.create_session()

        request.state.session_id = sid
        response: Response = await call_next(request)
        response.set_cookie(
            key=SESSION_COOKIE,
            value=sid,
            httponly=True,
            samesite="lax",
            max_age=session.SESSION_TTL,
        )
        return response

    app.include_router(router)

    @app.get("/")
    async def serve_index():
        return {"service": "quiz-session-store", "quizzes": len(app.state.store.list_quizzes())}

    # 만료 세션 주기적 정리 (5분마다)
    def _cleanup_loop():
        while True:
            time.sleep(CLEANUP_INTERVAL)
            removed = session.cleanup_expired()
            if removed:
                logger.info(f"만료 세션 {removed}개 정리")

    if cleanup:
        t = threading.Thread(target=_cleanup_loop, daemon=True)
        t.start()

    return app
