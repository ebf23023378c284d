"""
api/session.py — 쿠키 기반 응시자 세션 (인메모리)

브라우저마다 세션 ID를 발급하고 세션에 응시자 ID(user_id)를 묶어 둔다.
저장소는 이 user_id로 임시 저장본/응시 기록의 소유자를 구분한다.
마지막 접근 후 SESSION_TTL이 지나면 만료된다.
"""

import threading
import time
import uuid
from dataclasses import dataclass, field
from typing import Optional

from api.config import SESSION_TTL


@dataclass
class Session:
    user_id: str = field(default_factory=lambda: f"user-{uuid.uuid4().hex[:12]}")
    touched_at: float = field(default_factory=time.time)

    def is_expired(self, now: float) -> bool:
        return now - self.touched_at > SESSION_TTL


_lock = threading.Lock()
_sessions: dict[str, Session] = {}


def create_session() -> str:
    """새 응시자 세션을 만들고 세션 ID를 반환."""
    sid = uuid.uuid4().hex
    with _lock:
        _sessions[sid] = Session()
    return sid


def get_session(sid: str) -> Optional[Session]:
    """유효한 세션이면 접근 시각을 갱신해 반환. 만료되었거나 없으면 None."""
    now = time.time()
    with _lock:
        session = _sessions.get(sid)
        if session is None:
            return None
        if session.is_expired(now):
            del _sessions[sid]
            return None
        session.touched_at = now
        return session


def user_id(sid: str) -> Optional[str]:
    session = get_session(sid)
    return session.user_id if session else None


def cleanup_expired() -> int:
    """만료된 세션을 정리하고 제거한 수를 반환."""
    now = time.time()
    with _lock:
        expired = [sid for sid, s in _sessions.items() if s.is_expired(now)]
        for sid in expired:
            del _sessions[sid]
    return len(expired)
