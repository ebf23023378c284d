"""
services/debounce.py

trailing debounce — 마지막 호출 이후 delay 초 동안 조용하면 콜백을 한 번 실행한다.
schedule()이 다시 호출될 때마다 대기 시간이 처음부터 다시 시작된다.
"""

from __future__ import annotations

import threading
from typing import Callable, Optional


class Debouncer:
    def __init__(self, delay: float, callback: Callable[[], None]) -> None:
        self._delay = delay
        self._callback = callback
        self._lock = threading.Lock()
        self._timer: Optional[threading.Timer] = None

    @property
    def pending(self) -> bool:
        with self._lock:
            return self._timer is not None

    def schedule(self) -> None:
        with self._lock:
            if self._timer is not None:
                self._timer.cancel()
            timer = threading.Timer(self._delay, self._fire)
            timer.daemon = True
            self._timer = timer
            timer.start()

    def cancel(self) -> bool:
        """대기 중인 실행을 취소한다. 취소한 것이 있으면 True."""
        with self._lock:
            timer, self._timer = self._timer, None
        if timer is None:
            return False
        timer.cancel()
        return True

    def flush(self) -> bool:
        """대기 중인 실행이 있으면 취소하고 즉시 (호출 스레드에서) 실행한다."""
        if not self.cancel():
            return False
        self._callback()
        return True

    def _fire(self) -> None:
        with self._lock:
            if self._timer is not threading.current_thread():
                # schedule()/cancel()로 대체된 타이머
                return
            self._timer = None
        self._callback()
