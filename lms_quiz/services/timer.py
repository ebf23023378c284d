"""
services/timer.py

응시 제한 시간 카운트다운.
tick()으로 경과 시간을 전달받아 남은 시간을 줄이고,
0에 처음 도달하는 tick에서만 만료를 알린다 (정확히 한 번).
"""

from __future__ import annotations

import logging
from enum import Enum

from config import TIMER_CRITICAL_RATIO, TIMER_WARNING_RATIO

logger = logging.getLogger(__name__)


class TimerLevel(str, Enum):
    NORMAL = "normal"
    WARNING = "warning"    # 남은 시간 25% 이하
    CRITICAL = "critical"  # 남은 시간 10% 이하


class QuizTimer:
    def __init__(
        self,
        limit_seconds: int,
        warning_ratio: float = TIMER_WARNING_RATIO,
        critical_ratio: float = TIMER_CRITICAL_RATIO,
    ) -> None:
        if limit_seconds <= 0:
            raise ValueError("제한 시간은 0보다 커야 합니다.")
        self._limit = limit_seconds
        self._remaining = float(limit_seconds)
        self._warning_ratio = warning_ratio
        self._critical_ratio = critical_ratio
        self._expired = False

    @property
    def limit_seconds(self) -> int:
        return self._limit

    @property
    def remaining_seconds(self) -> int:
        return int(self._remaining)

    @property
    def elapsed_seconds(self) -> int:
        return int(self._limit - self._remaining)

    @property
    def is_expired(self) -> bool:
        return self._expired

    def restore(self, remaining_seconds: float) -> None:
        """이어서 풀기: 저장된 남은 시간으로 되돌린다. 제한 시간을 넘지 않는다."""
        if self._expired:
            return
        self._remaining = min(float(self._limit), max(0.0, remaining_seconds))

    def tick(self, elapsed_seconds: float = 1) -> bool:
        """
        경과 시간만큼 남은 시간을 줄인다.

        Returns:
            이번 tick에서 만료된 경우에만 True. 이미 만료된 뒤의 tick은 무시하고 False.
        """
        if self._expired:
            return False
        if elapsed_seconds < 0:
            raise ValueError("경과 시간은 음수일 수 없습니다.")

        self._remaining = max(0.0, self._remaining - elapsed_seconds)
        if self._remaining > 0:
            return False

        self._expired = True
        logger.info("제한 시간 종료")
        return True

    def level(self) -> TimerLevel:
        ratio = self._remaining / self._limit
        if ratio <= self._critical_ratio:
            return TimerLevel.CRITICAL
        if ratio <= self._warning_ratio:
            return TimerLevel.WARNING
        return TimerLevel.NORMAL


def format_time(seconds: int) -> str:
    """H:MM:SS (1시간 이상) 또는 M:SS 형식."""
    seconds = max(0, int(seconds))
    hours, rest = divmod(seconds, 3600)
    minutes, secs = divmod(rest, 60)
    if hours > 0:
        return f"{hours}:{minutes:02d}:{secs:02d}"
    return f"{minutes}:{secs:02d}"
