import os

# 기본 디렉토리 설정
BASE_DIR = os.path.dirname(os.path.abspath(__file__))

# 경로 설정
LOG_FILE = os.path.join(BASE_DIR, "launch.log")
DRAFT_DIR = os.getenv("QUIZ_DRAFT_DIR", os.path.join(BASE_DIR, ".drafts"))


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


# 자동 저장 (trailing debounce)
AUTOSAVE_DEBOUNCE_SECONDS = float(os.getenv("QUIZ_AUTOSAVE_DEBOUNCE_SECONDS", "3.0"))
SAVE_ERROR_THRESHOLD = int(os.getenv("QUIZ_SAVE_ERROR_THRESHOLD", "3"))  # 연속 실패 N회 후 UI 경고

# 최종 제출 재시도
SUBMIT_MAX_RETRIES = int(os.getenv("QUIZ_SUBMIT_MAX_RETRIES", "3"))
SUBMIT_BACKOFF_BASE = float(os.getenv("QUIZ_SUBMIT_BACKOFF_BASE", "1.0"))
SUBMIT_TIMEOUT_SECONDS = float(os.getenv("QUIZ_SUBMIT_TIMEOUT_SECONDS", "30"))  # 요청당 타임아웃

# 채점 설정
FILL_BLANK_CASE_SENSITIVE = _env_bool("QUIZ_FILL_BLANK_CASE_SENSITIVE", False)
DEFAULT_PASSING_SCORE = float(os.getenv("QUIZ_PASSING_SCORE", "70"))

# 타이머 경고 기준 (남은 시간 비율)
TIMER_WARNING_RATIO = 0.25
TIMER_CRITICAL_RATIO = 0.10
