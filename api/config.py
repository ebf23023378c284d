import os
import sys

# 기본 디렉토리 설정
IF_FROZEN = getattr(sys, "frozen", False)
BASE_DIR = sys._MEIPASS if IF_FROZEN else os.path.dirname(os.path.dirname(os.path.abspath(__file__)))

# 경로 설정
STREAMLIT_ENTRY = os.path.join(BASE_DIR, "streamlit_app.py")

# 서버 설정
DEFAULT_HOST = "127.0.0.1"
DEFAULT_TIMEOUT = 15.0  # 서버 기동 대기 시간 (초)

# 세션 설정
SESSION_COOKIE = "quiz_session"
SESSION_TTL = int(os.getenv("QUIZ_SESSION_TTL", "3600"))  # 1시간
CLEANUP_INTERVAL = 300  # 만료 세션 정리 주기 (초)

# 저장소 API 주소 (비어 있으면 Streamlit이 인프로세스 저장소를 사용)
API_URL = os.getenv("QUIZ_API_URL", "")
