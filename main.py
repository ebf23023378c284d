"""
main.py — 퀴즈 앱 진입점

저장소 API(uvicorn)를 백그라운드 스레드로 띄운 뒤 Streamlit 응시 화면을 실행한다.
"""

import os
import socket
import subprocess
import sys
import time
import threading
import logging
import traceback

# ── 패키지 경로 설정 (반드시 최상단) ──────────────────────────────────────────
_BASE_DIR = os.path.dirname(os.path.abspath(__file__))
if _BASE_DIR not in sys.path:
    sys.path.insert(0, _BASE_DIR)

from config import BASE_DIR, LOG_FILE
from api.config import DEFAULT_HOST, DEFAULT_TIMEOUT, STREAMLIT_ENTRY

# ── 로깅 설정 ────────────────────────────────────────────────────────────────
try:
    logging.basicConfig(
        level=logging.INFO,
        format='%(asctime)s [%(levelname)s] %(name)s: %(message)s',
        handlers=[
            logging.FileHandler(LOG_FILE, encoding='utf-8'),
            logging.StreamHandler(sys.stdout)
        ]
    )
except PermissionError:
    # 로그 파일 점유 시 콘솔 출력만 사용
    logging.basicConfig(level=logging.INFO)

logger = logging.getLogger(__name__)

# ── 서버 및 네트워크 유틸 ───────────────────────────────────────────────────

def _find_free_port() -> int:
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
        s.bind((DEFAULT_HOST, 0))
        return s.getsockname()[1]

def _wait_for_server(port: int, timeout: float = DEFAULT_TIMEOUT) -> bool:
    deadline = time.time() + timeout
    while time.time() < deadline:
        try:
            with socket.create_connection((DEFAULT_HOST, port), timeout=0.5):
                return True
        except OSError:
            time.sleep(0.1)
    return False

def _start_server(port: int) -> None:
    try:
        import uvicorn
        from api.app import create_app
        logger.info(f"Uvicorn 서버 시작 - Port: {port}")
        app = create_app()
        uvicorn.run(app, host=DEFAULT_HOST, port=port, log_level="error")
    except Exception:
        logger.error(f"서버 오류 발생:\n{traceback.format_exc()}")

def _run_streamlit(api_url: str, ui_port: int) -> int:
    env = dict(os.environ, QUIZ_API_URL=api_url)
    cmd = [
        sys.executable, "-m", "streamlit", "run", STREAMLIT_ENTRY,
        "--server.port", str(ui_port),
        "--server.address", DEFAULT_HOST,
    ]
    logger.info(f"Streamlit 실행: {' '.join(cmd)}")
    return subprocess.call(cmd, env=env)

# ── 메인 실행 ────────────────────────────────────────────────────────────────

if __name__ == "__main__":
    logger.info("=== Quiz Application Started ===")
    os.chdir(BASE_DIR)

    port = _find_free_port()
    server_thread = threading.Thread(target=_start_server, args=(port,), daemon=True)
    server_thread.start()

    if not _wait_for_server(port):
        logger.error("서버 시작 제한 시간을 초과했습니다. 작업 관리자에서 기존 프로세스를 종료해 보세요.")
        sys.exit(1)

    logger.info("저장소 API 준비 완료. 응시 화면을 엽니다.")
    try:
        sys.exit(_run_streamlit(f"http://{DEFAULT_HOST}:{port}", _find_free_port()))
    except KeyboardInterrupt:
        logger.info("사용자에 의해 종료되었습니다.")
