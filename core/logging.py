"""
로깅 설정

Web 서버와 마이그레이션 스크립트가 프로세스 시작 시 한 번 호출.
- 콘솔: stdout
- 파일: logs/<process>/<process>.log (자정마다 롤링, 7일 보관)

사용법:
    from core.logging import setup_logging
    setup_logging("web")
    setup_logging("migration")

원장 컴포넌트는 logging.getLogger(__name__) 또는 주입받은 logger 를 사용.
"""

import logging
import sys
from logging.handlers import TimedRotatingFileHandler
from pathlib import Path

from core.constants import Defaults, Paths

LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
LOG_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"
LOG_FILE_BACKUP_COUNT = 7

# WARNING 이상만 남길 로거
NOISY_LOGGERS = [
    "aiosqlite",      # 쿼리마다 executing/completed
    "httpcore",
    "httpx",
    "asyncio",
    "uvicorn.access", # 요청별 access 로그
]

_PROCESS_LOG_DIRS = {
    "web": Paths.WEB_LOGS_DIR,
    "migration": Paths.MIGRATION_LOGS_DIR,
}


def get_log_dir(process_name: str) -> Path:
    """프로세스별 로그 디렉토리 (알 수 없는 이름은 logs/ 바로 아래)"""
    return _PROCESS_LOG_DIRS.get(process_name, Paths.LOGS_DIR)


def setup_logging(
    process_name: str,
    console_level: int | str = Defaults.LOG_LEVEL,
    file_level: int | str = Defaults.LOG_LEVEL,
    log_dir: Path | None = None,
) -> logging.Logger:
    """루트 로거에 콘솔/파일 핸들러 설정

    기존 핸들러는 제거하므로 여러 번 호출해도 중복 출력되지 않는다.

    Args:
        process_name: "web" 또는 "migration"
        console_level: 콘솔 레벨 (이름 또는 숫자)
        file_level: 파일 레벨 (이름 또는 숫자)
        log_dir: 로그 디렉토리 (None이면 프로세스별 기본 경로)

    Returns:
        루트 Logger
    """
    log_dir = log_dir or get_log_dir(process_name)
    log_dir.mkdir(parents=True, exist_ok=True)
    log_file = log_dir / f"{process_name}.log"

    root_logger = logging.getLogger()
    root_logger.setLevel(logging.DEBUG)
    root_logger.handlers.clear()

    formatter = logging.Formatter(LOG_FORMAT, datefmt=LOG_DATE_FORMAT)

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(console_level)
    console_handler.setFormatter(formatter)
    root_logger.addHandler(console_handler)

    file_handler = TimedRotatingFileHandler(
        filename=log_file,
        when="midnight",
        interval=1,
        backupCount=LOG_FILE_BACKUP_COUNT,
        encoding="utf-8",
    )
    file_handler.suffix = "%Y-%m-%d"  # web.log.2026-01-02
    file_handler.setLevel(file_level)
    file_handler.setFormatter(formatter)
    root_logger.addHandler(file_handler)

    for logger_name in NOISY_LOGGERS:
        logging.getLogger(logger_name).setLevel(logging.WARNING)

    root_logger.info(f"로깅 초기화 완료: {process_name} ({log_file})")
    return root_logger
