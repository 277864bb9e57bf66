"""
하드코딩 상수 - 변경될 일이 거의 없는 고정값

중요: 경로는 반드시 pathlib.Path 사용 (Windows/Linux 크로스 플랫폼)
"""

from decimal import Decimal
from pathlib import Path


# 프로젝트 루트 (이 파일 기준 2단계 상위: core/constants.py → fundledger/)
PROJECT_ROOT: Path = Path(__file__).resolve().parent.parent

APP_VERSION: str = "1.0.0"


class Defaults:
    """기본값 상수"""

    WEB_HOST: str = "127.0.0.1"
    WEB_PORT: int = 8000

    LOG_LEVEL: str = "INFO"

    # 목록 조회 페이지 크기
    PAGE_SIZE: int = 20
    MAX_PAGE_SIZE: int = 100

    # 자금 출처 후보 최대 반환 개수
    FUNDING_SOURCE_LIMIT: int = 50

    # 마이그레이션 배치/검증 샘플 크기
    MIGRATION_BATCH_SIZE: int = 100
    MIGRATION_SAMPLE_SIZE: int = 20


class LedgerPolicy:
    """원장 금액 정책"""

    # 통화 소수 자릿수 (최소 단위 = 0.01)
    MINOR_UNIT_EXPONENT: int = 2

    # 차변/대변 균형 허용 오차 (설정으로 덮어쓰기 가능)
    BALANCE_TOLERANCE: Decimal = Decimal("0.01")

    # 거래 그룹 번호 접두사 (TXN-YYYYMMDD-NNN)
    GROUP_NUMBER_PREFIX: str = "TXN"


class Paths:
    """프로젝트 경로 상수 (pathlib 사용 - OS 독립적)"""

    # 디렉토리
    CONFIG_DIR: Path = PROJECT_ROOT / "config"
    DATA_DIR: Path = PROJECT_ROOT / "data"
    LOGS_DIR: Path = PROJECT_ROOT / "logs"
    WEB_LOGS_DIR: Path = LOGS_DIR / "web"
    MIGRATION_LOGS_DIR: Path = LOGS_DIR / "migration"

    # 설정 파일
    SETTINGS_FILE: Path = CONFIG_DIR / "settings.yaml"

    # DB 파일
    DEFAULT_DB: Path = DATA_DIR / "fundledger.db"
