"""
설정 로더

settings.yaml 로드 및 원장 설정 생성
"""

import logging
from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Any

import yaml

from core.constants import Defaults, LedgerPolicy, Paths

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class LedgerSettings:
    """원장 정책 설정

    balance_tolerance는 차변/대변 차이 허용 한도.
    0.01은 부동소수점 오차 흡수용 값으로, 정수 최소 단위 연산에서는
    "차이가 0"과 같은 의미가 된다.
    """

    balance_tolerance: Decimal = LedgerPolicy.BALANCE_TOLERANCE
    default_page_size: int = Defaults.PAGE_SIZE
    max_page_size: int = Defaults.MAX_PAGE_SIZE


@dataclass(frozen=True)
class MigrationSettings:
    """스키마 마이그레이션 설정"""

    batch_size: int = Defaults.MIGRATION_BATCH_SIZE
    sample_size: int = Defaults.MIGRATION_SAMPLE_SIZE


@dataclass(frozen=True)
class WebSettings:
    """Web 서버 설정"""

    host: str = Defaults.WEB_HOST
    port: int = Defaults.WEB_PORT


@dataclass(frozen=True)
class AppSettings:
    """애플리케이션 설정 (settings.yaml에서 로드)

    불변 데이터 구조로 설정 변경 방지
    """

    db_path: Path = Paths.DEFAULT_DB
    ledger: LedgerSettings = field(default_factory=LedgerSettings)
    migration: MigrationSettings = field(default_factory=MigrationSettings)
    web: WebSettings = field(default_factory=WebSettings)


class SettingsLoadError(Exception):
    """Settings 로드 실패 예외"""

    pass


def _positive_int(section: dict[str, Any], key: str, default: int, section_name: str) -> int:
    """양의 정수 설정값 읽기"""
    value = section.get(key, default)
    if not isinstance(value, int) or isinstance(value, bool) or value <= 0:
        raise SettingsLoadError(
            f"settings.yaml의 {section_name}.{key}는 양의 정수여야 합니다: {value!r}"
        )
    return value


def parse_settings(data: dict[str, Any], base_dir: Path | None = None) -> AppSettings:
    """dict에서 AppSettings 생성

    Args:
        data: yaml.safe_load 결과
        base_dir: 상대 경로 해석 기준 디렉토리

    Returns:
        AppSettings 인스턴스

    Raises:
        SettingsLoadError: 값 형식이 잘못된 경우
    """
    database = data.get("database") or {}
    ledger = data.get("ledger") or {}
    migration = data.get("migration") or {}
    web = data.get("web") or {}

    for name, section in (("database", database), ("ledger", ledger), ("migration", migration), ("web", web)):
        if not isinstance(section, dict):
            raise SettingsLoadError(f"settings.yaml의 '{name}' 섹션은 매핑이어야 합니다")

    db_path = Paths.DEFAULT_DB
    if database.get("path"):
        db_path = Path(database["path"])
        if not db_path.is_absolute() and base_dir is not None:
            db_path = base_dir / db_path

    try:
        tolerance = Decimal(str(ledger.get("balance_tolerance", LedgerPolicy.BALANCE_TOLERANCE)))
    except InvalidOperation as e:
        raise SettingsLoadError(
            f"settings.yaml의 ledger.balance_tolerance가 숫자가 아닙니다: {ledger.get('balance_tolerance')!r}"
        ) from e
    if tolerance < 0:
        raise SettingsLoadError("ledger.balance_tolerance는 0 이상이어야 합니다")

    ledger_settings = LedgerSettings(
        balance_tolerance=tolerance,
        default_page_size=_positive_int(ledger, "default_page_size", Defaults.PAGE_SIZE, "ledger"),
        max_page_size=_positive_int(ledger, "max_page_size", Defaults.MAX_PAGE_SIZE, "ledger"),
    )

    migration_settings = MigrationSettings(
        batch_size=_positive_int(migration, "batch_size", Defaults.MIGRATION_BATCH_SIZE, "migration"),
        sample_size=_positive_int(migration, "sample_size", Defaults.MIGRATION_SAMPLE_SIZE, "migration"),
    )

    web_settings = WebSettings(
        host=str(web.get("host", Defaults.WEB_HOST)),
        port=_positive_int(web, "port", Defaults.WEB_PORT, "web"),
    )

    return AppSettings(
        db_path=db_path,
        ledger=ledger_settings,
        migration=migration_settings,
        web=web_settings,
    )


def load_settings(path: Path | None = None) -> AppSettings:
    """settings.yaml 파일 로드

    파일이 없으면 기본값으로 동작.

    Args:
        path: settings.yaml 경로 (None이면 기본 경로 사용)

    Returns:
        AppSettings 인스턴스

    Raises:
        SettingsLoadError: 형식이 잘못된 경우
    """
    if path is None:
        path = Paths.SETTINGS_FILE

    if not path.exists():
        logger.info(f"settings.yaml 없음, 기본 설정 사용: {path}")
        return AppSettings()

    try:
        content = path.read_text(encoding="utf-8")
        data = yaml.safe_load(content)
    except yaml.YAMLError as e:
        raise SettingsLoadError(f"settings.yaml 파싱 실패: {e}") from e

    if data is None:
        return AppSettings()

    if not isinstance(data, dict):
        raise SettingsLoadError("settings.yaml 최상위는 매핑이어야 합니다")

    return parse_settings(data, base_dir=path.parent.parent)


class Settings:
    """애플리케이션 설정 (싱글턴 패턴)

    settings.yaml을 로드하고 관련 설정을 제공
    """

    _instance: "Settings | None" = None
    _settings: AppSettings | None = None

    def __new__(cls, settings_path: Path | None = None) -> "Settings":
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __init__(self, settings_path: Path | None = None) -> None:
        if self._settings is None:
            self._settings = load_settings(settings_path)

    @classmethod
    def reset(cls) -> None:
        """싱글턴 초기화 (테스트용)"""
        cls._instance = None
        cls._settings = None

    @property
    def db_path(self) -> Path:
        """DB 파일 경로"""
        assert self._settings is not None
        return self._settings.db_path

    @property
    def ledger(self) -> LedgerSettings:
        """원장 정책 설정"""
        assert self._settings is not None
        return self._settings.ledger

    @property
    def migration(self) -> MigrationSettings:
        """마이그레이션 설정"""
        assert self._settings is not None
        return self._settings.migration

    @property
    def web(self) -> WebSettings:
        """Web 서버 설정"""
        assert self._settings is not None
        return self._settings.web


def get_settings(settings_path: Path | None = None) -> Settings:
    """Settings 싱글턴 반환

    Args:
        settings_path: settings.yaml 경로 (None이면 기본 경로 사용)

    Returns:
        Settings 싱글턴 인스턴스
    """
    return Settings(settings_path)
