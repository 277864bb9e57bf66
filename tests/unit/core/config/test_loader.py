"""
core/config/loader.py 테스트

settings.yaml 로드, 검증, 싱글턴 테스트
"""

from decimal import Decimal
from pathlib import Path

import pytest

from core.config.loader import (
    AppSettings,
    LedgerSettings,
    Settings,
    SettingsLoadError,
    get_settings,
    load_settings,
    parse_settings,
)
from core.constants import Defaults, Paths


@pytest.fixture
def settings_file(temp_dir: Path) -> Path:
    """테스트용 settings.yaml (config/ 하위)"""
    config_dir = temp_dir / "config"
    config_dir.mkdir()
    path = config_dir / "settings.yaml"
    path.write_text(
        """
database:
  path: data/test.db
ledger:
  balance_tolerance: "0.05"
  default_page_size: 10
  max_page_size: 50
migration:
  batch_size: 7
  sample_size: 3
web:
  host: 0.0.0.0
  port: 9000
""",
        encoding="utf-8",
    )
    return path


@pytest.fixture(autouse=True)
def reset_settings():
    Settings.reset()
    yield
    Settings.reset()


class TestLoadSettings:
    """load_settings 함수 테스트"""

    def test_load(self, settings_file: Path, temp_dir: Path) -> None:
        settings = load_settings(settings_file)

        assert settings.db_path == temp_dir / "data" / "test.db"
        assert settings.ledger.balance_tolerance == Decimal("0.05")
        assert settings.ledger.default_page_size == 10
        assert settings.ledger.max_page_size == 50
        assert settings.migration.batch_size == 7
        assert settings.migration.sample_size == 3
        assert settings.web.host == "0.0.0.0"
        assert settings.web.port == 9000

    def test_missing_file_uses_defaults(self, temp_dir: Path) -> None:
        settings = load_settings(temp_dir / "nope.yaml")

        assert settings == AppSettings()
        assert settings.db_path == Paths.DEFAULT_DB
        assert settings.ledger.balance_tolerance == Decimal("0.01")

    def test_empty_file(self, temp_dir: Path) -> None:
        path = temp_dir / "settings.yaml"
        path.write_text("", encoding="utf-8")

        assert load_settings(path) == AppSettings()

    def test_invalid_yaml(self, temp_dir: Path) -> None:
        path = temp_dir / "settings.yaml"
        path.write_text("ledger: [unclosed", encoding="utf-8")

        with pytest.raises(SettingsLoadError, match="파싱 실패"):
            load_settings(path)

    def test_top_level_must_be_mapping(self, temp_dir: Path) -> None:
        path = temp_dir / "settings.yaml"
        path.write_text("- a\n- b\n", encoding="utf-8")

        with pytest.raises(SettingsLoadError):
            load_settings(path)


class TestParseSettings:
    """parse_settings 검증 테스트"""

    def test_defaults(self) -> None:
        settings = parse_settings({})
        assert settings.ledger == LedgerSettings()
        assert settings.web.port == Defaults.WEB_PORT

    def test_absolute_path_kept(self, temp_dir: Path) -> None:
        db = temp_dir / "abs.db"
        settings = parse_settings({"database": {"path": str(db)}}, base_dir=Path("/elsewhere"))
        assert settings.db_path == db

    @pytest.mark.parametrize(
        "data",
        [
            {"ledger": {"balance_tolerance": "abc"}},
            {"ledger": {"balance_tolerance": "-1"}},
            {"ledger": {"max_page_size": 0}},
            {"migration": {"batch_size": "10"}},
            {"web": {"port": True}},
            {"ledger": ["not", "a", "mapping"]},
        ],
    )
    def test_invalid_values(self, data: dict) -> None:
        with pytest.raises(SettingsLoadError):
            parse_settings(data)


class TestSettingsSingleton:
    """Settings 싱글턴 테스트"""

    def test_same_instance(self, settings_file: Path) -> None:
        first = get_settings(settings_file)
        second = get_settings()

        assert first is second
        assert second.migration.batch_size == 7

    def test_reset(self, settings_file: Path, temp_dir: Path) -> None:
        get_settings(settings_file)
        Settings.reset()

        settings = get_settings(temp_dir / "missing.yaml")

        assert settings.ledger.default_page_size == Defaults.PAGE_SIZE
