"""
분개 내장형 스키마 마이그레이션

구 세대(accounting_entry 행) 거래 그룹을 분개 내장형(entries_json)으로 변환.
구 세대 행은 삭제하지 않으며, 재실행 시 이미 변환된 그룹은 건너뛴다.

사용법:
    python -m scripts.migrate_embedded_entries --dry-run
    python -m scripts.migrate_embedded_entries --batch-size 200
    python -m scripts.migrate_embedded_entries --check
"""

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path

# 프로젝트 루트를 Python 경로에 추가
sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from adapters.db.sqlite_adapter import SQLiteAdapter, get_db_path
from core.config.loader import get_settings
from core.ledger.compat import check_system_compatibility
from core.ledger.migration import MigrationAdapter
from core.ledger.money import BalancePolicy
from core.ledger.schema import init_ledger_schema
from core.ledger.validator import EntryValidator
from core.logging import setup_logging

logger = logging.getLogger("scripts.migrate_embedded_entries")


async def check(db_path: Path) -> int:
    """스키마 세대 점검만 수행"""
    async with SQLiteAdapter(db_path) as db:
        await init_ledger_schema(db)
        result = await check_system_compatibility(db)

    logger.info(
        f"스키마 세대: {result.version} "
        f"(구 세대 {result.legacy_groups}, 내장형 {result.embedded_groups}, 고아 분개 {result.orphaned_entries})"
    )
    for issue in result.issues:
        logger.warning(f"  - {issue}")
    return 0 if result.is_healthy else 1


async def migrate(db_path: Path, batch_size: int, sample_size: int, dry_run: bool) -> int:
    """마이그레이션 실행

    Returns:
        종료 코드 (실패 그룹 또는 검증 불일치가 있으면 1)
    """
    settings = get_settings()
    validator = EntryValidator(BalancePolicy(settings.ledger.balance_tolerance))

    async with SQLiteAdapter(db_path) as db:
        await init_ledger_schema(db)
        adapter = MigrationAdapter(
            db,
            validator,
            batch_size=batch_size,
            sample_size=sample_size,
            logger=logger,
        )
        report = await adapter.run(dry_run=dry_run)

    print(json.dumps(report.to_dict(), ensure_ascii=False, indent=2))
    return 0 if report.is_clean else 1


def main() -> None:
    settings = get_settings()

    parser = argparse.ArgumentParser(description="분개 내장형 스키마 마이그레이션")
    parser.add_argument("--db", type=Path, default=None, help="DB 경로 (기본: 설정 파일)")
    parser.add_argument("--batch-size", type=int, default=settings.migration.batch_size, help="배치당 그룹 수")
    parser.add_argument("--sample-size", type=int, default=settings.migration.sample_size, help="사후 검증 표본 수")
    parser.add_argument("--dry-run", action="store_true", help="변경 없이 결과만 보고")
    parser.add_argument("--check", action="store_true", help="스키마 세대 점검만 수행")
    args = parser.parse_args()

    setup_logging("migration")
    db_path = args.db or get_db_path()

    if args.check:
        exit_code = asyncio.run(check(db_path))
    else:
        logger.info(f"마이그레이션 시작: {db_path} (dry_run={args.dry_run}, batch_size={args.batch_size})")
        exit_code = asyncio.run(migrate(db_path, args.batch_size, args.sample_size, args.dry_run))
    sys.exit(exit_code)


if __name__ == "__main__":
    main()
