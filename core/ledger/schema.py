"""
원장 스키마 초기화

Web 시작 시와 마이그레이션 스크립트 실행 시 자동으로 원장 테이블 생성.
CREATE IF NOT EXISTS 패턴으로 안전하게 동작.

테이블:
- account: 계정과목
- transaction_group: 거래 그룹 (schema_version=2 이면 entries_json에 분개 내장)
- accounting_entry: 구 스키마 분개 (schema_version=1 그룹의 정규화 분개)
- group_number_sequence: 일자별 거래 번호 카운터
- migration_report: 마이그레이션 실행 보고서
"""

import logging
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from adapters.db.sqlite_adapter import SQLiteAdapter

logger = logging.getLogger(__name__)


async def init_ledger_schema(db: "SQLiteAdapter") -> None:
    """원장 스키마 초기화

    이미 존재하는 경우 안전하게 건너뜀 (IF NOT EXISTS).

    Args:
        db: SQLiteAdapter 인스턴스
    """
    await _create_ledger_tables(db)
    await _create_ledger_indexes(db)
    await db.commit()
    logger.info("원장 스키마 초기화 완료")


async def _create_ledger_tables(db: "SQLiteAdapter") -> None:
    """원장 테이블 생성"""

    # account 테이블 (금액은 최소 단위 INTEGER)
    await db.execute("""
        CREATE TABLE IF NOT EXISTS account (
            id               TEXT PRIMARY KEY,
            code             TEXT NOT NULL,
            name             TEXT NOT NULL,
            account_type     TEXT NOT NULL,
            normal_balance   TEXT NOT NULL,
            parent_id        TEXT REFERENCES account(id),
            is_active        INTEGER NOT NULL DEFAULT 1,
            balance          INTEGER NOT NULL DEFAULT 0,
            description      TEXT,
            organization_id  TEXT NOT NULL,
            created_at       TEXT NOT NULL,
            updated_at       TEXT NOT NULL,
            UNIQUE(organization_id, code)
        )
    """)

    # transaction_group 테이블
    await db.execute("""
        CREATE TABLE IF NOT EXISTS transaction_group (
            id                          TEXT PRIMARY KEY,
            group_number                TEXT NOT NULL UNIQUE,
            description                 TEXT NOT NULL DEFAULT '',
            transaction_date            TEXT NOT NULL,
            organization_id             TEXT NOT NULL,
            status                      TEXT NOT NULL DEFAULT 'draft',
            total_amount                INTEGER NOT NULL DEFAULT 0,
            source_transaction_id       TEXT,
            linked_transaction_ids_json TEXT NOT NULL DEFAULT '[]',
            funding_type                TEXT NOT NULL DEFAULT 'original',
            entries_json                TEXT,
            schema_version              INTEGER NOT NULL DEFAULT 2,
            version                     INTEGER NOT NULL DEFAULT 1,
            request_id                  TEXT UNIQUE,
            created_by                  TEXT NOT NULL,
            created_at                  TEXT NOT NULL,
            updated_at                  TEXT NOT NULL,
            confirmed_at                TEXT
        )
    """)

    # accounting_entry 테이블 (구 스키마, 마이그레이션 검증을 위해 유지)
    await db.execute("""
        CREATE TABLE IF NOT EXISTS accounting_entry (
            id                    TEXT PRIMARY KEY,
            transaction_group_id  TEXT NOT NULL,
            sequence              INTEGER NOT NULL,
            account_id            TEXT NOT NULL,
            debit_amount          TEXT NOT NULL DEFAULT '0',
            credit_amount         TEXT NOT NULL DEFAULT '0',
            description           TEXT NOT NULL DEFAULT '',
            source_transaction_id TEXT,
            funding_path_json     TEXT,
            created_at            TEXT NOT NULL DEFAULT (datetime('now'))
        )
    """)

    # group_number_sequence 테이블
    await db.execute("""
        CREATE TABLE IF NOT EXISTS group_number_sequence (
            day_key     TEXT PRIMARY KEY,
            last_value  INTEGER NOT NULL
        )
    """)

    # migration_report 테이블
    await db.execute("""
        CREATE TABLE IF NOT EXISTS migration_report (
            id                      INTEGER PRIMARY KEY AUTOINCREMENT,
            started_at              TEXT NOT NULL,
            finished_at             TEXT NOT NULL,
            dry_run                 INTEGER NOT NULL DEFAULT 0,
            migrated                INTEGER NOT NULL DEFAULT 0,
            failed                  INTEGER NOT NULL DEFAULT 0,
            skipped                 INTEGER NOT NULL DEFAULT 0,
            orphaned_entries        INTEGER NOT NULL DEFAULT 0,
            groups_without_entries  INTEGER NOT NULL DEFAULT 0,
            report_json             TEXT NOT NULL
        )
    """)


async def _create_ledger_indexes(db: "SQLiteAdapter") -> None:
    """원장 인덱스 생성"""

    await db.execute("""
        CREATE INDEX IF NOT EXISTS ix_transaction_group_status
        ON transaction_group(status)
    """)

    await db.execute("""
        CREATE INDEX IF NOT EXISTS ix_transaction_group_source
        ON transaction_group(source_transaction_id)
    """)

    await db.execute("""
        CREATE INDEX IF NOT EXISTS ix_transaction_group_org_date
        ON transaction_group(organization_id, transaction_date DESC)
    """)

    await db.execute("""
        CREATE INDEX IF NOT EXISTS ix_transaction_group_schema
        ON transaction_group(schema_version)
    """)

    await db.execute("""
        CREATE INDEX IF NOT EXISTS ix_accounting_entry_group
        ON accounting_entry(transaction_group_id, sequence)
    """)

    await db.execute("""
        CREATE INDEX IF NOT EXISTS ix_accounting_entry_source
        ON accounting_entry(source_transaction_id)
    """)

    await db.execute("""
        CREATE INDEX IF NOT EXISTS ix_account_parent
        ON account(parent_id)
    """)
