"""
분개 내장 마이그레이션

schema_version=1 거래 그룹(분개가 accounting_entry 행으로 정규화)을
schema_version=2 (entries_json 내장)로 배치 단위 이전.

그룹별 절차:
1. sequence 순으로 구 세대 분개 로드
2. 분개 없는 그룹은 건너뛰고 보고
3. 내장 형식으로 변환 (transaction_group_id 제거)
4. EntryValidator로 합계/균형 재계산, 불균형이면 쓰지 않고 오류 목록에 기록
5. 단일 UPDATE로 entries_json, total_amount, schema_version 갱신

배치 종료 후 무작위 표본을 구 세대 행에서 다시 집계해 내장 문서와 비교하고,
보고서를 migration_report 테이블에 저장.
구 세대 행은 삭제하지 않는다 (검증 및 수동 복구용).
"""

from __future__ import annotations

import json
import logging
import random
from dataclasses import asdict, dataclass, field
from datetime import datetime
from typing import TYPE_CHECKING, Any

from core.constants import Defaults
from core.errors import LedgerError
from core.ledger.compat import (
    count_legacy_groups_without_entries,
    count_orphaned_entries,
    entry_from_legacy,
    legacy_entry_from_row,
)
from core.ledger.money import format_amount
from core.ledger.rows import GROUP_COLUMNS, entries_from_json, entries_to_json, load_legacy_entries
from core.ledger.validator import EntryValidator
from core.types import SchemaVersion
from core.utils.timezone import isoformat_utc, now_utc

if TYPE_CHECKING:
    from adapters.db.sqlite_adapter import SQLiteAdapter


@dataclass
class MigrationError:
    """이전하지 못한 그룹 (수동 복구 대상)"""

    group_id: str
    group_number: str
    reason: str
    total_debit: str | None = None
    total_credit: str | None = None
    difference: str | None = None


@dataclass
class MigrationReport:
    """마이그레이션 실행 보고서"""

    started_at: datetime
    finished_at: datetime | None = None
    dry_run: bool = False
    migrated: int = 0
    failed: int = 0
    skipped: int = 0
    orphaned_entries: int = 0
    groups_without_entries: int = 0
    errors: list[MigrationError] = field(default_factory=list)
    skipped_group_ids: list[str] = field(default_factory=list)
    verified: int = 0
    verification_errors: list[str] = field(default_factory=list)
    report_id: int | None = None

    @property
    def is_clean(self) -> bool:
        return not self.errors and not self.verification_errors

    def to_dict(self) -> dict[str, Any]:
        """보고서 dict (JSON 저장/출력용)"""
        return {
            "report_id": self.report_id,
            "started_at": isoformat_utc(self.started_at),
            "finished_at": isoformat_utc(self.finished_at),
            "dry_run": self.dry_run,
            "migrated": self.migrated,
            "failed": self.failed,
            "skipped": self.skipped,
            "orphaned_entries": self.orphaned_entries,
            "groups_without_entries": self.groups_without_entries,
            "errors": [asdict(e) for e in self.errors],
            "skipped_group_ids": list(self.skipped_group_ids),
            "verified": self.verified,
            "verification_errors": list(self.verification_errors),
        }


class MigrationAdapter:
    """구 세대 → 내장형 스키마 마이그레이션

    Args:
        db: SQLite 어댑터
        validator: 분개 검증기 (균형 판정)
        batch_size: 배치당 그룹 수
        sample_size: 사후 검증 표본 수
        logger: 로거 (None이면 모듈 로거)
        rng: 표본 추출용 난수 생성기 (테스트에서 고정 가능)
    """

    def __init__(
        self,
        db: SQLiteAdapter,
        validator: EntryValidator,
        batch_size: int = Defaults.MIGRATION_BATCH_SIZE,
        sample_size: int = Defaults.MIGRATION_SAMPLE_SIZE,
        logger: logging.Logger | None = None,
        rng: random.Random | None = None,
    ):
        self.db = db
        self.validator = validator
        self.batch_size = batch_size
        self.sample_size = sample_size
        self.logger = logger or logging.getLogger(__name__)
        self.rng = rng or random.Random()

    async def run(self, dry_run: bool = False) -> MigrationReport:
        """전체 구 세대 그룹 마이그레이션

        Args:
            dry_run: True이면 검사만 하고 쓰지 않음 (보고서도 저장하지 않음)

        Returns:
            MigrationReport
        """
        report = MigrationReport(started_at=now_utc(), dry_run=dry_run)
        report.orphaned_entries = await count_orphaned_entries(self.db)
        report.groups_without_entries = await count_legacy_groups_without_entries(self.db)

        migrated_ids: list[str] = []
        last_id = ""
        batch_no = 0
        while True:
            rows = await self.db.fetch_dicts(
                f"""
                SELECT {GROUP_COLUMNS} FROM transaction_group
                WHERE schema_version = 1 AND id > ?
                ORDER BY id
                LIMIT ?
                """,
                (last_id, self.batch_size),
            )
            if not rows:
                break

            batch_no += 1
            last_id = rows[-1]["id"]
            entries_by_group = await load_legacy_entries(self.db, [r["id"] for r in rows])

            for row in rows:
                if await self._migrate_group(row, entries_by_group[row["id"]], report, dry_run):
                    migrated_ids.append(row["id"])

            self.logger.info(
                f"배치 {batch_no} 완료: migrated={report.migrated}, failed={report.failed}, skipped={report.skipped}"
            )

        if not dry_run:
            await self._verify_sample(migrated_ids, report)

        report.finished_at = now_utc()
        if not dry_run:
            report.report_id = await self._save_report(report)

        self.logger.info(
            f"마이그레이션 완료: migrated={report.migrated}, failed={report.failed}, "
            f"skipped={report.skipped}, orphaned={report.orphaned_entries}, "
            f"verification_errors={len(report.verification_errors)}"
        )
        return report

    async def _migrate_group(
        self,
        row: dict[str, Any],
        entry_rows: list[dict[str, Any]],
        report: MigrationReport,
        dry_run: bool,
    ) -> bool:
        """그룹 하나 이전. 이전했으면 True"""
        group_id = row["id"]
        group_number = row["group_number"]

        if not entry_rows:
            report.skipped += 1
            report.skipped_group_ids.append(group_id)
            self.logger.warning(f"분개 없는 그룹 건너뜀: {group_number}")
            return False

        try:
            entries = [entry_from_legacy(legacy_entry_from_row(r)) for r in entry_rows]
        except LedgerError as e:
            report.failed += 1
            report.errors.append(MigrationError(group_id=group_id, group_number=group_number, reason=e.message))
            self.logger.error(f"분개 변환 실패: {group_number} - {e.message}")
            return False

        result = self.validator.validate(entries)
        if not result.is_valid:
            report.failed += 1
            report.errors.append(
                MigrationError(
                    group_id=group_id,
                    group_number=group_number,
                    reason="; ".join(result.errors),
                    total_debit=format_amount(result.total_debit),
                    total_credit=format_amount(result.total_credit),
                    difference=format_amount(result.difference),
                )
            )
            self.logger.error(
                f"불균형/오류 그룹 이전 보류: {group_number} "
                f"(debit={format_amount(result.total_debit)}, credit={format_amount(result.total_credit)})"
            )
            return False

        if dry_run:
            report.migrated += 1
            return False

        async with self.db.transaction():
            cursor = await self.db.execute(
                """
                UPDATE transaction_group
                SET entries_json = ?, total_amount = ?, schema_version = 2,
                    version = version + 1, updated_at = ?
                WHERE id = ? AND schema_version = 1 AND version = ?
                """,
                (
                    entries_to_json(entries),
                    result.total_amount,
                    isoformat_utc(now_utc()),
                    group_id,
                    int(row["version"]),
                ),
            )

        if cursor.rowcount == 0:
            report.failed += 1
            report.errors.append(
                MigrationError(group_id=group_id, group_number=group_number, reason="modified concurrently")
            )
            self.logger.warning(f"동시 수정으로 이전 실패: {group_number}")
            return False

        report.migrated += 1
        return True

    async def _verify_sample(self, migrated_ids: list[str], report: MigrationReport) -> None:
        """무작위 표본을 구 세대 행에서 다시 집계해 내장 문서와 비교"""
        if not migrated_ids:
            return

        sample = self.rng.sample(migrated_ids, min(self.sample_size, len(migrated_ids)))
        legacy_rows = await load_legacy_entries(self.db, sample)

        for group_id in sample:
            row = await self.db.fetch_dict(
                "SELECT group_number, entries_json, total_amount, schema_version FROM transaction_group WHERE id = ?",
                (group_id,),
            )
            if row is None or int(row["schema_version"]) != SchemaVersion.EMBEDDED:
                report.verification_errors.append(f"{group_id}: embedded document missing")
                continue

            embedded = entries_from_json(row["entries_json"])
            legacy = [entry_from_legacy(legacy_entry_from_row(r)) for r in legacy_rows[group_id]]
            embedded_result = self.validator.validate(embedded)
            legacy_result = self.validator.validate(legacy)

            problems: list[str] = []
            if len(embedded) != len(legacy):
                problems.append(f"entry count {len(embedded)} != {len(legacy)}")
            if embedded_result.total_debit != legacy_result.total_debit:
                problems.append("total debit mismatch")
            if embedded_result.total_credit != legacy_result.total_credit:
                problems.append("total credit mismatch")
            if int(row["total_amount"]) != legacy_result.total_amount:
                problems.append("total amount mismatch")
            if not embedded_result.is_balanced:
                problems.append("embedded entries are not balanced")

            if problems:
                report.verification_errors.append(f"{row['group_number']}: {', '.join(problems)}")
            report.verified += 1

        if report.verification_errors:
            self.logger.error(f"표본 검증 실패 {len(report.verification_errors)}건")
        else:
            self.logger.info(f"표본 검증 통과: {report.verified}건")

    async def _save_report(self, report: MigrationReport) -> int:
        """migration_report 테이블에 보고서 저장"""
        async with self.db.transaction():
            cursor = await self.db.execute(
                """
                INSERT INTO migration_report (
                    started_at, finished_at, dry_run, migrated, failed, skipped,
                    orphaned_entries, groups_without_entries, report_json
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    isoformat_utc(report.started_at),
                    isoformat_utc(report.finished_at),
                    int(report.dry_run),
                    report.migrated,
                    report.failed,
                    report.skipped,
                    report.orphaned_entries,
                    report.groups_without_entries,
                    json.dumps(report.to_dict(), ensure_ascii=False),
                ),
            )
        return int(cursor.lastrowid)


async def latest_report(db: "SQLiteAdapter") -> dict[str, Any] | None:
    """가장 최근 마이그레이션 보고서"""
    row = await db.fetch_dict("SELECT id, report_json FROM migration_report ORDER BY id DESC LIMIT 1")
    if row is None:
        return None
    data = json.loads(row["report_json"])
    data["report_id"] = row["id"]
    return data
