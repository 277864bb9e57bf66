"""
거래 그룹 저장소

거래 그룹 생성/조회/수정/삭제, 목록 필터링과 페이지네이션,
확정/잠금 해제/취소 상태 전이.

모든 변경은 version 컬럼 CAS (UPDATE ... WHERE id = ? AND version = ?) 로 수행.
CAS 실패(rowcount 0)는 ConflictError.
"""

from __future__ import annotations

import json
import logging
import sqlite3
import uuid
from dataclasses import replace
from datetime import timedelta
from typing import TYPE_CHECKING, Any

from core.config.loader import LedgerSettings
from core.errors import ConflictError, NotFoundError, ValidationError
from core.ledger.accounts import AccountRegistry
from core.ledger.confirmation import (
    check_confirmable,
    check_owner,
    check_transition,
    check_version,
    dependents_conflict,
    require_status,
)
from core.ledger.funding import FundingSourceTracker, draws_of
from core.ledger.models import (
    Entry,
    GroupFilter,
    GroupInput,
    Page,
    TransactionGroup,
)
from core.ledger.rows import entries_to_json, fetch_group, fetch_groups
from core.ledger.validator import EntryValidator, ValidationResult, normalize_sequences
from core.types import AuthContext, FundingType, SchemaVersion, TransactionStatus
from core.utils.idempotency import group_number_prefix, make_group_number, parse_group_number
from core.utils.timezone import date_key, isoformat_utc, now_utc

if TYPE_CHECKING:
    from adapters.db.sqlite_adapter import SQLiteAdapter

EDITABLE = (TransactionStatus.DRAFT,)


class TransactionGroupStore:
    """거래 그룹 저장소

    Args:
        db: SQLite 어댑터 (요청 단위 연결)
        accounts: 계정 레지스트리 (AccountExistsCheck + 잔액 반영)
        funding: 자금 출처 추적기
        validator: 분개 검증기
        settings: 페이지 크기 등 원장 설정
        logger: 로거 (None이면 모듈 로거)
    """

    def __init__(
        self,
        db: SQLiteAdapter,
        accounts: AccountRegistry,
        funding: FundingSourceTracker,
        validator: EntryValidator,
        settings: LedgerSettings | None = None,
        logger: logging.Logger | None = None,
    ):
        self.db = db
        self.accounts = accounts
        self.funding = funding
        self.validator = validator
        self.settings = settings or LedgerSettings()
        self.logger = logger or logging.getLogger(__name__)

    # -------------------------------------------------------------------------
    # 조회
    # -------------------------------------------------------------------------

    async def get(self, group_id: str) -> TransactionGroup:
        """거래 그룹 조회

        Raises:
            NotFoundError: 그룹 없음
        """
        group = await fetch_group(self.db, group_id)
        if group is None:
            raise NotFoundError(f"Transaction group not found: {group_id}")
        return group

    async def get_by_request_id(self, request_id: str) -> TransactionGroup | None:
        """클라이언트 request_id로 조회 (멱등 생성용)"""
        groups = await fetch_groups(self.db, "request_id = ?", (request_id,))
        return groups[0] if groups else None

    async def list_groups(
        self,
        filters: GroupFilter | None = None,
        page: int = 1,
        limit: int | None = None,
    ) -> Page:
        """거래 그룹 목록 (거래일 내림차순, 생성일 내림차순)

        Args:
            filters: 상태/조직/검색어/기간 필터
            page: 1부터 시작
            limit: 페이지 크기 (None이면 기본값, 최대값으로 제한)
        """
        filters = filters or GroupFilter()
        page = max(page, 1)
        limit = self.settings.default_page_size if limit is None else limit
        limit = max(1, min(limit, self.settings.max_page_size))

        conditions: list[str] = []
        params: list[Any] = []
        if filters.status:
            conditions.append("status = ?")
            params.append(TransactionStatus(filters.status).value)
        if filters.organization_id:
            conditions.append("organization_id = ?")
            params.append(filters.organization_id)
        if filters.search:
            conditions.append("(LOWER(group_number) LIKE ? OR LOWER(description) LIKE ?)")
            pattern = f"%{filters.search.strip().lower()}%"
            params.extend([pattern, pattern])
        if filters.start_date:
            conditions.append("transaction_date >= ?")
            params.append(isoformat_utc(filters.start_date))
        if filters.end_date:
            # 종료일은 해당 일자 전체 포함
            end = filters.end_date
            if end.hour == 0 and end.minute == 0 and end.second == 0 and end.microsecond == 0:
                end = end + timedelta(days=1)
                conditions.append("transaction_date < ?")
            else:
                conditions.append("transaction_date <= ?")
            params.append(isoformat_utc(end))

        where = " AND ".join(conditions) if conditions else "1=1"
        row = await self.db.fetchone(
            f"SELECT COUNT(*) AS cnt FROM transaction_group WHERE {where}",
            tuple(params),
        )
        total = int(row["cnt"]) if row else 0

        items = await fetch_groups(
            self.db,
            where,
            tuple(params),
            order_sql="transaction_date DESC, created_at DESC",
            limit=limit,
            offset=(page - 1) * limit,
        )
        return Page(items=items, total=total, page=page, limit=limit)

    async def balance(self, group_id: str) -> ValidationResult:
        """그룹의 차변/대변 합계와 균형 여부"""
        group = await self.get(group_id)
        return self.validator.validate(group.entries)

    # -------------------------------------------------------------------------
    # 생성/수정/삭제
    # -------------------------------------------------------------------------

    async def _prepare(
        self,
        data: GroupInput,
        group_id: str | None = None,
    ) -> tuple[list[Entry], int]:
        """입력 검증 (분개, 계정, 자금 출처 사전 검사)

        Returns:
            (정규화된 분개 목록, total_amount)
        """
        if not data.organization_id:
            raise ValidationError("organization_id is required")

        entries = normalize_sequences([replace(e) for e in data.entries])
        result = self.validator.ensure_valid(entries)
        await self.accounts.require_active([e.account_id for e in entries], data.organization_id)

        prepared: list[Entry] = []
        for entry in entries:
            if entry.source_transaction_id:
                entry = await self.funding.record_usage(
                    entry,
                    entry.source_transaction_id,
                    user_group_id=group_id,
                )
            prepared.append(entry)

        entry_sources = {e.source_transaction_id for e in prepared if e.source_transaction_id}
        if data.source_transaction_id and data.source_transaction_id not in entry_sources:
            await self.funding.check_draw(data.source_transaction_id, result.total_amount, group_id)

        return prepared, result.total_amount

    @staticmethod
    def _funding_type(data: GroupInput, entries: list[Entry]) -> FundingType:
        if data.funding_type is not None:
            return FundingType(data.funding_type)
        if data.source_transaction_id or any(e.source_transaction_id for e in entries):
            return FundingType.DERIVED
        return FundingType.ORIGINAL

    async def _allocate_group_number(self) -> str:
        """일자별 카운터 증가 후 거래 번호 생성 (쓰기 트랜잭션 안에서 호출)

        카운터 행이 처음 생길 때는 같은 날짜의 기존 최대 번호에서 이어감.
        """
        day = date_key(now_utc())
        row = await self.db.fetchone(
            "SELECT last_value FROM group_number_sequence WHERE day_key = ?",
            (day,),
        )
        if row is None:
            sequence = await self._highest_sequence(day) + 1
            await self.db.execute(
                "INSERT INTO group_number_sequence (day_key, last_value) VALUES (?, ?)",
                (day, sequence),
            )
        else:
            sequence = int(row["last_value"]) + 1
            await self.db.execute(
                "UPDATE group_number_sequence SET last_value = ? WHERE day_key = ?",
                (sequence, day),
            )
        return make_group_number(day, sequence)

    async def _highest_sequence(self, day: str) -> int:
        rows = await self.db.fetchall(
            "SELECT group_number FROM transaction_group WHERE group_number LIKE ?",
            (f"{group_number_prefix(day)}%",),
        )
        parsed = [parse_group_number(r["group_number"]) for r in rows]
        return max((p[1] for p in parsed if p is not None and p[0] == day), default=0)

    async def create(self, data: GroupInput, auth: AuthContext) -> TransactionGroup:
        """거래 그룹 생성 (draft)

        request_id가 이미 사용된 경우 기존 그룹을 반환 (멱등).

        Raises:
            ValidationError: 분개 오류, 불균형, 계정 오류, 자금 출처 초과
            ConflictError: 거래 번호 충돌
        """
        if data.request_id:
            existing = await self.get_by_request_id(data.request_id)
            if existing is not None:
                self.logger.info(f"멱등 생성 요청 재사용: {data.request_id} → {existing.group_number}")
                return existing

        group_id = str(uuid.uuid4())
        entries, total_amount = await self._prepare(data, group_id)
        now = now_utc()

        try:
            async with self.db.transaction():
                group_number = await self._allocate_group_number()
                group = TransactionGroup(
                    id=group_id,
                    group_number=group_number,
                    description=data.description or "",
                    transaction_date=data.transaction_date,
                    organization_id=data.organization_id,
                    created_by=auth.user_id,
                    entries=entries,
                    status=TransactionStatus.DRAFT,
                    total_amount=total_amount,
                    source_transaction_id=data.source_transaction_id,
                    linked_transaction_ids=list(data.linked_transaction_ids),
                    funding_type=self._funding_type(data, entries),
                    created_at=now,
                    updated_at=now,
                    version=1,
                    schema_version=SchemaVersion.EMBEDDED,
                    request_id=data.request_id,
                )
                await self.db.execute(
                    """
                    INSERT INTO transaction_group (
                        id, group_number, description, transaction_date, organization_id,
                        status, total_amount, source_transaction_id, linked_transaction_ids_json,
                        funding_type, entries_json, schema_version, version, request_id,
                        created_by, created_at, updated_at, confirmed_at
                    ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, NULL)
                    """,
                    (
                        group.id,
                        group.group_number,
                        group.description,
                        isoformat_utc(group.transaction_date),
                        group.organization_id,
                        group.status.value,
                        group.total_amount,
                        group.source_transaction_id,
                        json.dumps(group.linked_transaction_ids),
                        group.funding_type.value,
                        entries_to_json(group.entries),
                        int(group.schema_version),
                        group.version,
                        group.request_id,
                        group.created_by,
                        isoformat_utc(now),
                        isoformat_utc(now),
                    ),
                )
                await self.funding.verify_draws(group)
        except sqlite3.IntegrityError as e:
            if data.request_id:
                existing = await self.get_by_request_id(data.request_id)
                if existing is not None:
                    return existing
            raise ConflictError(f"Duplicate transaction group: {e}") from e

        self.logger.info(
            f"거래 그룹 생성: {group.group_number} (entries={len(entries)}, by={auth.user_id})"
        )
        return group

    async def update(
        self,
        group_id: str,
        data: GroupInput,
        auth: AuthContext,
        expected_version: int | None = None,
    ) -> TransactionGroup:
        """draft 거래 그룹 수정 (분개 전체 교체)

        구 세대 그룹은 수정 시 내장형으로 전환.

        Raises:
            NotFoundError: 그룹 없음
            ConflictError: draft 아님, 버전 충돌
            ValidationError: 분개/계정/자금 출처 오류
        """
        current = await self.get(group_id)
        require_status(current, EDITABLE, "update")
        check_version(current, expected_version)

        entries, total_amount = await self._prepare(data, current.id)
        now = now_utc()
        updated = replace(
            current,
            description=data.description or "",
            transaction_date=data.transaction_date,
            organization_id=data.organization_id,
            entries=entries,
            total_amount=total_amount,
            source_transaction_id=data.source_transaction_id,
            linked_transaction_ids=list(data.linked_transaction_ids),
            funding_type=self._funding_type(data, entries),
            updated_at=now,
            version=current.version + 1,
            schema_version=SchemaVersion.EMBEDDED,
        )

        async with self.db.transaction():
            cursor = await self.db.execute(
                """
                UPDATE transaction_group
                SET description = ?, transaction_date = ?, organization_id = ?,
                    total_amount = ?, source_transaction_id = ?, linked_transaction_ids_json = ?,
                    funding_type = ?, entries_json = ?, schema_version = 2,
                    version = version + 1, updated_at = ?
                WHERE id = ? AND status = 'draft' AND version = ?
                """,
                (
                    updated.description,
                    isoformat_utc(updated.transaction_date),
                    updated.organization_id,
                    updated.total_amount,
                    updated.source_transaction_id,
                    json.dumps(updated.linked_transaction_ids),
                    updated.funding_type.value,
                    entries_to_json(updated.entries),
                    isoformat_utc(now),
                    current.id,
                    current.version,
                ),
            )
            if cursor.rowcount == 0:
                raise await self._lost_race(current.id, "update")

            if current.schema_version == SchemaVersion.LEGACY:
                await self.db.execute(
                    "DELETE FROM accounting_entry WHERE transaction_group_id = ?",
                    (current.id,),
                )
            await self.funding.verify_draws(updated)
            await self.funding.check_covers_usage(updated, updated.total_amount)

        self.logger.info(f"거래 그룹 수정: {updated.group_number} (v{updated.version}, by={auth.user_id})")
        return updated

    async def delete(
        self,
        group_id: str,
        auth: AuthContext,
        expected_version: int | None = None,
    ) -> None:
        """draft 거래 그룹 삭제

        Raises:
            NotFoundError: 그룹 없음
            ConflictError: draft 아님, 버전 충돌, 다른 거래가 자금 출처로 사용 중
        """
        current = await self.get(group_id)
        require_status(current, EDITABLE, "delete")
        check_version(current, expected_version)

        users = await self.funding.usages_of(current.id)
        if users:
            raise ConflictError(
                f"Transaction {current.group_number} is used as a funding source",
                details={"dependent_transactions": [u.user_transaction_id for u in users]},
            )

        async with self.db.transaction():
            cursor = await self.db.execute(
                "DELETE FROM transaction_group WHERE id = ? AND status = 'draft' AND version = ?",
                (current.id, current.version),
            )
            if cursor.rowcount == 0:
                raise await self._lost_race(current.id, "delete")
            await self.db.execute(
                "DELETE FROM accounting_entry WHERE transaction_group_id = ?",
                (current.id,),
            )

        self.logger.info(f"거래 그룹 삭제: {current.group_number} (by={auth.user_id})")

    # -------------------------------------------------------------------------
    # 상태 전이
    # -------------------------------------------------------------------------

    async def confirm(
        self,
        group_id: str,
        auth: AuthContext,
        expected_version: int | None = None,
    ) -> TransactionGroup:
        """draft → confirmed

        분개 2개 이상 + 균형 재검증, 자금 출처 재검증, 계정 잔액 반영.

        Raises:
            ConflictError: draft 아님, 버전 충돌
            ValidationError: 분개 부족, 불균형, 자금 출처 오류
        """
        current = await self.get(group_id)
        check_transition(current, TransactionStatus.CONFIRMED)
        check_version(current, expected_version)
        check_confirmable(current, self.validator)

        now = now_utc()
        async with self.db.transaction():
            cursor = await self.db.execute(
                """
                UPDATE transaction_group
                SET status = 'confirmed', confirmed_at = ?, updated_at = ?, version = version + 1
                WHERE id = ? AND status = 'draft' AND version = ?
                """,
                (isoformat_utc(now), isoformat_utc(now), current.id, current.version),
            )
            if cursor.rowcount == 0:
                raise await self._lost_race(current.id, "confirm")

            if draws_of(current):
                await self.funding.verify_draws(current)
            await self.accounts.apply_group(current)

        self.logger.info(f"거래 그룹 확정: {current.group_number} (by={auth.user_id})")
        return replace(
            current,
            status=TransactionStatus.CONFIRMED,
            confirmed_at=now,
            updated_at=now,
            version=current.version + 1,
        )

    async def unlock(
        self,
        group_id: str,
        auth: AuthContext,
        expected_version: int | None = None,
    ) -> TransactionGroup:
        """confirmed → draft (잠금 해제)

        취소되지 않은 그룹이 source_transaction_id로 참조 중이면 거부.
        "참조 없음" 조건을 같은 UPDATE 문에 포함하여 검사와 쓰기를 원자적으로 수행.

        Raises:
            ConflictError: confirmed 아님, 버전 충돌, 의존 거래 존재 (details.dependent_transactions)
        """
        current = await self.get(group_id)
        check_transition(current, TransactionStatus.DRAFT)
        check_version(current, expected_version)

        now = now_utc()
        async with self.db.transaction():
            cursor = await self.db.execute(
                """
                UPDATE transaction_group
                SET status = 'draft', confirmed_at = NULL, updated_at = ?, version = version + 1
                WHERE id = ? AND status = 'confirmed' AND version = ?
                  AND NOT EXISTS (
                      SELECT 1 FROM transaction_group d
                      WHERE d.source_transaction_id = ? AND d.status != 'cancelled' AND d.id != ?
                  )
                """,
                (isoformat_utc(now), current.id, current.version, current.id, current.id),
            )
            if cursor.rowcount == 0:
                dependents = await self.funding.referenced_by(current.id)
                if dependents:
                    raise dependents_conflict(current, dependents)
                raise await self._lost_race(current.id, "unlock")

            await self.accounts.apply_group(current, reverse=True)

        self.logger.info(f"거래 그룹 잠금 해제: {current.group_number} (by={auth.user_id})")
        return replace(
            current,
            status=TransactionStatus.DRAFT,
            confirmed_at=None,
            updated_at=now,
            version=current.version + 1,
        )

    async def cancel(
        self,
        group_id: str,
        auth: AuthContext,
        expected_version: int | None = None,
    ) -> TransactionGroup:
        """draft → cancelled (소유자만, 종료 상태)

        잠금 해제 후 분개 단위로 여전히 사용 중인 출처는 취소 불가.

        Raises:
            AuthError: 소유자 아님
            ConflictError: draft 아님, 버전 충돌, 다른 거래가 자금 출처로 사용 중
        """
        current = await self.get(group_id)
        check_owner(current, auth)
        check_transition(current, TransactionStatus.CANCELLED)
        check_version(current, expected_version)

        now = now_utc()
        async with self.db.transaction():
            users = await self.funding.usages_of(current.id, exclude_group_id=current.id)
            if users:
                raise ConflictError(
                    f"Transaction {current.group_number} is used as a funding source",
                    details={"dependent_transactions": [u.user_transaction_id for u in users]},
                )
            cursor = await self.db.execute(
                """
                UPDATE transaction_group
                SET status = 'cancelled', updated_at = ?, version = version + 1
                WHERE id = ? AND status = 'draft' AND version = ? AND created_by = ?
                """,
                (isoformat_utc(now), current.id, current.version, auth.user_id),
            )
            if cursor.rowcount == 0:
                raise await self._lost_race(current.id, "cancel")

        self.logger.info(f"거래 그룹 취소: {current.group_number} (by={auth.user_id})")
        return replace(
            current,
            status=TransactionStatus.CANCELLED,
            updated_at=now,
            version=current.version + 1,
        )

    async def _lost_race(self, group_id: str, action: str) -> Exception:
        """CAS 실패 원인 오류 생성 (삭제됨 → NotFound, 그 외 → Conflict)"""
        latest = await fetch_group(self.db, group_id)
        if latest is None:
            return NotFoundError(f"Transaction group not found: {group_id}")
        self.logger.warning(
            f"동시 수정 충돌: {latest.group_number} {action} (status={latest.status.value}, v{latest.version})"
        )
        return ConflictError(
            f"Transaction {latest.group_number} was modified concurrently; reload and retry {action}",
            details={"status": latest.status.value, "current_version": latest.version},
        )
