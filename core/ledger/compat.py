"""
원장 스키마 세대 간 호환 계층

- 구 세대(legacy): 분개가 accounting_entry 행으로 정규화, 금액은 Decimal 문자열
- 신 세대(embedded): 분개가 거래 그룹 문서에 내장, 금액은 최소 단위 정수

양방향 변환 함수는 순수 함수이며, 변환 결과는 CompatibilityValidator로
구조 필드(식별자, 코드, 이름, 금액, 분개 수)를 비교하여 불일치를 보고한다.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal, InvalidOperation
from typing import TYPE_CHECKING, Any

from core.ledger.models import Account, Entry, TransactionGroup
from core.errors import ValidationError
from core.ledger.money import BalancePolicy, from_minor, round_minor
from core.types import (
    AccountType,
    FundingType,
    SchemaVersion,
    TransactionStatus,
    default_normal_balance,
)
from core.utils.timezone import isoformat_utc, parse_datetime

if TYPE_CHECKING:
    from adapters.db.sqlite_adapter import SQLiteAdapter

logger = logging.getLogger(__name__)


# =========================================================================
# 구 세대 타입
# =========================================================================


@dataclass
class LegacyEntry:
    """구 세대 분개 (accounting_entry 행)"""

    id: str
    transaction_group_id: str
    sequence: int
    account_id: str
    debit_amount: Decimal = Decimal("0")
    credit_amount: Decimal = Decimal("0")
    description: str = ""
    source_transaction_id: str | None = None
    funding_path: list[str] = field(default_factory=list)


@dataclass
class LegacyTransactionGroup:
    """구 세대 거래 그룹 (분개는 별도 목록)"""

    id: str
    group_number: str
    description: str
    transaction_date: datetime
    organization_id: str
    created_by: str
    status: str = "draft"
    total_amount: Decimal = Decimal("0")
    source_transaction_id: str | None = None
    linked_transaction_ids: list[str] = field(default_factory=list)
    funding_type: str = "original"
    created_at: datetime | None = None
    updated_at: datetime | None = None
    confirmed_at: datetime | None = None


@dataclass
class LegacyAccount:
    """구 세대 계정 (정상 잔액 방향 필드 없음)"""

    id: str
    code: str
    name: str
    type: str
    organization_id: str
    parent_id: str | None = None
    is_active: bool = True
    balance: Decimal = Decimal("0")
    description: str | None = None


# =========================================================================
# 변환 함수
# =========================================================================


def parse_legacy_amount(raw: Any, field_name: str = "amount") -> Decimal:
    """구 세대 금액 텍스트 → Decimal (빈 값은 0)

    Raises:
        ValidationError: 숫자가 아니거나 유한하지 않은 값
    """
    if raw is None or raw == "":
        return Decimal("0")
    try:
        amount = Decimal(str(raw))
    except InvalidOperation as e:
        raise ValidationError(
            f"Legacy {field_name} is not a number: {raw!r}",
            details={"field": field_name, "value": str(raw)},
        ) from e
    if not amount.is_finite():
        raise ValidationError(
            f"Legacy {field_name} is not a finite number: {raw!r}",
            details={"field": field_name, "value": str(raw)},
        )
    return amount


def has_sub_minor_precision(amount: Decimal) -> bool:
    """최소 단위(0.01)로 표현되지 않는 금액인지"""
    return from_minor(round_minor(amount)) != amount


def legacy_entry_from_row(row: dict[str, Any]) -> LegacyEntry:
    """accounting_entry 행 → LegacyEntry

    Raises:
        ValidationError: 금액 텍스트가 숫자가 아님
    """
    return LegacyEntry(
        id=row["id"],
        transaction_group_id=row["transaction_group_id"],
        sequence=int(row["sequence"]),
        account_id=row["account_id"],
        debit_amount=parse_legacy_amount(row["debit_amount"], "debit_amount"),
        credit_amount=parse_legacy_amount(row["credit_amount"], "credit_amount"),
        description=row["description"] or "",
        source_transaction_id=row["source_transaction_id"],
        funding_path=json.loads(row["funding_path_json"]) if row["funding_path_json"] else [],
    )


def entry_from_legacy(legacy: LegacyEntry) -> Entry:
    """구 세대 분개 → 내장 분개 (transaction_group_id 제거)

    금액은 최소 단위로 반올림. 반올림 차이는 check_system_compatibility 가 보고.
    """
    return Entry(
        sequence=legacy.sequence,
        account_id=legacy.account_id,
        debit_amount=round_minor(legacy.debit_amount),
        credit_amount=round_minor(legacy.credit_amount),
        description=legacy.description,
        source_transaction_id=legacy.source_transaction_id,
        funding_path=list(legacy.funding_path),
    )


def entry_to_legacy(entry: Entry, group_id: str) -> LegacyEntry:
    """내장 분개 → 구 세대 분개

    구 세대 분개 id는 {group_id}:{sequence} 로 결정적으로 생성.
    """
    return LegacyEntry(
        id=f"{group_id}:{entry.sequence}",
        transaction_group_id=group_id,
        sequence=entry.sequence or 0,
        account_id=entry.account_id,
        debit_amount=from_minor(entry.debit_amount),
        credit_amount=from_minor(entry.credit_amount),
        description=entry.description,
        source_transaction_id=entry.source_transaction_id,
        funding_path=list(entry.funding_path),
    )


def group_from_legacy(
    legacy: LegacyTransactionGroup,
    entries: list[LegacyEntry],
    version: int = 1,
) -> TransactionGroup:
    """구 세대 그룹 + 분개 목록 → 내장형 TransactionGroup

    total_amount는 분개에서 재계산하지 않고 구 세대 값을 유지
    (불일치는 CompatibilityValidator가 보고).
    """
    converted = [entry_from_legacy(e) for e in sorted(entries, key=lambda e: e.sequence)]
    return TransactionGroup(
        id=legacy.id,
        group_number=legacy.group_number,
        description=legacy.description,
        transaction_date=legacy.transaction_date,
        organization_id=legacy.organization_id,
        created_by=legacy.created_by,
        entries=converted,
        status=TransactionStatus(legacy.status),
        total_amount=round_minor(legacy.total_amount),
        source_transaction_id=legacy.source_transaction_id,
        linked_transaction_ids=list(legacy.linked_transaction_ids),
        funding_type=FundingType(legacy.funding_type),
        created_at=legacy.created_at,
        updated_at=legacy.updated_at,
        confirmed_at=legacy.confirmed_at,
        version=version,
        schema_version=SchemaVersion.LEGACY,
    )


def group_to_legacy(group: TransactionGroup) -> tuple[LegacyTransactionGroup, list[LegacyEntry]]:
    """내장형 TransactionGroup → 구 세대 그룹 + 분개 목록"""
    legacy = LegacyTransactionGroup(
        id=group.id,
        group_number=group.group_number,
        description=group.description,
        transaction_date=group.transaction_date,
        organization_id=group.organization_id,
        created_by=group.created_by,
        status=group.status.value,
        total_amount=from_minor(group.total_amount),
        source_transaction_id=group.source_transaction_id,
        linked_transaction_ids=list(group.linked_transaction_ids),
        funding_type=group.funding_type.value,
        created_at=group.created_at,
        updated_at=group.updated_at,
        confirmed_at=group.confirmed_at,
    )
    return legacy, [entry_to_legacy(e, group.id) for e in group.entries]


def account_from_legacy(legacy: LegacyAccount) -> Account:
    """구 세대 계정 → Account (정상 잔액 방향은 계정 유형 기본값)"""
    account_type = AccountType(legacy.type)
    return Account(
        id=legacy.id,
        code=legacy.code,
        name=legacy.name,
        account_type=account_type,
        normal_balance=default_normal_balance(account_type),
        organization_id=legacy.organization_id,
        parent_id=legacy.parent_id,
        is_active=legacy.is_active,
        balance=round_minor(legacy.balance),
        description=legacy.description,
    )


def account_to_legacy(account: Account) -> LegacyAccount:
    """Account → 구 세대 계정"""
    return LegacyAccount(
        id=account.id,
        code=account.code,
        name=account.name,
        type=account.account_type.value,
        organization_id=account.organization_id,
        parent_id=account.parent_id,
        is_active=account.is_active,
        balance=from_minor(account.balance),
        description=account.description,
    )


def legacy_to_dict(legacy: LegacyTransactionGroup, entries: list[LegacyEntry]) -> dict[str, Any]:
    """구 세대 투영 응답용 dict"""
    return {
        "id": legacy.id,
        "group_number": legacy.group_number,
        "description": legacy.description,
        "transaction_date": isoformat_utc(legacy.transaction_date),
        "organization_id": legacy.organization_id,
        "status": legacy.status,
        "total_amount": str(legacy.total_amount),
        "source_transaction_id": legacy.source_transaction_id,
        "linked_transaction_ids": list(legacy.linked_transaction_ids),
        "funding_type": legacy.funding_type,
        "created_by": legacy.created_by,
        "entries": [
            {
                "id": e.id,
                "transaction_group_id": e.transaction_group_id,
                "sequence": e.sequence,
                "account_id": e.account_id,
                "debit_amount": str(e.debit_amount),
                "credit_amount": str(e.credit_amount),
                "description": e.description,
                "source_transaction_id": e.source_transaction_id,
            }
            for e in entries
        ],
    }


# =========================================================================
# 호환성 검증
# =========================================================================


@dataclass
class CompatibilityReport:
    """변환 비교 결과"""

    is_compatible: bool
    mismatches: list[str] = field(default_factory=list)


class CompatibilityValidator:
    """변환 결과 구조 필드 비교기

    변환이 성공했다고 가정하지 않고, 모든 구조 필드를 비교하여 불일치를 보고.

    Args:
        policy: 금액 비교 허용 오차
    """

    def __init__(self, policy: BalancePolicy | None = None):
        self.policy = policy or BalancePolicy()

    def _compare(self, mismatches: list[str], label: str, left: Any, right: Any) -> None:
        if left != right:
            mismatches.append(f"{label}: {left!r} != {right!r}")

    def _compare_amount(self, mismatches: list[str], label: str, left: Decimal, right: Decimal) -> None:
        if not self.policy.amounts_match(left, right):
            mismatches.append(f"{label}: {left} != {right}")

    def compare_groups(
        self,
        group: TransactionGroup,
        legacy: LegacyTransactionGroup,
        legacy_entries: list[LegacyEntry],
    ) -> CompatibilityReport:
        """내장형 그룹과 구 세대 그룹 비교"""
        mismatches: list[str] = []
        self._compare(mismatches, "id", group.id, legacy.id)
        self._compare(mismatches, "group_number", group.group_number, legacy.group_number)
        self._compare(mismatches, "description", group.description, legacy.description)
        self._compare(mismatches, "status", group.status.value, legacy.status)
        self._compare_amount(mismatches, "total_amount", from_minor(group.total_amount), legacy.total_amount)
        self._compare(mismatches, "entry_count", len(group.entries), len(legacy_entries))

        legacy_sorted = sorted(legacy_entries, key=lambda e: e.sequence)
        for entry, legacy_entry in zip(group.entries, legacy_sorted):
            label = f"entry[{entry.sequence}]"
            self._compare(mismatches, f"{label}.sequence", entry.sequence, legacy_entry.sequence)
            self._compare(mismatches, f"{label}.account_id", entry.account_id, legacy_entry.account_id)
            self._compare_amount(
                mismatches, f"{label}.debit_amount", from_minor(entry.debit_amount), legacy_entry.debit_amount
            )
            self._compare_amount(
                mismatches, f"{label}.credit_amount", from_minor(entry.credit_amount), legacy_entry.credit_amount
            )

        legacy_debit = sum((e.debit_amount for e in legacy_entries), Decimal("0"))
        legacy_credit = sum((e.credit_amount for e in legacy_entries), Decimal("0"))
        legacy_balanced = self.policy.amounts_match(legacy_debit, legacy_credit)
        group_balanced = self.policy.is_balanced(group.total_debit - group.total_credit)
        self._compare(mismatches, "is_balanced", group_balanced, legacy_balanced)

        return CompatibilityReport(is_compatible=not mismatches, mismatches=mismatches)

    def compare_accounts(self, account: Account, legacy: LegacyAccount) -> CompatibilityReport:
        """Account와 구 세대 계정 비교"""
        mismatches: list[str] = []
        self._compare(mismatches, "id", account.id, legacy.id)
        self._compare(mismatches, "code", account.code, legacy.code)
        self._compare(mismatches, "name", account.name, legacy.name)
        self._compare(mismatches, "type", account.account_type.value, legacy.type)
        self._compare(mismatches, "parent_id", account.parent_id, legacy.parent_id)
        self._compare(mismatches, "is_active", account.is_active, legacy.is_active)
        self._compare_amount(mismatches, "balance", from_minor(account.balance), legacy.balance)
        return CompatibilityReport(is_compatible=not mismatches, mismatches=mismatches)


# =========================================================================
# 시스템 호환성 점검
# =========================================================================


@dataclass
class SystemCompatibility:
    """DB 전체 스키마 세대 점검 결과

    version: "legacy" | "embedded" | "mixed" | "empty"
    """

    version: str
    legacy_groups: int
    embedded_groups: int
    orphaned_entries: int
    issues: list[str] = field(default_factory=list)

    @property
    def is_healthy(self) -> bool:
        return not self.issues


async def check_system_compatibility(db: "SQLiteAdapter") -> SystemCompatibility:
    """스키마 세대 혼재 여부와 참조 무결성 점검

    - 세대별 그룹 수
    - 그룹 없는 구 세대 분개 (고아 분개)
    - 분개 없는 구 세대 그룹
    - 존재하지 않는 계정을 참조하는 구 세대 분개
    - 존재하지 않는 자금 출처를 참조하는 그룹
    - 최소 단위로 표현되지 않거나 숫자가 아닌 구 세대 분개 금액
    """
    row = await db.fetchone(
        """
        SELECT
            SUM(CASE WHEN schema_version = 1 THEN 1 ELSE 0 END) AS legacy_cnt,
            SUM(CASE WHEN schema_version = 2 THEN 1 ELSE 0 END) AS embedded_cnt
        FROM transaction_group
        """
    )
    legacy_groups = int(row["legacy_cnt"] or 0) if row else 0
    embedded_groups = int(row["embedded_cnt"] or 0) if row else 0

    orphaned = await count_orphaned_entries(db)
    empty_groups = await count_legacy_groups_without_entries(db)
    imprecise, malformed = await count_irregular_legacy_amounts(db)

    missing_accounts = await db.fetchone(
        """
        SELECT COUNT(*) AS cnt FROM accounting_entry ae
        JOIN transaction_group g ON g.id = ae.transaction_group_id AND g.schema_version = 1
        WHERE NOT EXISTS (SELECT 1 FROM account a WHERE a.id = ae.account_id)
        """
    )
    dangling_sources = await db.fetchone(
        """
        SELECT COUNT(*) AS cnt FROM transaction_group g
        WHERE g.source_transaction_id IS NOT NULL
          AND NOT EXISTS (SELECT 1 FROM transaction_group s WHERE s.id = g.source_transaction_id)
        """
    )

    issues: list[str] = []
    if orphaned:
        issues.append(f"{orphaned} legacy entries reference missing transaction groups")
    if empty_groups:
        issues.append(f"{empty_groups} legacy transaction groups have no entries")
    if imprecise:
        issues.append(f"{imprecise} legacy entries have amounts finer than 0.01 (rounded on read)")
    if malformed:
        issues.append(f"{malformed} legacy entries have non-numeric amounts")
    if missing_accounts and missing_accounts["cnt"]:
        issues.append(f"{missing_accounts['cnt']} legacy entries reference missing accounts")
    if dangling_sources and dangling_sources["cnt"]:
        issues.append(f"{dangling_sources['cnt']} transaction groups reference missing funding sources")

    if legacy_groups and embedded_groups:
        version = "mixed"
    elif legacy_groups:
        version = "legacy"
    elif embedded_groups:
        version = "embedded"
    else:
        version = "empty"

    return SystemCompatibility(
        version=version,
        legacy_groups=legacy_groups,
        embedded_groups=embedded_groups,
        orphaned_entries=orphaned,
        issues=issues,
    )


async def count_orphaned_entries(db: "SQLiteAdapter") -> int:
    """그룹이 존재하지 않는 구 세대 분개 수"""
    row = await db.fetchone(
        """
        SELECT COUNT(*) AS cnt FROM accounting_entry ae
        WHERE NOT EXISTS (SELECT 1 FROM transaction_group g WHERE g.id = ae.transaction_group_id)
        """
    )
    return int(row["cnt"]) if row else 0


async def count_irregular_legacy_amounts(db: "SQLiteAdapter") -> tuple[int, int]:
    """구 세대 그룹 분개 중 (소수 2자리 초과, 숫자 아님) 금액을 가진 행 수"""
    rows = await db.fetch_dicts(
        """
        SELECT ae.debit_amount, ae.credit_amount FROM accounting_entry ae
        JOIN transaction_group g ON g.id = ae.transaction_group_id AND g.schema_version = 1
        """
    )
    imprecise = malformed = 0
    for row in rows:
        try:
            amounts = [parse_legacy_amount(row[key], key) for key in ("debit_amount", "credit_amount")]
        except ValidationError:
            malformed += 1
            continue
        if any(has_sub_minor_precision(a) for a in amounts):
            imprecise += 1
    return imprecise, malformed


async def count_legacy_groups_without_entries(db: "SQLiteAdapter") -> int:
    """분개가 없는 구 세대 그룹 수"""
    row = await db.fetchone(
        """
        SELECT COUNT(*) AS cnt FROM transaction_group g
        WHERE g.schema_version = 1
          AND NOT EXISTS (SELECT 1 FROM accounting_entry ae WHERE ae.transaction_group_id = g.id)
        """
    )
    return int(row["cnt"]) if row else 0


def legacy_group_from_row(row: dict[str, Any]) -> LegacyTransactionGroup:
    """transaction_group 행 → LegacyTransactionGroup"""
    return LegacyTransactionGroup(
        id=row["id"],
        group_number=row["group_number"],
        description=row["description"] or "",
        transaction_date=parse_datetime(row["transaction_date"]),
        organization_id=row["organization_id"],
        created_by=row["created_by"],
        status=row["status"],
        total_amount=from_minor(int(row["total_amount"] or 0)),
        source_transaction_id=row["source_transaction_id"],
        linked_transaction_ids=json.loads(row["linked_transaction_ids_json"] or "[]"),
        funding_type=row["funding_type"] or FundingType.ORIGINAL.value,
        created_at=parse_datetime(row["created_at"]),
        updated_at=parse_datetime(row["updated_at"]),
        confirmed_at=parse_datetime(row["confirmed_at"]),
    )


async def compare_with_legacy(
    db: "SQLiteAdapter",
    group: TransactionGroup,
    validator: CompatibilityValidator,
) -> tuple[dict[str, Any], CompatibilityReport, str]:
    """그룹의 구 세대 투영과 비교

    저장된 구 세대 분개가 있으면 (마이그레이션 전/후 보존 행) 그것과 비교,
    없으면 그룹을 구 세대 형식으로 변환한 결과와 비교.

    Returns:
        (구 세대 dict, 비교 결과, 비교 기준 "stored" | "converted")
    """
    legacy, converted_entries = group_to_legacy(group)
    rows = await db.fetch_dicts(
        """
        SELECT id, transaction_group_id, sequence, account_id, debit_amount,
               credit_amount, description, source_transaction_id, funding_path_json
        FROM accounting_entry
        WHERE transaction_group_id = ?
        ORDER BY sequence
        """,
        (group.id,),
    )
    if rows:
        legacy_entries = [legacy_entry_from_row(r) for r in rows]
        basis = "stored"
    else:
        legacy_entries = converted_entries
        basis = "converted"

    report = validator.compare_groups(group, legacy, legacy_entries)
    if not report.is_compatible:
        logger.warning(f"구 세대 비교 불일치: {group.group_number} {report.mismatches}")
    return legacy_to_dict(legacy, legacy_entries), report, basis
