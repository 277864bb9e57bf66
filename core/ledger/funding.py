"""
자금 출처 추적

거래 그룹 간 참조 그래프 (어떤 거래가 어떤 거래의 자금을 끌어 쓰는지) 와
각 출처의 사용 가능 금액을 계산.

사용 금액 규칙 (취소되지 않은 참조 그룹 g′ 하나당):
- g′의 분개 중 source_transaction_id == g.id 인 분개가 있으면 그 분개 금액의 합
- 없고 g′.source_transaction_id == g.id 이면 g′.total_amount

available_amount(g) = total_amount(g) - Σ 사용 금액
referenced_by_info, funding_source_usages 는 캐시하지 않고 조회 시 계산.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace
from typing import TYPE_CHECKING

from core.constants import Defaults
from core.errors import NotFoundError, ValidationError
from core.ledger.models import (
    Entry,
    FundingUsage,
    ReferenceSummary,
    TransactionGroup,
    summarize,
)
from core.ledger.money import format_amount
from core.ledger.rows import fetch_group, fetch_groups
from core.types import TransactionStatus

if TYPE_CHECKING:
    from adapters.db.sqlite_adapter import SQLiteAdapter

# 상위 출처 추적 최대 깊이 (순환 데이터 방어)
MAX_FUNDING_DEPTH: int = 32

# g′가 g를 참조하는 조건 (그룹 단위 또는 분개 단위, 구 세대 분개 포함)
_REFERENCING_WHERE = """
    status != 'cancelled'
    AND id != ?
    AND (
        source_transaction_id = ?
        OR (schema_version = 2 AND EXISTS (
            SELECT 1 FROM json_each(transaction_group.entries_json) je
            WHERE json_extract(je.value, '$.source_transaction_id') = ?
        ))
        OR (schema_version = 1 AND EXISTS (
            SELECT 1 FROM accounting_entry ae
            WHERE ae.transaction_group_id = transaction_group.id
              AND ae.source_transaction_id = ?
        ))
    )
"""


def draws_of(group: TransactionGroup) -> dict[str, int]:
    """그룹이 각 출처에서 끌어 쓰는 금액 {source_id: amount}

    분개 단위 선언이 있는 출처는 분개 금액 합, 그 외 그룹 단위 출처는 total_amount.
    """
    draws: dict[str, int] = {}
    for entry in group.entries:
        if entry.source_transaction_id:
            draws[entry.source_transaction_id] = draws.get(entry.source_transaction_id, 0) + entry.amount

    if group.source_transaction_id and group.source_transaction_id not in draws:
        draws[group.source_transaction_id] = group.total_amount
    return draws


def funding_source_usages(group: TransactionGroup) -> list[FundingUsage]:
    """그룹이 다른 거래에서 끌어 쓴 내역 (분개 단위 우선)"""
    usages = [
        FundingUsage(
            source_transaction_id=entry.source_transaction_id,
            user_transaction_id=group.id,
            user_group_number=group.group_number,
            amount=entry.amount,
            entry_sequence=entry.sequence,
        )
        for entry in group.entries
        if entry.source_transaction_id
    ]
    entry_sources = {u.source_transaction_id for u in usages}
    if group.source_transaction_id and group.source_transaction_id not in entry_sources:
        usages.append(
            FundingUsage(
                source_transaction_id=group.source_transaction_id,
                user_transaction_id=group.id,
                user_group_number=group.group_number,
                amount=group.total_amount,
            )
        )
    return usages


@dataclass
class SourceCandidate:
    """사용 가능한 자금 출처 후보"""

    group: TransactionGroup
    used_amount: int
    available_amount: int


@dataclass
class FundingFlow:
    """자금 흐름 (상위 출처 경로 + 하위 사용처)"""

    group: TransactionGroup
    upstream: list[ReferenceSummary] = field(default_factory=list)
    downstream: list[FundingUsage] = field(default_factory=list)
    funding_source_usages: list[FundingUsage] = field(default_factory=list)
    used_amount: int = 0
    available_amount: int = 0


@dataclass
class SourceCheck:
    """출처 하나의 유효성 검사 결과"""

    source_transaction_id: str
    is_valid: bool
    available_amount: int = 0
    group_number: str | None = None
    reason: str | None = None


@dataclass
class FundingValidation:
    """여러 출처에 대한 충분성 검사 결과"""

    sources: list[SourceCheck]
    required_amount: int
    total_available_amount: int

    @property
    def is_sufficient(self) -> bool:
        return self.total_available_amount >= self.required_amount

    @property
    def valid_count(self) -> int:
        return sum(1 for s in self.sources if s.is_valid)

    @property
    def summary(self) -> str:
        return (
            f"{self.valid_count}/{len(self.sources)} sources valid, "
            f"available {format_amount(self.total_available_amount)}, "
            f"required {format_amount(self.required_amount)}"
        )


class FundingSourceTracker:
    """자금 출처 참조 그래프 추적기

    Args:
        db: SQLite 어댑터
        logger: 로거 (None이면 모듈 로거)
    """

    def __init__(self, db: SQLiteAdapter, logger: logging.Logger | None = None):
        self.db = db
        self.logger = logger or logging.getLogger(__name__)

    async def _load(self, group_or_id: TransactionGroup | str) -> TransactionGroup:
        if isinstance(group_or_id, TransactionGroup):
            return group_or_id
        group = await fetch_group(self.db, group_or_id)
        if group is None:
            raise NotFoundError(f"Transaction group not found: {group_or_id}")
        return group

    async def referencing_groups(
        self,
        source_id: str,
        exclude_group_id: str | None = None,
    ) -> list[TransactionGroup]:
        """source_id를 자금 출처로 선언한 취소되지 않은 그룹 (그룹/분개 단위)"""
        where = _REFERENCING_WHERE
        params: tuple = (source_id, source_id, source_id, source_id)
        if exclude_group_id:
            where += " AND id != ?"
            params += (exclude_group_id,)
        return await fetch_groups(self.db, where, params, order_sql="created_at, id")

    async def usages_of(
        self,
        source_id: str,
        exclude_group_id: str | None = None,
    ) -> list[FundingUsage]:
        """source_id에 대한 사용 내역 (사용 그룹별)"""
        usages: list[FundingUsage] = []
        for user in await self.referencing_groups(source_id, exclude_group_id):
            amount = draws_of(user).get(source_id, 0)
            if amount:
                usages.append(
                    FundingUsage(
                        source_transaction_id=source_id,
                        user_transaction_id=user.id,
                        user_group_number=user.group_number,
                        amount=amount,
                    )
                )
        return usages

    async def used_amount(self, source_id: str, exclude_group_id: str | None = None) -> int:
        """source_id에서 이미 사용된 금액"""
        return sum(u.amount for u in await self.usages_of(source_id, exclude_group_id))

    async def available_amount(
        self,
        group: TransactionGroup | str,
        exclude_group_id: str | None = None,
    ) -> int:
        """사용 가능 금액 = total_amount - 사용 금액

        Args:
            group: 출처 그룹 또는 id
            exclude_group_id: 사용 금액 계산에서 제외할 그룹 (수정 중인 자기 자신)
        """
        source = await self._load(group)
        return source.total_amount - await self.used_amount(source.id, exclude_group_id)

    async def referenced_by(self, group: TransactionGroup | str) -> list[ReferenceSummary]:
        """그룹 단위 source_transaction_id로 이 그룹을 참조하는 취소되지 않은 그룹

        잠금 해제 가드와 "N개 거래의 자금 출처" 표시에 사용.
        """
        group_id = group.id if isinstance(group, TransactionGroup) else group
        users = await fetch_groups(
            self.db,
            "source_transaction_id = ? AND status != 'cancelled' AND id != ?",
            (group_id, group_id),
            order_sql="created_at, id",
        )
        return [summarize(u) for u in users]

    async def funding_path(self, source_id: str) -> list[str]:
        """source_id까지의 자금 경로 (가장 상위 출처부터, 마지막이 source_id)

        그룹 단위 출처를 따라 올라가며, 순환이나 최대 깊이에서 중단.
        """
        path: list[str] = [source_id]
        seen = {source_id}
        current = await fetch_group(self.db, source_id)
        while current is not None and current.source_transaction_id and len(path) < MAX_FUNDING_DEPTH:
            parent_id = current.source_transaction_id
            if parent_id in seen:
                self.logger.warning(f"자금 출처 순환 감지: {source_id} → {parent_id}")
                break
            seen.add(parent_id)
            path.append(parent_id)
            current = await fetch_group(self.db, parent_id)
        return list(reversed(path))

    async def _check_source(
        self,
        source_id: str,
        user_group_id: str | None,
    ) -> TransactionGroup:
        """출처로 사용할 수 있는 그룹인지 확인 (존재, 확정, 자기 참조 아님)"""
        if user_group_id and source_id == user_group_id:
            raise ValidationError("A transaction cannot use itself as a funding source")
        source = await fetch_group(self.db, source_id)
        if source is None:
            raise ValidationError(f"Funding source not found: {source_id}")
        if source.status != TransactionStatus.CONFIRMED:
            raise ValidationError(
                f"Funding source {source.group_number} must be confirmed (status '{source.status.value}')",
            )
        return source

    async def check_draw(
        self,
        source_group_id: str,
        amount: int,
        user_group_id: str | None = None,
    ) -> TransactionGroup:
        """출처에서 amount 만큼 끌어 쓸 수 있는지 사전 검사

        Raises:
            ValidationError: 출처 오류 또는 사용 가능 금액 초과
        """
        source = await self._check_source(source_group_id, user_group_id)
        available = await self.available_amount(source, exclude_group_id=user_group_id)
        if amount > available:
            raise ValidationError(
                f"Funding source {source.group_number} has only {format_amount(available)} available, "
                f"requested {format_amount(amount)}",
                details={
                    "source_transaction_id": source.id,
                    "available_amount": format_amount(available),
                    "requested_amount": format_amount(amount),
                },
            )
        return source

    async def check_covers_usage(self, source: TransactionGroup, new_total: int) -> None:
        """출처 총액을 new_total 로 바꿔도 기존 사용 금액을 감당하는지 확인

        쓰기 트랜잭션 안에서 호출 (실패 시 롤백).

        Raises:
            ValidationError: 기존 사용 금액 > new_total
        """
        used = await self.used_amount(source.id, exclude_group_id=source.id)
        if used > new_total:
            raise ValidationError(
                f"Transaction {source.group_number} is already drawn {format_amount(used)}, "
                f"total cannot drop to {format_amount(new_total)}",
                details={
                    "source_transaction_id": source.id,
                    "used_amount": format_amount(used),
                    "total_amount": format_amount(new_total),
                },
            )

    async def record_usage(
        self,
        entry: Entry,
        source_group_id: str,
        amount: int | None = None,
        user_group_id: str | None = None,
    ) -> Entry:
        """분개에 자금 출처를 기록 (사전 검사 포함)

        source_transaction_id 와 funding_path 를 채운 분개 사본을 반환.
        최종 판정은 쓰기 트랜잭션 안의 verify_draws 가 담당.

        Raises:
            ValidationError: 출처 오류 또는 사용 가능 금액 초과
        """
        draw = entry.amount if amount is None else amount
        source = await self.check_draw(source_group_id, draw, user_group_id)
        funding_path = entry.funding_path or await self.funding_path(source.id)
        return replace(entry, source_transaction_id=source.id, funding_path=funding_path)

    async def verify_draws(self, group: TransactionGroup) -> None:
        """쓰기 후 검증: 그룹이 끌어 쓰는 모든 출처가 여전히 유효하고 음수가 되지 않는지

        쓰기 트랜잭션 안에서 호출되어, 실패 시 호출자 트랜잭션이 롤백된다.

        Raises:
            ValidationError: 출처 오류 또는 사용 가능 금액 음수
        """
        for source_id, requested in draws_of(group).items():
            source = await self._check_source(source_id, group.id)
            available = await self.available_amount(source)
            if available < 0:
                raise ValidationError(
                    f"Funding source {source.group_number} has only {format_amount(available + requested)} "
                    f"available, requested {format_amount(requested)}",
                    details={
                        "source_transaction_id": source.id,
                        "available_amount": format_amount(available + requested),
                        "requested_amount": format_amount(requested),
                    },
                )

    async def available_sources(
        self,
        organization_id: str | None = None,
        min_amount: int = 0,
        exclude_group_id: str | None = None,
        limit: int = Defaults.FUNDING_SOURCE_LIMIT,
    ) -> list[SourceCandidate]:
        """사용 가능한 자금 출처 후보

        확정 상태, total_amount > min_amount, 사용 가능 금액 > 0 인 그룹.
        최근 거래일 순으로 최대 limit개 검사.
        """
        conditions = ["status = 'confirmed'", "total_amount > ?"]
        params: list = [min_amount]
        if organization_id:
            conditions.append("organization_id = ?")
            params.append(organization_id)
        if exclude_group_id:
            conditions.append("id != ?")
            params.append(exclude_group_id)

        groups = await fetch_groups(
            self.db,
            " AND ".join(conditions),
            tuple(params),
            order_sql="transaction_date DESC, created_at DESC",
            limit=limit,
        )

        candidates: list[SourceCandidate] = []
        for group in groups:
            used = await self.used_amount(group.id, exclude_group_id)
            available = group.total_amount - used
            if available > 0:
                candidates.append(SourceCandidate(group=group, used_amount=used, available_amount=available))
        return candidates

    async def funding_flow(self, group_id: str) -> FundingFlow:
        """자금 흐름 조회

        - upstream: 그룹 단위 출처를 따라 올라간 경로 (가장 상위부터)
        - downstream: 이 그룹을 출처로 사용하는 거래 내역
        """
        group = await self._load(group_id)

        upstream: list[ReferenceSummary] = []
        if group.source_transaction_id:
            for source_id in await self.funding_path(group.source_transaction_id):
                source = await fetch_group(self.db, source_id)
                if source is not None:
                    upstream.append(summarize(source))

        downstream = await self.usages_of(group.id)
        used = sum(u.amount for u in downstream)

        return FundingFlow(
            group=group,
            upstream=upstream,
            downstream=downstream,
            funding_source_usages=funding_source_usages(group),
            used_amount=used,
            available_amount=group.total_amount - used,
        )

    async def validate_sources(self, source_ids: list[str], required_amount: int) -> FundingValidation:
        """여러 출처의 유효성과 합계 충분성 검사 (쓰기 없음)"""
        checks: list[SourceCheck] = []
        for source_id in dict.fromkeys(source_ids):
            source = await fetch_group(self.db, source_id)
            if source is None:
                checks.append(SourceCheck(source_transaction_id=source_id, is_valid=False, reason="not found"))
                continue
            if source.status != TransactionStatus.CONFIRMED:
                checks.append(
                    SourceCheck(
                        source_transaction_id=source_id,
                        is_valid=False,
                        group_number=source.group_number,
                        reason=f"status is '{source.status.value}'",
                    )
                )
                continue
            available = await self.available_amount(source)
            checks.append(
                SourceCheck(
                    source_transaction_id=source_id,
                    is_valid=available > 0,
                    available_amount=max(available, 0),
                    group_number=source.group_number,
                    reason=None if available > 0 else "no available amount",
                )
            )

        total = sum(c.available_amount for c in checks if c.is_valid)
        return FundingValidation(sources=checks, required_amount=required_amount, total_available_amount=total)
