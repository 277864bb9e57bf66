"""
원장 엔티티

Account, Entry, TransactionGroup 및 조회 시 계산되는 파생 구조.
금액 필드는 모두 정수 최소 단위.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from core.types import (
    AccountType,
    FundingType,
    NormalBalance,
    SchemaVersion,
    TransactionStatus,
)


@dataclass
class Account:
    """계정과목

    code는 organization_id 범위에서 유일.
    balance는 확정된 거래 그룹으로부터 누적된 캐시 잔액.
    """

    id: str
    code: str
    name: str
    account_type: AccountType
    normal_balance: NormalBalance
    organization_id: str
    parent_id: str | None = None
    is_active: bool = True
    balance: int = 0
    description: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None


@dataclass
class AccountNode:
    """계정 트리 노드"""

    account: Account
    children: list["AccountNode"] = field(default_factory=list)


@dataclass
class Entry:
    """분개 (거래 그룹에 내장, 독립 식별자 없음)

    debit_amount / credit_amount 중 정확히 하나만 양수.
    """

    account_id: str
    debit_amount: int = 0
    credit_amount: int = 0
    description: str = ""
    sequence: int | None = None
    source_transaction_id: str | None = None
    funding_path: list[str] = field(default_factory=list)

    @property
    def amount(self) -> int:
        """양수 쪽 금액"""
        return max(self.debit_amount, self.credit_amount)

    def to_document(self) -> dict[str, Any]:
        """entries_json 저장 형식"""
        return {
            "sequence": self.sequence,
            "account_id": self.account_id,
            "debit_amount": self.debit_amount,
            "credit_amount": self.credit_amount,
            "description": self.description,
            "source_transaction_id": self.source_transaction_id,
            "funding_path": list(self.funding_path),
        }

    @classmethod
    def from_document(cls, doc: dict[str, Any]) -> "Entry":
        """entries_json 항목에서 복원"""
        return cls(
            sequence=doc.get("sequence"),
            account_id=doc["account_id"],
            debit_amount=int(doc.get("debit_amount") or 0),
            credit_amount=int(doc.get("credit_amount") or 0),
            description=doc.get("description") or "",
            source_transaction_id=doc.get("source_transaction_id"),
            funding_path=list(doc.get("funding_path") or []),
        )


@dataclass
class TransactionGroup:
    """거래 그룹 (원장 기록 단위)

    entries는 sequence 순으로 정렬되어 보관.
    version은 상태/내용 변경마다 1씩 증가 (CAS 비교 대상).
    """

    id: str
    group_number: str
    description: str
    transaction_date: datetime
    organization_id: str
    created_by: str
    entries: list[Entry] = field(default_factory=list)
    status: TransactionStatus = TransactionStatus.DRAFT
    total_amount: int = 0
    source_transaction_id: str | None = None
    linked_transaction_ids: list[str] = field(default_factory=list)
    funding_type: FundingType = FundingType.ORIGINAL
    created_at: datetime | None = None
    updated_at: datetime | None = None
    confirmed_at: datetime | None = None
    version: int = 1
    schema_version: SchemaVersion = SchemaVersion.EMBEDDED
    request_id: str | None = None

    @property
    def total_debit(self) -> int:
        return sum(e.debit_amount for e in self.entries)

    @property
    def total_credit(self) -> int:
        return sum(e.credit_amount for e in self.entries)


@dataclass
class GroupInput:
    """거래 그룹 생성/수정 입력

    funding_type이 None이면 자금 출처 선언 여부로 결정.
    """

    description: str
    transaction_date: datetime
    organization_id: str
    entries: list[Entry]
    source_transaction_id: str | None = None
    linked_transaction_ids: list[str] = field(default_factory=list)
    funding_type: FundingType | None = None
    request_id: str | None = None


@dataclass
class GroupFilter:
    """목록 조회 필터"""

    status: TransactionStatus | None = None
    organization_id: str | None = None
    search: str | None = None
    start_date: datetime | None = None
    end_date: datetime | None = None


@dataclass
class Page:
    """페이지 조회 결과"""

    items: list[Any]
    total: int
    page: int
    limit: int

    @property
    def total_pages(self) -> int:
        if self.limit <= 0:
            return 0
        return (self.total + self.limit - 1) // self.limit


@dataclass(frozen=True)
class ReferenceSummary:
    """참조 거래 요약 (unlock 거부 시 반환되는 의존 거래)"""

    id: str
    group_number: str
    description: str
    total_amount: int
    status: TransactionStatus


@dataclass(frozen=True)
class FundingUsage:
    """자금 출처 사용 내역

    entry_sequence가 None이면 그룹 단위 출처 선언에 의한 사용.
    """

    source_transaction_id: str
    user_transaction_id: str
    amount: int
    entry_sequence: int | None = None
    source_group_number: str | None = None
    user_group_number: str | None = None


def summarize(group: TransactionGroup) -> ReferenceSummary:
    """TransactionGroup → ReferenceSummary"""
    return ReferenceSummary(
        id=group.id,
        group_number=group.group_number,
        description=group.description,
        total_amount=group.total_amount,
        status=group.status,
    )
