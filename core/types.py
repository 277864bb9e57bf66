"""
타입 정의 모듈

Enum, Dataclass 등 핵심 타입 정의
모든 Enum은 str을 상속하여 문자열 직렬화 가능
"""

from dataclasses import dataclass
from enum import Enum


class AccountType(str, Enum):
    """계정 유형 (5대 계정)"""

    ASSET = "asset"
    LIABILITY = "liability"
    EQUITY = "equity"
    REVENUE = "revenue"
    EXPENSE = "expense"


class NormalBalance(str, Enum):
    """정상 잔액 방향"""

    DEBIT = "debit"
    CREDIT = "credit"


class TransactionStatus(str, Enum):
    """거래 그룹 상태

    draft → confirmed → (unlock) draft
    draft → cancelled (종료 상태)
    """

    DRAFT = "draft"
    CONFIRMED = "confirmed"
    CANCELLED = "cancelled"


class FundingType(str, Enum):
    """자금 유형

    original: 자체 자금 (다른 거래에서 끌어오지 않음)
    derived: 다른 거래를 자금 출처로 사용
    """

    ORIGINAL = "original"
    DERIVED = "derived"


class SchemaVersion(int, Enum):
    """거래 그룹 저장 스키마 세대"""

    LEGACY = 1  # 분개가 accounting_entry 테이블에 정규화되어 저장
    EMBEDDED = 2  # 분개가 transaction_group.entries_json 에 내장


def default_normal_balance(account_type: "AccountType | str") -> NormalBalance:
    """계정 유형별 기본 정상 잔액 방향

    asset/expense → debit, liability/equity/revenue → credit
    """
    value = account_type.value if isinstance(account_type, Enum) else account_type
    if value in (AccountType.ASSET.value, AccountType.EXPENSE.value):
        return NormalBalance.DEBIT
    return NormalBalance.CREDIT


@dataclass(frozen=True)
class AuthContext:
    """요청 행위자 (불변)

    인증 미들웨어가 확인한 사용자 ID를 원장 함수에 명시적으로 전달.
    """

    user_id: str
