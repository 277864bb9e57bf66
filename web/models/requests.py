"""
요청 스키마 (Pydantic)

Web API 요청 데이터 검증.
금액은 숫자 또는 문자열 ("1000.50"), 소수 2자리까지.
"""

from decimal import Decimal

from pydantic import BaseModel, Field

from core.types import AccountType, FundingType, NormalBalance


class EntryRequest(BaseModel):
    """분개 요청"""

    account_id: str = Field(..., description="계정 ID")
    debit_amount: Decimal = Field(default=Decimal("0"), description="차변 금액")
    credit_amount: Decimal = Field(default=Decimal("0"), description="대변 금액")
    description: str = Field(default="", description="분개 적요")
    sequence: int | None = Field(default=None, ge=1, description="그룹 내 순번 (미지정 시 자동)")
    source_transaction_id: str | None = Field(default=None, description="이 분개의 자금 출처 거래 ID")
    funding_path: list[str] = Field(default_factory=list, description="다단계 자금 경로")


class TransactionGroupRequest(BaseModel):
    """거래 그룹 생성/수정 요청"""

    description: str = Field(default="", description="거래 설명")
    transaction_date: str = Field(..., description="거래일 (ISO 8601)")
    organization_id: str = Field(..., description="조직 ID")
    entries: list[EntryRequest] = Field(..., description="분개 목록 (2개 이상)")
    source_transaction_id: str | None = Field(default=None, description="대표 자금 출처 거래 ID")
    linked_transaction_ids: list[str] = Field(default_factory=list, description="연결 거래 ID 목록")
    funding_type: FundingType | None = Field(default=None, description="자금 유형 (미지정 시 자동)")
    request_id: str | None = Field(default=None, description="멱등성 키 (생성 시)")
    expected_version: int | None = Field(
        default=None,
        description="예상 버전 (낙관적 락, 수정 시, None이면 무시)",
    )

    model_config = {
        "json_schema_extra": {
            "examples": [
                {
                    "description": "사무용품 구입",
                    "transaction_date": "2026-01-02",
                    "organization_id": "org-1",
                    "entries": [
                        {"account_id": "acc-expense", "debit_amount": "1000.00"},
                        {"account_id": "acc-cash", "credit_amount": "1000.00"},
                    ],
                }
            ]
        }
    }


class VersionRequest(BaseModel):
    """상태 전이 요청 (확정/잠금 해제/취소)"""

    expected_version: int | None = Field(
        default=None,
        description="예상 버전 (낙관적 락, None이면 무시)",
    )


class FundingValidateRequest(BaseModel):
    """자금 출처 충분성 검사 요청"""

    source_transaction_ids: list[str] = Field(..., min_length=1, description="출처 거래 ID 목록")
    required_amount: Decimal = Field(..., description="필요 금액")


class AccountCreateRequest(BaseModel):
    """계정 생성 요청"""

    code: str = Field(..., description="계정 코드 (조직 내 유일)")
    name: str = Field(..., description="계정명")
    account_type: AccountType = Field(..., description="계정 유형")
    organization_id: str = Field(..., description="조직 ID")
    normal_balance: NormalBalance | None = Field(default=None, description="정상 잔액 방향 (미지정 시 유형 기본값)")
    parent_id: str | None = Field(default=None, description="상위 계정 ID")
    description: str | None = Field(default=None, description="설명")


class AccountUpdateRequest(BaseModel):
    """계정 수정 요청"""

    code: str | None = Field(default=None, description="계정 코드")
    name: str | None = Field(default=None, description="계정명")
    parent_id: str | None = Field(default=None, description="상위 계정 ID")
    clear_parent: bool = Field(default=False, description="상위 계정 해제")
    description: str | None = Field(default=None, description="설명")
