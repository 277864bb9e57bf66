"""
원장 외부 협력자 인터페이스

원장 코어가 소비만 하고 구현하지 않는 기능의 Protocol 정의.
- AccountExistsCheck: AccountRegistry가 구현
- UnitCostProvider: 재고 원가(FIFO) 계산 서비스가 구현 (원장 외부)
"""

from decimal import Decimal
from typing import Protocol, runtime_checkable

from core.ledger.models import Entry
from core.ledger.money import to_minor


@runtime_checkable
class AccountExistsCheck(Protocol):
    """활성 계정 존재 여부 확인"""

    async def account_exists(self, account_id: str) -> bool:
        ...


@runtime_checkable
class UnitCostProvider(Protocol):
    """품목 단위 원가 제공자 (사전 계산된 값)"""

    async def unit_cost(self, product_id: str) -> Decimal:
        ...


async def build_cost_entries(
    provider: UnitCostProvider,
    product_id: str,
    quantity: int,
    expense_account_id: str,
    inventory_account_id: str,
    description: str = "",
) -> list[Entry]:
    """출고 원가 분개 생성 (차변 비용 / 대변 재고자산)

    금액 = 단위 원가 × 수량 (최소 단위 반올림 없이 정확히 나누어떨어져야 함)

    Raises:
        ValueError: 수량이 0 이하
        ValidationError: 원가 금액의 소수 자릿수 초과
    """
    if quantity <= 0:
        raise ValueError("quantity는 1 이상이어야 합니다")

    unit_cost = await provider.unit_cost(product_id)
    amount = to_minor(unit_cost * quantity, "cost_amount")
    memo = description or f"Cost of goods: {product_id} x {quantity}"
    return [
        Entry(account_id=expense_account_id, debit_amount=amount, description=memo, sequence=1),
        Entry(account_id=inventory_account_id, credit_amount=amount, description=memo, sequence=2),
    ]
