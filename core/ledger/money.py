"""
금액 표현

원장 내부 금액은 정수 최소 단위(센트)로 보관.
API 경계에서만 Decimal 문자열로 변환한다.

예: Decimal("1000.50") ↔ 100050
"""

from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation

from core.constants import LedgerPolicy
from core.errors import ValidationError

_SCALE = Decimal(10) ** LedgerPolicy.MINOR_UNIT_EXPONENT
_QUANT = Decimal(1).scaleb(-LedgerPolicy.MINOR_UNIT_EXPONENT)


def to_minor(value: "Decimal | int | str | float", field: str = "amount") -> int:
    """금액을 정수 최소 단위로 변환

    Args:
        value: 금액 (Decimal, 정수, 문자열 허용)
        field: 오류 메시지용 필드명

    Returns:
        최소 단위 정수

    Raises:
        ValidationError: 숫자가 아니거나 소수 자릿수 초과

    Example:
        >>> to_minor("12.34")
        1234
    """
    if isinstance(value, bool):
        raise ValidationError(f"{field} must be a number")
    try:
        amount = Decimal(str(value))
    except (InvalidOperation, ValueError) as e:
        raise ValidationError(f"{field} must be a number: {value!r}") from e

    if not amount.is_finite():
        raise ValidationError(f"{field} must be a finite number")

    scaled = amount * _SCALE
    if scaled != scaled.to_integral_value():
        raise ValidationError(
            f"{field} has more than {LedgerPolicy.MINOR_UNIT_EXPONENT} decimal places: {value}"
        )
    return int(scaled)


def round_minor(amount: Decimal) -> int:
    """저장된 금액을 최소 단위로 반올림 (ROUND_HALF_UP)

    구 세대 데이터처럼 이미 저장된 값을 읽을 때 사용. API 입력은 to_minor.

    Example:
        >>> round_minor(Decimal("0.105"))
        11
    """
    return int((amount * _SCALE).quantize(Decimal(1), rounding=ROUND_HALF_UP))


def from_minor(minor: int) -> Decimal:
    """최소 단위 정수를 Decimal로 변환 (소수 2자리 고정)"""
    return (Decimal(minor) / _SCALE).quantize(_QUANT)


def format_amount(minor: int) -> str:
    """응답용 금액 문자열 ("1000.00")"""
    return str(from_minor(minor))


@dataclass(frozen=True)
class BalancePolicy:
    """차변/대변 균형 판정 정책

    difference < tolerance 이면 균형.
    기본값 0.01은 최소 단위 1 미만 즉 "차이 0"과 동일하게 동작한다.
    """

    tolerance: Decimal = LedgerPolicy.BALANCE_TOLERANCE

    def is_balanced(self, difference_minor: int) -> bool:
        """차이(최소 단위)가 허용 범위 안인지"""
        return from_minor(abs(difference_minor)) < self.tolerance

    def amounts_match(self, left: Decimal, right: Decimal) -> bool:
        """두 Decimal 금액이 허용 범위 안에서 같은지 (호환성 비교용)"""
        return abs(left - right) < self.tolerance
