"""
분개 검증

거래 그룹 분개 목록에 대한 순수 검증 함수.
UI 미리보기와 서버 측 게이트에서 동일하게 사용 (부작용 없음).
"""

from dataclasses import dataclass, field

from core.errors import ValidationError
from core.ledger.models import Entry
from core.ledger.money import BalancePolicy, format_amount

MIN_ENTRIES: int = 2


@dataclass(frozen=True)
class ValidationResult:
    """분개 검증 결과 (금액은 최소 단위)"""

    is_valid: bool
    errors: list[str] = field(default_factory=list)
    total_debit: int = 0
    total_credit: int = 0
    difference: int = 0
    is_balanced: bool = False

    @property
    def total_amount(self) -> int:
        return max(self.total_debit, self.total_credit)


class EntryValidator:
    """분개 검증기

    - 분개 2개 미만 거부
    - 계정 누락, 차변/대변 모두 0, 모두 양수, 음수 금액 거부
    - sequence 중복 거부
    - difference < tolerance 이면 균형

    Args:
        policy: 균형 판정 정책 (허용 오차)
    """

    def __init__(self, policy: BalancePolicy | None = None):
        self.policy = policy or BalancePolicy()

    def validate(self, entries: list[Entry]) -> ValidationResult:
        """분개 목록 검증

        Args:
            entries: 검증할 분개 목록

        Returns:
            ValidationResult
        """
        errors: list[str] = []

        if len(entries) < MIN_ENTRIES:
            errors.append(f"At least {MIN_ENTRIES} entries are required, got {len(entries)}")

        seen_sequences: set[int] = set()
        for index, entry in enumerate(entries, start=1):
            prefix = f"Entry {index}"
            if not entry.account_id:
                errors.append(f"{prefix}: account_id is required")
            if entry.debit_amount < 0 or entry.credit_amount < 0:
                errors.append(f"{prefix}: amounts must not be negative")
            elif entry.debit_amount == 0 and entry.credit_amount == 0:
                errors.append(f"{prefix}: either debit or credit amount must be positive")
            elif entry.debit_amount > 0 and entry.credit_amount > 0:
                errors.append(f"{prefix}: debit and credit cannot both be positive")
            if entry.sequence is not None:
                if entry.sequence in seen_sequences:
                    errors.append(f"{prefix}: duplicate sequence {entry.sequence}")
                seen_sequences.add(entry.sequence)

        total_debit = sum(e.debit_amount for e in entries)
        total_credit = sum(e.credit_amount for e in entries)
        difference = abs(total_debit - total_credit)
        is_balanced = self.policy.is_balanced(difference)

        if not is_balanced:
            errors.append(
                f"Entries are not balanced: debit {format_amount(total_debit)}, "
                f"credit {format_amount(total_credit)}, difference {format_amount(difference)}"
            )

        return ValidationResult(
            is_valid=not errors,
            errors=errors,
            total_debit=total_debit,
            total_credit=total_credit,
            difference=difference,
            is_balanced=is_balanced,
        )

    def ensure_valid(self, entries: list[Entry]) -> ValidationResult:
        """검증 후 실패 시 ValidationError

        Raises:
            ValidationError: 검증 실패 (details에 오류 목록과 합계 포함)
        """
        result = self.validate(entries)
        if not result.is_valid:
            raise ValidationError(
                "; ".join(result.errors),
                details={
                    "errors": result.errors,
                    "total_debit": format_amount(result.total_debit),
                    "total_credit": format_amount(result.total_credit),
                    "difference": format_amount(result.difference),
                },
            )
        return result


def normalize_sequences(entries: list[Entry]) -> list[Entry]:
    """sequence 미지정 분개에 순번 부여 후 sequence 순 정렬

    지정된 값은 유지, 미지정 분개는 기존 최대값 다음부터 부여.
    """
    next_seq = max((e.sequence for e in entries if e.sequence is not None), default=0) + 1
    for entry in entries:
        if entry.sequence is None:
            entry.sequence = next_seq
            next_seq += 1
    return sorted(entries, key=lambda e: e.sequence or 0)
