"""
확정 상태 가드

TransactionStatusMachine 전이 규칙과 원장 오류(ConflictError 등)를 연결.
DB 쓰기는 하지 않으며, 실제 상태 변경은 TransactionGroupStore의
CAS UPDATE가 담당한다.
"""

from collections.abc import Iterable

from core.domain.state_machines import StateMachineError, TransactionStatusMachine
from core.errors import AuthError, ConflictError, ValidationError
from core.ledger.models import ReferenceSummary, TransactionGroup
from core.ledger.money import format_amount
from core.ledger.validator import MIN_ENTRIES, EntryValidator, ValidationResult
from core.types import AuthContext, TransactionStatus


def require_status(
    group: TransactionGroup,
    allowed: Iterable[TransactionStatus],
    action: str,
) -> None:
    """수정/삭제 허용 상태 확인

    Args:
        group: 대상 거래 그룹
        allowed: 허용 상태 목록 (보통 {draft})
        action: 오류 메시지용 동작 이름

    Raises:
        ConflictError: 허용되지 않은 상태
    """
    allowed_values = {TransactionStatus(s).value for s in allowed}
    if group.status.value not in allowed_values:
        raise ConflictError(
            f"Cannot {action} transaction {group.group_number} in status '{group.status.value}'",
            details={"status": group.status.value, "allowed": sorted(allowed_values)},
        )


def check_transition(group: TransactionGroup, target: TransactionStatus) -> None:
    """상태 전이 허용 여부 확인

    Raises:
        ConflictError: 허용되지 않은 전이 (cancelled 이후 모든 전이 포함)
    """
    machine = TransactionStatusMachine(group.status)
    try:
        machine.transition(target)
    except StateMachineError as e:
        raise ConflictError(
            f"Transaction {group.group_number} cannot move from "
            f"'{group.status.value}' to '{target.value}'",
            details={"status": group.status.value, "target": target.value},
        ) from e


def check_version(group: TransactionGroup, expected_version: int | None) -> None:
    """낙관적 잠금 버전 확인

    Raises:
        ConflictError: 클라이언트가 본 버전과 현재 버전 불일치
    """
    if expected_version is not None and expected_version != group.version:
        raise ConflictError(
            f"Version conflict: expected {expected_version}, current {group.version}",
            details={"expected_version": expected_version, "current_version": group.version},
        )


def check_confirmable(group: TransactionGroup, validator: EntryValidator) -> ValidationResult:
    """확정 가능 여부 (분개 2개 이상 + 균형)

    Raises:
        ValidationError: 분개 부족 또는 불균형 (상태는 변경되지 않음)
    """
    if len(group.entries) < MIN_ENTRIES:
        raise ValidationError(
            f"Transaction {group.group_number} needs at least {MIN_ENTRIES} entries to be confirmed",
            details={"entry_count": len(group.entries)},
        )

    result = validator.validate(group.entries)
    if not result.is_balanced:
        raise ValidationError(
            f"Transaction {group.group_number} is not balanced: "
            f"difference {format_amount(result.difference)}",
            details={
                "total_debit": format_amount(result.total_debit),
                "total_credit": format_amount(result.total_credit),
                "difference": format_amount(result.difference),
            },
        )
    if not result.is_valid:
        raise ValidationError("; ".join(result.errors), details={"errors": result.errors})
    return result


def check_owner(group: TransactionGroup, auth: AuthContext) -> None:
    """소유자 확인 (취소 동작)

    Raises:
        AuthError: 행위자가 생성자가 아님
    """
    if group.created_by != auth.user_id:
        raise AuthError(
            f"Only the creator of transaction {group.group_number} can cancel it",
        )


def dependents_conflict(group: TransactionGroup, dependents: list[ReferenceSummary]) -> ConflictError:
    """잠금 해제 거부 오류 생성 (의존 거래 목록 포함)"""
    return ConflictError(
        f"Transaction {group.group_number} is used as a funding source by "
        f"{len(dependents)} transaction(s); resolve them before unlocking",
        details={
            "dependent_transactions": [
                {
                    "id": d.id,
                    "group_number": d.group_number,
                    "description": d.description,
                    "total_amount": format_amount(d.total_amount),
                    "status": d.status.value,
                }
                for d in dependents
            ]
        },
    )
