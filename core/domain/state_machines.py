"""
거래 그룹 상태 머신

draft / confirmed / cancelled 사이의 허용 전이 테이블.
DB를 건드리지 않는 순수 규칙이며, 원장 오류 변환은 core.ledger.confirmation 이 담당.
"""

import logging

from core.types import TransactionStatus

logger = logging.getLogger(__name__)


class StateMachineError(Exception):
    """허용되지 않은 상태 전이"""


def _status(value: str | TransactionStatus) -> TransactionStatus:
    return value if isinstance(value, TransactionStatus) else TransactionStatus(value)


class TransactionStatusMachine:
    """거래 그룹 상태 머신

    - draft → confirmed: 확정
    - confirmed → draft: 잠금 해제
    - draft → cancelled: 취소
    - cancelled 는 종료 상태
    """

    TRANSITIONS: dict[TransactionStatus, frozenset[TransactionStatus]] = {
        TransactionStatus.DRAFT: frozenset({TransactionStatus.CONFIRMED, TransactionStatus.CANCELLED}),
        TransactionStatus.CONFIRMED: frozenset({TransactionStatus.DRAFT}),
        TransactionStatus.CANCELLED: frozenset(),
    }

    def __init__(self, status: str | TransactionStatus = TransactionStatus.DRAFT):
        self._status = _status(status)
        self._moves: list[tuple[str, str]] = []

    @property
    def state(self) -> str:
        return self._status.value

    @property
    def history(self) -> list[tuple[str, str]]:
        """(이전, 이후) 전이 기록 사본"""
        return list(self._moves)

    @property
    def is_terminal(self) -> bool:
        return not self.TRANSITIONS[self._status]

    @property
    def is_editable(self) -> bool:
        """분개/설명 수정 가능 여부 (draft 만)"""
        return self._status is TransactionStatus.DRAFT

    def allowed_targets(self) -> list[str]:
        return sorted(s.value for s in self.TRANSITIONS[self._status])

    def can_transition(self, target: str | TransactionStatus) -> bool:
        return _status(target) in self.TRANSITIONS[self._status]

    def transition(self, target: str | TransactionStatus) -> str:
        """전이 수행

        Raises:
            StateMachineError: 전이 테이블에 없는 이동
        """
        new_status = _status(target)
        if new_status not in self.TRANSITIONS[self._status]:
            raise StateMachineError(
                f"Cannot transition from {self._status.value} to {new_status.value}. "
                f"Allowed: {self.allowed_targets()}"
            )

        self._moves.append((self._status.value, new_status.value))
        logger.debug(f"거래 상태 전이: {self._status.value} → {new_status.value}")
        self._status = new_status
        return new_status.value
