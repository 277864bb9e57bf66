"""
Idempotency 유틸리티

거래 그룹 번호 생성 및 파싱 기능 제공
규칙: TXN-{YYYYMMDD}-{NNN}
"""

from core.constants import LedgerPolicy

# 일련번호 최소 자릿수 (999 초과 시 자릿수 확장)
SEQUENCE_WIDTH: int = 3


def group_number_prefix(day_key: str) -> str:
    """해당 날짜 거래 번호의 공통 접두사 (TXN-{YYYYMMDD}-)"""
    return f"{LedgerPolicy.GROUP_NUMBER_PREFIX}-{day_key}-"


def make_group_number(day_key: str, sequence: int) -> str:
    """결정적 거래 그룹 번호 생성

    Args:
        day_key: YYYYMMDD 형식 날짜 키
        sequence: 해당 날짜의 일련번호 (1부터)

    Returns:
        group_number: TXN-{day_key}-{NNN} 형식

    Example:
        >>> make_group_number("20260102", 7)
        'TXN-20260102-007'
    """
    if not day_key or len(day_key) != 8 or not day_key.isdigit():
        raise ValueError(f"day_key는 YYYYMMDD 형식이어야 합니다: {day_key!r}")
    if sequence < 1:
        raise ValueError("sequence는 1 이상이어야 합니다")

    return f"{group_number_prefix(day_key)}{sequence:0{SEQUENCE_WIDTH}d}"


def parse_group_number(group_number: str) -> tuple[str, int] | None:
    """거래 그룹 번호에서 (날짜 키, 일련번호) 추출

    Args:
        group_number: TXN-{YYYYMMDD}-{NNN} 형식의 문자열

    Returns:
        (day_key, sequence) 또는 None (형식 불일치 시)

    Example:
        >>> parse_group_number("TXN-20260102-007")
        ('20260102', 7)
        >>> parse_group_number("other-12345")
        None
    """
    if not group_number:
        return None

    parts = group_number.split("-")
    if len(parts) != 3 or parts[0] != LedgerPolicy.GROUP_NUMBER_PREFIX:
        return None

    day_key, seq_text = parts[1], parts[2]
    if len(day_key) != 8 or not day_key.isdigit() or not seq_text.isdigit():
        return None

    return day_key, int(seq_text)
