"""
타임존 유틸리티

내부 저장: UTC ISO 8601 문자열 원칙 준수를 위한 헬퍼 함수
"""

from datetime import date, datetime, timezone


def now_utc() -> datetime:
    """현재 UTC 시간 반환 (타임존 명시)

    datetime.now(timezone.utc)의 축약형.

    Returns:
        현재 UTC 시간 (tzinfo=timezone.utc)
    """
    return datetime.now(timezone.utc)


def to_utc(dt: datetime) -> datetime:
    """datetime을 UTC로 변환

    Args:
        dt: datetime 객체 (naive면 UTC로 간주)

    Returns:
        UTC 타임존의 datetime
    """
    if dt.tzinfo is None:
        # naive datetime은 UTC로 간주
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def isoformat_utc(dt: datetime | None) -> str | None:
    """UTC ISO 8601 문자열 (None 허용)"""
    if dt is None:
        return None
    return to_utc(dt).isoformat()


def parse_datetime(value: str | datetime | date | None) -> datetime | None:
    """문자열/날짜를 UTC datetime으로 변환

    Args:
        value: ISO 8601 문자열, date, datetime 또는 None

    Returns:
        UTC datetime (None이면 None)

    Raises:
        ValueError: 형식이 잘못된 경우

    Example:
        >>> parse_datetime("2026-01-02")
        datetime(2026, 1, 2, 0, 0, tzinfo=timezone.utc)
    """
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return to_utc(value)
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day, tzinfo=timezone.utc)

    text = value.strip()
    # JavaScript toISOString() 형식 (끝의 Z)
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    return to_utc(datetime.fromisoformat(text))


def date_key(dt: datetime) -> str:
    """거래 번호용 날짜 키 (UTC 기준 YYYYMMDD)"""
    return to_utc(dt).strftime("%Y%m%d")
