"""
유틸리티 패키지

거래 번호 생성, 타임존 처리 등 공통 유틸리티
"""

from core.utils.idempotency import (
    group_number_prefix,
    make_group_number,
    parse_group_number,
)
from core.utils.timezone import (
    date_key,
    isoformat_utc,
    now_utc,
    parse_datetime,
    to_utc,
)

__all__ = [
    "group_number_prefix",
    "make_group_number",
    "parse_group_number",
    "date_key",
    "isoformat_utc",
    "now_utc",
    "parse_datetime",
    "to_utc",
]
