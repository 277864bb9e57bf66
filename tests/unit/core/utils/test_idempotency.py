"""
core/utils/idempotency.py 테스트

거래 그룹 번호 생성, 파싱 테스트
"""

import pytest

from core.utils.idempotency import (
    SEQUENCE_WIDTH,
    group_number_prefix,
    make_group_number,
    parse_group_number,
)


class TestMakeGroupNumber:
    """make_group_number 함수 테스트"""

    def test_basic_generation(self) -> None:
        """기본 생성"""
        assert make_group_number("20260102", 7) == "TXN-20260102-007"

    def test_width(self) -> None:
        """3자리 zero-padding"""
        assert SEQUENCE_WIDTH == 3
        assert make_group_number("20260102", 1).endswith("-001")

    def test_overflow_expands(self) -> None:
        """999 초과 시 자릿수 확장"""
        assert make_group_number("20260102", 1000) == "TXN-20260102-1000"

    def test_deterministic(self) -> None:
        """동일 입력 → 동일 출력 (결정적)"""
        assert make_group_number("20260102", 3) == make_group_number("20260102", 3)

    @pytest.mark.parametrize("day_key", ["", "2026012", "2026-01-02", "abcdefgh"])
    def test_invalid_day_key(self, day_key: str) -> None:
        with pytest.raises(ValueError):
            make_group_number(day_key, 1)

    def test_invalid_sequence(self) -> None:
        with pytest.raises(ValueError):
            make_group_number("20260102", 0)


class TestParseGroupNumber:
    """parse_group_number 함수 테스트"""

    def test_roundtrip(self) -> None:
        assert parse_group_number(make_group_number("20260102", 42)) == ("20260102", 42)

    @pytest.mark.parametrize(
        "value",
        ["", "TXN-20260102", "ABC-20260102-001", "TXN-2026012-001", "TXN-20260102-abc"],
    )
    def test_invalid(self, value: str) -> None:
        assert parse_group_number(value) is None

    def test_prefix_matches_generated_numbers(self) -> None:
        assert group_number_prefix("20260102") == "TXN-20260102-"
        assert make_group_number("20260102", 5).startswith(group_number_prefix("20260102"))
