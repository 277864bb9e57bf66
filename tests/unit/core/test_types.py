"""
core/types.py 테스트

모든 Enum이 문자열 직렬화 가능하고, AuthContext가 올바르게 동작하는지 확인
"""

import dataclasses

import pytest

from core.types import (
    AccountType,
    AuthContext,
    FundingType,
    NormalBalance,
    SchemaVersion,
    TransactionStatus,
    default_normal_balance,
)


class TestEnums:
    def test_string_values(self) -> None:
        assert TransactionStatus.DRAFT == "draft"
        assert FundingType("derived") is FundingType.DERIVED
        assert AccountType.REVENUE.value == "revenue"

    def test_schema_version_is_int(self) -> None:
        assert SchemaVersion.LEGACY == 1
        assert int(SchemaVersion.EMBEDDED) == 2
        assert SchemaVersion(2) is SchemaVersion.EMBEDDED


class TestDefaultNormalBalance:
    @pytest.mark.parametrize(
        "account_type, expected",
        [
            (AccountType.ASSET, NormalBalance.DEBIT),
            (AccountType.EXPENSE, NormalBalance.DEBIT),
            (AccountType.LIABILITY, NormalBalance.CREDIT),
            (AccountType.EQUITY, NormalBalance.CREDIT),
            ("revenue", NormalBalance.CREDIT),
        ],
    )
    def test_mapping(self, account_type, expected) -> None:
        assert default_normal_balance(account_type) == expected


class TestAuthContext:
    def test_frozen(self) -> None:
        auth = AuthContext(user_id="user-1")
        with pytest.raises(dataclasses.FrozenInstanceError):
            auth.user_id = "user-2"  # type: ignore[misc]
