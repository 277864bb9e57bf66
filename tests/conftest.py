"""
pytest 공통 fixture 정의

원장 테스트용 임시 DB, 원장 컴포넌트, 기본 계정 fixture
"""

from datetime import datetime, timezone
from pathlib import Path
from typing import Any, AsyncGenerator, Callable

import pytest
import pytest_asyncio

from adapters.db.sqlite_adapter import SQLiteAdapter
from core.ledger.context import LedgerContext, build_ledger
from core.ledger.models import Entry, GroupInput
from core.ledger.schema import init_ledger_schema
from core.types import AccountType, AuthContext

ORG_ID = "org-1"
TX_DATE = datetime(2026, 1, 2, tzinfo=timezone.utc)


@pytest.fixture
def temp_dir(tmp_path: Path) -> Path:
    """OS 독립적인 임시 디렉토리"""
    return tmp_path


@pytest_asyncio.fixture
async def db(tmp_path: Path) -> AsyncGenerator[SQLiteAdapter, None]:
    """원장 스키마가 초기화된 임시 DB"""
    adapter = SQLiteAdapter(tmp_path / "ledger.db")
    await adapter.connect()
    await init_ledger_schema(adapter)
    yield adapter
    await adapter.close()


@pytest.fixture
def ledger(db: SQLiteAdapter) -> LedgerContext:
    """기본 설정 원장 컴포넌트"""
    return build_ledger(db)


@pytest.fixture
def auth() -> AuthContext:
    return AuthContext(user_id="user-1")


@pytest.fixture
def other_auth() -> AuthContext:
    return AuthContext(user_id="user-2")


@pytest_asyncio.fixture
async def accounts(ledger: LedgerContext) -> dict[str, str]:
    """기본 계정 (현금/매출/비용/부채) → {이름: id}"""
    cash = await ledger.accounts.create("1000", "현금", AccountType.ASSET, ORG_ID)
    revenue = await ledger.accounts.create("4000", "매출", AccountType.REVENUE, ORG_ID)
    expense = await ledger.accounts.create("5000", "비용", AccountType.EXPENSE, ORG_ID)
    payable = await ledger.accounts.create("2000", "미지급금", AccountType.LIABILITY, ORG_ID)
    return {"cash": cash.id, "revenue": revenue.id, "expense": expense.id, "payable": payable.id}


@pytest.fixture
def make_input(accounts: dict[str, str]) -> Callable[..., GroupInput]:
    """균형 잡힌 2분개 GroupInput 생성기

    기본: 비용 차변 / 현금 대변, 금액은 최소 단위
    """

    def _make(
        amount: int = 100_000,
        debit: str = "expense",
        credit: str = "cash",
        credit_amount: int | None = None,
        **kwargs: Any,
    ) -> GroupInput:
        entries = kwargs.pop(
            "entries",
            [
                Entry(account_id=accounts[debit], debit_amount=amount),
                Entry(
                    account_id=accounts[credit],
                    credit_amount=amount if credit_amount is None else credit_amount,
                ),
            ],
        )
        return GroupInput(
            description=kwargs.pop("description", "테스트 거래"),
            transaction_date=kwargs.pop("transaction_date", TX_DATE),
            organization_id=kwargs.pop("organization_id", ORG_ID),
            entries=entries,
            **kwargs,
        )

    return _make
