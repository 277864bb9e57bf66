"""
원장 통합 테스트 fixture

구 세대(schema_version=1) 거래 그룹을 DB에 직접 기록하는 헬퍼
"""

import json
from decimal import Decimal
from typing import Awaitable, Callable

import pytest

from adapters.db.sqlite_adapter import SQLiteAdapter

LegacyRow = tuple[str, str, str]  # (account_id, debit_amount, credit_amount) 문자열 금액


@pytest.fixture
def insert_legacy_group(db: SQLiteAdapter) -> Callable[..., Awaitable[str]]:
    """구 세대 거래 그룹 + accounting_entry 행 기록

    Returns:
        async (group_id, group_number, entries, ...) -> group_id
    """

    async def _insert(
        group_id: str,
        group_number: str,
        entries: list[LegacyRow],
        status: str = "draft",
        total_amount: int | None = None,
        source_transaction_id: str | None = None,
        entry_source_id: str | None = None,
        organization_id: str = "org-1",
        created_by: str = "user-1",
    ) -> str:
        if total_amount is None:
            total_amount = int(sum(Decimal(d) for _, d, _ in entries) * 100)

        await db.execute(
            """
            INSERT INTO transaction_group (
                id, group_number, description, transaction_date, organization_id, status,
                total_amount, source_transaction_id, linked_transaction_ids_json, funding_type,
                entries_json, schema_version, version, created_by, created_at, updated_at
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, NULL, 1, 1, ?, ?, ?)
            """,
            (
                group_id,
                group_number,
                f"legacy {group_number}",
                "2025-12-01T00:00:00+00:00",
                organization_id,
                status,
                total_amount,
                source_transaction_id,
                json.dumps([]),
                "derived" if (source_transaction_id or entry_source_id) else "original",
                created_by,
                "2025-12-01T00:00:00+00:00",
                "2025-12-01T00:00:00+00:00",
            ),
        )
        for sequence, (account_id, debit, credit) in enumerate(entries, start=1):
            await db.execute(
                """
                INSERT INTO accounting_entry (
                    id, transaction_group_id, sequence, account_id, debit_amount,
                    credit_amount, description, source_transaction_id, funding_path_json
                ) VALUES (?, ?, ?, ?, ?, ?, '', ?, NULL)
                """,
                (
                    f"{group_id}-e{sequence}",
                    group_id,
                    sequence,
                    account_id,
                    debit,
                    credit,
                    entry_source_id if debit != "0" else None,
                ),
            )
        await db.commit()
        return group_id

    return _insert
