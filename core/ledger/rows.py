"""
거래 그룹 행 매핑

transaction_group 행을 TransactionGroup으로 복원.
schema_version=1(구 세대) 그룹은 accounting_entry 행을 읽어 호환 계층으로 변환.
"""

from __future__ import annotations

import json
import logging
from typing import TYPE_CHECKING, Any

from core.errors import InternalError, ValidationError
from core.ledger.compat import (
    group_from_legacy,
    legacy_entry_from_row,
    legacy_group_from_row,
)
from core.ledger.models import Entry, TransactionGroup
from core.types import FundingType, SchemaVersion, TransactionStatus
from core.utils.timezone import parse_datetime

if TYPE_CHECKING:
    from adapters.db.sqlite_adapter import SQLiteAdapter

logger = logging.getLogger(__name__)


GROUP_COLUMNS = """
    id, group_number, description, transaction_date, organization_id, status,
    total_amount, source_transaction_id, linked_transaction_ids_json, funding_type,
    entries_json, schema_version, version, request_id, created_by,
    created_at, updated_at, confirmed_at
"""


def entries_to_json(entries: list[Entry]) -> str:
    """분개 목록 → entries_json"""
    return json.dumps([e.to_document() for e in entries], ensure_ascii=False)


def entries_from_json(text: str | None) -> list[Entry]:
    """entries_json → 분개 목록 (sequence 순)"""
    if not text:
        return []
    entries = [Entry.from_document(doc) for doc in json.loads(text)]
    return sorted(entries, key=lambda e: e.sequence or 0)


def embedded_group_from_row(row: dict[str, Any]) -> TransactionGroup:
    """schema_version=2 행 → TransactionGroup"""
    return TransactionGroup(
        id=row["id"],
        group_number=row["group_number"],
        description=row["description"] or "",
        transaction_date=parse_datetime(row["transaction_date"]),
        organization_id=row["organization_id"],
        created_by=row["created_by"],
        entries=entries_from_json(row["entries_json"]),
        status=TransactionStatus(row["status"]),
        total_amount=int(row["total_amount"] or 0),
        source_transaction_id=row["source_transaction_id"],
        linked_transaction_ids=json.loads(row["linked_transaction_ids_json"] or "[]"),
        funding_type=FundingType(row["funding_type"]),
        created_at=parse_datetime(row["created_at"]),
        updated_at=parse_datetime(row["updated_at"]),
        confirmed_at=parse_datetime(row["confirmed_at"]),
        version=int(row["version"]),
        schema_version=SchemaVersion.EMBEDDED,
        request_id=row["request_id"],
    )


async def load_legacy_entries(
    db: "SQLiteAdapter",
    group_ids: list[str],
) -> dict[str, list[dict[str, Any]]]:
    """구 세대 분개 행을 그룹 id별로 조회 (sequence 순)"""
    result: dict[str, list[dict[str, Any]]] = {gid: [] for gid in group_ids}
    if not group_ids:
        return result

    placeholders = ",".join("?" for _ in group_ids)
    rows = await db.fetch_dicts(
        f"""
        SELECT id, transaction_group_id, sequence, account_id, debit_amount,
               credit_amount, description, source_transaction_id, funding_path_json
        FROM accounting_entry
        WHERE transaction_group_id IN ({placeholders})
        ORDER BY transaction_group_id, sequence
        """,
        tuple(group_ids),
    )
    for row in rows:
        result[row["transaction_group_id"]].append(row)
    return result


async def groups_from_rows(
    db: "SQLiteAdapter",
    rows: list[dict[str, Any]],
) -> list[TransactionGroup]:
    """행 목록 → TransactionGroup 목록 (입력 순서 유지)"""
    legacy_ids = [r["id"] for r in rows if int(r["schema_version"]) == SchemaVersion.LEGACY]
    legacy_entries = await load_legacy_entries(db, legacy_ids)

    groups: list[TransactionGroup] = []
    for row in rows:
        if int(row["schema_version"]) == SchemaVersion.LEGACY:
            legacy = legacy_group_from_row(row)
            try:
                entries = [legacy_entry_from_row(e) for e in legacy_entries[row["id"]]]
            except ValidationError as e:
                logger.error(f"구 세대 분개 손상: {row['group_number']} - {e.message}")
                raise InternalError(
                    f"Stored entries of transaction {row['group_number']} are unreadable",
                    details={"group_id": row["id"]},
                ) from e
            group = group_from_legacy(legacy, entries, version=int(row["version"]))
            group.request_id = row["request_id"]
            groups.append(group)
        else:
            groups.append(embedded_group_from_row(row))
    return groups


async def fetch_groups(
    db: "SQLiteAdapter",
    where_sql: str = "1=1",
    parameters: tuple[Any, ...] = (),
    order_sql: str = "",
    limit: int | None = None,
    offset: int | None = None,
) -> list[TransactionGroup]:
    """조건에 맞는 거래 그룹 조회

    Args:
        db: SQLiteAdapter
        where_sql: WHERE 절 (파라미터 바인딩 사용)
        parameters: 바인딩 값
        order_sql: ORDER BY 절 (선택)
        limit/offset: 페이지 (선택)
    """
    sql = f"SELECT {GROUP_COLUMNS} FROM transaction_group WHERE {where_sql}"
    params = list(parameters)
    if order_sql:
        sql += f" ORDER BY {order_sql}"
    if limit is not None:
        sql += " LIMIT ?"
        params.append(limit)
        if offset:
            sql += " OFFSET ?"
            params.append(offset)
    rows = await db.fetch_dicts(sql, tuple(params))
    return await groups_from_rows(db, rows)


async def fetch_group(db: "SQLiteAdapter", group_id: str) -> TransactionGroup | None:
    """id로 단일 거래 그룹 조회"""
    groups = await fetch_groups(db, "id = ?", (group_id,))
    return groups[0] if groups else None
