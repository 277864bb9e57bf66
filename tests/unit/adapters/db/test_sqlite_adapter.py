"""
원장 DB 어댑터 테스트

연결 설정(WAL, Row), 쓰기 트랜잭션 합류/롤백, 스키마 초기화.
"""

from pathlib import Path

import pytest
import pytest_asyncio

from adapters.db.sqlite_adapter import SQLiteAdapter, create_connection, get_db_path
from core.config.loader import Settings, get_settings
from core.constants import Paths
from core.ledger.schema import init_ledger_schema


@pytest_asyncio.fixture
async def memo_db(tmp_path: Path):
    """memo 테이블 하나만 있는 DB"""
    async with SQLiteAdapter(tmp_path / "memo.db") as db:
        await db.execute("CREATE TABLE memo (id INTEGER PRIMARY KEY, body TEXT)")
        await db.commit()
        yield db


async def _memo_count(db: SQLiteAdapter) -> int:
    row = await db.fetchone("SELECT COUNT(*) AS n FROM memo")
    return row["n"]


def test_db_path_defaults_without_settings_file(temp_dir: Path) -> None:
    Settings.reset()
    try:
        get_settings(temp_dir / "missing.yaml")
        assert get_db_path() == Paths.DEFAULT_DB
    finally:
        Settings.reset()


class TestCreateConnection:
    async def test_wal_mode_and_named_columns(self, tmp_path: Path) -> None:
        conn = await create_connection(tmp_path / "ledger.db")
        try:
            mode = await (await conn.execute("PRAGMA journal_mode")).fetchone()
            row = await (await conn.execute("SELECT 7 AS amount")).fetchone()
        finally:
            await conn.close()

        assert mode[0].lower() == "wal"
        assert row["amount"] == 7

    async def test_foreign_keys_enabled(self, tmp_path: Path) -> None:
        conn = await create_connection(tmp_path / "ledger.db")
        try:
            row = await (await conn.execute("PRAGMA foreign_keys")).fetchone()
        finally:
            await conn.close()

        assert row[0] == 1

    async def test_creates_parent_directory(self, tmp_path: Path) -> None:
        db_path = tmp_path / "nested" / "ledger.db"

        conn = await create_connection(db_path)
        await conn.close()

        assert db_path.parent.is_dir()


class TestSQLiteAdapter:
    async def test_context_manager_connects_and_closes(self, tmp_path: Path) -> None:
        db = SQLiteAdapter(tmp_path / "ledger.db")
        assert not db.is_connected

        async with db:
            assert db.is_connected

        assert not db.is_connected

    async def test_requires_connection(self, tmp_path: Path) -> None:
        with pytest.raises(RuntimeError, match="Not connected"):
            await SQLiteAdapter(tmp_path / "ledger.db").execute("SELECT 1")

    async def test_fetch_helpers(self, memo_db: SQLiteAdapter) -> None:
        for body in ("rent", "salary", "fee"):
            await memo_db.execute("INSERT INTO memo (body) VALUES (?)", (body,))
        await memo_db.commit()

        rows = await memo_db.fetch_dicts("SELECT body FROM memo ORDER BY body")
        second = await memo_db.fetch_dict("SELECT body FROM memo WHERE id = ?", (2,))
        missing = await memo_db.fetch_dict("SELECT body FROM memo WHERE id = ?", (99,))

        assert rows == [{"body": "fee"}, {"body": "rent"}, {"body": "salary"}]
        assert second == {"body": "salary"}
        assert missing is None

    async def test_transaction_commits(self, memo_db: SQLiteAdapter) -> None:
        async with memo_db.transaction() as db:
            assert memo_db.in_transaction
            await db.execute("INSERT INTO memo (body) VALUES ('a')")
            await db.execute("INSERT INTO memo (body) VALUES ('b')")

        assert not memo_db.in_transaction
        assert await _memo_count(memo_db) == 2

    async def test_transaction_rolls_back_on_error(self, memo_db: SQLiteAdapter) -> None:
        with pytest.raises(ValueError):
            async with memo_db.transaction() as db:
                await db.execute("INSERT INTO memo (body) VALUES ('a')")
                raise ValueError("중단")

        assert not memo_db.in_transaction
        assert await _memo_count(memo_db) == 0

    async def test_nested_transaction_joins_outer(self, memo_db: SQLiteAdapter) -> None:
        """안쪽 블록은 커밋하지 않으며, 바깥 실패 시 함께 롤백"""
        with pytest.raises(ValueError):
            async with memo_db.transaction():
                async with memo_db.transaction() as inner:
                    await inner.execute("INSERT INTO memo (body) VALUES ('inner')")
                assert memo_db.in_transaction
                raise ValueError("바깥 실패")

        assert await _memo_count(memo_db) == 0

    async def test_schema_introspection(self, memo_db: SQLiteAdapter) -> None:
        assert await memo_db.table_exists("memo")
        assert not await memo_db.table_exists("ghost")
        assert await memo_db.column_names("memo") == ["id", "body"]


class TestInitLedgerSchema:
    async def test_creates_ledger_tables(self, tmp_path: Path) -> None:
        async with SQLiteAdapter(tmp_path / "ledger.db") as db:
            await init_ledger_schema(db)

            for table in (
                "account",
                "transaction_group",
                "accounting_entry",
                "group_number_sequence",
                "migration_report",
            ):
                assert await db.table_exists(table), table

    async def test_idempotent(self, tmp_path: Path) -> None:
        async with SQLiteAdapter(tmp_path / "ledger.db") as db:
            await init_ledger_schema(db)
            await init_ledger_schema(db)

            columns = set(await db.column_names("transaction_group"))

        assert {"entries_json", "schema_version", "version", "request_id"} <= columns
