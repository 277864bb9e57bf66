"""
원장 DB SQLite 어댑터

WAL 모드 연결 하나를 요청(또는 마이그레이션 실행) 단위로 공유한다.
쓰기는 transaction() 안에서만 수행하며, BEGIN IMMEDIATE로 쓰기 잠금을
먼저 잡아 거래 번호 발급과 상태 CAS가 직렬화되도록 한다.

주의: SQLite alias로 time, count 사용 금지 (예약어)
"""

import logging
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Any, AsyncIterator

import aiosqlite

from core.config.loader import get_settings

logger = logging.getLogger(__name__)

# 다른 프로세스가 쓰기 잠금을 쥐고 있을 때 대기 시간 (ms)
BUSY_TIMEOUT_MS = 30_000

Params = tuple[Any, ...] | None


def get_db_path() -> Path:
    """settings.yaml 의 database.path (없으면 기본 경로)"""
    return get_settings().db_path


async def create_connection(db_path: Path | str, readonly: bool = False) -> aiosqlite.Connection:
    """원장 DB 연결 생성

    Args:
        db_path: DB 파일 경로 (상위 디렉토리는 자동 생성)
        readonly: True면 URI mode=ro 로 열고 WAL 전환 생략

    Returns:
        row_factory=aiosqlite.Row 가 설정된 연결
    """
    path = Path(db_path)
    path.parent.mkdir(parents=True, exist_ok=True)

    if readonly:
        conn = await aiosqlite.connect(f"file:{path}?mode=ro", uri=True)
    else:
        conn = await aiosqlite.connect(str(path))
        await conn.execute("PRAGMA journal_mode=WAL")

    conn.row_factory = aiosqlite.Row
    await conn.execute(f"PRAGMA busy_timeout={BUSY_TIMEOUT_MS}")
    await conn.execute("PRAGMA foreign_keys=ON")

    logger.debug(f"원장 DB 연결: {path} (readonly={readonly})")
    return conn


class SQLiteAdapter:
    """원장 컴포넌트가 공유하는 DB 연결

    AccountRegistry, TransactionGroupStore, FundingTracker 등이 같은
    인스턴스를 받아 하나의 쓰기 트랜잭션 안에서 협력한다.

    ```python
    async with SQLiteAdapter(db_path) as db:
        async with db.transaction():
            await db.execute("UPDATE transaction_group SET ...")
    ```
    """

    def __init__(self, db_path: Path | str, readonly: bool = False):
        self.db_path = Path(db_path)
        self.readonly = readonly
        self._conn: aiosqlite.Connection | None = None

    @property
    def is_connected(self) -> bool:
        return self._conn is not None

    @property
    def in_transaction(self) -> bool:
        return self._conn is not None and self._conn.in_transaction

    @property
    def conn(self) -> aiosqlite.Connection:
        if self._conn is None:
            raise RuntimeError("Not connected to database")
        return self._conn

    async def connect(self) -> None:
        if self._conn is None:
            self._conn = await create_connection(self.db_path, self.readonly)

    async def close(self) -> None:
        if self._conn is not None:
            await self._conn.close()
            self._conn = None
            logger.debug(f"원장 DB 연결 종료: {self.db_path}")

    async def __aenter__(self) -> "SQLiteAdapter":
        await self.connect()
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.close()

    # -------------------------------------------------------------------------
    # 실행/조회
    # -------------------------------------------------------------------------

    async def execute(self, sql: str, parameters: Params = None) -> aiosqlite.Cursor:
        return await self.conn.execute(sql, parameters or ())

    async def fetchone(self, sql: str, parameters: Params = None) -> aiosqlite.Row | None:
        cursor = await self.execute(sql, parameters)
        return await cursor.fetchone()

    async def fetchall(self, sql: str, parameters: Params = None) -> list[aiosqlite.Row]:
        cursor = await self.execute(sql, parameters)
        return list(await cursor.fetchall())

    async def fetch_dict(self, sql: str, parameters: Params = None) -> dict[str, Any] | None:
        """단일 행을 dict로 (없으면 None)"""
        row = await self.fetchone(sql, parameters)
        return None if row is None else dict(row)

    async def fetch_dicts(self, sql: str, parameters: Params = None) -> list[dict[str, Any]]:
        return [dict(row) for row in await self.fetchall(sql, parameters)]

    async def commit(self) -> None:
        await self.conn.commit()

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator["SQLiteAdapter"]:
        """쓰기 트랜잭션

        블록이 정상 종료되면 커밋, 예외면 롤백 후 재발생.
        이미 트랜잭션 중이면 바깥 트랜잭션에 합류하고 커밋/롤백은 바깥이 담당.
        """
        conn = self.conn
        if conn.in_transaction:
            yield self
            return

        await conn.execute("BEGIN IMMEDIATE")
        try:
            yield self
        except BaseException:
            await conn.rollback()
            raise
        await conn.commit()

    # -------------------------------------------------------------------------
    # 스키마 조회
    # -------------------------------------------------------------------------

    async def table_exists(self, table_name: str) -> bool:
        row = await self.fetchone(
            "SELECT 1 FROM sqlite_master WHERE type = 'table' AND name = ?",
            (table_name,),
        )
        return row is not None

    async def column_names(self, table_name: str) -> list[str]:
        """테이블 컬럼 이름 (정의 순서)"""
        rows = await self.fetchall(f"PRAGMA table_info({table_name})")
        return [row["name"] for row in rows]
