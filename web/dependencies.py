"""
의존성 주입

FastAPI의 Depends를 사용한 의존성 관리.
요청마다 DB 연결 하나와 그 위의 원장 컴포넌트를 생성 (요청 단위 작업 단위).
"""

import logging
from typing import AsyncGenerator

from fastapi import Depends, Header

from adapters.db.sqlite_adapter import SQLiteAdapter
from core.config.loader import Settings, get_settings
from core.errors import AuthError
from core.ledger.context import LedgerContext, build_ledger
from core.types import AuthContext

ledger_logger = logging.getLogger("web.ledger")


def get_app_settings() -> Settings:
    """애플리케이션 설정 반환"""
    return get_settings()


async def get_db_write() -> AsyncGenerator[SQLiteAdapter, None]:
    """DB 세션 반환 (쓰기 가능)

    원장 API는 조회도 쓰기 연결을 사용 (WAL 모드에서 읽기는 쓰기를 막지 않음).
    """
    settings = get_settings()
    async with SQLiteAdapter(settings.db_path, readonly=False) as db:
        yield db


def get_ledger(
    db: SQLiteAdapter = Depends(get_db_write),
    settings: Settings = Depends(get_app_settings),
) -> LedgerContext:
    """요청 단위 원장 컴포넌트"""
    return build_ledger(db, settings.ledger, logger=ledger_logger)


def get_auth_context(
    x_user_id: str | None = Header(default=None, alias="X-User-Id"),
) -> AuthContext:
    """인증 미들웨어가 설정한 사용자 ID로 AuthContext 생성

    Raises:
        AuthError: 헤더 없음
    """
    if not x_user_id or not x_user_id.strip():
        raise AuthError("Authentication required: missing X-User-Id header")
    return AuthContext(user_id=x_user_id.strip())
