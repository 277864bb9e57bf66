"""
Web API 테스트 fixture

httpx AsyncClient + ASGITransport 로 앱을 직접 호출.
요청 단위 DB 연결은 테스트 DB 로 교체 (lifespan 은 실행되지 않으므로 스키마는 db fixture 가 초기화).
"""

from typing import AsyncGenerator

import httpx
import pytest_asyncio

from adapters.db.sqlite_adapter import SQLiteAdapter
from web.app import app
from web.dependencies import get_db_write

USER_HEADERS = {"X-User-Id": "user-1"}


@pytest_asyncio.fixture
async def client(db: SQLiteAdapter) -> AsyncGenerator[httpx.AsyncClient, None]:
    async def _test_db() -> AsyncGenerator[SQLiteAdapter, None]:
        yield db

    app.dependency_overrides[get_db_write] = _test_db
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as http:
        yield http
    app.dependency_overrides.clear()
