"""
FastAPI 애플리케이션

라우터 등록, 예외 → 응답 봉투 변환, 앱 설정.
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from core.config.loader import get_settings
from core.constants import APP_VERSION
from core.errors import InternalError, LedgerError
from core.logging import setup_logging

# 로깅 설정 (콘솔 + 파일)
setup_logging("web")

from web.models.responses import error_body
from web.routes import accounts, health, transactions

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """앱 생명주기 관리"""
    from adapters.db.sqlite_adapter import SQLiteAdapter
    from core.ledger.schema import init_ledger_schema

    settings = get_settings()

    # 시작 시 - 원장 스키마 자동 초기화
    async with SQLiteAdapter(settings.db_path) as db:
        await init_ledger_schema(db)
    logger.info(f"Web: 원장 DB 준비 완료 ({settings.db_path})")

    yield


app = FastAPI(
    title="fundledger API",
    description="복식부기 거래 원장 API (분개, 확정/잠금 해제, 자금 출처 추적)",
    version=APP_VERSION,
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan,
)

# CORS 설정 (개발용)
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# =========================================================================
# 예외 처리 (모든 오류를 응답 봉투로)
# =========================================================================


@app.exception_handler(LedgerError)
async def ledger_error_handler(request: Request, exc: LedgerError) -> JSONResponse:
    """도메인 오류 → 상태 코드별 봉투"""
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path} 실패: {exc.message}")
    return JSONResponse(
        status_code=exc.status_code,
        content=error_body(exc.message, exc.status_code, exc.details),
    )


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """요청 형식 오류 → 400"""
    errors = [
        {"loc": list(err.get("loc", ())), "message": err.get("msg", "")}
        for err in exc.errors()
    ]
    return JSONResponse(
        status_code=400,
        content=error_body("Invalid request", 400, {"errors": errors}),
    )


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    return JSONResponse(
        status_code=exc.status_code,
        content=error_body(str(exc.detail), exc.status_code),
    )


@app.exception_handler(Exception)
async def unexpected_error_handler(request: Request, exc: Exception) -> JSONResponse:
    """예상하지 못한 오류 → 500 (내부 정보 노출 없음)"""
    logger.exception(f"{request.method} {request.url.path} 처리 중 예외")
    error = InternalError()
    return JSONResponse(
        status_code=error.status_code,
        content=error_body(error.message, error.status_code),
    )


# =========================================================================
# API 라우터 등록
# =========================================================================

app.include_router(health.router)
app.include_router(transactions.router)
app.include_router(accounts.router)
