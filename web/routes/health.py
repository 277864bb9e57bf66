"""
헬스 체크 엔드포인트

GET /health                - 서버 상태 확인
GET /health/compatibility  - 원장 스키마 세대 점검
"""

from fastapi import APIRouter, Depends

from core.config.loader import Settings
from core.constants import APP_VERSION
from core.ledger.compat import check_system_compatibility
from core.ledger.context import LedgerContext
from core.ledger.migration import latest_report
from web.dependencies import get_app_settings, get_ledger
from web.models.responses import ApiResponse, HealthResponse, ok

router = APIRouter(tags=["health"])


@router.get("/health", response_model=HealthResponse)
async def health_check(settings: Settings = Depends(get_app_settings)) -> HealthResponse:
    """서버 상태 확인

    Returns:
        HealthResponse: status, version, db_path 정보
    """
    return HealthResponse(
        status="ok",
        version=APP_VERSION,
        db_path=str(settings.db_path),
    )


@router.get("/health/compatibility", response_model=ApiResponse)
async def compatibility_check(ledger: LedgerContext = Depends(get_ledger)) -> ApiResponse:
    """구 세대/내장형 그룹 수, 고아 분개, 무결성 이슈, 최근 마이그레이션 보고서"""
    result = await check_system_compatibility(ledger.db)
    return ok(
        {
            "version": result.version,
            "legacy_groups": result.legacy_groups,
            "embedded_groups": result.embedded_groups,
            "orphaned_entries": result.orphaned_entries,
            "issues": result.issues,
            "is_healthy": result.is_healthy,
            "latest_migration": await latest_report(ledger.db),
        }
    )
