"""
응답 스키마 (Pydantic)

모든 원장 API는 동일한 봉투 형식으로 응답:
{success, message, data, status_code, timestamp}
"""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field

from core.utils.timezone import now_utc


class ApiResponse(BaseModel):
    """공통 응답 봉투"""

    success: bool = Field(..., description="성공 여부")
    message: str = Field(..., description="결과 메시지")
    data: Any | None = Field(default=None, description="응답 데이터")
    status_code: int | None = Field(default=None, description="HTTP 상태 코드")
    timestamp: datetime = Field(default_factory=now_utc, description="응답 시간 (UTC)")


class HealthResponse(BaseModel):
    """헬스 체크 응답"""

    status: str = Field(default="ok", description="서비스 상태")
    version: str = Field(..., description="앱 버전")
    db_path: str = Field(..., description="원장 DB 경로")


def ok(data: Any = None, message: str = "OK", status_code: int = 200) -> ApiResponse:
    """성공 응답 생성"""
    return ApiResponse(success=True, message=message, data=data, status_code=status_code)


def error_body(message: str, status_code: int, data: Any = None) -> dict[str, Any]:
    """오류 응답 본문 (exception handler용)"""
    return ApiResponse(
        success=False,
        message=message,
        data=data,
        status_code=status_code,
    ).model_dump(mode="json")
