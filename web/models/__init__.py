"""
Web 모델 패키지

Pydantic 스키마 정의
"""

from web.models.requests import (
    AccountCreateRequest,
    AccountUpdateRequest,
    EntryRequest,
    FundingValidateRequest,
    TransactionGroupRequest,
    VersionRequest,
)
from web.models.responses import (
    ApiResponse,
    HealthResponse,
    error_body,
    ok,
)

__all__ = [
    # Requests
    "AccountCreateRequest",
    "AccountUpdateRequest",
    "EntryRequest",
    "FundingValidateRequest",
    "TransactionGroupRequest",
    "VersionRequest",
    # Responses
    "ApiResponse",
    "HealthResponse",
    "error_body",
    "ok",
]
