"""
거래 그룹 API

GET    /api/transactions                               - 목록 (필터/페이지)
POST   /api/transactions                               - 생성 (draft)
GET    /api/transactions/funding/available-sources     - 자금 출처 후보
POST   /api/transactions/funding/validate              - 자금 출처 충분성 검사
GET    /api/transactions/{id}                          - 상세
PUT    /api/transactions/{id}                          - 수정 (draft만)
DELETE /api/transactions/{id}                          - 삭제 (draft만)
POST   /api/transactions/{id}/confirm|unlock|cancel    - 상태 전이
GET    /api/transactions/{id}/balance                  - 균형 검사
GET    /api/transactions/{id}/funding-flow             - 자금 흐름
"""

from decimal import Decimal

from fastapi import APIRouter, Body, Depends, Path, Query

from core.constants import Defaults
from core.errors import ValidationError
from core.ledger.compat import compare_with_legacy
from core.ledger.context import LedgerContext
from core.ledger.dto import (
    to_balance_dto,
    to_funding_flow_dto,
    to_funding_validation_dto,
    to_page_dto,
    to_source_candidate_dto,
    to_transaction_group_dto,
)
from core.ledger.funding import funding_source_usages
from core.ledger.models import Entry, GroupFilter, GroupInput, TransactionGroup
from core.ledger.money import to_minor
from core.types import AuthContext, TransactionStatus
from core.utils.timezone import parse_datetime
from web.dependencies import get_auth_context, get_ledger
from web.models.requests import FundingValidateRequest, TransactionGroupRequest, VersionRequest
from web.models.responses import ApiResponse, ok

router = APIRouter(prefix="/api/transactions", tags=["transactions"])


def _parse_date(value: str | None, field: str):
    """쿼리/본문 날짜 파싱 (형식 오류는 ValidationError)"""
    try:
        return parse_datetime(value)
    except ValueError as e:
        raise ValidationError(f"Invalid {field}: {value}", details={"field": field}) from e


def _to_input(request: TransactionGroupRequest) -> GroupInput:
    """요청 → GroupInput (금액은 최소 단위 정수로 변환)"""
    transaction_date = _parse_date(request.transaction_date, "transaction_date")
    if transaction_date is None:
        raise ValidationError("transaction_date is required")

    entries = [
        Entry(
            account_id=e.account_id,
            debit_amount=to_minor(e.debit_amount, f"entries[{i}].debit_amount"),
            credit_amount=to_minor(e.credit_amount, f"entries[{i}].credit_amount"),
            description=e.description,
            sequence=e.sequence,
            source_transaction_id=e.source_transaction_id,
            funding_path=list(e.funding_path),
        )
        for i, e in enumerate(request.entries)
    ]
    return GroupInput(
        description=request.description,
        transaction_date=transaction_date,
        organization_id=request.organization_id,
        entries=entries,
        source_transaction_id=request.source_transaction_id,
        linked_transaction_ids=list(request.linked_transaction_ids),
        funding_type=request.funding_type,
        request_id=request.request_id,
    )


async def _detail(ledger: LedgerContext, group: TransactionGroup) -> dict:
    """상세 응답 (참조 정보, 자금 사용 내역, 균형 포함)"""
    referenced_by = await ledger.funding.referenced_by(group)
    return to_transaction_group_dto(
        group,
        referenced_by=referenced_by,
        usages=funding_source_usages(group),
        balance=ledger.validator.validate(group.entries),
    )


# =========================================================================
# 목록/생성
# =========================================================================


@router.get("", response_model=ApiResponse)
async def list_transactions(
    status: TransactionStatus | None = Query(default=None, description="상태 필터"),
    organization_id: str | None = Query(default=None, description="조직 ID"),
    search: str | None = Query(default=None, description="거래 번호/설명 검색"),
    start_date: str | None = Query(default=None, description="시작일 (포함)"),
    end_date: str | None = Query(default=None, description="종료일 (포함)"),
    page: int = Query(default=1, ge=1),
    limit: int | None = Query(default=None, ge=1),
    ledger: LedgerContext = Depends(get_ledger),
) -> ApiResponse:
    """거래 그룹 목록 (거래일 내림차순)"""
    filters = GroupFilter(
        status=status,
        organization_id=organization_id,
        search=search,
        start_date=_parse_date(start_date, "start_date"),
        end_date=_parse_date(end_date, "end_date"),
    )
    result = await ledger.store.list_groups(filters, page=page, limit=limit)
    return ok(to_page_dto(result))


@router.post("", response_model=ApiResponse, status_code=201)
async def create_transaction(
    request: TransactionGroupRequest,
    auth: AuthContext = Depends(get_auth_context),
    ledger: LedgerContext = Depends(get_ledger),
) -> ApiResponse:
    """거래 그룹 생성 (draft, 거래 번호 자동 부여)"""
    group = await ledger.store.create(_to_input(request), auth)
    return ok(await _detail(ledger, group), message="Transaction group created", status_code=201)


# =========================================================================
# 자금 출처 ({id} 라우트보다 먼저 선언)
# =========================================================================


@router.get("/funding/available-sources", response_model=ApiResponse)
async def available_sources(
    organization_id: str | None = Query(default=None, description="조직 ID"),
    min_amount: Decimal = Query(default=Decimal("0"), description="최소 총액"),
    exclude_id: str | None = Query(default=None, description="제외할 거래 ID (수정 중인 거래)"),
    limit: int = Query(default=Defaults.FUNDING_SOURCE_LIMIT, ge=1, le=200),
    ledger: LedgerContext = Depends(get_ledger),
) -> ApiResponse:
    """사용 가능 금액이 남은 확정 거래 목록"""
    candidates = await ledger.funding.available_sources(
        organization_id=organization_id,
        min_amount=to_minor(min_amount, "min_amount"),
        exclude_group_id=exclude_id,
        limit=limit,
    )
    return ok([to_source_candidate_dto(c) for c in candidates])


@router.post("/funding/validate", response_model=ApiResponse)
async def validate_funding(
    request: FundingValidateRequest,
    ledger: LedgerContext = Depends(get_ledger),
) -> ApiResponse:
    """출처 목록의 유효성과 합계 충분성 검사 (쓰기 없음)"""
    validation = await ledger.funding.validate_sources(
        request.source_transaction_ids,
        to_minor(request.required_amount, "required_amount"),
    )
    return ok(to_funding_validation_dto(validation), message=validation.summary)


# =========================================================================
# 단건
# =========================================================================


@router.get("/{group_id}", response_model=ApiResponse)
async def get_transaction(
    group_id: str = Path(..., description="거래 그룹 ID"),
    include_compatibility: bool = Query(default=False, description="구 세대 투영 비교 포함"),
    ledger: LedgerContext = Depends(get_ledger),
) -> ApiResponse:
    """거래 그룹 상세"""
    group = await ledger.store.get(group_id)
    data = await _detail(ledger, group)
    if include_compatibility:
        legacy, report, basis = await compare_with_legacy(ledger.db, group, ledger.compatibility)
        data["compatibility"] = {
            "basis": basis,
            "is_compatible": report.is_compatible,
            "mismatches": report.mismatches,
            "legacy": legacy,
        }
    return ok(data)


@router.put("/{group_id}", response_model=ApiResponse)
async def update_transaction(
    request: TransactionGroupRequest,
    group_id: str = Path(..., description="거래 그룹 ID"),
    auth: AuthContext = Depends(get_auth_context),
    ledger: LedgerContext = Depends(get_ledger),
) -> ApiResponse:
    """거래 그룹 수정 (draft만, 분개 전체 교체)"""
    group = await ledger.store.update(
        group_id,
        _to_input(request),
        auth,
        expected_version=request.expected_version,
    )
    return ok(await _detail(ledger, group), message="Transaction group updated")


@router.delete("/{group_id}", response_model=ApiResponse)
async def delete_transaction(
    group_id: str = Path(..., description="거래 그룹 ID"),
    expected_version: int | None = Query(default=None, description="예상 버전"),
    auth: AuthContext = Depends(get_auth_context),
    ledger: LedgerContext = Depends(get_ledger),
) -> ApiResponse:
    """거래 그룹 삭제 (draft만, 자금 출처로 사용 중이면 거부)"""
    await ledger.store.delete(group_id, auth, expected_version=expected_version)
    return ok({"id": group_id}, message="Transaction group deleted")


# =========================================================================
# 상태 전이
# =========================================================================


@router.post("/{group_id}/confirm", response_model=ApiResponse)
async def confirm_transaction(
    group_id: str = Path(..., description="거래 그룹 ID"),
    request: VersionRequest | None = Body(default=None),
    auth: AuthContext = Depends(get_auth_context),
    ledger: LedgerContext = Depends(get_ledger),
) -> ApiResponse:
    """draft → confirmed (균형 검사 후 계정 잔액 반영)"""
    expected = request.expected_version if request else None
    group = await ledger.store.confirm(group_id, auth, expected_version=expected)
    return ok(await _detail(ledger, group), message="Transaction group confirmed")


@router.post("/{group_id}/unlock", response_model=ApiResponse)
async def unlock_transaction(
    group_id: str = Path(..., description="거래 그룹 ID"),
    request: VersionRequest | None = Body(default=None),
    auth: AuthContext = Depends(get_auth_context),
    ledger: LedgerContext = Depends(get_ledger),
) -> ApiResponse:
    """confirmed → draft (다른 거래의 자금 출처이면 409)"""
    expected = request.expected_version if request else None
    group = await ledger.store.unlock(group_id, auth, expected_version=expected)
    return ok(await _detail(ledger, group), message="Transaction group unlocked")


@router.post("/{group_id}/cancel", response_model=ApiResponse)
async def cancel_transaction(
    group_id: str = Path(..., description="거래 그룹 ID"),
    request: VersionRequest | None = Body(default=None),
    auth: AuthContext = Depends(get_auth_context),
    ledger: LedgerContext = Depends(get_ledger),
) -> ApiResponse:
    """draft → cancelled (작성자만)"""
    expected = request.expected_version if request else None
    group = await ledger.store.cancel(group_id, auth, expected_version=expected)
    return ok(await _detail(ledger, group), message="Transaction group cancelled")


# =========================================================================
# 조회 보조
# =========================================================================


@router.get("/{group_id}/balance", response_model=ApiResponse)
async def transaction_balance(
    group_id: str = Path(..., description="거래 그룹 ID"),
    ledger: LedgerContext = Depends(get_ledger),
) -> ApiResponse:
    """차변/대변 합계와 균형 여부"""
    result = await ledger.store.balance(group_id)
    return ok(to_balance_dto(result))


@router.get("/{group_id}/funding-flow", response_model=ApiResponse)
async def transaction_funding_flow(
    group_id: str = Path(..., description="거래 그룹 ID"),
    ledger: LedgerContext = Depends(get_ledger),
) -> ApiResponse:
    """상위 출처 경로와 하위 사용 내역"""
    flow = await ledger.funding.funding_flow(group_id)
    return ok(to_funding_flow_dto(flow))
