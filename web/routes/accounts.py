"""
계정과목 API

GET    /api/accounts                   - 목록 (tree=true면 트리)
POST   /api/accounts                   - 생성
GET    /api/accounts/{id}              - 단건
PUT    /api/accounts/{id}              - 수정
POST   /api/accounts/{id}/deactivate   - 비활성화
DELETE /api/accounts/{id}              - 삭제 (미사용 계정만)
"""

from fastapi import APIRouter, Depends, Path, Query

from core.ledger.context import LedgerContext
from core.ledger.dto import to_account_dto, to_account_tree_dto
from core.types import AccountType, AuthContext
from web.dependencies import get_auth_context, get_ledger
from web.models.requests import AccountCreateRequest, AccountUpdateRequest
from web.models.responses import ApiResponse, ok

router = APIRouter(prefix="/api/accounts", tags=["accounts"])


@router.get("", response_model=ApiResponse)
async def list_accounts(
    organization_id: str | None = Query(default=None, description="조직 ID"),
    account_type: AccountType | None = Query(default=None, description="계정 유형"),
    include_inactive: bool = Query(default=False, description="비활성 계정 포함"),
    tree: bool = Query(default=False, description="트리 형태로 반환"),
    ledger: LedgerContext = Depends(get_ledger),
) -> ApiResponse:
    """계정 목록 (code 순)"""
    if tree:
        nodes = await ledger.accounts.tree(organization_id=organization_id, include_inactive=include_inactive)
        return ok([to_account_tree_dto(n) for n in nodes])

    accounts = await ledger.accounts.list_accounts(
        organization_id=organization_id,
        account_type=account_type,
        include_inactive=include_inactive,
    )
    return ok([to_account_dto(a) for a in accounts])


@router.post("", response_model=ApiResponse, status_code=201)
async def create_account(
    request: AccountCreateRequest,
    auth: AuthContext = Depends(get_auth_context),
    ledger: LedgerContext = Depends(get_ledger),
) -> ApiResponse:
    """계정 생성"""
    account = await ledger.accounts.create(
        code=request.code,
        name=request.name,
        account_type=request.account_type,
        organization_id=request.organization_id,
        normal_balance=request.normal_balance,
        parent_id=request.parent_id,
        description=request.description,
    )
    return ok(to_account_dto(account), message="Account created", status_code=201)


@router.get("/{account_id}", response_model=ApiResponse)
async def get_account(
    account_id: str = Path(..., description="계정 ID"),
    ledger: LedgerContext = Depends(get_ledger),
) -> ApiResponse:
    account = await ledger.accounts.get(account_id)
    return ok(to_account_dto(account))


@router.put("/{account_id}", response_model=ApiResponse)
async def update_account(
    request: AccountUpdateRequest,
    account_id: str = Path(..., description="계정 ID"),
    auth: AuthContext = Depends(get_auth_context),
    ledger: LedgerContext = Depends(get_ledger),
) -> ApiResponse:
    """계정 수정 (유형/정상 잔액 방향 제외)"""
    account = await ledger.accounts.update(
        account_id,
        code=request.code,
        name=request.name,
        parent_id=request.parent_id,
        description=request.description,
        clear_parent=request.clear_parent,
    )
    return ok(to_account_dto(account), message="Account updated")


@router.post("/{account_id}/deactivate", response_model=ApiResponse)
async def deactivate_account(
    account_id: str = Path(..., description="계정 ID"),
    auth: AuthContext = Depends(get_auth_context),
    ledger: LedgerContext = Depends(get_ledger),
) -> ApiResponse:
    account = await ledger.accounts.deactivate(account_id)
    return ok(to_account_dto(account), message="Account deactivated")


@router.delete("/{account_id}", response_model=ApiResponse)
async def delete_account(
    account_id: str = Path(..., description="계정 ID"),
    auth: AuthContext = Depends(get_auth_context),
    ledger: LedgerContext = Depends(get_ledger),
) -> ApiResponse:
    """계정 삭제 (하위 계정이나 분개 참조가 있으면 409)"""
    await ledger.accounts.delete(account_id)
    return ok({"id": account_id}, message="Account deleted")
