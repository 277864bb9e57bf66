"""
원장 DTO 매핑

엔티티 → 응답 dict 명시적 변환 함수.
금액은 "1000.00" 형식 문자열, 시각은 UTC ISO 8601.
"""

from typing import Any

from core.ledger.funding import FundingFlow, FundingValidation, SourceCandidate
from core.ledger.models import (
    Account,
    AccountNode,
    Entry,
    FundingUsage,
    Page,
    ReferenceSummary,
    TransactionGroup,
    summarize,
)
from core.ledger.money import format_amount
from core.ledger.validator import ValidationResult
from core.utils.timezone import isoformat_utc


def to_account_dto(account: Account) -> dict[str, Any]:
    """Account → dict"""
    return {
        "id": account.id,
        "code": account.code,
        "name": account.name,
        "account_type": account.account_type.value,
        "normal_balance": account.normal_balance.value,
        "parent_id": account.parent_id,
        "is_active": account.is_active,
        "balance": format_amount(account.balance),
        "description": account.description,
        "organization_id": account.organization_id,
        "created_at": isoformat_utc(account.created_at),
        "updated_at": isoformat_utc(account.updated_at),
    }


def to_account_tree_dto(node: AccountNode) -> dict[str, Any]:
    """AccountNode → dict (children 재귀)"""
    data = to_account_dto(node.account)
    data["children"] = [to_account_tree_dto(child) for child in node.children]
    return data


def to_entry_dto(entry: Entry) -> dict[str, Any]:
    return {
        "sequence": entry.sequence,
        "account_id": entry.account_id,
        "debit_amount": format_amount(entry.debit_amount),
        "credit_amount": format_amount(entry.credit_amount),
        "description": entry.description,
        "source_transaction_id": entry.source_transaction_id,
        "funding_path": list(entry.funding_path),
    }


def to_reference_summary_dto(summary: ReferenceSummary) -> dict[str, Any]:
    return {
        "id": summary.id,
        "group_number": summary.group_number,
        "description": summary.description,
        "total_amount": format_amount(summary.total_amount),
        "status": summary.status.value,
    }


def to_funding_usage_dto(usage: FundingUsage) -> dict[str, Any]:
    return {
        "source_transaction_id": usage.source_transaction_id,
        "user_transaction_id": usage.user_transaction_id,
        "user_group_number": usage.user_group_number,
        "entry_sequence": usage.entry_sequence,
        "amount": format_amount(usage.amount),
    }


def to_balance_dto(result: ValidationResult) -> dict[str, Any]:
    """ValidationResult → 균형 응답"""
    return {
        "total_debit": format_amount(result.total_debit),
        "total_credit": format_amount(result.total_credit),
        "difference": format_amount(result.difference),
        "is_balanced": result.is_balanced,
    }


def to_transaction_group_dto(
    group: TransactionGroup,
    referenced_by: list[ReferenceSummary] | None = None,
    usages: list[FundingUsage] | None = None,
    balance: ValidationResult | None = None,
) -> dict[str, Any]:
    """TransactionGroup → dict

    referenced_by / usages / balance 는 조회 시 계산된 값을 넘겨받아 포함.
    """
    data: dict[str, Any] = {
        "id": group.id,
        "group_number": group.group_number,
        "description": group.description,
        "transaction_date": isoformat_utc(group.transaction_date),
        "organization_id": group.organization_id,
        "status": group.status.value,
        "total_amount": format_amount(group.total_amount),
        "source_transaction_id": group.source_transaction_id,
        "linked_transaction_ids": list(group.linked_transaction_ids),
        "funding_type": group.funding_type.value,
        "entries": [to_entry_dto(e) for e in group.entries],
        "created_by": group.created_by,
        "created_at": isoformat_utc(group.created_at),
        "updated_at": isoformat_utc(group.updated_at),
        "confirmed_at": isoformat_utc(group.confirmed_at),
        "version": group.version,
        "schema_version": int(group.schema_version),
        "request_id": group.request_id,
    }
    if referenced_by is not None:
        data["referenced_by_info"] = [to_reference_summary_dto(r) for r in referenced_by]
    if usages is not None:
        data["funding_source_usages"] = [to_funding_usage_dto(u) for u in usages]
    if balance is not None:
        data["balance"] = to_balance_dto(balance)
    return data


def to_page_dto(page: Page) -> dict[str, Any]:
    """거래 그룹 Page → 페이지 응답"""
    return {
        "items": [to_transaction_group_dto(g) for g in page.items],
        "pagination": {
            "page": page.page,
            "limit": page.limit,
            "total": page.total,
            "total_pages": page.total_pages,
        },
    }


def to_source_candidate_dto(candidate: SourceCandidate) -> dict[str, Any]:
    group = candidate.group
    return {
        "id": group.id,
        "group_number": group.group_number,
        "description": group.description,
        "transaction_date": isoformat_utc(group.transaction_date),
        "total_amount": format_amount(group.total_amount),
        "used_amount": format_amount(candidate.used_amount),
        "available_amount": format_amount(candidate.available_amount),
    }


def to_funding_flow_dto(flow: FundingFlow) -> dict[str, Any]:
    return {
        "transaction": to_reference_summary_dto(summarize(flow.group)),
        "source_path": [to_reference_summary_dto(s) for s in flow.upstream],
        "linked_transactions": [to_funding_usage_dto(u) for u in flow.downstream],
        "funding_source_usages": [to_funding_usage_dto(u) for u in flow.funding_source_usages],
        "used_amount": format_amount(flow.used_amount),
        "available_amount": format_amount(flow.available_amount),
    }


def to_funding_validation_dto(validation: FundingValidation) -> dict[str, Any]:
    return {
        "sources": [
            {
                "source_transaction_id": s.source_transaction_id,
                "group_number": s.group_number,
                "is_valid": s.is_valid,
                "available_amount": format_amount(s.available_amount),
                "reason": s.reason,
            }
            for s in validation.sources
        ],
        "required_amount": format_amount(validation.required_amount),
        "total_available_amount": format_amount(validation.total_available_amount),
        "is_sufficient": validation.is_sufficient,
        "summary": validation.summary,
    }
