"""
복식부기 거래 원장

거래 그룹(분개 묶음) 기록, 자금 출처 참조 추적, 확정 상태 관리,
구 세대 스키마 마이그레이션.

사용 예시:
```python
from core.ledger import build_ledger, GroupInput, Entry

ledger = build_ledger(db, settings.ledger)

group = await ledger.store.create(
    GroupInput(
        description="사무용품 구입",
        transaction_date=now_utc(),
        organization_id="org-1",
        entries=[
            Entry(account_id=expense_id, debit_amount=100000),
            Entry(account_id=cash_id, credit_amount=100000),
        ],
    ),
    auth,
)
await ledger.store.confirm(group.id, auth)

available = await ledger.funding.available_amount(group.id)
```
"""

from core.ledger.accounts import AccountRegistry
from core.ledger.compat import CompatibilityValidator, check_system_compatibility
from core.ledger.context import LedgerContext, build_ledger
from core.ledger.funding import FundingSourceTracker
from core.ledger.migration import MigrationAdapter, MigrationReport
from core.ledger.models import (
    Account,
    Entry,
    FundingUsage,
    GroupFilter,
    GroupInput,
    ReferenceSummary,
    TransactionGroup,
)
from core.ledger.money import BalancePolicy, format_amount, from_minor, to_minor
from core.ledger.schema import init_ledger_schema
from core.ledger.store import TransactionGroupStore
from core.ledger.validator import EntryValidator, ValidationResult

__all__ = [
    # 핵심 클래스
    "AccountRegistry",
    "EntryValidator",
    "FundingSourceTracker",
    "TransactionGroupStore",
    "MigrationAdapter",
    "CompatibilityValidator",
    "LedgerContext",
    "build_ledger",
    "init_ledger_schema",
    "check_system_compatibility",
    # 엔티티
    "Account",
    "Entry",
    "TransactionGroup",
    "GroupInput",
    "GroupFilter",
    "ReferenceSummary",
    "FundingUsage",
    "ValidationResult",
    "MigrationReport",
    # 금액
    "BalancePolicy",
    "to_minor",
    "from_minor",
    "format_amount",
]
