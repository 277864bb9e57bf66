"""
원장 컴포넌트 조립

요청 단위 연결 하나에 AccountRegistry, FundingSourceTracker,
EntryValidator, TransactionGroupStore 를 묶어 생성.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING

from core.config.loader import LedgerSettings
from core.ledger.accounts import AccountRegistry
from core.ledger.compat import CompatibilityValidator
from core.ledger.funding import FundingSourceTracker
from core.ledger.money import BalancePolicy
from core.ledger.store import TransactionGroupStore
from core.ledger.validator import EntryValidator

if TYPE_CHECKING:
    from adapters.db.sqlite_adapter import SQLiteAdapter


@dataclass
class LedgerContext:
    """요청 단위 원장 컴포넌트 묶음"""

    db: SQLiteAdapter
    settings: LedgerSettings
    validator: EntryValidator
    compatibility: CompatibilityValidator
    accounts: AccountRegistry
    funding: FundingSourceTracker
    store: TransactionGroupStore


def build_ledger(
    db: SQLiteAdapter,
    settings: LedgerSettings | None = None,
    logger: logging.Logger | None = None,
) -> LedgerContext:
    """원장 컴포넌트 생성

    Args:
        db: 연결된 SQLiteAdapter
        settings: 원장 설정 (None이면 기본값)
        logger: 컴포넌트에 주입할 로거 (None이면 각 모듈 로거)
    """
    settings = settings or LedgerSettings()
    policy = BalancePolicy(tolerance=settings.balance_tolerance)
    validator = EntryValidator(policy)
    accounts = AccountRegistry(db, logger=logger)
    funding = FundingSourceTracker(db, logger=logger)
    store = TransactionGroupStore(
        db,
        accounts=accounts,
        funding=funding,
        validator=validator,
        settings=settings,
        logger=logger,
    )
    return LedgerContext(
        db=db,
        settings=settings,
        validator=validator,
        compatibility=CompatibilityValidator(policy),
        accounts=accounts,
        funding=funding,
        store=store,
    )
