"""자금 출처 추적 통합 테스트

사용 가능 금액, 초과 사용 거부, 잠금 해제 가드, 자금 흐름
"""

import pytest

from core.errors import ConflictError, ValidationError
from core.ledger.models import Entry
from core.types import FundingType, TransactionStatus


@pytest.fixture
def confirmed_source(ledger, auth, make_input):
    """확정된 자금 출처 생성기 (기본 1000.00)"""

    async def _create(amount: int = 100_000, **kwargs):
        group = await ledger.store.create(make_input(amount, debit="cash", credit="revenue", **kwargs), auth)
        return await ledger.store.confirm(group.id, auth)

    return _create


class TestAvailableAmount:
    """사용 가능 금액"""

    async def test_draft_user_consumes_availability(self, ledger, auth, make_input, confirmed_source) -> None:
        """A 1000 확정, B 가 A 에서 400 사용 (draft) → A 사용 가능 600"""
        source = await confirmed_source()

        user = await ledger.store.create(make_input(40_000, source_transaction_id=source.id), auth)

        assert user.funding_type == FundingType.DERIVED
        assert await ledger.funding.used_amount(source.id) == 40_000
        assert await ledger.funding.available_amount(source.id) == 60_000
        assert await ledger.funding.available_amount(source.id, exclude_group_id=user.id) == 100_000

    async def test_over_draw_rejected(self, ledger, auth, make_input, confirmed_source) -> None:
        source = await confirmed_source()
        await ledger.store.create(make_input(40_000, source_transaction_id=source.id), auth)

        with pytest.raises(ValidationError) as exc_info:
            await ledger.store.create(make_input(70_000, source_transaction_id=source.id), auth)

        assert "has only 600.00 available, requested 700.00" in exc_info.value.message
        assert exc_info.value.details["available_amount"] == "600.00"
        assert (await ledger.store.list_groups()).total == 2

    async def test_update_excludes_own_usage(self, ledger, auth, make_input, confirmed_source) -> None:
        source = await confirmed_source()
        user = await ledger.store.create(make_input(40_000, source_transaction_id=source.id), auth)

        updated = await ledger.store.update(
            user.id, make_input(100_000, source_transaction_id=source.id), auth
        )

        assert updated.total_amount == 100_000
        assert await ledger.funding.available_amount(source.id) == 0

    async def test_cancelled_user_releases_availability(self, ledger, auth, make_input, confirmed_source) -> None:
        source = await confirmed_source()
        user = await ledger.store.create(make_input(40_000, source_transaction_id=source.id), auth)

        await ledger.store.cancel(user.id, auth)

        assert await ledger.funding.available_amount(source.id) == 100_000

    async def test_entry_level_draw(self, ledger, auth, make_input, accounts, confirmed_source) -> None:
        """분개 단위 출처는 해당 분개 금액만 사용"""
        source = await confirmed_source()
        data = make_input(
            entries=[
                Entry(account_id=accounts["expense"], debit_amount=25_000, source_transaction_id=source.id),
                Entry(account_id=accounts["payable"], debit_amount=5_000),
                Entry(account_id=accounts["cash"], credit_amount=30_000),
            ]
        )

        user = await ledger.store.create(data, auth)

        assert user.entries[0].funding_path == [source.id]
        assert await ledger.funding.available_amount(source.id) == 75_000

    async def test_draft_source_rejected(self, ledger, auth, make_input) -> None:
        draft = await ledger.store.create(make_input(100_000), auth)

        with pytest.raises(ValidationError, match="must be confirmed"):
            await ledger.store.create(make_input(100, source_transaction_id=draft.id), auth)

    async def test_missing_source_rejected(self, ledger, auth, make_input) -> None:
        with pytest.raises(ValidationError, match="Funding source not found"):
            await ledger.store.create(make_input(100, source_transaction_id="missing"), auth)

    async def test_self_reference_rejected(self, ledger, auth, make_input) -> None:
        group = await ledger.store.create(make_input(100), auth)

        with pytest.raises(ValidationError, match="itself"):
            await ledger.store.update(group.id, make_input(100, source_transaction_id=group.id), auth)

    async def test_legacy_entry_source_counted(
        self, ledger, accounts, confirmed_source, insert_legacy_group
    ) -> None:
        source = await confirmed_source()
        await insert_legacy_group(
            "legacy-1",
            "TXN-20251201-001",
            [(accounts["expense"], "100.00", "0"), (accounts["cash"], "0", "100.00")],
            entry_source_id=source.id,
        )

        usages = await ledger.funding.usages_of(source.id)

        assert [(u.user_transaction_id, u.amount) for u in usages] == [("legacy-1", 10_000)]
        assert await ledger.funding.available_amount(source.id) == 90_000


class TestUnlockGuard:
    """자금 출처로 사용 중인 거래의 잠금 해제"""

    async def test_unlock_blocked_by_dependent(self, ledger, auth, make_input, confirmed_source) -> None:
        """확정된 B 가 A 를 참조 중이면 A 잠금 해제 거부, B 요약 반환"""
        source = await confirmed_source()
        user = await ledger.store.create(make_input(40_000, source_transaction_id=source.id), auth)
        user = await ledger.store.confirm(user.id, auth)

        with pytest.raises(ConflictError) as exc_info:
            await ledger.store.unlock(source.id, auth)

        dependents = exc_info.value.details["dependent_transactions"]
        assert [d["id"] for d in dependents] == [user.id]
        assert dependents[0]["group_number"] == user.group_number
        assert dependents[0]["total_amount"] == "400.00"
        assert dependents[0]["status"] == "confirmed"
        assert (await ledger.store.get(source.id)).status == TransactionStatus.CONFIRMED

    async def test_cancelled_dependent_allows_unlock(self, ledger, auth, make_input, confirmed_source) -> None:
        source = await confirmed_source()
        user = await ledger.store.create(make_input(40_000, source_transaction_id=source.id), auth)
        await ledger.store.cancel(user.id, auth)

        unlocked = await ledger.store.unlock(source.id, auth)

        assert unlocked.status == TransactionStatus.DRAFT

    async def test_entry_reference_allows_unlock_but_blocks_delete(
        self, ledger, auth, make_input, accounts, confirmed_source
    ) -> None:
        """분개 단위 참조는 잠금 해제를 막지 않지만 삭제는 막음"""
        source = await confirmed_source()
        await ledger.store.create(
            make_input(
                entries=[
                    Entry(account_id=accounts["expense"], debit_amount=10_000, source_transaction_id=source.id),
                    Entry(account_id=accounts["cash"], credit_amount=10_000),
                ]
            ),
            auth,
        )

        await ledger.store.unlock(source.id, auth)

        with pytest.raises(ConflictError, match="used as a funding source"):
            await ledger.store.delete(source.id, auth)

    async def test_unlocked_source_cannot_shrink_below_usage(
        self, ledger, auth, make_input, accounts, confirmed_source
    ) -> None:
        """분개 단위로 800 사용 중인 출처를 100 으로 줄이면 거부, 사용 가능 금액 유지"""
        source = await confirmed_source()
        user = await ledger.store.create(
            make_input(
                entries=[
                    Entry(account_id=accounts["expense"], debit_amount=80_000, source_transaction_id=source.id),
                    Entry(account_id=accounts["cash"], credit_amount=80_000),
                ]
            ),
            auth,
        )
        await ledger.store.confirm(user.id, auth)
        await ledger.store.unlock(source.id, auth)

        with pytest.raises(ValidationError, match="already drawn 800.00"):
            await ledger.store.update(source.id, make_input(10_000, debit="cash", credit="revenue"), auth)

        unchanged = await ledger.store.get(source.id)
        assert unchanged.total_amount == 100_000
        assert unchanged.version == source.version + 1
        assert await ledger.funding.available_amount(source.id) == 20_000

        grown = await ledger.store.update(source.id, make_input(90_000, debit="cash", credit="revenue"), auth)
        assert grown.total_amount == 90_000
        assert await ledger.funding.available_amount(source.id) == 10_000

    async def test_unlocked_source_in_use_cannot_be_cancelled(
        self, ledger, auth, make_input, accounts, confirmed_source
    ) -> None:
        source = await confirmed_source()
        user = await ledger.store.create(
            make_input(
                entries=[
                    Entry(account_id=accounts["expense"], debit_amount=10_000, source_transaction_id=source.id),
                    Entry(account_id=accounts["cash"], credit_amount=10_000),
                ]
            ),
            auth,
        )
        await ledger.store.unlock(source.id, auth)

        with pytest.raises(ConflictError, match="used as a funding source") as exc_info:
            await ledger.store.cancel(source.id, auth)

        assert exc_info.value.details["dependent_transactions"] == [user.id]
        assert (await ledger.store.get(source.id)).status == TransactionStatus.DRAFT

    async def test_referenced_by(self, ledger, auth, make_input, confirmed_source) -> None:
        source = await confirmed_source()
        first = await ledger.store.create(make_input(10_000, source_transaction_id=source.id), auth)
        second = await ledger.store.create(make_input(20_000, source_transaction_id=source.id), auth)

        refs = await ledger.funding.referenced_by(source.id)

        assert [r.id for r in refs] == [first.id, second.id]


class TestFundingFlow:
    """자금 흐름 (상위 경로, 하위 사용처)"""

    async def test_chain(self, ledger, auth, make_input, confirmed_source) -> None:
        """A(1000) → B(400, A에서) → C(100, B에서)"""
        a = await confirmed_source()
        b = await ledger.store.create(make_input(40_000, source_transaction_id=a.id), auth)
        b = await ledger.store.confirm(b.id, auth)
        c = await ledger.store.create(make_input(10_000, source_transaction_id=b.id), auth)

        assert await ledger.funding.funding_path(b.id) == [a.id, b.id]

        flow_c = await ledger.funding.funding_flow(c.id)
        assert [s.id for s in flow_c.upstream] == [a.id, b.id]
        assert flow_c.downstream == []
        assert [(u.source_transaction_id, u.amount) for u in flow_c.funding_source_usages] == [(b.id, 10_000)]

        flow_a = await ledger.funding.funding_flow(a.id)
        assert flow_a.upstream == []
        assert [(u.user_transaction_id, u.amount) for u in flow_a.downstream] == [(b.id, 40_000)]
        assert flow_a.used_amount == 40_000
        assert flow_a.available_amount == 60_000

    async def test_available_sources(self, ledger, auth, make_input, confirmed_source) -> None:
        a = await confirmed_source(100_000)
        b = await confirmed_source(5_000)
        await ledger.store.create(make_input(5_000, source_transaction_id=b.id), auth)
        await ledger.store.create(make_input(200), auth)

        candidates = await ledger.funding.available_sources(organization_id="org-1")
        large = await ledger.funding.available_sources(organization_id="org-1", min_amount=50_000)

        assert [(c.group.id, c.available_amount) for c in candidates] == [(a.id, 100_000)]
        assert [c.group.id for c in large] == [a.id]
        assert await ledger.funding.available_sources(organization_id="org-2") == []

    async def test_available_sources_exclude_self(self, ledger, auth, make_input, confirmed_source) -> None:
        """수정 중인 그룹의 사용분은 제외하고 계산"""
        b = await confirmed_source(5_000)
        user = await ledger.store.create(make_input(5_000, source_transaction_id=b.id), auth)

        candidates = await ledger.funding.available_sources(exclude_group_id=user.id)

        assert [(c.group.id, c.used_amount, c.available_amount) for c in candidates] == [(b.id, 0, 5_000)]

    async def test_validate_sources(self, ledger, auth, make_input, confirmed_source) -> None:
        a = await confirmed_source()
        await ledger.store.create(make_input(40_000, source_transaction_id=a.id), auth)
        draft = await ledger.store.create(make_input(100), auth)

        result = await ledger.funding.validate_sources([a.id, draft.id, "missing", a.id], 50_000)

        assert [(s.source_transaction_id, s.is_valid, s.reason) for s in result.sources] == [
            (a.id, True, None),
            (draft.id, False, "status is 'draft'"),
            ("missing", False, "not found"),
        ]
        assert result.total_available_amount == 60_000
        assert result.is_sufficient
        assert result.summary == "1/3 sources valid, available 600.00, required 500.00"

    async def test_validate_exhausted_source(self, ledger, auth, make_input, confirmed_source) -> None:
        a = await confirmed_source(5_000)
        await ledger.store.create(make_input(5_000, source_transaction_id=a.id), auth)

        result = await ledger.funding.validate_sources([a.id], 100)

        assert result.sources[0].reason == "no available amount"
        assert not result.is_sufficient
