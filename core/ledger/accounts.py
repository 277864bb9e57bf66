"""
계정과목 레지스트리

계정 생성/조회/수정/비활성화/삭제 및 확정 거래에 따른 캐시 잔액 반영.
AccountExistsCheck 프로토콜 구현체로 TransactionGroupStore에 주입된다.
"""

from __future__ import annotations

import logging
import uuid
from typing import TYPE_CHECKING, Any

from core.errors import ConflictError, NotFoundError, ValidationError
from core.ledger.models import Account, AccountNode, TransactionGroup
from core.types import AccountType, NormalBalance, default_normal_balance
from core.utils.timezone import isoformat_utc, now_utc, parse_datetime

if TYPE_CHECKING:
    from adapters.db.sqlite_adapter import SQLiteAdapter

ACCOUNT_COLUMNS = """
    id, code, name, account_type, normal_balance, parent_id, is_active,
    balance, description, organization_id, created_at, updated_at
"""


def account_from_row(row: dict[str, Any]) -> Account:
    """account 행 → Account"""
    return Account(
        id=row["id"],
        code=row["code"],
        name=row["name"],
        account_type=AccountType(row["account_type"]),
        normal_balance=NormalBalance(row["normal_balance"]),
        organization_id=row["organization_id"],
        parent_id=row["parent_id"],
        is_active=bool(row["is_active"]),
        balance=int(row["balance"] or 0),
        description=row["description"],
        created_at=parse_datetime(row["created_at"]),
        updated_at=parse_datetime(row["updated_at"]),
    )


def build_tree(accounts: list[Account]) -> list[AccountNode]:
    """평면 계정 목록 → 트리 (루트 목록, code 순)

    부모가 목록에 없는 계정은 루트로 취급.
    """
    nodes = {a.id: AccountNode(account=a) for a in sorted(accounts, key=lambda a: a.code)}
    roots: list[AccountNode] = []
    for node in nodes.values():
        parent = nodes.get(node.account.parent_id) if node.account.parent_id else None
        if parent is None:
            roots.append(node)
        else:
            parent.children.append(node)
    return roots


class AccountRegistry:
    """계정과목 레지스트리

    Args:
        db: SQLite 어댑터
        logger: 로거 (None이면 모듈 로거)
    """

    def __init__(self, db: SQLiteAdapter, logger: logging.Logger | None = None):
        self.db = db
        self.logger = logger or logging.getLogger(__name__)

    # -------------------------------------------------------------------------
    # 조회
    # -------------------------------------------------------------------------

    async def find(self, account_id: str) -> Account | None:
        """계정 조회 (없으면 None)"""
        row = await self.db.fetch_dict(
            f"SELECT {ACCOUNT_COLUMNS} FROM account WHERE id = ?",
            (account_id,),
        )
        return account_from_row(row) if row else None

    async def get(self, account_id: str) -> Account:
        """계정 조회

        Raises:
            NotFoundError: 계정 없음
        """
        account = await self.find(account_id)
        if account is None:
            raise NotFoundError(f"Account not found: {account_id}")
        return account

    async def list_accounts(
        self,
        organization_id: str | None = None,
        account_type: AccountType | None = None,
        include_inactive: bool = False,
    ) -> list[Account]:
        """계정 목록 (code 순)"""
        conditions: list[str] = []
        params: list[Any] = []
        if organization_id:
            conditions.append("organization_id = ?")
            params.append(organization_id)
        if account_type:
            conditions.append("account_type = ?")
            params.append(AccountType(account_type).value)
        if not include_inactive:
            conditions.append("is_active = 1")

        where = " AND ".join(conditions) if conditions else "1=1"
        rows = await self.db.fetch_dicts(
            f"SELECT {ACCOUNT_COLUMNS} FROM account WHERE {where} ORDER BY code",
            tuple(params),
        )
        return [account_from_row(r) for r in rows]

    async def tree(
        self,
        organization_id: str | None = None,
        include_inactive: bool = False,
    ) -> list[AccountNode]:
        """계정 트리"""
        accounts = await self.list_accounts(organization_id=organization_id, include_inactive=include_inactive)
        return build_tree(accounts)

    async def account_exists(self, account_id: str) -> bool:
        """활성 계정 존재 여부 (AccountExistsCheck)"""
        row = await self.db.fetchone(
            "SELECT 1 FROM account WHERE id = ? AND is_active = 1",
            (account_id,),
        )
        return row is not None

    async def require_active(self, account_ids: list[str], organization_id: str | None = None) -> None:
        """분개가 선택한 계정이 모두 활성 상태인지 확인

        Raises:
            ValidationError: 존재하지 않거나 비활성 계정, 다른 조직 계정
        """
        unique_ids = sorted({a for a in account_ids if a})
        if not unique_ids:
            return

        placeholders = ",".join("?" for _ in unique_ids)
        rows = await self.db.fetch_dicts(
            f"SELECT id, is_active, organization_id FROM account WHERE id IN ({placeholders})",
            tuple(unique_ids),
        )
        found = {r["id"]: r for r in rows}

        problems: list[str] = []
        for account_id in unique_ids:
            row = found.get(account_id)
            if row is None:
                problems.append(f"Account not found: {account_id}")
            elif not row["is_active"]:
                problems.append(f"Account is inactive: {account_id}")
            elif organization_id and row["organization_id"] != organization_id:
                problems.append(f"Account {account_id} belongs to another organization")

        if problems:
            raise ValidationError("; ".join(problems), details={"errors": problems})

    async def is_referenced(self, account_id: str) -> bool:
        """분개에서 참조 중인지 (내장/구 세대 모두)"""
        row = await self.db.fetchone(
            """
            SELECT 1 FROM transaction_group g, json_each(g.entries_json) je
            WHERE g.schema_version = 2
              AND json_extract(je.value, '$.account_id') = ?
            LIMIT 1
            """,
            (account_id,),
        )
        if row is not None:
            return True
        row = await self.db.fetchone(
            "SELECT 1 FROM accounting_entry WHERE account_id = ? LIMIT 1",
            (account_id,),
        )
        return row is not None

    # -------------------------------------------------------------------------
    # 변경
    # -------------------------------------------------------------------------

    async def _check_parent(self, parent_id: str, organization_id: str, account_id: str | None = None) -> None:
        """부모 계정 검증 (존재, 같은 조직, 순환 없음)"""
        parent = await self.find(parent_id)
        if parent is None:
            raise ValidationError(f"Parent account not found: {parent_id}")
        if parent.organization_id != organization_id:
            raise ValidationError("Parent account belongs to another organization")

        if account_id is None:
            return

        # 부모 체인을 따라 올라가며 자기 자신이 나오면 순환
        current: Account | None = parent
        visited: set[str] = set()
        while current is not None:
            if current.id == account_id:
                raise ValidationError("Account hierarchy cannot contain a cycle")
            if current.id in visited or current.parent_id is None:
                break
            visited.add(current.id)
            current = await self.find(current.parent_id)

    async def create(
        self,
        code: str,
        name: str,
        account_type: AccountType,
        organization_id: str,
        normal_balance: NormalBalance | None = None,
        parent_id: str | None = None,
        description: str | None = None,
    ) -> Account:
        """계정 생성

        normal_balance 미지정 시 계정 유형 기본값.

        Raises:
            ValidationError: 필수값 누락, 부모 계정 오류
            ConflictError: 같은 조직 내 code 중복
        """
        if not code or not code.strip():
            raise ValidationError("Account code is required")
        if not name or not name.strip():
            raise ValidationError("Account name is required")

        account_type = AccountType(account_type)
        if parent_id:
            await self._check_parent(parent_id, organization_id)

        now = now_utc()
        account = Account(
            id=str(uuid.uuid4()),
            code=code.strip(),
            name=name.strip(),
            account_type=account_type,
            normal_balance=NormalBalance(normal_balance) if normal_balance else default_normal_balance(account_type),
            organization_id=organization_id,
            parent_id=parent_id,
            is_active=True,
            balance=0,
            description=description,
            created_at=now,
            updated_at=now,
        )

        async with self.db.transaction():
            existing = await self.db.fetchone(
                "SELECT id FROM account WHERE organization_id = ? AND code = ?",
                (organization_id, account.code),
            )
            if existing is not None:
                raise ConflictError(
                    f"Account code already exists in organization: {account.code}",
                    details={"code": account.code, "organization_id": organization_id},
                )
            await self.db.execute(
                f"""
                INSERT INTO account ({ACCOUNT_COLUMNS})
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    account.id,
                    account.code,
                    account.name,
                    account.account_type.value,
                    account.normal_balance.value,
                    account.parent_id,
                    1,
                    0,
                    account.description,
                    account.organization_id,
                    isoformat_utc(now),
                    isoformat_utc(now),
                ),
            )

        self.logger.info(f"계정 생성: {account.code} {account.name} ({account.account_type.value})")
        return account

    async def update(
        self,
        account_id: str,
        code: str | None = None,
        name: str | None = None,
        parent_id: str | None = None,
        description: str | None = None,
        clear_parent: bool = False,
    ) -> Account:
        """계정 수정 (유형과 정상 잔액 방향은 변경 불가)

        Raises:
            NotFoundError: 계정 없음
            ValidationError: 부모 계정 오류
            ConflictError: code 중복
        """
        account = await self.get(account_id)

        new_code = code.strip() if code else account.code
        new_name = name.strip() if name else account.name
        new_parent = None if clear_parent else (parent_id if parent_id is not None else account.parent_id)
        new_description = description if description is not None else account.description

        if new_parent and new_parent != account.parent_id:
            await self._check_parent(new_parent, account.organization_id, account_id=account.id)

        async with self.db.transaction():
            if new_code != account.code:
                duplicate = await self.db.fetchone(
                    "SELECT id FROM account WHERE organization_id = ? AND code = ? AND id != ?",
                    (account.organization_id, new_code, account.id),
                )
                if duplicate is not None:
                    raise ConflictError(f"Account code already exists in organization: {new_code}")

            await self.db.execute(
                """
                UPDATE account
                SET code = ?, name = ?, parent_id = ?, description = ?, updated_at = ?
                WHERE id = ?
                """,
                (new_code, new_name, new_parent, new_description, isoformat_utc(now_utc()), account.id),
            )

        return await self.get(account_id)

    async def deactivate(self, account_id: str) -> Account:
        """계정 비활성화 (이후 새 분개에서 선택 불가)"""
        await self.get(account_id)
        async with self.db.transaction():
            await self.db.execute(
                "UPDATE account SET is_active = 0, updated_at = ? WHERE id = ?",
                (isoformat_utc(now_utc()), account_id),
            )
        self.logger.info(f"계정 비활성화: {account_id}")
        return await self.get(account_id)

    async def delete(self, account_id: str) -> None:
        """계정 삭제

        Raises:
            NotFoundError: 계정 없음
            ConflictError: 하위 계정 존재 또는 분개에서 참조 중
        """
        account = await self.get(account_id)

        child = await self.db.fetchone("SELECT 1 FROM account WHERE parent_id = ? LIMIT 1", (account_id,))
        if child is not None:
            raise ConflictError(f"Account {account.code} has child accounts")
        if await self.is_referenced(account_id):
            raise ConflictError(
                f"Account {account.code} is used by entries; deactivate it instead",
            )

        async with self.db.transaction():
            await self.db.execute("DELETE FROM account WHERE id = ?", (account_id,))
        self.logger.info(f"계정 삭제: {account.code}")

    # -------------------------------------------------------------------------
    # 잔액 반영
    # -------------------------------------------------------------------------

    async def apply_group(self, group: TransactionGroup, reverse: bool = False) -> None:
        """확정 거래 그룹의 분개를 계정 캐시 잔액에 반영

        정상 잔액 방향 기준:
        - debit 계정: 차변 증가, 대변 감소
        - credit 계정: 대변 증가, 차변 감소

        호출자의 트랜잭션 안에서 실행된다.

        Args:
            group: 확정(또는 잠금 해제) 대상 그룹
            reverse: True이면 반영 취소 (잠금 해제 시)
        """
        deltas: dict[str, int] = {}
        for entry in group.entries:
            deltas[entry.account_id] = deltas.get(entry.account_id, 0) + entry.debit_amount - entry.credit_amount

        async with self.db.transaction():
            for account_id, net_debit in deltas.items():
                sign = -1 if reverse else 1
                await self.db.execute(
                    """
                    UPDATE account
                    SET balance = balance + CASE WHEN normal_balance = 'debit' THEN ? ELSE ? END,
                        updated_at = ?
                    WHERE id = ?
                    """,
                    (sign * net_debit, -sign * net_debit, isoformat_utc(now_utc()), account_id),
                )

        self.logger.debug(
            f"계정 잔액 {'반영 취소' if reverse else '반영'}: {group.group_number} ({len(deltas)}개 계정)"
        )
