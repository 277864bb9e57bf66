"""거래 그룹 API 테스트 (응답 봉투, 상태 코드)"""

from typing import Any

import httpx
import pytest

USER = {"X-User-Id": "user-1"}
OTHER_USER = {"X-User-Id": "user-2"}


@pytest.fixture
def payload(accounts: dict[str, str]):
    """거래 그룹 요청 본문 생성기 (기본: 비용 1000.00 / 현금 1000.00)"""

    def _payload(debit: str = "1000.00", credit: str | None = None, **extra: Any) -> dict[str, Any]:
        body = {
            "description": "사무용품 구입",
            "transaction_date": "2026-01-02",
            "organization_id": "org-1",
            "entries": [
                {"account_id": accounts["expense"], "debit_amount": debit},
                {"account_id": accounts["cash"], "credit_amount": credit or debit},
            ],
        }
        body.update(extra)
        return body

    return _payload


async def _create(client: httpx.AsyncClient, body: dict[str, Any]) -> dict[str, Any]:
    response = await client.post("/api/transactions", json=body, headers=USER)
    assert response.status_code == 201, response.text
    return response.json()["data"]


async def _confirmed(client: httpx.AsyncClient, body: dict[str, Any]) -> dict[str, Any]:
    created = await _create(client, body)
    response = await client.post(f"/api/transactions/{created['id']}/confirm", headers=USER)
    assert response.status_code == 200, response.text
    return response.json()["data"]


class TestCreate:
    async def test_created_envelope(self, client, payload) -> None:
        response = await client.post("/api/transactions", json=payload(), headers=USER)

        assert response.status_code == 201
        body = response.json()
        assert body["success"] is True
        assert body["status_code"] == 201
        assert body["message"] == "Transaction group created"
        assert body["timestamp"]

        data = body["data"]
        assert data["status"] == "draft"
        assert data["group_number"].startswith("TXN-")
        assert data["total_amount"] == "1000.00"
        assert data["transaction_date"] == "2026-01-02T00:00:00+00:00"
        assert data["created_by"] == "user-1"
        assert data["balance"] == {
            "total_debit": "1000.00",
            "total_credit": "1000.00",
            "difference": "0.00",
            "is_balanced": True,
        }
        assert data["entries"][0]["debit_amount"] == "1000.00"
        assert data["referenced_by_info"] == []

    async def test_missing_user_header(self, client, payload) -> None:
        response = await client.post("/api/transactions", json=payload())

        assert response.status_code == 401
        body = response.json()
        assert body["success"] is False
        assert "X-User-Id" in body["message"]

    async def test_unbalanced(self, client, payload) -> None:
        response = await client.post("/api/transactions", json=payload("1000.00", "500.00"), headers=USER)

        assert response.status_code == 400
        body = response.json()
        assert body["success"] is False
        assert body["data"]["difference"] == "500.00"
        assert body["data"]["total_debit"] == "1000.00"

    async def test_malformed_body(self, client) -> None:
        response = await client.post(
            "/api/transactions",
            json={"transaction_date": "2026-01-02", "organization_id": "org-1"},
            headers=USER,
        )

        assert response.status_code == 400
        body = response.json()
        assert body["message"] == "Invalid request"
        assert any(err["loc"][-1] == "entries" for err in body["data"]["errors"])

    async def test_invalid_date(self, client, payload) -> None:
        response = await client.post(
            "/api/transactions", json=payload(transaction_date="02/01/2026"), headers=USER
        )

        assert response.status_code == 400
        assert "transaction_date" in response.json()["message"]

    async def test_too_many_decimal_places(self, client, payload) -> None:
        response = await client.post("/api/transactions", json=payload("10.005"), headers=USER)

        assert response.status_code == 400
        assert "decimal places" in response.json()["message"]

    async def test_request_id_replay(self, client, payload) -> None:
        first = await _create(client, payload(request_id="req-1"))

        response = await client.post("/api/transactions", json=payload(request_id="req-1"), headers=USER)

        assert response.json()["data"]["id"] == first["id"]


class TestReadUpdateDelete:
    async def test_get_and_list(self, client, payload) -> None:
        created = await _create(client, payload())
        await _create(client, payload("20.00", description="택배비"))

        single = await client.get(f"/api/transactions/{created['id']}")
        listed = await client.get("/api/transactions", params={"search": "택배", "limit": 10})

        assert single.status_code == 200
        assert single.json()["data"]["id"] == created["id"]
        data = listed.json()["data"]
        assert [g["description"] for g in data["items"]] == ["택배비"]
        assert data["pagination"] == {"page": 1, "limit": 10, "total": 1, "total_pages": 1}

    async def test_list_invalid_date(self, client) -> None:
        response = await client.get("/api/transactions", params={"start_date": "yesterday"})

        assert response.status_code == 400

    async def test_not_found(self, client) -> None:
        response = await client.get("/api/transactions/missing")

        assert response.status_code == 404
        assert response.json()["success"] is False

    async def test_update_with_stale_version(self, client, payload) -> None:
        created = await _create(client, payload())

        updated = await client.put(
            f"/api/transactions/{created['id']}",
            json=payload("300.00", expected_version=1),
            headers=USER,
        )
        stale = await client.put(
            f"/api/transactions/{created['id']}",
            json=payload("400.00", expected_version=1),
            headers=USER,
        )

        assert updated.status_code == 200
        assert updated.json()["data"]["version"] == 2
        assert updated.json()["data"]["total_amount"] == "300.00"
        assert stale.status_code == 409
        assert stale.json()["data"]["current_version"] == 2

    async def test_delete(self, client, payload) -> None:
        created = await _create(client, payload())

        deleted = await client.delete(f"/api/transactions/{created['id']}", headers=USER)
        missing = await client.get(f"/api/transactions/{created['id']}")

        assert deleted.status_code == 200
        assert deleted.json()["data"] == {"id": created["id"]}
        assert missing.status_code == 404

    async def test_balance_endpoint(self, client, payload) -> None:
        created = await _create(client, payload("12.34"))

        response = await client.get(f"/api/transactions/{created['id']}/balance")

        assert response.json()["data"]["total_debit"] == "12.34"
        assert response.json()["data"]["is_balanced"] is True

    async def test_include_compatibility(self, client, payload) -> None:
        created = await _create(client, payload())

        response = await client.get(
            f"/api/transactions/{created['id']}", params={"include_compatibility": "true"}
        )

        compatibility = response.json()["data"]["compatibility"]
        assert compatibility["basis"] == "converted"
        assert compatibility["is_compatible"] is True
        assert compatibility["legacy"]["total_amount"] == "1000.00"


class TestStatusTransitions:
    async def test_confirm_and_unlock(self, client, payload) -> None:
        confirmed = await _confirmed(client, payload())

        assert confirmed["status"] == "confirmed"
        assert confirmed["confirmed_at"] is not None

        response = await client.post(
            f"/api/transactions/{confirmed['id']}/unlock",
            json={"expected_version": confirmed["version"]},
            headers=USER,
        )

        assert response.status_code == 200
        assert response.json()["data"]["status"] == "draft"
        assert response.json()["data"]["confirmed_at"] is None

    async def test_unlock_blocked_by_dependent(self, client, payload) -> None:
        source = await _confirmed(client, payload())
        user = await _create(client, payload("400.00", source_transaction_id=source["id"]))

        response = await client.post(f"/api/transactions/{source['id']}/unlock", headers=USER)

        assert response.status_code == 409
        dependents = response.json()["data"]["dependent_transactions"]
        assert [d["id"] for d in dependents] == [user["id"]]

        detail = await client.get(f"/api/transactions/{source['id']}")
        assert [r["id"] for r in detail.json()["data"]["referenced_by_info"]] == [user["id"]]

    async def test_cancel_by_other_user(self, client, payload) -> None:
        created = await _create(client, payload())

        response = await client.post(f"/api/transactions/{created['id']}/cancel", headers=OTHER_USER)

        assert response.status_code == 401

    async def test_cancelled_is_terminal(self, client, payload) -> None:
        created = await _create(client, payload())
        cancelled = await client.post(f"/api/transactions/{created['id']}/cancel", headers=USER)

        response = await client.post(f"/api/transactions/{created['id']}/confirm", headers=USER)

        assert cancelled.json()["data"]["status"] == "cancelled"
        assert response.status_code == 409


class TestFunding:
    async def test_available_sources_route(self, client, payload) -> None:
        source = await _confirmed(client, payload())
        await _create(client, payload("400.00", source_transaction_id=source["id"]))

        response = await client.get(
            "/api/transactions/funding/available-sources", params={"organization_id": "org-1"}
        )

        assert response.status_code == 200
        assert response.json()["data"] == [
            {
                "id": source["id"],
                "group_number": source["group_number"],
                "description": source["description"],
                "transaction_date": source["transaction_date"],
                "total_amount": "1000.00",
                "used_amount": "400.00",
                "available_amount": "600.00",
            }
        ]

    async def test_over_draw(self, client, payload) -> None:
        source = await _confirmed(client, payload())
        await _create(client, payload("400.00", source_transaction_id=source["id"]))

        response = await client.post(
            "/api/transactions", json=payload("700.00", source_transaction_id=source["id"]), headers=USER
        )

        assert response.status_code == 400
        assert response.json()["data"]["available_amount"] == "600.00"

    async def test_validate_route(self, client, payload) -> None:
        source = await _confirmed(client, payload())

        response = await client.post(
            "/api/transactions/funding/validate",
            json={"source_transaction_ids": [source["id"], "missing"], "required_amount": "1500.00"},
        )

        body = response.json()
        assert response.status_code == 200
        assert body["message"] == "1/2 sources valid, available 1000.00, required 1500.00"
        assert body["data"]["is_sufficient"] is False

    async def test_validate_requires_sources(self, client) -> None:
        response = await client.post(
            "/api/transactions/funding/validate",
            json={"source_transaction_ids": [], "required_amount": "1"},
        )

        assert response.status_code == 400

    async def test_funding_flow_route(self, client, payload) -> None:
        source = await _confirmed(client, payload())
        user = await _create(client, payload("400.00", source_transaction_id=source["id"]))

        upstream = await client.get(f"/api/transactions/{user['id']}/funding-flow")
        downstream = await client.get(f"/api/transactions/{source['id']}/funding-flow")

        assert [s["id"] for s in upstream.json()["data"]["source_path"]] == [source["id"]]
        data = downstream.json()["data"]
        assert [u["user_transaction_id"] for u in data["linked_transactions"]] == [user["id"]]
        assert data["available_amount"] == "600.00"
