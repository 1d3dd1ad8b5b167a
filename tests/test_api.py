"""
ShopLedger - API Integration Tests

Integration tests for REST API endpoints.
"""

from decimal import Decimal
from uuid import uuid4

import pytest
from httpx import AsyncClient

API = "/api/v1"


class TestHealthEndpoint:
    """Test health check endpoint."""

    @pytest.mark.asyncio
    async def test_health_check(self, client: AsyncClient):
        response = await client.get("/health")

        assert response.status_code == 200
        assert response.json()["status"] == "healthy"

    @pytest.mark.asyncio
    async def test_api_info(self, client: AsyncClient):
        response = await client.get("/api")

        assert response.status_code == 200
        assert response.json()["name"] == "ShopLedger"


class TestShopsAPI:
    """Shop creation and lookup."""

    @pytest.mark.asyncio
    async def test_create_shop_provisions_defaults(self, client: AsyncClient):
        response = await client.post(
            f"{API}/shops",
            json={"code": "S9", "name_local": "متجر", "name_global": "Corner Shop"},
        )

        assert response.status_code == 201
        data = response.json()
        assert data["shop"]["code"] == "S9"
        assert data["account_count"] == 9
        assert data["categories_created"] == 9

    @pytest.mark.asyncio
    async def test_duplicate_shop_code_conflicts(self, client: AsyncClient, shop):
        response = await client.post(
            f"{API}/shops",
            json={"code": "S1", "name_local": "آخر", "name_global": "Other"},
        )

        assert response.status_code == 409
        assert response.json()["detail"]["code"] == "DUPLICATE_ENTRY"

    @pytest.mark.asyncio
    async def test_invalid_shop_code_is_rejected(self, client: AsyncClient):
        response = await client.post(
            f"{API}/shops",
            json={"code": "bad code!", "name_local": "س", "name_global": "X"},
        )

        assert response.status_code == 422
        assert response.json()["detail"]["code"] == "VALIDATION_ERROR"


class TestTenantHeaders:
    """Shop and user headers."""

    @pytest.mark.asyncio
    async def test_missing_shop_header(self, client: AsyncClient):
        response = await client.get(f"{API}/accounts")

        assert response.status_code == 400
        detail = response.json()["detail"]
        assert detail["code"] == "INVALID_INPUT"
        assert "X-Shop-ID" in detail["message"]

    @pytest.mark.asyncio
    async def test_malformed_shop_header(self, client: AsyncClient):
        response = await client.get(f"{API}/accounts", headers={"X-Shop-ID": "not-a-uuid"})

        assert response.status_code == 400

    @pytest.mark.asyncio
    async def test_unknown_shop(self, client: AsyncClient):
        response = await client.get(f"{API}/accounts", headers={"X-Shop-ID": str(uuid4())})

        assert response.status_code == 404
        assert response.json()["detail"]["code"] == "NOT_FOUND"


class TestLedgerAPI:
    """Posting and reporting through the API."""

    @pytest.mark.asyncio
    async def test_record_sale_and_read_profit(
        self, client: AsyncClient, headers, current_year, system_accounts
    ):
        response = await client.post(
            f"{API}/transactions",
            headers=headers,
            json={
                "transaction_type": "SALE",
                "amount": "250.00",
                "debit_account_id": str(system_accounts.cash_id),
                "credit_account_id": str(system_accounts.direct_sales_id),
                "description": "Counter sale",
            },
        )
        assert response.status_code == 201
        posting = response.json()
        assert posting["financial_year_id"] == str(current_year.id)
        assert Decimal(posting["amount"]) == Decimal("250")

        listed = await client.get(f"{API}/transactions", headers=headers)
        assert listed.json()["total"] == 1

        profit = await client.get(f"{API}/profit/{current_year.id}", headers=headers)
        assert profit.status_code == 200
        assert Decimal(profit.json()["revenue"]) == Decimal("250")
        assert Decimal(profit.json()["net_profit"]) == Decimal("250")

    @pytest.mark.asyncio
    async def test_zero_amount_is_rejected(self, client: AsyncClient, headers, current_year, system_accounts):
        response = await client.post(
            f"{API}/transactions",
            headers=headers,
            json={
                "transaction_type": "SALE",
                "amount": "0",
                "debit_account_id": str(system_accounts.cash_id),
                "credit_account_id": str(system_accounts.direct_sales_id),
            },
        )

        assert response.status_code == 422

    @pytest.mark.asyncio
    async def test_closing_current_year_is_forbidden(self, client: AsyncClient, headers, current_year):
        response = await client.post(
            f"{API}/financial-years/{current_year.id}/close",
            headers=headers,
            json={"closing_stock_value": "12000"},
        )

        assert response.status_code == 403
        assert response.json()["detail"]["code"] == "FORBIDDEN"

    @pytest.mark.asyncio
    async def test_overlapping_year_conflicts(self, client: AsyncClient, headers, current_year):
        response = await client.post(
            f"{API}/financial-years",
            headers=headers,
            json={"name": "Overlap", "start_date": "2025-07-01", "end_date": "2026-06-30"},
        )

        assert response.status_code == 409
        assert response.json()["detail"]["code"] == "OVERLAPPING_PERIOD"

    @pytest.mark.asyncio
    async def test_deleting_system_account_is_forbidden(self, client: AsyncClient, headers, system_accounts):
        response = await client.delete(f"{API}/accounts/{system_accounts.cash_id}", headers=headers)

        assert response.status_code == 403
        assert response.json()["detail"]["code"] == "SYSTEM_RECORD"

    @pytest.mark.asyncio
    async def test_account_tree(self, client: AsyncClient, headers):
        response = await client.get(f"{API}/accounts/tree", headers=headers)

        assert response.status_code == 200
        assert response.json()["orphan_ids"] == []
        assert len(response.json()["accounts"]) == 5


class TestCashBankAPI:
    """Cash accounts and audited balance changes."""

    @pytest.mark.asyncio
    async def test_balance_change_is_audited(self, client: AsyncClient, headers):
        created = await client.post(
            f"{API}/cash-bank/cash",
            headers=headers,
            json={"name_local": "الدرج", "name_global": "Drawer", "opening_balance": "100"},
        )
        assert created.status_code == 201
        account_id = created.json()["id"]

        changed = await client.post(
            f"{API}/cash-bank/CASH/{account_id}/balance",
            headers=headers,
            json={"new_balance": "130", "reason": "Till count"},
        )
        assert changed.status_code == 200
        assert Decimal(changed.json()["change_amount"]) == Decimal("30")

        history = await client.get(f"{API}/cash-bank/CASH/{account_id}/history", headers=headers)
        assert [e["change_reason"] for e in history.json()["entries"]] == ["Till count"]

        deleted = await client.delete(f"{API}/cash-bank/CASH/{account_id}", headers=headers)
        assert deleted.status_code == 403
