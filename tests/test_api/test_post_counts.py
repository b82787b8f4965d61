"""Tests for per-post usage endpoints."""

import uuid
from datetime import date
from typing import Any

import pytest
from httpx import AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession

from agencydesk.services.billing.schedule import month_year_for

API = "/api/v1/clients"


@pytest.fixture
def per_post_client(create_test_client: Any) -> Any:
    async def _create(**kwargs: Any) -> Any:
        data: dict[str, Any] = {
            "name": "Bloom Studio",
            "payment_type": "per-post",
            "monthly_rate": None,
            "per_post_rates": {"instagram": 500, "youtube": 2000},
            "fixed_payment_day": 5,
            "next_payment": date(2025, 3, 5),
        }
        data.update(kwargs)
        return await create_test_client(**data)

    return _create


class TestCounters:
    """Test reading and adjusting counters."""

    @pytest.mark.asyncio
    async def test_empty_month(self, test_client: AsyncClient, per_post_client: Any) -> None:
        client = await per_post_client()

        response = await test_client.get(f"{API}/{client.id}/post-counts")

        assert response.status_code == 200
        assert response.json() == {
            "client_id": str(client.id),
            "month_year": "2025-03",
            "counts": {"instagram": 0, "youtube": 0},
            "total_amount": 0.0,
        }

    @pytest.mark.asyncio
    async def test_adjust_counts(self, test_client: AsyncClient, per_post_client: Any) -> None:
        client = await per_post_client()
        base = f"{API}/{client.id}/post-counts"

        await test_client.post(f"{base}/instagram/increment")
        response = await test_client.post(f"{base}/instagram/increment")
        assert response.json()["count"] == 2
        assert response.json()["month_year"] == "2025-03"

        response = await test_client.post(f"{base}/instagram/decrement")
        assert response.json()["count"] == 1

        response = await test_client.put(f"{base}/youtube", json={"count": 3})
        assert response.json()["count"] == 3

        response = await test_client.get(base)
        assert response.json()["counts"] == {"instagram": 1, "youtube": 3}
        assert response.json()["total_amount"] == 6500.0

    @pytest.mark.asyncio
    async def test_decrement_at_zero(self, test_client: AsyncClient, per_post_client: Any) -> None:
        client = await per_post_client()

        response = await test_client.post(f"{API}/{client.id}/post-counts/instagram/decrement")

        assert response.status_code == 200
        assert response.json()["count"] == 0

    @pytest.mark.asyncio
    async def test_negative_count_rejected(self, test_client: AsyncClient, per_post_client: Any) -> None:
        client = await per_post_client()

        response = await test_client.put(f"{API}/{client.id}/post-counts/instagram", json={"count": -1})

        assert response.status_code == 422

    @pytest.mark.asyncio
    async def test_explicit_month(self, test_client: AsyncClient, per_post_client: Any) -> None:
        client = await per_post_client()
        base = f"{API}/{client.id}/post-counts"

        await test_client.put(f"{base}/instagram", params={"month_year": "2025-04"}, json={"count": 4})

        april = await test_client.get(base, params={"month_year": "2025-04"})
        march = await test_client.get(base)
        assert april.json()["counts"]["instagram"] == 4
        assert march.json()["counts"]["instagram"] == 0

    @pytest.mark.asyncio
    async def test_defaults_to_current_month_without_due_date(
        self, test_client: AsyncClient, per_post_client: Any
    ) -> None:
        client = await per_post_client(next_payment=None)

        response = await test_client.post(f"{API}/{client.id}/post-counts/instagram/increment")

        assert response.json()["month_year"] == month_year_for(date.today())

    @pytest.mark.asyncio
    async def test_unknown_client(self, test_client: AsyncClient) -> None:
        response = await test_client.post(f"{API}/{uuid.uuid4()}/post-counts/instagram/increment")
        assert response.status_code == 404


class TestSettleEndpoint:
    """Test POST /clients/{id}/post-counts/settle."""

    @pytest.mark.asyncio
    async def test_settle(
        self,
        test_client: AsyncClient,
        test_session: AsyncSession,
        per_post_client: Any,
    ) -> None:
        client = await per_post_client()
        base = f"{API}/{client.id}/post-counts"
        await test_client.put(f"{base}/instagram", json={"count": 2})
        await test_client.put(f"{base}/youtube", json={"count": 1})

        response = await test_client.post(f"{base}/settle")

        assert response.status_code == 201
        data = response.json()
        assert data["type"] == "post"
        assert data["amount"] == 3000.0
        assert data["post_count"] == 3
        assert data["platform_breakdown"] == {"instagram": 2, "youtube": 1}

        counts = await test_client.get(f"{base}", params={"month_year": "2025-03"})
        assert counts.json()["counts"] == {"instagram": 0, "youtube": 0}

        await test_session.refresh(client)
        assert client.next_payment is not None
        assert client.next_payment.day == 5
        assert client.next_payment > date.today()

    @pytest.mark.asyncio
    async def test_settle_with_overrides(self, test_client: AsyncClient, per_post_client: Any) -> None:
        client = await per_post_client()

        response = await test_client.post(
            f"{API}/{client.id}/post-counts/settle",
            json={"amount": 1200, "counts": {"instagram": 2}, "month_year": "2025-03"},
        )

        assert response.status_code == 201
        assert response.json()["amount"] == 1200.0
        assert response.json()["description"] == "Per-post payment for 2025-03"

    @pytest.mark.asyncio
    async def test_settle_flat_client(self, test_client: AsyncClient, create_test_client: Any) -> None:
        client = await create_test_client()

        response = await test_client.post(f"{API}/{client.id}/post-counts/settle")

        assert response.status_code == 422
        assert "not billed per post" in response.json()["detail"]
