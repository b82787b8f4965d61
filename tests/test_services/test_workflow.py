"""Tests for the payment completion cascade."""

import uuid
from datetime import date
from decimal import Decimal
from typing import Any

import pytest
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from agencydesk.models.payment import Payment
from agencydesk.services.billing import ledger
from agencydesk.services.billing.workflow import mark_due_payment_paid, record_payment
from agencydesk.services.errors import ClientNotFoundError, DuplicatePaymentError


@pytest.fixture
def flat_client_data() -> dict[str, Any]:
    return {
        "name": "Acme Bakery",
        "monthly_rate": Decimal("20000"),
        "services": {"Reels": 5000, "Stories": 2000},
        "next_payment": date(2025, 3, 15),
    }


class TestMarkDuePaymentPaid:
    """Test marking the current due payment as received."""

    @pytest.mark.asyncio
    async def test_flat_client(
        self,
        test_session: AsyncSession,
        create_test_client: Any,
        flat_client_data: dict[str, Any],
    ) -> None:
        client = await create_test_client(**flat_client_data)

        payment = await mark_due_payment_paid(test_session, client.id, today=date(2025, 3, 15))

        assert payment.amount == Decimal("27000")
        assert payment.payment_date == date(2025, 3, 15)
        assert payment.status == "completed"
        assert payment.type == "payment"
        assert payment.description == "Monthly payment received"
        await test_session.refresh(client)
        assert client.next_payment == date(2025, 4, 15)
        assert client.payment_count == 1

    @pytest.mark.asyncio
    async def test_duplicate_rejected(
        self,
        test_session: AsyncSession,
        create_test_client: Any,
        flat_client_data: dict[str, Any],
    ) -> None:
        client = await create_test_client(**flat_client_data)
        await mark_due_payment_paid(test_session, client.id, today=date(2025, 3, 15))

        with pytest.raises(DuplicatePaymentError) as exc_info:
            await mark_due_payment_paid(
                test_session, client.id, due_date=date(2025, 3, 15), today=date(2025, 3, 15)
            )

        assert exc_info.value.status_code == 409
        result = await test_session.execute(select(Payment).where(Payment.client_id == client.id))
        assert len(result.scalars().all()) == 1

    @pytest.mark.asyncio
    async def test_amount_override(
        self,
        test_session: AsyncSession,
        create_test_client: Any,
        flat_client_data: dict[str, Any],
    ) -> None:
        client = await create_test_client(**flat_client_data)

        payment = await mark_due_payment_paid(
            test_session, client.id, amount=Decimal("15000"), today=date(2025, 3, 15)
        )

        assert payment.amount == Decimal("15000")

    @pytest.mark.asyncio
    async def test_month_end_due_date_clamps(
        self,
        test_session: AsyncSession,
        create_test_client: Any,
    ) -> None:
        client = await create_test_client(next_payment=date(2025, 1, 31))

        await mark_due_payment_paid(test_session, client.id, today=date(2025, 1, 31))
        await test_session.refresh(client)
        assert client.next_payment == date(2025, 2, 28)

        await mark_due_payment_paid(test_session, client.id, today=date(2025, 2, 28))
        await test_session.refresh(client)
        assert client.next_payment == date(2025, 3, 28)

    @pytest.mark.asyncio
    async def test_tier_progression(
        self,
        test_session: AsyncSession,
        create_test_client: Any,
        sample_tiers: list[dict[str, Any]],
    ) -> None:
        client = await create_test_client(
            tiered_payments=sample_tiers,
            final_monthly_rate=Decimal("25000"),
            next_payment=date(2025, 1, 10),
        )

        amounts = []
        for _ in range(4):
            due = client.next_payment
            payment = await mark_due_payment_paid(test_session, client.id, today=due)
            amounts.append(payment.amount)
            await test_session.refresh(client)

        assert amounts == [Decimal("10000")] * 3 + [Decimal("18000")]
        assert client.payment_count == 4
        assert client.current_tier_index == 1
        assert client.next_payment == date(2025, 5, 10)

    @pytest.mark.asyncio
    async def test_weekly_tier_then_monthly_final(
        self,
        test_session: AsyncSession,
        create_test_client: Any,
    ) -> None:
        client = await create_test_client(
            tiered_payments=[{"amount": 2500, "duration_months": 2, "payment_type": "weekly"}],
            final_monthly_rate=Decimal("10000"),
            next_payment=date(2025, 3, 3),
        )

        first = await mark_due_payment_paid(test_session, client.id, today=date(2025, 3, 3))
        await test_session.refresh(client)
        assert first.amount == Decimal("2500")
        assert client.next_payment == date(2025, 3, 10)

        second = await mark_due_payment_paid(test_session, client.id, today=date(2025, 3, 10))
        await test_session.refresh(client)
        assert second.amount == Decimal("2500")
        # Schedule finished; the client's own monthly cadence takes over
        assert client.next_payment == date(2025, 4, 10)

        third = await mark_due_payment_paid(test_session, client.id, today=date(2025, 4, 10))
        assert third.amount == Decimal("10000")

    @pytest.mark.asyncio
    async def test_per_post_client_settles_ledger(
        self,
        test_session: AsyncSession,
        create_test_client: Any,
    ) -> None:
        client = await create_test_client(
            payment_type="per-post",
            monthly_rate=None,
            per_post_rates={"instagram": 500},
            fixed_payment_day=5,
            next_payment=date(2025, 3, 5),
        )
        await ledger.set_count(test_session, client.id, "instagram", "2025-03", 4)

        payment = await mark_due_payment_paid(test_session, client.id, today=date(2025, 3, 6))

        assert payment.type == "post"
        assert payment.amount == Decimal("2000")
        assert payment.platform_breakdown == {"instagram": 4}
        await test_session.refresh(client)
        assert client.next_payment == date(2025, 4, 5)

    @pytest.mark.asyncio
    async def test_per_post_paid_before_due_date(
        self,
        test_session: AsyncSession,
        create_test_client: Any,
    ) -> None:
        client = await create_test_client(
            payment_type="per-post",
            monthly_rate=None,
            per_post_rates={"instagram": 500},
            fixed_payment_day=5,
            next_payment=date(2025, 2, 5),
        )
        await ledger.set_count(test_session, client.id, "instagram", "2025-02", 1)

        payment = await mark_due_payment_paid(test_session, client.id, today=date(2025, 1, 20))

        assert payment.payment_date == date(2025, 2, 5)
        assert payment.amount == Decimal("500")
        await test_session.refresh(client)
        assert client.next_payment == date(2025, 3, 5)
        assert client.payment_count == 1

        with pytest.raises(DuplicatePaymentError):
            await mark_due_payment_paid(
                test_session, client.id, due_date=date(2025, 2, 5), today=date(2025, 1, 20)
            )

        result = await test_session.execute(select(Payment).where(Payment.client_id == client.id))
        assert len(result.scalars().all()) == 1

    @pytest.mark.asyncio
    async def test_unknown_client(self, test_session: AsyncSession) -> None:
        with pytest.raises(ClientNotFoundError):
            await mark_due_payment_paid(test_session, uuid.uuid4())


class TestRecordPayment:
    """Test recording arbitrary billing events."""

    @pytest.mark.asyncio
    async def test_pending_payment_leaves_schedule(
        self,
        test_session: AsyncSession,
        create_test_client: Any,
        flat_client_data: dict[str, Any],
    ) -> None:
        client = await create_test_client(**flat_client_data)

        payment = await record_payment(
            test_session,
            client.id,
            amount=Decimal("27000"),
            payment_date=date(2025, 3, 15),
            status="pending",
        )

        assert payment.status == "pending"
        await test_session.refresh(client)
        assert client.next_payment == date(2025, 3, 15)
        assert client.payment_count == 0

    @pytest.mark.asyncio
    async def test_completed_payment_advances_from_paid_date(
        self,
        test_session: AsyncSession,
        create_test_client: Any,
        flat_client_data: dict[str, Any],
    ) -> None:
        client = await create_test_client(**flat_client_data)

        await record_payment(
            test_session,
            client.id,
            amount=Decimal("27000"),
            payment_date=date(2025, 3, 20),
            today=date(2025, 3, 21),
        )

        await test_session.refresh(client)
        assert client.next_payment == date(2025, 4, 20)
        assert client.payment_count == 1

    @pytest.mark.asyncio
    async def test_weekly_client(
        self,
        test_session: AsyncSession,
        create_test_client: Any,
    ) -> None:
        client = await create_test_client(
            payment_type="weekly",
            weekly_rate=Decimal("6000"),
            next_payment=date(2025, 12, 29),
        )

        await record_payment(
            test_session,
            client.id,
            amount=Decimal("6000"),
            payment_date=date(2025, 12, 29),
            today=date(2025, 12, 29),
        )

        await test_session.refresh(client)
        assert client.next_payment == date(2026, 1, 5)

    @pytest.mark.asyncio
    async def test_per_post_payment_settles_ledger(
        self,
        test_session: AsyncSession,
        create_test_client: Any,
    ) -> None:
        client = await create_test_client(
            payment_type="per-post",
            monthly_rate=None,
            per_post_rates={"instagram": 500, "youtube": 2000},
            fixed_payment_day=5,
            next_payment=date(2025, 3, 5),
        )
        await ledger.set_count(test_session, client.id, "instagram", "2025-03", 3)
        await ledger.set_count(test_session, client.id, "youtube", "2025-03", 1)

        payment = await record_payment(
            test_session,
            client.id,
            amount=Decimal("3500"),
            payment_date=date(2025, 3, 5),
            today=date(2025, 3, 6),
        )

        assert payment.type == "post"
        assert payment.amount == Decimal("3500")
        assert payment.platform_breakdown == {"instagram": 3, "youtube": 1}
        assert await ledger.get_post_counts(test_session, client, "2025-03") == {"instagram": 0, "youtube": 0}
        await test_session.refresh(client)
        assert client.next_payment == date(2025, 4, 5)
        assert client.payment_count == 1

    @pytest.mark.asyncio
    async def test_pending_per_post_payment_leaves_ledger(
        self,
        test_session: AsyncSession,
        create_test_client: Any,
    ) -> None:
        client = await create_test_client(
            payment_type="per-post",
            monthly_rate=None,
            per_post_rates={"instagram": 500},
            fixed_payment_day=5,
            next_payment=date(2025, 3, 5),
        )
        await ledger.set_count(test_session, client.id, "instagram", "2025-03", 2)

        payment = await record_payment(
            test_session,
            client.id,
            amount=Decimal("1000"),
            payment_date=date(2025, 3, 5),
            status="pending",
        )

        assert payment.type == "payment"
        assert await ledger.get_post_counts(test_session, client, "2025-03") == {"instagram": 2}

    @pytest.mark.asyncio
    async def test_invalidates_dashboard_cache(
        self,
        test_session: AsyncSession,
        test_redis: Any,
        create_test_client: Any,
    ) -> None:
        client = await create_test_client()
        await test_redis.set("dashboard:stats:2025-03-15", "{}")

        await record_payment(test_session, client.id, amount=Decimal("100"), payment_date=date(2025, 3, 15))

        assert await test_redis.get("dashboard:stats:2025-03-15") is None
