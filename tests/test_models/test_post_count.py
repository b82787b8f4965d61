"""Tests for PostCount and Payment models."""

from datetime import date
from decimal import Decimal
from typing import Any

import pytest
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from agencydesk.models.payment import Payment
from agencydesk.models.post_count import PostCount


class TestPostCountModel:
    """Test PostCount constraints."""

    @pytest.mark.asyncio
    async def test_create_post_count(
        self,
        test_session: AsyncSession,
        create_test_client: Any,
    ) -> None:
        client = await create_test_client(payment_type="per-post")
        row = PostCount(client_id=client.id, platform="instagram", month_year="2025-03")
        test_session.add(row)
        await test_session.commit()
        await test_session.refresh(row)

        assert row.id is not None
        assert row.count == 0

    @pytest.mark.asyncio
    async def test_one_row_per_client_platform_month(
        self,
        test_session: AsyncSession,
        create_test_client: Any,
    ) -> None:
        client = await create_test_client(payment_type="per-post")
        test_session.add(PostCount(client_id=client.id, platform="instagram", month_year="2025-03", count=1))
        await test_session.commit()

        test_session.add(PostCount(client_id=client.id, platform="instagram", month_year="2025-03", count=2))
        with pytest.raises(IntegrityError):
            await test_session.commit()

    @pytest.mark.asyncio
    async def test_negative_count_rejected(
        self,
        test_session: AsyncSession,
        create_test_client: Any,
    ) -> None:
        client = await create_test_client(payment_type="per-post")
        test_session.add(PostCount(client_id=client.id, platform="instagram", month_year="2025-03", count=-1))

        with pytest.raises(IntegrityError):
            await test_session.commit()


class TestPaymentModel:
    """Test Payment defaults."""

    @pytest.mark.asyncio
    async def test_defaults(
        self,
        test_session: AsyncSession,
        create_test_client: Any,
    ) -> None:
        client = await create_test_client()
        payment = Payment(client_id=client.id, amount=Decimal("2500.50"), payment_date=date(2025, 3, 1))
        test_session.add(payment)
        await test_session.commit()
        await test_session.refresh(payment)

        assert payment.status == "completed"
        assert payment.type == "payment"
        assert payment.amount == Decimal("2500.50")
        assert payment.post_count is None
        assert payment.platform_breakdown is None
