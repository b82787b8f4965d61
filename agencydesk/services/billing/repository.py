"""Persistence operations the billing engine needs.

Functions here only read and stage writes (``flush``); committing is the
caller's job so several steps can share one transaction.
"""

import uuid
from datetime import date
from decimal import Decimal
from typing import Any

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from agencydesk.models.client import Client, ClientStatus
from agencydesk.models.payment import Payment, PaymentKind, PaymentStatus
from agencydesk.models.post_count import PostCount
from agencydesk.services.errors import ClientNotFoundError


async def get_client(db: AsyncSession, client_id: uuid.UUID, lock: bool = False) -> Client:
    """Load a client or raise :class:`ClientNotFoundError`.

    ``lock`` takes a row lock (``SELECT ... FOR UPDATE``) on backends that
    support it, serialising concurrent billing writes to the same client.
    """
    query = select(Client).where(Client.id == client_id)
    if lock:
        query = query.with_for_update()

    result = await db.execute(query)
    client = result.scalar_one_or_none()
    if client is None:
        raise ClientNotFoundError(client_id)
    return client


async def list_clients(
    db: AsyncSession,
    include_archived: bool = True,
    status: str | None = None,
) -> list[Client]:
    query = select(Client).order_by(Client.name)
    if status:
        query = query.where(Client.status == status)
    elif not include_archived:
        query = query.where(Client.status != ClientStatus.ARCHIVED.value)

    result = await db.execute(query)
    return list(result.scalars().all())


async def update_client(db: AsyncSession, client: Client, patch: dict[str, Any]) -> Client:
    """Apply a partial update to a loaded client."""
    for field, value in patch.items():
        setattr(client, field, value)
    await db.flush()
    return client


async def count_completed_payments(db: AsyncSession, client_id: uuid.UUID) -> int:
    """Authoritative input to tier resolution."""
    count = await db.scalar(
        select(func.count())
        .select_from(Payment)
        .where(Payment.client_id == client_id, Payment.status == PaymentStatus.COMPLETED.value)
    )
    return int(count or 0)


async def completed_payment_counts(db: AsyncSession) -> dict[uuid.UUID, int]:
    """Completed-payment count for every client that has one, in one query."""
    result = await db.execute(
        select(Payment.client_id, func.count(Payment.id))
        .where(Payment.status == PaymentStatus.COMPLETED.value)
        .group_by(Payment.client_id)
    )
    return {client_id: int(count) for client_id, count in result.all()}


async def create_payment(
    db: AsyncSession,
    client_id: uuid.UUID,
    amount: Decimal,
    payment_date: date,
    status: str = PaymentStatus.COMPLETED.value,
    kind: str = PaymentKind.PAYMENT.value,
    description: str | None = None,
    post_count: int | None = None,
    platform_breakdown: dict[str, int] | None = None,
) -> Payment:
    payment = Payment(
        client_id=client_id,
        amount=amount,
        payment_date=payment_date,
        status=status,
        type=kind,
        description=description,
        post_count=post_count,
        platform_breakdown=platform_breakdown,
    )
    db.add(payment)
    await db.flush()
    return payment


async def get_post_counts(db: AsyncSession, client_id: uuid.UUID, month_year: str) -> list[PostCount]:
    result = await db.execute(
        select(PostCount)
        .where(PostCount.client_id == client_id, PostCount.month_year == month_year)
        .order_by(PostCount.platform)
    )
    return list(result.scalars().all())


async def get_post_count(
    db: AsyncSession,
    client_id: uuid.UUID,
    platform: str,
    month_year: str,
) -> PostCount | None:
    result = await db.execute(
        select(PostCount).where(
            PostCount.client_id == client_id,
            PostCount.platform == platform,
            PostCount.month_year == month_year,
        )
    )
    return result.scalar_one_or_none()


async def upsert_post_count(
    db: AsyncSession,
    client_id: uuid.UUID,
    platform: str,
    month_year: str,
    count: int,
) -> PostCount:
    """Set the counter for a platform/month, creating the row on first use."""
    row = await get_post_count(db, client_id, platform, month_year)
    if row is None:
        row = PostCount(client_id=client_id, platform=platform, month_year=month_year, count=count)
        db.add(row)
    else:
        row.count = count
    await db.flush()
    return row


async def payment_exists(db: AsyncSession, client_id: uuid.UUID, due_date: date) -> bool:
    """Whether a completed payment is already recorded for this due date."""
    found = await db.scalar(
        select(Payment.id)
        .where(
            Payment.client_id == client_id,
            Payment.payment_date == due_date,
            Payment.status == PaymentStatus.COMPLETED.value,
        )
        .limit(1)
    )
    return found is not None
