"""Metered usage ledger for per-post clients.

Counts are kept per (client, platform, month). Rows appear on first write;
a platform with a configured rate but no row reads as zero. Counts never
go below zero. Concurrent writers to the same counter are last-write-wins.
"""

import uuid
from datetime import date
from decimal import Decimal

import structlog
from sqlalchemy import update
from sqlalchemy.ext.asyncio import AsyncSession

from agencydesk.core.audit import AuditAction, audit_log
from agencydesk.core.cache import cache_invalidate
from agencydesk.db.session import atomic
from agencydesk.models.client import Client
from agencydesk.models.payment import Payment, PaymentKind, PaymentStatus
from agencydesk.models.post_count import PostCount
from agencydesk.services.billing import repository
from agencydesk.services.billing.progression import reconcile_client
from agencydesk.services.billing.rates import amount_for_counts
from agencydesk.services.billing.schedule import month_year_for, next_payment_for_client
from agencydesk.services.errors import BillingModeError, InvalidPostCountError

logger = structlog.get_logger()


def billing_month_for(client: Client, today: date | None = None) -> str:
    """Month the ledger is currently counting: that of the next due date, else today's."""
    if client.next_payment and not client.is_archived:
        return month_year_for(client.next_payment)
    return month_year_for(today or date.today())


async def get_post_counts(
    db: AsyncSession,
    client: Client,
    month_year: str | None = None,
) -> dict[str, int]:
    """Platform -> count for a month, including configured platforms with no row yet."""
    month_year = month_year or billing_month_for(client)
    rows = await repository.get_post_counts(db, client.id, month_year)

    counts = {platform: 0 for platform in sorted(client.per_post_rates or {})}
    counts.update({row.platform: row.count for row in rows})
    return counts


async def set_count(
    db: AsyncSession,
    client_id: uuid.UUID,
    platform: str,
    month_year: str,
    count: int,
) -> int:
    """Overwrite a counter. Negative values are rejected."""
    if count < 0:
        raise InvalidPostCountError(f"Post count cannot be negative (got {count})")

    async with atomic(db):
        await repository.get_client(db, client_id)
        row = await repository.upsert_post_count(db, client_id, platform, month_year, count)
        new_count = row.count

    await _after_count_change(client_id, platform, month_year, new_count)
    return new_count


async def increment(db: AsyncSession, client_id: uuid.UUID, platform: str, month_year: str) -> int:
    async with atomic(db):
        await repository.get_client(db, client_id)
        row = await repository.get_post_count(db, client_id, platform, month_year)
        current = row.count if row else 0
        row = await repository.upsert_post_count(db, client_id, platform, month_year, current + 1)
        new_count = row.count

    await _after_count_change(client_id, platform, month_year, new_count)
    return new_count


async def decrement(db: AsyncSession, client_id: uuid.UUID, platform: str, month_year: str) -> int:
    """Decrease a counter by one; at zero (or with no row) this is a no-op."""
    async with atomic(db):
        await repository.get_client(db, client_id)
        row = await repository.get_post_count(db, client_id, platform, month_year)
        if row is None or row.count <= 0:
            return 0
        row.count -= 1
        await db.flush()
        new_count = row.count

    await _after_count_change(client_id, platform, month_year, new_count)
    return new_count


async def _after_count_change(client_id: uuid.UUID, platform: str, month_year: str, count: int) -> None:
    await cache_invalidate("dashboard:*")
    audit_log(
        action=AuditAction.POST_COUNT_UPDATE,
        resource_type="client",
        resource_id=str(client_id),
        details={"platform": platform, "month_year": month_year, "count": count},
    )


async def total_amount_due(
    db: AsyncSession,
    client: Client,
    month_year: str | None = None,
) -> Decimal:
    """Sum over platforms of count x per-post rate; unknown rates bill 0."""
    counts = await get_post_counts(db, client, month_year)
    return amount_for_counts(client.per_post_rates, counts)


async def settle(
    db: AsyncSession,
    client_id: uuid.UUID,
    amount: Decimal | None = None,
    counts_snapshot: dict[str, int] | None = None,
    month_year: str | None = None,
    due_date: date | None = None,
    today: date | None = None,
) -> Payment:
    """Close a per-post billing month in one transaction.

    Writes a completed ``post`` payment carrying the per-platform breakdown,
    zeroes every counter for the client and month, advances ``next_payment``
    past the settled date to the fixed billing day and reconciles the
    payment count. Either all of it is committed or none of it.

    ``amount`` and ``counts_snapshot`` default to what the ledger holds.
    The payment is dated ``due_date`` when settling a specific due payment,
    otherwise ``today``.
    """
    today = today or date.today()
    paid_on = due_date or today

    async with atomic(db):
        client = await repository.get_client(db, client_id, lock=True)
        if not client.is_per_post:
            raise BillingModeError(f"Client {client_id} is not billed per post")
        month_year = month_year or billing_month_for(client, today)

        if counts_snapshot is None:
            counts_snapshot = await get_post_counts(db, client, month_year)
        if any(count < 0 for count in counts_snapshot.values()):
            raise InvalidPostCountError("Post counts in a settlement cannot be negative")
        if amount is None:
            amount = amount_for_counts(client.per_post_rates, counts_snapshot)

        breakdown = {platform: count for platform, count in counts_snapshot.items() if count > 0}
        payment = await repository.create_payment(
            db,
            client_id=client.id,
            amount=amount,
            payment_date=paid_on,
            status=PaymentStatus.COMPLETED.value,
            kind=PaymentKind.POST.value,
            description=f"Per-post payment for {month_year}",
            post_count=sum(breakdown.values()),
            platform_breakdown=breakdown,
        )

        await db.execute(
            update(PostCount)
            .where(PostCount.client_id == client.id, PostCount.month_year == month_year)
            .values(count=0)
        )

        await reconcile_client(db, client)
        if not client.is_archived:
            client.next_payment = next_payment_for_client(client, paid_on, today)

    logger.info(
        "per_post_settled",
        client_id=str(client_id),
        month_year=month_year,
        amount=str(amount),
        posts=payment.post_count,
    )
    await cache_invalidate("dashboard:*")
    audit_log(
        action=AuditAction.PAYMENT_SETTLE,
        resource_type="payment",
        resource_id=str(payment.id),
        details={"client_id": str(client_id), "month_year": month_year, "amount": str(amount)},
    )
    return payment
