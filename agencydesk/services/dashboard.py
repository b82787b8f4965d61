"""Dashboard read models: upcoming client payments and headline stats."""

import uuid
from dataclasses import dataclass
from datetime import date, timedelta
from decimal import Decimal
from typing import Any

import structlog
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from agencydesk.core.cache import cache_get, cache_set
from agencydesk.core.config import settings
from agencydesk.models.client import Client, ClientStatus
from agencydesk.models.payment import Payment, PaymentStatus
from agencydesk.models.team import TeamMember
from agencydesk.services.billing import repository
from agencydesk.services.billing.rates import ZERO, compute_rate_async
from agencydesk.services.billing.schedule import add_months

logger = structlog.get_logger()


@dataclass
class UpcomingPayment:
    client_id: uuid.UUID
    client_name: str
    payment_type: str
    due_date: date
    amount: Decimal
    days_until_due: int
    payment_done: bool

    @property
    def status(self) -> str:
        if self.payment_done:
            return "paid"
        return "overdue" if self.days_until_due < 0 else "upcoming"


async def get_upcoming_payments(
    db: AsyncSession,
    within_days: int | None = None,
    today: date | None = None,
) -> list[UpcomingPayment]:
    """Payments due within ``within_days`` of ``today``, overdue ones included.

    Archived clients never appear, whatever their stored due date.
    """
    today = today or date.today()
    if within_days is None:
        within_days = settings.UPCOMING_PAYMENTS_WINDOW_DAYS
    horizon = today + timedelta(days=within_days)

    result = await db.execute(
        select(Client)
        .where(
            Client.status != ClientStatus.ARCHIVED.value,
            Client.next_payment.is_not(None),
            Client.next_payment <= horizon,
        )
        .order_by(Client.next_payment, Client.name)
    )

    upcoming = []
    for client in result.scalars().all():
        due = client.next_payment
        upcoming.append(
            UpcomingPayment(
                client_id=client.id,
                client_name=client.name,
                payment_type=client.payment_type,
                due_date=due,
                amount=await compute_rate_async(db, client),
                days_until_due=(due - today).days,
                payment_done=await repository.payment_exists(db, client.id, due),
            )
        )
    return upcoming


async def _sum_payments(db: AsyncSession, *conditions: Any) -> Decimal:
    total = await db.scalar(
        select(func.coalesce(func.sum(Payment.amount), 0))
        .join(Client, Payment.client_id == Client.id)
        .where(*conditions)
    )
    return Decimal(str(total or 0))


async def get_dashboard_stats(db: AsyncSession, today: date | None = None) -> dict[str, Any]:
    """Headline numbers for the current month, cached for a short while."""
    today = today or date.today()
    cache_key = f"dashboard:stats:{today.isoformat()}"

    cached = await cache_get(cache_key)
    if cached is not None:
        logger.debug("dashboard_stats_cache_hit", key=cache_key)
        return dict(cached)

    month_start = today.replace(day=1)
    next_month_start = add_months(month_start, 1)

    monthly_revenue = await _sum_payments(
        db,
        Payment.status == PaymentStatus.COMPLETED.value,
        Payment.payment_date >= month_start,
        Payment.payment_date < next_month_start,
    )
    pending_amount = await _sum_payments(
        db,
        Payment.status == PaymentStatus.PENDING.value,
        Client.status != ClientStatus.ARCHIVED.value,
    )

    active_clients = await repository.list_clients(db, status=ClientStatus.ACTIVE.value)
    projected_revenue = ZERO
    for client in active_clients:
        projected_revenue += await compute_rate_async(db, client)

    salaries = await db.scalar(
        select(func.coalesce(func.sum(TeamMember.salary), 0)).where(TeamMember.status == "active")
    )
    monthly_expenses = Decimal(str(salaries or 0))

    profit_margin = (
        (monthly_revenue - monthly_expenses) / monthly_revenue * 100 if monthly_revenue > 0 else ZERO
    )

    stats = {
        "monthly_revenue": round(float(monthly_revenue), 2),
        "active_clients": len(active_clients),
        "pending_amount": round(float(pending_amount), 2),
        "monthly_expenses": round(float(monthly_expenses), 2),
        "profit_margin": round(float(profit_margin), 2),
        "projected_revenue": round(float(projected_revenue), 2),
        "currency": settings.CURRENCY,
    }

    await cache_set(cache_key, stats, ttl=settings.DASHBOARD_CACHE_TTL)
    return stats
