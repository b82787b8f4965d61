"""Team salary scheduling and payouts.

Salaries are due monthly on the day of month taken from the member's
``payment_date``. A payout is an ``OtherExpense`` titled
``Salary - <name>``; a month counts as paid when such an expense exists
inside it.
"""

import uuid
from dataclasses import dataclass
from datetime import date
from decimal import Decimal

import structlog
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from agencydesk.core.audit import AuditAction, audit_log
from agencydesk.core.cache import cache_invalidate
from agencydesk.core.config import settings
from agencydesk.db.session import atomic
from agencydesk.models.team import OtherExpense, TeamMember
from agencydesk.services.billing.schedule import add_months, day_in_month, parse_payment_day
from agencydesk.services.errors import TeamMemberNotFoundError

logger = structlog.get_logger()

# Salaries due this many days ahead (or already overdue) are listed
TEAM_PAYMENT_WINDOW_DAYS = 7


@dataclass
class UpcomingTeamPayment:
    member_id: uuid.UUID
    name: str
    role: str
    amount: Decimal
    due_date: date
    days_until_due: int


def salary_title(name: str) -> str:
    return f"Salary - {name}"


async def _paid_in_month(db: AsyncSession, name: str, month_start: date) -> bool:
    found = await db.scalar(
        select(OtherExpense.id)
        .where(
            OtherExpense.title.contains(salary_title(name)),
            OtherExpense.expense_date >= month_start,
            OtherExpense.expense_date < add_months(month_start, 1),
        )
        .limit(1)
    )
    return found is not None


async def next_salary_due(db: AsyncSession, member: TeamMember, today: date | None = None) -> date:
    """Most recent unpaid salary date in the look-back window, else next month's."""
    today = today or date.today()
    pay_day = parse_payment_day(member.payment_date)
    this_month = today.replace(day=1)

    for offset in range(settings.TEAM_PAYMENTS_LOOKBACK_MONTHS):
        month_start = add_months(this_month, -offset)
        if not await _paid_in_month(db, member.name, month_start):
            return day_in_month(month_start.year, month_start.month, pay_day)

    following = add_months(this_month, 1)
    return day_in_month(following.year, following.month, pay_day)


def _payout_date(due: date, today: date) -> date:
    """Payouts land in the month of the salary they settle."""
    if (due.year, due.month) == (today.year, today.month):
        return today
    return due


async def get_upcoming_team_payments(
    db: AsyncSession,
    today: date | None = None,
) -> list[UpcomingTeamPayment]:
    """Unpaid salaries for active members due within a week, overdue first."""
    today = today or date.today()
    result = await db.execute(select(TeamMember).where(TeamMember.status == "active"))

    upcoming = []
    for member in result.scalars().all():
        due = await next_salary_due(db, member, today)
        days_until_due = (due - today).days
        if days_until_due > TEAM_PAYMENT_WINDOW_DAYS:
            continue
        upcoming.append(
            UpcomingTeamPayment(
                member_id=member.id,
                name=member.name,
                role=member.role,
                amount=member.salary,
                due_date=due,
                days_until_due=days_until_due,
            )
        )

    upcoming.sort(key=lambda payment: payment.days_until_due)
    return upcoming


async def mark_team_member_paid(
    db: AsyncSession,
    member_id: uuid.UUID,
    due_date: date | None = None,
    today: date | None = None,
) -> OtherExpense:
    """Record a salary payout and move the member's pay date on a month.

    ``due_date`` is the salary being paid; it defaults to the member's
    most recent unpaid one.
    """
    today = today or date.today()

    async with atomic(db):
        member = await db.get(TeamMember, member_id, with_for_update=True)
        if member is None:
            raise TeamMemberNotFoundError(member_id)

        due = due_date or await next_salary_due(db, member, today)
        expense = OtherExpense(
            title=salary_title(member.name),
            amount=member.salary,
            expense_date=_payout_date(due, today),
            description=f"Monthly salary payment for {member.role}",
        )
        db.add(expense)
        member.payment_date = add_months(due, 1).isoformat()
        await db.flush()

    logger.info(
        "salary_paid",
        member_id=str(member_id),
        amount=str(expense.amount),
        next_payment_date=member.payment_date,
    )
    await cache_invalidate("dashboard:*")
    audit_log(
        action=AuditAction.SALARY_PAID,
        resource_type="team_member",
        resource_id=str(member_id),
        details={"amount": str(expense.amount), "due_date": due.isoformat()},
    )
    return expense
