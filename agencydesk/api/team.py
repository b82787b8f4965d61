"""Team payroll and expense endpoints."""

import uuid
from datetime import date, datetime

import structlog
from fastapi import APIRouter, Depends, Query, Request, Response
from pydantic import BaseModel, Field
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from agencydesk.core.cache import cache_invalidate
from agencydesk.core.limiter import limiter
from agencydesk.db.session import get_db
from agencydesk.models.team import OtherExpense, TeamMember
from agencydesk.services import payroll
from agencydesk.services.errors import NotFoundError, TeamMemberNotFoundError

router = APIRouter(prefix="/team", tags=["team"])
expenses_router = APIRouter(prefix="/expenses", tags=["expenses"])
logger = structlog.get_logger()


# Pydantic schemas
class TeamMemberCreate(BaseModel):
    """Team member creation schema."""

    name: str = Field(..., min_length=1, max_length=255)
    email: str | None = None
    phone: str | None = None
    role: str = Field(..., min_length=1, max_length=100)
    salary: float = Field(..., ge=0)
    status: str = "active"
    payment_date: str = Field(..., description="Pay date; only its day of month is used")
    notes: str | None = None


class TeamMemberUpdate(BaseModel):
    name: str | None = Field(None, min_length=1, max_length=255)
    email: str | None = None
    phone: str | None = None
    role: str | None = None
    salary: float | None = Field(None, ge=0)
    status: str | None = None
    payment_date: str | None = None
    notes: str | None = None


class TeamMemberResponse(BaseModel):
    """Team member response schema."""

    model_config = {"from_attributes": True}

    id: uuid.UUID
    name: str
    email: str | None
    phone: str | None
    role: str
    salary: float
    status: str
    payment_date: str
    notes: str | None


class UpcomingTeamPaymentResponse(BaseModel):
    member_id: uuid.UUID
    name: str
    role: str
    amount: float
    due_date: date
    days_until_due: int


class MarkSalaryPaidRequest(BaseModel):
    due_date: date | None = None


class ExpenseCreate(BaseModel):
    """Expense creation schema."""

    title: str = Field(..., min_length=1, max_length=255)
    amount: float = Field(..., ge=0)
    expense_date: date
    description: str | None = None


class ExpenseResponse(BaseModel):
    """Expense response schema."""

    model_config = {"from_attributes": True}

    id: uuid.UUID
    title: str
    amount: float
    expense_date: date
    description: str | None
    created_at: datetime


async def _get_member(db: AsyncSession, member_id: uuid.UUID) -> TeamMember:
    member = await db.get(TeamMember, member_id)
    if member is None:
        raise TeamMemberNotFoundError(member_id)
    return member


@router.get("", response_model=list[TeamMemberResponse])
@limiter.limit("100/minute")
async def list_team_members(
    request: Request,
    status: str | None = Query(None, description="Filter by status"),
    db: AsyncSession = Depends(get_db),
) -> list[TeamMember]:
    query = select(TeamMember).order_by(TeamMember.name)
    if status:
        query = query.where(TeamMember.status == status)
    result = await db.execute(query)
    return list(result.scalars().all())


@router.post("", response_model=TeamMemberResponse, status_code=201)
@limiter.limit("30/minute")
async def create_team_member(
    request: Request,
    member_data: TeamMemberCreate,
    db: AsyncSession = Depends(get_db),
) -> TeamMember:
    member = TeamMember(**member_data.model_dump())
    db.add(member)
    await db.commit()
    await db.refresh(member)

    logger.info("team_member_created", member_id=str(member.id))
    await cache_invalidate("dashboard:*")
    return member


@router.patch("/{member_id}", response_model=TeamMemberResponse)
@limiter.limit("30/minute")
async def update_team_member(
    request: Request,
    member_id: uuid.UUID,
    member_data: TeamMemberUpdate,
    db: AsyncSession = Depends(get_db),
) -> TeamMember:
    member = await _get_member(db, member_id)
    for field, value in member_data.model_dump(exclude_unset=True).items():
        setattr(member, field, value)
    await db.commit()
    await db.refresh(member)

    await cache_invalidate("dashboard:*")
    return member


@router.delete("/{member_id}", status_code=204)
@limiter.limit("30/minute")
async def delete_team_member(
    request: Request,
    member_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
) -> Response:
    member = await _get_member(db, member_id)
    await db.delete(member)
    await db.commit()

    logger.info("team_member_deleted", member_id=str(member_id))
    await cache_invalidate("dashboard:*")
    return Response(status_code=204)


@router.get("/upcoming-payments", response_model=list[UpcomingTeamPaymentResponse])
@limiter.limit("100/minute")
async def get_upcoming_team_payments(
    request: Request,
    db: AsyncSession = Depends(get_db),
) -> list[UpcomingTeamPaymentResponse]:
    """Unpaid salaries due within a week, overdue ones first."""
    upcoming = await payroll.get_upcoming_team_payments(db)
    return [
        UpcomingTeamPaymentResponse(
            member_id=entry.member_id,
            name=entry.name,
            role=entry.role,
            amount=float(entry.amount),
            due_date=entry.due_date,
            days_until_due=entry.days_until_due,
        )
        for entry in upcoming
    ]


@router.post("/{member_id}/mark-paid", response_model=ExpenseResponse, status_code=201)
@limiter.limit("30/minute")
async def mark_team_member_paid(
    request: Request,
    member_id: uuid.UUID,
    body: MarkSalaryPaidRequest | None = None,
    db: AsyncSession = Depends(get_db),
) -> OtherExpense:
    """Record the salary payout and move the pay date on a month."""
    body = body or MarkSalaryPaidRequest()
    return await payroll.mark_team_member_paid(db, member_id, due_date=body.due_date)


@expenses_router.get("", response_model=list[ExpenseResponse])
@limiter.limit("100/minute")
async def list_expenses(
    request: Request,
    date_from: date | None = Query(None),
    date_to: date | None = Query(None),
    db: AsyncSession = Depends(get_db),
) -> list[OtherExpense]:
    query = select(OtherExpense).order_by(OtherExpense.expense_date.desc())
    if date_from:
        query = query.where(OtherExpense.expense_date >= date_from)
    if date_to:
        query = query.where(OtherExpense.expense_date <= date_to)
    result = await db.execute(query)
    return list(result.scalars().all())


@expenses_router.post("", response_model=ExpenseResponse, status_code=201)
@limiter.limit("30/minute")
async def create_expense(
    request: Request,
    expense_data: ExpenseCreate,
    db: AsyncSession = Depends(get_db),
) -> OtherExpense:
    expense = OtherExpense(
        title=expense_data.title,
        amount=expense_data.amount,
        expense_date=expense_data.expense_date,
        description=expense_data.description,
    )
    db.add(expense)
    await db.commit()
    await db.refresh(expense)

    await cache_invalidate("dashboard:*")
    return expense


@expenses_router.delete("/{expense_id}", status_code=204)
@limiter.limit("30/minute")
async def delete_expense(
    request: Request,
    expense_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
) -> Response:
    expense = await db.get(OtherExpense, expense_id)
    if expense is None:
        raise NotFoundError(f"Expense {expense_id} not found")
    await db.delete(expense)
    await db.commit()

    await cache_invalidate("dashboard:*")
    return Response(status_code=204)
