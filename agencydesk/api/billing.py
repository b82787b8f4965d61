"""Billing endpoints: upcoming payments, mark-as-paid and the tier sweep."""

import uuid
from datetime import date
from decimal import Decimal

import structlog
from fastapi import APIRouter, Depends, Query, Request
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession

from agencydesk.api.payments import PaymentResponse
from agencydesk.core.limiter import limiter
from agencydesk.db.session import get_db
from agencydesk.models.payment import Payment
from agencydesk.services import dashboard
from agencydesk.services.billing import progression
from agencydesk.services.billing.workflow import mark_due_payment_paid

router = APIRouter(prefix="/billing", tags=["billing"])
logger = structlog.get_logger()


class UpcomingPaymentResponse(BaseModel):
    """A client payment that is due soon or overdue."""

    client_id: uuid.UUID
    client_name: str
    payment_type: str
    due_date: date
    amount: float
    days_until_due: int
    payment_done: bool
    status: str


class MarkPaidRequest(BaseModel):
    """Both fields are optional: defaults are the client's due date and current rate."""

    due_date: date | None = None
    amount: float | None = Field(None, ge=0)


class SweepResponse(BaseModel):
    checked: int
    updated: int
    skipped: bool


@router.get("/upcoming", response_model=list[UpcomingPaymentResponse])
@limiter.limit("100/minute")
async def get_upcoming_payments(
    request: Request,
    within_days: int | None = Query(None, ge=0, le=365, description="Look-ahead window in days"),
    db: AsyncSession = Depends(get_db),
) -> list[UpcomingPaymentResponse]:
    """Client payments due within the window, overdue ones first."""
    upcoming = await dashboard.get_upcoming_payments(db, within_days=within_days)
    return [
        UpcomingPaymentResponse(
            client_id=entry.client_id,
            client_name=entry.client_name,
            payment_type=entry.payment_type,
            due_date=entry.due_date,
            amount=float(entry.amount),
            days_until_due=entry.days_until_due,
            payment_done=entry.payment_done,
            status=entry.status,
        )
        for entry in upcoming
    ]


@router.post("/clients/{client_id}/mark-paid", response_model=PaymentResponse, status_code=201)
@limiter.limit("30/minute")
async def mark_paid(
    request: Request,
    client_id: uuid.UUID,
    body: MarkPaidRequest | None = None,
    db: AsyncSession = Depends(get_db),
) -> Payment:
    """Mark a client's due payment as received.

    Records the payment, reconciles the tier and advances the due date in
    one transaction. Answers 409 if that due date is already paid.
    """
    body = body or MarkPaidRequest()
    amount = Decimal(str(body.amount)) if body.amount is not None else None
    return await mark_due_payment_paid(db, client_id, due_date=body.due_date, amount=amount)


@router.post("/reconcile", response_model=SweepResponse)
@limiter.limit("6/minute")
async def reconcile_all(
    request: Request,
    force: bool = Query(False, description="Run even if a sweep ran recently"),
    db: AsyncSession = Depends(get_db),
) -> SweepResponse:
    """Reconcile tier state for every non-archived client."""
    result = await progression.reconcile_all_active(db, force=force)
    return SweepResponse(checked=result.checked, updated=result.updated, skipped=result.skipped)
