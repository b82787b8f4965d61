"""Payment endpoints."""

import uuid
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Literal

import structlog
from fastapi import APIRouter, Depends, Query, Request
from pydantic import BaseModel, Field
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from agencydesk.core.limiter import limiter
from agencydesk.db.session import get_db
from agencydesk.models.payment import Payment
from agencydesk.services.billing import repository
from agencydesk.services.billing.workflow import record_payment

router = APIRouter(prefix="/payments", tags=["payments"])
logger = structlog.get_logger()


class PaymentResponse(BaseModel):
    """Payment response schema."""

    model_config = {"from_attributes": True}

    id: uuid.UUID
    client_id: uuid.UUID
    amount: float
    payment_date: date
    status: str
    type: str
    description: str | None
    post_count: int | None
    platform_breakdown: dict[str, Any] | None
    created_at: datetime


class PaymentCreate(BaseModel):
    """Payment creation schema."""

    client_id: uuid.UUID
    amount: float = Field(..., ge=0)
    payment_date: date
    status: Literal["completed", "pending", "overdue"] = "completed"
    type: Literal["payment", "post", "reminder"] = "payment"
    description: str | None = None


class PaymentExistsResponse(BaseModel):
    client_id: uuid.UUID
    due_date: date
    exists: bool


@router.get("", response_model=list[PaymentResponse])
@limiter.limit("100/minute")
async def list_payments(
    request: Request,
    client_id: uuid.UUID | None = Query(None, description="Only this client's payments"),
    status: str | None = Query(None, description="Filter by status"),
    date_from: date | None = Query(None, description="Payments on or after this date"),
    date_to: date | None = Query(None, description="Payments on or before this date"),
    skip: int = Query(0, ge=0),
    limit: int = Query(100, ge=1, le=500),
    db: AsyncSession = Depends(get_db),
) -> list[Payment]:
    """List payments, most recent first."""
    query = select(Payment)
    if client_id:
        query = query.where(Payment.client_id == client_id)
    if status:
        query = query.where(Payment.status == status)
    if date_from:
        query = query.where(Payment.payment_date >= date_from)
    if date_to:
        query = query.where(Payment.payment_date <= date_to)

    result = await db.execute(
        query.order_by(Payment.payment_date.desc(), Payment.created_at.desc()).offset(skip).limit(limit)
    )
    return list(result.scalars().all())


@router.post("", response_model=PaymentResponse, status_code=201)
@limiter.limit("30/minute")
async def create_payment(
    request: Request,
    payment_data: PaymentCreate,
    db: AsyncSession = Depends(get_db),
) -> Payment:
    """Record a payment.

    A completed payment also reconciles the client's tier and advances
    its next due date; for a per-post client it settles the ledger month
    of ``payment_date``.
    """
    return await record_payment(
        db,
        payment_data.client_id,
        amount=Decimal(str(payment_data.amount)),
        payment_date=payment_data.payment_date,
        status=payment_data.status,
        kind=payment_data.type,
        description=payment_data.description,
    )


@router.get("/exists", response_model=PaymentExistsResponse)
async def payment_exists(
    client_id: uuid.UUID,
    due_date: date,
    db: AsyncSession = Depends(get_db),
) -> PaymentExistsResponse:
    """Whether a completed payment already covers ``due_date``."""
    exists = await repository.payment_exists(db, client_id, due_date)
    return PaymentExistsResponse(client_id=client_id, due_date=due_date, exists=exists)
