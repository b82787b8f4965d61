"""Per-post usage endpoints: post counters and monthly settlement."""

import uuid
from decimal import Decimal

import structlog
from fastapi import APIRouter, Depends, Query, Request
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession

from agencydesk.api.payments import PaymentResponse
from agencydesk.core.limiter import limiter
from agencydesk.db.session import get_db
from agencydesk.models.payment import Payment
from agencydesk.services.billing import ledger, repository

router = APIRouter(prefix="/clients/{client_id}/post-counts", tags=["post-counts"])
logger = structlog.get_logger()

MONTH_YEAR_PATTERN = r"^\d{4}-(0[1-9]|1[0-2])$"


class PostCountsResponse(BaseModel):
    """Post counts for one client and month."""

    client_id: uuid.UUID
    month_year: str
    counts: dict[str, int]
    total_amount: float


class PostCountResponse(BaseModel):
    client_id: uuid.UUID
    platform: str
    month_year: str
    count: int


class PostCountSet(BaseModel):
    count: int = Field(..., ge=0)


class SettleRequest(BaseModel):
    """Settlement overrides. Omitted fields are taken from the ledger."""

    amount: float | None = Field(None, ge=0)
    counts: dict[str, int] | None = None
    month_year: str | None = Field(None, pattern=MONTH_YEAR_PATTERN)


async def _month_for(db: AsyncSession, client_id: uuid.UUID, month_year: str | None) -> str:
    if month_year:
        return month_year
    client = await repository.get_client(db, client_id)
    return ledger.billing_month_for(client)


@router.get("", response_model=PostCountsResponse)
@limiter.limit("100/minute")
async def get_post_counts(
    request: Request,
    client_id: uuid.UUID,
    month_year: str | None = Query(None, pattern=MONTH_YEAR_PATTERN),
    db: AsyncSession = Depends(get_db),
) -> PostCountsResponse:
    """Counts per platform; configured platforms without posts read as 0."""
    client = await repository.get_client(db, client_id)
    month_year = month_year or ledger.billing_month_for(client)
    counts = await ledger.get_post_counts(db, client, month_year)
    total = await ledger.total_amount_due(db, client, month_year)
    return PostCountsResponse(
        client_id=client_id,
        month_year=month_year,
        counts=counts,
        total_amount=float(total),
    )


@router.post("/{platform}/increment", response_model=PostCountResponse)
@limiter.limit("100/minute")
async def increment_post_count(
    request: Request,
    client_id: uuid.UUID,
    platform: str,
    month_year: str | None = Query(None, pattern=MONTH_YEAR_PATTERN),
    db: AsyncSession = Depends(get_db),
) -> PostCountResponse:
    month_year = await _month_for(db, client_id, month_year)
    count = await ledger.increment(db, client_id, platform, month_year)
    return PostCountResponse(client_id=client_id, platform=platform, month_year=month_year, count=count)


@router.post("/{platform}/decrement", response_model=PostCountResponse)
@limiter.limit("100/minute")
async def decrement_post_count(
    request: Request,
    client_id: uuid.UUID,
    platform: str,
    month_year: str | None = Query(None, pattern=MONTH_YEAR_PATTERN),
    db: AsyncSession = Depends(get_db),
) -> PostCountResponse:
    """Decrease a counter by one. Already at zero: stays at zero."""
    month_year = await _month_for(db, client_id, month_year)
    count = await ledger.decrement(db, client_id, platform, month_year)
    return PostCountResponse(client_id=client_id, platform=platform, month_year=month_year, count=count)


@router.put("/{platform}", response_model=PostCountResponse)
@limiter.limit("100/minute")
async def set_post_count(
    request: Request,
    client_id: uuid.UUID,
    platform: str,
    body: PostCountSet,
    month_year: str | None = Query(None, pattern=MONTH_YEAR_PATTERN),
    db: AsyncSession = Depends(get_db),
) -> PostCountResponse:
    month_year = await _month_for(db, client_id, month_year)
    count = await ledger.set_count(db, client_id, platform, month_year, body.count)
    return PostCountResponse(client_id=client_id, platform=platform, month_year=month_year, count=count)


@router.post("/settle", response_model=PaymentResponse, status_code=201)
@limiter.limit("30/minute")
async def settle_post_counts(
    request: Request,
    client_id: uuid.UUID,
    body: SettleRequest | None = None,
    db: AsyncSession = Depends(get_db),
) -> Payment:
    """Close the month: record the payment, zero the counters, advance the due date."""
    body = body or SettleRequest()
    amount = Decimal(str(body.amount)) if body.amount is not None else None
    return await ledger.settle(
        db,
        client_id,
        amount=amount,
        counts_snapshot=body.counts,
        month_year=body.month_year,
    )
