"""Client endpoints: CRUD, archive state, rate and tier inspection."""

import uuid
from datetime import date, datetime
from typing import Any, Literal

import structlog
from fastapi import APIRouter, Depends, Query, Request, Response
from pydantic import BaseModel, Field
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from agencydesk.api.payments import PaymentResponse
from agencydesk.core.audit import AuditAction, audit_log
from agencydesk.core.cache import cache_invalidate
from agencydesk.core.config import settings
from agencydesk.core.limiter import limiter
from agencydesk.db.session import get_db
from agencydesk.models.client import Client
from agencydesk.models.payment import Payment
from agencydesk.models.task import Task
from agencydesk.services.billing import archive, ledger, progression, repository
from agencydesk.services.billing.rates import (
    billing_cadence,
    compute_rate_async,
    rate_breakdown,
    resolve_client_tier,
    to_money,
)
from agencydesk.services.billing.tiers import (
    approximate_tier_by_elapsed_time,
    parse_tiers,
    total_duration,
)

router = APIRouter(prefix="/clients", tags=["clients"])
logger = structlog.get_logger()

ClientPaymentType = Literal["monthly", "weekly", "per-post"]
EditableStatus = Literal["active", "inactive", "pending"]


# Pydantic schemas
class TierSchema(BaseModel):
    """One stage of a tiered schedule."""

    amount: float = Field(0, ge=0)
    duration_months: int = Field(0, ge=0, description="Completed payments covered by this tier")
    payment_type: Literal["monthly", "weekly"] = "monthly"
    services: dict[str, float] = {}


class ClientCreate(BaseModel):
    """Client creation schema."""

    name: str = Field(..., min_length=1, max_length=255)
    email: str | None = None
    phone: str | None = None
    company: str | None = None
    notes: str | None = None
    payment_type: ClientPaymentType = "monthly"
    monthly_rate: float | None = Field(None, ge=0)
    weekly_rate: float | None = Field(None, ge=0)
    services: dict[str, float] = {}
    tiered_payments: list[TierSchema] = []
    final_monthly_rate: float | None = Field(None, ge=0)
    final_weekly_rate: float | None = Field(None, ge=0)
    final_services: dict[str, float] = {}
    per_post_rates: dict[str, float] = {}
    fixed_payment_day: int | None = Field(None, ge=1, le=31)
    status: EditableStatus = "active"
    next_payment: date | None = None


class ClientUpdate(BaseModel):
    """Client update schema. Archiving goes through its own endpoint."""

    name: str | None = Field(None, min_length=1, max_length=255)
    email: str | None = None
    phone: str | None = None
    company: str | None = None
    notes: str | None = None
    payment_type: ClientPaymentType | None = None
    monthly_rate: float | None = Field(None, ge=0)
    weekly_rate: float | None = Field(None, ge=0)
    services: dict[str, float] | None = None
    tiered_payments: list[TierSchema] | None = None
    final_monthly_rate: float | None = Field(None, ge=0)
    final_weekly_rate: float | None = Field(None, ge=0)
    final_services: dict[str, float] | None = None
    per_post_rates: dict[str, float] | None = None
    fixed_payment_day: int | None = Field(None, ge=1, le=31)
    status: EditableStatus | None = None
    next_payment: date | None = None


class ClientResponse(BaseModel):
    """Client response schema."""

    model_config = {"from_attributes": True}

    id: uuid.UUID
    name: str
    email: str | None
    phone: str | None
    company: str | None
    notes: str | None
    payment_type: str
    monthly_rate: float | None
    weekly_rate: float | None
    services: dict[str, Any]
    tiered_payments: list[dict[str, Any]]
    final_monthly_rate: float | None
    final_weekly_rate: float | None
    final_services: dict[str, Any]
    per_post_rates: dict[str, Any]
    fixed_payment_day: int | None
    current_tier_index: int
    payment_count: int
    status: str
    next_payment: date | None
    created_at: datetime
    updated_at: datetime


class LineItemResponse(BaseModel):
    name: str
    amount: float


class RateResponse(BaseModel):
    """Amount due for the client's next billing cycle."""

    client_id: uuid.UUID
    payment_type: str
    cadence: str
    amount: float
    breakdown: list[LineItemResponse]
    month_year: str | None = None
    currency: str


class TierStatusResponse(BaseModel):
    """Where the client stands in its tier schedule."""

    client_id: uuid.UUID
    tier_index: int
    is_complete: bool
    payments_into_current_tier: int
    payment_count: int
    total_tiers: int
    total_duration: int
    # Calendar-based estimate, for display only; billing uses tier_index
    approximate_tier_index: int


class ReconcileResponse(BaseModel):
    client_id: uuid.UUID
    tier_index: int
    payment_count: int
    is_complete: bool
    changed: bool


class TaskCreate(BaseModel):
    """Task creation schema."""

    title: str = Field(..., min_length=1, max_length=255)
    description: str | None = None
    priority: Literal["low", "medium", "high"] = "medium"
    platform: str | None = None
    status: Literal["todo", "in-progress", "review", "completed"] = "todo"
    start_date: date | None = None
    end_date: date | None = None


class TaskResponse(BaseModel):
    """Task response schema."""

    model_config = {"from_attributes": True}

    id: uuid.UUID
    client_id: uuid.UUID
    title: str
    description: str | None
    priority: str
    platform: str | None
    status: str
    start_date: date | None
    end_date: date | None
    created_at: datetime


@router.get("", response_model=list[ClientResponse])
@limiter.limit("100/minute")
async def list_clients(
    request: Request,
    include_archived: bool = Query(True, description="Include archived clients"),
    status: str | None = Query(None, description="Only clients with this status"),
    db: AsyncSession = Depends(get_db),
) -> list[Client]:
    """List clients alphabetically."""
    return await repository.list_clients(db, include_archived=include_archived, status=status)


@router.post("", response_model=ClientResponse, status_code=201)
@limiter.limit("30/minute")
async def create_client(
    request: Request,
    client_data: ClientCreate,
    db: AsyncSession = Depends(get_db),
) -> Client:
    """Create a new client."""
    client = Client(**client_data.model_dump())
    db.add(client)
    await db.commit()
    await db.refresh(client)

    logger.info("client_created", client_id=str(client.id), payment_type=client.payment_type)
    await cache_invalidate("dashboard:*")
    audit_log(action=AuditAction.CLIENT_CREATE, resource_type="client", resource_id=str(client.id))
    return client


@router.get("/{client_id}", response_model=ClientResponse)
@limiter.limit("100/minute")
async def get_client(
    request: Request,
    client_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
) -> Client:
    """Get a single client by ID."""
    return await repository.get_client(db, client_id)


@router.patch("/{client_id}", response_model=ClientResponse)
@limiter.limit("30/minute")
async def update_client(
    request: Request,
    client_id: uuid.UUID,
    client_data: ClientUpdate,
    db: AsyncSession = Depends(get_db),
) -> Client:
    """Update a client.

    Changing the tier schedule re-resolves the current tier from the
    payment history. An archived client keeps its status and due date
    until it is unarchived.
    """
    patch = client_data.model_dump(exclude_unset=True)
    client = await repository.get_client(db, client_id)
    archive.ensure_editable(client, patch)
    await repository.update_client(db, client, patch)
    await db.commit()

    if "tiered_payments" in patch:
        await progression.ensure_up_to_date(db, client_id)
    await db.refresh(client)

    logger.info("client_updated", client_id=str(client_id), fields=sorted(patch))
    await cache_invalidate("dashboard:*")
    audit_log(
        action=AuditAction.CLIENT_UPDATE,
        resource_type="client",
        resource_id=str(client_id),
        details={"fields": sorted(patch)},
    )
    return client


@router.delete("/{client_id}", status_code=204)
@limiter.limit("30/minute")
async def delete_client(
    request: Request,
    client_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
) -> Response:
    """Delete a client together with its payments, post counts and tasks."""
    client = await repository.get_client(db, client_id)
    await db.delete(client)
    await db.commit()

    logger.info("client_deleted", client_id=str(client_id))
    await cache_invalidate("dashboard:*")
    audit_log(action=AuditAction.CLIENT_DELETE, resource_type="client", resource_id=str(client_id))
    return Response(status_code=204)


@router.post("/{client_id}/archive", response_model=ClientResponse)
@limiter.limit("30/minute")
async def archive_client(
    request: Request,
    client_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
) -> Client:
    """Archive a client; it drops out of upcoming payments and projections."""
    return await archive.archive(db, client_id)


@router.post("/{client_id}/unarchive", response_model=ClientResponse)
@limiter.limit("30/minute")
async def unarchive_client(
    request: Request,
    client_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
) -> Client:
    """Reactivate an archived client, next due one month from today."""
    return await archive.unarchive(db, client_id)


@router.get("/{client_id}/rate", response_model=RateResponse)
@limiter.limit("100/minute")
async def get_client_rate(
    request: Request,
    client_id: uuid.UUID,
    month_year: str | None = Query(None, pattern=r"^\d{4}-(0[1-9]|1[0-2])$"),
    db: AsyncSession = Depends(get_db),
) -> RateResponse:
    """Amount due for the next cycle, with its line items.

    Per-post clients are priced from the post counts of ``month_year``
    (default: the month currently being billed).
    """
    client = await repository.get_client(db, client_id)

    if client.is_per_post:
        month_year = month_year or ledger.billing_month_for(client)
        counts = await ledger.get_post_counts(db, client, month_year)
        rates = client.per_post_rates or {}
        breakdown = [
            LineItemResponse(name=platform, amount=float(to_money(rates.get(platform)) * count))
            for platform, count in counts.items()
            if count
        ]
    else:
        month_year = None
        breakdown = [
            LineItemResponse(name=item.name, amount=float(item.amount))
            for item in rate_breakdown(client)
        ]

    amount = await compute_rate_async(db, client, month_year)
    return RateResponse(
        client_id=client.id,
        payment_type=client.payment_type,
        cadence=billing_cadence(client),
        amount=float(amount),
        breakdown=breakdown,
        month_year=month_year,
        currency=settings.CURRENCY,
    )


@router.get("/{client_id}/tier", response_model=TierStatusResponse)
@limiter.limit("100/minute")
async def get_client_tier(
    request: Request,
    client_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
) -> TierStatusResponse:
    """Current tier position from the stored completed-payment count."""
    client = await repository.get_client(db, client_id)
    tiers = parse_tiers(client.tiered_payments)
    resolution = resolve_client_tier(client)
    estimate = approximate_tier_by_elapsed_time(tiers, client.created_at)

    return TierStatusResponse(
        client_id=client.id,
        tier_index=resolution.tier_index,
        is_complete=resolution.is_complete,
        payments_into_current_tier=resolution.payments_into_current_tier,
        payment_count=client.payment_count,
        total_tiers=len(tiers),
        total_duration=total_duration(tiers),
        approximate_tier_index=estimate.tier_index,
    )


@router.post("/{client_id}/reconcile", response_model=ReconcileResponse)
@limiter.limit("30/minute")
async def reconcile_client(
    request: Request,
    client_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
) -> ReconcileResponse:
    """Recompute tier index and payment count from the payment history."""
    result = await progression.ensure_up_to_date(db, client_id)
    return ReconcileResponse(
        client_id=result.client_id,
        tier_index=result.tier_index,
        payment_count=result.payment_count,
        is_complete=result.is_complete,
        changed=result.changed,
    )


@router.get("/{client_id}/payments", response_model=list[PaymentResponse])
@limiter.limit("100/minute")
async def list_client_payments(
    request: Request,
    client_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
) -> list[Payment]:
    """Payment history of a client, archived or not, most recent first."""
    await repository.get_client(db, client_id)
    result = await db.execute(
        select(Payment)
        .where(Payment.client_id == client_id)
        .order_by(Payment.payment_date.desc(), Payment.created_at.desc())
    )
    return list(result.scalars().all())


@router.get("/{client_id}/tasks", response_model=list[TaskResponse])
@limiter.limit("100/minute")
async def list_client_tasks(
    request: Request,
    client_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
) -> list[Task]:
    await repository.get_client(db, client_id)
    result = await db.execute(
        select(Task).where(Task.client_id == client_id).order_by(Task.created_at.desc())
    )
    return list(result.scalars().all())


@router.post("/{client_id}/tasks", response_model=TaskResponse, status_code=201)
@limiter.limit("30/minute")
async def create_client_task(
    request: Request,
    client_id: uuid.UUID,
    task_data: TaskCreate,
    db: AsyncSession = Depends(get_db),
) -> Task:
    await repository.get_client(db, client_id)
    task = Task(client_id=client_id, **task_data.model_dump())
    db.add(task)
    await db.commit()
    await db.refresh(task)

    logger.info("task_created", client_id=str(client_id), task_id=str(task.id))
    return task
