"""Payment completion workflows.

A completed payment sets off a cascade: the payment row, the tier and
payment-count reconciliation, and the next due date. Each workflow below
runs that cascade inside a single transaction so a failure part-way
leaves the client exactly as it was.
"""

import uuid
from datetime import date
from decimal import Decimal

import structlog
from sqlalchemy.ext.asyncio import AsyncSession

from agencydesk.core.audit import AuditAction, audit_log
from agencydesk.core.cache import cache_invalidate
from agencydesk.db.session import atomic
from agencydesk.models.client import Client
from agencydesk.models.payment import Payment, PaymentKind, PaymentStatus
from agencydesk.services.billing import ledger, repository
from agencydesk.services.billing.progression import reconcile_client
from agencydesk.services.billing.rates import compute_rate
from agencydesk.services.billing.schedule import month_year_for, next_payment_for_client
from agencydesk.services.errors import DuplicatePaymentError

logger = structlog.get_logger()


async def _complete(db: AsyncSession, client: Client, paid_due_date: date, today: date) -> None:
    """Reconcile tier state, then move the due date past the one just paid."""
    await reconcile_client(db, client)
    if client.is_archived:
        return
    client.next_payment = next_payment_for_client(client, paid_due_date, today)
    await db.flush()


async def record_payment(
    db: AsyncSession,
    client_id: uuid.UUID,
    amount: Decimal,
    payment_date: date,
    status: str = PaymentStatus.COMPLETED.value,
    kind: str = PaymentKind.PAYMENT.value,
    description: str | None = None,
    today: date | None = None,
) -> Payment:
    """Record a billing event; completed payments run the full cascade.

    A completed payment from a per-post client settles that month's
    ledger, so the counters and the payment breakdown stay in step.
    """
    today = today or date.today()

    if status == PaymentStatus.COMPLETED.value:
        client = await repository.get_client(db, client_id)
        if client.is_per_post:
            return await ledger.settle(
                db,
                client_id,
                amount=amount,
                month_year=month_year_for(payment_date),
                due_date=payment_date,
                today=today,
            )

    async with atomic(db):
        client = await repository.get_client(db, client_id, lock=True)
        payment = await repository.create_payment(
            db,
            client_id=client.id,
            amount=amount,
            payment_date=payment_date,
            status=status,
            kind=kind,
            description=description,
        )
        if status == PaymentStatus.COMPLETED.value:
            await _complete(db, client, payment_date, today)

    logger.info(
        "payment_recorded",
        client_id=str(client_id),
        amount=str(amount),
        status=status,
        next_payment=str(client.next_payment),
    )
    await cache_invalidate("dashboard:*")
    audit_log(
        action=AuditAction.PAYMENT_RECORD,
        resource_type="payment",
        resource_id=str(payment.id),
        details={"client_id": str(client_id), "amount": str(amount), "status": status},
    )
    return payment


async def mark_due_payment_paid(
    db: AsyncSession,
    client_id: uuid.UUID,
    due_date: date | None = None,
    amount: Decimal | None = None,
    today: date | None = None,
) -> Payment:
    """Mark the client's due payment as received.

    ``due_date`` defaults to the client's ``next_payment``. Per-post
    clients are settled from the ledger for that due date's month; everyone
    else gets a completed payment for their current rate.

    Raises:
        DuplicatePaymentError: a completed payment already covers ``due_date``
    """
    today = today or date.today()
    client = await repository.get_client(db, client_id)
    due = due_date or client.next_payment or today

    if await repository.payment_exists(db, client_id, due):
        raise DuplicatePaymentError(f"Payment for {due.isoformat()} is already recorded")

    if client.is_per_post:
        return await ledger.settle(
            db,
            client_id,
            amount=amount,
            month_year=month_year_for(due),
            due_date=due,
            today=today,
        )

    if amount is None:
        # Stored tier state may lag behind the payment history
        await reconcile_client(db, client)
        amount = compute_rate(client)

    return await record_payment(
        db,
        client_id,
        amount=amount,
        payment_date=due,
        description="Monthly payment received",
        today=today,
    )
