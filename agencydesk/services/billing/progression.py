"""Reconciliation of stored tier state with the payment history.

``Client.payment_count`` and ``Client.current_tier_index`` are caches of
values derived from the completed payments. Reconciliation recomputes them
from scratch instead of incrementing, so repeating it (after a retry, a
double click, or a concurrent request) always converges on the same state.
"""

import uuid
from dataclasses import dataclass

import structlog
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from agencydesk.core.audit import AuditAction, audit_log
from agencydesk.core.cache import cache_acquire, cache_invalidate
from agencydesk.core.config import settings
from agencydesk.db.session import atomic
from agencydesk.models.client import Client
from agencydesk.services.billing import repository
from agencydesk.services.billing.tiers import parse_tiers, resolve_tier
from agencydesk.services.errors import ReconciliationError

logger = structlog.get_logger()

TIER_SWEEP_KEY = "billing:tier_sweep"


@dataclass(frozen=True)
class ReconciliationResult:
    client_id: uuid.UUID
    tier_index: int
    payment_count: int
    is_complete: bool
    changed: bool


@dataclass(frozen=True)
class SweepResult:
    checked: int
    updated: int
    skipped: bool


async def reconcile_client(
    db: AsyncSession,
    client: Client,
    completed_payments: int | None = None,
) -> ReconciliationResult:
    """Bring one loaded client in line with its payment history.

    Stages the change in the current transaction without committing.
    Pass ``completed_payments`` when the count is already known.
    """
    if completed_payments is None:
        completed_payments = await repository.count_completed_payments(db, client.id)

    resolution = resolve_tier(parse_tiers(client.tiered_payments), completed_payments)
    changed = (
        client.payment_count != completed_payments
        or client.current_tier_index != resolution.tier_index
    )

    if changed:
        logger.info(
            "tier_reconciled",
            client_id=str(client.id),
            previous_tier=client.current_tier_index,
            tier=resolution.tier_index,
            previous_count=client.payment_count,
            payment_count=completed_payments,
        )
        client.payment_count = completed_payments
        client.current_tier_index = resolution.tier_index
        await db.flush()

    return ReconciliationResult(
        client_id=client.id,
        tier_index=resolution.tier_index,
        payment_count=completed_payments,
        is_complete=resolution.is_complete,
        changed=changed,
    )


async def ensure_up_to_date(db: AsyncSession, client_id: uuid.UUID) -> ReconciliationResult:
    """Recompute and persist a client's tier index and payment count.

    Call after every completed-payment write. Idempotent: a second call with
    no new payment reports ``changed=False`` and writes nothing.

    Raises:
        ClientNotFoundError: the client does not exist
        ReconciliationError: the update could not be persisted (retry is safe)
    """
    try:
        async with atomic(db):
            client = await repository.get_client(db, client_id, lock=True)
            result = await reconcile_client(db, client)
    except SQLAlchemyError as exc:
        logger.exception("tier_reconcile_failed", client_id=str(client_id))
        raise ReconciliationError(f"Could not reconcile tier for client {client_id}") from exc

    if result.changed:
        await cache_invalidate("dashboard:*")
        audit_log(
            action=AuditAction.TIER_RECONCILE,
            resource_type="client",
            resource_id=str(client_id),
            details={"tier_index": result.tier_index, "payment_count": result.payment_count},
        )
    return result


async def reconcile_all_active(db: AsyncSession, force: bool = False) -> SweepResult:
    """Reconcile every non-archived client in one batch.

    Runs at most once per ``TIER_SWEEP_INTERVAL_SECONDS`` unless ``force``
    is set; a skipped run returns ``skipped=True`` without touching rows.
    """
    acquired = await cache_acquire(TIER_SWEEP_KEY, settings.TIER_SWEEP_INTERVAL_SECONDS)
    if not acquired and not force:
        logger.debug("tier_sweep_skipped")
        return SweepResult(checked=0, updated=0, skipped=True)

    try:
        async with atomic(db):
            clients = await repository.list_clients(db, include_archived=False)
            counts = await repository.completed_payment_counts(db)

            updated = 0
            for client in clients:
                result = await reconcile_client(db, client, counts.get(client.id, 0))
                if result.changed:
                    updated += 1
    except SQLAlchemyError as exc:
        logger.exception("tier_sweep_failed")
        raise ReconciliationError("Tier sweep could not be persisted") from exc

    if updated:
        await cache_invalidate("dashboard:*")

    audit_log(
        action=AuditAction.TIER_SWEEP,
        details={"checked": len(clients), "updated": updated, "forced": force},
    )
    logger.info("tier_sweep_completed", checked=len(clients), updated=updated)
    return SweepResult(checked=len(clients), updated=updated, skipped=False)
