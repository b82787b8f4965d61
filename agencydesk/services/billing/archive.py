"""Archive state gate.

Archiving takes a client out of every forward-looking billing view without
touching its payments, tasks or billing configuration.
"""

import uuid
from datetime import date
from typing import Any

import structlog
from sqlalchemy.ext.asyncio import AsyncSession

from agencydesk.core.audit import AuditAction, audit_log
from agencydesk.core.cache import cache_invalidate
from agencydesk.db.session import atomic
from agencydesk.models.client import Client, ClientStatus
from agencydesk.services.billing import repository
from agencydesk.services.billing.schedule import archive_sentinel_date, unarchive_due_date
from agencydesk.services.errors import ClientArchivedError

logger = structlog.get_logger()

# Fields only archive/unarchive may change while a client is archived
_ARCHIVE_OWNED_FIELDS = ("status", "next_payment")


def ensure_editable(client: Client, patch: dict[str, Any]) -> None:
    """Reject edits that would move an archived client off the archive state.

    Raises:
        ClientArchivedError: ``patch`` touches status or next_payment of an
            archived client
    """
    if not client.is_archived:
        return
    blocked = sorted(field for field in _ARCHIVE_OWNED_FIELDS if field in patch)
    if blocked:
        raise ClientArchivedError(
            f"Client {client.id} is archived; unarchive it before changing {', '.join(blocked)}"
        )


async def archive(db: AsyncSession, client_id: uuid.UUID) -> Client:
    """Mark a client archived and park its due date on the sentinel."""
    async with atomic(db):
        client = await repository.get_client(db, client_id, lock=True)
        previous_due = client.next_payment
        await repository.update_client(
            db,
            client,
            {"status": ClientStatus.ARCHIVED.value, "next_payment": archive_sentinel_date()},
        )

    logger.info("client_archived", client_id=str(client_id), previous_due=str(previous_due))
    await cache_invalidate("dashboard:*")
    audit_log(action=AuditAction.CLIENT_ARCHIVE, resource_type="client", resource_id=str(client_id))
    return client


async def unarchive(db: AsyncSession, client_id: uuid.UUID, today: date | None = None) -> Client:
    """Reactivate an archived client, due one month from ``today``.

    A client that is not archived is returned unchanged.
    """
    async with atomic(db):
        client = await repository.get_client(db, client_id, lock=True)
        if not client.is_archived:
            return client
        await repository.update_client(
            db,
            client,
            {"status": ClientStatus.ACTIVE.value, "next_payment": unarchive_due_date(today)},
        )

    logger.info("client_unarchived", client_id=str(client_id), next_payment=str(client.next_payment))
    await cache_invalidate("dashboard:*")
    audit_log(action=AuditAction.CLIENT_UNARCHIVE, resource_type="client", resource_id=str(client_id))
    return client
