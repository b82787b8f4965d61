"""Audit logging for billing mutations.

Every operation that changes what a client owes or when it is due emits a
structured audit event:
- Payments recorded or settled
- Tier and payment-count reconciliation
- Archive / unarchive
- Post count adjustments
- Salary payouts
"""

from typing import Any

import structlog

logger = structlog.get_logger("audit")

# Minimum length for masking (show last N chars)
_MASK_SUFFIX_LENGTH = 4


class AuditAction:
    """Audit action constants."""

    # Clients
    CLIENT_CREATE = "client.create"
    CLIENT_UPDATE = "client.update"
    CLIENT_DELETE = "client.delete"
    CLIENT_ARCHIVE = "client.archive"
    CLIENT_UNARCHIVE = "client.unarchive"

    # Billing
    PAYMENT_RECORD = "billing.payment.record"
    PAYMENT_SETTLE = "billing.payment.settle"
    TIER_RECONCILE = "billing.tier.reconcile"
    TIER_SWEEP = "billing.tier.sweep"

    # Metered usage
    POST_COUNT_UPDATE = "usage.post_count.update"

    # Payroll
    SALARY_PAID = "payroll.salary.paid"


def audit_log(
    action: str,
    resource_type: str | None = None,
    resource_id: str | None = None,
    details: dict[str, Any] | None = None,
    success: bool = True,
) -> None:
    """Log an audit event.

    Args:
        action: The action being performed (use AuditAction constants)
        resource_type: Type of resource being acted upon (e.g., "client", "payment")
        resource_id: ID of the resource being acted upon
        details: Additional details about the action
        success: Whether the action succeeded
    """
    log_data: dict[str, Any] = {
        "audit": True,  # Flag for filtering audit logs
        "action": action,
        "success": success,
    }

    if resource_type:
        log_data["resource_type"] = resource_type
    if resource_id:
        log_data["resource_id"] = resource_id

    if details:
        log_data["details"] = _sanitize_details(details)

    if success:
        logger.info("audit_event", **log_data)
    else:
        logger.warning("audit_event", **log_data)


def _sanitize_details(details: dict[str, Any]) -> dict[str, Any]:
    """Mask contact and banking fields in audit details."""
    sensitive_fields = {
        "email",
        "phone",
        "account_number",
        "ifsc",
        "upi",
    }

    sanitized = {}
    for key, value in details.items():
        lower_key = key.lower()
        if any(sensitive in lower_key for sensitive in sensitive_fields):
            if isinstance(value, str) and len(value) > _MASK_SUFFIX_LENGTH:
                sanitized[key] = f"****{value[-_MASK_SUFFIX_LENGTH:]}"
            else:
                sanitized[key] = "****"
        else:
            sanitized[key] = value

    return sanitized
