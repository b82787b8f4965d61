"""Tier progression tracking.

A client on a tiered schedule moves through its tiers by COMPLETED
PAYMENTS, not by calendar time: a tier with ``duration_months=3`` covers
the client's first three completed payments, the next tier starts at the
fourth, and once the cumulative duration is exhausted the client is billed
at its final rate.
"""

from dataclasses import dataclass
from datetime import UTC, datetime
from decimal import Decimal
from typing import Any, Literal

import structlog
from pydantic import BaseModel, ValidationError, field_validator

logger = structlog.get_logger()

# Length of a "month" for the elapsed-time estimate
_APPROX_DAYS_PER_MONTH = 30


class Tier(BaseModel):
    """One stage of a tiered schedule, parsed from the client's JSON column."""

    amount: Decimal = Decimal("0")
    duration_months: int = 0
    payment_type: Literal["monthly", "weekly"] = "monthly"
    services: dict[str, Decimal] = {}

    @field_validator("amount", mode="before")
    @classmethod
    def _amount_or_zero(cls, v: Any) -> Any:
        return 0 if v is None else v

    @field_validator("duration_months", mode="before")
    @classmethod
    def _duration_not_negative(cls, v: Any) -> Any:
        if v is None:
            return 0
        return max(int(v), 0)

    @field_validator("services", mode="before")
    @classmethod
    def _services_or_empty(cls, v: Any) -> Any:
        if not v:
            return {}
        return {name: (0 if price is None else price) for name, price in dict(v).items()}

    @property
    def total(self) -> Decimal:
        """Base amount plus every service price."""
        return self.amount + sum(self.services.values(), Decimal("0"))


@dataclass(frozen=True)
class TierResolution:
    """Where a payment count falls within a tier schedule.

    ``tier_index`` is -1 for an empty schedule. When ``is_complete`` is set
    ``tier_index`` points at the last tier and ``payments_into_current_tier``
    counts the payments already made at the final rate.
    """

    tier_index: int
    is_complete: bool
    payments_into_current_tier: int


def parse_tiers(raw: list[dict[str, Any]] | None) -> list[Tier]:
    """Parse a stored tier schedule.

    An entry that cannot be parsed becomes a zero-length tier so later
    boundaries keep their position; the problem is logged for the operator.
    """
    tiers: list[Tier] = []
    for position, entry in enumerate(raw or []):
        try:
            tiers.append(Tier.model_validate(entry))
        except ValidationError:
            logger.warning("invalid_tier_entry", position=position, entry=entry)
            tiers.append(Tier())
    return tiers


def resolve_tier(tiers: list[Tier], completed_payment_count: int) -> TierResolution:
    """Map a completed-payment count onto a tier schedule.

    Walks the schedule accumulating durations; the first tier whose
    cumulative boundary exceeds the count is the current one. This is the
    authoritative resolver.
    """
    if not tiers:
        return TierResolution(tier_index=-1, is_complete=True, payments_into_current_tier=0)

    count = max(completed_payment_count, 0)
    boundary = 0
    for index, tier in enumerate(tiers):
        tier_start = boundary
        boundary += tier.duration_months
        if count < boundary:
            return TierResolution(
                tier_index=index,
                is_complete=False,
                payments_into_current_tier=count - tier_start,
            )

    return TierResolution(
        tier_index=len(tiers) - 1,
        is_complete=True,
        payments_into_current_tier=count - boundary,
    )


def total_duration(tiers: list[Tier]) -> int:
    """Number of payments covered by the whole schedule."""
    return sum(tier.duration_months for tier in tiers)


def approximate_tier_by_elapsed_time(
    tiers: list[Tier],
    started_at: datetime,
    now: datetime | None = None,
) -> TierResolution:
    """APPROXIMATE tier estimate from calendar time since ``started_at``.

    Counts elapsed 30-day periods as if one payment had been made in each.
    Drifts from reality whenever a payment is late, skipped or weekly; use
    only where payment history is unavailable and never to bill.
    """
    now = now or datetime.now(UTC)
    if started_at.tzinfo is None:
        started_at = started_at.replace(tzinfo=UTC)
    if now.tzinfo is None:
        now = now.replace(tzinfo=UTC)

    elapsed_months = max((now - started_at).days // _APPROX_DAYS_PER_MONTH, 0)
    return resolve_tier(tiers, elapsed_months)
