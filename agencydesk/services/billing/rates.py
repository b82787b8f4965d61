"""Rate calculation for the next billing cycle."""

from dataclasses import dataclass
from decimal import Decimal
from typing import TYPE_CHECKING, Any

import structlog

from agencydesk.models.client import PaymentType
from agencydesk.services.billing.tiers import TierResolution, parse_tiers, resolve_tier

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

    from agencydesk.models.client import Client

logger = structlog.get_logger()

ZERO = Decimal("0")


@dataclass(frozen=True)
class LineItem:
    """One component of a client's rate."""

    name: str
    amount: Decimal


def to_money(value: Any) -> Decimal:
    """Coerce a stored numeric (None, int, float, str, Decimal) to Decimal."""
    if value is None:
        return ZERO
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


def sum_services(services: dict[str, Any] | None) -> Decimal:
    return sum((to_money(price) for price in (services or {}).values()), ZERO)


def resolve_client_tier(client: "Client") -> TierResolution:
    """Tier of ``client`` from its stored completed-payment count."""
    return resolve_tier(parse_tiers(client.tiered_payments), client.payment_count or 0)


def billing_cadence(client: "Client", resolution: TierResolution | None = None) -> str:
    """Cadence in effect: the current tier's while inside a tier, else the client's."""
    if client.payment_type == PaymentType.PER_POST.value:
        return PaymentType.PER_POST.value

    tiers = parse_tiers(client.tiered_payments)
    if tiers:
        resolution = resolution or resolve_tier(tiers, client.payment_count or 0)
        if not resolution.is_complete:
            return tiers[resolution.tier_index].payment_type
    return client.payment_type


def _flat_rate(client: "Client", final: bool) -> Decimal:
    if client.payment_type == PaymentType.WEEKLY.value:
        return to_money(client.final_weekly_rate if final else client.weekly_rate)
    return to_money(client.final_monthly_rate if final else client.monthly_rate)


def rate_breakdown(client: "Client", resolution: TierResolution | None = None) -> list[LineItem]:
    """Line items that make up the next cycle's amount.

    Per-post clients have no synchronous breakdown; their line items come
    from the post count ledger.
    """
    if client.payment_type == PaymentType.PER_POST.value:
        return []

    tiers = parse_tiers(client.tiered_payments)
    if tiers:
        resolution = resolution or resolve_tier(tiers, client.payment_count or 0)
        if resolution.is_complete:
            base, services = _flat_rate(client, final=True), client.final_services
        else:
            tier = tiers[resolution.tier_index]
            base, services = tier.amount, tier.services
    else:
        base, services = _flat_rate(client, final=False), client.services

    items = [LineItem(name="Base rate", amount=base)] if base else []
    items.extend(LineItem(name=name, amount=to_money(price)) for name, price in (services or {}).items())
    return items


def compute_rate(client: "Client", resolution: TierResolution | None = None) -> Decimal:
    """Amount due for the client's next billing cycle.

    - per-post: always 0 here, because the amount lives in the post count
      ledger. Use :func:`compute_rate_async` for those clients.
    - tiered: current tier amount + its services, or the final rate + final
      services once every tier has been paid through.
    - flat: rate for the payment type + services.
    """
    if client.payment_type == PaymentType.PER_POST.value:
        return ZERO
    return sum((item.amount for item in rate_breakdown(client, resolution)), ZERO)


def amount_for_counts(per_post_rates: dict[str, Any] | None, counts: dict[str, int]) -> Decimal:
    """Sum of count x unit rate. Platforms without a configured rate bill 0."""
    rates = per_post_rates or {}
    total = ZERO
    for platform, count in counts.items():
        if not count:
            continue
        if platform not in rates:
            logger.warning("per_post_rate_missing", platform=platform, count=count)
        total += to_money(rates.get(platform)) * count
    return total


async def compute_rate_async(
    db: "AsyncSession",
    client: "Client",
    month_year: str | None = None,
) -> Decimal:
    """Rate including per-post usage read from the ledger."""
    if client.payment_type != PaymentType.PER_POST.value:
        return compute_rate(client)

    from agencydesk.services.billing.ledger import total_amount_due

    return await total_amount_due(db, client, month_year)
