"""Next-payment-date scheduling.

All functions are total: every input produces a valid calendar date.
Month arithmetic clamps to the last day of the target month, so a client
billed on the 31st is due on Feb 28 (or 29) and Apr 30.
"""

import calendar
import re
from datetime import date, datetime, timedelta
from typing import TYPE_CHECKING

from dateutil import parser as date_parser
from dateutil.relativedelta import relativedelta

from agencydesk.core.config import settings
from agencydesk.models.client import PaymentType
from agencydesk.services.billing.rates import billing_cadence

if TYPE_CHECKING:
    from agencydesk.models.client import Client

_DAY_PATTERN = re.compile(r"(\d{1,2})")
_PARSE_DEFAULT = datetime(2000, 1, 1)


def day_in_month(year: int, month: int, day: int) -> date:
    """Build a date, clamping ``day`` into the month (Feb 31 -> Feb 28/29)."""
    last_day = calendar.monthrange(year, month)[1]
    return date(year, month, min(max(day, 1), last_day))


def add_months(value: date, months: int = 1) -> date:
    """Shift by whole months, clamping to the target month's last day."""
    return value + relativedelta(months=months)


def next_due_date(current: date, cadence: str) -> date:
    """Next due date after ``current`` for a monthly or weekly cadence.

    Per-post clients use :func:`next_fixed_day_date`; when one reaches this
    function it is scheduled monthly.
    """
    if cadence == PaymentType.WEEKLY.value:
        return current + timedelta(days=7)
    if cadence in (PaymentType.MONTHLY.value, PaymentType.PER_POST.value):
        return add_months(current, 1)
    raise ValueError(f"Unknown billing cadence: {cadence!r}")


def next_fixed_day_date(fixed_day: int, today: date | None = None) -> date:
    """Next occurrence of ``fixed_day`` strictly after ``today``."""
    today = today or date.today()
    candidate = day_in_month(today.year, today.month, fixed_day)
    if candidate > today:
        return candidate

    following = add_months(today.replace(day=1), 1)
    return day_in_month(following.year, following.month, fixed_day)


def next_payment_for_client(client: "Client", paid_on: date, today: date | None = None) -> date:
    """Due date that follows a completed payment for ``client``.

    Per-post clients jump to their fixed billing day after the later of
    ``today`` and ``paid_on`` (or one month past it when no day is
    configured), so settling early still moves them past the paid date.
    Everyone else advances from the due date that was paid, using the
    cadence in effect for their current tier.
    """
    today = today or date.today()
    if client.is_per_post:
        anchor = max(today, paid_on)
        if client.fixed_payment_day:
            return next_fixed_day_date(client.fixed_payment_day, anchor)
        return add_months(anchor, 1)
    return next_due_date(paid_on, billing_cadence(client))


def archive_sentinel_date() -> date:
    """Far-future due date parked on archived clients."""
    return settings.ARCHIVE_SENTINEL_DATE


def unarchive_due_date(today: date | None = None) -> date:
    """Due date given to a client coming back from the archive."""
    return add_months(today or date.today(), 1)


def month_year_for(value: date) -> str:
    """Billing month key (YYYY-MM) used by the post count ledger."""
    return f"{value.year:04d}-{value.month:02d}"


def parse_payment_day(value: str | None) -> int:
    """Day of month a salary is due, from whatever the operator typed.

    Accepts ISO dates and free-form dates ("Jul 30, 2025"); a bare number is
    the day itself; otherwise takes the first one- or two-digit number.
    Anything without a usable day falls back to the 1st.
    """
    if not value or not value.strip():
        return 1

    value = value.strip()
    if value.isdigit():
        day = int(value)
        return day if 1 <= day <= 31 else 1

    try:
        # Missing day components default to the 1st, not today's day
        return date_parser.parse(value, default=_PARSE_DEFAULT).day
    except (ValueError, OverflowError):
        pass

    match = _DAY_PATTERN.search(value)
    if match:
        day = int(match.group(1))
        if 1 <= day <= 31:
            return day
    return 1
