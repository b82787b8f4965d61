"""Tests for next-payment-date scheduling."""

from datetime import date
from decimal import Decimal

import pytest

from agencydesk.models.client import Client
from agencydesk.services.billing.schedule import (
    add_months,
    archive_sentinel_date,
    day_in_month,
    month_year_for,
    next_due_date,
    next_fixed_day_date,
    next_payment_for_client,
    parse_payment_day,
    unarchive_due_date,
)


class TestMonthArithmetic:
    """Month shifts always land on a real calendar date."""

    @pytest.mark.parametrize(
        ("start", "expected"),
        [
            (date(2025, 1, 31), date(2025, 2, 28)),
            (date(2024, 1, 31), date(2024, 2, 29)),
            (date(2025, 3, 31), date(2025, 4, 30)),
            (date(2025, 8, 31), date(2025, 9, 30)),
            (date(2024, 2, 29), date(2024, 3, 29)),
            (date(2025, 5, 31), date(2025, 6, 30)),
            (date(2025, 12, 15), date(2026, 1, 15)),
            (date(2025, 12, 31), date(2026, 1, 31)),
        ],
    )
    def test_add_one_month(self, start: date, expected: date) -> None:
        assert add_months(start) == expected

    def test_add_negative_months(self) -> None:
        assert add_months(date(2025, 3, 31), -1) == date(2025, 2, 28)
        assert add_months(date(2025, 1, 10), -2) == date(2024, 11, 10)

    @pytest.mark.parametrize(
        ("year", "month", "day", "expected"),
        [
            (2025, 2, 31, date(2025, 2, 28)),
            (2024, 2, 30, date(2024, 2, 29)),
            (2025, 4, 31, date(2025, 4, 30)),
            (2025, 5, 0, date(2025, 5, 1)),
            (2025, 5, 17, date(2025, 5, 17)),
        ],
    )
    def test_day_in_month_clamps(self, year: int, month: int, day: int, expected: date) -> None:
        assert day_in_month(year, month, day) == expected


class TestNextDueDate:
    """Test cadence-based advancement."""

    def test_weekly_adds_seven_days(self) -> None:
        assert next_due_date(date(2025, 3, 10), "weekly") == date(2025, 3, 17)

    def test_weekly_crosses_month_and_year(self) -> None:
        assert next_due_date(date(2025, 1, 28), "weekly") == date(2025, 2, 4)
        assert next_due_date(date(2025, 12, 29), "weekly") == date(2026, 1, 5)

    def test_monthly_clamps_month_end(self) -> None:
        assert next_due_date(date(2025, 1, 31), "monthly") == date(2025, 2, 28)
        assert next_due_date(date(2024, 1, 31), "monthly") == date(2024, 2, 29)
        assert next_due_date(date(2025, 5, 31), "monthly") == date(2025, 6, 30)

    def test_monthly_keeps_leap_day(self) -> None:
        assert next_due_date(date(2024, 2, 29), "monthly") == date(2024, 3, 29)

    def test_per_post_falls_back_to_monthly(self) -> None:
        assert next_due_date(date(2025, 3, 5), "per-post") == date(2025, 4, 5)

    def test_unknown_cadence_rejected(self) -> None:
        with pytest.raises(ValueError, match="Unknown billing cadence"):
            next_due_date(date(2025, 3, 5), "yearly")


class TestFixedDay:
    """Per-post clients bill on a fixed day of the month."""

    def test_later_this_month(self) -> None:
        assert next_fixed_day_date(15, today=date(2025, 3, 10)) == date(2025, 3, 15)

    def test_today_rolls_to_next_month(self) -> None:
        assert next_fixed_day_date(15, today=date(2025, 3, 15)) == date(2025, 4, 15)

    def test_passed_day_rolls_to_next_month(self) -> None:
        assert next_fixed_day_date(5, today=date(2025, 3, 20)) == date(2025, 4, 5)

    def test_day_31_in_short_month(self) -> None:
        assert next_fixed_day_date(31, today=date(2025, 2, 10)) == date(2025, 2, 28)
        assert next_fixed_day_date(31, today=date(2025, 1, 31)) == date(2025, 2, 28)
        assert next_fixed_day_date(31, today=date(2025, 4, 30)) == date(2025, 5, 31)

    def test_year_rollover(self) -> None:
        assert next_fixed_day_date(30, today=date(2025, 12, 31)) == date(2026, 1, 30)


class TestNextPaymentForClient:
    """Test the due date that follows a completed payment."""

    def test_flat_monthly(self) -> None:
        client = Client(payment_type="monthly", monthly_rate=Decimal("20000"))
        assert next_payment_for_client(client, date(2025, 3, 15)) == date(2025, 4, 15)

    def test_flat_weekly(self) -> None:
        client = Client(payment_type="weekly", weekly_rate=Decimal("5000"))
        assert next_payment_for_client(client, date(2025, 3, 15)) == date(2025, 3, 22)

    def test_cadence_follows_current_tier(self) -> None:
        client = Client(
            payment_type="monthly",
            tiered_payments=[{"amount": 3000, "duration_months": 4, "payment_type": "weekly"}],
            payment_count=2,
        )
        assert next_payment_for_client(client, date(2025, 3, 15)) == date(2025, 3, 22)

    def test_cadence_after_schedule_complete(self) -> None:
        client = Client(
            payment_type="monthly",
            tiered_payments=[{"amount": 3000, "duration_months": 4, "payment_type": "weekly"}],
            payment_count=4,
        )
        assert next_payment_for_client(client, date(2025, 3, 15)) == date(2025, 4, 15)

    def test_per_post_with_fixed_day(self) -> None:
        client = Client(payment_type="per-post", fixed_payment_day=5)
        next_due = next_payment_for_client(client, date(2025, 3, 5), today=date(2025, 3, 7))
        assert next_due == date(2025, 4, 5)

    def test_per_post_paid_ahead_of_due_date(self) -> None:
        client = Client(payment_type="per-post", fixed_payment_day=5)
        next_due = next_payment_for_client(client, date(2025, 2, 5), today=date(2025, 1, 20))
        assert next_due == date(2025, 3, 5)

    def test_per_post_without_fixed_day(self) -> None:
        client = Client(payment_type="per-post")
        next_due = next_payment_for_client(client, date(2025, 3, 5), today=date(2025, 3, 7))
        assert next_due == date(2025, 4, 7)


class TestArchiveDates:
    """Test archive sentinel and unarchive dates."""

    def test_sentinel_is_far_future(self) -> None:
        assert archive_sentinel_date() == date(2125, 12, 31)

    def test_unarchive_due_one_month_out(self) -> None:
        assert unarchive_due_date(date(2025, 3, 10)) == date(2025, 4, 10)
        assert unarchive_due_date(date(2025, 1, 31)) == date(2025, 2, 28)


class TestHelpers:
    """Test month keys and pay-day parsing."""

    def test_month_year_for(self) -> None:
        assert month_year_for(date(2025, 3, 5)) == "2025-03"
        assert month_year_for(date(2025, 12, 31)) == "2025-12"

    @pytest.mark.parametrize(
        ("value", "expected"),
        [
            ("2025-07-30", 30),
            ("Jul 30, 2025", 30),
            ("2025-02-05", 5),
            ("pay on the 12", 12),
            ("", 1),
            ("   ", 1),
            (None, 1),
            ("whenever", 1),
            ("15", 15),
            ("2025", 1),
            ("45", 1),
            ("July 2025", 1),
        ],
    )
    def test_parse_payment_day(self, value: str | None, expected: int) -> None:
        assert parse_payment_day(value) == expected
