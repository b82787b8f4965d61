"""Client model: billing configuration and progression state."""

import uuid
from datetime import date
from decimal import Decimal
from enum import Enum
from typing import TYPE_CHECKING, Any

from sqlalchemy import JSON, CheckConstraint, Date, Integer, Numeric, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from agencydesk.db.base import Base, TimestampMixin

if TYPE_CHECKING:
    from agencydesk.models.payment import Payment
    from agencydesk.models.post_count import PostCount
    from agencydesk.models.task import Task


class PaymentType(str, Enum):
    """Billing mode of a client (mutually exclusive)."""

    MONTHLY = "monthly"
    WEEKLY = "weekly"
    PER_POST = "per-post"


class ClientStatus(str, Enum):
    """Client lifecycle status."""

    ACTIVE = "active"
    INACTIVE = "inactive"
    PENDING = "pending"
    ARCHIVED = "archived"


class Client(Base, TimestampMixin):
    """A billed entity.

    ``tiered_payments`` holds the ordered tier schedule as a list of
    ``{"amount", "duration_months", "payment_type", "services"}`` objects.
    ``duration_months`` counts completed payments, not calendar months.
    """

    __tablename__ = "clients"
    __table_args__ = (
        CheckConstraint("payment_count >= 0", name="ck_clients_payment_count_non_negative"),
        CheckConstraint(
            "fixed_payment_day IS NULL OR (fixed_payment_day BETWEEN 1 AND 31)",
            name="ck_clients_fixed_payment_day_range",
        ),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)

    # Identity and contact
    name: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    email: Mapped[str | None] = mapped_column(String(255), nullable=True)
    phone: Mapped[str | None] = mapped_column(String(50), nullable=True)
    company: Mapped[str | None] = mapped_column(String(255), nullable=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    # Billing mode
    payment_type: Mapped[str] = mapped_column(
        String(20), nullable=False, default=PaymentType.MONTHLY.value
    )  # monthly, weekly, per-post

    # Flat rate
    monthly_rate: Mapped[Decimal | None] = mapped_column(Numeric(12, 2), nullable=True)
    weekly_rate: Mapped[Decimal | None] = mapped_column(Numeric(12, 2), nullable=True)
    services: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False, default=dict)

    # Tier schedule and the flat structure that applies after it
    tiered_payments: Mapped[list[dict[str, Any]]] = mapped_column(JSON, nullable=False, default=list)
    final_monthly_rate: Mapped[Decimal | None] = mapped_column(Numeric(12, 2), nullable=True)
    final_weekly_rate: Mapped[Decimal | None] = mapped_column(Numeric(12, 2), nullable=True)
    final_services: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False, default=dict)

    # Per-post metered billing
    per_post_rates: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False, default=dict)
    fixed_payment_day: Mapped[int | None] = mapped_column(Integer, nullable=True)  # 1-31

    # Progression state (derived from completed payments by reconciliation)
    current_tier_index: Mapped[int] = mapped_column(Integer, nullable=False, default=-1)
    payment_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    # Lifecycle and scheduling
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=ClientStatus.ACTIVE.value, index=True
    )  # active, inactive, pending, archived
    next_payment: Mapped[date | None] = mapped_column(Date, nullable=True, index=True)

    # Relationships
    payments: Mapped[list["Payment"]] = relationship(
        "Payment", back_populates="client", cascade="all, delete-orphan"
    )
    post_counts: Mapped[list["PostCount"]] = relationship(
        "PostCount", back_populates="client", cascade="all, delete-orphan"
    )
    tasks: Mapped[list["Task"]] = relationship(
        "Task", back_populates="client", cascade="all, delete-orphan"
    )

    @property
    def is_archived(self) -> bool:
        return self.status == ClientStatus.ARCHIVED.value

    @property
    def is_per_post(self) -> bool:
        return self.payment_type == PaymentType.PER_POST.value

    def __repr__(self) -> str:
        """String representation."""
        return f"<Client {self.id} - {self.name} ({self.payment_type}, {self.status})>"
