"""Payment model: completed or pending billing events."""

import uuid
from datetime import date
from decimal import Decimal
from enum import Enum
from typing import TYPE_CHECKING, Any

from sqlalchemy import JSON, Date, ForeignKey, Integer, Numeric, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from agencydesk.db.base import Base, TimestampMixin

if TYPE_CHECKING:
    from agencydesk.models.client import Client


class PaymentStatus(str, Enum):
    """Payment status. Only completed payments drive tier progression."""

    COMPLETED = "completed"
    PENDING = "pending"
    OVERDUE = "overdue"


class PaymentKind(str, Enum):
    """Payment record type."""

    PAYMENT = "payment"
    POST = "post"
    REMINDER = "reminder"


class Payment(Base, TimestampMixin):
    """Billing event for a client."""

    __tablename__ = "payments"

    id: Mapped[uuid.UUID] = mapped_column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    client_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("clients.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    payment_date: Mapped[date] = mapped_column(Date, nullable=False, index=True)
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=PaymentStatus.COMPLETED.value, index=True
    )  # completed, pending, overdue
    type: Mapped[str] = mapped_column(
        String(20), nullable=False, default=PaymentKind.PAYMENT.value
    )  # payment, post, reminder
    description: Mapped[str | None] = mapped_column(Text, nullable=True)

    # Per-post settlements only
    post_count: Mapped[int | None] = mapped_column(Integer, nullable=True)
    platform_breakdown: Mapped[dict[str, Any] | None] = mapped_column(JSON, nullable=True)

    client: Mapped["Client"] = relationship("Client", back_populates="payments")

    def __repr__(self) -> str:
        """String representation."""
        return f"<Payment {self.id} - {self.amount} on {self.payment_date} ({self.status})>"
