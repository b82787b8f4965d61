"""Team payroll and expense models."""

import uuid
from datetime import date
from decimal import Decimal

from sqlalchemy import Date, Numeric, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from agencydesk.db.base import Base, TimestampMixin


class TeamMember(Base, TimestampMixin):
    """Salaried team member.

    ``payment_date`` is stored as entered by the operator (usually an ISO
    date). Only its day of month matters for scheduling.
    """

    __tablename__ = "team_members"

    id: Mapped[uuid.UUID] = mapped_column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    email: Mapped[str | None] = mapped_column(String(255), nullable=True)
    phone: Mapped[str | None] = mapped_column(String(50), nullable=True)
    role: Mapped[str] = mapped_column(String(100), nullable=False)
    salary: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default="active", index=True
    )  # active, inactive, on_leave
    payment_date: Mapped[str] = mapped_column(String(50), nullable=False)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    def __repr__(self) -> str:
        """String representation."""
        return f"<TeamMember {self.id} - {self.name} ({self.role})>"


class OtherExpense(Base, TimestampMixin):
    """One-off or recurring business expense, including salary payouts."""

    __tablename__ = "other_expenses"

    id: Mapped[uuid.UUID] = mapped_column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    title: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    expense_date: Mapped[date] = mapped_column("date", Date, nullable=False, index=True)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)

    def __repr__(self) -> str:
        """String representation."""
        return f"<OtherExpense {self.title} {self.amount} on {self.expense_date}>"
