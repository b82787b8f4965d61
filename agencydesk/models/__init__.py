"""SQLAlchemy models."""

from agencydesk.models.client import Client, ClientStatus, PaymentType
from agencydesk.models.payment import Payment, PaymentKind, PaymentStatus
from agencydesk.models.post_count import PostCount
from agencydesk.models.task import Task
from agencydesk.models.team import OtherExpense, TeamMember

__all__ = [
    "Client",
    "ClientStatus",
    "OtherExpense",
    "Payment",
    "PaymentKind",
    "PaymentStatus",
    "PaymentType",
    "PostCount",
    "Task",
    "TeamMember",
]
