"""Metered usage counters for per-post clients."""

import uuid
from typing import TYPE_CHECKING

from sqlalchemy import CheckConstraint, ForeignKey, Integer, String, UniqueConstraint, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from agencydesk.db.base import Base, TimestampMixin

if TYPE_CHECKING:
    from agencydesk.models.client import Client


class PostCount(Base, TimestampMixin):
    """Units posted on one platform for one client in one billing month."""

    __tablename__ = "post_counts"
    __table_args__ = (
        UniqueConstraint("client_id", "platform", "month_year", name="uq_post_count_client_platform_month"),
        CheckConstraint("count >= 0", name="ck_post_counts_count_non_negative"),
    )

    id: Mapped[int] = mapped_column(primary_key=True, index=True)
    client_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("clients.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    platform: Mapped[str] = mapped_column(String(100), nullable=False)
    month_year: Mapped[str] = mapped_column(String(7), nullable=False, index=True)  # YYYY-MM
    count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    client: Mapped["Client"] = relationship("Client", back_populates="post_counts")

    def __repr__(self) -> str:
        """String representation."""
        return f"<PostCount {self.client_id} {self.platform} {self.month_year}={self.count}>"
