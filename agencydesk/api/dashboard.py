"""Dashboard endpoints."""

from fastapi import APIRouter, Depends, Request
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from agencydesk.core.limiter import limiter
from agencydesk.db.session import get_db
from agencydesk.services.dashboard import get_dashboard_stats

router = APIRouter(prefix="/dashboard", tags=["dashboard"])


class DashboardStatsResponse(BaseModel):
    """Headline numbers for the current month."""

    monthly_revenue: float
    active_clients: int
    pending_amount: float
    monthly_expenses: float
    profit_margin: float
    projected_revenue: float
    currency: str


@router.get("/stats", response_model=DashboardStatsResponse)
@limiter.limit("100/minute")
async def get_stats(
    request: Request,
    db: AsyncSession = Depends(get_db),
) -> DashboardStatsResponse:
    """Get dashboard statistics (cached briefly)."""
    stats = await get_dashboard_stats(db)
    return DashboardStatsResponse(**stats)
