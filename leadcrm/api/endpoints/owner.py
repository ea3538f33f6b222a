from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from leadcrm.api.deps import require_any_permission
from leadcrm.core.permissions import Permission
from leadcrm.core.responses import api_success
from leadcrm.db.database import get_async_db
from leadcrm.schemas.auth import CurrentUser
from leadcrm.services.dashboard_service import DashboardPeriod, DashboardService

router = APIRouter()


@router.get("/dashboard-stats")
async def owner_dashboard_stats(
    period: DashboardPeriod = Query(DashboardPeriod.TODAY),
    db: AsyncSession = Depends(get_async_db),
    current_user: CurrentUser = Depends(
        require_any_permission(Permission.VIEW_REPORTS, Permission.VIEW_SYSTEM_REPORTS)
    ),
):
    """Walk-ins, sales, reviews and top performers for the store."""
    stats = await DashboardService(db).owner_stats(current_user.organization_id, period)
    return api_success(stats)
