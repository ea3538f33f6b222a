from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession
from typing import Optional

from leadcrm.api.deps import require_permission, resolve_month
from leadcrm.core.permissions import Permission
from leadcrm.core.responses import api_success
from leadcrm.db.database import get_async_db
from leadcrm.schemas.auth import CurrentUser
from leadcrm.schemas.incentive import ApproveRequest, BulkApproveRequest, MarkPaidRequest, MonthlyIncentiveResponse
from leadcrm.services.approval_service import IncentiveApprovalService

router = APIRouter()


@router.get("")
async def manager_overview(
    month: Optional[str] = Query(None, description="YYYY-MM"),
    db: AsyncSession = Depends(get_async_db),
    current_user: CurrentUser = Depends(require_permission(Permission.APPROVE_INCENTIVES)),
):
    overview = await IncentiveApprovalService.manager_overview(
        db, current_user.organization_id, resolve_month(month)
    )
    return api_success(overview)


@router.post("/approve")
async def approve_incentive(
    payload: ApproveRequest,
    db: AsyncSession = Depends(get_async_db),
    current_user: CurrentUser = Depends(require_permission(Permission.APPROVE_INCENTIVES)),
):
    incentive = await IncentiveApprovalService.approve(
        db,
        current_user.organization_id,
        current_user.user_id,
        payload.incentive_id,
        payload.approved,
        payload.review_notes,
        payload.final_amount,
    )
    message = "Incentive approved" if payload.approved else "Incentive rejected"
    return api_success(MonthlyIncentiveResponse.model_validate(incentive), message=message)


@router.post("/bulk-approve")
async def bulk_approve(
    payload: BulkApproveRequest,
    db: AsyncSession = Depends(get_async_db),
    current_user: CurrentUser = Depends(require_permission(Permission.APPROVE_INCENTIVES)),
):
    result = await IncentiveApprovalService.bulk_approve(
        db,
        current_user.organization_id,
        current_user.user_id,
        payload.incentive_ids,
        payload.review_notes,
    )
    return api_success(result, message=f"Approved {result['approved']} incentives")


@router.post("/mark-paid")
async def mark_paid(
    payload: MarkPaidRequest,
    db: AsyncSession = Depends(get_async_db),
    current_user: CurrentUser = Depends(require_permission(Permission.APPROVE_INCENTIVES)),
):
    result = await IncentiveApprovalService.mark_paid(
        db, current_user.organization_id, payload.incentive_ids, payload.payment_reference
    )
    return api_success(result, message=f"Marked {result['marked_paid']} incentives as paid")
